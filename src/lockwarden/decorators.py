"""Decorator that derives lock keys from call arguments."""

from __future__ import annotations

import functools
import inspect
from collections.abc import Mapping
from typing import Any, Callable, Optional, Sequence, Tuple, Union

from lockwarden.core.exceptions import ConfigurationError
from lockwarden.core.manager import LockManager
from lockwarden.core.retry import WaitLike
from lockwarden.core.settings import KeyPrefixMode

ManagerSource = Union[LockManager, Callable[[], LockManager]]

_default_manager: Optional[LockManager] = None


def use_manager(manager: Optional[LockManager]) -> None:
    """Register the manager used by ``@locked`` functions that name none."""
    global _default_manager
    _default_manager = manager


def _resolve_manager(source: Optional[ManagerSource]) -> LockManager:
    if source is None:
        if _default_manager is None:
            raise ConfigurationError("No LockManager registered; pass manager= or call use_manager()")
        return _default_manager
    if isinstance(source, LockManager):
        return source
    return source()


def _split_specifier(spec: str) -> Tuple[str, Optional[str]]:
    name, _, path = spec.partition(".")
    return name, path or None


def _key_element(value: Any, path: Optional[str]) -> str:
    if path is not None:
        if isinstance(value, Mapping) and path in value:
            return str(value[path])
        if value is not None and not isinstance(value, Mapping) and hasattr(value, path):
            return str(getattr(value, path))
    return str(value)


def _owner_elements(func: Callable[..., Any]) -> list[str]:
    parts = func.__qualname__.split(".")
    # "Owner.method" for methods, just the name for plain or nested functions.
    if len(parts) >= 2 and parts[-2] != "<locals>":
        return parts[-2:]
    return parts[-1:]


def build_lock_key(
    func: Callable[..., Any],
    args: Sequence[Any],
    kwargs: Mapping[str, Any],
    key_params: Sequence[str],
    mode: KeyPrefixMode = KeyPrefixMode.DEFAULT,
) -> str:
    """Join the owner name (``default`` mode) and the selected argument values with ``:``."""
    bound = inspect.signature(func).bind(*args, **kwargs)
    bound.apply_defaults()
    elements = _owner_elements(func) if mode is KeyPrefixMode.DEFAULT else []
    for spec in key_params:
        name, path = _split_specifier(spec)
        elements.append(_key_element(bound.arguments[name], path))
    if not elements:
        raise ConfigurationError(f"Lock key for {func.__qualname__} is empty; name at least one parameter")
    return ":".join(elements)


def locked(
    ttl_ms: int,
    *key_params: str,
    wait: Optional[WaitLike] = None,
    manager: Optional[ManagerSource] = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Run the decorated coroutine function under a lock derived from its arguments.

    ``key_params`` name parameters of the function; ``"order.id"`` selects the
    ``id`` item or attribute of the ``order`` argument.

    Example:
        class Orders:
            @locked(5000, "user_id")
            async def checkout(self, user_id: str) -> None:
                ...
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        if not inspect.iscoroutinefunction(func):
            raise ConfigurationError(f"@locked requires an async function, got {func.__qualname__}")
        parameters = inspect.signature(func).parameters
        for spec in key_params:
            name, _ = _split_specifier(spec)
            if name not in parameters:
                raise ConfigurationError(f"{func.__qualname__} has no parameter named {name!r}")

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            lock_manager = _resolve_manager(manager)
            key = build_lock_key(func, args, kwargs, key_params, lock_manager.settings.key_prefix_mode)
            return await lock_manager.run_with_lock(key, ttl_ms, lambda: func(*args, **kwargs), wait=wait)

        return wrapper

    return decorator
