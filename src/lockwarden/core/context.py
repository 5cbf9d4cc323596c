"""Per-call-chain identity storage backed by ``contextvars``."""

from __future__ import annotations

import contextvars
import itertools
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar

from .exceptions import NoActiveContext

T = TypeVar("T")

OWNER_TOKEN_KEY = "owner_token"

_instance_ids = itertools.count(1)


class IdentityContext:
    """Scoped key/value namespace bound to one logical call chain.

    Every asyncio task runs with its own copy of the context, so values set by
    one task are never visible to a concurrently running one, while a value
    set before an ``await`` is still visible after it within the same task.

    ``enter_scope`` replaces the active namespace for the rest of the chain.
    ``scope`` does the same but restores the previous namespace on exit.
    """

    def __init__(self, name: Optional[str] = None) -> None:
        self._name = name or f"lockwarden_identity_{next(_instance_ids)}"
        self._var: contextvars.ContextVar[Optional[Dict[str, Any]]] = contextvars.ContextVar(
            self._name, default=None
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def active(self) -> bool:
        return self._var.get() is not None

    def enter_scope(self) -> contextvars.Token:
        """Install a fresh, empty namespace for the current call chain."""
        return self._var.set({})

    def exit_scope(self, token: contextvars.Token) -> None:
        self._var.reset(token)

    @contextmanager
    def scope(self) -> Iterator["IdentityContext"]:
        token = self.enter_scope()
        try:
            yield self
        finally:
            self.exit_scope(token)

    def run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Call ``func`` inside a copied context with a fresh scope.

        Nothing ``func`` stores leaks back into the caller's context.
        """

        def _runner() -> T:
            self.enter_scope()
            return func(*args, **kwargs)

        return contextvars.copy_context().run(_runner)

    def _store(self) -> Dict[str, Any]:
        store = self._var.get()
        if store is None:
            raise NoActiveContext(f"No active identity scope for {self._name}")
        return store

    def set(self, key: str, value: Any) -> None:
        self._store()[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self._store().get(key, default)

    def delete(self, key: str) -> None:
        self._store().pop(key, None)
