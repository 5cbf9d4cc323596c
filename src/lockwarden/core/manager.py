"""Lock manager: run a body while holding an exclusive lock on a key."""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar, Union

from lockwarden.core.context import OWNER_TOKEN_KEY, IdentityContext
from lockwarden.core.exceptions import (
    AcquisitionFailure,
    ConfigurationError,
    LockConnectionError,
    LockError,
    ReleaseFailure,
)
from lockwarden.core.locks import AuthorityClient
from lockwarden.core.retry import LinearWait, RetryScheduler, WaitLike, coerce_wait
from lockwarden.core.settings import LockSettings
from lockwarden.utils.logging import get_instance_logger

T = TypeVar("T")

Body = Callable[[], Union[T, Awaitable[T]]]


class LockManager:
    """Serializes protected bodies across processes through an authority store.

    Every acquisition gets a fresh owner token, kept in an ``IdentityContext``
    scope for the current call chain, so concurrent callers sharing this
    manager never release each other's locks.

    There is no lease renewal: a body that outlives ``ttl_ms`` may run while
    another caller holds the same key. Use ``extend`` to renew explicitly.
    """

    def __init__(
        self,
        client: AuthorityClient,
        settings: Optional[LockSettings] = None,
        *,
        wait: Optional[WaitLike] = None,
        identity: Optional[IdentityContext] = None,
        logger: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None,
    ) -> None:
        self.settings = settings or LockSettings()
        self.client = client
        self.identity = identity or IdentityContext()
        self.logger = logger or get_instance_logger("LockManager", self.settings.log_level)
        default_wait = coerce_wait(wait, numeric=LinearWait) if wait is not None else LinearWait(self.settings.wait_ms)
        self.scheduler = RetryScheduler(
            max_attempts=self.settings.max_attempts,
            blocking=self.settings.blocking,
            wait=default_wait,
        )
        self._started = False
        self._lock = asyncio.Lock()

    async def start(self) -> None:
        async with self._lock:
            if self._started:
                return
            await self.client.connect()
            self._started = True

    async def stop(self) -> None:
        async with self._lock:
            if not self._started:
                return
            self.logger.info("Shutting down lock manager")
            await self.client.close()
            self._started = False

    async def __aenter__(self) -> "LockManager":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    @staticmethod
    def new_owner_token() -> str:
        return str(uuid.uuid4())

    def current_owner_token(self) -> Optional[str]:
        """Owner token of the innermost lock held by this call chain."""
        return self.identity.get(OWNER_TOKEN_KEY)

    async def run_with_lock(
        self,
        key: str,
        ttl_ms: int,
        body: Body[T],
        *,
        wait: Optional[WaitLike] = None,
    ) -> T:
        """Run ``body`` while holding ``key``; the release is always attempted.

        Raises ``AcquisitionFailure`` (body never runs), ``LockConnectionError``
        or ``ReleaseFailure``. When both the body and the release fail, the
        body's exception is the one raised.
        """
        async with self.lock(key, ttl_ms, wait=wait):
            result = body()
            if inspect.isawaitable(result):
                result = await result
            return result

    @asynccontextmanager
    async def lock(self, key: str, ttl_ms: int, *, wait: Optional[WaitLike] = None) -> AsyncIterator[str]:
        """Async context manager form of ``run_with_lock``; yields the owner token."""
        self._validate(key, ttl_ms, wait)
        with self.identity.scope():
            self.identity.set(OWNER_TOKEN_KEY, self.new_owner_token())
            await self._acquire(key, ttl_ms, wait)
            try:
                yield self.identity.get(OWNER_TOKEN_KEY)
            except BaseException as body_error:
                await self._release_after_failure(key, body_error)
                raise
            await self._release(key)

    async def extend(self, key: str, ttl_ms: int) -> bool:
        """Renew ``key`` with the current scope's token; False if it was lost."""
        self._validate(key, ttl_ms, None)
        token = self.identity.get(OWNER_TOKEN_KEY)
        if token is None:
            raise LockError("No lock is held by this call chain", key=key)
        extended = await self.client.acquire(key, token, ttl_ms)
        if extended:
            self.logger.debug("Extended lock %s by %d ms", key, ttl_ms)
        else:
            self.logger.warning("Could not extend lock %s; it is owned by another caller", key)
        return extended

    def _validate(self, key: str, ttl_ms: int, wait: Optional[WaitLike]) -> None:
        if not isinstance(key, str) or not key:
            raise ConfigurationError("Lock key must be a non-empty string")
        if isinstance(ttl_ms, bool) or not isinstance(ttl_ms, int) or ttl_ms <= 0:
            raise ConfigurationError(f"ttl_ms must be a positive integer, got {ttl_ms!r}", key=key)
        if wait is not None:
            coerce_wait(wait)

    async def _acquire(self, key: str, ttl_ms: int, wait: Optional[WaitLike]) -> None:
        token = self.identity.get(OWNER_TOKEN_KEY)
        self.logger.debug("Acquiring lock %s with owner token %s", key, token)
        attempt = 0
        while True:
            attempt += 1
            # Connection errors propagate as-is; only contention is retried.
            if await self.client.acquire(key, token, ttl_ms):
                self.logger.info("Obtained lock %s", key)
                return
            delay_ms = self.scheduler.compute_delay(attempt, wait)
            self.logger.warning(
                "Lock %s is held by another owner (attempt %d); retrying in %.0f ms",
                key,
                attempt,
                delay_ms,
            )
            await asyncio.sleep(delay_ms / 1000.0)
            if not self.scheduler.should_continue(attempt):
                raise AcquisitionFailure(
                    f"Failed to obtain lock after {attempt} attempts",
                    key=key,
                    attempts=attempt,
                )

    async def _release(self, key: str) -> None:
        token = self.identity.get(OWNER_TOKEN_KEY)
        if await self.client.release(key, token):
            self.logger.debug("Released lock %s", key)
            return
        if self.settings.ignore_unlock_failure:
            self.logger.warning("Failed to release lock %s; ignoring as configured", key)
            return
        raise ReleaseFailure("Failed to release lock; it expired or is owned by another caller", key=key)

    async def _release_after_failure(self, key: str, body_error: BaseException) -> None:
        try:
            await self._release(key)
        except (ReleaseFailure, LockConnectionError) as release_error:
            self.logger.error(
                "Failed to release lock %s after the protected body raised %s: %s",
                key,
                type(body_error).__name__,
                release_error,
            )
