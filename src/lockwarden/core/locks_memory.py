"""In-process authority store for single-instance deployments and tests."""

from __future__ import annotations

import time
from typing import Callable, Dict, Optional, Tuple

from .exceptions import LockConnectionError
from .locks import AuthorityClient


class InMemoryAuthorityClient(AuthorityClient):
    """Dictionary-backed lock records with millisecond expiry.

    Each primitive runs without awaiting, so on a single event loop it is as
    atomic as the Redis scripts are on the server.
    """

    def __init__(self, *, clock: Optional[Callable[[], float]] = None) -> None:
        self._records: Dict[str, Tuple[str, float]] = {}
        self._clock = clock or time.monotonic
        self._closed = False

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def _live_owner(self, key: str) -> Optional[str]:
        record = self._records.get(key)
        if record is None:
            return None
        owner, expires_at = record
        if expires_at <= self._now_ms():
            del self._records[key]
            return None
        return owner

    def _sweep(self) -> None:
        now = self._now_ms()
        expired = [key for key, (_, expires_at) in self._records.items() if expires_at <= now]
        for key in expired:
            del self._records[key]

    def _ensure_open(self) -> None:
        if self._closed:
            raise LockConnectionError("InMemoryAuthorityClient is closed")

    async def connect(self) -> None:
        self._closed = False

    async def close(self) -> None:
        self._closed = True

    async def acquire(self, key: str, owner_token: str, ttl_ms: int) -> bool:
        self._ensure_open()
        # Drop leaked records on keys nobody touches again.
        self._sweep()
        owner = self._live_owner(key)
        if owner is not None and owner != owner_token:
            return False
        self._records[key] = (owner_token, self._now_ms() + ttl_ms)
        return True

    async def release(self, key: str, owner_token: str) -> bool:
        self._ensure_open()
        if self._live_owner(key) != owner_token:
            return False
        del self._records[key]
        return True

    def owner_of(self, key: str) -> Optional[str]:
        """Current owner token of ``key``, or None when free."""
        return self._live_owner(key)
