"""Abstract interface for the lock authority store."""

from __future__ import annotations

import abc


class AuthorityClient(abc.ABC):
    """Connection to the store that arbitrates lock records atomically.

    Implementations must perform each primitive as one atomic operation on the
    store side; the client itself holds no mutex around these calls and may be
    shared by any number of concurrent call chains.
    """

    async def connect(self) -> None:
        """Establish the connection. Optional for stores without one."""

    async def close(self) -> None:
        """Release the connection; in-flight operations may fail."""

    @abc.abstractmethod
    async def acquire(self, key: str, owner_token: str, ttl_ms: int) -> bool:  # pragma: no cover - interface
        """Write ``(owner_token, ttl_ms)`` if ``key`` is free or already owned by ``owner_token``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def release(self, key: str, owner_token: str) -> bool:  # pragma: no cover - interface
        """Delete ``key`` only if it is owned by ``owner_token``; False otherwise."""
        raise NotImplementedError

    async def __aenter__(self) -> "AuthorityClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
