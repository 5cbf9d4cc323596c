"""Error taxonomy for lock coordination.

Hierarchy:
    LockError (base)
    ├── AcquisitionFailure   attempts exhausted in bounded mode
    ├── LockConnectionError  authority store unreachable or erroring
    ├── ReleaseFailure       ownership mismatch or absent record on release
    ├── NoActiveContext      identity scope misuse
    └── ConfigurationError   invalid options
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "LockError",
    "AcquisitionFailure",
    "LockConnectionError",
    "ReleaseFailure",
    "NoActiveContext",
    "ConfigurationError",
]


class LockError(Exception):
    """Base class for every error raised by lockwarden."""

    def __init__(self, message: str, *, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.key = key

    def __str__(self) -> str:
        if self.key is None:
            return self.message
        return f"{self.message} (key={self.key!r})"


class AcquisitionFailure(LockError):
    """The lock could not be obtained within the allowed attempts."""

    def __init__(self, message: str, *, key: Optional[str] = None, attempts: int = 0) -> None:
        super().__init__(message, key=key)
        self.attempts = attempts


class LockConnectionError(LockError, ConnectionError):
    """The authority store could not be reached or returned an error.

    ``fatal`` is set once fail-fast has tripped; every later operation on the
    same client raises a fatal error as well.
    """

    def __init__(self, message: str, *, key: Optional[str] = None, fatal: bool = False) -> None:
        super().__init__(message, key=key)
        self.fatal = fatal


class ReleaseFailure(LockError):
    """The release primitive reported that the caller no longer owns the key."""


class NoActiveContext(LockError, RuntimeError):
    """Identity storage was used outside of an active scope."""


class ConfigurationError(LockError, ValueError):
    """Options passed to a lockwarden component are invalid."""
