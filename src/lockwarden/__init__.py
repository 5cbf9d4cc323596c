"""Distributed mutual exclusion over Redis for asyncio services."""

from .core import (
    AcquisitionFailure,
    ConfigurationError,
    InMemoryAuthorityClient,
    LockConnectionError,
    LockError,
    LockManager,
    LockSettings,
    NoActiveContext,
    RedisAuthorityClient,
    ReleaseFailure,
)
from .decorators import locked, use_manager

__all__ = [
    "__version__",
    "AcquisitionFailure",
    "ConfigurationError",
    "InMemoryAuthorityClient",
    "LockConnectionError",
    "LockError",
    "LockManager",
    "LockSettings",
    "NoActiveContext",
    "RedisAuthorityClient",
    "ReleaseFailure",
    "locked",
    "use_manager",
]

__version__ = "0.1.0"
