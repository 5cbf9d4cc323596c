"""Lock coordination engine: identity scopes, authority clients, retries and the manager."""

from .context import OWNER_TOKEN_KEY, IdentityContext
from .exceptions import (
    AcquisitionFailure,
    ConfigurationError,
    LockConnectionError,
    LockError,
    NoActiveContext,
    ReleaseFailure,
)
from .locks import AuthorityClient
from .locks_memory import InMemoryAuthorityClient
from .locks_redis import RedisAuthorityClient
from .manager import LockManager
from .retry import (
    CallableWait,
    CappedLinearWait,
    FixedWait,
    JitteredWait,
    LinearWait,
    RetryScheduler,
    WaitStrategy,
    coerce_wait,
)
from .settings import KeyPrefixMode, LockSettings, RedisSettings

__all__ = [
    "OWNER_TOKEN_KEY",
    "IdentityContext",
    "AcquisitionFailure",
    "ConfigurationError",
    "LockConnectionError",
    "LockError",
    "NoActiveContext",
    "ReleaseFailure",
    "AuthorityClient",
    "InMemoryAuthorityClient",
    "RedisAuthorityClient",
    "LockManager",
    "CallableWait",
    "CappedLinearWait",
    "FixedWait",
    "JitteredWait",
    "LinearWait",
    "RetryScheduler",
    "WaitStrategy",
    "coerce_wait",
    "KeyPrefixMode",
    "LockSettings",
    "RedisSettings",
]
