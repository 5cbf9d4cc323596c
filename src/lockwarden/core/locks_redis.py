"""Redis-backed authority store using server-side Lua scripts."""

from __future__ import annotations

import logging
import os
import signal
from typing import Any, Awaitable, Callable, Optional, Union

from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import AbstractBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from lockwarden.utils.logging import get_instance_logger

from .exceptions import LockConnectionError
from .locks import AuthorityClient
from .retry import CappedLinearWait, WaitStrategy
from .settings import LockSettings

# Free key or same owner: (re)write the record with the new ttl.
LOCK_SCRIPT = """
local current = redis.call("GET", KEYS[1])
if current == false or current == ARGV[1] then
  redis.call("SET", KEYS[1], ARGV[1], "PX", ARGV[2])
  return 1
end
return 0
"""

UNLOCK_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
  return redis.call("DEL", KEYS[1])
end
return 0
"""

_CONNECTION_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)

ErrorHandler = Callable[[BaseException], None]


class StrategyBackoff(AbstractBackoff):
    """Feeds a ``WaitStrategy`` into redis-py's reconnection retry loop."""

    def __init__(self, strategy: WaitStrategy) -> None:
        self._strategy = strategy

    def reset(self) -> None:
        pass

    def compute(self, failures: int) -> float:
        return self._strategy.delay_ms(max(failures, 1)) / 1000.0


def _terminate_process() -> None:
    os.kill(os.getpid(), signal.SIGTERM)


class RedisAuthorityClient(AuthorityClient):
    """Authority client speaking to a single Redis instance.

    Both primitives are one ``EVALSHA`` round trip each, so the ownership check
    and the write (or delete) cannot interleave with another caller.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        redis: Optional[Redis] = None,
        fail_fast: bool = False,
        terminate_on_fatal: bool = False,
        reconnect_strategy: Optional[WaitStrategy] = None,
        reconnect_max_retries: int = 10,
        socket_timeout: Optional[float] = None,
        socket_connect_timeout: Optional[float] = 5.0,
        on_error: Optional[ErrorHandler] = None,
        on_fatal: Optional[Callable[[], None]] = None,
        log_level: Union[int, str, None] = None,
        logger: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None,
    ) -> None:
        self._url = url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self._redis = redis
        self._owns_redis = redis is None
        self._fail_fast = fail_fast
        self._reconnect_strategy = reconnect_strategy or CappedLinearWait()
        self._reconnect_max_retries = reconnect_max_retries
        self._socket_timeout = socket_timeout
        self._socket_connect_timeout = socket_connect_timeout
        self._on_error = on_error
        self._on_fatal = on_fatal or (_terminate_process if terminate_on_fatal else None)
        self._logger = logger or get_instance_logger("RedisAuthorityClient", log_level)
        self._lock_script: Any = None
        self._unlock_script: Any = None
        self._fatal: Optional[BaseException] = None
        self._closed = False

    @classmethod
    def from_settings(cls, settings: LockSettings, **kwargs: Any) -> "RedisAuthorityClient":
        redis_settings = settings.redis
        kwargs.setdefault("log_level", settings.log_level)
        kwargs.setdefault(
            "reconnect_strategy",
            CappedLinearWait(redis_settings.reconnect_step_ms, redis_settings.reconnect_cap_ms),
        )
        return cls(
            redis_settings.url,
            fail_fast=settings.fail_fast_on_connection_error,
            terminate_on_fatal=settings.terminate_on_fatal_error,
            reconnect_max_retries=redis_settings.reconnect_max_retries,
            socket_timeout=redis_settings.socket_timeout,
            socket_connect_timeout=redis_settings.socket_connect_timeout,
            **kwargs,
        )

    @property
    def fatal(self) -> bool:
        return self._fatal is not None

    @property
    def connected(self) -> bool:
        return self._redis is not None and self._lock_script is not None and not self._closed

    @property
    def retries_commands(self) -> bool:
        """True when the client built here resends commands after connection errors."""
        return self._owns_redis and not self._fail_fast and self._reconnect_max_retries > 0

    def _build_redis(self) -> Redis:
        options: dict = {
            "decode_responses": True,
            "socket_timeout": self._socket_timeout,
            "socket_connect_timeout": self._socket_connect_timeout,
        }
        # Fail-fast clients do not reconnect behind the caller's back.
        if self.retries_commands:
            options["retry"] = Retry(StrategyBackoff(self._reconnect_strategy), self._reconnect_max_retries)
            options["retry_on_error"] = [RedisConnectionError, RedisTimeoutError]
        return Redis.from_url(self._url, **options)

    async def connect(self) -> None:
        if self.connected:
            return
        if self._redis is None:
            self._redis = self._build_redis()
        self._closed = False
        self._lock_script = self._redis.register_script(LOCK_SCRIPT)
        self._unlock_script = self._redis.register_script(UNLOCK_SCRIPT)
        try:
            await self._call("connect", None, self._redis.ping)
        except LockConnectionError:
            self._lock_script = None
            self._unlock_script = None
            raise
        self._logger.debug("Connected to authority store at %s", self._safe_url())

    async def close(self) -> None:
        if self._redis is None or self._closed:
            return
        self._closed = True
        self._logger.info("Closing authority store connection")
        if self._owns_redis:
            await self._redis.aclose()
            self._redis = None
        self._lock_script = None
        self._unlock_script = None

    async def acquire(self, key: str, owner_token: str, ttl_ms: int) -> bool:
        result = await self._call(
            "acquire", key, lambda: self._lock_script(keys=[key], args=[owner_token, int(ttl_ms)])
        )
        return int(result) == 1

    async def release(self, key: str, owner_token: str) -> bool:
        """Delete ``key`` if ``owner_token`` still holds it.

        When redis-py resends the script after a lost reply, the first run may
        already have deleted the record, so the resend reports a mismatch for
        a lock that was in fact released.
        """
        result = await self._call(
            "release", key, lambda: self._unlock_script(keys=[key], args=[owner_token])
        )
        released = int(result) == 1
        if not released and self.retries_commands:
            self._logger.warning(
                "Release of %s matched no record; it expired, changed owner, "
                "or an earlier send of a retried release already deleted it",
                key,
            )
        return released

    def _check_usable(self, key: Optional[str]) -> None:
        if self._fatal is not None:
            raise LockConnectionError(
                f"Authority store is unavailable after a fatal connection error: {self._fatal}",
                key=key,
                fatal=True,
            )
        if self._closed or self._redis is None:
            raise LockConnectionError("RedisAuthorityClient is closed", key=key)
        if self._lock_script is None:
            raise LockConnectionError("RedisAuthorityClient is not connected; call connect() first", key=key)

    async def _call(self, operation: str, key: Optional[str], func: Callable[[], Awaitable[Any]]) -> Any:
        if operation != "connect":
            self._check_usable(key)
        try:
            result = await func()
        except _CONNECTION_ERRORS as exc:
            self._handle_connection_error(exc)
            raise LockConnectionError(
                f"Authority store connection failed during {operation}: {exc}",
                key=key,
                fatal=self.fatal,
            ) from exc
        except RedisError as exc:
            self._logger.error("Authority store error during %s: %s", operation, exc)
            raise LockConnectionError(f"Authority store error during {operation}: {exc}", key=key) from exc
        # A fatal error raised by a concurrent call also fails this one.
        self._check_usable(key)
        return result

    def _handle_connection_error(self, exc: BaseException) -> None:
        self._logger.error("Authority store connection error: %s", exc)
        if self._on_error is not None:
            try:
                self._on_error(exc)
            except Exception:
                self._logger.exception("Connection error handler raised")
        if not self._fail_fast or self._fatal is not None:
            return
        self._fatal = exc
        self._logger.critical("Fail-fast is enabled; lock operations are disabled for this process")
        if self._on_fatal is not None:
            self._on_fatal()

    def _safe_url(self) -> str:
        # Hide credentials embedded in the URL.
        if "@" not in self._url:
            return self._url
        scheme, _, rest = self._url.partition("://")
        return f"{scheme}://***@{rest.rsplit('@', 1)[-1]}"
