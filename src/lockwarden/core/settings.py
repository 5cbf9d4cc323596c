"""Lock manager settings loader."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from lockwarden.core.exceptions import ConfigurationError
from lockwarden.utils.env import get_bool_env, get_int_env

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL", "NONE"}


class KeyPrefixMode(str, Enum):
    """How decorated functions build their lock keys."""

    DEFAULT = "default"  # Class:method:params
    CUSTOM = "custom"  # params only


class RedisSettings(BaseModel):
    url: str = "redis://localhost:6379/0"
    socket_timeout: Optional[float] = Field(default=None, gt=0)
    socket_connect_timeout: Optional[float] = Field(default=5.0, gt=0)
    reconnect_max_retries: int = Field(default=10, ge=0)
    reconnect_step_ms: int = Field(default=50, ge=0)
    reconnect_cap_ms: int = Field(default=500, ge=0)


class LockSettings(BaseModel):
    redis: RedisSettings = Field(default_factory=RedisSettings)
    wait_ms: int = Field(default=100, ge=0)
    max_attempts: int = Field(default=3, ge=1)  # ignored when blocking
    blocking: bool = False
    ignore_unlock_failure: bool = False
    fail_fast_on_connection_error: bool = False
    terminate_on_fatal_error: bool = False
    key_prefix_mode: KeyPrefixMode = KeyPrefixMode.DEFAULT
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}")
        return level

    @classmethod
    def from_mapping(cls, data: Optional[Dict[str, Any]]) -> "LockSettings":
        try:
            return cls.model_validate(data or {})
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid lock settings: {exc}") from exc

    @classmethod
    def from_file(cls, path: Path) -> "LockSettings":
        try:
            data = yaml.safe_load(path.read_text())
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"Unable to read lock settings from {path}: {exc}") from exc
        if data is not None and not isinstance(data, dict):
            raise ConfigurationError(f"Lock settings in {path} must be a mapping")
        # Allow the settings to live under a top-level ``lockwarden`` section.
        if data and isinstance(data.get("lockwarden"), dict):
            data = data["lockwarden"]
        return cls.from_mapping(data)

    @classmethod
    def from_env(cls, prefix: str = "LOCKWARDEN_") -> "LockSettings":
        """Build settings from ``LOCKWARDEN_*`` variables and ``REDIS_URL``."""
        defaults = cls()
        try:
            redis = {
                "url": os.getenv(f"{prefix}REDIS_URL") or os.getenv("REDIS_URL", defaults.redis.url),
                "reconnect_max_retries": get_int_env(
                    f"{prefix}RECONNECT_MAX_RETRIES", default=defaults.redis.reconnect_max_retries
                ),
            }
            data: Dict[str, Any] = {
                "redis": redis,
                "wait_ms": get_int_env(f"{prefix}WAIT_MS", default=defaults.wait_ms),
                "max_attempts": get_int_env(f"{prefix}MAX_ATTEMPTS", default=defaults.max_attempts),
                "blocking": get_bool_env(f"{prefix}BLOCKING", default=defaults.blocking),
                "ignore_unlock_failure": get_bool_env(f"{prefix}IGNORE_UNLOCK_FAILURE"),
                "fail_fast_on_connection_error": get_bool_env(f"{prefix}FAIL_FAST"),
                "terminate_on_fatal_error": get_bool_env(f"{prefix}TERMINATE_ON_FATAL"),
                "key_prefix_mode": os.getenv(f"{prefix}KEY_PREFIX_MODE", defaults.key_prefix_mode.value),
                "log_level": os.getenv(f"{prefix}LOG_LEVEL", defaults.log_level),
            }
        except ValueError as exc:
            raise ConfigurationError(f"Invalid lock settings in environment: {exc}") from exc
        return cls.from_mapping(data)
