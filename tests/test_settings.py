from __future__ import annotations

import logging

import pytest

from lockwarden.core.exceptions import ConfigurationError
from lockwarden.core.settings import KeyPrefixMode, LockSettings
from lockwarden.utils.logging import get_instance_logger, get_logger, resolve_level


def test_defaults():
    settings = LockSettings()
    assert settings.redis.url == "redis://localhost:6379/0"
    assert settings.wait_ms == 100
    assert settings.max_attempts == 3
    assert settings.blocking is False
    assert settings.key_prefix_mode is KeyPrefixMode.DEFAULT


def test_from_file_reads_nested_section(tmp_path):
    path = tmp_path / "locks.yml"
    path.write_text(
        "lockwarden:\n"
        "  redis:\n"
        "    url: redis://cache:6379/1\n"
        "  wait_ms: 50\n"
        "  max_attempts: 1\n"
        "  ignore_unlock_failure: true\n"
        "  key_prefix_mode: custom\n"
        "  log_level: debug\n"
    )

    settings = LockSettings.from_file(path)

    assert settings.redis.url == "redis://cache:6379/1"
    assert settings.wait_ms == 50
    assert settings.max_attempts == 1
    assert settings.ignore_unlock_failure is True
    assert settings.key_prefix_mode is KeyPrefixMode.CUSTOM
    assert settings.log_level == "DEBUG"


def test_invalid_values_raise_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError):
        LockSettings.from_mapping({"max_attempts": 0})
    with pytest.raises(ConfigurationError):
        LockSettings.from_mapping({"log_level": "chatty"})

    path = tmp_path / "bad.yml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigurationError):
        LockSettings.from_file(path)

    with pytest.raises(ConfigurationError):
        LockSettings.from_file(tmp_path / "missing.yml")


def test_from_env(monkeypatch):
    monkeypatch.setenv("REDIS_URL", "redis://env-host:6379/3")
    monkeypatch.setenv("LOCKWARDEN_BLOCKING", "yes")
    monkeypatch.setenv("LOCKWARDEN_WAIT_MS", "25")
    monkeypatch.setenv("LOCKWARDEN_FAIL_FAST", "0")
    monkeypatch.setenv("LOCKWARDEN_KEY_PREFIX_MODE", "custom")

    settings = LockSettings.from_env()

    assert settings.redis.url == "redis://env-host:6379/3"
    assert settings.blocking is True
    assert settings.wait_ms == 25
    assert settings.fail_fast_on_connection_error is False
    assert settings.key_prefix_mode is KeyPrefixMode.CUSTOM


def test_from_env_rejects_bad_integers(monkeypatch):
    monkeypatch.setenv("LOCKWARDEN_MAX_ATTEMPTS", "several")
    with pytest.raises(ConfigurationError, match="LOCKWARDEN_MAX_ATTEMPTS"):
        LockSettings.from_env()


def test_resolve_level():
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level("NONE") > logging.CRITICAL
    assert resolve_level(None) == logging.INFO
    with pytest.raises(ValueError):
        resolve_level("loud")


def test_get_logger_namespaces_and_updates_level():
    logger = get_logger("SettingsTest", "ERROR", rich=False)
    assert logger.name == "lockwarden.SettingsTest"
    assert logger.level == logging.ERROR

    again = get_logger("SettingsTest", "DEBUG")
    assert again is logger
    assert len(logger.handlers) == 1
    assert logger.handlers[0].level == logging.DEBUG


def test_instance_loggers_share_handler_but_not_level():
    quiet = get_instance_logger("InstanceTest", "ERROR", rich=False)
    loud = get_instance_logger("InstanceTest", "DEBUG")

    assert quiet.logger is loud.logger
    assert len(loud.logger.handlers) == 1
    assert not quiet.isEnabledFor(logging.WARNING)
    assert quiet.isEnabledFor(logging.ERROR)
    assert loud.isEnabledFor(logging.DEBUG)
