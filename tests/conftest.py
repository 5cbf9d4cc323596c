"""Shared fixtures: fakeredis-backed authority clients and quiet loggers."""

from __future__ import annotations

import logging

import fakeredis
import fakeredis.aioredis
import pytest

from lockwarden.core.locks_redis import RedisAuthorityClient


@pytest.fixture
def redis_server():
    return fakeredis.FakeServer()


@pytest.fixture
def make_redis(redis_server):
    """Return a factory of clients sharing one server, like separate processes would."""

    def _factory():
        return fakeredis.aioredis.FakeRedis(server=redis_server, decode_responses=True)

    return _factory


@pytest.fixture
def make_authority(make_redis):
    def _factory(**kwargs) -> RedisAuthorityClient:
        return RedisAuthorityClient(redis=make_redis(), **kwargs)

    return _factory


@pytest.fixture
def test_logger():
    logger = logging.getLogger("lockwarden-tests")
    logger.setLevel(logging.DEBUG)
    return logger
