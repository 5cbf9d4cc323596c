from __future__ import annotations

import sys

import pytest

from lockwarden import cli
from lockwarden.core.exceptions import AcquisitionFailure
from lockwarden.core.locks_memory import InMemoryAuthorityClient


def _args(*argv: str):
    return cli.build_parser().parse_args(list(argv))


@pytest.mark.asyncio
async def test_run_passes_through_command_exit_code():
    authority = InMemoryAuthorityClient()
    args = _args("--key", "nightly-report", "--ttl", "5000", "--", sys.executable, "-c", "import sys; sys.exit(3)")

    assert await cli.run(args, client=authority) == 3
    assert authority.owner_of("nightly-report") is None


@pytest.mark.asyncio
async def test_run_fails_when_key_is_held():
    authority = InMemoryAuthorityClient()
    await authority.acquire("nightly-report", "other-process", 60_000)
    args = _args("--key", "nightly-report", "--max-attempts", "1", "--wait", "0", "--", sys.executable, "-c", "pass")

    with pytest.raises(AcquisitionFailure):
        await cli.run(args, client=authority)


def test_cli_overrides_are_validated(monkeypatch):
    monkeypatch.delenv("LOCKWARDEN_BLOCKING", raising=False)
    settings = cli.load_settings(
        _args("--key", "k", "--redis-url", "redis://other:6379/0", "--blocking", "--max-attempts", "7", "--", "true")
    )

    assert settings.redis.url == "redis://other:6379/0"
    assert settings.blocking is True
    assert settings.max_attempts == 7


def test_main_without_command_is_a_configuration_error():
    assert cli.main(["--key", "k"]) == cli.EXIT_CONFIG


def test_main_rejects_invalid_max_attempts():
    assert cli.main(["--key", "k", "--max-attempts", "0", "--", "true"]) == cli.EXIT_CONFIG


def test_main_reports_missing_command_binary(monkeypatch):
    authority = InMemoryAuthorityClient()
    monkeypatch.setattr(cli.RedisAuthorityClient, "from_settings", lambda settings: authority)

    code = cli.main(["--key", "nightly-report", "--", "/nonexistent/lockwarden-job"])

    assert code == cli.EXIT_COMMAND_NOT_FOUND
    assert authority.owner_of("nightly-report") is None
