"""CLI entrypoint: run a command while holding a distributed lock."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from lockwarden.core.exceptions import AcquisitionFailure, ConfigurationError, LockConnectionError, ReleaseFailure
from lockwarden.core.locks import AuthorityClient
from lockwarden.core.locks_redis import RedisAuthorityClient
from lockwarden.core.manager import LockManager
from lockwarden.core.settings import LockSettings
from lockwarden.utils.logging import get_logger


logger = get_logger("cli")

EXIT_UNAVAILABLE = 69
EXIT_TEMPFAIL = 75
EXIT_CONFIG = 78
EXIT_COMMAND_NOT_FOUND = 127


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lockwarden",
        description="Run a command while holding an exclusive lock in Redis.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to lock settings YAML")
    parser.add_argument("--key", required=True, help="Lock key to hold while the command runs")
    parser.add_argument("--ttl", type=int, default=30000, help="Lock time-to-live in milliseconds")
    parser.add_argument("--redis-url", default=None, help="Override the Redis URL")
    parser.add_argument("--wait", type=int, default=None, help="Fixed delay between attempts in milliseconds")
    parser.add_argument("--max-attempts", type=int, default=None, help="Attempts before giving up")
    parser.add_argument("--blocking", action="store_true", help="Retry until the lock is obtained")
    parser.add_argument(
        "--ignore-unlock-failure",
        action="store_true",
        help="Log instead of failing when the lock cannot be released",
    )
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Command to run (after --)")
    return parser


def load_settings(args: argparse.Namespace) -> LockSettings:
    settings = LockSettings.from_file(args.config) if args.config else LockSettings.from_env()
    data = settings.model_dump()
    if args.redis_url:
        data["redis"]["url"] = args.redis_url
    if args.max_attempts is not None:
        data["max_attempts"] = args.max_attempts
    if args.blocking:
        data["blocking"] = True
    if args.ignore_unlock_failure:
        data["ignore_unlock_failure"] = True
    # Re-validate so CLI overrides get the same checks as file values.
    return LockSettings.from_mapping(data)


async def run_command(command: List[str]) -> int:
    process = await asyncio.create_subprocess_exec(*command)
    return await process.wait()


async def run(args: argparse.Namespace, client: Optional[AuthorityClient] = None) -> int:
    command = list(args.command)
    if command[:1] == ["--"]:
        command = command[1:]
    if not command:
        raise ConfigurationError("No command given; pass it after --")
    settings = load_settings(args)
    authority = client or RedisAuthorityClient.from_settings(settings)
    async with LockManager(authority, settings) as manager:
        return await manager.run_with_lock(args.key, args.ttl, lambda: run_command(command), wait=args.wait)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run(args))
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG
    except AcquisitionFailure as exc:
        logger.error("%s", exc)
        return EXIT_TEMPFAIL
    except LockConnectionError as exc:
        logger.error("%s", exc)
        return EXIT_UNAVAILABLE
    except ReleaseFailure as exc:
        logger.warning("%s", exc)
        return EXIT_TEMPFAIL
    except OSError as exc:
        # The command could not be started.
        logger.error("Cannot run command: %s", exc)
        return EXIT_COMMAND_NOT_FOUND


if __name__ == "__main__":
    sys.exit(main())
