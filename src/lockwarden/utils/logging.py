"""Logging helpers with consistent formatting."""

from __future__ import annotations

import logging
import sys
from typing import Optional, Union

from rich.logging import RichHandler

ROOT_LOGGER = "lockwarden"
_SILENT = logging.CRITICAL + 10


def resolve_level(level: Union[int, str, None]) -> int:
    """Map ``DEBUG``..``CRITICAL`` or ``NONE`` to a numeric logging level."""
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name == "NONE":
        return _SILENT
    value = logging.getLevelName(name)
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def get_logger(
    name: str,
    level: Union[int, str, None] = None,
    *,
    rich: bool = True,
) -> logging.Logger:
    """Configure and return a logger under the ``lockwarden`` namespace."""
    qualified = name if name.startswith(ROOT_LOGGER) else f"{ROOT_LOGGER}.{name}"
    logger = logging.getLogger(qualified)
    if logger.handlers:
        if level is not None:
            numeric = resolve_level(level)
            logger.setLevel(numeric)
            for handler in logger.handlers:
                handler.setLevel(numeric)
        return logger

    numeric = resolve_level(level)
    logger.setLevel(numeric)

    if rich:
        handler: logging.Handler = RichHandler(
            level=numeric,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            show_time=True,
            show_path=False,
        )
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(numeric)

    formatter = logging.Formatter(
        "%(asctime)s %(name)s %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    logger.propagate = False
    return logger



class InstanceLogger(logging.LoggerAdapter):
    """Shared library logger filtered by a threshold owned by one component.

    Components configured with different ``log_level`` values share the same
    named logger and handler without overwriting each other's level.
    """

    def __init__(self, logger: logging.Logger, level: Union[int, str, None] = None) -> None:
        super().__init__(logger, {})
        self.threshold = resolve_level(level)

    def isEnabledFor(self, level: int) -> bool:
        return level >= self.threshold and self.logger.isEnabledFor(level)


def get_instance_logger(
    name: str,
    level: Union[int, str, None] = None,
    *,
    rich: bool = True,
) -> InstanceLogger:
    """Return a per-instance view of ``name`` that logs at ``level`` and above."""
    qualified = name if name.startswith(ROOT_LOGGER) else f"{ROOT_LOGGER}.{name}"
    shared = logging.getLogger(qualified)
    if not shared.handlers:
        # The shared logger stays permissive; each view applies its own level.
        shared = get_logger(qualified, logging.DEBUG, rich=rich)
    return InstanceLogger(shared, level)
