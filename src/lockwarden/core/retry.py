"""Retry and backoff policy for lock acquisition and reconnection."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, Union, runtime_checkable

from .exceptions import ConfigurationError


@runtime_checkable
class WaitStrategy(Protocol):
    """Maps a 1-based attempt number to a delay in milliseconds."""

    def delay_ms(self, attempt: int) -> float:
        ...


WaitLike = Union[int, float, Callable[[int], float], WaitStrategy]


def _check_non_negative(value: float, what: str) -> float:
    if value < 0:
        raise ConfigurationError(f"{what} must be >= 0, got {value}")
    return value


@dataclass(frozen=True, slots=True)
class FixedWait:
    """Same delay before every retry."""

    ms: float

    def __post_init__(self) -> None:
        _check_non_negative(self.ms, "Fixed wait")

    def delay_ms(self, attempt: int) -> float:
        return self.ms


@dataclass(frozen=True, slots=True)
class LinearWait:
    """``base_ms * attempt``; the default acquisition backoff."""

    base_ms: float

    def __post_init__(self) -> None:
        _check_non_negative(self.base_ms, "Base wait")

    def delay_ms(self, attempt: int) -> float:
        return self.base_ms * attempt


@dataclass(frozen=True, slots=True)
class CappedLinearWait:
    """``min(attempt * step_ms, cap_ms)``; the default reconnection backoff."""

    step_ms: float = 50
    cap_ms: float = 500

    def __post_init__(self) -> None:
        _check_non_negative(self.step_ms, "Reconnect step")
        _check_non_negative(self.cap_ms, "Reconnect cap")

    def delay_ms(self, attempt: int) -> float:
        return min(attempt * self.step_ms, self.cap_ms)


@dataclass(frozen=True, slots=True)
class CallableWait:
    """Adapts a plain ``attempt -> ms`` function to ``WaitStrategy``."""

    func: Callable[[int], float]

    def delay_ms(self, attempt: int) -> float:
        return _check_non_negative(float(self.func(attempt)), "Computed wait")


@dataclass(frozen=True, slots=True)
class JitteredWait:
    """Randomises another strategy by up to ``ratio`` in either direction."""

    inner: WaitStrategy
    ratio: float = 0.2
    rng: random.Random = field(default_factory=random.Random, compare=False)

    def __post_init__(self) -> None:
        if not 0 <= self.ratio <= 1:
            raise ConfigurationError(f"Jitter ratio must be within [0, 1], got {self.ratio}")

    def delay_ms(self, attempt: int) -> float:
        base = self.inner.delay_ms(attempt)
        spread = base * self.ratio
        return max(0.0, base + self.rng.uniform(-spread, spread))


def coerce_wait(value: WaitLike, *, numeric: Callable[[float], WaitStrategy] = FixedWait) -> WaitStrategy:
    """Turn a number, callable or strategy into a ``WaitStrategy``.

    Numbers are wrapped with ``numeric``: per-call overrides treat them as a
    fixed delay, manager defaults treat them as the linear base wait.
    """
    if isinstance(value, bool):
        raise ConfigurationError("Wait must be a number, a callable or a WaitStrategy")
    if isinstance(value, (int, float)):
        return numeric(value)
    if isinstance(value, WaitStrategy):
        return value
    if callable(value):
        return CallableWait(value)
    raise ConfigurationError(f"Unsupported wait value: {value!r}")


@dataclass(slots=True)
class RetryScheduler:
    """Decides whether another acquire attempt is allowed and how long to wait."""

    max_attempts: int = 3
    blocking: bool = False
    wait: WaitStrategy = field(default_factory=lambda: LinearWait(100))

    def __post_init__(self) -> None:
        if not self.blocking and self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be >= 1, got {self.max_attempts}")

    def compute_delay(self, attempt: int, override: Optional[WaitLike] = None) -> float:
        if attempt < 1:
            raise ConfigurationError(f"Attempt numbers start at 1, got {attempt}")
        strategy = self.wait if override is None else coerce_wait(override)
        return strategy.delay_ms(attempt)

    def should_continue(self, attempts_made: int) -> bool:
        if self.blocking:
            return True
        return attempts_made < self.max_attempts
