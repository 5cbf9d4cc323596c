from __future__ import annotations

import random

import pytest

from lockwarden.core.exceptions import ConfigurationError
from lockwarden.core.retry import (
    CallableWait,
    CappedLinearWait,
    FixedWait,
    JitteredWait,
    LinearWait,
    RetryScheduler,
    coerce_wait,
)


def test_default_delay_grows_linearly_with_attempt():
    scheduler = RetryScheduler(max_attempts=5, wait=LinearWait(100))
    assert [scheduler.compute_delay(n) for n in (1, 2, 3, 4)] == [100, 200, 300, 400]


def test_numeric_override_is_a_fixed_delay():
    scheduler = RetryScheduler(wait=LinearWait(100))
    assert scheduler.compute_delay(1, 50) == 50
    assert scheduler.compute_delay(7, 50) == 50


def test_callable_override_receives_attempt_number():
    scheduler = RetryScheduler(wait=LinearWait(100))
    assert scheduler.compute_delay(3, lambda attempt: attempt * 7) == 21


def test_strategy_override_is_used_as_is():
    scheduler = RetryScheduler(wait=LinearWait(100))
    assert scheduler.compute_delay(4, CappedLinearWait(step_ms=50, cap_ms=120)) == 120


def test_bounded_mode_stops_at_max_attempts():
    scheduler = RetryScheduler(max_attempts=3)
    assert [scheduler.should_continue(n) for n in (1, 2, 3, 4)] == [True, True, False, False]


def test_blocking_mode_always_continues():
    scheduler = RetryScheduler(max_attempts=1, blocking=True)
    assert all(scheduler.should_continue(n) for n in (1, 10, 10_000))


def test_invalid_options_are_rejected():
    with pytest.raises(ConfigurationError):
        RetryScheduler(max_attempts=0)
    with pytest.raises(ConfigurationError):
        FixedWait(-1)
    with pytest.raises(ConfigurationError):
        RetryScheduler().compute_delay(0)
    with pytest.raises(ConfigurationError):
        coerce_wait("soon")
    with pytest.raises(ConfigurationError):
        coerce_wait(True)
    with pytest.raises(ConfigurationError):
        CallableWait(lambda attempt: -5).delay_ms(1)


def test_coerce_wait_numeric_factory():
    assert coerce_wait(25) == FixedWait(25)
    assert coerce_wait(25, numeric=LinearWait) == LinearWait(25)
    assert isinstance(coerce_wait(lambda attempt: 1), CallableWait)


def test_capped_linear_wait():
    backoff = CappedLinearWait(step_ms=50, cap_ms=500)
    assert [backoff.delay_ms(n) for n in (1, 2, 10, 11, 50)] == [50, 100, 500, 500, 500]


def test_jittered_wait_stays_within_ratio():
    jittered = JitteredWait(FixedWait(100), ratio=0.2, rng=random.Random(7))
    delays = [jittered.delay_ms(n) for n in range(1, 50)]
    assert all(80 <= delay <= 120 for delay in delays)
    assert len(set(delays)) > 1
