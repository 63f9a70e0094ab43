import logging

import pytest

from selenium_module.core import poller
from selenium_module.core.poller import (
    ConditionPoller,
    InvalidArgument,
    PollConfig,
    PollStatus,
    wait_until,
)


class FakeClock:
    def __init__(self):
        self.t = 0
        self.sleeps: list[int] = []

    def now_ms(self) -> int:
        return self.t

    def sleep_ms(self, ms: int) -> None:
        self.sleeps.append(ms)
        self.t += ms


@pytest.fixture
def clock(monkeypatch):
    c = FakeClock()
    monkeypatch.setattr(poller, "now_ms", c.now_ms)
    monkeypatch.setattr(poller, "sleep_ms", c.sleep_ms)
    return c


def test_truthy_first_evaluation_returns_without_sleeping(clock):
    outcome = wait_until(lambda: "ready", timeout_ms=5000, interval_ms=100)
    assert outcome.status is PollStatus.satisfied
    assert outcome.attempts == 1
    assert clock.sleeps == []
    assert bool(outcome)


def test_never_truthy_times_out_at_deadline(clock):
    calls = []
    outcome = wait_until(lambda: calls.append(1), timeout_ms=300, interval_ms=100)
    assert outcome.status is PollStatus.timed_out
    assert len(calls) == 4
    assert 300 <= outcome.elapsed_ms < 400
    assert clock.sleeps == [100, 100, 100]
    assert not outcome


def test_last_sleep_is_clipped_to_remaining_time(clock):
    outcome = wait_until(lambda: False, timeout_ms=250, interval_ms=100)
    assert outcome.status is PollStatus.timed_out
    assert clock.sleeps == [100, 100, 50]


def test_zero_timeout_evaluates_once(clock):
    calls = []
    outcome = wait_until(lambda: calls.append(1), timeout_ms=0, interval_ms=100)
    assert outcome.status is PollStatus.timed_out
    assert len(calls) == 1
    assert clock.sleeps == []


def test_faulting_condition_is_absorbed_until_timeout(clock, caplog):
    def broken():
        raise RuntimeError("stale element")

    with caplog.at_level(logging.ERROR, logger="selenium_module.core.poller"):
        outcome = wait_until(broken, timeout_ms=300, interval_ms=100)

    assert outcome.status is PollStatus.timed_out
    assert outcome.cause is None
    assert outcome.elapsed_ms >= 300
    assert any("stale element" in r.getMessage() for r in caplog.records)


def test_faults_then_truthy_is_satisfied(clock):
    results = iter([RuntimeError("a"), RuntimeError("b"), True])

    def flaky():
        r = next(results)
        if isinstance(r, Exception):
            raise r
        return r

    outcome = wait_until(flaky, timeout_ms=1000, interval_ms=100)
    assert outcome.status is PollStatus.satisfied
    assert outcome.attempts == 3
    assert clock.sleeps == [100, 100]


def test_strict_mode_reports_fault_immediately(clock):
    err = ValueError("bad selector")

    def broken():
        raise err

    outcome = wait_until(broken, timeout_ms=1000, interval_ms=100, propagate_faults=True)
    assert outcome.status is PollStatus.faulted
    assert outcome.cause is err
    assert outcome.attempts == 1
    assert clock.sleeps == []


def test_negative_timeout_fails_without_evaluating(clock):
    calls = []
    p = ConditionPoller(PollConfig(timeout_ms=1000, interval_ms=100))
    with pytest.raises(InvalidArgument):
        p.wait_until(lambda: calls.append(1), timeout_ms=-1)
    assert calls == []


@pytest.mark.parametrize("kwargs", [{"timeout_ms": -5}, {"interval_ms": 0}, {"interval_ms": -10}])
def test_invalid_config_rejected(kwargs):
    with pytest.raises(InvalidArgument):
        PollConfig(**kwargs)


def test_invalid_argument_is_a_value_error():
    assert issubclass(InvalidArgument, ValueError)


def test_condition_receives_context(clock):
    seen = []
    ctx = object()
    p = ConditionPoller(PollConfig(timeout_ms=100, interval_ms=10), context=ctx)
    outcome = p.wait_until(lambda c: seen.append(c) or True)
    assert outcome.satisfied
    assert seen == [ctx]


def test_keyboard_interrupt_is_not_absorbed(clock):
    def interrupted():
        raise KeyboardInterrupt

    with pytest.raises(KeyboardInterrupt):
        wait_until(interrupted, timeout_ms=1000, interval_ms=100)


def test_counter_condition_with_real_clock():
    counter = {"n": 0}

    def reached_three():
        counter["n"] += 1
        return counter["n"] - 1 >= 3

    outcome = wait_until(reached_three, timeout_ms=5000, interval_ms=100)
    assert outcome.status is PollStatus.satisfied
    assert outcome.attempts == 4
    assert outcome.elapsed_ms < 2000


def test_false_condition_with_real_clock():
    outcome = wait_until(lambda: False, timeout_ms=300, interval_ms=100)
    assert outcome.status is PollStatus.timed_out
    assert 3 <= outcome.attempts <= 4
    assert outcome.elapsed_ms >= 300
