from __future__ import annotations

"""Condition polling
--------------------
Evaluates a caller-supplied condition until it is truthy or a timeout
elapses. Errors raised by the condition are logged and treated as "not yet"
unless the poller is configured to surface them.

Note that in the default mode a condition that is permanently broken looks
exactly like one that never became true: the caller only sees TIMED_OUT.
Turn on `propagate_faults` when that distinction matters.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from selenium_module.utils.logger import get_logger
from selenium_module.utils.timing import now_ms, sleep_ms

__all__ = [
    "InvalidArgument",
    "PollStatus",
    "PollOutcome",
    "PollConfig",
    "ConditionPoller",
    "wait_until",
    "DEFAULT_TIMEOUT_MS",
    "DEFAULT_INTERVAL_MS",
]

DEFAULT_TIMEOUT_MS = 10_000
DEFAULT_INTERVAL_MS = 500


class InvalidArgument(ValueError):
    """Malformed poll configuration."""


class PollStatus(str, Enum):
    satisfied = "satisfied"
    timed_out = "timed_out"
    faulted = "faulted"


@dataclass(frozen=True)
class PollOutcome:
    status: PollStatus
    attempts: int
    elapsed_ms: int
    cause: Optional[BaseException] = None

    @property
    def satisfied(self) -> bool:
        return self.status is PollStatus.satisfied

    def __bool__(self) -> bool:
        return self.satisfied


@dataclass(frozen=True)
class PollConfig:
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    interval_ms: int = DEFAULT_INTERVAL_MS
    propagate_faults: bool = False

    def __post_init__(self) -> None:
        if self.timeout_ms < 0:
            raise InvalidArgument(f"timeout must be non-negative, got {self.timeout_ms} ms")
        if self.interval_ms <= 0:
            raise InvalidArgument(f"poll interval must be positive, got {self.interval_ms} ms")


class ConditionPoller:
    """
    Blocking poll loop over a condition.

    When `context` is given the condition is called as `condition(context)`,
    otherwise as `condition()`. The poller keeps no state between calls to
    `wait_until`, so one instance may be shared by independent callers.
    """

    def __init__(self, config: Optional[PollConfig] = None, context: Any = None) -> None:
        self.config = config or PollConfig()
        self.context = context
        self.log = get_logger(__name__)

    def _evaluate(self, condition: Callable[..., Any]) -> Any:
        if self.context is None:
            return condition()
        return condition(self.context)

    def wait_until(self, condition: Callable[..., Any], timeout_ms: Optional[int] = None) -> PollOutcome:
        timeout = self.config.timeout_ms if timeout_ms is None else timeout_ms
        if timeout < 0:
            raise InvalidArgument(f"timeout must be non-negative, got {timeout} ms")
        interval = self.config.interval_ms

        start = now_ms()
        attempts = 0
        while True:
            attempts += 1
            try:
                result = self._evaluate(condition)
            except Exception as exc:
                if self.config.propagate_faults:
                    self.log.debug(f"Condition raised on attempt {attempts}, stopping: {exc!r}")
                    return PollOutcome(PollStatus.faulted, attempts, now_ms() - start, cause=exc)
                self.log.error(f"Condition raised on attempt {attempts}: {exc}", exc_info=True)
                result = False

            if result:
                return PollOutcome(PollStatus.satisfied, attempts, now_ms() - start)

            elapsed = now_ms() - start
            if elapsed >= timeout:
                self.log.debug(f"Condition not satisfied after {attempts} attempt(s) in {elapsed} ms")
                return PollOutcome(PollStatus.timed_out, attempts, elapsed)
            sleep_ms(min(interval, timeout - elapsed))


def wait_until(
    condition: Callable[..., Any],
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    *,
    interval_ms: int = DEFAULT_INTERVAL_MS,
    propagate_faults: bool = False,
    context: Any = None,
) -> PollOutcome:
    """One-shot convenience around ConditionPoller."""
    config = PollConfig(timeout_ms=timeout_ms, interval_ms=interval_ms, propagate_faults=propagate_faults)
    return ConditionPoller(config, context=context).wait_until(condition)
