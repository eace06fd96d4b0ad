"""Bounded retry with jittered exponential backoff.

The retry loop is driven by tenacity. RetryPolicy decides the wait
durations and when the budget is spent; RetryExecutor turns every terminal
state into an Outcome instead of raising, and reports each step to a
RetryObserver.
"""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

import requests
from tenacity import RetryCallState, Retrying, retry_if_exception

from fleetbench.domain.config.retry import RetryPolicyConfig
from fleetbench.domain.models.outcome import (
    CancelledNoAttempt,
    Exhausted,
    Failure,
    Outcome,
    Success,
)

logger = logging.getLogger(__name__)


def _should_retry_http_error(exception: requests.exceptions.HTTPError) -> bool:
    """Check if HTTPError should be retried."""
    status_code = exception.response.status_code if exception.response is not None else None
    # Don't retry on auth errors or most 4xx (except 429)
    if status_code in (401, 403):
        return False
    if status_code and 400 <= status_code < 500 and status_code != 429:
        return False
    # Retry on 429 and 5xx
    return True


class PermanentError(Exception):
    """Raised by an operation to stop retrying immediately.

    The executor reports ``cause`` (not the wrapper) in the Failure outcome.
    """

    def __init__(self, cause: BaseException):
        super().__init__(str(cause))
        self.cause = cause


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable backoff parameters (durations in seconds).

    ``max_elapsed_time`` of None or 0 means retry until cancelled.
    """

    initial_interval: float = 0.5
    multiplier: float = 2.0
    randomization_factor: float = 0.5
    max_interval: float = 5.0
    max_elapsed_time: Optional[float] = 15.0

    def __post_init__(self):
        """Validate policy bounds"""
        if self.initial_interval <= 0:
            raise ValueError("initial_interval must be > 0")
        if self.multiplier <= 1:
            raise ValueError("multiplier must be > 1")
        if not 0 <= self.randomization_factor < 1:
            raise ValueError("randomization_factor must be in [0, 1)")
        if self.max_interval < self.initial_interval:
            raise ValueError("max_interval must be >= initial_interval")
        if self.max_elapsed_time and self.max_elapsed_time < self.initial_interval:
            raise ValueError("max_elapsed_time must be >= initial_interval")

    @classmethod
    def from_config(cls, config: RetryPolicyConfig) -> "RetryPolicy":
        return cls(
            initial_interval=config.initial_interval,
            multiplier=config.multiplier,
            randomization_factor=config.randomization_factor,
            max_interval=config.max_interval,
            max_elapsed_time=config.max_elapsed_time,
        )

    @property
    def is_bounded(self) -> bool:
        return bool(self.max_elapsed_time)

    def increment(self, current: float) -> float:
        """Grow an un-jittered interval, capped at max_interval"""
        return min(current * self.multiplier, self.max_interval)

    def randomize(self, interval: float, rng: Optional[random.Random] = None) -> float:
        """Sample uniformly from interval * (1 +/- randomization_factor)"""
        if self.randomization_factor == 0:
            return interval
        delta = self.randomization_factor * interval
        return (rng or random).uniform(interval - delta, interval + delta)

    def next_interval(self, current: float, rng: Optional[random.Random] = None) -> float:
        return self.randomize(self.increment(current), rng)

    def is_exhausted(self, elapsed: float) -> bool:
        return self.is_bounded and elapsed > self.max_elapsed_time


@dataclass
class RetryState:
    """Bookkeeping for a single run() call"""

    attempt: int = 0
    elapsed: float = 0.0
    current_interval: float = 0.0
    last_error: Optional[BaseException] = None
    cancelled: bool = False


class RetryObserver:
    """Receives retry events. Subclass and override what you need."""

    def attempt_failed(self, attempt: int, error: BaseException, elapsed: float) -> None:
        pass

    def retry_scheduled(self, attempt: int, interval: float, elapsed: float) -> None:
        pass

    def finished(self, outcome: Outcome) -> None:
        pass


class LoggingRetryObserver(RetryObserver):
    """Writes retry events to a logger"""

    def __init__(self, name: str = "operation", log: Optional[logging.Logger] = None):
        self.name = name
        self.log = log or logger

    def attempt_failed(self, attempt: int, error: BaseException, elapsed: float) -> None:
        self.log.warning(
            f"{self.name} failed (attempt {attempt}, elapsed {elapsed:.3f}s): {error}"
        )

    def retry_scheduled(self, attempt: int, interval: float, elapsed: float) -> None:
        self.log.debug(f"{self.name}: retrying in {interval:.3f}s after attempt {attempt}")

    def finished(self, outcome: Outcome) -> None:
        kind = type(outcome).__name__
        if outcome.is_success:
            self.log.debug(
                f"{self.name} succeeded after {outcome.attempts} attempt(s), "
                f"elapsed {outcome.elapsed:.3f}s"
            )
        elif isinstance(outcome, CancelledNoAttempt):
            self.log.warning(f"{self.name} cancelled before the first attempt")
        else:
            self.log.warning(
                f"{self.name} gave up ({kind}) after {outcome.attempts} attempt(s), "
                f"elapsed {outcome.elapsed:.3f}s: {outcome.error}"
            )


def wait_on_event(seconds: float, cancel: threading.Event) -> bool:
    """Interruptible sleep. Returns True if ``cancel`` fired during the wait."""
    return cancel.wait(seconds)


class _WaitInterrupted(Exception):
    pass


def _is_retryable(exception: BaseException) -> bool:
    return isinstance(exception, Exception) and not isinstance(exception, PermanentError)


class RetryExecutor:
    """Runs a zero-argument operation until success, exhaustion or cancellation.

    An executor holds no per-call state, so one instance (and one policy)
    can serve concurrent run() calls from different threads.
    """

    def __init__(
        self,
        observer: Optional[RetryObserver] = None,
        sleep: Callable[[float, threading.Event], bool] = wait_on_event,
        rng: Optional[random.Random] = None,
    ):
        """Initialize executor

        Args:
            observer: Event sink (defaults to LoggingRetryObserver)
            sleep: Interruptible sleep returning True when cancelled
            rng: Random source for jitter (defaults to the random module)
        """
        self.observer = observer or LoggingRetryObserver()
        self.sleep = sleep
        self.rng = rng

    def run(
        self,
        operation: Callable[[], Any],
        policy: RetryPolicy,
        cancel: Optional[threading.Event] = None,
    ) -> Outcome:
        """Invoke ``operation`` under ``policy``.

        Expected failures never raise; inspect the returned Outcome. An
        exception that is not an ``Exception`` subclass (KeyboardInterrupt,
        SystemExit) is not retried and propagates.
        """
        if cancel is None:
            cancel = threading.Event()

        if cancel.is_set():
            outcome: Outcome = CancelledNoAttempt()
            self.observer.finished(outcome)
            return outcome

        state = RetryState(current_interval=policy.initial_interval)

        def attempt() -> Success:
            state.attempt += 1
            try:
                value = operation()
            except Exception as exc:
                state.last_error = exc.cause if isinstance(exc, PermanentError) else exc
                self.observer.attempt_failed(state.attempt, state.last_error, state.elapsed)
                raise
            return Success(value, attempts=state.attempt, elapsed=state.elapsed)

        def stop(retry_state: RetryCallState) -> bool:
            if cancel.is_set():
                state.cancelled = True
                return True
            return policy.is_exhausted(state.elapsed)

        def wait(retry_state: RetryCallState) -> float:
            interval = policy.randomize(state.current_interval, self.rng)
            state.current_interval = policy.increment(state.current_interval)
            return interval

        def before_sleep(retry_state: RetryCallState) -> None:
            self.observer.retry_scheduled(
                state.attempt, retry_state.next_action.sleep, state.elapsed
            )

        def sleep(seconds: float) -> None:
            if self.sleep(seconds, cancel):
                state.cancelled = True
                raise _WaitInterrupted()
            state.elapsed += seconds

        def give_up(retry_state: RetryCallState) -> Outcome:
            if state.cancelled:
                return Failure(state.last_error, state.attempt, state.elapsed, cancelled=True)
            return Exhausted(state.last_error, state.attempt, state.elapsed)

        retrying = Retrying(
            stop=stop,
            wait=wait,
            sleep=sleep,
            retry=retry_if_exception(_is_retryable),
            before_sleep=before_sleep,
            retry_error_callback=give_up,
        )

        try:
            outcome = retrying(attempt)
        except _WaitInterrupted:
            outcome = Failure(state.last_error, state.attempt, state.elapsed, cancelled=True)
        except PermanentError as exc:
            outcome = Failure(exc.cause, state.attempt, state.elapsed)

        self.observer.finished(outcome)
        return outcome


def run(
    operation: Callable[[], Any],
    policy: RetryPolicy,
    cancel: Optional[threading.Event] = None,
    observer: Optional[RetryObserver] = None,
) -> Outcome:
    """Shortcut for RetryExecutor(observer).run(operation, policy, cancel)"""
    return RetryExecutor(observer=observer).run(operation, policy, cancel)
