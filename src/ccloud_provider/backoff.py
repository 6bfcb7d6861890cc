"""Backoff policy and deadline-bounded retry loop.

Two conditions are retried inside this provider: a rate-limited login and a
connector create that fails because the remote side is still provisioning.
Both use retry_with_deadline() with a RetryPolicy; everything else is terminal.

Waits are real blocking waits. They are performed on a threading.Event so a
caller-supplied cancellation signal interrupts a sleep immediately.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Login backoff: seed 2s, doubling, jitter in [0, 1000ms), 30 minute deadline
LOGIN_TIMEOUT_SECONDS = 30 * 60
LOGIN_INITIAL_DELAY_SECONDS = 2.0
LOGIN_MAX_JITTER_SECONDS = 1.0

# Provisioning retry: cadence of the host SDK retry helper, 20 minute deadline
PROVISIONING_TIMEOUT_SECONDS = 20 * 60
PROVISIONING_INITIAL_DELAY_SECONDS = 0.5
PROVISIONING_MAX_DELAY_SECONDS = 10.0


class RetryTimeoutError(Exception):
    """Raised when a retry loop runs out of time.

    Attributes:
        last_error: The error returned by the final attempt.
        attempts: Number of attempts made.
    """

    def __init__(self, message: str, last_error: BaseException | None, attempts: int) -> None:
        super().__init__(message)
        self.last_error = last_error
        self.attempts = attempts


class RetryCancelledError(RetryTimeoutError):
    """Raised when the cancellation signal fires during a retry loop."""


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with optional cap and additive jitter.

    Attributes:
        timeout_seconds: Overall deadline measured from the first attempt.
        initial_delay_seconds: Wait after the first failed attempt.
        multiplier: Growth factor applied per attempt.
        max_delay_seconds: Upper bound on the exponential part (None = unbounded).
        max_jitter_seconds: Jitter is drawn uniformly from [0, max_jitter_seconds).
    """

    timeout_seconds: float
    initial_delay_seconds: float
    multiplier: float = 2.0
    max_delay_seconds: float | None = None
    max_jitter_seconds: float = 0.0

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.initial_delay_seconds < 0:
            raise ValueError("initial_delay_seconds cannot be negative")
        if self.multiplier < 1:
            raise ValueError("multiplier must be at least 1")
        if self.max_jitter_seconds < 0:
            raise ValueError("max_jitter_seconds cannot be negative")

    def base_delay(self, attempt: int) -> float:
        """Delay before jitter for the given 1-based failed attempt."""
        if attempt < 1:
            raise ValueError("attempt is 1-based")
        delay = self.initial_delay_seconds * (self.multiplier ** (attempt - 1))
        if self.max_delay_seconds is not None:
            delay = min(delay, self.max_delay_seconds)
        return delay

    def delay_for(self, attempt: int, rng: random.Random | None = None) -> float:
        """Wait duration after the given failed attempt, jitter included."""
        delay = self.base_delay(attempt)
        if self.max_jitter_seconds > 0:
            source = rng or random
            # random() is in [0, 1), which keeps the jitter strictly below the bound
            delay += source.random() * self.max_jitter_seconds
        return delay

    def with_timeout(self, timeout_seconds: float) -> RetryPolicy:
        """Copy of this policy with a different deadline."""
        return RetryPolicy(
            timeout_seconds=timeout_seconds,
            initial_delay_seconds=self.initial_delay_seconds,
            multiplier=self.multiplier,
            max_delay_seconds=self.max_delay_seconds,
            max_jitter_seconds=self.max_jitter_seconds,
        )


LOGIN_RETRY_POLICY = RetryPolicy(
    timeout_seconds=LOGIN_TIMEOUT_SECONDS,
    initial_delay_seconds=LOGIN_INITIAL_DELAY_SECONDS,
    max_jitter_seconds=LOGIN_MAX_JITTER_SECONDS,
)

PROVISIONING_RETRY_POLICY = RetryPolicy(
    timeout_seconds=PROVISIONING_TIMEOUT_SECONDS,
    initial_delay_seconds=PROVISIONING_INITIAL_DELAY_SECONDS,
    max_delay_seconds=PROVISIONING_MAX_DELAY_SECONDS,
)


def _event_sleep(cancel: threading.Event) -> Callable[[float], bool]:
    """Sleep that returns True if interrupted by the cancellation event."""

    def sleep(seconds: float) -> bool:
        return cancel.wait(seconds)

    return sleep


def retry_with_deadline(
    operation: Callable[[], T],
    policy: RetryPolicy,
    *,
    is_retryable: Callable[[BaseException], bool],
    description: str = "operation",
    prior_error: BaseException | None = None,
    cancel: threading.Event | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], bool] | None = None,
    rng: random.Random | None = None,
    on_retry: Callable[[int, float, BaseException], None] | None = None,
) -> T:
    """Run an operation until it succeeds, fails terminally, or time runs out.

    Args:
        operation: Zero-argument callable performing one attempt.
        policy: Backoff and deadline settings.
        is_retryable: Classifier deciding whether an error is transient.
        description: Human-readable name used in errors and logs.
        prior_error: Retryable error from an attempt the caller already made.
            When given, it counts as attempt 1 and the loop waits before its
            first call.
        cancel: Optional cancellation signal; checked before each attempt and
            interrupts waits.
        clock: Monotonic clock, injectable for tests.
        sleep: Callable taking seconds and returning True if interrupted.
            Defaults to waiting on the cancellation event.
        rng: Jitter source. A fresh Random is created per call when omitted.
        on_retry: Hook called with (attempt, wait_seconds, error) before each wait.

    Returns:
        The operation's result.

    Raises:
        RetryTimeoutError: Deadline elapsed; carries the last error.
        RetryCancelledError: Cancellation fired; carries the last error.
        Exception: Any non-retryable error from the operation, unchanged.
    """
    cancel = cancel or threading.Event()
    sleep = sleep or _event_sleep(cancel)
    rng = rng or random.Random()

    deadline = clock() + policy.timeout_seconds
    attempt = 0
    last_error: BaseException | None = None
    if prior_error is not None:
        attempt, last_error = 1, prior_error

    while True:
        if last_error is not None:
            _wait_before_retry(
                policy, attempt, last_error, deadline, description,
                cancel=cancel, clock=clock, sleep=sleep, rng=rng, on_retry=on_retry,
            )

        if cancel.is_set():
            raise RetryCancelledError(
                f"{description} cancelled after {attempt} attempt(s)", last_error, attempt
            )

        attempt += 1
        try:
            return operation()
        except Exception as e:
            if not is_retryable(e):
                raise
            last_error = e


def _wait_before_retry(
    policy: RetryPolicy,
    attempt: int,
    last_error: BaseException,
    deadline: float,
    description: str,
    *,
    cancel: threading.Event,
    clock: Callable[[], float],
    sleep: Callable[[float], bool],
    rng: random.Random,
    on_retry: Callable[[int, float, BaseException], None] | None,
) -> None:
    """Sleep out the backoff for a failed attempt, bounded by the deadline."""
    remaining = deadline - clock()
    if remaining <= 0:
        raise RetryTimeoutError(
            f"{description} timed out after {attempt} attempt(s) "
            f"({policy.timeout_seconds:.0f}s): {last_error}",
            last_error,
            attempt,
        )

    wait_seconds = policy.delay_for(attempt, rng)
    if on_retry is not None:
        on_retry(attempt, wait_seconds, last_error)
    else:
        logger.debug(
            f"{description} failed with a retryable error, retrying",
            extra={"attempt": attempt, "wait_seconds": wait_seconds, "error": str(last_error)},
        )

    interrupted = sleep(min(wait_seconds, remaining))
    if interrupted or cancel.is_set():
        raise RetryCancelledError(
            f"{description} cancelled after {attempt} attempt(s): {last_error}",
            last_error,
            attempt,
        )
    if clock() >= deadline:
        raise RetryTimeoutError(
            f"{description} timed out after {attempt} attempt(s) "
            f"({policy.timeout_seconds:.0f}s): {last_error}",
            last_error,
            attempt,
        )
