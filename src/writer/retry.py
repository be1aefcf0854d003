"""
Retry Classification and Backoff

Wraps a single store write in a bounded, deterministic exponential backoff.

DEFAULT SCHEDULE (3 attempts total):
    attempt 1 ──fail──▶ wait 2s ──▶ attempt 2 ──fail──▶ wait 4s ──▶ attempt 3
    wait(n) = min(min_wait * factor ** (n - 1), max_wait), no jitter

DECISIONS PER FAILED ATTEMPT:
- PERMANENT failure      → stop now, raise PermanentFailure (caller drops the message)
- RETRYABLE, retries left → log, wait, try again
- RETRYABLE, none left    → raise RetriesExhausted (caller stalls the partition)

A stop event lets a graceful shutdown cut a backoff wait short; the remaining
attempts are abandoned and RetriesExhausted(abandoned=True) is raised, so the
message is left uncommitted and will be redelivered.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, TypeVar, Union

from src.writer.errors import (
    TRANSIENT_CAUSES,
    PermanentStoreError,
    StoreError,
    TransientStoreError,
)

T = TypeVar("T")

_LOGGER = logging.getLogger(__name__)


class Classification(str, Enum):
    RETRYABLE = "retryable"
    PERMANENT = "permanent"


def classify(error: StoreError) -> Classification:
    """Decide whether another attempt could succeed."""
    if isinstance(error, (TransientStoreError, PermanentStoreError)):
        transient = error.transient
    else:
        transient = error.cause in TRANSIENT_CAUSES
    return Classification.RETRYABLE if transient else Classification.PERMANENT


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff settings for one store write."""

    retries: int = 2
    factor: float = 2.0
    min_wait: float = 2.0
    max_wait: float = 5.0

    @property
    def attempts(self) -> int:
        return self.retries + 1

    def wait_before_retry(self, retry_number: int) -> float:
        """Seconds to wait before retry ``retry_number`` (1-based)."""
        return min(self.min_wait * self.factor ** (retry_number - 1), self.max_wait)

    def schedule(self) -> List[float]:
        return [self.wait_before_retry(n) for n in range(1, self.retries + 1)]


class RetryError(Exception):
    """Terminal outcome of a retried operation."""

    def __init__(self, last_error: StoreError, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"{type(self).__name__} after {attempts} attempt(s): {last_error}")


class PermanentFailure(RetryError):
    """A permanent failure stopped the operation; no further retries."""


class RetriesExhausted(RetryError):
    """Every attempt failed with a retryable error (or shutdown cut retries short)."""

    def __init__(self, last_error: StoreError, attempts: int, abandoned: bool = False):
        self.abandoned = abandoned
        super().__init__(last_error, attempts)


class RetryingExecutor:
    """
    Runs an operation under a ``RetryPolicy``.

    Args:
        policy: Backoff schedule (defaults to 3 attempts, 2s/4s waits)
        stop_event: Set on shutdown; interrupts backoff waits
        sleep: Replacement for the wait between attempts (tests inject a recorder)
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        stop_event: Optional[threading.Event] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.policy = policy or RetryPolicy()
        self.stop_event = stop_event or threading.Event()
        self._sleep = sleep

    def execute(
        self,
        operation: Callable[[], T],
        logger: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None,
    ) -> T:
        """
        Call ``operation`` until it succeeds or the policy gives up.

        Only ``StoreError`` is retried or classified; any other exception
        propagates unchanged on the attempt that raised it.

        Raises:
            PermanentFailure: A failure classified PERMANENT
            RetriesExhausted: Retryable failures used up every attempt
        """
        log = logger or _LOGGER
        attempts = self.policy.attempts

        for attempt in range(1, attempts + 1):
            try:
                return operation()
            except StoreError as e:
                classification = classify(e)
                retries_left = attempts - attempt

                log.warning(
                    "Store write failed",
                    extra={
                        "attempt": attempt,
                        "retries_left": retries_left,
                        "cause": e.cause.value,
                        "classification": classification.value,
                        "error": str(e),
                    },
                )

                if classification is Classification.PERMANENT:
                    raise PermanentFailure(e, attempt) from e

                if retries_left == 0:
                    raise RetriesExhausted(e, attempt) from e

                wait = self.policy.wait_before_retry(attempt)
                log.info(
                    f"Retrying store write in {wait}s",
                    extra={"attempt": attempt, "retries_left": retries_left, "wait_seconds": wait},
                )
                if not self._backoff(wait):
                    log.warning(
                        "Shutdown requested during backoff, abandoning retries",
                        extra={"attempt": attempt, "retries_left": retries_left},
                    )
                    raise RetriesExhausted(e, attempt, abandoned=True) from e

        # attempts >= 1, so the loop always returns or raises
        raise AssertionError("unreachable")

    def cool_down(self) -> bool:
        """Wait ``policy.max_wait`` before another round; False when shutdown interrupted it."""
        return self._backoff(self.policy.max_wait)

    def _backoff(self, seconds: float) -> bool:
        """Wait between attempts; False when a shutdown interrupted the wait."""
        if self._sleep is not None:
            self._sleep(seconds)
            return not self.stop_event.is_set()
        return not self.stop_event.wait(seconds)
