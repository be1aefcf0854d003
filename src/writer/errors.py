"""
Store Error Taxonomy

The store gateway never lets a driver exception escape. Every failure is
translated, at the gateway boundary, into one of two closed variants:

- TransientStoreError(cause): retrying may succeed
- PermanentStoreError(cause): retrying cannot succeed

``cause`` is a ``StoreErrorCause`` so callers (the retry executor, the
ingestion loop, log queries) work with stable names instead of driver-specific
codes or message text.
"""

from enum import Enum
from typing import Optional


class StoreErrorCause(str, Enum):
    """Machine-readable reason a store call failed."""

    # Transient
    CONNECTION_LOST = "connection_lost"
    CONNECTION_REFUSED = "connection_refused"
    TIMEOUT = "timeout"
    BROKEN_PIPE = "broken_pipe"
    CONNECTION_RESET = "connection_reset"
    ENQUEUE_AFTER_FATAL_DISCONNECT = "enqueue_after_fatal_disconnect"
    LOCK_WAIT_TIMEOUT = "lock_wait_timeout"
    DEADLOCK = "deadlock"

    # Permanent
    CONSTRAINT_VIOLATION = "constraint_violation"
    INVALID_DATA = "invalid_data"
    INVALID_STATEMENT = "invalid_statement"
    AUTHENTICATION_FAILED = "authentication_failed"
    UNKNOWN = "unknown"


# Static decision table: these causes are worth another attempt, nothing else is
TRANSIENT_CAUSES = frozenset(
    {
        StoreErrorCause.CONNECTION_LOST,
        StoreErrorCause.CONNECTION_REFUSED,
        StoreErrorCause.TIMEOUT,
        StoreErrorCause.BROKEN_PIPE,
        StoreErrorCause.CONNECTION_RESET,
        StoreErrorCause.ENQUEUE_AFTER_FATAL_DISCONNECT,
        StoreErrorCause.LOCK_WAIT_TIMEOUT,
        StoreErrorCause.DEADLOCK,
    }
)


class StoreError(Exception):
    """
    Base class for failures reported by the store gateway.

    Attributes:
        cause: Classified reason for the failure
        detail: Driver message, kept for logs
    """

    transient = False

    def __init__(self, cause: StoreErrorCause, detail: Optional[str] = None):
        self.cause = cause
        self.detail = detail
        super().__init__(f"{cause.value}: {detail}" if detail else cause.value)

    @staticmethod
    def for_cause(cause: StoreErrorCause, detail: Optional[str] = None) -> "StoreError":
        """Build the variant the decision table assigns to ``cause``."""
        if cause in TRANSIENT_CAUSES:
            return TransientStoreError(cause, detail)
        return PermanentStoreError(cause, detail)


class TransientStoreError(StoreError):
    """Infrastructure fault; the same write may succeed later."""

    transient = True


class PermanentStoreError(StoreError):
    """The write can never succeed as submitted."""
