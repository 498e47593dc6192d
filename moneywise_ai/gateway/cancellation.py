"""
Cooperative cancellation for gateway calls.

A token is created by the caller and passed by reference into any gateway
operation. The retry loop looks at it at exactly two points:

1. immediately before each send attempt
2. immediately after each backoff delay

A request that is already on the wire is never interrupted; only the
surrounding loop is short-circuited at its next checkpoint.
"""

import threading

from moneywise_ai.gateway.errors import OperationCancelledError


class CancellationToken:
    """Flag shared between the caller and a running gateway operation."""

    def __init__(self):
        # Event so that cancel() is safe from any thread
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation. Calling it again is a no-op."""
        self._event.set()

    def check_cancellation(self) -> None:
        """Raise OperationCancelledError if cancellation was requested."""
        if self._event.is_set():
            raise OperationCancelledError()

    @property
    def is_cancelling(self) -> bool:
        return self._event.is_set()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancelling})"
