"""Consecutive-failure circuit breaker for upstream requests."""
import logging

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Opens after `threshold` consecutive transient failures.

    One instance is owned by a client for the length of a sync cycle. While
    open, callers must fail fast instead of touching the network; the next
    successful request closes it again.
    """

    def __init__(self, threshold: int = 10):
        self.threshold = threshold
        self.consecutive_failures = 0

    @property
    def is_open(self) -> bool:
        return self.consecutive_failures >= self.threshold

    def record_success(self):
        if self.consecutive_failures:
            logger.info(f"Circuit breaker reset after {self.consecutive_failures} consecutive failures")
        self.consecutive_failures = 0

    def record_failure(self):
        self.consecutive_failures += 1
        if self.consecutive_failures == self.threshold:
            logger.error(f"Circuit breaker opened after {self.threshold} consecutive failures")
