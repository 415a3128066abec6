"""
Fixed-wait retry policy for remote operations.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_WAIT = 10.0  # seconds

logger = logging.getLogger(__name__)


def _retry_any(_error: Exception) -> bool:
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry an operation a fixed number of times with a fixed pause.

    Attributes:
        max_attempts: Total attempts including the first one
        wait: Seconds to sleep between failed attempts
        retryable: Predicate deciding whether an error is worth another
                   attempt. Errors it rejects are raised immediately.

    Usage:
        policy = RetryPolicy(max_attempts=3, wait=10.0, retryable=is_retryable)
        policy.call(lambda: client.delete_contact(list_id, remote_id), "delete")
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    wait: float = DEFAULT_WAIT
    retryable: Callable[[Exception], bool] = _retry_any

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.wait < 0:
            raise ValueError(f"wait must be >= 0, got {self.wait}")

    def call(self, operation: Callable[[], T], description: str = "operation") -> T:
        """
        Run operation until it succeeds or the attempts are used up.

        Args:
            operation: Zero-argument callable to execute
            description: Label for log messages

        Returns:
            Result of the first successful attempt

        Raises:
            Exception: The last error raised by the operation
        """
        attempt = 1
        while True:
            try:
                return operation()
            except Exception as e:
                if not self.retryable(e) or attempt >= self.max_attempts:
                    raise
                logger.warning(
                    f"{description} failed (attempt {attempt}/{self.max_attempts}): "
                    f"{e}; retrying in {self.wait:.1f}s"
                )
                time.sleep(self.wait)
                attempt += 1
