"""
Batch execution of a reconciliation delta.

Applies deletes and upserts against the remote list in fixed-size chunks.
Every item of a chunk runs in its own worker thread with its own retries;
the next chunk starts only after the whole chunk has finished, and a
cooldown separates consecutive chunks to stay under the remote rate limit.
"""

import logging
import time
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TypeVar

from octopus_sync.api.octopus_api import OctopusAPI, is_retryable
from octopus_sync.sync.contact import Contact
from octopus_sync.sync.reconciler import Delta
from octopus_sync.utils.retry import DEFAULT_MAX_ATTEMPTS, DEFAULT_WAIT, RetryPolicy

T = TypeVar("T")

DEFAULT_CHUNK_SIZE = 50
DEFAULT_CHUNK_DELAY = 3.0  # seconds

OPERATION_UPSERT = "upsert"
OPERATION_DELETE = "delete"

logger = logging.getLogger(__name__)


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Split items into consecutive chunks of at most size elements."""
    if size < 1:
        raise ValueError(f"chunk size must be >= 1, got {size}")
    for start in range(0, len(items), size):
        yield items[start : start + size]


@dataclass
class FailedOperation:
    """An item abandoned after exhausting its retries."""

    operation: str
    email: str
    error: str


@dataclass
class ApplyResult:
    """
    Outcome of applying a delta.

    Attributes:
        upserted: Contacts successfully upserted
        deleted: Contacts successfully deleted
        failures: Items that failed every attempt
        chunk_sizes: Sizes of the chunks issued, per operation
    """

    upserted: int = 0
    deleted: int = 0
    failures: list[FailedOperation] = field(default_factory=list)
    chunk_sizes: dict[str, list[int]] = field(
        default_factory=lambda: {OPERATION_DELETE: [], OPERATION_UPSERT: []}
    )

    @property
    def succeeded(self) -> bool:
        """True when every item was applied."""
        return not self.failures

    def failures_for(self, operation: str) -> list[FailedOperation]:
        return [f for f in self.failures if f.operation == operation]


class BatchExecutor:
    """
    Apply a Delta to a remote list with bounded concurrency.

    Concurrency equals the size of the chunk in flight; there is no
    parallelism across chunks. A single item's permanent failure is logged
    and recorded, never raised.

    Usage:
        executor = BatchExecutor(api, chunk_size=50, chunk_delay=3.0)
        result = executor.apply_delta(list_id, delta)
        if not result.succeeded:
            ...
    """

    def __init__(
        self,
        client: OctopusAPI,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_delay: float = DEFAULT_CHUNK_DELAY,
        retry_policy: RetryPolicy | None = None,
    ):
        """
        Initialize the executor.

        Args:
            client: Remote list client
            chunk_size: Items per chunk, also the number of concurrent requests
            chunk_delay: Seconds to pause between consecutive chunks
            retry_policy: Per-item retry policy (default 3 attempts, 10s apart)
        """
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        if chunk_delay < 0:
            raise ValueError(f"chunk_delay must be >= 0, got {chunk_delay}")

        self.client = client
        self.chunk_size = chunk_size
        self.chunk_delay = chunk_delay
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=DEFAULT_MAX_ATTEMPTS,
            wait=DEFAULT_WAIT,
            retryable=is_retryable,
        )

    def apply_delta(self, list_id: str, delta: Delta) -> ApplyResult:
        """
        Apply deletes, then upserts, chunk by chunk.

        Args:
            list_id: Remote list identifier
            delta: Changes computed by the reconciler

        Returns:
            ApplyResult with counts and per-item failures
        """
        result = ApplyResult()
        plan: list[tuple[str, Sequence[Contact]]] = [
            (OPERATION_DELETE, chunk)
            for chunk in chunked(delta.deletes, self.chunk_size)
        ] + [
            (OPERATION_UPSERT, chunk)
            for chunk in chunked(delta.upserts, self.chunk_size)
        ]

        for index, (operation, chunk) in enumerate(plan):
            if index > 0 and self.chunk_delay > 0:
                time.sleep(self.chunk_delay)

            succeeded = self._run_chunk(list_id, operation, chunk, result)
            result.chunk_sizes[operation].append(len(chunk))
            if operation == OPERATION_DELETE:
                result.deleted += succeeded
            else:
                result.upserted += succeeded

            logger.info(
                f"Processed {operation} chunk {index + 1}/{len(plan)} of "
                f"{len(chunk)} contacts on list {list_id} ({succeeded} ok)"
            )

        return result

    def _operation_for(
        self, list_id: str, operation: str, contact: Contact
    ) -> Callable[[], None]:
        if operation == OPERATION_DELETE:
            return lambda: self.client.delete_contact(list_id, contact.remote_id)
        return lambda: self.client.upsert_contact(list_id, contact)

    def _run_item(
        self, list_id: str, operation: str, contact: Contact
    ) -> str | None:
        """Run one item with retries; return the final error if it was abandoned."""
        description = f"{operation} {contact.email_address}"
        try:
            self.retry_policy.call(
                self._operation_for(list_id, operation, contact), description
            )
        except Exception as e:
            logger.error(f"Giving up on {description} on list {list_id}: {e}")
            return str(e) or type(e).__name__
        return None

    def _run_chunk(
        self,
        list_id: str,
        operation: str,
        chunk: Sequence[Contact],
        result: ApplyResult,
    ) -> int:
        """Run one chunk concurrently and wait for every item to finish."""
        with ThreadPoolExecutor(
            max_workers=len(chunk), thread_name_prefix=f"{operation}-worker"
        ) as pool:
            errors = list(
                pool.map(lambda c: self._run_item(list_id, operation, c), chunk)
            )

        for contact, error in zip(chunk, errors):
            if error is not None:
                result.failures.append(
                    FailedOperation(
                        operation=operation, email=contact.email_address, error=error
                    )
                )

        return sum(1 for error in errors if error is None)
