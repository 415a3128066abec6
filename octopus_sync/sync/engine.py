"""
Sync engine for mailing-list reconciliation.

Orchestrates one reconciliation pass per configured list:
snapshot the remote list, stream the expected subscribers from the
source of truth, compute the delta and apply it.
"""

import logging
import time
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Optional, Protocol

from octopus_sync.api.octopus_api import DEFAULT_PAGE_SIZE, OctopusAPI, OctopusAPIError
from octopus_sync.config.mail_config import MailListConfig
from octopus_sync.storage.db import DataSourceError
from octopus_sync.sync.contact import AuthoritativeRow, ContactStatus
from octopus_sync.sync.executor import ApplyResult, BatchExecutor
from octopus_sync.sync.reconciler import Delta, compute_delta
from octopus_sync.sync.snapshot import SnapshotFetcher, SnapshotIncompleteError

# Legacy unsubscribe-all defaults
DEFAULT_UNSUBSCRIBE_BATCH_SIZE = 100
DEFAULT_UNSUBSCRIBE_DELAY = 3.0  # seconds

logger = logging.getLogger(__name__)


class RowSource(Protocol):
    """Anything that can stream the expected subscribers for a grade filter."""

    def query_grades(self, grades: Sequence[int]) -> Iterator[AuthoritativeRow]:
        ...


@dataclass
class ListSyncResult:
    """
    Result of reconciling one list.

    Attributes:
        name: Display name of the list
        list_id: Remote list identifier
        remote_count: Subscribers found on the remote list
        delta: Computed changes (None if the pass aborted before reconciling)
        applied: Outcome of applying the delta (None on dry run or abort)
        error: Why the list was aborted, if it was
        dry_run: Whether changes were only computed
    """

    name: str
    list_id: str
    remote_count: int = 0
    delta: Optional[Delta] = None
    applied: Optional[ApplyResult] = None
    error: Optional[str] = None
    dry_run: bool = False

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def item_failures(self) -> int:
        return len(self.applied.failures) if self.applied else 0

    def summary(self) -> str:
        """One-line human-readable summary."""
        if self.error:
            return f"{self.name}: aborted ({self.error})"
        if self.delta is None:
            return f"{self.name}: not reconciled"
        line = f"{self.name}: {self.remote_count} remote, {self.delta.summary()}"
        if self.dry_run:
            return f"{line} [dry run]"
        if self.applied:
            line += (
                f"; upserted {self.applied.upserted}, "
                f"deleted {self.applied.deleted}"
            )
            if self.applied.failures:
                line += f", {len(self.applied.failures)} failed"
        return line


@dataclass
class RunResult:
    """Results for every list processed in a run."""

    lists: list[ListSyncResult] = field(default_factory=list)

    @property
    def failed_lists(self) -> list[ListSyncResult]:
        return [r for r in self.lists if r.failed]

    @property
    def item_failures(self) -> int:
        return sum(r.item_failures for r in self.lists)

    def summary(self) -> str:
        lines = ["Sync Summary:"]
        lines.extend(f"  {r.summary()}" for r in self.lists)
        if self.failed_lists:
            lines.append(f"  Lists aborted: {len(self.failed_lists)}")
        if self.item_failures:
            lines.append(f"  Contacts that could not be updated: {self.item_failures}")
        return "\n".join(lines)


class SyncEngine:
    """
    Reconcile configured mailing lists against the source of truth.

    Lists are processed one after another. A list whose snapshot or
    reconciliation fails is skipped before any change is made to it, and
    the run moves on to the next list.

    Usage:
        engine = SyncEngine(api, database, executor=BatchExecutor(api))

        # One list
        result = engine.sync_list(mail_config.lists[0])

        # Every list, previewing only
        run = engine.run(mail_config.lists, dry_run=True)
        print(run.summary())
    """

    def __init__(
        self,
        client: OctopusAPI,
        source: Optional[RowSource] = None,
        executor: Optional[BatchExecutor] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        """
        Initialize the sync engine.

        Args:
            client: Remote list client
            source: Source of expected subscribers (required by sync_list)
            executor: Batch executor (default: BatchExecutor(client))
            page_size: Contacts per page when building snapshots
        """
        self.client = client
        self.source = source
        self.executor = executor or BatchExecutor(client)
        self.fetcher = SnapshotFetcher(client, page_size=page_size)

    def sync_list(self, entry: MailListConfig, dry_run: bool = False) -> ListSyncResult:
        """
        Run one reconciliation pass for a list.

        Args:
            entry: Configured list (name, remote id, grade filter)
            dry_run: If True, compute the delta without applying it

        Returns:
            ListSyncResult; failures before the apply step are recorded in
            its error field rather than raised
        """
        if self.source is None:
            raise ValueError("a row source is required to reconcile lists")

        result = ListSyncResult(name=entry.name, list_id=entry.list_id, dry_run=dry_run)
        logger.info(f"Reconciling list {entry.name} ({entry.list_id})")

        try:
            snapshot = self.fetcher.build_snapshot(entry.list_id)
            result.remote_count = len(snapshot)
            rows = self.source.query_grades(entry.grades)
            delta = compute_delta(snapshot, rows)
        except (SnapshotIncompleteError, DataSourceError) as e:
            logger.error(f"Skipping list {entry.name}: {e}")
            result.error = str(e)
            return result

        result.delta = delta
        logger.info(f"List {entry.name}: {delta.summary()}")

        if dry_run or not delta.has_changes():
            return result

        result.applied = self.executor.apply_delta(entry.list_id, delta)
        if result.applied.failures:
            logger.warning(
                f"List {entry.name}: {len(result.applied.failures)} contacts "
                f"could not be updated"
            )
        return result

    def run(
        self, entries: Iterable[MailListConfig], dry_run: bool = False
    ) -> RunResult:
        """
        Reconcile every list, continuing past lists that fail.

        Args:
            entries: Configured lists, in order
            dry_run: If True, compute deltas without applying them

        Returns:
            RunResult with one ListSyncResult per list
        """
        run = RunResult()
        for entry in entries:
            run.lists.append(self.sync_list(entry, dry_run=dry_run))

        logger.info(
            f"Run complete: {len(run.lists)} lists, "
            f"{len(run.failed_lists)} aborted, "
            f"{run.item_failures} contact failures"
        )
        return run

    def unsubscribe_all(
        self,
        list_id: str,
        batch_size: int = DEFAULT_UNSUBSCRIBE_BATCH_SIZE,
        delay: float = DEFAULT_UNSUBSCRIBE_DELAY,
    ) -> int:
        """
        Mark every subscribed contact of a list as unsubscribed.

        Legacy bulk path: pages through subscribed contacts and changes each
        page's status with one batch request. Unsubscribed contacts drop out
        of the subscribed listing, so every round starts from the first page.

        Args:
            list_id: Remote list identifier
            batch_size: Contacts per page and per batch request
            delay: Seconds to pause between batches

        Returns:
            Number of contacts unsubscribed

        Raises:
            OctopusAPIError: If a page or batch request fails
        """
        expected = self.client.fetch_list_counts(list_id).get(
            ContactStatus.SUBSCRIBED.value, 0
        )
        logger.info(f"Unsubscribing {expected} contacts from list {list_id}")

        total = 0
        # Bounded by the reported count, plus one round for late arrivals
        max_rounds = expected // batch_size + 2
        for round_number in range(max_rounds):
            if round_number > 0 and delay > 0:
                time.sleep(delay)
            contacts, _ = self.client.fetch_contacts_page(
                list_id, status=ContactStatus.SUBSCRIBED, page_size=batch_size
            )
            if not contacts:
                break
            try:
                total += self.client.batch_update_status(
                    list_id, contacts, ContactStatus.UNSUBSCRIBED
                )
            except OctopusAPIError as e:
                logger.error(
                    f"Batch unsubscribe failed on list {list_id} after {total}: {e}"
                )
                raise

        logger.info(f"Unsubscribed {total} contacts from list {list_id}")
        return total

    def __repr__(self) -> str:
        return f"SyncEngine(client={self.client!r}, source={self.source!r})"
