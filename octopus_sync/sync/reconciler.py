"""
Reconciliation of a remote snapshot against the source of truth.

Computes the minimal delta (contacts to upsert, contacts to delete) that
brings a remote list in line with the authoritative rows.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from octopus_sync.storage.db import DataSourceError
from octopus_sync.sync.contact import AuthoritativeRow, Contact
from octopus_sync.sync.snapshot import RemoteSnapshot
from octopus_sync.utils.normalization import normalize_email

logger = logging.getLogger(__name__)


@dataclass
class Delta:
    """
    Changes needed for one list.

    Attributes:
        upserts: Contacts to upsert as subscribed, in source order
        deletes: Remote contacts (with remote ids) no longer expected
        confirmed: Number of expected subscribers already on the list
        skipped_deletes: Unconfirmed remote contacts without a remote id
    """

    upserts: list[Contact] = field(default_factory=list)
    deletes: list[Contact] = field(default_factory=list)
    confirmed: int = 0
    skipped_deletes: int = 0

    def has_changes(self) -> bool:
        """Check if there is anything to apply."""
        return bool(self.upserts) or bool(self.deletes)

    def summary(self) -> str:
        return (
            f"{len(self.upserts)} to upsert, {len(self.deletes)} to delete, "
            f"{self.confirmed} unchanged"
        )


def _row_key(row: AuthoritativeRow, index: int) -> str:
    email = getattr(row, "email", None)
    if not isinstance(email, str):
        raise DataSourceError(
            f"Row {index}: email must be a string, got {type(email).__name__}"
        )
    key = normalize_email(email)
    if not key:
        raise DataSourceError(f"Row {index}: empty email address")
    return key


def compute_delta(
    snapshot: RemoteSnapshot, rows: Iterable[AuthoritativeRow]
) -> Delta:
    """
    Compute the upsert and delete sets for one list.

    The snapshot is consumed: confirmed entries are removed from it and
    whatever is left afterwards becomes the delete set. Callers must not
    reuse it.

    Args:
        snapshot: Remote subscribers keyed by normalized email
        rows: Authoritative rows, iterated once

    Returns:
        Delta for the list

    Raises:
        DataSourceError: If a row is malformed or the row source fails.
            No partial delta is returned.
    """
    delta = Delta()
    confirmed: set[str] = set()

    for index, row in enumerate(rows):
        key = _row_key(row, index)

        if key in confirmed:
            continue

        if snapshot.pop(key, None) is not None:
            confirmed.add(key)
            continue

        # Duplicate rows for a new subscriber are upserted again (idempotent PUT)
        delta.upserts.append(row.to_contact())

    delta.confirmed = len(confirmed)

    for key, contact in snapshot.items():
        if not contact.remote_id:
            logger.warning(f"Cannot delete {key}: remote contact has no id")
            delta.skipped_deletes += 1
            continue
        delta.deletes.append(contact)

    snapshot.clear()

    logger.debug(f"Computed delta: {delta.summary()}")
    return delta
