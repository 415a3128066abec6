"""Snapshot, reconciliation and batch execution of mailing-list syncs."""
