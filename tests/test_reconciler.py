"""
Unit tests for delta computation.
"""

import pytest

from octopus_sync.storage.db import DataSourceError
from octopus_sync.sync.contact import AuthoritativeRow, Contact
from octopus_sync.sync.reconciler import Delta, compute_delta


def snapshot_of(*emails):
    """Build a snapshot of remote contacts keyed by normalized email."""
    return {
        email.strip().lower(): Contact(email, remote_id=f"id-{email.strip().lower()}")
        for email in emails
    }


def rows_of(*emails):
    return [AuthoritativeRow(email) for email in emails]


class TestDelta:
    """Tests for the Delta container."""

    def test_has_changes(self):
        """Test has_changes reflects both sets."""
        assert not Delta().has_changes()
        assert Delta(upserts=[Contact("a@x.com")]).has_changes()
        assert Delta(deletes=[Contact("a@x.com", remote_id="1")]).has_changes()

    def test_summary(self):
        """Test the summary line."""
        delta = Delta(upserts=[Contact("a@x.com")], confirmed=4)
        assert delta.summary() == "1 to upsert, 0 to delete, 4 unchanged"


class TestComputeDelta:
    """Tests for compute_delta."""

    def test_basic_partition(self):
        """Test new rows upsert, missing rows delete, shared rows stay."""
        snapshot = snapshot_of("keep@x.com", "gone@x.com")

        delta = compute_delta(snapshot, rows_of("keep@x.com", "new@x.com"))

        assert [c.email_address for c in delta.upserts] == ["new@x.com"]
        assert [c.key for c in delta.deletes] == ["gone@x.com"]
        assert delta.confirmed == 1

    def test_deletes_carry_remote_ids(self):
        """Test every delete has the remote id from the snapshot."""
        delta = compute_delta(snapshot_of("a@x.com", "b@x.com"), [])

        assert sorted(c.remote_id for c in delta.deletes) == ["id-a@x.com", "id-b@x.com"]

    def test_upsert_and_delete_disjoint(self):
        """Test no key appears in both sets."""
        snapshot = snapshot_of("a@x.com", "b@x.com", "c@x.com")

        delta = compute_delta(snapshot, rows_of("b@x.com", "d@x.com", "e@x.com"))

        upsert_keys = {c.key for c in delta.upserts}
        delete_keys = {c.key for c in delta.deletes}
        assert upsert_keys.isdisjoint(delete_keys)
        assert upsert_keys == {"d@x.com", "e@x.com"}
        assert delete_keys == {"a@x.com", "c@x.com"}

    def test_normalized_match(self):
        """Test case and whitespace differences still match."""
        snapshot = snapshot_of("ada@example.com")

        delta = compute_delta(snapshot, rows_of("  ADA@Example.com "))

        assert not delta.has_changes()
        assert delta.confirmed == 1

    def test_upsert_keeps_attributes(self):
        """Test names travel with the upserted contact."""
        rows = [AuthoritativeRow.from_db_row("new@x.com", "Ada", "Lovelace")]

        delta = compute_delta({}, rows)

        assert delta.upserts[0].attributes == {"FirstName": "Ada", "LastName": "Lovelace"}

    def test_consumes_snapshot(self):
        """Test the snapshot is emptied."""
        snapshot = snapshot_of("a@x.com")
        compute_delta(snapshot, rows_of("b@x.com"))
        assert snapshot == {}

    def test_idempotent_after_apply(self):
        """Test a second pass over the corrected list is empty."""
        remote = snapshot_of("a@x.com", "stale@x.com")
        rows = rows_of("a@x.com", "b@x.com")

        delta = compute_delta(dict(remote), rows)

        # Simulate a fully successful apply
        corrected = dict(remote)
        for contact in delta.deletes:
            corrected.pop(contact.key)
        for contact in delta.upserts:
            corrected[contact.key] = Contact(contact.email_address, remote_id="new")

        second = compute_delta(dict(corrected), rows)
        assert not second.has_changes()
        assert second.confirmed == 2

    def test_duplicate_confirmed_row(self):
        """Test a repeated row for a confirmed subscriber is ignored."""
        delta = compute_delta(snapshot_of("a@x.com"), rows_of("a@x.com", "A@x.com"))

        assert not delta.has_changes()
        assert delta.confirmed == 1

    def test_duplicate_new_row_upserted_again(self):
        """Test a repeated new row yields a second idempotent upsert."""
        delta = compute_delta({}, rows_of("n@x.com", "n@x.com"))

        assert [c.key for c in delta.upserts] == ["n@x.com", "n@x.com"]

    def test_contact_without_remote_id_not_deleted(self):
        """Test an unmatched contact lacking an id is skipped."""
        snapshot = {"ghost@x.com": Contact("ghost@x.com")}

        delta = compute_delta(snapshot, [])

        assert delta.deletes == []
        assert delta.skipped_deletes == 1

    def test_empty_inputs(self):
        """Test empty snapshot and rows give an empty delta."""
        delta = compute_delta({}, [])
        assert not delta.has_changes()
        assert delta.confirmed == 0

    @pytest.mark.parametrize("bad_email", [None, 42, "", "   "])
    def test_malformed_row_raises(self, bad_email):
        """Test a row without a usable email aborts the computation."""
        rows = [AuthoritativeRow("ok@x.com"), AuthoritativeRow(bad_email)]

        with pytest.raises(DataSourceError):
            compute_delta(snapshot_of("a@x.com"), rows)

    def test_row_source_failure_propagates(self):
        """Test a failing row iterator aborts without a partial delta."""

        def failing_rows():
            yield AuthoritativeRow("a@x.com")
            raise DataSourceError("connection lost")

        with pytest.raises(DataSourceError, match="connection lost"):
            compute_delta(snapshot_of("b@x.com"), failing_rows())
