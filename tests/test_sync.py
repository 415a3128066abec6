"""
Unit tests for the sync engine.

Tests SyncEngine list reconciliation, run-level error isolation and the
legacy unsubscribe-all path.
"""

from unittest.mock import MagicMock, call, patch

import pytest

from octopus_sync.api.octopus_api import OctopusAPI, RemoteAPIError, TransportError
from octopus_sync.config.mail_config import MailListConfig
from octopus_sync.storage.db import DataSourceError
from octopus_sync.sync.contact import AuthoritativeRow, Contact, ContactStatus
from octopus_sync.sync.engine import ListSyncResult, RunResult, SyncEngine
from octopus_sync.sync.executor import ApplyResult, BatchExecutor, FailedOperation
from octopus_sync.sync.reconciler import Delta

# ==============================================================================
# Fixtures
# ==============================================================================


class FakeSource:
    """In-memory row source keyed by grade."""

    def __init__(self, by_grade=None, fail_for=()):
        self.by_grade = by_grade or {}
        self.fail_for = set(fail_for)
        self.queries = []

    def query_grades(self, grades):
        self.queries.append(list(grades))
        if self.fail_for.intersection(grades):
            raise DataSourceError("relation parents does not exist")
        for grade in grades:
            for email in self.by_grade.get(grade, []):
                yield AuthoritativeRow(email)


@pytest.fixture
def grade5():
    return MailListConfig(name="Grade 5", list_id="list-5", grades=[5])


@pytest.fixture
def grade6():
    return MailListConfig(name="Grade 6", list_id="list-6", grades=[6])


@pytest.fixture
def client():
    """Mock client with one remote subscriber per list."""
    api = MagicMock(spec=OctopusAPI)
    api.fetch_list_counts.return_value = {"subscribed": 1}
    api.fetch_contacts_page.return_value = (
        [Contact("stale@x.com", remote_id="r-stale")],
        "",
    )
    return api


@pytest.fixture
def executor():
    mock = MagicMock(spec=BatchExecutor)
    mock.apply_delta.return_value = ApplyResult(upserted=1, deleted=1)
    return mock


@pytest.fixture
def source():
    return FakeSource({5: ["new@x.com"], 6: ["stale@x.com"]})


# ==============================================================================
# Result Tests
# ==============================================================================


class TestResults:
    """Tests for ListSyncResult and RunResult."""

    def test_failed_result(self):
        result = ListSyncResult(name="L", list_id="1", error="boom")
        assert result.failed
        assert "aborted" in result.summary()

    def test_item_failures(self):
        applied = ApplyResult(failures=[FailedOperation("upsert", "a@x.com", "err")])
        result = ListSyncResult(name="L", list_id="1", delta=Delta(), applied=applied)
        assert not result.failed
        assert result.item_failures == 1
        assert "1 failed" in result.summary()

    def test_dry_run_summary(self):
        result = ListSyncResult(name="L", list_id="1", delta=Delta(), dry_run=True)
        assert result.summary().endswith("[dry run]")

    def test_unreconciled_summary(self):
        result = ListSyncResult(name="L", list_id="1")
        assert result.summary() == "L: not reconciled"

    def test_run_result_aggregates(self):
        run = RunResult(
            lists=[
                ListSyncResult(name="A", list_id="1", error="x"),
                ListSyncResult(
                    name="B",
                    list_id="2",
                    delta=Delta(),
                    applied=ApplyResult(
                        failures=[FailedOperation("delete", "b@x.com", "e")] * 2
                    ),
                ),
            ]
        )
        assert [r.name for r in run.failed_lists] == ["A"]
        assert run.item_failures == 2
        summary = run.summary()
        assert summary.startswith("Sync Summary:")
        assert "Lists aborted: 1" in summary


# ==============================================================================
# SyncEngine.sync_list Tests
# ==============================================================================


class TestSyncList:
    """Tests for reconciling one list."""

    def test_applies_delta(self, client, source, executor, grade5):
        """Test the computed delta is handed to the executor."""
        engine = SyncEngine(client, source, executor=executor)

        result = engine.sync_list(grade5)

        assert not result.failed
        assert result.remote_count == 1
        list_id, delta = executor.apply_delta.call_args[0]
        assert list_id == "list-5"
        assert [c.email_address for c in delta.upserts] == ["new@x.com"]
        assert [c.remote_id for c in delta.deletes] == ["r-stale"]
        assert result.applied.upserted == 1
        assert source.queries == [[5]]

    def test_snapshot_uses_configured_page_size(self, client, source, executor, grade5):
        """Test the page size reaches the snapshot fetcher."""
        engine = SyncEngine(client, source, executor=executor, page_size=25)

        engine.sync_list(grade5)

        assert client.fetch_contacts_page.call_args.kwargs["page_size"] == 25

    def test_dry_run_skips_apply(self, client, source, executor, grade5):
        """Test dry run computes the delta but changes nothing."""
        engine = SyncEngine(client, source, executor=executor)

        result = engine.sync_list(grade5, dry_run=True)

        assert result.delta.has_changes()
        assert result.applied is None
        executor.apply_delta.assert_not_called()

    def test_in_sync_skips_apply(self, client, source, executor, grade6):
        """Test an already-correct list makes no calls."""
        engine = SyncEngine(client, source, executor=executor)

        result = engine.sync_list(grade6)

        assert not result.delta.has_changes()
        assert result.delta.confirmed == 1
        executor.apply_delta.assert_not_called()

    def test_incomplete_snapshot_aborts_list(self, client, source, executor, grade5):
        """Test a failed page means no changes for that list."""
        client.fetch_contacts_page.side_effect = RemoteAPIError(500, "boom")
        engine = SyncEngine(client, source, executor=executor)

        result = engine.sync_list(grade5)

        assert result.failed
        assert "incomplete" in result.error
        assert result.delta is None
        executor.apply_delta.assert_not_called()
        assert source.queries == []

    def test_source_failure_aborts_list(self, client, executor, grade5):
        """Test a failing source query means no changes for that list."""
        engine = SyncEngine(client, FakeSource(fail_for=[5]), executor=executor)

        result = engine.sync_list(grade5)

        assert result.failed
        assert "parents" in result.error
        executor.apply_delta.assert_not_called()

    def test_requires_source(self, client, grade5):
        """Test reconciling without a row source is a programming error."""
        with pytest.raises(ValueError):
            SyncEngine(client).sync_list(grade5)

    @patch("time.sleep")
    def test_with_real_executor(self, mock_sleep, client, source, grade5):
        """Test a full pass issues one delete and one upsert."""
        engine = SyncEngine(client, source)

        result = engine.sync_list(grade5)

        client.delete_contact.assert_called_once_with("list-5", "r-stale")
        upserted = client.upsert_contact.call_args[0][1]
        assert upserted.email_address == "new@x.com"
        assert result.applied.succeeded
        # One delete chunk, one upsert chunk, one cooldown between them
        mock_sleep.assert_called_once_with(3.0)


# ==============================================================================
# SyncEngine.run Tests
# ==============================================================================


class TestRun:
    """Tests for running every configured list."""

    def test_continues_after_failed_list(self, client, executor, grade5, grade6):
        """Test a failing list does not stop the next one."""
        source = FakeSource({6: ["x@x.com"]}, fail_for=[5])
        engine = SyncEngine(client, source, executor=executor)

        run = engine.run([grade5, grade6])

        assert [r.name for r in run.lists] == ["Grade 5", "Grade 6"]
        assert run.lists[0].failed
        assert not run.lists[1].failed
        executor.apply_delta.assert_called_once()
        assert executor.apply_delta.call_args[0][0] == "list-6"

    def test_dry_run_for_all(self, client, source, executor, grade5, grade6):
        """Test dry run applies to every list."""
        engine = SyncEngine(client, source, executor=executor)

        run = engine.run([grade5, grade6], dry_run=True)

        assert all(r.dry_run for r in run.lists)
        executor.apply_delta.assert_not_called()

    def test_empty(self, client, source, executor):
        assert SyncEngine(client, source, executor=executor).run([]).lists == []


# ==============================================================================
# SyncEngine.unsubscribe_all Tests
# ==============================================================================


class TestUnsubscribeAll:
    """Tests for the legacy bulk unsubscribe."""

    def page(self, start, count):
        return [Contact(f"u{i}@x.com", remote_id=f"r{i}") for i in range(start, start + count)]

    @patch("time.sleep")
    def test_batches_until_empty(self, mock_sleep):
        """Test rounds of 100 until the subscribed listing is empty."""
        client = MagicMock(spec=OctopusAPI)
        client.fetch_list_counts.return_value = {"subscribed": 150}
        client.fetch_contacts_page.side_effect = [
            (self.page(0, 100), "c"),
            (self.page(100, 50), ""),
            ([], ""),
        ]
        client.batch_update_status.side_effect = lambda list_id, contacts, status: len(
            contacts
        )

        total = SyncEngine(client).unsubscribe_all("list-1")

        assert total == 150
        assert client.batch_update_status.call_count == 2
        for c in client.batch_update_status.call_args_list:
            assert c.args[2] is ContactStatus.UNSUBSCRIBED
        # Every round reads the first page again
        for c in client.fetch_contacts_page.call_args_list:
            assert "cursor" not in c.kwargs
            assert c.kwargs["page_size"] == 100
        assert mock_sleep.call_args_list == [call(3.0), call(3.0)]

    @patch("time.sleep")
    def test_bounded_by_count(self, mock_sleep):
        """Test the loop stops even if the listing never empties."""
        client = MagicMock(spec=OctopusAPI)
        client.fetch_list_counts.return_value = {"subscribed": 10}
        client.fetch_contacts_page.return_value = (self.page(0, 10), "")
        client.batch_update_status.return_value = 10

        SyncEngine(client).unsubscribe_all("list-1", batch_size=10, delay=0)

        # 10 // 10 + 2 rounds at most
        assert client.batch_update_status.call_count == 3
        mock_sleep.assert_not_called()

    @patch("time.sleep")
    def test_batch_failure_raises(self, mock_sleep):
        """Test a failed batch request propagates."""
        client = MagicMock(spec=OctopusAPI)
        client.fetch_list_counts.return_value = {"subscribed": 5}
        client.fetch_contacts_page.return_value = (self.page(0, 5), "")
        client.batch_update_status.side_effect = TransportError("down")

        with pytest.raises(TransportError):
            SyncEngine(client).unsubscribe_all("list-1")
