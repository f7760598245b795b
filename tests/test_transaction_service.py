"""Tests for ledger commands through the orchestrator."""

import pytest
from datetime import date, datetime
from decimal import Decimal

from structlog.testing import capture_logs

from allowance_tracker.config import get_settings
from allowance_tracker.orchestrator import TransactionService, create_app_components
from allowance_tracker.services.storage import (
    CsvDataClient,
    CsvTransactionStorage,
    IoFailureError,
)
from allowance_tracker.validation import (
    EmptySelectionError,
    InvalidAmountError,
    InvalidDescriptionError,
)

from conftest import EST


class TestAddAndDelete:
    """Tests for ledger mutations."""

    def test_gift_snack_delete_scenario(self, tracker, child):
        """Test balances after adding income, spending and deleting the income."""
        gift = tracker.add_transaction(child, Decimal("10.00"), "Gift")
        snack = tracker.add_transaction(child, "-3.50", "Snack")

        ledger = tracker.list_transactions(child)
        assert [tx.id for tx in ledger] == [gift.id, snack.id]
        assert [tx.balance for tx in ledger] == [Decimal("10.00"), Decimal("6.50")]
        assert gift.id.startswith("in-")
        assert snack.id.startswith("ex-")

        result = tracker.delete_transactions(child, [gift.id])
        assert result.deleted_ids == [gift.id]
        assert result.not_found_ids == []

        remaining = tracker.list_transactions(child)
        assert [tx.id for tx in remaining] == [snack.id]
        assert remaining[0].balance == Decimal("-3.50")
        assert tracker.current_balance(child) == Decimal("-3.50")

    def test_backdated_entry_recomputes_later_balances(self, tracker, child):
        """Test inserting an earlier entry shifts every later balance."""
        tracker.add_transaction(child, "5", "Chores")
        tracker.add_transaction(child, "20", "Birthday", when=datetime(2025, 1, 1, 9, 0, 0, tzinfo=EST))

        ledger = tracker.list_transactions(child)
        assert [tx.description for tx in ledger] == ["Birthday", "Chores"]
        assert [tx.balance for tx in ledger] == [Decimal("20.00"), Decimal("25.00")]
        assert tracker.transactions.validate_balances(child) == []

    def test_naive_when_uses_clock_offset(self, tracker, child):
        """Test a timestamp without an offset is read in local time."""
        tx = tracker.add_transaction(child, "1", "Found coin", when=datetime(2025, 1, 19, 8, 0, 0))
        assert tx.occurred_at == datetime(2025, 1, 19, 8, 0, 0, tzinfo=EST)

    def test_multi_delete_single_rewrite(self, tracker, child, tmp_path):
        """Test several IDs are deleted in one commit-sized change."""
        first = tracker.add_transaction(child, "1", "a")
        second = tracker.add_transaction(child, "2", "b")
        third = tracker.add_transaction(child, "3", "c")

        with capture_logs() as logs:
            result = tracker.delete_transactions(child, [first.id, third.id, "in-404", first.id])

        assert result.deleted_ids == [first.id, third.id]
        assert result.not_found_ids == ["in-404"]
        assert result.success_message == "2 transactions deleted successfully"
        rewrites = [e for e in logs if e.get("event_type") == "balances_recalculated"]
        assert len(rewrites) == 1
        assert [tx.id for tx in tracker.list_transactions(child)] == [second.id]

    def test_unknown_ids_leave_file_untouched(self, tracker, child, tmp_path):
        """Test a delete that matches nothing writes nothing."""
        tracker.add_transaction(child, "1", "a")
        path = tmp_path / child.directory / "transactions.csv"
        before = path.read_text(encoding="utf-8")

        result = tracker.delete_transactions(child, ["ex-0-0000"])

        assert result.deleted_count == 0
        assert result.not_found_ids == ["ex-0-0000"]
        assert path.read_text(encoding="utf-8") == before


class TestRejectedCommands:
    """Tests that invalid commands never touch the ledger."""

    @pytest.mark.parametrize("amount", ["0", "abc", "NaN", 10_000_000, "1e30"])
    def test_bad_amounts(self, tracker, child, tmp_path, amount):
        """Test zero, non-numeric and oversized amounts are rejected."""
        with pytest.raises(InvalidAmountError):
            tracker.add_transaction(child, amount, "x")
        assert not (tmp_path / child.directory / "transactions.csv").exists()

    @pytest.mark.parametrize("description", ["", "   ", None, "x" * 257])
    def test_bad_descriptions(self, tracker, child, description):
        """Test blank and overlong descriptions are rejected."""
        with pytest.raises(InvalidDescriptionError):
            tracker.add_transaction(child, "1", description)
        assert tracker.list_transactions(child) == []

    def test_empty_selection(self, tracker, child):
        """Test deleting nothing is an error."""
        with pytest.raises(EmptySelectionError):
            tracker.delete_transactions(child, [])
        with pytest.raises(EmptySelectionError):
            tracker.delete_transactions(child, ["  "])

    def test_rejection_is_audited(self, tracker, child):
        """Test a rejected command leaves a warning in the audit log."""
        with capture_logs() as logs:
            with pytest.raises(InvalidDescriptionError):
                tracker.add_transaction(child, "1", "")
        rejected = [e for e in logs if e.get("event_type") == "validation_rejected"]
        assert len(rejected) == 1
        assert rejected[0]["child_id"] == child.id


class TestQueries:
    """Tests for ledger reads."""

    def test_list_filters(self, tracker, child):
        """Test range, order and limit."""
        for day, amount in ((10, "1"), (12, "2"), (14, "3")):
            tracker.add_transaction(child, amount, f"day {day}", when=datetime(2025, 1, day, 9, 0, 0, tzinfo=EST))

        in_range = tracker.list_transactions(
            child,
            start=datetime(2025, 1, 11, tzinfo=EST),
            end=datetime(2025, 1, 14, 9, 0, 0, tzinfo=EST),
        )
        assert [tx.description for tx in in_range] == ["day 12", "day 14"]

        newest = tracker.list_transactions(child, newest_first=True, limit=1)
        assert [tx.description for tx in newest] == ["day 14"]

    def test_balance_at(self, tracker, child):
        """Test historical balances."""
        tracker.add_transaction(child, "10", "a", when=datetime(2025, 1, 10, 9, 0, 0, tzinfo=EST))
        tracker.add_transaction(child, "-4", "b", when=datetime(2025, 1, 15, 9, 0, 0, tzinfo=EST))
        assert tracker.transactions.balance_at(child, datetime(2025, 1, 12)) == Decimal("10.00")
        assert tracker.current_balance(child) == Decimal("6.00")


class TestPendingAllowances:
    """Tests for scheduled allowance entries."""

    def test_issued_once(self, tracker, child, clock):
        """Test a payday is paid exactly once."""
        # Clock is Monday 2025-01-20
        tracker.profiles.update_allowance_schedule(child, "5", day_of_week=0)

        issued = tracker.transactions.issue_pending_allowances(child)
        assert len(issued) == 1
        assert issued[0].occurred_at == datetime(2025, 1, 20, 0, 0, 0, tzinfo=EST)
        assert issued[0].description == "Weekly allowance"
        assert tracker.transactions.issue_pending_allowances(child) == []

        clock.advance(days=7)
        issued = tracker.transactions.issue_pending_allowances(child)
        assert [tx.occurred_at.date().isoformat() for tx in issued] == ["2025-01-27"]
        assert tracker.current_balance(child) == Decimal("10.00")

    def test_inactive_schedule_issues_nothing(self, tracker, child):
        """Test paused allowances are not paid."""
        tracker.profiles.update_allowance_schedule(child, "5", day_of_week=0, is_active=False)
        assert tracker.transactions.issue_pending_allowances(child) == []

    def test_no_schedule(self, tracker, child):
        """Test a child without a schedule gets nothing."""
        assert tracker.transactions.issue_pending_allowances(child) == []


class TestVersioningUnavailable:
    """Ledger commands succeed when git cannot run."""

    def test_add_succeeds_and_failure_is_logged(self, tmp_path, clock, monkeypatch):
        """Test a missing git binary only shows up in the logs."""
        monkeypatch.setenv("ALLOWANCE_VERSIONING_GIT_EXECUTABLE", "git-binary-that-does-not-exist")
        get_settings.cache_clear()
        tracker = create_app_components(data_dir=tmp_path, clock=clock, versioning_enabled=True)

        with capture_logs() as logs:
            child = tracker.profiles.create_child("Alex", date(2015, 6, 1))
            tx = tracker.add_transaction(child, "10", "Gift")

        assert tx.balance == Decimal("10.00")
        assert tracker.current_balance(child) == Decimal("10.00")
        failures = [
            e for e in logs
            if e["event"] == "versioning_failed" and e.get("filename") == "transactions.csv"
        ]
        assert len(failures) == 1
        assert failures[0]["error_type"] == "GitUnavailableError"
        assert tracker.file_history(child) == []


class TestExport:
    """Tests for the spreadsheet export."""

    def test_csv_content(self, tracker, child):
        """Test header, numbering, dates, quoting and amounts."""
        tracker.add_transaction(child, "-3.5", "Snack, chips", when=datetime(2025, 1, 12, 9, 0, 0, tzinfo=EST))
        tracker.add_transaction(child, "10", "Gift", when=datetime(2025, 1, 10, 9, 0, 0, tzinfo=EST))

        export = tracker.export_csv(child)
        assert export.child_name == "Alex"
        assert export.filename == "alex_transactions_20250120.csv"
        assert export.transaction_count == 2
        assert export.csv_content.splitlines() == [
            "transaction_id,transaction_date,description,amount",
            "1,2025/01/10,Gift,10.00",
            '2,2025/01/12,"Snack, chips",-3.50',
        ]

    def test_empty_ledger(self, tracker, child):
        """Test an empty ledger exports only the header."""
        export = tracker.export_csv(child)
        assert export.transaction_count == 0
        assert export.csv_content == "transaction_id,transaction_date,description,amount\n"

    def test_date_range(self, tracker, child):
        """Test start and end narrow the export."""
        for day in (10, 12, 14):
            tracker.add_transaction(child, "1", f"day {day}", when=datetime(2025, 1, day, 9, 0, 0, tzinfo=EST))

        export = tracker.export_csv(
            child,
            start=datetime(2025, 1, 11, tzinfo=EST),
            end=datetime(2025, 1, 13, tzinfo=EST),
        )
        assert export.transaction_count == 1
        assert export.csv_content.splitlines()[1] == "1,2025/01/12,day 12,1.00"

    def test_export_to_path(self, tracker, child, tmp_path):
        """Test the export lands in the requested directory."""
        tracker.add_transaction(child, "10", "Gift")

        path = tracker.transactions.export_to_path(child, tmp_path / "exports")
        assert path == tmp_path / "exports" / "alex_transactions_20250120.csv"
        assert path.read_text(encoding="utf-8").splitlines()[1] == "1,2025/01/20,Gift,10.00"

    def test_unwritable_directory(self, tracker, child, tmp_path):
        """Test a write failure is audited and raised as a storage error."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")

        with capture_logs() as logs:
            with pytest.raises(IoFailureError):
                tracker.transactions.export_to_path(child, blocker / "exports")
        errors = [e for e in logs if e.get("event_type") == "system_error"]
        assert len(errors) == 1
        assert errors[0]["details"] == {"operation": "export_ledger", "child_id": child.id}


class FailingTransactionStorage(CsvTransactionStorage):
    """A ledger whose writes always fail."""

    def replace_all(self, child, transactions, action):
        raise IoFailureError("disk full")


class TestStorageFailures:
    """Tests for ledger writes that fail."""

    def test_rewrite_failure_is_audited_and_raised(self, tmp_path, clock, child):
        """Test the error is logged once and reaches the caller."""
        service = TransactionService(
            transaction_storage=FailingTransactionStorage(CsvDataClient(tmp_path)),
            clock=clock,
        )

        with capture_logs() as logs:
            with pytest.raises(IoFailureError, match="disk full"):
                service.add_transaction(child, "10", "Gift")

        errors = [e for e in logs if e.get("event_type") == "system_error"]
        assert len(errors) == 1
        assert errors[0]["error_message"] == "disk full"
        assert errors[0]["details"]["operation"] == "rewrite_ledger"
        assert errors[0]["correlation_id"] is not None
        assert not (tmp_path / child.directory / "transactions.csv").exists()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
