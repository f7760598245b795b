"""Tests for the CSV record codec."""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from allowance_tracker.models.goal import GoalState
from allowance_tracker.models.ledger import Transaction
from allowance_tracker.services.storage.codec import (
    AllowanceScheduleCodec,
    ChildCodec,
    ControlAttemptCodec,
    GlobalConfigCodec,
    GoalCodec,
    TransactionCodec,
    decode_timestamp,
    encode_timestamp,
)
from allowance_tracker.services.storage.interface import (
    MalformedDateError,
    MalformedRecordError,
)


EST = timezone(timedelta(hours=-5))


class TestTimestamps:
    """Tests for timestamp parsing and formatting."""

    def test_canonical_form(self):
        """Test timestamps are written at second precision with an offset."""
        value = datetime(2025, 1, 20, 10, 0, 0, tzinfo=EST)
        assert encode_timestamp(value) == "2025-01-20T10:00:00-05:00"

    def test_canonical_decode(self):
        """Test the canonical format keeps its offset."""
        value = decode_timestamp("2025-01-20T10:00:00-05:00", EST)
        assert value == datetime(2025, 1, 20, 10, 0, 0, tzinfo=EST)
        assert value.utcoffset() == timedelta(hours=-5)

    def test_fractional_seconds_dropped(self):
        """Test RFC 3339 with a fraction is accepted and truncated."""
        value = decode_timestamp("2025-01-20T15:00:00.123Z", EST)
        assert value == datetime(2025, 1, 20, 15, 0, 0, tzinfo=timezone.utc)
        assert value.microsecond == 0

    def test_date_only_uses_legacy_offset(self):
        """Test bare dates become midnight at the legacy offset."""
        value = decode_timestamp("2024-12-25", EST)
        assert value == datetime(2024, 12, 25, 0, 0, 0, tzinfo=EST)

    @pytest.mark.parametrize("text", [
        "",
        "yesterday",
        "2025-01-20T10:00:00",
        "20/01/2025",
        "2025-13-01",
    ])
    def test_unrecognized_formats_rejected(self, text):
        """Test anything outside the accepted list is an error."""
        with pytest.raises(MalformedDateError):
            decode_timestamp(text, EST)


class TestTransactionCodec:
    """Tests for transaction rows."""

    ROW = {
        "id": "in-1737385200000-ab12",
        "child_id": "child::1735740000000",
        "amount": "10.00",
        "description": "Birthday gift, from grandma",
        "occurred_at": "2025-01-20T10:00:00-05:00",
        "balance": "10.00",
    }

    def test_canonical_row_round_trip(self):
        """Test encode(decode(row)) == row."""
        codec = TransactionCodec(legacy_utc_offset_minutes=-300)
        assert codec.encode(codec.decode(self.ROW)) == self.ROW

    def test_entity_round_trip(self):
        """Test decode(encode(tx)) == tx."""
        codec = TransactionCodec(legacy_utc_offset_minutes=-300)
        tx = Transaction(
            id="ex-1737385200000-ff00",
            child_id="child::1",
            amount=Decimal("-3.5"),
            description="Snack",
            occurred_at=datetime(2025, 1, 21, 8, 30, 0, tzinfo=EST),
            balance=Decimal("6.5"),
        )
        assert codec.decode(codec.encode(tx)) == tx
        assert codec.encode(tx)["amount"] == "-3.50"

    def test_legacy_row_normalized_on_encode(self):
        """Test a legacy date is rewritten canonically."""
        codec = TransactionCodec(legacy_utc_offset_minutes=-300)
        row = dict(self.ROW, occurred_at="2025-01-20")
        assert codec.encode(codec.decode(row))["occurred_at"] == "2025-01-20T00:00:00-05:00"

    def test_bad_amount(self):
        """Test non-numeric amounts are malformed."""
        codec = TransactionCodec(legacy_utc_offset_minutes=-300)
        with pytest.raises(MalformedRecordError, match="amount"):
            codec.decode(dict(self.ROW, amount="ten"))

    def test_amount_too_large_for_cents(self):
        """Test an amount that cannot be held at two places is malformed."""
        codec = TransactionCodec(legacy_utc_offset_minutes=-300)
        with pytest.raises(MalformedRecordError, match="too large"):
            codec.decode(dict(self.ROW, amount="1e30"))

    def test_missing_column(self):
        """Test rows missing a column are malformed."""
        codec = TransactionCodec(legacy_utc_offset_minutes=-300)
        row = dict(self.ROW)
        del row["balance"]
        with pytest.raises(MalformedRecordError, match="balance"):
            codec.decode(row)

    def test_empty_description_fails_model_validation(self):
        """Test model validation errors surface as malformed records."""
        codec = TransactionCodec(legacy_utc_offset_minutes=-300)
        with pytest.raises(MalformedRecordError):
            codec.decode(dict(self.ROW, description=""))


class TestOtherCodecs:
    """Round trips for the remaining entities."""

    def test_goal_row(self):
        """Test goal rows round trip and parse state."""
        codec = GoalCodec(legacy_utc_offset_minutes=-300)
        row = {
            "id": "goal::child::1_1737385200000",
            "child_id": "child::1",
            "description": "New bike",
            "target_amount": "40.00",
            "state": "active",
            "created_at": "2025-01-20T10:00:00-05:00",
            "updated_at": "2025-01-20T10:00:00-05:00",
        }
        goal = codec.decode(row)
        assert goal.state == GoalState.ACTIVE
        assert codec.encode(goal) == row

    def test_goal_unknown_state(self):
        """Test unknown goal states are malformed."""
        codec = GoalCodec(legacy_utc_offset_minutes=-300)
        row = {
            "id": "g",
            "child_id": "c",
            "description": "d",
            "target_amount": "1.00",
            "state": "paused",
            "created_at": "2025-01-20T10:00:00-05:00",
            "updated_at": "2025-01-20T10:00:00-05:00",
        }
        with pytest.raises(MalformedRecordError, match="paused"):
            codec.decode(row)

    def test_child_row(self):
        """Test child rows keep the birthdate as a date."""
        codec = ChildCodec(legacy_utc_offset_minutes=-300)
        row = {
            "id": "child::1735740000000",
            "name": "Alex",
            "birthdate": "2015-06-01",
            "directory": "alex",
            "created_at": "2025-01-01T09:00:00-05:00",
            "updated_at": "2025-01-01T09:00:00-05:00",
        }
        child = codec.decode(row)
        assert child.birthdate == date(2015, 6, 1)
        assert codec.encode(child) == row

    def test_schedule_row(self):
        """Test schedule booleans and integers."""
        codec = AllowanceScheduleCodec(legacy_utc_offset_minutes=-300)
        row = {
            "child_id": "child::1",
            "amount": "5.00",
            "day_of_week": "4",
            "interval_weeks": "2",
            "is_active": "false",
            "created_at": "2025-01-01T09:00:00-05:00",
            "updated_at": "2025-01-02T09:00:00-05:00",
        }
        schedule = codec.decode(row)
        assert schedule.is_active is False
        assert schedule.interval_weeks == 2
        assert codec.encode(schedule) == row

    def test_schedule_bad_bool(self):
        """Test booleans must be true/false."""
        codec = AllowanceScheduleCodec(legacy_utc_offset_minutes=-300)
        row = {
            "child_id": "child::1",
            "amount": "5.00",
            "day_of_week": "4",
            "interval_weeks": "1",
            "is_active": "maybe",
            "created_at": "2025-01-01T09:00:00-05:00",
            "updated_at": "2025-01-01T09:00:00-05:00",
        }
        with pytest.raises(MalformedRecordError, match="is_active"):
            codec.decode(row)

    def test_control_attempt_row(self):
        """Test control attempt rows round trip."""
        codec = ControlAttemptCodec(legacy_utc_offset_minutes=-300)
        row = {
            "id": "7",
            "timestamp": "2025-01-20T10:00:00-05:00",
            "attempted_value": "Ice Cold",
            "success": "true",
        }
        assert codec.encode(codec.decode(row)) == row

    def test_global_config_empty_directory(self):
        """Test an empty active child directory means none."""
        codec = GlobalConfigCodec(legacy_utc_offset_minutes=-300)
        row = {
            "active_child_directory": "",
            "data_format_version": "1.0",
            "created_at": "2025-01-01T09:00:00-05:00",
            "updated_at": "2025-01-01T09:00:00-05:00",
        }
        config = codec.decode(row)
        assert config.active_child_directory is None
        assert codec.encode(config) == row


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
