"""
Tests for creating and correcting health records.
"""
import json
import logging
from datetime import datetime, timedelta, timezone

import pytest

from health_tracker.core.error_handling import HealthDataValidationError, NotFoundError
from health_tracker.schemas.health_schemas import HealthRecord
from health_tracker.services.health_record_service import (
    correct_record,
    create_record,
    create_records,
)


def _hours_ago(hours):
    return (datetime.now(timezone.utc) - timedelta(hours=hours)).isoformat()


def _audit_entries(caplog):
    return [json.loads(m.removeprefix("[AUDIT] ")) for m in caplog.messages if m.startswith("[AUDIT] ")]


@pytest.fixture
def stored_record():
    return create_record(
        {"type": "sleep", "value": 7.5, "unit": "hours", "recorded_at": _hours_ago(2)},
        record_id=21,
        user_id="user-1",
    )


class TestCreateRecord:

    def test_create(self):
        record = create_record(
            {"type": "weight", "value": 80.5, "unit": "kg", "recorded_at": _hours_ago(1)},
            record_id=7,
            user_id="user-1",
        )

        assert isinstance(record, HealthRecord)
        assert (record.id, record.user_id, record.value, record.unit) == (7, "user-1", 80.5, "kg")
        assert record.recorded_at.tzinfo is not None

    @pytest.mark.parametrize("overrides", [
        {"unit": "stone"},
        {"value": -1},
        {"unit": "%", "value": 101},
        {"recorded_at": (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()},
    ])
    def test_invalid_payload(self, overrides):
        payload = {"type": "weight", "value": 80, "unit": "kg", "recorded_at": _hours_ago(1), **overrides}

        with pytest.raises(HealthDataValidationError, match="Validation failed"):
            create_record(payload)

    def test_audit_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="audit"):
            create_record(
                {"type": "steps", "value": 9000, "unit": "steps", "recorded_at": _hours_ago(1)},
                record_id=3,
                user_id="user-1",
            )

        entry = _audit_entries(caplog)[-1]
        assert entry["event_type"] == "health_record_created"
        assert entry["user_id"] == "user-1"
        assert entry["details"] == {"record_id": 3, "type": "steps", "unit": "steps"}


class TestCreateRecords:
    """Batch creation is all or nothing."""

    def test_batch(self):
        records = create_records(
            [
                {"type": "weight", "value": 80, "unit": "kg", "recorded_at": _hours_ago(3)},
                {"type": "heart_rate", "value": 64, "unit": "bpm", "recorded_at": _hours_ago(2)},
            ],
            user_id="user-1",
        )

        assert [r.type for r in records] == ["weight", "heart_rate"]
        assert all(r.user_id == "user-1" for r in records)

    def test_one_bad_entry_rejects_batch(self):
        with pytest.raises(HealthDataValidationError):
            create_records([
                {"type": "weight", "value": 80, "unit": "kg", "recorded_at": _hours_ago(3)},
                {"type": "weight", "value": 80, "unit": "stone", "recorded_at": _hours_ago(2)},
            ])

    @pytest.mark.parametrize("count", [0, 51])
    def test_batch_size_limits(self, count):
        payload = {"type": "weight", "value": 80, "unit": "kg", "recorded_at": _hours_ago(1)}
        with pytest.raises(HealthDataValidationError):
            create_records([payload] * count)


class TestCorrectRecord:

    def test_value_correction(self, stored_record):
        corrected = correct_record(stored_record, {"value": 8})

        assert corrected.value == 8.0
        assert corrected.id == stored_record.id
        assert corrected.recorded_at == stored_record.recorded_at
        assert stored_record.value == 7.5

    def test_unit_limit_checked_on_corrected_record(self, stored_record):
        with pytest.raises(HealthDataValidationError, match="not reasonable"):
            correct_record(stored_record, {"value": 30})

    def test_changing_unit_lifts_limit(self, stored_record):
        corrected = correct_record(stored_record, {"value": 450, "unit": "minutes"})
        assert (corrected.value, corrected.unit) == (450.0, "minutes")

    @pytest.mark.parametrize("corrections", [{}, {"unit": None}, {"unit": "stone"}, {"value": 0}])
    def test_invalid_corrections(self, stored_record, corrections):
        with pytest.raises(HealthDataValidationError):
            correct_record(stored_record, corrections)

    def test_missing_record(self):
        with pytest.raises(NotFoundError):
            correct_record(None, {"value": 1})

    def test_audit_logged(self, stored_record, caplog):
        with caplog.at_level(logging.INFO, logger="audit"):
            correct_record(stored_record, {"value": 8, "type": "sleep"})

        entry = _audit_entries(caplog)[-1]
        assert entry["event_type"] == "health_record_corrected"
        assert entry["details"]["record_id"] == 21
        assert entry["details"]["corrected_fields"] == ["type", "value"]
