"""
Health Record Service

Records are created by user action and only ever changed through explicit
corrections. Each entry point validates the incoming payload, returns the
stored-record model and writes an audit entry; callers own persistence.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from health_tracker.core.error_handling import (
    HealthDataValidationError,
    NotFoundError,
    first_validation_message,
)
from health_tracker.core.logging import log_audit
from health_tracker.schemas.health_schemas import (
    HealthRecord,
    HealthRecordBatch,
    HealthRecordCorrection,
    HealthRecordCreate,
    check_value_for_unit,
)

logger = logging.getLogger(__name__)


def _validate(model, data: Any):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise HealthDataValidationError(f"Validation failed: {first_validation_message(e)}") from e


def create_record(
    record_data: Union[HealthRecordCreate, Mapping[str, Any]],
    record_id: Optional[Union[int, str]] = None,
    user_id: Optional[str] = None,
) -> HealthRecord:
    """
    Validate a new measurement.

    Raises:
        HealthDataValidationError: unknown unit, value out of range for its
            unit, or a recorded_at in the future or more than a year ago
    """
    payload = _validate(HealthRecordCreate, record_data)
    record = HealthRecord(id=record_id, user_id=user_id, **payload.model_dump())

    log_audit("health_record_created", user_id, {
        "record_id": record_id,
        "type": record.type,
        "unit": record.unit,
    })
    return record


def create_records(
    records_data: Iterable[Union[HealthRecordCreate, Mapping[str, Any]]],
    user_id: Optional[str] = None,
) -> List[HealthRecord]:
    """
    Validate a batch of up to 50 measurements; one bad entry rejects the
    whole batch.
    """
    batch = _validate(HealthRecordBatch, {"records": list(records_data)})
    records = [HealthRecord(user_id=user_id, **payload.model_dump()) for payload in batch.records]

    log_audit("health_records_created", user_id, {
        "count": len(records),
        "types": sorted({r.type for r in records}),
    })
    return records


def correct_record(
    record: Optional[HealthRecord],
    corrections: Union[HealthRecordCorrection, Mapping[str, Any]],
) -> HealthRecord:
    """
    Apply a correction to a stored record.

    Only the corrected fields are validated on their own; the value/unit
    combination is checked on the corrected record.

    Raises:
        NotFoundError: record is None
        HealthDataValidationError: the correction is empty or invalid
    """
    if record is None:
        raise NotFoundError("Health record not found")

    payload = _validate(HealthRecordCorrection, corrections)
    changes = payload.model_dump(exclude_none=True)
    corrected = record.model_copy(update=changes)

    try:
        check_value_for_unit(corrected.value, corrected.unit)
    except ValueError as e:
        raise HealthDataValidationError(str(e), field="value") from e

    logger.debug(f"Corrected record {record.id}: {sorted(changes)}")
    log_audit("health_record_corrected", record.user_id, {
        "record_id": record.id,
        "corrected_fields": sorted(changes),
        "corrected_at": datetime.now(timezone.utc).isoformat(),
    })
    return corrected
