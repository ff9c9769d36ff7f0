"""
Health Analytics Service

Time-bucketed analytics for one health type:
- daily (YYYY-MM-DD), weekly (ISO YYYY-Www) or monthly (YYYY-MM) buckets
- mean / min / max / count per bucket
- increasing / decreasing / stable trend from the slope over bucket means
- typical range from the scoring engine
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Sequence, Tuple, Union

import pandas as pd
from pydantic import ValidationError

from health_tracker.core.config import settings
from health_tracker.core.error_handling import (
    HealthDataValidationError,
    UnknownMetricTypeError,
    first_validation_message,
    validate_items,
)
from health_tracker.models.health_models import (
    AnalyticsBucket,
    AnalyticsSummary,
    DataPoint,
    HealthAnalyticsResult,
)
from health_tracker.schemas.health_schemas import (
    Aggregation,
    HealthAnalyticsQuery,
    HealthRecord,
    parse_datetime,
)
from health_tracker.services.health_data_transformers import get_health_type_config, resolve_health_type
from health_tracker.services.health_scoring import get_health_metric_ranges
from health_tracker.services.statistics import linear_regression

logger = logging.getLogger(__name__)

BUCKET_FORMATS = {
    Aggregation.DAILY: "%Y-%m-%d",
    Aggregation.WEEKLY: "%G-W%V",
    Aggregation.MONTHLY: "%Y-%m",
}

# Slopes (per bucket) smaller than this are treated as flat
STABLE_SLOPE_THRESHOLD = 0.01


def resolve_date_range(
    query: Union[HealthAnalyticsQuery, dict, None] = None,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime, Aggregation]:
    """
    Fill in the default window and validate the requested range.

    Raises:
        HealthDataValidationError: end before start, range too long, or a
            start date in the future
    """
    try:
        query = HealthAnalyticsQuery.model_validate(query or {})
    except ValidationError as e:
        raise HealthDataValidationError(f"Validation failed: {first_validation_message(e)}") from e

    now = parse_datetime(now) if now is not None else datetime.now(timezone.utc)
    end = query.end_date or now
    start = query.start_date or end - timedelta(days=settings.ANALYTICS_DEFAULT_RANGE_DAYS)

    if end <= start:
        raise HealthDataValidationError("end_date must be after start_date", field="end_date")
    if end - start > timedelta(days=settings.ANALYTICS_MAX_RANGE_DAYS):
        raise HealthDataValidationError(
            f"Date range cannot exceed {settings.ANALYTICS_MAX_RANGE_DAYS} days", field="end_date"
        )
    if start > now:
        raise HealthDataValidationError("start_date cannot be in the future", field="start_date")

    return start, end, query.aggregation


def _records_frame(records: Sequence[Any]) -> pd.DataFrame:
    rows = [
        {
            "type": resolve_health_type(record.type),
            "value": record.value,
            "unit": record.unit,
            "recorded_at": record.recorded_at,
        }
        for record in validate_items(records, HealthRecord, "record")
    ]

    frame = pd.DataFrame(rows, columns=["type", "value", "unit", "recorded_at"])
    frame["recorded_at"] = pd.to_datetime(frame["recorded_at"], utc=True)
    return frame


def _trend_label(slope: float) -> str:
    if abs(slope) < STABLE_SLOPE_THRESHOLD:
        return "stable"
    return "increasing" if slope > 0 else "decreasing"


def aggregate_health_records(
    records: Sequence[Any],
    health_type: str,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    aggregation: Union[Aggregation, str] = Aggregation.DAILY,
    now: Optional[datetime] = None,
) -> HealthAnalyticsResult:
    """
    Bucket one health type's records inside [start_date, end_date].

    The summary's current value is the latest record of the type regardless
    of the window.
    """
    start, end, bucket = resolve_date_range(
        {"start_date": start_date, "end_date": end_date, "aggregation": aggregation}, now=now
    )
    key = resolve_health_type(health_type)
    frame = _records_frame(records)
    of_type = frame[frame["type"] == key].sort_values("recorded_at")

    current_value = float(of_type["value"].iloc[-1]) if not of_type.empty else None
    in_range = of_type[(of_type["recorded_at"] >= start) & (of_type["recorded_at"] <= end)]

    buckets = []
    if not in_range.empty:
        labels = in_range["recorded_at"].dt.strftime(BUCKET_FORMATS[bucket])
        grouped = in_range.groupby(labels)["value"].agg(["mean", "min", "max", "count"]).sort_index()
        buckets = [
            AnalyticsBucket(
                date=str(label),
                value=round(float(row["mean"]), 2),
                min=float(row["min"]),
                max=float(row["max"]),
                count=int(row["count"]),
            )
            for label, row in grouped.iterrows()
        ]

    trend, trend_value = "stable", 0.0
    if len(buckets) >= 2:
        fit = linear_regression([DataPoint(x=float(i), y=b.value) for i, b in enumerate(buckets)])
        trend, trend_value = _trend_label(fit.slope), round(fit.slope, 4)

    try:
        typical_range = get_health_metric_ranges(key).good
    except UnknownMetricTypeError:
        typical_range = None

    config = get_health_type_config(key)
    unit = config.unit
    if not unit and not of_type.empty:
        unit = of_type["unit"].dropna().iloc[-1] if of_type["unit"].notna().any() else ""

    logger.debug(f"Aggregated {len(in_range)} {key} records into {len(buckets)} {bucket.value} buckets")

    return HealthAnalyticsResult(
        type=key or health_type,
        unit=unit,
        aggregation=bucket.value,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        summary=AnalyticsSummary(
            current_value=current_value,
            trend=trend,
            trend_value=trend_value,
            total_records=int(len(in_range)),
            typical_range=typical_range,
        ),
        data=buckets,
    )
