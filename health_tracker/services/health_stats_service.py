"""
Dashboard statistics for a user's health records and goals.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Sequence

from health_tracker.core.error_handling import validate_items
from health_tracker.models.health_models import HealthStats
from health_tracker.schemas.health_schemas import GoalStatus, HealthGoal, HealthRecord, parse_datetime

logger = logging.getLogger(__name__)


def calculate_weekly_progress(this_week: int, previous_week: int) -> float:
    """
    Percent change in record count week over week.

    100 when only this week has records, 0 when neither week does.
    """
    if previous_week == 0:
        return 100.0 if this_week > 0 else 0.0
    return float(math.floor((this_week - previous_week) / previous_week * 100 + 0.5))


def calculate_health_stats(
    records: Sequence[Any],
    goals: Sequence[Any],
    now: Optional[datetime] = None,
) -> HealthStats:
    """Record and goal counts plus week-over-week logging activity"""
    now = parse_datetime(now) if now is not None else datetime.now(timezone.utc)
    week_start = now - timedelta(days=7)
    previous_week_start = now - timedelta(days=14)

    validated_records = validate_items(records, HealthRecord, "record")
    validated_goals = validate_items(goals, HealthGoal, "goal")

    weekly = sum(1 for r in validated_records if week_start <= r.recorded_at <= now)
    previous_week = sum(1 for r in validated_records if previous_week_start <= r.recorded_at < week_start)

    return HealthStats(
        total_records=len(validated_records),
        active_goals=sum(1 for g in validated_goals if g.status == GoalStatus.ACTIVE),
        completed_goals=sum(1 for g in validated_goals if g.status == GoalStatus.COMPLETED),
        weekly_records=weekly,
        previous_week_records=previous_week,
        weekly_progress=calculate_weekly_progress(weekly, previous_week),
    )
