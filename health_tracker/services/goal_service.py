"""
Health Goal Service

Goal progress calculations and the business rules around health goals:
- Progress percentage (clamped for display, raw for analytics)
- One active goal per health type
- current_value refreshed from the most recent matching record
- Soft delete by pausing
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Sequence, Union

from pydantic import ValidationError

from health_tracker.core.error_handling import (
    GoalConflictError,
    HealthDataValidationError,
    first_validation_message,
    validate_items,
)
from health_tracker.core.logging import log_audit
from health_tracker.models.health_models import GoalProgress
from health_tracker.schemas.health_schemas import (
    GoalStatus,
    HealthGoal,
    HealthGoalCreate,
    HealthGoalUpdate,
    HealthRecord,
    parse_datetime,
)

logger = logging.getLogger(__name__)


# ============================================
# PROGRESS
# ============================================

def calculate_raw_goal_progress(current_value: float, target_value: float) -> float:
    """current / target x 100, unclamped, rounded to 2 decimals; 0 for a non-positive target."""
    if not target_value > 0 or not math.isfinite(current_value) or not math.isfinite(target_value):
        return 0.0
    return round(current_value / target_value * 100, 2)


def calculate_goal_progress(current_value: float, target_value: float) -> float:
    """Goal progress percentage clamped to [0, 100]."""
    return max(0.0, min(100.0, calculate_raw_goal_progress(current_value, target_value)))


def latest_record_for_type(records: Iterable[Any], health_type: str) -> Optional[HealthRecord]:
    """Most recent record of a health type, or None"""
    matching = [r for r in validate_items(records, HealthRecord, "record") if r.type == health_type]
    if not matching:
        return None
    return max(matching, key=lambda r: r.recorded_at)


def build_goal_progress(
    goal: Union[HealthGoal, Any],
    records: Sequence[Any] = (),
    now: Optional[datetime] = None,
) -> GoalProgress:
    """
    Progress snapshot for one goal.

    The current value comes from the latest matching record when one exists,
    otherwise from the goal itself.
    """
    goal = HealthGoal.model_validate(goal)
    now = parse_datetime(now) if now is not None else datetime.now(timezone.utc)

    latest = latest_record_for_type(records, goal.type)
    current_value = latest.value if latest else goal.current_value

    days_remaining = None
    is_overdue = False
    if goal.target_date is not None:
        days_remaining = math.ceil((goal.target_date - now).total_seconds() / 86400)
        is_overdue = goal.status == GoalStatus.ACTIVE and goal.target_date < now

    return GoalProgress(
        goal_id=goal.id,
        type=goal.type,
        current_value=current_value,
        target_value=goal.target_value,
        progress_percentage=calculate_goal_progress(current_value, goal.target_value),
        raw_progress_percentage=calculate_raw_goal_progress(current_value, goal.target_value),
        status=goal.status.value,
        days_remaining=days_remaining,
        is_overdue=is_overdue,
        last_recorded_at=latest.recorded_at.isoformat() if latest else None,
    )


# ============================================
# BUSINESS RULES
# ============================================

def ensure_single_active_goal(
    existing_goals: Iterable[Any],
    health_type: str,
    exclude_goal_id: Optional[Union[int, str]] = None,
) -> None:
    """
    Raises:
        GoalConflictError: another active goal already exists for health_type
    """
    for raw in existing_goals:
        goal = HealthGoal.model_validate(raw)
        if goal.status != GoalStatus.ACTIVE or goal.type != health_type:
            continue
        if exclude_goal_id is not None and goal.id == exclude_goal_id:
            continue
        raise GoalConflictError(f"An active goal already exists for health type: {health_type}")


def refresh_goal_current_value(goal: HealthGoal, records: Sequence[Any]) -> HealthGoal:
    """Copy of goal with current_value set from the most recent matching record"""
    latest = latest_record_for_type(records, goal.type)
    if latest is None:
        return goal
    return goal.model_copy(update={"current_value": latest.value})


def create_goal(
    goal_input: Union[HealthGoalCreate, dict],
    existing_goals: Sequence[Any],
    goal_id: Optional[Union[int, str]] = None,
    user_id: Optional[str] = None,
    records: Sequence[Any] = (),
) -> HealthGoal:
    """
    Validate and create a goal.

    Raises:
        HealthDataValidationError: the payload is invalid
        GoalConflictError: an active goal of the same type exists
    """
    try:
        payload = HealthGoalCreate.model_validate(goal_input)
    except ValidationError as e:
        raise HealthDataValidationError(f"Validation failed: {first_validation_message(e)}") from e

    if payload.status == GoalStatus.ACTIVE:
        ensure_single_active_goal(existing_goals, payload.type)

    now = datetime.now(timezone.utc)
    goal = HealthGoal(
        id=goal_id,
        user_id=user_id,
        type=payload.type,
        current_value=0,
        target_value=payload.target_value,
        target_date=payload.target_date,
        status=payload.status,
        created_at=now,
        updated_at=now,
    )
    goal = refresh_goal_current_value(goal, records)

    log_audit("health_goal_created", user_id, {
        "goal_id": goal_id,
        "type": goal.type,
        "target_value": goal.target_value,
    })
    return goal


def update_goal(
    goal: HealthGoal,
    update: Union[HealthGoalUpdate, dict],
    existing_goals: Sequence[Any] = (),
    records: Sequence[Any] = (),
) -> HealthGoal:
    """
    Apply a partial update.

    Re-activating a goal checks for conflicts; completing a goal whose target
    was not reached is allowed but logged.
    """
    try:
        payload = HealthGoalUpdate.model_validate(update)
    except ValidationError as e:
        raise HealthDataValidationError(f"Validation failed: {first_validation_message(e)}") from e

    changes = payload.model_dump(exclude_none=True)
    if payload.status == GoalStatus.ACTIVE and goal.status != GoalStatus.ACTIVE:
        ensure_single_active_goal(existing_goals, goal.type, exclude_goal_id=goal.id)

    updated = refresh_goal_current_value(goal, records).model_copy(
        update={**changes, "updated_at": datetime.now(timezone.utc)}
    )

    if payload.status == GoalStatus.COMPLETED and calculate_raw_goal_progress(
        updated.current_value, updated.target_value
    ) < 100:
        logger.warning(f"Goal {goal.id} marked completed before reaching its target")

    log_audit("health_goal_updated", goal.user_id, {
        "goal_id": goal.id,
        "updated_fields": sorted(changes),
    })
    return updated


def soft_delete_goal(goal: HealthGoal) -> HealthGoal:
    """Goals are never removed; deleting pauses them"""
    log_audit("health_goal_deleted", goal.user_id, {"goal_id": goal.id, "type": goal.type})
    return goal.model_copy(update={"status": GoalStatus.PAUSED, "updated_at": datetime.now(timezone.utc)})


def get_active_goals(goals: Iterable[Any]) -> List[HealthGoal]:
    return [g for g in (HealthGoal.model_validate(raw) for raw in goals) if g.status == GoalStatus.ACTIVE]
