"""
User Profile Service

Profile completeness and the rules around fitness profiles, fitness goals,
workout preferences and training constraints. Functions take and return
pydantic models; callers own persistence.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, ValidationError

from health_tracker.core.constants import PROFILE_COMPLETENESS_FIELDS
from health_tracker.core.error_handling import (
    NotFoundError,
    ProfileValidationError,
    first_validation_message,
)
from health_tracker.core.logging import log_audit, log_warning
from health_tracker.schemas.profile_schemas import (
    SEVERITY_RANK,
    FitnessGoal,
    FitnessGoalCreate,
    FitnessGoalStatus,
    FitnessLevel,
    FitnessProfile,
    FitnessProfileCreate,
    FitnessProfileUpdate,
    ProfileActivityLevel,
    UserConstraint,
    UserConstraintCreate,
    UserPreferences,
)

logger = logging.getLogger(__name__)

# Applied when a new profile omits them
PROFILE_DEFAULTS = {
    "fitness_level": FitnessLevel.BEGINNER,
    "experience_years": 0,
    "timezone": "UTC",
    "activity_level": ProfileActivityLevel.MODERATE,
}


def _require_user_id(user_id: Any) -> str:
    if not isinstance(user_id, str) or not user_id.strip():
        raise ProfileValidationError("Invalid user ID")
    return user_id


def _validate(model, data: Any, user_id: str, what: str):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        log_warning(f"{what} validation failed for user {user_id}: {len(e.errors())} error(s)", logger_name=__name__)
        raise ProfileValidationError(f"Validation failed: {first_validation_message(e)}") from e


def _field_value(profile: Any, field_name: str) -> Any:
    if isinstance(profile, Mapping):
        return profile.get(field_name)
    return getattr(profile, field_name, None)


# ============================================
# PROFILE
# ============================================

def calculate_profile_completeness(profile: Union[BaseModel, Mapping[str, Any]]) -> int:
    """
    Percentage of the seven profile fields that are filled in.

    A field counts when it is not None and not an empty string; 0 counts as
    filled.
    """
    completed = [
        name for name in PROFILE_COMPLETENESS_FIELDS
        if _field_value(profile, name) not in (None, "")
    ]
    return round(len(completed) / len(PROFILE_COMPLETENESS_FIELDS) * 100)


def has_completeness_relevant_fields(updates: Mapping[str, Any]) -> bool:
    return any(name in updates for name in PROFILE_COMPLETENESS_FIELDS)


def create_profile(
    user_id: str,
    profile_data: Union[FitnessProfileCreate, Mapping[str, Any]],
    existing_profile: Optional[FitnessProfile] = None,
) -> FitnessProfile:
    """
    Validate profile data, apply defaults and compute completeness.

    Raises:
        ProfileValidationError: invalid user id or profile data, or a
            profile already exists for the user
    """
    user_id = _require_user_id(user_id)
    if existing_profile is not None:
        raise ProfileValidationError("User profile already exists")

    payload = _validate(FitnessProfileCreate, profile_data, user_id, "Profile")
    values = payload.model_dump()
    for name, default in PROFILE_DEFAULTS.items():
        if values.get(name) in (None, ""):
            values[name] = default
    # Defaults take part in the level/experience combination check
    payload = _validate(FitnessProfileCreate, values, user_id, "Profile")

    now = datetime.now(timezone.utc)
    profile = FitnessProfile(user_id=user_id, created_at=now, updated_at=now, **payload.model_dump())
    profile = profile.model_copy(update={"profile_completeness": calculate_profile_completeness(profile)})

    log_audit("profile_created", user_id, {"completeness": profile.profile_completeness})
    return profile


def update_profile(
    profile: Optional[FitnessProfile],
    updates: Union[FitnessProfileUpdate, Mapping[str, Any]],
) -> FitnessProfile:
    """
    Apply a partial update; completeness is recomputed only when one of the
    completeness fields is part of the update.
    """
    if profile is None:
        raise NotFoundError("User profile not found")

    payload = _validate(FitnessProfileUpdate, updates, profile.user_id, "Profile update")
    changes = payload.model_dump(exclude_unset=True)

    merged = profile.model_copy(update=changes)
    completeness = profile.profile_completeness
    if has_completeness_relevant_fields(changes):
        completeness = calculate_profile_completeness(merged)

    # Re-run combination checks on the merged profile
    _validate(FitnessProfileUpdate, merged.model_dump(include=set(PROFILE_COMPLETENESS_FIELDS)),
              profile.user_id, "Profile update")

    updated = merged.model_copy(update={
        "profile_completeness": completeness,
        "updated_at": datetime.now(timezone.utc),
    })
    log_audit("profile_updated", profile.user_id, {
        "updated_fields": sorted(changes),
        "completeness": completeness,
    })
    return updated


# ============================================
# FITNESS GOALS
# ============================================

def create_fitness_goal(
    user_id: str,
    goal_data: Union[FitnessGoalCreate, Mapping[str, Any]],
    goal_id: Optional[Union[int, str]] = None,
) -> FitnessGoal:
    user_id = _require_user_id(user_id)
    payload = _validate(FitnessGoalCreate, goal_data, user_id, "Fitness goal")
    goal = FitnessGoal(
        id=goal_id,
        user_id=user_id,
        created_at=datetime.now(timezone.utc),
        **payload.model_dump(),
    )
    log_audit("fitness_goal_created", user_id, {"goal_id": goal_id, "goal_type": goal.goal_type.value})
    return goal


def archive_fitness_goal(goal: FitnessGoal) -> FitnessGoal:
    """Archiving marks the goal completed"""
    log_audit("fitness_goal_archived", goal.user_id, {"goal_id": goal.id})
    return goal.model_copy(update={"status": FitnessGoalStatus.COMPLETED})


def filter_fitness_goals(
    goals: Iterable[FitnessGoal],
    status: Optional[Union[FitnessGoalStatus, str]] = None,
    goal_type: Optional[str] = None,
) -> List[FitnessGoal]:
    """Goals matching the filters, newest first"""
    status_value = getattr(status, "value", status)
    type_value = getattr(goal_type, "value", goal_type)
    matching = [
        g for g in goals
        if (status_value is None or g.status.value == status_value)
        and (type_value is None or g.goal_type.value == type_value)
    ]
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(matching, key=lambda g: g.created_at or epoch, reverse=True)


# ============================================
# PREFERENCES
# ============================================

def update_preferences(
    user_id: str,
    preferences: Union[UserPreferences, Mapping[str, Any]],
    existing: Optional[UserPreferences] = None,
) -> UserPreferences:
    """
    Merge a preferences payload over the existing preferences (or the
    defaults) and validate the result.
    """
    user_id = _require_user_id(user_id)
    base = existing.model_dump() if existing is not None else {}
    incoming = preferences.model_dump(exclude_unset=True) if isinstance(preferences, BaseModel) else dict(preferences)
    result = _validate(UserPreferences, {**base, **incoming}, user_id, "Preferences")

    log_audit("preferences_updated", user_id, {"is_new": existing is None, "fields": sorted(incoming)})
    return result


def reset_preferences(user_id: str) -> UserPreferences:
    user_id = _require_user_id(user_id)
    log_audit("preferences_reset", user_id, {})
    return UserPreferences()


# ============================================
# CONSTRAINTS
# ============================================

def add_constraint(
    user_id: str,
    constraint_data: Union[UserConstraintCreate, Mapping[str, Any]],
    constraint_id: Optional[Union[int, str]] = None,
) -> UserConstraint:
    user_id = _require_user_id(user_id)
    payload = _validate(UserConstraintCreate, constraint_data, user_id, "Constraint")
    constraint = UserConstraint(
        id=constraint_id,
        user_id=user_id,
        created_at=datetime.now(timezone.utc),
        **payload.model_dump(),
    )
    log_audit("constraint_added", user_id, {
        "constraint_id": constraint_id,
        "constraint_type": constraint.constraint_type.value,
        "severity": constraint.severity.value,
    })
    return constraint


def remove_constraint(constraints: Iterable[UserConstraint], constraint_id: Union[int, str]) -> List[UserConstraint]:
    """
    Soft-delete a constraint by clearing its is_active flag.

    Raises:
        NotFoundError: no constraint has constraint_id
    """
    result = []
    found = False
    for constraint in constraints:
        if constraint.id == constraint_id:
            found = True
            constraint = constraint.model_copy(update={"is_active": False})
            log_audit("constraint_removed", constraint.user_id, {"constraint_id": constraint_id})
        result.append(constraint)
    if not found:
        raise NotFoundError(f"Constraint not found: {constraint_id}")
    return result


def get_active_constraints(constraints: Iterable[UserConstraint]) -> List[UserConstraint]:
    """Active constraints, most severe first, newest first within a severity"""
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    active = [c for c in constraints if c.is_active]
    return sorted(
        active,
        key=lambda c: (SEVERITY_RANK[c.severity], c.created_at or epoch),
        reverse=True,
    )


def get_profile_stats(
    profile: Optional[FitnessProfile],
    goals: Iterable[FitnessGoal] = (),
    constraints: Iterable[UserConstraint] = (),
    preferences: Optional[UserPreferences] = None,
) -> dict:
    return {
        "profile_completeness": profile.profile_completeness if profile else 0,
        "active_goals_count": len(filter_fitness_goals(goals, status=FitnessGoalStatus.ACTIVE)),
        "active_constraints_count": len(get_active_constraints(constraints)),
        "has_preferences": preferences is not None,
    }
