"""
Pydantic schemas for behavior events, recognized micro-behavior patterns and
exercise logs used by habit analytics.
"""

import re
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from health_tracker.schemas.health_schemas import UTCDateTime


class EntityType(str, Enum):
    HEALTH_RECORD = "health_record"
    TRAINING_SESSION = "training_session"
    EXERCISE_LOG = "exercise_log"
    HEALTH_GOAL = "health_goal"
    UI_INTERACTION = "ui_interaction"


class HabitTimeRange(str, Enum):
    WEEK = "7d"
    MONTH = "30d"
    QUARTER = "90d"
    YEAR = "1y"


class HabitTrend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


COMMON_EVENT_NAMES = {
    "workout_started",
    "workout_completed",
    "workout_paused",
    "health_record_added",
    "health_record_updated",
    "health_record_deleted",
    "health_record_viewed",
    "health_records_queried",
    "goal_created",
    "goal_updated",
    "goal_achieved",
    "goal_progress_viewed",
    "training_plan_created",
    "training_plan_started",
    "exercise_log_created",
    "ui_click",
    "ui_view",
    "ui_interaction",
    "page_view",
    "component_mounted",
    "health_overview_viewed",
    "exercise_overview_viewed",
    "stats_viewed",
    "quick_action_clicked",
}

EVENT_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


class BehaviorEvent(BaseModel):
    """
    A tracked user action.

    ``context`` carries free-form details; habit analytics reads
    behavior_type, mood, energy_level, location, time_of_day, outcome,
    success and completed from it.
    """
    id: Optional[Union[int, str]] = None
    user_id: Optional[str] = None
    event_name: str = Field(..., min_length=1, max_length=100)
    entity_type: Optional[EntityType] = None
    entity_id: Optional[Union[int, str]] = None
    context: Dict[str, Any] = Field(default_factory=dict)
    created_at: UTCDateTime

    @field_validator("event_name")
    @classmethod
    def validate_event_name(cls, event_name: str) -> str:
        if not EVENT_NAME_PATTERN.match(event_name):
            raise ValueError("Event name must contain only alphanumeric characters, underscores, and hyphens")
        if event_name not in COMMON_EVENT_NAMES and "_" not in event_name:
            raise ValueError("Event name should be a known event or follow snake_case convention with underscores")
        return event_name

    class Config:
        from_attributes = True


class MicroBehaviorPattern(BaseModel):
    id: Optional[Union[int, str]] = None
    user_id: Optional[str] = None
    behavior_type: str = Field(..., min_length=1, max_length=100)
    strength: float = Field(0, ge=0, le=100)
    confidence: float = Field(0, ge=0, le=100)
    triggers: List[str] = Field(default_factory=list)
    context: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        from_attributes = True


class ExerciseLog(BaseModel):
    """Logged set or session; rpe is the rate of perceived exertion"""
    id: Optional[Union[int, str]] = None
    user_id: Optional[str] = None
    rpe: Optional[float] = Field(None, ge=1, le=10)
    created_at: UTCDateTime

    class Config:
        from_attributes = True
