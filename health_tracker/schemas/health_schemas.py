"""
Pydantic schemas for health records, goals, reminders and analytics queries.
"""

import math
import numbers
import re
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Annotated, Any, List, Optional, Union

from pydantic import BaseModel, BeforeValidator, Field, field_validator, model_validator


class HealthMetricType(str, Enum):
    WEIGHT = "weight"
    BMI = "bmi"
    STEPS = "steps"
    SLEEP = "sleep"
    HEART_RATE = "heart_rate"
    BLOOD_PRESSURE_SYSTOLIC = "blood_pressure_systolic"
    BLOOD_PRESSURE_DIASTOLIC = "blood_pressure_diastolic"
    WATER_INTAKE = "water_intake"
    EXERCISE_MINUTES = "exercise_minutes"
    CALORIES_BURNED = "calories_burned"
    DISTANCE = "distance"
    BODY_FAT_PERCENTAGE = "body_fat_percentage"
    MUSCLE_MASS = "muscle_mass"
    GLUCOSE = "glucose"


class ScoringSystem(str, Enum):
    PERCENTAGE = "percentage"
    Z_SCORE = "z-score"
    CUSTOM = "custom"


class PredictionAlgorithm(str, Enum):
    LINEAR_REGRESSION = "linear-regression"
    MOVING_AVERAGE = "moving-average"


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    NEUTRAL = "neutral"


class GoalStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"


class Aggregation(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class ActivityLevel(str, Enum):
    SEDENTARY = "sedentary"
    LIGHTLY_ACTIVE = "lightly_active"
    MODERATELY_ACTIVE = "moderately_active"
    VERY_ACTIVE = "very_active"
    EXTREMELY_ACTIVE = "extremely_active"


# ============================================
# FIELD VALIDATORS
# ============================================

def parse_datetime(value: Any) -> datetime:
    """
    Parse an ISO date/datetime string, date or datetime into an aware UTC datetime.

    Naive values are treated as UTC. Raises ValueError for anything unparsable.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text[-1:] in ("Z", "z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Invalid date: {value!r}")
    else:
        raise ValueError(f"Invalid date: {value!r} must be an ISO date string or datetime")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def require_finite_number(value: Any) -> float:
    """Accept real numbers only; bools, strings and NaN/inf are rejected."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValueError(f"{value!r} must be a finite number")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"{value!r} must be a finite number")
    return number


FiniteNumber = Annotated[float, BeforeValidator(require_finite_number)]
UTCDateTime = Annotated[datetime, BeforeValidator(parse_datetime)]


# ============================================
# STORED ENTITIES
# ============================================

class HealthRecord(BaseModel):
    """A single measurement as it arrives from the persistence layer"""
    id: Optional[Union[int, str]] = None
    user_id: Optional[str] = None
    type: str = Field(..., min_length=1)
    value: FiniteNumber
    unit: Optional[str] = None
    recorded_at: UTCDateTime

    class Config:
        from_attributes = True


class HealthGoal(BaseModel):
    id: Optional[Union[int, str]] = None
    user_id: Optional[str] = None
    type: str = Field(..., min_length=1)
    current_value: FiniteNumber
    target_value: FiniteNumber
    target_date: Optional[UTCDateTime] = None
    status: GoalStatus = GoalStatus.ACTIVE
    created_at: Optional[UTCDateTime] = None
    updated_at: Optional[UTCDateTime] = None

    class Config:
        from_attributes = True


class TrendPoint(BaseModel):
    """Input point for predictive series"""
    date: UTCDateTime
    value: FiniteNumber
    unit: Optional[str] = None

    class Config:
        from_attributes = True


class HealthDataPoint(BaseModel):
    """Dated value used by the scoring engine's radar aggregation"""
    date: Optional[UTCDateTime] = None
    value: float
    unit: Optional[str] = None
    label: Optional[str] = None

    class Config:
        from_attributes = True


# ============================================
# SCORING PROFILE
# ============================================

class ProfileGoals(BaseModel):
    daily_steps: Optional[float] = Field(None, gt=0)
    sleep_hours: Optional[float] = Field(None, gt=0, le=24)
    water_intake: Optional[float] = Field(None, gt=0)  # ml
    exercise_minutes: Optional[float] = Field(None, gt=0)  # per week


class UserProfile(BaseModel):
    """Demographics and personal goals used to personalize scoring ranges"""
    age: Optional[int] = Field(None, ge=0, le=130)
    gender: Optional[Gender] = None
    height: Optional[float] = Field(None, gt=0)  # cm
    weight: Optional[float] = Field(None, gt=0)  # kg
    activity_level: Optional[ActivityLevel] = None
    goals: Optional[ProfileGoals] = None


# ============================================
# CREATE / UPDATE PAYLOADS
# ============================================

VALID_UNITS = [
    "kg", "lbs", "mmHg", "bpm", "steps", "hours", "ml", "oz", "kcal",
    "minutes", "mg/dL", "mmol/L", "°C", "°F", "%", "km",
]

MAX_RECORD_VALUE = 10000
MAX_BULK_RECORDS = 50
MAX_RECORD_AGE_DAYS = 365

# Upper bounds for units whose values have a natural ceiling
UNIT_VALUE_LIMITS = {
    "%": 100,
    "hours": 24,
    "minutes": 1440,
}


def check_unit(unit: str) -> str:
    if unit not in VALID_UNITS:
        raise ValueError(f"Invalid unit. Must be one of: {', '.join(VALID_UNITS)}")
    return unit


def check_recorded_at(recorded_at: datetime) -> datetime:
    now = datetime.now(timezone.utc)
    if recorded_at > now:
        raise ValueError("Recorded date cannot be in the future")
    if recorded_at < now - timedelta(days=MAX_RECORD_AGE_DAYS):
        raise ValueError("Recorded date cannot be more than one year ago")
    return recorded_at


def check_value_for_unit(value: float, unit: Optional[str]) -> None:
    limit = UNIT_VALUE_LIMITS.get(unit)
    if limit is not None and value > limit:
        raise ValueError("Value is not reasonable for the specified unit")


# Reasonable target ranges per goal type
GOAL_TARGET_RANGES = {
    "weight": (30, 300),
    "blood_pressure_systolic": (50, 200),
    "steps": (1000, 50000),
    "bmi": (10, 50),
    "heart_rate": (30, 300),
}

CRON_PATTERN = re.compile(
    r"^((((\d+,)+\d+|(\d+(/|-|#)\d+)|\d+L?|\*(/\d+)?|L(-\d+)?|\?|[A-Z]{3}(-[A-Z]{3})?) ?){5})$"
    r"|^(@(annually|yearly|monthly|weekly|daily|hourly|reboot))$"
    r"|^(@every (\d+(ns|us|µs|ms|s|m|h))+)$"
)


class HealthRecordCreate(BaseModel):
    type: str = Field(..., min_length=1)
    value: float = Field(..., gt=0, le=MAX_RECORD_VALUE)
    unit: str = Field(..., min_length=1, max_length=20)
    recorded_at: UTCDateTime

    @field_validator("unit")
    @classmethod
    def validate_unit(cls, unit: str) -> str:
        return check_unit(unit)

    @field_validator("recorded_at")
    @classmethod
    def validate_recorded_at(cls, recorded_at: datetime) -> datetime:
        return check_recorded_at(recorded_at)

    @model_validator(mode="after")
    def validate_value_for_unit(self):
        check_value_for_unit(self.value, self.unit)
        return self


class HealthRecordCorrection(BaseModel):
    """Partial fix to a stored record; only the supplied fields are checked"""
    type: Optional[str] = Field(None, min_length=1)
    value: Optional[float] = Field(None, gt=0, le=MAX_RECORD_VALUE)
    unit: Optional[str] = Field(None, min_length=1, max_length=20)
    recorded_at: Optional[UTCDateTime] = None

    @field_validator("unit")
    @classmethod
    def validate_unit(cls, unit: Optional[str]) -> Optional[str]:
        return check_unit(unit) if unit is not None else unit

    @field_validator("recorded_at")
    @classmethod
    def validate_recorded_at(cls, recorded_at: Optional[datetime]) -> Optional[datetime]:
        return check_recorded_at(recorded_at) if recorded_at is not None else recorded_at

    @model_validator(mode="after")
    def require_one_field(self):
        if all(getattr(self, name) is None for name in type(self).model_fields):
            raise ValueError("At least one field must be provided for a correction")
        return self


class HealthRecordBatch(BaseModel):
    records: List[HealthRecordCreate] = Field(..., min_length=1, max_length=MAX_BULK_RECORDS)


class HealthGoalCreate(BaseModel):
    type: str = Field(..., min_length=1)
    target_value: float = Field(..., gt=0)
    target_date: UTCDateTime
    status: GoalStatus = GoalStatus.ACTIVE

    @field_validator("target_date")
    @classmethod
    def validate_target_date(cls, target_date: datetime) -> datetime:
        if target_date <= datetime.now(timezone.utc):
            raise ValueError("Target date must be in the future")
        return target_date

    @model_validator(mode="after")
    def validate_target_range(self):
        bounds = GOAL_TARGET_RANGES.get(self.type)
        if bounds and not bounds[0] <= self.target_value <= bounds[1]:
            raise ValueError("Target value is outside reasonable range for this health metric type")
        return self


class HealthGoalUpdate(BaseModel):
    target_value: Optional[float] = Field(None, gt=0)
    target_date: Optional[UTCDateTime] = None
    status: Optional[GoalStatus] = None

    @field_validator("target_date")
    @classmethod
    def validate_target_date(cls, target_date: Optional[datetime]) -> Optional[datetime]:
        if target_date is not None and target_date <= datetime.now(timezone.utc):
            raise ValueError("Target date must be in the future")
        return target_date

    @model_validator(mode="after")
    def require_one_field(self):
        if self.target_value is None and self.target_date is None and self.status is None:
            raise ValueError("At least one field must be provided for update")
        return self


# ============================================
# REMINDERS
# ============================================

class HealthReminderCreate(BaseModel):
    type: str = Field(..., min_length=1)
    cron_expr: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1, max_length=500)
    active: bool = True

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, message: Any) -> Any:
        return message.strip() if isinstance(message, str) else message

    @field_validator("cron_expr")
    @classmethod
    def validate_cron_expr(cls, cron_expr: str) -> str:
        cron_expr = cron_expr.strip()
        if not CRON_PATTERN.match(cron_expr):
            raise ValueError(
                'Invalid cron expression format. Use standard cron syntax (e.g., "0 9 * * *") '
                'or named schedules (e.g., "@daily")'
            )
        return cron_expr


class HealthReminder(BaseModel):
    id: Optional[Union[int, str]] = None
    user_id: Optional[str] = None
    type: str
    cron_expr: str
    message: str
    active: bool = True
    next_run_at: Optional[UTCDateTime] = None
    last_run_at: Optional[UTCDateTime] = None
    created_at: Optional[UTCDateTime] = None

    class Config:
        from_attributes = True


# ============================================
# ANALYTICS
# ============================================

class HealthAnalyticsQuery(BaseModel):
    start_date: Optional[UTCDateTime] = None
    end_date: Optional[UTCDateTime] = None
    aggregation: Aggregation = Aggregation.DAILY
