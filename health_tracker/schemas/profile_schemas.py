"""
Pydantic schemas for fitness profiles, fitness goals, preferences and constraints.
"""

from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from health_tracker.schemas.health_schemas import UTCDateTime


class FitnessLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class ProfileActivityLevel(str, Enum):
    SEDENTARY = "sedentary"
    LIGHT = "light"
    MODERATE = "moderate"
    ACTIVE = "active"
    VERY_ACTIVE = "very_active"


class FitnessGoalType(str, Enum):
    WEIGHT_LOSS = "weight_loss"
    MUSCLE_GAIN = "muscle_gain"
    ENDURANCE = "endurance"
    STRENGTH = "strength"
    FLEXIBILITY = "flexibility"
    GENERAL_FITNESS = "general_fitness"
    REHABILITATION = "rehabilitation"
    MAINTENANCE = "maintenance"


class FitnessGoalStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    ARCHIVED = "archived"


class PriorityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ConstraintType(str, Enum):
    INJURY = "injury"
    SCHEDULE = "schedule"
    EQUIPMENT = "equipment"
    LOCATION = "location"
    MEDICAL = "medical"
    DIETARY = "dietary"
    MOBILITY = "mobility"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}

# Impact levels (1-5) that are consistent with each severity
SEVERITY_IMPACT_LEVELS = {
    Severity.LOW: (1, 2),
    Severity.MEDIUM: (2, 3, 4),
    Severity.HIGH: (3, 4, 5),
    Severity.CRITICAL: (4, 5),
}


class WorkoutType(str, Enum):
    STRENGTH = "strength"
    CARDIO = "cardio"
    YOGA = "yoga"
    PILATES = "pilates"
    CROSSFIT = "crossfit"
    RUNNING = "running"
    CYCLING = "cycling"
    SWIMMING = "swimming"
    HIKING = "hiking"
    DANCING = "dancing"
    MARTIAL_ARTS = "martial_arts"
    SPORTS = "sports"


class Equipment(str, Enum):
    NONE = "none"
    DUMBBELLS = "dumbbells"
    BARBELL = "barbell"
    RESISTANCE_BANDS = "resistance_bands"
    KETTLEBELL = "kettlebell"
    TREADMILL = "treadmill"
    BIKE = "bike"
    ROWING_MACHINE = "rowing_machine"
    PULL_UP_BAR = "pull_up_bar"
    YOGA_MAT = "yoga_mat"
    FOAM_ROLLER = "foam_roller"
    MEDICINE_BALL = "medicine_ball"


class TimeOfDay(str, Enum):
    EARLY_MORNING = "early_morning"
    MORNING = "morning"
    LATE_MORNING = "late_morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"
    LATE_NIGHT = "late_night"


class DayOfWeek(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class ProfileVisibility(str, Enum):
    PUBLIC = "public"
    FRIENDS = "friends"
    PRIVATE = "private"


# ============================================
# PROFILE
# ============================================

class FitnessProfileBase(BaseModel):
    fitness_level: Optional[FitnessLevel] = None
    experience_years: Optional[int] = Field(None, ge=0, le=80)
    timezone: Optional[str] = Field(None, min_length=1, max_length=50)
    date_of_birth: Optional[date] = None
    height: Optional[float] = Field(None, ge=50, le=300)  # cm
    weight: Optional[float] = Field(None, ge=20, le=500)  # kg
    activity_level: Optional[ProfileActivityLevel] = None

    @field_validator("date_of_birth")
    @classmethod
    def validate_age(cls, date_of_birth: Optional[date]) -> Optional[date]:
        if date_of_birth is None:
            return None
        today = date.today()
        age = today.year - date_of_birth.year - (
            (today.month, today.day) < (date_of_birth.month, date_of_birth.day)
        )
        if age < 13:
            raise ValueError("Age must be at least 13 years old")
        if age > 120:
            raise ValueError("Age must be less than 120 years")
        return date_of_birth

    @model_validator(mode="after")
    def validate_level_combination(self):
        if self.fitness_level == FitnessLevel.BEGINNER and (self.experience_years or 0) > 5:
            raise ValueError("Fitness level and experience combination is not reasonable")
        if self.fitness_level == FitnessLevel.EXPERT and self.experience_years == 0:
            raise ValueError("Fitness level and experience combination is not reasonable")
        return self


class FitnessProfileCreate(FitnessProfileBase):
    pass


class FitnessProfileUpdate(FitnessProfileBase):
    pass


class FitnessProfile(FitnessProfileBase):
    id: Optional[Union[int, str]] = None
    user_id: str = Field(..., min_length=1)
    profile_completeness: int = Field(0, ge=0, le=100)
    created_at: Optional[UTCDateTime] = None
    updated_at: Optional[UTCDateTime] = None

    class Config:
        from_attributes = True


# ============================================
# FITNESS GOALS
# ============================================

class FitnessGoalCreate(BaseModel):
    goal_type: FitnessGoalType
    target_value: Optional[float] = Field(None, gt=0)
    target_unit: Optional[str] = Field(None, max_length=20)
    target_date: UTCDateTime
    priority_level: PriorityLevel = PriorityLevel.MEDIUM
    status: FitnessGoalStatus = FitnessGoalStatus.ACTIVE
    description: str = Field(..., min_length=1, max_length=200)
    weekly_target: Optional[float] = Field(None, gt=0)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("target_date")
    @classmethod
    def validate_target_date(cls, target_date: datetime) -> datetime:
        now = datetime.now(timezone.utc)
        if target_date <= now or target_date > now + timedelta(days=730):
            raise ValueError("Target date must be in the future but within 2 years")
        return target_date

    @model_validator(mode="after")
    def validate_goal_timeline(self):
        if self.goal_type == FitnessGoalType.WEIGHT_LOSS and self.target_value and self.target_value > 50:
            raise ValueError("Goal target or timeline is not reasonable for the specified goal type")
        if self.goal_type == FitnessGoalType.MUSCLE_GAIN and self.target_value and self.target_value > 30:
            raise ValueError("Goal target or timeline is not reasonable for the specified goal type")

        days_until = (self.target_date - datetime.now(timezone.utc)).days
        if self.goal_type == FitnessGoalType.WEIGHT_LOSS and days_until < 30:
            raise ValueError("Weight loss goals should span at least 30 days")
        if self.goal_type == FitnessGoalType.MUSCLE_GAIN and days_until < 60:
            raise ValueError("Muscle gain goals should span at least 60 days")
        return self


class FitnessGoal(BaseModel):
    id: Optional[Union[int, str]] = None
    user_id: str
    goal_type: FitnessGoalType
    target_value: Optional[float] = None
    target_unit: Optional[str] = None
    target_date: Optional[UTCDateTime] = None
    priority_level: PriorityLevel = PriorityLevel.MEDIUM
    status: FitnessGoalStatus = FitnessGoalStatus.ACTIVE
    description: str
    weekly_target: Optional[float] = None
    notes: Optional[str] = None
    progress_percentage: float = Field(0, ge=0, le=100)
    created_at: Optional[UTCDateTime] = None

    class Config:
        from_attributes = True


# ============================================
# PREFERENCES
# ============================================

class NotificationPreferences(BaseModel):
    workout_reminders: bool = True
    goal_progress: bool = True
    weekly_summary: bool = True
    achievement_alerts: bool = True


class PrivacySettings(BaseModel):
    profile_visibility: ProfileVisibility = ProfileVisibility.PRIVATE
    share_workout_data: bool = False
    share_progress: bool = False


class UserPreferences(BaseModel):
    """Workout and app preferences; defaults are the reset state"""
    preferred_workout_types: List[WorkoutType] = Field(default_factory=list, max_length=5)
    available_equipment: List[Equipment] = Field(default_factory=list, max_length=10)
    preferred_times: List[TimeOfDay] = Field(default_factory=list)
    preferred_days: List[DayOfWeek] = Field(default_factory=list)
    session_duration_min: int = Field(30, ge=5, le=300)
    session_duration_max: int = Field(60, ge=5, le=300)
    workout_frequency_per_week: int = Field(3, ge=0, le=14)
    rest_day_preference: Optional[int] = Field(None, ge=1, le=6)
    workout_intensity_preference: int = Field(3, ge=1, le=5)
    music_preference: bool = True
    reminder_enabled: bool = True
    auto_progression_enabled: bool = True
    notification_preferences: NotificationPreferences = Field(default_factory=NotificationPreferences)
    privacy_settings: PrivacySettings = Field(default_factory=PrivacySettings)

    @model_validator(mode="after")
    def validate_schedule(self):
        if self.session_duration_min > self.session_duration_max:
            raise ValueError("Minimum session duration cannot exceed maximum session duration")
        if self.rest_day_preference is not None and len(self.preferred_days) > 7 - self.rest_day_preference:
            raise ValueError("Cannot prefer more days than available workout days")
        return self


# ============================================
# CONSTRAINTS
# ============================================

class UserConstraintCreate(BaseModel):
    constraint_type: ConstraintType
    severity: Severity = Severity.MEDIUM
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=300)
    affected_areas: Optional[List[str]] = Field(None, max_length=10)
    restrictions: Optional[List[str]] = Field(None, max_length=20)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_permanent: bool = False
    impact_level: Optional[int] = Field(None, ge=1, le=5)

    @model_validator(mode="after")
    def validate_dates_and_impact(self):
        if self.start_date and self.end_date and self.start_date >= self.end_date:
            raise ValueError("End date must be after start date")
        if self.is_permanent and self.end_date:
            raise ValueError("Permanent constraints cannot have end dates")
        if self.impact_level is not None and self.impact_level not in SEVERITY_IMPACT_LEVELS[self.severity]:
            raise ValueError("Severity and impact level are not consistent")
        return self


class UserConstraint(UserConstraintCreate):
    id: Optional[Union[int, str]] = None
    user_id: str
    is_active: bool = True
    created_at: Optional[UTCDateTime] = None

    class Config:
        from_attributes = True
