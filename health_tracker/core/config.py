"""
Application Configuration
Centralized settings for scoring, prediction, reminders and analytics
"""

import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Scoring: "percentage", "z-score" or "custom"
    DEFAULT_SCORING_SYSTEM: str = "percentage"

    # Predictions
    DEFAULT_PREDICTION_HORIZON_DAYS: int = 7
    DEFAULT_CONFIDENCE_LEVEL: float = 0.95
    MOVING_AVERAGE_WINDOW: int = 5

    # Reminders
    REMINDER_TIMEZONE: str = "UTC"
    REMINDER_POLL_INTERVAL_MINUTES: int = 5

    # Analytics
    ANALYTICS_DEFAULT_RANGE_DAYS: int = 30
    ANALYTICS_MAX_RANGE_DAYS: int = 365

    # Habit analytics
    HABIT_PATTERN_LOOKBACK_DAYS: int = 90
    HABIT_PATTERN_MIN_CONFIDENCE: float = 70

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
