"""
Pytest configuration for health tracker analytics tests
"""

import pytest
import sys
import os
from datetime import datetime, timedelta, timezone

# Keep test output quiet and independent of a developer .env
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Add parent directory to path to import health_tracker modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))


FIXED_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed reference time for date-dependent calculations"""
    return FIXED_NOW


@pytest.fixture
def sample_records():
    """Weight and steps records spread over the last two weeks"""
    return [
        {"id": 1, "type": "weight", "value": 82.0, "unit": "kg", "recorded_at": "2024-06-01T08:00:00Z"},
        {"id": 2, "type": "weight", "value": 80.0, "unit": "kg", "recorded_at": "2024-06-10T08:00:00Z"},
        {"id": 3, "type": "weight", "value": 79.0, "unit": "kg", "recorded_at": "2024-06-14T08:00:00Z"},
        {"id": 4, "type": "steps", "value": 9000, "unit": "steps", "recorded_at": "2024-06-13T20:00:00Z"},
        {"id": 5, "type": "steps", "value": 11000, "unit": "steps", "recorded_at": "2024-06-14T20:00:00Z"},
    ]


@pytest.fixture
def sample_goals():
    """One active weight goal and one completed steps goal"""
    return [
        {
            "id": 10,
            "type": "weight",
            "current_value": 79.0,
            "target_value": 75.0,
            "target_date": "2024-09-01T00:00:00Z",
            "status": "active",
        },
        {
            "id": 11,
            "type": "steps",
            "current_value": 10000,
            "target_value": 10000,
            "status": "completed",
        },
    ]


@pytest.fixture
def trend_series():
    """Five daily weight readings with a steady upward trend"""
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return [
        {"date": (start + timedelta(days=i)).isoformat(), "value": 70.0 + i, "unit": "kg"}
        for i in range(5)
    ]


@pytest.fixture
def future_date():
    """ISO timestamp 90 days from the real current time, for create payloads"""
    return (datetime.now(timezone.utc) + timedelta(days=90)).isoformat()
