"""
Tests for dashboard health statistics.
"""
from datetime import datetime

import pytest

from health_tracker.core.error_handling import HealthDataValidationError
from health_tracker.services.health_stats_service import (
    calculate_health_stats,
    calculate_weekly_progress,
)


class TestWeeklyProgress:
    """Week-over-week change in logging activity."""

    @pytest.mark.parametrize("this_week,previous_week,expected", [
        (6, 4, 50.0),
        (3, 4, -25.0),
        (1, 3, -67.0),
        (4, 4, 0.0),
        (5, 0, 100.0),
        (0, 0, 0.0),
        (0, 2, -100.0),
    ])
    def test_progress(self, this_week, previous_week, expected):
        assert calculate_weekly_progress(this_week, previous_week) == expected


class TestHealthStats:

    def test_counts(self, sample_records, sample_goals, now):
        stats = calculate_health_stats(sample_records, sample_goals, now=now)

        assert stats.total_records == 5
        assert stats.active_goals == 1
        assert stats.completed_goals == 1
        assert stats.weekly_records == 4
        assert stats.previous_week_records == 0
        assert stats.weekly_progress == 100.0

    def test_previous_week_window(self, now):
        records = [
            {"type": "steps", "value": 5000, "recorded_at": "2024-06-02T12:00:00Z"},
            {"type": "steps", "value": 5000, "recorded_at": "2024-06-08T11:59:00Z"},
            {"type": "steps", "value": 5000, "recorded_at": "2024-06-08T12:00:00Z"},
        ]
        stats = calculate_health_stats(records, [], now=now)

        assert stats.previous_week_records == 2
        assert stats.weekly_records == 1
        assert stats.weekly_progress == -50.0

    def test_naive_now_is_utc(self, sample_records, sample_goals, now):
        naive = calculate_health_stats(sample_records, sample_goals, now=datetime(2024, 6, 15, 12, 0))
        assert naive == calculate_health_stats(sample_records, sample_goals, now=now)
        assert naive.weekly_records == 4

    def test_empty(self, now):
        stats = calculate_health_stats([], [], now=now)
        assert stats.to_dict() == {
            "total_records": 0,
            "active_goals": 0,
            "completed_goals": 0,
            "weekly_records": 0,
            "previous_week_records": 0,
            "weekly_progress": 0.0,
        }

    def test_invalid_goal(self, now):
        with pytest.raises(HealthDataValidationError):
            calculate_health_stats([], [{"type": "weight"}], now=now)
