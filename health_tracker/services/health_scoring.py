"""
Health Scoring Engine

Normalizes raw health metric values onto a 0-100 score for dashboards and
radar charts. This module is the single scoring implementation; the dashboard
transformers delegate here.

Scoring systems:
- percentage: linear position inside the metric's optimal range
- z-score: distance from a mean in standard deviations, +/-3 sd mapped to 0-100
- custom: caller-supplied per-metric scoring functions

Score bands:
- excellent >= 80
- good >= 60
- fair >= 40
- poor < 40
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from health_tracker.core.config import settings
from health_tracker.core.constants import (
    DEFAULT_NEUTRAL_SCORE,
    DEFAULT_SCORE_COLORS,
    EXCELLENT_SCORE_THRESHOLD,
    FAIR_SCORE_THRESHOLD,
    GOOD_SCORE_THRESHOLD,
    MAX_SCORE,
    MIN_SCORE,
    Z_SCORE_SPREAD,
)
from health_tracker.core.error_handling import UnknownMetricTypeError
from health_tracker.models.health_models import (
    HealthMetricRange,
    RadarMetric,
    StatisticalData,
    ValueRange,
)
from health_tracker.schemas.health_schemas import (
    Gender,
    HealthDataPoint,
    ScoringSystem,
    UserProfile,
)

logger = logging.getLogger(__name__)

ScoreFunction = Callable[[float, Optional[UserProfile]], float]


@dataclass
class CustomScoringRule:
    """Caller-defined scoring for one metric type"""
    metric_type: str
    score_function: ScoreFunction
    description: str = ""


# ============================================
# REFERENCE RANGES
# ============================================

def _bands(optimal, good, fair, poor, unit: str, higher_is_better: bool) -> HealthMetricRange:
    return HealthMetricRange(
        optimal=ValueRange(*optimal),
        good=ValueRange(*good),
        fair=ValueRange(*fair),
        poor=ValueRange(*poor),
        unit=unit,
        higher_is_better=higher_is_better,
    )


HEALTH_METRIC_RANGES: Dict[str, HealthMetricRange] = {
    "weight": _bands((50, 90), (45, 100), (40, 110), (0, 200), "kg", False),
    "bmi": _bands((18.5, 24.9), (17, 27), (15, 30), (0, 50), "kg/m²", False),
    "steps": _bands((8000, 12000), (6000, 15000), (3000, 20000), (0, 30000), "steps", True),
    "sleep": _bands((7, 9), (6, 10), (5, 11), (0, 24), "hours", False),
    "heart_rate": _bands((60, 80), (50, 90), (40, 100), (0, 200), "bpm", False),
    "blood_pressure_systolic": _bands((90, 120), (80, 130), (70, 140), (0, 200), "mmHg", False),
    "blood_pressure_diastolic": _bands((60, 80), (50, 85), (40, 90), (0, 120), "mmHg", False),
    "water_intake": _bands((2000, 3000), (1500, 3500), (1000, 4000), (0, 6000), "ml", True),
    "exercise_minutes": _bands((150, 300), (100, 400), (50, 500), (0, 1000), "min/week", True),
    "calories_burned": _bands((300, 600), (200, 800), (100, 1000), (0, 2000), "kcal", True),
    "distance": _bands((5, 10), (3, 15), (1, 20), (0, 50), "km", True),
    "body_fat_percentage": _bands((10, 20), (8, 25), (5, 30), (0, 50), "%", False),
    "muscle_mass": _bands((30, 50), (25, 55), (20, 60), (0, 80), "%", True),
    "glucose": _bands((70, 100), (60, 125), (50, 180), (0, 400), "mg/dL", False),
}

METRIC_DISPLAY_NAMES = {
    "weight": "Weight",
    "bmi": "BMI",
    "steps": "Daily Steps",
    "sleep": "Sleep Quality",
    "heart_rate": "Heart Rate",
    "blood_pressure_systolic": "Systolic BP",
    "blood_pressure_diastolic": "Diastolic BP",
    "water_intake": "Water Intake",
    "exercise_minutes": "Exercise",
    "calories_burned": "Calories Burned",
    "distance": "Distance",
    "body_fat_percentage": "Body Fat %",
    "muscle_mass": "Muscle Mass",
    "glucose": "Blood Glucose",
}

METRIC_ICONS = {
    "weight": "⚖️",
    "bmi": "📊",
    "steps": "👟",
    "sleep": "😴",
    "heart_rate": "❤️",
    "blood_pressure_systolic": "🩺",
    "blood_pressure_diastolic": "🩺",
    "water_intake": "💧",
    "exercise_minutes": "🏃",
    "calories_burned": "🔥",
    "distance": "📏",
    "body_fat_percentage": "📈",
    "muscle_mass": "💪",
    "glucose": "🩸",
}


def _metric_key(metric_type: Any) -> str:
    return getattr(metric_type, "value", metric_type)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves upward (62.5 -> 63)."""
    return int(math.floor(value + 0.5))


def _clamp_score(value: float) -> int:
    if math.isnan(value):
        return DEFAULT_NEUTRAL_SCORE
    if math.isinf(value):
        return MAX_SCORE if value > 0 else MIN_SCORE
    return max(MIN_SCORE, min(MAX_SCORE, round_half_up(value)))


def get_health_metric_ranges(metric_type: str, user_profile: Optional[UserProfile] = None) -> HealthMetricRange:
    """
    Scoring bands for a metric type, personalized when a profile is given.

    Personalization:
    - steps: optimal = daily step goal x [0.8, 1.2]
    - sleep: optimal = sleep goal +/- 0.5 h
    - water_intake: optimal = water goal x [0.9, 1.1]
    - body_fat_percentage: gender-specific optimal/good bands

    Raises:
        UnknownMetricTypeError: no ranges exist for metric_type
    """
    key = _metric_key(metric_type)
    base = HEALTH_METRIC_RANGES.get(key)
    if base is None:
        raise UnknownMetricTypeError(f"No scoring ranges for metric type: {key}")

    ranges = replace(base)
    if user_profile is None:
        return ranges

    goals = user_profile.goals
    if key == "steps" and goals and goals.daily_steps:
        ranges.optimal = ValueRange(goals.daily_steps * 0.8, goals.daily_steps * 1.2)
    elif key == "sleep" and goals and goals.sleep_hours:
        ranges.optimal = ValueRange(goals.sleep_hours - 0.5, goals.sleep_hours + 0.5)
    elif key == "water_intake" and goals and goals.water_intake:
        ranges.optimal = ValueRange(goals.water_intake * 0.9, goals.water_intake * 1.1)
    elif key == "body_fat_percentage":
        if user_profile.gender == Gender.FEMALE:
            ranges.optimal = ValueRange(16, 24)
            ranges.good = ValueRange(14, 28)
        elif user_profile.gender == Gender.MALE:
            ranges.optimal = ValueRange(10, 18)
            ranges.good = ValueRange(8, 22)

    return ranges


# ============================================
# NORMALIZATION
# ============================================

def normalize_to_percentage(
    value: float,
    target_range: Union[ValueRange, Mapping[str, float]],
    higher_is_better: bool = True,
) -> int:
    """
    Linear position of value inside target_range, as 0-100.

    Examples:
        normalize_to_percentage(8000, ValueRange(0, 10000), True) -> 80
        normalize_to_percentage(70, ValueRange(60, 100), False) -> 75
    """
    if isinstance(target_range, Mapping):
        low, high = target_range["min"], target_range["max"]
    else:
        low, high = target_range.min, target_range.max

    if math.isnan(value):
        return DEFAULT_NEUTRAL_SCORE

    width = high - low
    if not width > 0:
        return DEFAULT_NEUTRAL_SCORE
    if value < 0:
        return MIN_SCORE

    if higher_is_better:
        if value >= high:
            return MAX_SCORE
        if value <= low:
            return MIN_SCORE
        return _clamp_score((value - low) / width * 100)

    if value <= low:
        return MAX_SCORE
    if value >= high:
        return MIN_SCORE
    return _clamp_score((high - value) / width * 100)


def calculate_z_score(value: float, mean: float, standard_deviation: float) -> int:
    """
    Z-score of value mapped onto 0-100: -3 sd -> 0, mean -> 50, +3 sd -> 100.

    A non-positive (or NaN) standard deviation yields the neutral score.
    """
    if not standard_deviation > 0 or math.isnan(value) or math.isnan(mean):
        return DEFAULT_NEUTRAL_SCORE
    if math.isinf(value):
        return MAX_SCORE if value > 0 else MIN_SCORE
    if math.isinf(mean) or math.isinf(standard_deviation):
        return DEFAULT_NEUTRAL_SCORE

    z = (value - mean) / standard_deviation
    return _clamp_score((z + Z_SCORE_SPREAD) / (2 * Z_SCORE_SPREAD) * 100)


def create_custom_scoring(rules: Sequence[CustomScoringRule]) -> Callable[..., int]:
    """
    Build a scorer from custom rules.

    The returned callable takes (metric_type, value, user_profile=None) and
    returns the first matching rule's result clamped to 0-100, or the
    neutral score when no rule matches.
    """
    def score(metric_type: str, value: float, user_profile: Optional[UserProfile] = None) -> int:
        key = _metric_key(metric_type)
        for rule in rules:
            if _metric_key(rule.metric_type) == key:
                return _clamp_score(float(rule.score_function(value, user_profile)))
        return DEFAULT_NEUTRAL_SCORE

    return score


def score_health_metric(
    metric_type: str,
    value: float,
    scoring_system: Union[ScoringSystem, str, None] = None,
    user_profile: Optional[UserProfile] = None,
    custom_rules: Optional[Sequence[CustomScoringRule]] = None,
    statistical_data: Optional[StatisticalData] = None,
) -> int:
    """
    Score a metric value on 0-100 with the requested scoring system.

    z-score without statistical_data and custom without rules fall back to
    percentage scoring. No scoring system means the configured default
    (DEFAULT_SCORING_SYSTEM). An unknown scoring system or metric type
    scores 50. Never raises for numeric input.
    """
    try:
        system = ScoringSystem(_metric_key(scoring_system or settings.DEFAULT_SCORING_SYSTEM))
    except ValueError:
        logger.debug(f"Unknown scoring system {scoring_system!r}, using neutral score")
        return DEFAULT_NEUTRAL_SCORE

    value = float(value)

    if system == ScoringSystem.Z_SCORE and statistical_data is not None:
        return calculate_z_score(value, statistical_data.mean, statistical_data.standard_deviation)

    if system == ScoringSystem.CUSTOM and custom_rules:
        return create_custom_scoring(custom_rules)(metric_type, value, user_profile)

    try:
        ranges = get_health_metric_ranges(metric_type, user_profile)
    except UnknownMetricTypeError:
        return DEFAULT_NEUTRAL_SCORE
    return normalize_to_percentage(value, ranges.optimal, ranges.higher_is_better)


# ============================================
# BANDS & COLORS
# ============================================

def get_score_category(score: float) -> str:
    """excellent / good / fair / poor band for a score"""
    if math.isnan(score):
        return "poor"
    clamped = max(MIN_SCORE, min(MAX_SCORE, score))
    if clamped >= EXCELLENT_SCORE_THRESHOLD:
        return "excellent"
    if clamped >= GOOD_SCORE_THRESHOLD:
        return "good"
    if clamped >= FAIR_SCORE_THRESHOLD:
        return "fair"
    return "poor"


def get_score_color(score: float, colors: Optional[Mapping[str, str]] = None) -> str:
    """
    Hex color for the score's band.

    Scores are clamped to 0-100 first; NaN falls in the poor band and
    +inf in the excellent band.
    """
    palette = colors or DEFAULT_SCORE_COLORS
    return palette[get_score_category(score)]


# ============================================
# RADAR AGGREGATION
# ============================================

def format_metric_name(metric_type: str) -> str:
    key = _metric_key(metric_type)
    return METRIC_DISPLAY_NAMES.get(key, key.replace("_", " ").title())


def get_metric_icon(metric_type: str) -> str:
    return METRIC_ICONS.get(_metric_key(metric_type), "📊")


def _latest_point(points: Sequence[HealthDataPoint]) -> HealthDataPoint:
    dated = [p for p in points if p.date is not None]
    if len(dated) == len(points):
        return max(points, key=lambda p: p.date)
    return points[-1]


def aggregate_radar_data(
    health_data_sets: Mapping[str, Sequence[Union[HealthDataPoint, Mapping[str, Any]]]],
    scoring_system: Union[ScoringSystem, str, None] = None,
    user_profile: Optional[UserProfile] = None,
    custom_rules: Optional[Sequence[CustomScoringRule]] = None,
    colors: Optional[Mapping[str, str]] = None,
) -> List[RadarMetric]:
    """
    One radar metric per metric type that has data.

    The most recent point of each series is scored; empty series and
    metric types without scoring ranges are skipped.
    """
    metrics: List[RadarMetric] = []

    for metric_type, raw_points in health_data_sets.items():
        if not raw_points:
            continue
        try:
            ranges = get_health_metric_ranges(metric_type, user_profile)
        except UnknownMetricTypeError:
            logger.warning(f"Skipping radar metric with unknown type: {metric_type}")
            continue

        points = [HealthDataPoint.model_validate(p) for p in raw_points]
        latest = _latest_point(points)
        score = score_health_metric(metric_type, latest.value, scoring_system, user_profile, custom_rules)
        max_value = ranges.good.max if ranges.higher_is_better else ranges.optimal.max

        metrics.append(RadarMetric(
            category=format_metric_name(metric_type),
            value=latest.value,
            max_value=max_value,
            unit=latest.unit or ranges.unit,
            score=score,
            color=get_score_color(score, colors),
            icon=get_metric_icon(metric_type),
        ))

    return metrics


def calculate_statistical_data(data_points: Sequence[Union[HealthDataPoint, Mapping[str, Any], float]]) -> StatisticalData:
    """
    Mean and population standard deviation for z-score scoring.

    Both are rounded to 2 decimals; the standard deviation is floored at 1.
    """
    if not data_points:
        return StatisticalData(mean=0.0, standard_deviation=1.0)

    values = np.asarray([
        p if isinstance(p, (int, float)) else HealthDataPoint.model_validate(p).value
        for p in data_points
    ], dtype=float)

    mean = round(float(np.mean(values)), 2)
    standard_deviation = max(1.0, round(float(np.std(values)), 2))
    return StatisticalData(mean=mean, standard_deviation=standard_deviation)
