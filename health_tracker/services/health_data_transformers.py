"""
Health Data Transformers

Turns raw health records, goals and trend series into dashboard payloads:
- Summary cards (latest value, previous value, trend, goal)
- Radar chart snapshot
- Predictive series with confidence bands

Input is validated up front; any malformed record, goal or trend point
raises HealthDataValidationError before work starts. Scoring and score
colors come from the health scoring engine.
"""

import logging
import math
import numbers
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from health_tracker.core.config import settings
from health_tracker.core.constants import (
    DEFAULT_NEUTRAL_SCORE,
    DEFAULT_TYPE_COLOR,
    DEFAULT_TYPE_ICON,
    MAX_PLACEHOLDER_RADAR_METRICS,
    MIN_RADAR_METRICS,
    NEUTRAL_TREND_THRESHOLD_PERCENT,
    RADAR_PLACEHOLDER_TYPES,
)
from health_tracker.core.error_handling import HealthDataValidationError, validate_items
from health_tracker.models.health_models import (
    DataPoint,
    HealthTypeConfig,
    PredictedDataPoint,
    RadarChartData,
    RadarMetric,
    StatisticalData,
    SummaryMetric,
    Trend,
)
from health_tracker.schemas.health_schemas import (
    GoalStatus,
    HealthGoal,
    HealthRecord,
    PredictionAlgorithm,
    ScoringSystem,
    TrendDirection,
    TrendPoint,
    require_finite_number,
)
from health_tracker.services.goal_service import calculate_raw_goal_progress
from health_tracker.services.health_scoring import (
    CustomScoringRule,
    HEALTH_METRIC_RANGES,
    METRIC_ICONS,
    get_health_metric_ranges,
    get_score_color,
    score_health_metric,
)
from health_tracker.services.statistics import (
    generate_confidence_interval,
    linear_regression,
    moving_average,
)

logger = logging.getLogger(__name__)

__all__ = [
    "get_health_type_config",
    "normalize_health_value",
    "calculate_trend",
    "get_previous_value",
    "transform_to_summary_metrics",
    "transform_to_radar_data",
    "transform_to_predictive_data",
    "calculate_overall_health_score",
    "format_health_value",
    "get_score_color",
]

# ============================================
# TYPE CONFIGURATION
# ============================================

# Display names used by record sources that map onto a scored metric type
HEALTH_TYPE_ALIASES = {
    "blood_pressure": "blood_pressure_systolic",
    "calories": "calories_burned",
    "sleep_hours": "sleep",
    "blood_sugar": "glucose",
}

# color, custom scoring multiplier
HEALTH_TYPE_DISPLAY = {
    "weight": ("#8884d8", 1),
    "bmi": ("#a4de6c", 4),
    "steps": ("#ffc658", 0.01),
    "sleep": ("#8dd1e1", 10),
    "heart_rate": ("#ff7300", 1),
    "blood_pressure_systolic": ("#82ca9d", 1),
    "blood_pressure_diastolic": ("#82ca9d", 1),
    "water_intake": ("#87d068", 0.025),
    "exercise_minutes": ("#ff8042", 0.4),
    "calories_burned": ("#d084d0", 0.1),
    "distance": ("#0088fe", 10),
    "body_fat_percentage": ("#00c49f", 4),
    "muscle_mass": ("#ffbb28", 2),
    "glucose": ("#ffb347", 1),
}


def resolve_health_type(health_type: Any) -> Optional[str]:
    """Lower-case, underscore and alias-resolve a type name; None for non-strings."""
    if not isinstance(health_type, str) or not health_type.strip():
        return None
    key = re.sub(r"\s+", "_", health_type.strip().lower())
    return HEALTH_TYPE_ALIASES.get(key, key)


def format_type_label(health_type: str) -> str:
    """'heart_rate' -> 'Heart Rate'"""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), health_type.replace("_", " "))


def get_health_type_config(health_type: Any) -> HealthTypeConfig:
    """
    Display configuration for a health type.

    Unknown or empty types get the grey default with no ideal range.
    """
    key = resolve_health_type(health_type)
    if key not in HEALTH_TYPE_DISPLAY:
        return HealthTypeConfig(icon=DEFAULT_TYPE_ICON, color=DEFAULT_TYPE_COLOR, unit="")

    color, multiplier = HEALTH_TYPE_DISPLAY[key]
    ranges = get_health_metric_ranges(key)
    return HealthTypeConfig(
        icon=METRIC_ICONS.get(key, DEFAULT_TYPE_ICON),
        color=color,
        unit=ranges.unit,
        ideal_range=ranges.optimal,
        scoring_multiplier=multiplier,
    )


def normalize_health_value(
    value: Any,
    health_type: Any,
    scoring_system: Union[ScoringSystem, str, None] = None,
) -> int:
    """
    0-100 score for a record value, computed by the scoring engine.

    z-score uses the ideal range midpoint as mean and a quarter of its width
    as standard deviation; custom scales the value by the type's multiplier.
    Without a scoring system the configured default is used. Unknown types
    and non-numeric values score 50.
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return DEFAULT_NEUTRAL_SCORE

    key = resolve_health_type(health_type)
    if key not in HEALTH_METRIC_RANGES:
        return DEFAULT_NEUTRAL_SCORE

    requested = scoring_system or settings.DEFAULT_SCORING_SYSTEM
    try:
        system = ScoringSystem(getattr(requested, "value", requested))
    except ValueError:
        system = ScoringSystem.PERCENTAGE

    if system == ScoringSystem.Z_SCORE:
        ideal = get_health_metric_ranges(key).optimal
        statistical_data = StatisticalData(
            mean=(ideal.min + ideal.max) / 2,
            standard_deviation=(ideal.max - ideal.min) / 4,
        )
        return score_health_metric(key, value, system, statistical_data=statistical_data)

    if system == ScoringSystem.CUSTOM:
        multiplier = HEALTH_TYPE_DISPLAY.get(key, (None, 1))[1]
        rule = CustomScoringRule(key, lambda v, _profile: v * multiplier, "display multiplier")
        return score_health_metric(key, value, system, custom_rules=[rule])

    return score_health_metric(key, value, ScoringSystem.PERCENTAGE)


# ============================================
# GROUPING
# ============================================

def _latest_by_type(records: Sequence[HealthRecord]) -> Dict[str, HealthRecord]:
    latest: Dict[str, HealthRecord] = {}
    for record in records:
        key = resolve_health_type(record.type)
        if key not in latest or record.recorded_at > latest[key].recorded_at:
            latest[key] = record
    return latest


def _active_goal_by_type(goals: Sequence[HealthGoal]) -> Dict[str, HealthGoal]:
    active: Dict[str, HealthGoal] = {}
    for goal in goals:
        key = resolve_health_type(goal.type)
        if goal.status == GoalStatus.ACTIVE and key not in active:
            active[key] = goal
    return active


# ============================================
# TRENDS
# ============================================

def _round_half_up(value: float, digits: int = 2) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def calculate_trend(current: Any, previous: Any) -> Trend:
    """
    Direction and absolute percentage change from previous to current.

    A zero previous value yields ('neutral', 0); changes under 1% are neutral.

    Raises:
        HealthDataValidationError: either value is not a finite number
    """
    try:
        current = require_finite_number(current)
    except ValueError as e:
        raise HealthDataValidationError(f"Invalid current value: {e}", field="current") from e
    try:
        previous = require_finite_number(previous)
    except ValueError as e:
        raise HealthDataValidationError(f"Invalid previous value: {e}", field="previous") from e

    if previous == 0:
        return Trend(direction=TrendDirection.NEUTRAL.value, percentage=0.0)

    change = (current - previous) / previous * 100
    percentage = abs(_round_half_up(change))

    if abs(change) < NEUTRAL_TREND_THRESHOLD_PERCENT:
        return Trend(direction=TrendDirection.NEUTRAL.value, percentage=percentage)

    direction = TrendDirection.UP if change > 0 else TrendDirection.DOWN
    return Trend(direction=direction.value, percentage=percentage)


def get_previous_value(
    records: Sequence[Any],
    health_type: str,
    current_record_id: Optional[Union[int, str]] = None,
) -> Optional[float]:
    """Value of the most recent record of health_type other than current_record_id."""
    validated = validate_items(records, HealthRecord, "record")
    if not isinstance(health_type, str) or not health_type:
        raise HealthDataValidationError("Invalid type: must be a non-empty string", field="type")

    candidates = [
        r for r in validated
        if r.type == health_type and (current_record_id is None or r.id != current_record_id)
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda r: r.recorded_at).value


# ============================================
# SUMMARY CARDS
# ============================================

def transform_to_summary_metrics(records: Sequence[Any], goals: Sequence[Any]) -> List[SummaryMetric]:
    """
    One summary metric per health type with records, then one per active
    goal whose type has no records.
    """
    validated_records = validate_items(records, HealthRecord, "record")
    validated_goals = validate_items(goals, HealthGoal, "goal")

    latest = _latest_by_type(validated_records)
    active_goals = _active_goal_by_type(validated_goals)
    metrics: List[SummaryMetric] = []

    for key, record in latest.items():
        config = get_health_type_config(key)
        earlier = [
            r for r in validated_records
            if r is not record and resolve_health_type(r.type) == key
        ]
        previous_value = max(earlier, key=lambda r: r.recorded_at).value if earlier else None
        goal = active_goals.get(key)

        metrics.append(SummaryMetric(
            id=f"metric-{record.type}-{record.id}",
            label=format_type_label(record.type),
            value=record.value,
            unit=record.unit or config.unit,
            icon=config.icon,
            previous_value=previous_value,
            trend=calculate_trend(record.value, previous_value) if previous_value is not None else None,
            goal_target=goal.target_value if goal else None,
            goal_current=goal.current_value if goal else None,
            goal_progress=calculate_raw_goal_progress(goal.current_value, goal.target_value) if goal else None,
        ))

    for key, goal in active_goals.items():
        if key in latest:
            continue
        config = get_health_type_config(key)
        metrics.append(SummaryMetric(
            id=f"metric-goal-{goal.type}-{goal.id}",
            label=format_type_label(goal.type),
            value=goal.current_value,
            unit=config.unit,
            icon=config.icon,
            goal_target=goal.target_value,
            goal_current=goal.current_value,
            goal_progress=calculate_raw_goal_progress(goal.current_value, goal.target_value),
        ))

    return metrics


# ============================================
# RADAR CHART
# ============================================

def transform_to_radar_data(
    records: Sequence[Any],
    goals: Sequence[Any],
    scoring_system: Union[ScoringSystem, str, None] = None,
    timestamp: Optional[str] = None,
) -> List[RadarChartData]:
    """
    Single radar snapshot of the latest value per health type.

    Charts with fewer than 3 axes are padded with zero-valued placeholder
    metrics, up to 5 axes in total.
    """
    validated_records = validate_items(records, HealthRecord, "record")
    validated_goals = validate_items(goals, HealthGoal, "goal")

    latest = _latest_by_type(validated_records)
    active_goals = _active_goal_by_type(validated_goals)
    metrics: List[RadarMetric] = []
    seen_types = set()

    for key, record in latest.items():
        config = get_health_type_config(key)
        goal = active_goals.get(key)
        if goal is not None:
            max_value = goal.target_value
        else:
            max_value = config.ideal_range.max if config.ideal_range else 100

        metrics.append(RadarMetric(
            category=format_type_label(record.type),
            value=record.value,
            max_value=max_value,
            unit=record.unit or config.unit,
            score=normalize_health_value(record.value, key, scoring_system),
            color=config.color,
            icon=config.icon,
        ))
        seen_types.add(key)

    for key, goal in active_goals.items():
        if key in latest:
            continue
        config = get_health_type_config(key)
        metrics.append(RadarMetric(
            category=format_type_label(goal.type),
            value=goal.current_value,
            max_value=goal.target_value,
            unit=config.unit,
            score=normalize_health_value(goal.current_value, key, scoring_system),
            color=config.color,
            icon=config.icon,
        ))
        seen_types.add(key)

    if len(metrics) < MIN_RADAR_METRICS:
        for placeholder in RADAR_PLACEHOLDER_TYPES:
            if len(metrics) >= MAX_PLACEHOLDER_RADAR_METRICS:
                break
            if placeholder in seen_types:
                continue
            config = get_health_type_config(placeholder)
            metrics.append(RadarMetric(
                category=format_type_label(placeholder),
                value=0,
                max_value=config.ideal_range.max if config.ideal_range else 100,
                unit=config.unit,
                score=0,
                color=config.color,
                icon=config.icon,
            ))

    return [RadarChartData(
        metrics=metrics,
        timestamp=timestamp or datetime.now(timezone.utc).isoformat(),
        label="Current Health Status",
    )]


# ============================================
# PREDICTIONS
# ============================================

def _display_date(raw: Any, point: TrendPoint) -> str:
    raw_date = raw.get("date") if isinstance(raw, Mapping) else getattr(raw, "date", None)
    return raw_date if isinstance(raw_date, str) else point.date.isoformat()


def _resolve_horizon(horizon_days: Any) -> int:
    if (
        isinstance(horizon_days, bool)
        or not isinstance(horizon_days, numbers.Real)
        or not math.isfinite(horizon_days)
        or horizon_days < 1
    ):
        return settings.DEFAULT_PREDICTION_HORIZON_DAYS
    return int(math.floor(horizon_days))


def transform_to_predictive_data(
    trend_data: Sequence[Any],
    algorithm: Union[PredictionAlgorithm, str] = PredictionAlgorithm.LINEAR_REGRESSION,
    prediction_horizon: Any = None,
    confidence_level: Optional[float] = None,
) -> List[PredictedDataPoint]:
    """
    Historical points followed by daily predictions.

    linear-regression fits the series against its index; moving-average
    forecasts the trailing-window mean flat. Confidence bands are prediction
    intervals built from the fit's residual standard deviation, widened by
    sqrt(step). Fewer than two points produce no predictions.

    Raises:
        HealthDataValidationError: a trend point is malformed
    """
    points = validate_items(trend_data, TrendPoint, "trend point")
    if not points:
        return []

    try:
        algorithm = PredictionAlgorithm(getattr(algorithm, "value", algorithm))
    except ValueError:
        logger.warning(f"Unknown prediction algorithm {algorithm!r}, using linear regression")
        algorithm = PredictionAlgorithm.LINEAR_REGRESSION

    horizon = _resolve_horizon(prediction_horizon)
    confidence_level = confidence_level or settings.DEFAULT_CONFIDENCE_LEVEL

    historical = [
        PredictedDataPoint(date=_display_date(raw, point), value=point.value, unit=point.unit, is_prediction=False)
        for raw, point in zip(trend_data, points)
    ]
    if len(points) < 2:
        return historical

    values = [point.value for point in points]
    n = len(values)

    if algorithm == PredictionAlgorithm.LINEAR_REGRESSION:
        fit = linear_regression([DataPoint(x=float(i), y=v) for i, v in enumerate(values)])
        residual_sd = fit.residual_standard_deviation
        sample_size = n

        def predict(step: int) -> float:
            return fit.slope * (n - 1 + step) + fit.intercept
    else:
        window = min(settings.MOVING_AVERAGE_WINDOW, n)
        recent = values[-window:]
        average = moving_average(recent, window)[-1]
        residual_sd = float(np.std(recent))
        sample_size = window

        def predict(step: int) -> float:
            return average

    unit = points[0].unit or ""
    last_date = points[-1].date
    predictions: List[PredictedDataPoint] = []

    for step in range(1, horizon + 1):
        predicted = predict(step)
        if not math.isfinite(predicted):
            continue
        value = round(predicted, 2)
        interval = generate_confidence_interval(
            value, confidence_level, residual_sd * math.sqrt(step), sample_size
        )
        upper, lower = round(interval.upper, 2), round(interval.lower, 2)
        if not lower < value < upper:
            # Two decimals cannot separate the band from the value at this magnitude
            upper, lower = interval.upper, interval.lower
        predictions.append(PredictedDataPoint(
            date=(last_date + timedelta(days=step)).date().isoformat(),
            value=value,
            unit=unit,
            is_prediction=True,
            algorithm=algorithm.value,
            confidence_upper=upper,
            confidence_lower=lower,
        ))

    return historical + predictions


# ============================================
# HELPERS
# ============================================

def calculate_overall_health_score(metrics: Sequence[Union[RadarMetric, Mapping[str, Any]]]) -> int:
    """Mean of the finite metric scores, 0-100; 50 when there are none."""
    scores = []
    for metric in metrics or []:
        score = metric.get("score") if isinstance(metric, Mapping) else getattr(metric, "score", None)
        if isinstance(score, numbers.Real) and not isinstance(score, bool) and math.isfinite(score):
            scores.append(float(score))

    if not scores:
        return DEFAULT_NEUTRAL_SCORE
    average = sum(scores) / len(scores)
    return max(0, min(100, int(math.floor(average + 0.5))))


def _plain_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def format_health_value(value: Any, unit: str) -> str:
    """Display string for a value in its unit; '0' for non-finite values."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real) or not math.isfinite(value):
        return "0"

    unit_key = (unit or "").lower()
    if unit_key in ("steps", "bpm", "min", "mmhg"):
        if float(value).is_integer():
            return f"{int(value):,}"
        return f"{value:,.3f}".rstrip("0").rstrip(".")
    if unit_key in ("kg", "hours", "liters", "mg/dl"):
        return _plain_number(value) if float(value).is_integer() else f"{value:.1f}"
    return _plain_number(value)
