"""
Habit Strength Analytics
========================
How well-established a behavior is, from tracked behavior events:
- Habit strength: weighted frequency, consistency and context scores
- Pattern recognition per behavior type (how often, when, with which triggers)
- Workout context analysis against exercise log effort

Scores are 0-100. Days are 24-hour slices anchored at the start of the
analysed window, in UTC.
"""

import logging
import math
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from health_tracker.core.config import settings
from health_tracker.core.error_handling import HealthDataValidationError, validate_items
from health_tracker.models.health_models import ContextAnalysis, HabitStrength, RecognizedPattern
from health_tracker.schemas.behavior_schemas import (
    BehaviorEvent,
    EntityType,
    ExerciseLog,
    HabitTimeRange,
    HabitTrend,
    MicroBehaviorPattern,
)
from health_tracker.schemas.health_schemas import parse_datetime
from health_tracker.services.health_scoring import round_half_up
from health_tracker.services.statistics import calculate_mean, calculate_variance

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400

FREQUENCY_WEIGHT = 0.4
CONSISTENCY_WEIGHT = 0.4
CONTEXT_WEIGHT = 0.2

# Events needed for full sample confidence
CONFIDENCE_SAMPLE_TARGET = 30
MIN_PATTERN_EVENTS = 5
MIN_TREND_EVENTS = 4
MAX_PREDICTIVE_FACTORS = 5
MAX_TRIGGERS = 5
MAX_OUTCOMES = 3

TREND_PERIODS = {HabitTimeRange.WEEK: 2, HabitTimeRange.MONTH: 4}
DEFAULT_TREND_PERIODS = 8

WORKOUT_ENTITY_TYPES = {EntityType.TRAINING_SESSION, EntityType.EXERCISE_LOG}
WORKOUT_EVENT_NAMES = {"workout_completed"}
RELATED_LOG_WINDOW = timedelta(hours=2)
GOOD_EFFORT_RPE = 6

# (context key, label prefix) read as pattern triggers
TRIGGER_LABELS = [
    ("mood", "mood"),
    ("energy_level", "energy"),
    ("location", "location"),
    ("time_of_day", "time"),
]

# Priority order for a workout's primary context
CONTEXT_LABELS = [
    ("time_of_day", "time"),
    ("location", "location"),
    ("mood", "mood"),
    ("energy_level", "energy"),
]

# Sunday first, matching crontab weekday numbering
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

EventsInput = Sequence[Union[BehaviorEvent, Dict[str, Any]]]


def _label(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _time_range(time_range: Union[HabitTimeRange, str]) -> HabitTimeRange:
    try:
        return HabitTimeRange(getattr(time_range, "value", time_range))
    except ValueError as e:
        raise HealthDataValidationError(
            f"Invalid time range {time_range!r}: use 7d, 30d, 90d or 1y", field="time_range"
        ) from e


def resolve_time_range(
    time_range: Union[HabitTimeRange, str] = HabitTimeRange.MONTH,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """Start and end of a trailing window ending at ``now`` (naive means UTC)."""
    end = parse_datetime(now) if now is not None else datetime.now(timezone.utc)
    period = _time_range(time_range)
    if period == HabitTimeRange.YEAR:
        start = (pd.Timestamp(end) - pd.DateOffset(years=1)).to_pydatetime()
    else:
        start = end - timedelta(days=int(period.value.rstrip("d")))
    return start, end


def _in_window(events: Sequence[BehaviorEvent], start: datetime, end: datetime) -> List[BehaviorEvent]:
    return [e for e in events if start <= e.created_at <= end]


# ============================================
# HABIT STRENGTH
# ============================================

def calculate_daily_frequencies(events: Sequence[BehaviorEvent], start: datetime, end: datetime) -> np.ndarray:
    """
    Event count per day of [start, end], zero-filled.

    There is always at least one day; events outside the window are ignored.
    """
    days = max(1, math.ceil((end - start).total_seconds() / SECONDS_PER_DAY))
    offsets = [(e.created_at - start).total_seconds() for e in events]
    counts, _ = np.histogram(offsets, bins=days, range=(0.0, days * SECONDS_PER_DAY))
    return counts


def calculate_consistency_score(daily_frequencies: Sequence[float]) -> float:
    """
    100 minus the coefficient of variation of the daily counts, as a
    percentage, floored at 0. The mean is floored at 1 so sparse habits are
    judged by their absolute spread. No activity at all scores 0.
    """
    values = np.asarray(daily_frequencies, dtype=float)
    if values.size == 0 or not values.any():
        return 0.0
    mean = calculate_mean(values)
    standard_deviation = math.sqrt(calculate_variance(values, mean))
    return max(0.0, 100 - standard_deviation / max(mean, 1) * 100)


def calculate_context_score(patterns: Sequence[MicroBehaviorPattern]) -> float:
    """Average of the patterns' mean strength and mean confidence"""
    if not patterns:
        return 0.0
    return (calculate_mean([p.strength for p in patterns]) + calculate_mean([p.confidence for p in patterns])) / 2


def calculate_habit_trend(
    events: Sequence[BehaviorEvent],
    start: datetime,
    end: datetime,
    time_range: Union[HabitTimeRange, str] = HabitTimeRange.MONTH,
) -> str:
    """
    Direction of activity across the window.

    The window is cut into equal periods (2 for 7d, 4 for 30d, 8 otherwise)
    and the trend follows whichever is more common between consecutive
    periods: a rise or a fall in event count. Fewer than 4 events is stable.
    """
    if len(events) < MIN_TREND_EVENTS:
        return HabitTrend.STABLE.value
    span = (end - start).total_seconds()
    if span <= 0:
        return HabitTrend.STABLE.value

    periods = TREND_PERIODS.get(_time_range(time_range), DEFAULT_TREND_PERIODS)
    offsets = [(e.created_at - start).total_seconds() for e in events]
    counts, _ = np.histogram(offsets, bins=periods, range=(0.0, span))

    steps = np.diff(counts)
    rises, falls = int((steps > 0).sum()), int((steps < 0).sum())
    if rises > falls:
        return HabitTrend.INCREASING.value
    if falls > rises:
        return HabitTrend.DECREASING.value
    return HabitTrend.STABLE.value


def calculate_habit_confidence(sample_size: int, consistency: float) -> float:
    """70% sample size (30 events is full confidence), 30% consistency"""
    sample_confidence = min(100.0, sample_size / CONFIDENCE_SAMPLE_TARGET * 100)
    return sample_confidence * 0.7 + consistency * 0.3


def identify_predictive_factors(patterns: Sequence[MicroBehaviorPattern]) -> List[str]:
    """Most frequent triggers and string context values across patterns, top 5"""
    factors: Counter = Counter()
    for pattern in patterns:
        factors.update(pattern.triggers)
        factors.update(v for v in pattern.context.values() if isinstance(v, str) and v)
    return [factor for factor, _count in factors.most_common(MAX_PREDICTIVE_FACTORS)]


def calculate_habit_strength(
    events: EventsInput,
    patterns: Sequence[Union[MicroBehaviorPattern, Dict[str, Any]]] = (),
    behavior_type: Optional[str] = None,
    time_range: Union[HabitTimeRange, str] = HabitTimeRange.MONTH,
    now: Optional[datetime] = None,
) -> HabitStrength:
    """
    Habit strength of one behavior type (or all behavior) over a window.

    frequency: share of days with at least one event
    consistency: evenness of the daily counts
    context: strength and confidence of the recognized patterns
    habit strength: 0.4 frequency + 0.4 consistency + 0.2 context

    Raises:
        HealthDataValidationError: malformed events or patterns, or an
            unknown time range
    """
    start, end = resolve_time_range(time_range, now)
    validated_events = validate_items(events, BehaviorEvent, "behavior event")
    validated_patterns = validate_items(patterns, MicroBehaviorPattern, "pattern")

    window_events = [
        e for e in _in_window(validated_events, start, end)
        if behavior_type is None or e.context.get("behavior_type") == behavior_type
    ]
    relevant_patterns = [
        p for p in validated_patterns
        if behavior_type is None or p.behavior_type == behavior_type
    ]

    daily = calculate_daily_frequencies(window_events, start, end)
    frequency_score = min(100.0, int(np.count_nonzero(daily)) / len(daily) * 100)
    consistency_score = calculate_consistency_score(daily)
    context_score = calculate_context_score(relevant_patterns)

    habit_strength = round_half_up(
        frequency_score * FREQUENCY_WEIGHT
        + consistency_score * CONSISTENCY_WEIGHT
        + context_score * CONTEXT_WEIGHT
    )
    logger.debug(f"Habit strength {habit_strength} from {len(window_events)} events over {len(daily)} days")

    return HabitStrength(
        habit_strength=habit_strength,
        consistency_score=round_half_up(consistency_score),
        frequency_score=round_half_up(frequency_score),
        context_score=round_half_up(context_score),
        trend=calculate_habit_trend(window_events, start, end, time_range),
        confidence=round_half_up(calculate_habit_confidence(len(window_events), consistency_score)),
        sample_size=len(window_events),
        predictive_factors=identify_predictive_factors(relevant_patterns),
    )


# ============================================
# PATTERN RECOGNITION
# ============================================

def _behavior_of(event: BehaviorEvent) -> str:
    behavior = event.context.get("behavior_type")
    if behavior:
        return str(behavior)
    return event.entity_type.value if event.entity_type else "unknown"


def _temporal_profile(events: Sequence[BehaviorEvent]) -> Tuple[float, List[str]]:
    """Consistency of hour-of-day and day-of-week placement, plus the peak hour and day"""
    stamps = pd.to_datetime([e.created_at for e in events], utc=True)
    hour_counts = np.bincount(stamps.hour, minlength=24)
    day_counts = np.bincount((stamps.dayofweek + 1) % 7, minlength=7)

    spread = (calculate_variance(hour_counts) + calculate_variance(day_counts)) / 2
    peak_times = [f"{int(np.argmax(hour_counts))}:00", DAY_NAMES[int(np.argmax(day_counts))]]
    return max(0.0, 100 - spread), peak_times


def _triggers_and_outcomes(events: Sequence[BehaviorEvent]) -> Tuple[List[str], List[str]]:
    triggers: Dict[str, None] = {}
    outcomes: Dict[str, None] = {}
    for event in events:
        context = event.context
        for key, prefix in TRIGGER_LABELS:
            if context.get(key):
                triggers[f"{prefix}:{_label(context[key])}"] = None
        if context.get("outcome"):
            outcomes[_label(context["outcome"])] = None
        if context.get("success") is not None:
            outcomes[f"success:{_label(context['success'])}"] = None
    return list(triggers)[:MAX_TRIGGERS], list(outcomes)[:MAX_OUTCOMES]


def pattern_recommendation(behavior_type: str, strength: float, triggers: Sequence[str]) -> str:
    if strength >= 80:
        return f"Excellent {behavior_type} habit! Focus on maintaining consistency."
    if strength >= 60:
        focus = triggers[0] if triggers else "better timing"
        return f"Good {behavior_type} pattern. Try optimizing for {focus}."
    if strength >= 40:
        return f"Developing {behavior_type} habit. Increase frequency and consistency."
    return f"Focus on establishing a regular {behavior_type} routine. Start small and be consistent."


def _analyze_behavior(behavior: str, events: List[BehaviorEvent], pattern_id: str) -> RecognizedPattern:
    oldest = min(e.created_at for e in events)
    newest = max(e.created_at for e in events)

    daily = calculate_daily_frequencies(events, oldest, newest)
    average_frequency = float(np.mean(daily))
    consistency, peak_times = _temporal_profile(events)
    triggers, outcomes = _triggers_and_outcomes(events)

    strength = (
        min(100.0, average_frequency * 100) * 0.5
        + consistency * 0.3
        + min(100.0, (len(triggers) + len(outcomes)) * 20) * 0.2
    )
    span_days = math.ceil((newest - oldest).total_seconds() / SECONDS_PER_DAY)
    sample_confidence = min(100.0, len(events) / max(span_days, 1) * 100)
    confidence = sample_confidence * 0.6 + strength * 0.4

    return RecognizedPattern(
        pattern_id=pattern_id,
        behavior_type=behavior,
        strength=round_half_up(strength),
        frequency=round(average_frequency, 2),
        consistency=round(consistency, 2),
        confidence=round_half_up(confidence),
        recommendation=pattern_recommendation(behavior, strength, triggers),
        triggers=triggers,
        outcomes=outcomes,
        peak_times=peak_times,
    )


def recognize_patterns(
    events: EventsInput,
    behavior_type: Optional[str] = None,
    min_confidence: Optional[float] = None,
    now: Optional[datetime] = None,
) -> List[RecognizedPattern]:
    """
    Recurring behaviors in the recent event history, strongest first.

    Events from the last HABIT_PATTERN_LOOKBACK_DAYS are grouped by the
    context's behavior_type (falling back to the entity type). Groups below
    min_confidence (default HABIT_PATTERN_MIN_CONFIDENCE) are dropped. Fewer
    than 5 events in total yields no patterns.
    """
    end = parse_datetime(now) if now is not None else datetime.now(timezone.utc)
    start = end - timedelta(days=settings.HABIT_PATTERN_LOOKBACK_DAYS)
    threshold = settings.HABIT_PATTERN_MIN_CONFIDENCE if min_confidence is None else min_confidence

    recent = [
        e for e in _in_window(validate_items(events, BehaviorEvent, "behavior event"), start, end)
        if behavior_type is None or e.context.get("behavior_type") == behavior_type
    ]
    if len(recent) < MIN_PATTERN_EVENTS:
        return []

    groups: Dict[str, List[BehaviorEvent]] = {}
    for event in recent:
        groups.setdefault(_behavior_of(event), []).append(event)

    stamp = int(end.timestamp() * 1000)
    results = [
        _analyze_behavior(behavior, group, f"pattern_{behavior}_{stamp}")
        for behavior, group in groups.items()
    ]
    kept = [r for r in results if r.confidence >= threshold]
    logger.debug(f"Recognized {len(kept)} of {len(results)} behavior patterns")
    return sorted(kept, key=lambda r: r.strength, reverse=True)


# ============================================
# WORKOUT CONTEXTS
# ============================================

def _is_workout(event: BehaviorEvent) -> bool:
    return event.entity_type in WORKOUT_ENTITY_TYPES or event.event_name in WORKOUT_EVENT_NAMES


def primary_context(event: BehaviorEvent) -> str:
    """First of time_of_day, location, mood, energy_level present, as 'prefix:value'"""
    for key, prefix in CONTEXT_LABELS:
        if event.context.get(key):
            return f"{prefix}:{_label(event.context[key])}"
    return "general"


def calculate_workout_success_rate(events: Sequence[BehaviorEvent], exercise_logs: Sequence[ExerciseLog]) -> float:
    """
    Percentage of workouts that succeeded.

    A workout succeeded when its context says completed or success, or when
    an exercise log within two hours of it shows an RPE of 6 or more.
    """
    if not events:
        return 0.0
    successful = 0
    for event in events:
        good_effort = any(
            log.rpe is not None and log.rpe >= GOOD_EFFORT_RPE
            for log in exercise_logs
            if abs(log.created_at - event.created_at) < RELATED_LOG_WINDOW
        )
        if good_effort or event.context.get("completed") or event.context.get("success"):
            successful += 1
    return successful / len(events) * 100


def extract_context_conditions(events: Sequence[BehaviorEvent]) -> Dict[str, Optional[str]]:
    """Most common value of every context key; ties go to the value seen first"""
    values: Dict[str, Counter] = {}
    for event in events:
        for key, value in event.context.items():
            values.setdefault(key, Counter())[_label(value)] += 1
    return {key: counts.most_common(1)[0][0] if counts else None for key, counts in values.items()}


def context_optimization(context: str, success_rate: float, conditions: Dict[str, Optional[str]]) -> str:
    if success_rate >= 80:
        kept = ", ".join(f"{key}: {value}" for key, value in list(conditions.items())[:3])
        return f"Excellent context! Maintain these conditions: {kept}"
    if success_rate >= 60:
        focus = next(iter(conditions), "timing")
        return f"Good context. Try optimizing {focus} for better results."
    return f"Consider changing context conditions or avoiding {context} for workouts."


def analyze_workout_contexts(
    events: EventsInput,
    exercise_logs: Sequence[Union[ExerciseLog, Dict[str, Any]]] = (),
    time_range: Union[HabitTimeRange, str] = HabitTimeRange.QUARTER,
    now: Optional[datetime] = None,
) -> List[ContextAnalysis]:
    """
    Success of workouts grouped by their primary context, most predictive first.

    Predictive power is 50 plus how many points a context's success rate
    sits above the success rate of all workouts in the window, clamped to
    0-100.
    """
    start, end = resolve_time_range(time_range, now)
    workouts = [
        e for e in _in_window(validate_items(events, BehaviorEvent, "behavior event"), start, end)
        if _is_workout(e)
    ]
    logs = [
        log for log in validate_items(exercise_logs, ExerciseLog, "exercise log")
        if start <= log.created_at <= end
    ]
    if not workouts:
        return []

    overall_rate = calculate_workout_success_rate(workouts, logs)
    groups: Dict[str, List[BehaviorEvent]] = {}
    for event in workouts:
        groups.setdefault(primary_context(event), []).append(event)

    results = []
    for context, group in groups.items():
        success_rate = calculate_workout_success_rate(group, logs)
        conditions = extract_context_conditions(group)
        results.append(ContextAnalysis(
            context=context,
            success_rate=round_half_up(success_rate),
            frequency=len(group),
            predictive_power=round_half_up(max(0.0, min(100.0, 50 + success_rate - overall_rate))),
            optimization=context_optimization(context, success_rate, conditions),
            conditions=conditions,
        ))

    return sorted(results, key=lambda r: r.predictive_power, reverse=True)
