"""
Result types returned by the analytics services.

Every result is a plain dataclass; ``to_dict()`` produces a JSON-safe payload.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


def _serialize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


class SerializableResult:
    def to_dict(self) -> Dict[str, Any]:
        return _serialize(asdict(self))


# ============================================
# STATISTICS
# ============================================

@dataclass
class DataPoint(SerializableResult):
    x: float
    y: float


@dataclass
class LinearRegressionResult(SerializableResult):
    slope: float
    intercept: float
    r_squared: float
    residual_standard_deviation: float


@dataclass
class ConfidenceInterval(SerializableResult):
    upper: float
    lower: float


@dataclass
class PredictionAccuracy(SerializableResult):
    mape: float
    rmse: float
    mae: float
    accuracy: float


@dataclass
class StatisticalData(SerializableResult):
    mean: float
    standard_deviation: float


# ============================================
# SCORING
# ============================================

@dataclass
class ValueRange(SerializableResult):
    min: float
    max: float


@dataclass
class HealthMetricRange(SerializableResult):
    """Scoring bands for a metric type"""
    optimal: ValueRange
    good: ValueRange
    fair: ValueRange
    poor: ValueRange
    unit: str
    higher_is_better: bool

    @property
    def typical(self) -> ValueRange:
        return self.good


@dataclass
class RadarMetric(SerializableResult):
    category: str
    value: float
    max_value: float
    unit: str
    score: int
    color: str
    icon: str


@dataclass
class RadarChartData(SerializableResult):
    metrics: List[RadarMetric]
    timestamp: str
    label: str = "Current Health Status"


# ============================================
# DASHBOARD
# ============================================

@dataclass
class HealthTypeConfig(SerializableResult):
    icon: str
    color: str
    unit: str
    ideal_range: Optional[ValueRange] = None
    scoring_multiplier: Optional[float] = None


@dataclass
class Trend(SerializableResult):
    direction: str
    percentage: float


@dataclass
class SummaryMetric(SerializableResult):
    id: str
    label: str
    value: float
    unit: str
    icon: str
    previous_value: Optional[float] = None
    trend: Optional[Trend] = None
    goal_target: Optional[float] = None
    goal_current: Optional[float] = None
    goal_progress: Optional[float] = None  # raw, may exceed 100


@dataclass
class PredictedDataPoint(SerializableResult):
    date: str
    value: float
    unit: Optional[str] = None
    is_prediction: bool = False
    algorithm: Optional[str] = None
    confidence_upper: Optional[float] = None
    confidence_lower: Optional[float] = None


# ============================================
# GOALS / STATS / ANALYTICS
# ============================================

@dataclass
class GoalProgress(SerializableResult):
    goal_id: Optional[Union[int, str]]
    type: str
    current_value: float
    target_value: float
    progress_percentage: float
    raw_progress_percentage: float
    status: str
    days_remaining: Optional[int] = None
    is_overdue: bool = False
    last_recorded_at: Optional[str] = None


@dataclass
class HealthStats(SerializableResult):
    total_records: int
    active_goals: int
    completed_goals: int
    weekly_records: int
    previous_week_records: int
    weekly_progress: float


@dataclass
class AnalyticsBucket(SerializableResult):
    date: str
    value: float
    min: float
    max: float
    count: int


@dataclass
class AnalyticsSummary(SerializableResult):
    current_value: Optional[float]
    trend: str
    trend_value: float
    total_records: int
    typical_range: Optional[ValueRange] = None


@dataclass
class HealthAnalyticsResult(SerializableResult):
    type: str
    unit: str
    aggregation: str
    start_date: str
    end_date: str
    summary: AnalyticsSummary
    data: List[AnalyticsBucket] = field(default_factory=list)


@dataclass
class ReminderRunSummary(SerializableResult):
    processed: int
    failed: int
    reminders: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)


# ============================================
# HABITS
# ============================================

@dataclass
class HabitStrength(SerializableResult):
    habit_strength: int
    consistency_score: int
    frequency_score: int
    context_score: int
    trend: str
    confidence: int
    sample_size: int
    predictive_factors: List[str] = field(default_factory=list)


@dataclass
class RecognizedPattern(SerializableResult):
    pattern_id: str
    behavior_type: str
    strength: int
    frequency: float
    consistency: float
    confidence: int
    recommendation: str
    triggers: List[str] = field(default_factory=list)
    outcomes: List[str] = field(default_factory=list)
    peak_times: List[str] = field(default_factory=list)


@dataclass
class ContextAnalysis(SerializableResult):
    context: str
    success_rate: int
    frequency: int
    predictive_power: int
    optimization: str
    conditions: Dict[str, Optional[str]] = field(default_factory=dict)
