"""
Statistics Primitives

Numerical building blocks for health trend prediction:
- Mean / population variance / covariance
- Ordinary least squares regression with goodness of fit
- Moving averages
- Forecast error metrics (MAPE, RMSE, MAE)
- Student-t prediction intervals
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from scipy import stats

from health_tracker.core.constants import MIN_CONFIDENCE_MARGIN
from health_tracker.core.error_handling import InsufficientDataError
from health_tracker.models.health_models import (
    ConfidenceInterval,
    DataPoint,
    LinearRegressionResult,
    PredictionAccuracy,
)
from health_tracker.schemas.health_schemas import parse_datetime

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(list(values), dtype=float)


def calculate_mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0.0 for an empty sequence."""
    arr = _as_array(values)
    if arr.size == 0:
        return 0.0
    return float(np.mean(arr))


def calculate_variance(values: Sequence[float], mean: Optional[float] = None) -> float:
    """Population variance; 0.0 for an empty sequence."""
    arr = _as_array(values)
    if arr.size == 0:
        return 0.0
    center = calculate_mean(arr) if mean is None else mean
    return float(np.mean((arr - center) ** 2))


def calculate_covariance(
    x_values: Sequence[float],
    y_values: Sequence[float],
    x_mean: Optional[float] = None,
    y_mean: Optional[float] = None,
) -> float:
    """Population covariance; 0.0 for empty or mismatched inputs."""
    xs = _as_array(x_values)
    ys = _as_array(y_values)
    if xs.size == 0 or xs.size != ys.size:
        return 0.0
    mx = calculate_mean(xs) if x_mean is None else x_mean
    my = calculate_mean(ys) if y_mean is None else y_mean
    return float(np.mean((xs - mx) * (ys - my)))


def linear_regression(data_points: Sequence[DataPoint]) -> LinearRegressionResult:
    """
    Fit y = slope * x + intercept by ordinary least squares.

    Args:
        data_points: At least two DataPoint(x, y) values

    Returns:
        LinearRegressionResult with r_squared clamped to [0, 1] and the
        residual standard deviation (n - 2 degrees of freedom)

    Raises:
        InsufficientDataError: fewer than two points were supplied
    """
    if len(data_points) < 2:
        raise InsufficientDataError("Linear regression requires at least 2 data points")

    xs = _as_array(point.x for point in data_points)
    ys = _as_array(point.y for point in data_points)

    x_mean = calculate_mean(xs)
    y_mean = calculate_mean(ys)
    x_variance = calculate_variance(xs, x_mean)

    # All x values identical: no slope can be estimated
    if x_variance == 0:
        return LinearRegressionResult(
            slope=0.0,
            intercept=y_mean,
            r_squared=0.0,
            residual_standard_deviation=math.sqrt(calculate_variance(ys, y_mean)),
        )

    slope = calculate_covariance(xs, ys, x_mean, y_mean) / x_variance
    intercept = y_mean - slope * x_mean

    predictions = slope * xs + intercept
    total_ss = float(np.sum((ys - y_mean) ** 2))
    residual_ss = float(np.sum((ys - predictions) ** 2))

    r_squared = 1.0 if total_ss == 0 else 1.0 - residual_ss / total_ss
    degrees_of_freedom = len(data_points) - 2
    residual_sd = math.sqrt(residual_ss / degrees_of_freedom) if degrees_of_freedom > 0 else 0.0

    return LinearRegressionResult(
        slope=float(slope),
        intercept=float(intercept),
        r_squared=max(0.0, min(1.0, r_squared)),
        residual_standard_deviation=residual_sd,
    )


def moving_average(values: Sequence[float], window_size: int) -> List[float]:
    """
    Trailing-window means.

    Returns ``len(values) - window_size + 1`` averages, or an empty list when
    the window is larger than the input.

    Raises:
        ValueError: window_size is not a positive integer
    """
    if isinstance(window_size, bool) or not isinstance(window_size, int) or window_size <= 0:
        raise ValueError("Window size must be a positive integer")

    arr = _as_array(values)
    if window_size > arr.size:
        return []
    if window_size == 1:
        return [float(v) for v in arr]

    windows = sliding_window_view(arr, window_size)
    return [float(v) for v in windows.mean(axis=1)]


def calculate_mape(actual_values: Sequence[float], predicted_values: Sequence[float]) -> float:
    """
    Mean Absolute Percentage Error, as a percentage.

    Returns 0 for empty input and ``math.inf`` when any actual value is zero.

    Raises:
        ValueError: the sequences differ in length
    """
    actual = _as_array(actual_values)
    predicted = _as_array(predicted_values)
    if actual.size != predicted.size:
        raise ValueError("Actual and predicted values arrays must have the same length")
    if actual.size == 0:
        return 0.0
    if np.any(actual == 0):
        return math.inf
    return float(np.mean(np.abs((actual - predicted) / actual)) * 100)


def get_t_critical_value(confidence_level: float, degrees_of_freedom: int) -> float:
    """Two-sided Student-t critical value."""
    alpha = 1 - confidence_level
    return float(stats.t.ppf(1 - alpha / 2, max(degrees_of_freedom, 1)))


def generate_confidence_interval(
    point_estimate: float,
    confidence_level: float,
    residual_standard_deviation: float,
    sample_size: int,
) -> ConfidenceInterval:
    """
    Prediction interval around a point estimate.

    The half-width is t * residual_sd * sqrt(1 + 1/n), with degrees of
    freedom n - 2, and never smaller than MIN_CONFIDENCE_MARGIN or one ulp
    of the estimate, so the estimate always lies strictly inside the band.
    """
    if not 0 < confidence_level < 1:
        raise ValueError("Confidence level must be between 0 and 1 (exclusive)")
    if sample_size < 1:
        raise ValueError("Sample size must be at least 1")
    if residual_standard_deviation < 0 or not math.isfinite(residual_standard_deviation):
        raise ValueError("Residual standard deviation must be a non-negative finite number")

    t_critical = get_t_critical_value(confidence_level, sample_size - 2)
    margin = t_critical * residual_standard_deviation * math.sqrt(1 + 1 / sample_size)
    margin = max(margin, MIN_CONFIDENCE_MARGIN, math.ulp(point_estimate))

    return ConfidenceInterval(upper=point_estimate + margin, lower=point_estimate - margin)


def calculate_prediction_accuracy(
    actual_values: Sequence[float],
    predicted_values: Sequence[float],
) -> PredictionAccuracy:
    """
    Forecast accuracy metrics.

    accuracy = (1 - rmse / range(actual)) * 100, clamped to [0, 100].
    A non-finite MAPE is reported as 0.
    """
    actual = _as_array(actual_values)
    predicted = _as_array(predicted_values)
    if actual.size != predicted.size:
        raise ValueError("Actual and predicted values arrays must have the same length")
    if actual.size == 0:
        return PredictionAccuracy(mape=0.0, rmse=0.0, mae=0.0, accuracy=100.0)

    mape = calculate_mape(actual, predicted)
    errors = actual - predicted
    rmse = math.sqrt(calculate_mean(errors ** 2))
    mae = calculate_mean(np.abs(errors))

    actual_range = float(np.max(actual) - np.min(actual))
    normalized_rmse = rmse / actual_range if actual_range > 0 else 0.0
    accuracy = max(0.0, min(100.0, (1 - normalized_rmse) * 100))

    return PredictionAccuracy(
        mape=mape if math.isfinite(mape) else 0.0,
        rmse=rmse,
        mae=mae,
        accuracy=accuracy,
    )


# ============================================
# DATE-DOMAIN HELPERS
# ============================================

def date_to_numeric(value: Any) -> float:
    """Date string or datetime to POSIX seconds; raises ValueError if unparsable."""
    return parse_datetime(value).timestamp()


def numeric_to_date(value: float) -> str:
    return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()


def transform_health_data_for_regression(health_data: Sequence[Dict[str, Any]]) -> List[DataPoint]:
    """[{date, value}] to DataPoint(x=timestamp seconds, y=value)."""
    return [DataPoint(x=date_to_numeric(point["date"]), y=float(point["value"])) for point in health_data]


def generate_future_predictions(
    regression: LinearRegressionResult,
    last_data_point: Dict[str, Any],
    future_days: int,
) -> List[Dict[str, Any]]:
    """
    Daily extrapolation of a regression fitted on timestamp x values.

    Predicted values are floored at 0; health metrics are non-negative.
    """
    last_timestamp = date_to_numeric(last_data_point["date"])
    predictions = []
    for day in range(1, future_days + 1):
        future_timestamp = last_timestamp + day * SECONDS_PER_DAY
        predicted = regression.slope * future_timestamp + regression.intercept
        predictions.append({
            "date": numeric_to_date(future_timestamp),
            "value": max(0.0, predicted),
            "is_prediction": True,
        })
    return predictions
