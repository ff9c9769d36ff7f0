"""
Tests for the statistics primitives used by trend prediction.
"""
import math

import pytest

from health_tracker.core.error_handling import InsufficientDataError
from health_tracker.models.health_models import DataPoint, LinearRegressionResult
from health_tracker.services.statistics import (
    calculate_covariance,
    calculate_mape,
    calculate_mean,
    calculate_prediction_accuracy,
    calculate_variance,
    date_to_numeric,
    generate_confidence_interval,
    generate_future_predictions,
    get_t_critical_value,
    linear_regression,
    moving_average,
    numeric_to_date,
    transform_health_data_for_regression,
)


def _points(pairs):
    return [DataPoint(x=x, y=y) for x, y in pairs]


class TestDescriptiveStatistics:
    """Mean, variance and covariance."""

    def test_mean(self):
        assert calculate_mean([1, 2, 3, 4]) == 2.5

    def test_mean_of_empty_is_zero(self):
        assert calculate_mean([]) == 0.0

    def test_population_variance(self):
        """Variance divides by n, not n - 1."""
        assert calculate_variance([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(4.0)

    def test_variance_with_supplied_mean(self):
        assert calculate_variance([1, 3], mean=2) == pytest.approx(1.0)

    def test_covariance(self):
        assert calculate_covariance([1, 2, 3], [2, 4, 6]) == pytest.approx(4 / 3)

    def test_covariance_of_mismatched_lengths_is_zero(self):
        assert calculate_covariance([1, 2, 3], [1, 2]) == 0.0


class TestLinearRegression:
    """Ordinary least squares fit."""

    def test_perfect_line(self):
        result = linear_regression(_points([(0, 1), (1, 3), (2, 5)]))

        assert isinstance(result, LinearRegressionResult)
        assert result.slope == pytest.approx(2.0)
        assert result.intercept == pytest.approx(1.0)
        assert result.r_squared == pytest.approx(1.0)
        assert result.residual_standard_deviation == pytest.approx(0.0)

    def test_noisy_fit(self):
        """Residual SD uses n - 2 degrees of freedom."""
        result = linear_regression(_points([(0, 0), (1, 1), (2, 0), (3, 1)]))

        assert result.slope == pytest.approx(0.2)
        assert result.intercept == pytest.approx(0.2)
        assert result.r_squared == pytest.approx(0.2)
        assert result.residual_standard_deviation == pytest.approx(math.sqrt(0.4))

    def test_constant_y_has_perfect_fit(self):
        result = linear_regression(_points([(0, 5), (1, 5), (2, 5)]))

        assert result.slope == pytest.approx(0.0)
        assert result.intercept == pytest.approx(5.0)
        assert result.r_squared == 1.0

    def test_identical_x_values(self):
        """No slope can be estimated when every x is the same."""
        result = linear_regression(_points([(1, 2), (1, 4)]))

        assert result.slope == 0.0
        assert result.intercept == pytest.approx(3.0)
        assert result.r_squared == 0.0
        assert result.residual_standard_deviation == pytest.approx(1.0)

    def test_two_points_have_zero_residual_sd(self):
        result = linear_regression(_points([(0, 1), (1, 2)]))
        assert result.residual_standard_deviation == 0.0

    @pytest.mark.parametrize("pairs", [[], [(0, 1)]])
    def test_requires_two_points(self, pairs):
        with pytest.raises(InsufficientDataError):
            linear_regression(_points(pairs))

    def test_r_squared_is_bounded(self):
        result = linear_regression(_points([(0, 3), (1, -2), (2, 7), (3, 1), (4, 0)]))
        assert 0.0 <= result.r_squared <= 1.0


class TestMovingAverage:
    """Trailing-window means."""

    def test_window_of_three(self):
        assert moving_average([1, 2, 3, 4, 5], 3) == pytest.approx([2.0, 3.0, 4.0])

    def test_output_length(self):
        values = [5, 1, 4, 2, 8, 6, 3]
        assert len(moving_average(values, 4)) == len(values) - 4 + 1

    def test_window_of_one_returns_values(self):
        assert moving_average([3, 1, 2], 1) == [3.0, 1.0, 2.0]

    def test_window_larger_than_data_is_empty(self):
        assert moving_average([1, 2], 3) == []

    @pytest.mark.parametrize("window", [0, -1, 2.5, True])
    def test_invalid_window_raises(self, window):
        with pytest.raises(ValueError):
            moving_average([1, 2, 3], window)


class TestForecastErrors:
    """MAPE and prediction accuracy."""

    def test_mape(self):
        assert calculate_mape([100, 200], [110, 180]) == pytest.approx(10.0)

    def test_mape_empty_is_zero(self):
        assert calculate_mape([], []) == 0.0

    def test_mape_with_zero_actual_is_infinite(self):
        assert math.isinf(calculate_mape([0, 10], [1, 10]))

    def test_mape_length_mismatch(self):
        with pytest.raises(ValueError):
            calculate_mape([1, 2], [1])

    def test_perfect_prediction_accuracy(self):
        accuracy = calculate_prediction_accuracy([10, 20, 30], [10, 20, 30])

        assert accuracy.mape == 0.0
        assert accuracy.rmse == 0.0
        assert accuracy.mae == 0.0
        assert accuracy.accuracy == 100.0

    def test_accuracy_reports_non_finite_mape_as_zero(self):
        accuracy = calculate_prediction_accuracy([0, 10], [1, 10])

        assert accuracy.mape == 0.0
        assert accuracy.rmse == pytest.approx(math.sqrt(0.5))
        assert accuracy.mae == pytest.approx(0.5)
        assert accuracy.accuracy == pytest.approx((1 - math.sqrt(0.5) / 10) * 100)

    def test_accuracy_is_clamped(self):
        accuracy = calculate_prediction_accuracy([1, 2], [100, -100])
        assert accuracy.accuracy == 0.0


class TestConfidenceIntervals:
    """Student-t prediction intervals."""

    def test_t_critical_values(self):
        assert get_t_critical_value(0.95, 1) == pytest.approx(12.706, abs=1e-3)
        assert get_t_critical_value(0.95, 1000) == pytest.approx(1.962, abs=1e-3)

    def test_interval_is_symmetric(self):
        interval = generate_confidence_interval(50.0, 0.95, 2.0, 10)

        expected_margin = get_t_critical_value(0.95, 8) * 2.0 * math.sqrt(1 + 1 / 10)
        assert interval.upper - 50.0 == pytest.approx(expected_margin)
        assert 50.0 - interval.lower == pytest.approx(expected_margin)

    def test_zero_sd_still_brackets_estimate(self):
        """The estimate lies strictly inside the band."""
        interval = generate_confidence_interval(10.0, 0.95, 0.0, 5)

        assert interval.lower < 10.0 < interval.upper
        assert interval.upper == pytest.approx(10.01)
        assert interval.lower == pytest.approx(9.99)

    @pytest.mark.parametrize("estimate", [1e15, -1e15, 2.0 ** 60])
    def test_large_estimates_stay_inside_band(self, estimate):
        interval = generate_confidence_interval(estimate, 0.95, 0.0, 5)
        assert interval.lower < estimate < interval.upper

    def test_higher_confidence_is_wider(self):
        narrow = generate_confidence_interval(0.0, 0.8, 1.0, 20)
        wide = generate_confidence_interval(0.0, 0.99, 1.0, 20)
        assert wide.upper > narrow.upper

    @pytest.mark.parametrize("level", [0, 1, 1.5, -0.1])
    def test_invalid_confidence_level(self, level):
        with pytest.raises(ValueError):
            generate_confidence_interval(1.0, level, 1.0, 10)

    def test_invalid_sample_size(self):
        with pytest.raises(ValueError):
            generate_confidence_interval(1.0, 0.95, 1.0, 0)

    def test_negative_sd(self):
        with pytest.raises(ValueError):
            generate_confidence_interval(1.0, 0.95, -1.0, 10)


class TestDateHelpers:
    """Date conversion for regression over real timestamps."""

    def test_date_to_numeric(self):
        assert date_to_numeric("2024-01-01T00:00:00Z") == 1704067200

    def test_date_only_string(self):
        assert date_to_numeric("2024-01-01") == 1704067200

    def test_unparsable_date(self):
        with pytest.raises(ValueError):
            date_to_numeric("not a date")

    def test_numeric_to_date(self):
        assert numeric_to_date(1704067200) == "2024-01-01T00:00:00+00:00"

    def test_transform_for_regression(self):
        points = transform_health_data_for_regression([
            {"date": "2024-01-01T00:00:00Z", "value": 70},
            {"date": "2024-01-02T00:00:00Z", "value": "71.5"},
        ])

        assert points[0] == DataPoint(x=1704067200, y=70.0)
        assert points[1].x - points[0].x == 86400
        assert points[1].y == 71.5

    def test_future_predictions(self):
        regression = LinearRegressionResult(slope=0.0, intercept=5.0, r_squared=1.0, residual_standard_deviation=0.0)
        predictions = generate_future_predictions(regression, {"date": "2024-01-01T00:00:00Z"}, 3)

        assert [p["date"] for p in predictions] == [
            "2024-01-02T00:00:00+00:00",
            "2024-01-03T00:00:00+00:00",
            "2024-01-04T00:00:00+00:00",
        ]
        assert all(p["value"] == 5.0 and p["is_prediction"] for p in predictions)

    def test_future_predictions_are_non_negative(self):
        regression = LinearRegressionResult(slope=-1.0, intercept=0.0, r_squared=1.0, residual_standard_deviation=0.0)
        predictions = generate_future_predictions(regression, {"date": "2024-01-01T00:00:00Z"}, 2)

        assert all(p["value"] == 0.0 for p in predictions)
