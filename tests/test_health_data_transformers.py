"""
Tests for the dashboard data transformers.
Covers summary cards, radar snapshots, predictive series and display helpers.
"""
import pytest

from health_tracker.core.error_handling import HealthDataValidationError
from health_tracker.services.health_data_transformers import (
    calculate_overall_health_score,
    calculate_trend,
    format_health_value,
    get_health_type_config,
    get_previous_value,
    normalize_health_value,
    resolve_health_type,
    transform_to_predictive_data,
    transform_to_radar_data,
    transform_to_summary_metrics,
)


class TestHealthTypeConfig:
    """Display configuration per health type."""

    def test_known_type(self):
        config = get_health_type_config("weight")

        assert config.icon == "⚖️"
        assert config.color == "#8884d8"
        assert config.unit == "kg"
        assert (config.ideal_range.min, config.ideal_range.max) == (50, 90)
        assert config.scoring_multiplier == 1

    def test_aliases_and_spacing(self):
        assert resolve_health_type("Blood Pressure") == "blood_pressure_systolic"
        assert resolve_health_type("sleep_hours") == "sleep"
        assert get_health_type_config("blood_sugar").unit == "mg/dL"

    def test_unknown_type_gets_default(self):
        config = get_health_type_config("mood")

        assert config.color == "#6b7280"
        assert config.icon == "📊"
        assert config.unit == ""
        assert config.ideal_range is None

    @pytest.mark.parametrize("value", [None, "", "   ", 42])
    def test_empty_or_non_string_type(self, value):
        assert get_health_type_config(value).color == "#6b7280"


class TestNormalizeHealthValue:
    """Record scoring through the shared scoring engine."""

    def test_percentage(self):
        assert normalize_health_value(10000, "steps") == 50
        assert normalize_health_value(79, "weight") == 28

    def test_z_score_uses_ideal_range(self):
        """Mean is the ideal midpoint, sd a quarter of the ideal width."""
        assert normalize_health_value(10000, "steps", "z-score") == 50
        assert normalize_health_value(11000, "steps", "z-score") == 67

    def test_custom_uses_display_multiplier(self):
        assert normalize_health_value(5000, "steps", "custom") == 50
        assert normalize_health_value(20000, "steps", "custom") == 100

    def test_default_system_comes_from_settings(self, monkeypatch):
        from health_tracker.core.config import settings

        monkeypatch.setattr(settings, "DEFAULT_SCORING_SYSTEM", "custom")

        assert normalize_health_value(20000, "steps") == 100
        assert normalize_health_value(20000, "steps", "percentage") == 100
        assert normalize_health_value(9000, "steps") == 90
        assert normalize_health_value(9000, "steps", "percentage") == 25

    def test_unknown_type_is_neutral(self):
        assert normalize_health_value(7, "mood") == 50

    @pytest.mark.parametrize("value", ["abc", None, True])
    def test_non_numeric_value_is_neutral(self, value):
        assert normalize_health_value(value, "steps") == 50


class TestCalculateTrend:
    """Direction and magnitude of change."""

    def test_upward(self):
        trend = calculate_trend(110, 100)
        assert (trend.direction, trend.percentage) == ("up", 10.0)

    def test_downward(self):
        trend = calculate_trend(95, 100)
        assert (trend.direction, trend.percentage) == ("down", 5.0)

    def test_small_change_is_neutral(self):
        trend = calculate_trend(100.5, 100)
        assert trend.direction == "neutral"
        assert trend.percentage == 0.5

    def test_zero_previous(self):
        trend = calculate_trend(50, 0)
        assert (trend.direction, trend.percentage) == ("neutral", 0.0)

    def test_percentage_is_rounded(self):
        assert calculate_trend(79, 80).percentage == 1.25
        assert calculate_trend(11000, 9000).percentage == 22.22

    @pytest.mark.parametrize("current,previous", [("a", 1), (1, None), (float("nan"), 1), (1, float("inf"))])
    def test_invalid_values(self, current, previous):
        with pytest.raises(HealthDataValidationError):
            calculate_trend(current, previous)


class TestPreviousValue:

    def test_latest_other_record(self, sample_records):
        assert get_previous_value(sample_records, "weight", current_record_id=3) == 80.0

    def test_without_current_id(self, sample_records):
        assert get_previous_value(sample_records, "weight") == 79.0

    def test_no_matching_records(self, sample_records):
        assert get_previous_value(sample_records, "sleep") is None

    def test_invalid_type(self, sample_records):
        with pytest.raises(HealthDataValidationError):
            get_previous_value(sample_records, "")


class TestSummaryMetrics:
    """Summary cards built from records and goals."""

    def test_one_metric_per_type(self, sample_records, sample_goals):
        metrics = transform_to_summary_metrics(sample_records, sample_goals)

        assert [m.id for m in metrics] == ["metric-weight-3", "metric-steps-5"]

    def test_weight_metric(self, sample_records, sample_goals):
        weight = transform_to_summary_metrics(sample_records, sample_goals)[0]

        assert weight.label == "Weight"
        assert weight.value == 79.0
        assert weight.unit == "kg"
        assert weight.previous_value == 80.0
        assert (weight.trend.direction, weight.trend.percentage) == ("down", 1.25)
        assert weight.goal_target == 75.0
        assert weight.goal_current == 79.0
        assert weight.goal_progress == pytest.approx(105.33)

    def test_inactive_goals_are_ignored(self, sample_records, sample_goals):
        steps = transform_to_summary_metrics(sample_records, sample_goals)[1]

        assert steps.trend.direction == "up"
        assert steps.goal_target is None
        assert steps.goal_progress is None

    def test_single_record_has_no_trend(self):
        metrics = transform_to_summary_metrics(
            [{"id": 1, "type": "heart_rate", "value": 70, "recorded_at": "2024-01-01T00:00:00Z"}], []
        )

        assert metrics[0].previous_value is None
        assert metrics[0].trend is None
        assert metrics[0].unit == "bpm"

    def test_goal_without_records(self):
        goals = [{"id": 12, "type": "sleep", "current_value": 6, "target_value": 8, "status": "active"}]
        metrics = transform_to_summary_metrics([], goals)

        assert len(metrics) == 1
        assert metrics[0].id == "metric-goal-sleep-12"
        assert metrics[0].value == 6
        assert metrics[0].goal_progress == 75.0

    def test_empty_input(self):
        assert transform_to_summary_metrics([], []) == []

    def test_malformed_record_reports_index(self, sample_records):
        records = sample_records + [{"id": 9, "type": "weight", "value": "heavy", "recorded_at": "2024-06-01"}]

        with pytest.raises(HealthDataValidationError) as exc_info:
            transform_to_summary_metrics(records, [])

        assert exc_info.value.index == 5
        assert "index 5" in str(exc_info.value)

    def test_non_list_input(self):
        with pytest.raises(HealthDataValidationError):
            transform_to_summary_metrics("records", [])


MALFORMED_RECORDS = [
    {"id": 9, "type": "weight", "value": float("nan"), "recorded_at": "2024-06-01T00:00:00Z"},
    {"id": 9, "type": "weight", "value": float("inf"), "recorded_at": "2024-06-01T00:00:00Z"},
    {"id": 9, "type": "weight", "value": 70, "recorded_at": "early June"},
    {"id": 9, "type": 42, "value": 70, "recorded_at": "2024-06-01T00:00:00Z"},
]


class TestMalformedInput:
    """Both dashboard transforms reject bad records before doing any work."""

    @pytest.mark.parametrize("transform", [transform_to_summary_metrics, transform_to_radar_data])
    @pytest.mark.parametrize("bad_record", MALFORMED_RECORDS, ids=["nan", "inf", "bad-date", "non-string-type"])
    def test_bad_record_raises(self, transform, bad_record, sample_records):
        with pytest.raises(HealthDataValidationError) as exc_info:
            transform(sample_records + [bad_record], [])

        assert exc_info.value.index == len(sample_records)
        assert exc_info.value.field == "record"

    @pytest.mark.parametrize("transform", [transform_to_summary_metrics, transform_to_radar_data])
    def test_bad_goal_raises(self, transform):
        goals = [{"id": 1, "type": "sleep", "current_value": float("nan"), "target_value": 8}]
        with pytest.raises(HealthDataValidationError):
            transform([], goals)


class TestRadarData:
    """Single radar snapshot with placeholder padding."""

    def test_padding_to_five_axes(self, sample_records, sample_goals):
        chart = transform_to_radar_data(sample_records, sample_goals, timestamp="2024-06-15T12:00:00+00:00")

        assert len(chart) == 1
        assert chart[0].timestamp == "2024-06-15T12:00:00+00:00"
        assert chart[0].label == "Current Health Status"
        assert [m.category for m in chart[0].metrics] == [
            "Weight", "Steps", "Sleep", "Heart Rate", "Water Intake",
        ]

    def test_real_metric_scores(self, sample_records, sample_goals):
        weight, steps = transform_to_radar_data(sample_records, sample_goals)[0].metrics[:2]

        assert weight.max_value == 75.0
        assert weight.score == 28
        assert weight.color == "#8884d8"
        assert steps.max_value == 12000
        assert steps.score == 75

    def test_placeholders_are_zero(self, sample_records, sample_goals):
        placeholders = transform_to_radar_data(sample_records, sample_goals)[0].metrics[2:]

        assert all(m.value == 0 and m.score == 0 for m in placeholders)

    def test_no_padding_with_three_types(self):
        records = [
            {"id": i, "type": t, "value": v, "recorded_at": "2024-01-01T00:00:00Z"}
            for i, (t, v) in enumerate([("weight", 70), ("sleep", 8), ("heart_rate", 65)])
        ]
        metrics = transform_to_radar_data(records, [])[0].metrics

        assert len(metrics) == 3

    def test_empty_input_gets_placeholders(self):
        metrics = transform_to_radar_data([], [])[0].metrics
        assert len(metrics) == 5

    def test_timestamp_defaults_to_now(self):
        assert transform_to_radar_data([], [])[0].timestamp


class TestPredictiveData:
    """Historical series followed by predictions with confidence bands."""

    def test_linear_regression(self, trend_series):
        series = transform_to_predictive_data(trend_series, "linear-regression", prediction_horizon=3)

        historical = [p for p in series if not p.is_prediction]
        predictions = [p for p in series if p.is_prediction]
        assert len(historical) == 5
        assert historical[0].date == trend_series[0]["date"]
        assert [p.value for p in predictions] == [75.0, 76.0, 77.0]
        assert [p.date for p in predictions] == ["2024-01-06", "2024-01-07", "2024-01-08"]
        assert all(p.algorithm == "linear-regression" for p in predictions)
        assert all(p.unit == "kg" for p in predictions)

    def test_bands_bracket_predictions(self, trend_series):
        series = transform_to_predictive_data(trend_series, "linear-regression", prediction_horizon=3)

        for point in series[5:]:
            assert point.confidence_lower < point.value < point.confidence_upper

    def test_bands_bracket_large_magnitudes(self):
        trend = [
            {"date": f"2024-01-0{i + 1}", "value": 1e15 + 2 * i}
            for i in range(3)
        ]
        predictions = transform_to_predictive_data(trend, prediction_horizon=3)[3:]

        assert len(predictions) == 3
        for point in predictions:
            assert point.confidence_lower < point.value < point.confidence_upper

    def test_moving_average(self, trend_series):
        series = transform_to_predictive_data(trend_series, "moving-average", prediction_horizon=2)
        predictions = series[5:]

        assert [p.value for p in predictions] == [72.0, 72.0]
        assert predictions[1].confidence_upper - predictions[1].value > predictions[0].confidence_upper - predictions[0].value

    def test_default_horizon(self, trend_series):
        series = transform_to_predictive_data(trend_series)
        assert len([p for p in series if p.is_prediction]) == 7

    @pytest.mark.parametrize("horizon", [0, -3, "abc", float("nan")])
    def test_invalid_horizon_uses_default(self, trend_series, horizon):
        series = transform_to_predictive_data(trend_series, prediction_horizon=horizon)
        assert len(series) == 5 + 7

    def test_unknown_algorithm_uses_linear_regression(self, trend_series):
        series = transform_to_predictive_data(trend_series, "neural-net", prediction_horizon=1)
        assert series[-1].algorithm == "linear-regression"
        assert series[-1].value == 75.0

    def test_single_point_has_no_predictions(self, trend_series):
        series = transform_to_predictive_data(trend_series[:1])

        assert len(series) == 1
        assert series[0].is_prediction is False

    def test_empty_series(self):
        assert transform_to_predictive_data([]) == []

    def test_malformed_point(self, trend_series):
        with pytest.raises(HealthDataValidationError):
            transform_to_predictive_data(trend_series + [{"date": "yesterday", "value": 1}])


class TestHelpers:

    def test_overall_score(self):
        assert calculate_overall_health_score([{"score": 80}, {"score": 61}]) == 71

    def test_overall_score_skips_non_finite(self):
        assert calculate_overall_health_score([{"score": 40}, {"score": float("nan")}, {}]) == 40

    def test_overall_score_empty(self):
        assert calculate_overall_health_score([]) == 50

    @pytest.mark.parametrize("value,unit,expected", [
        (12345, "steps", "12,345"),
        (80.0, "bpm", "80"),
        (72.456, "kg", "72.5"),
        (70, "kg", "70"),
        (7.25, "hours", "7.2"),
        (2.5, "ml", "2.5"),
        (3, "", "3"),
        (float("nan"), "kg", "0"),
    ])
    def test_format_health_value(self, value, unit, expected):
        assert format_health_value(value, unit) == expected
