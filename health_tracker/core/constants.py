"""
Shared scoring and trend constants.

Both the scoring engine and the dashboard transformers read these values,
so a change here moves every score and color band together.
"""

# Z-scores are mapped from [-Z_SCORE_SPREAD, +Z_SCORE_SPREAD] onto [0, 100]
Z_SCORE_SPREAD = 3

# Changes smaller than this (in percent) are reported as a neutral trend
NEUTRAL_TREND_THRESHOLD_PERCENT = 1.0

DEFAULT_NEUTRAL_SCORE = 50

MIN_SCORE = 0
MAX_SCORE = 100

# Lower bound of each score band
EXCELLENT_SCORE_THRESHOLD = 80
GOOD_SCORE_THRESHOLD = 60
FAIR_SCORE_THRESHOLD = 40

DEFAULT_SCORE_COLORS = {
    "excellent": "#10b981",  # green-500
    "good": "#3b82f6",       # blue-500
    "fair": "#f59e0b",       # amber-500
    "poor": "#ef4444",       # red-500
}

DEFAULT_TYPE_COLOR = "#6b7280"
DEFAULT_TYPE_ICON = "📊"

# Smallest half-width of a prediction confidence band
MIN_CONFIDENCE_MARGIN = 0.01

# Radar charts need at least this many axes to render as a polygon
MIN_RADAR_METRICS = 3
MAX_PLACEHOLDER_RADAR_METRICS = 5
RADAR_PLACEHOLDER_TYPES = ["weight", "steps", "sleep", "heart_rate", "water_intake"]

PROFILE_COMPLETENESS_FIELDS = [
    "fitness_level",
    "experience_years",
    "timezone",
    "date_of_birth",
    "height",
    "weight",
    "activity_level",
]
