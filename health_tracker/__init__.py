"""
Health Tracker Analytics
Scoring, statistics, goal progress and dashboard transformers for health records
"""

__version__ = "0.1.0"
