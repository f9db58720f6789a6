"""
Analytics Module
Statistics, trend and anomaly detection over metric samples.

Structure:
    analytics/
    ├── models.py      → Output types (dataclasses)
    ├── statistics.py  → Pure computations (numpy / scipy)
    └── analyzer.py    → MetricAnalyzer (store lookback windows)

Usage:
    from analytics import MetricAnalyzer, statistics

    # Pure
    statistics.percentiles([10, 20, 30, 40], [50])   # {50.0: 20.0}

    # Store-bound
    analyzer = MetricAnalyzer(store)
    trend = analyzer.analyze_trend("cpu", timedelta(minutes=5))

Design Principles:
    ✓ statistics.py functions are PURE
    ✓ analyzer.py only reads copies from the store
    ✓ NO alert or persistence logic here
"""

from . import statistics

from .models import (
    Trend,
    Confidence,
    AnomalyType,
    MetricStatistics,
    TrendAnalysis,
    AnomalyDetection,
)

from .analyzer import MetricAnalyzer

__all__ = [
    # Modules
    "statistics",
    # Types
    "Trend",
    "Confidence",
    "AnomalyType",
    "MetricStatistics",
    "TrendAnalysis",
    "AnomalyDetection",
    # Analyzer
    "MetricAnalyzer",
]
