"""
Metric Statistics
Pure computations over value sequences.

Use: query endpoints, alert reports, dashboards

ALL functions are PURE (inputs → computation → outputs).
The store-bound wrapper lives in analyzer.py.
"""

import math
from typing import Dict, List, Sequence, Tuple

import numpy as np
from scipy import stats

from .models import (
    AnomalyType,
    Confidence,
    Trend,
)

SLOPE_THRESHOLD = 0.1
HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.5


def summarize(values: Sequence[float]) -> Dict[str, float]:
    """
    Mean, extremes, population stddev, count and sum.

    Empty input → every field 0.
    """
    if len(values) == 0:
        return {"average": 0.0, "max": 0.0, "min": 0.0, "stddev": 0.0, "count": 0, "sum": 0.0}

    arr = np.asarray(values, dtype=float)
    return {
        "average": float(np.mean(arr)),
        "max": float(np.max(arr)),
        "min": float(np.min(arr)),
        "stddev": float(np.std(arr)),
        "count": int(len(arr)),
        "sum": float(np.sum(arr)),
    }


def nearest_rank(sorted_values: Sequence[float], percentile: float) -> float:
    """
    Nearest-rank percentile.

    index = ceil(p/100 * n) - 1, clamped to [0, n-1]

    Example:
        nearest_rank([10, 20, 30, 40], 50) → 20
    """
    n = len(sorted_values)
    index = math.ceil(percentile / 100.0 * n) - 1
    index = max(0, min(index, n - 1))
    return float(sorted_values[index])


def percentiles(values: Sequence[float], ps: Sequence[float]) -> Dict[float, float]:
    """Nearest-rank percentiles; empty input → 0.0 for every p"""
    if len(values) == 0:
        return {float(p): 0.0 for p in ps}
    ordered = sorted(values)
    return {float(p): nearest_rank(ordered, p) for p in ps}


def linear_trend(values: Sequence[float]) -> Tuple[float, float]:
    """
    OLS slope and correlation of value against sequence position.

    Position, not wall-clock time, keeps the slope scale-stable.
    Fewer than 2 points → (0.0, 0.0).
    """
    if len(values) < 2:
        return 0.0, 0.0

    y = np.asarray(values, dtype=float)
    x = np.arange(len(y), dtype=float)
    if np.all(y == y[0]):
        return 0.0, 0.0

    result = stats.linregress(x, y)
    slope = float(result.slope)
    correlation = float(result.rvalue)
    if math.isnan(correlation):
        correlation = 0.0
    return slope, correlation


def classify_trend(slope: float, correlation: float) -> Tuple[Trend, Confidence]:
    """Map slope/correlation to trend direction and confidence"""
    if slope > SLOPE_THRESHOLD:
        trend = Trend.INCREASING
    elif slope < -SLOPE_THRESHOLD:
        trend = Trend.DECREASING
    else:
        trend = Trend.STABLE

    strength = abs(correlation)
    if strength > HIGH_CONFIDENCE:
        confidence = Confidence.HIGH
    elif strength > MEDIUM_CONFIDENCE:
        confidence = Confidence.MEDIUM
    else:
        confidence = Confidence.LOW
    return trend, confidence


def outliers(
    values: Sequence[float],
    threshold: float
) -> List[Tuple[int, AnomalyType, float]]:
    """
    Indices of values at or beyond mean ± threshold·stddev.

    Returns:
        (index, SPIKE|DROP, severity) with severity = |value - mean| / stddev
    """
    if len(values) < 2:
        return []

    arr = np.asarray(values, dtype=float)
    mean = float(np.mean(arr))
    std = float(np.std(arr))
    if std <= 0:
        return []

    found = []
    for i, value in enumerate(arr):
        deviation = abs(value - mean)
        if deviation >= threshold * std:
            kind = AnomalyType.SPIKE if value > mean else AnomalyType.DROP
            found.append((i, kind, deviation / std))
    return found


def bounds(values: Sequence[float], threshold: float) -> Tuple[float, float]:
    """Normal range [mean - k·std, mean + k·std]"""
    if len(values) == 0:
        return 0.0, 0.0
    arr = np.asarray(values, dtype=float)
    mean = float(np.mean(arr))
    std = float(np.std(arr))
    return mean - threshold * std, mean + threshold * std
