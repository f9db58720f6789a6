"""
Analytics Output Types
Dataclasses for analytics results.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict


class Trend(str, Enum):
    INCREASING = "INCREASING"
    DECREASING = "DECREASING"
    STABLE = "STABLE"


class Confidence(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class AnomalyType(str, Enum):
    SPIKE = "SPIKE"
    DROP = "DROP"


@dataclass
class MetricStatistics:
    """
    Summary statistics over a lookback window.

    Zero-filled (count=0) when the window is empty.
    """
    metric_name: str
    average: float = 0.0
    max: float = 0.0
    min: float = 0.0
    stddev: float = 0.0
    count: int = 0
    sum: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric_name": self.metric_name,
            "average": self.average,
            "max": self.max,
            "min": self.min,
            "stddev": self.stddev,
            "count": self.count,
            "sum": self.sum,
        }


@dataclass
class TrendAnalysis:
    """
    Linear trend of a metric.

    value_i = α + slope * i   (i = position in the ordered sequence)
    """
    metric_name: str
    trend: Trend = Trend.STABLE
    slope: float = 0.0
    correlation: float = 0.0
    confidence: Confidence = Confidence.LOW

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric_name": self.metric_name,
            "trend": self.trend.value,
            "slope": self.slope,
            "correlation": self.correlation,
            "confidence": self.confidence.value,
        }


@dataclass
class AnomalyDetection:
    """A sample outside mean ± k·stddev."""
    metric_name: str
    value: float
    timestamp: datetime
    anomaly_type: AnomalyType
    severity: float      # |value - mean| / stddev
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric_name": self.metric_name,
            "value": self.value,
            "timestamp": self.timestamp.isoformat(),
            "anomaly_type": self.anomaly_type.value,
            "severity": round(self.severity, 4),
            "description": self.description,
        }
