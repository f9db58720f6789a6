"""
Domain Models
The SINGLE SOURCE OF TRUTH for metric data formats.

After normalization, the engine only sees these types.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def to_local_naive(dt: datetime) -> datetime:
    """Offset-aware → naive local time; the engine clock is naive"""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone().replace(tzinfo=None)


# =============================================================================
# MetricSample: The Core Data Contract
# =============================================================================

class MetricSample(BaseModel):
    """
    A single timestamped observation of a named metric.

    Immutable once created. The store copies samples in; producers never
    share a mutable reference with the engine.

    Fields:
        name: Metric name (cpu, performance.api_latency, ...)
        value: Observed value
        timestamp: Parsed datetime
        tags: Free-form string labels
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, max_length=200)
    value: float
    timestamp: datetime
    tags: Dict[str, str] = Field(default_factory=dict)

    @field_validator('name', mode='before')
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator('value')
    @classmethod
    def finite_value(cls, v):
        if not math.isfinite(v):
            raise ValueError("metric value must be finite")
        return v

    @field_validator('timestamp', mode='before')
    @classmethod
    def parse_timestamp(cls, v):
        """Handle various timestamp formats"""
        if isinstance(v, datetime):
            return to_local_naive(v)
        if isinstance(v, str):
            return to_local_naive(datetime.fromisoformat(v.replace('Z', '+00:00')))
        if isinstance(v, (int, float)):
            # Unix timestamp (seconds or milliseconds)
            if v > 1e12:
                return datetime.fromtimestamp(v / 1000)
            return datetime.fromtimestamp(v)
        return v

    @field_validator('tags', mode='before')
    @classmethod
    def stringify_tags(cls, v):
        if v is None:
            return {}
        return {str(k): str(val) for k, val in dict(v).items()}

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "value": self.value,
            "timestamp": self.timestamp.isoformat(),
            "tags": dict(self.tags),
        }


# =============================================================================
# Aggregation Output
# =============================================================================

class AggregationType(str, Enum):
    AVG = "AVG"
    MAX = "MAX"
    MIN = "MIN"
    SUM = "SUM"
    COUNT = "COUNT"
    CUSTOM = "CUSTOM"


class AggregatedMetric(BaseModel):
    """Result of reducing one window of samples. Recomputed per call."""
    metric_name: str
    value: float
    aggregation_type: AggregationType
    window_start: datetime
    window_end: datetime
    sample_count: int

    def to_dict(self) -> dict:
        return {
            "metric_name": self.metric_name,
            "value": self.value,
            "aggregation_type": self.aggregation_type.value,
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "sample_count": self.sample_count,
        }


class MetricMetadata(BaseModel):
    """Descriptive metadata for a metric name"""
    name: str
    description: str = "System monitoring metric"
    unit: str = "count"
    metric_type: str = "GAUGE"
    tags: Dict[str, str] = Field(default_factory=lambda: {"source": "system"})


# =============================================================================
# API Response Models
# =============================================================================

class IngestionResult(BaseModel):
    """Result of metric ingestion"""
    success: bool = True
    count: int = 0
    errors: int = 0
    metrics: List[str] = []
    message: str = ""


class MetricBatch(BaseModel):
    """Batch of samples from an external producer"""
    samples: List[dict]


# =============================================================================
# Converters: External → Internal
# =============================================================================

def to_metric_sample(data: dict, now: Optional[datetime] = None) -> MetricSample:
    """
    Convert an external record to a MetricSample.

    This is the NORMALIZATION POINT.

    Handles:
    - timestamp/ts/time field variants (missing → now)
    - name/metric/metric_name field variants
    - tags/labels field variants
    """
    ts = data.get('timestamp') or data.get('ts') or data.get('time') or now or datetime.now()
    name = data.get('name') or data.get('metric') or data.get('metric_name')
    tags = data.get('tags') or data.get('labels') or {}

    return MetricSample(
        name=name,
        value=float(data['value']),
        timestamp=ts,
        tags=tags,
    )
