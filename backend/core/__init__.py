"""
Core Module
Metric ingestion, storage and aggregation.

Exports:
    Models: MetricSample, AggregatedMetric, AggregationType, MetricMetadata, IngestionResult
    Store: MetricStore, MetricSeries
    Aggregator: Aggregator, parse_aggregation_type
    Errors: MonitoringError, NotFoundError, ValidationError, TransientIOError, EvaluationError
    Settings: MonitoringSettings

The engine facade lives in core.engine and is imported from there
(it depends on the alerts, analytics and reports packages).
"""

from .models import (
    MetricSample,
    AggregatedMetric,
    AggregationType,
    MetricMetadata,
    IngestionResult,
    MetricBatch,
    to_metric_sample,
)

from .errors import (
    ErrorKind,
    MonitoringError,
    NotFoundError,
    ValidationError,
    TransientIOError,
    EvaluationError,
)

from .store import MetricStore, MetricSeries
from .aggregator import Aggregator, parse_aggregation_type
from .settings import MonitoringSettings

__all__ = [
    # Models
    "MetricSample",
    "AggregatedMetric",
    "AggregationType",
    "MetricMetadata",
    "IngestionResult",
    "MetricBatch",
    "to_metric_sample",
    # Errors
    "ErrorKind",
    "MonitoringError",
    "NotFoundError",
    "ValidationError",
    "TransientIOError",
    "EvaluationError",
    # Store
    "MetricStore",
    "MetricSeries",
    # Aggregator
    "Aggregator",
    "parse_aggregation_type",
    # Settings
    "MonitoringSettings",
]
