"""
Metric Analyzer
Binds the pure statistics functions to a MetricStore lookback window.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Sequence

from core.models import MetricSample
from core.store import MetricStore

from . import statistics
from .models import AnomalyDetection, MetricStatistics, TrendAnalysis

logger = logging.getLogger(__name__)


class MetricAnalyzer:
    """
    Statistics, percentiles, trend and anomalies for one metric at a time.

    Every call reads a copy of the samples in (now - lookback, now];
    writers are never blocked beyond the copy.
    """

    def __init__(self, store: MetricStore, clock: Callable[[], datetime] = datetime.now):
        self._store = store
        self._clock = clock

    def _samples(self, metric_name: str, lookback: timedelta) -> List[MetricSample]:
        now = self._clock()
        return self._store.query_range(metric_name, now - lookback, now)

    def statistics(self, metric_name: str, lookback: timedelta) -> MetricStatistics:
        values = [s.value for s in self._samples(metric_name, lookback)]
        return MetricStatistics(metric_name=metric_name, **statistics.summarize(values))

    def percentiles(
        self,
        metric_name: str,
        percentiles: Sequence[float],
        lookback: timedelta
    ) -> Dict[float, float]:
        values = [s.value for s in self._samples(metric_name, lookback)]
        return statistics.percentiles(values, percentiles)

    def analyze_trend(self, metric_name: str, lookback: timedelta) -> TrendAnalysis:
        samples = self._samples(metric_name, lookback)
        if len(samples) < 2:
            return TrendAnalysis(metric_name=metric_name)

        slope, correlation = statistics.linear_trend([s.value for s in samples])
        trend, confidence = statistics.classify_trend(slope, correlation)
        return TrendAnalysis(
            metric_name=metric_name,
            trend=trend,
            slope=slope,
            correlation=correlation,
            confidence=confidence,
        )

    def detect_anomalies(
        self,
        metric_name: str,
        threshold: float,
        lookback: timedelta
    ) -> List[AnomalyDetection]:
        """
        Samples at or beyond mean ± threshold·stddev of the window.

        Ordered by timestamp.
        """
        samples = self._samples(metric_name, lookback)
        values = [s.value for s in samples]
        lower, upper = statistics.bounds(values, threshold)

        anomalies = []
        for idx, kind, severity in statistics.outliers(values, threshold):
            sample = samples[idx]
            anomalies.append(AnomalyDetection(
                metric_name=metric_name,
                value=sample.value,
                timestamp=sample.timestamp,
                anomaly_type=kind,
                severity=severity,
                description=(
                    f"Value {sample.value:.2f} outside normal range "
                    f"[{lower:.2f}, {upper:.2f}]"
                ),
            ))

        if anomalies:
            logger.debug("Detected %d anomalies for %s", len(anomalies), metric_name)
        return anomalies
