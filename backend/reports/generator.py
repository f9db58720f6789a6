"""
Report Generator
Read-only summaries over the store, aggregator and alert engine.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from alerts.engine import AlertEngine
from analytics.analyzer import MetricAnalyzer
from analytics.models import AnomalyDetection
from core.aggregator import Aggregator
from core.errors import ValidationError
from core.store import MetricStore

from .models import AlertReport, MonitoringReport, PerformanceReport

logger = logging.getLogger(__name__)

# Recommendation triggers
MAX_COLLECTED_BEFORE_CLEANUP = 10000
MAX_METRICS_BEFORE_GROUPING = 100

PERFORMANCE_PREFIX = "performance."
BOTTLENECK_THRESHOLD = 1000.0

ANOMALY_THRESHOLD = 2.0
SEVERITY_FLOORS = {
    "HIGH": 3.0,
    "MEDIUM": 2.0,
}
REPORT_SEVERITIES = {"ALL", "LOW", "MEDIUM", "HIGH", "CRITICAL"}


class ReportGenerator:
    """
    Builds reports. Never mutates engine state.

    Usage:
        reports = ReportGenerator(store, aggregator, analyzer, alert_engine)
        report = reports.generate_report("DAILY", timedelta(hours=24))
    """

    def __init__(
        self,
        store: MetricStore,
        aggregator: Aggregator,
        analyzer: MetricAnalyzer,
        alert_engine: Optional[AlertEngine] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self._store = store
        self._aggregator = aggregator
        self._analyzer = analyzer
        self._alerts = alert_engine
        self._clock = clock

    def _base(self, report_cls, report_type: str, time_range: timedelta, **fields):
        if time_range <= timedelta(0):
            raise ValidationError("time_range must be positive")

        now = self._clock()
        store_stats = self._store.stats()
        collected = store_stats["total_recorded"]
        active = store_stats["metrics"]

        summary = {
            "totalMetricsCollected": collected,
            "totalAggregationsPerformed": self._aggregator.aggregations_performed,
            "activeMetrics": active,
            "reportGeneratedAt": now.isoformat(),
        }

        recommendations = []
        if collected > MAX_COLLECTED_BEFORE_CLEANUP:
            recommendations.append("Consider cleaning up expired data more often to reduce memory usage")
        if active > MAX_METRICS_BEFORE_GROUPING:
            recommendations.append("Large number of active metrics; consider grouping them by category")

        statistics = [
            s for s in (self._analyzer.statistics(name, time_range) for name in self._store.names())
            if s.count > 0
        ]

        return report_cls(
            report_type=report_type,
            generated_at=now,
            time_range=time_range,
            summary=summary,
            recommendations=recommendations,
            metric_statistics=statistics,
            **fields
        )

    def generate_report(self, report_type: str, time_range: timedelta) -> MonitoringReport:
        report = self._base(MonitoringReport, report_type.upper(), time_range)
        logger.info("Report generated: %s (%d metrics)", report.report_type, len(report.metric_statistics))
        return report

    def generate_performance_report(self, time_range: timedelta) -> PerformanceReport:
        """
        Average of every performance.* metric in range.

        Averages above BOTTLENECK_THRESHOLD are reported as bottlenecks.
        """
        performance = {}
        for name in self._store.names():
            if not name.startswith(PERFORMANCE_PREFIX):
                continue
            stats = self._analyzer.statistics(name, time_range)
            if stats.count > 0:
                performance[name] = stats.average

        bottlenecks = [
            f"High latency detected: {name} = {avg}"
            for name, avg in performance.items()
            if avg > BOTTLENECK_THRESHOLD
        ]

        report = self._base(
            PerformanceReport, "PERFORMANCE", time_range,
            performance_metrics=performance,
            bottlenecks=bottlenecks,
        )
        logger.info("Performance report generated: %d metrics, %d bottlenecks", len(performance), len(bottlenecks))
        return report

    def _anomalies(self, severity: str, time_range: timedelta) -> List[AnomalyDetection]:
        found = []
        for name in self._store.names():
            for anomaly in self._analyzer.detect_anomalies(name, ANOMALY_THRESHOLD, time_range):
                if severity == "ALL":
                    found.append(anomaly)
                elif severity in SEVERITY_FLOORS and anomaly.severity > SEVERITY_FLOORS[severity]:
                    found.append(anomaly)
        return found

    def generate_alert_report(self, severity: str, time_range: timedelta) -> AlertReport:
        """
        Anomalies (k = 2) across all metrics plus alert events in range.

        severity:
            ALL     → every anomaly and event
            HIGH    → anomalies with severity > 3
            MEDIUM  → anomalies with severity > 2
            other   → events of that severity only
        """
        severity = (severity or "ALL").upper()
        if severity not in REPORT_SEVERITIES:
            raise ValidationError(f"Unknown severity filter: {severity}")

        events = []
        if self._alerts is not None:
            events = self._alerts.get_alert_history(hours=time_range.total_seconds() / 3600)
            if severity != "ALL":
                events = [e for e in events if e.severity.value == severity]

        report = self._base(
            AlertReport, "ALERT", time_range,
            severity=severity,
            anomalies=self._anomalies(severity, time_range),
            alert_events=events,
        )
        logger.info("Alert report generated: %d anomalies, %d events", len(report.anomalies), len(events))
        return report
