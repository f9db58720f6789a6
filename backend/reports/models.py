"""
Report Types
Dataclasses for monitoring, performance and alert reports.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List

from alerts.models import AlertEvent
from analytics.models import AnomalyDetection, MetricStatistics


@dataclass
class MonitoringReport:
    """
    Base report.

    summary keys:
        totalMetricsCollected, totalAggregationsPerformed,
        activeMetrics, reportGeneratedAt
    """
    report_type: str
    generated_at: datetime
    time_range: timedelta
    summary: Dict[str, Any] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)
    metric_statistics: List[MetricStatistics] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "report_type": self.report_type,
            "generated_at": self.generated_at.isoformat(),
            "time_range_seconds": self.time_range.total_seconds(),
            "summary": self.summary,
            "recommendations": self.recommendations,
            "metric_statistics": [s.to_dict() for s in self.metric_statistics],
        }


@dataclass
class PerformanceReport(MonitoringReport):
    performance_metrics: Dict[str, float] = field(default_factory=dict)
    bottlenecks: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "performance_metrics": self.performance_metrics,
            "bottlenecks": self.bottlenecks,
        }


@dataclass
class AlertReport(MonitoringReport):
    severity: str = "ALL"
    anomalies: List[AnomalyDetection] = field(default_factory=list)
    alert_events: List[AlertEvent] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "severity": self.severity,
            "anomalies": [a.to_dict() for a in self.anomalies],
            "alert_events": [e.to_dict() for e in self.alert_events],
        }
