"""
Monitoring Engine
Owns every component and exposes the ingest / query / maintenance API.

Lifecycle:
    engine = MonitoringEngine.from_settings(MonitoringSettings())
    engine.start()      # load persisted alert state, start scheduler
    ...
    engine.close()      # stop scheduler, drain worker pools
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from alerts.engine import AlertEngine
from alerts.notifiers import LogNotifier, NotificationDispatcher, Notifier, WebhookNotifier
from analytics.analyzer import MetricAnalyzer
from analytics.models import AnomalyDetection, MetricStatistics, TrendAnalysis
from db.redis_store import RedisPersistence
from reports.export import export_metrics
from reports.generator import ReportGenerator
from services.scheduler import MonitoringScheduler

from .aggregator import Aggregator
from .errors import ValidationError
from .models import IngestionResult, MetricMetadata, MetricSample, to_metric_sample
from .settings import MonitoringSettings
from .store import MetricStore

logger = logging.getLogger(__name__)

PERFORMANCE_PREFIX = "performance."
SYSTEM_PREFIX = "system."
PERFORMANCE_TAGS = {"type": "performance", "source": "system"}
SYSTEM_TAGS = {"type": "system", "source": "monitor"}


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class MonitoringEngine:
    """
    Facade over store, aggregator, analyzer, alerts, reports and persistence.

    Constructed explicitly and torn down with close(); there is no
    module-level instance.
    """

    def __init__(
        self,
        settings: Optional[MonitoringSettings] = None,
        persistence: Optional[RedisPersistence] = None,
        notifiers: Optional[List[Notifier]] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.settings = settings or MonitoringSettings()
        self._clock = clock
        self.persistence = persistence

        self.store = MetricStore(
            horizon=self.settings.hot_window,
            maxlen=self.settings.max_samples_per_metric,
        )
        self.aggregator = Aggregator(self.store, clock=clock)
        self.analyzer = MetricAnalyzer(self.store, clock=clock)
        self.dispatcher = NotificationDispatcher(
            notifiers if notifiers is not None else [LogNotifier()],
            workers=self.settings.notification_workers,
        )
        self.alerts = AlertEngine(
            self.store,
            aggregator=self.aggregator,
            dispatcher=self.dispatcher,
            persistence=persistence,
            history_size=self.settings.history_size,
            auto_resolve=self.settings.auto_resolve,
            subscriber_queue_size=self.settings.subscriber_queue_size,
            clock=clock,
        )
        self.reports = ReportGenerator(self.store, self.aggregator, self.analyzer, self.alerts, clock=clock)
        self.scheduler = MonitoringScheduler(
            self,
            evaluation_interval=self.settings.evaluation_interval_seconds,
            cleanup_interval=self.settings.cleanup_interval_seconds,
        )

        self._metadata: Dict[str, MetricMetadata] = {}
        self._metadata_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._stats = {
            "samples_recorded": 0,
            "samples_rejected": 0,
            "cleaned_up": 0,
            "start_time": clock(),
        }

    @classmethod
    def from_settings(cls, settings: MonitoringSettings, clock: Callable[[], datetime] = datetime.now) -> "MonitoringEngine":
        """Wire Redis and webhook side channels from settings"""
        persistence = None
        if settings.redis_url:
            persistence = RedisPersistence.from_url(
                settings.redis_url,
                retention=settings.retention,
                workers=settings.persistence_workers,
            )

        notifiers: List[Notifier] = [LogNotifier()]
        if settings.webhook_url:
            notifiers.append(WebhookNotifier(settings.webhook_url, timeout=settings.webhook_timeout_seconds))

        return cls(settings=settings, persistence=persistence, notifiers=notifiers, clock=clock)

    def now(self) -> datetime:
        return self._clock()

    def _bump(self, key: str, n: int = 1) -> None:
        with self._stats_lock:
            self._stats[key] += n

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        self.alerts.load_persisted_state()
        if self.settings.scheduler_enabled:
            self.scheduler.start()
        logger.info("Monitoring engine started")

    def close(self) -> None:
        if self.scheduler.is_running:
            self.scheduler.stop()
        self.dispatcher.close()
        if self.persistence:
            self.persistence.close()
        logger.info("Monitoring engine closed")

    # =========================================================================
    # Ingestion
    # =========================================================================

    def _record(self, sample: MetricSample) -> MetricSample:
        self.store.record(sample)
        self._bump("samples_recorded")

        if self.persistence:
            self.persistence.submit(self.persistence.save_sample, sample)

        if self.settings.evaluate_on_record:
            self.alerts.evaluate_metric(sample.name)
        return sample

    def record_metric(
        self,
        name: str,
        value: float,
        timestamp: Optional[datetime] = None,
        tags: Optional[Dict[str, Any]] = None
    ) -> MetricSample:
        """
        Record one sample.

        Raises:
            ValidationError: empty name or non-finite value
        """
        try:
            sample = MetricSample(
                name=name,
                value=value,
                timestamp=timestamp or self._clock(),
                tags=dict(tags or {}),
            )
        except PydanticValidationError as e:
            self._bump("samples_rejected")
            raise ValidationError(f"Invalid metric sample: {e.errors()[0]['msg']}", detail={"name": name})
        return self._record(sample)

    def record_metrics(self, records: Iterable[Dict[str, Any]]) -> IngestionResult:
        """Record a batch of external records; bad records are counted, not raised"""
        count = 0
        errors = 0
        names = set()
        now = self._clock()

        for record in records:
            try:
                sample = to_metric_sample(record, now=now)
            except (PydanticValidationError, KeyError, ValueError, TypeError, AttributeError) as e:
                errors += 1
                self._bump("samples_rejected")
                logger.debug("Rejected metric record %r: %s", record, e)
                continue
            self._record(sample)
            names.add(sample.name)
            count += 1

        return IngestionResult(
            success=errors == 0,
            count=count,
            errors=errors,
            metrics=sorted(names),
            message=f"Recorded {count} samples" + (f", rejected {errors}" if errors else ""),
        )

    def _record_prefixed(self, values: Dict[str, Any], prefix: str, tags: Dict[str, str]) -> IngestionResult:
        now = self._clock()
        recorded = []
        skipped = 0
        for key, value in values.items():
            if not _is_number(value):
                skipped += 1
                continue
            sample = self.record_metric(f"{prefix}{key}", float(value), now, tags)
            recorded.append(sample.name)

        return IngestionResult(
            success=True,
            count=len(recorded),
            errors=skipped,
            metrics=recorded,
            message=f"Recorded {len(recorded)} samples" + (f", skipped {skipped} non-numeric" if skipped else ""),
        )

    def record_performance_metrics(self, values: Dict[str, Any]) -> IngestionResult:
        """performance.<key>, tagged type=performance source=system"""
        return self._record_prefixed(values, PERFORMANCE_PREFIX, PERFORMANCE_TAGS)

    def record_system_metrics(self, values: Dict[str, Any]) -> IngestionResult:
        """system.<key>, tagged type=system source=monitor"""
        return self._record_prefixed(values, SYSTEM_PREFIX, SYSTEM_TAGS)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_samples(self, name: str, lookback: Optional[timedelta] = None) -> List[MetricSample]:
        since = self._clock() - lookback if lookback else None
        return self.store.query(name, since=since)

    def get_statistics(self, name: str, lookback: timedelta) -> MetricStatistics:
        return self.analyzer.statistics(name, lookback)

    def get_percentiles(self, name: str, percentiles: Sequence[float], lookback: timedelta) -> Dict[float, float]:
        for p in percentiles:
            if not 0 <= p <= 100:
                raise ValidationError(f"Percentile out of range: {p}")
        return self.analyzer.percentiles(name, percentiles, lookback)

    def get_trend(self, name: str, lookback: timedelta) -> TrendAnalysis:
        return self.analyzer.analyze_trend(name, lookback)

    def get_anomalies(self, name: str, threshold: float, lookback: timedelta) -> List[AnomalyDetection]:
        if threshold <= 0:
            raise ValidationError("threshold must be positive")
        return self.analyzer.detect_anomalies(name, threshold, lookback)

    def get_available_metrics(self) -> List[str]:
        return self.store.names()

    def get_metric_metadata(self, name: str) -> MetricMetadata:
        """Registered metadata, or a default record created on first request"""
        with self._metadata_lock:
            metadata = self._metadata.get(name)
            if metadata is None:
                metadata = MetricMetadata(name=name)
                self._metadata[name] = metadata
            return metadata

    def register_metric_metadata(self, metadata: MetricMetadata) -> MetricMetadata:
        with self._metadata_lock:
            self._metadata[metadata.name] = metadata
        return metadata

    def export_metrics(self, names: Optional[Iterable[str]], time_range: timedelta, format: str = "JSON") -> str:
        return export_metrics(self.store, names, time_range, format, now=self._clock())

    # =========================================================================
    # Maintenance
    # =========================================================================

    def cleanup_expired_data(self, retention: Optional[timedelta] = None) -> int:
        """Drop samples older than now - retention. Returns count removed."""
        retention = retention or self.settings.retention
        removed = self.store.cleanup(retention, self._clock())
        self._bump("cleaned_up", removed)
        if removed:
            logger.info("Cleaned up %d expired samples (retention %s)", removed, retention)
        return removed

    def reset(self) -> None:
        """Drop all samples, metadata and alert state"""
        self.store.clear()
        self.alerts.clear()
        with self._metadata_lock:
            self._metadata.clear()
        with self._stats_lock:
            self._stats.update(samples_recorded=0, samples_rejected=0, cleaned_up=0, start_time=self._clock())
        logger.info("Monitoring engine reset")

    def stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            snapshot = dict(self._stats)
        uptime = (self._clock() - snapshot.pop("start_time")).total_seconds()
        return {
            **snapshot,
            "uptime_seconds": round(uptime, 2),
            "aggregations_performed": self.aggregator.aggregations_performed,
            "store": self.store.stats(),
            "alerts": self.alerts.stats(),
            "notifications": self.dispatcher.stats(),
            "persistence": self.persistence.stats() if self.persistence else None,
            "scheduler": self.scheduler.stats(),
        }
