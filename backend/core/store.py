"""
Metric Store
Bounded, per-metric, timestamp-ordered sample buffers.

Purpose:
- Aggregation and statistics need fast access to recent samples
- Memory stays bounded under sustained load
- No disk I/O here

This is READ-OPTIMIZED, NOT DURABLE.
"""

import threading
from bisect import bisect_left, bisect_right
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from .models import MetricSample


# =============================================================================
# Series (one metric)
# =============================================================================

class MetricSeries:
    """
    Samples of a single metric, ascending by timestamp.

    Two parallel lists keep bisect cheap without a key function.
    Every method takes the series lock; reads return copies.
    """

    def __init__(self, name: str, horizon: timedelta, maxlen: int):
        self.name = name
        self.horizon = horizon
        self.maxlen = maxlen
        self.lock = threading.Lock()
        self._timestamps: List[datetime] = []
        self._samples: List[MetricSample] = []

    def append(self, sample: MetricSample) -> int:
        """Insert in timestamp order, then trim. Returns count evicted."""
        with self.lock:
            if not self._timestamps or sample.timestamp >= self._timestamps[-1]:
                self._timestamps.append(sample.timestamp)
                self._samples.append(sample)
            else:
                idx = bisect_right(self._timestamps, sample.timestamp)
                self._timestamps.insert(idx, sample.timestamp)
                self._samples.insert(idx, sample)
            return self._trim()

    def _trim(self) -> int:
        # Caller holds the lock
        cutoff = self._timestamps[-1] - self.horizon
        drop = bisect_left(self._timestamps, cutoff)
        overflow = len(self._samples) - drop - self.maxlen
        if overflow > 0:
            drop += overflow
        if drop:
            del self._timestamps[:drop]
            del self._samples[:drop]
        return drop

    def since(self, since: Optional[datetime]) -> List[MetricSample]:
        """Samples with timestamp > since (all when since is None)"""
        with self.lock:
            if since is None:
                return list(self._samples)
            idx = bisect_right(self._timestamps, since)
            return self._samples[idx:]

    def between(self, start: datetime, end: datetime) -> List[MetricSample]:
        """Samples with start < timestamp <= end"""
        with self.lock:
            lo = bisect_right(self._timestamps, start)
            hi = bisect_right(self._timestamps, end)
            return self._samples[lo:hi]

    def latest(self) -> Optional[MetricSample]:
        with self.lock:
            return self._samples[-1] if self._samples else None

    def evict_before(self, cutoff: datetime) -> int:
        with self.lock:
            drop = bisect_left(self._timestamps, cutoff)
            if drop:
                del self._timestamps[:drop]
                del self._samples[:drop]
            return drop

    def __len__(self) -> int:
        with self.lock:
            return len(self._samples)


# =============================================================================
# Store (all metrics)
# =============================================================================

class MetricStore:
    """
    In-memory store for live metric samples.

    - One series (and one lock) per metric name
    - Writers of different metrics never contend
    - Trim on every write: older than `horizon` behind the newest sample,
      plus a hard cap of `maxlen` samples

    Usage:
        store = MetricStore(horizon=timedelta(minutes=5), maxlen=10000)
        store.record(sample)
        recent = store.query("cpu", since=now - timedelta(minutes=1))
    """

    def __init__(self, horizon: timedelta = timedelta(minutes=5), maxlen: int = 10000):
        self.horizon = horizon
        self.maxlen = maxlen
        self._series: Dict[str, MetricSeries] = {}
        self._registry_lock = threading.Lock()
        self._recorded = 0
        self._evicted = 0
        self._counter_lock = threading.Lock()

    def _get_or_create(self, name: str) -> MetricSeries:
        series = self._series.get(name)
        if series is None:
            with self._registry_lock:
                series = self._series.get(name)
                if series is None:
                    series = MetricSeries(name, self.horizon, self.maxlen)
                    self._series[name] = series
        return series

    def record(self, sample: MetricSample) -> None:
        """Add a single sample"""
        evicted = self._get_or_create(sample.name).append(sample)
        with self._counter_lock:
            self._recorded += 1
            self._evicted += evicted

    def query(self, name: str, since: Optional[datetime] = None) -> List[MetricSample]:
        """Samples for metric newer than `since`, oldest first"""
        series = self._series.get(name)
        if series is None:
            return []
        return series.since(since)

    def query_range(self, name: str, start: datetime, end: datetime) -> List[MetricSample]:
        """Samples in the half-open interval (start, end]"""
        series = self._series.get(name)
        if series is None:
            return []
        return series.between(start, end)

    def latest(self, name: str) -> Optional[MetricSample]:
        """Most recent sample"""
        series = self._series.get(name)
        if series is None:
            return None
        return series.latest()

    def names(self) -> List[str]:
        """All metric names with a series"""
        with self._registry_lock:
            return sorted(self._series.keys())

    def count(self, name: str = None) -> int:
        """Sample count for one metric, or all metrics"""
        if name:
            series = self._series.get(name)
            return len(series) if series else 0
        with self._registry_lock:
            series_list = list(self._series.values())
        return sum(len(s) for s in series_list)

    def cleanup(self, retention: timedelta, now: datetime) -> int:
        """Drop samples older than now - retention. Returns count removed."""
        cutoff = now - retention
        with self._registry_lock:
            series_list = list(self._series.values())
        removed = sum(s.evict_before(cutoff) for s in series_list)
        with self._counter_lock:
            self._evicted += removed
        return removed

    def clear(self, name: str = None) -> None:
        """Clear store"""
        with self._registry_lock:
            if name:
                self._series.pop(name, None)
            else:
                self._series.clear()
                with self._counter_lock:
                    self._recorded = 0
                    self._evicted = 0

    def stats(self) -> dict:
        """Store statistics"""
        with self._registry_lock:
            series_list = list(self._series.items())
        return {
            "total_recorded": self._recorded,
            "total_evicted": self._evicted,
            "metrics": len(series_list),
            "per_metric": {name: len(s) for name, s in series_list},
        }
