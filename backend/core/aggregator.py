"""
Metric Aggregator
Reduces store samples over time windows.

Flow:
1. Take a snapshot of samples in (now - window, now]
2. Reduce them (AVG/MAX/MIN/SUM/COUNT or a caller function)
3. Empty window → no result, never an implicit zero
"""

import asyncio
import logging
import threading
from datetime import datetime, timedelta
from typing import AsyncIterator, Callable, List, Optional, Sequence

import numpy as np

from .models import AggregatedMetric, AggregationType, MetricSample
from .store import MetricStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
AggregationFunction = Callable[[Sequence[float]], float]


# =============================================================================
# Aggregation Type Parsing
# =============================================================================

AGGREGATION_ALIASES = {
    "AVG": AggregationType.AVG,
    "AVERAGE": AggregationType.AVG,
    "MAX": AggregationType.MAX,
    "MAXIMUM": AggregationType.MAX,
    "MIN": AggregationType.MIN,
    "MINIMUM": AggregationType.MIN,
    "SUM": AggregationType.SUM,
    "COUNT": AggregationType.COUNT,
}


def parse_aggregation_type(value) -> AggregationType:
    """
    Resolve an aggregation name, case-insensitively.

    Unknown names fall back to AVG with a warning rather than failing.
    """
    if isinstance(value, AggregationType) and value != AggregationType.CUSTOM:
        return value
    key = str(value.value if isinstance(value, AggregationType) else value).strip().upper()
    resolved = AGGREGATION_ALIASES.get(key)
    if resolved is None:
        logger.warning("Unknown aggregation type %r, falling back to AVG", value)
        return AggregationType.AVG
    return resolved


def reduce_values(values: Sequence[float], aggregation_type: AggregationType) -> float:
    """Apply a built-in reduction to a non-empty value sequence"""
    arr = np.asarray(values, dtype=float)
    if aggregation_type == AggregationType.MAX:
        return float(np.max(arr))
    elif aggregation_type == AggregationType.MIN:
        return float(np.min(arr))
    elif aggregation_type == AggregationType.SUM:
        return float(np.sum(arr))
    elif aggregation_type == AggregationType.COUNT:
        return float(len(arr))
    return float(np.mean(arr))


# =============================================================================
# Aggregator
# =============================================================================

class Aggregator:
    """
    Window reductions over a MetricStore.

    Usage:
        aggregator = Aggregator(store)
        result = aggregator.aggregate_window("cpu", timedelta(minutes=1), "AVG")

        async for result in aggregator.aggregate_sliding_window(
                "cpu", timedelta(minutes=1), timedelta(seconds=10)):
            publish(result)
    """

    def __init__(self, store: MetricStore, clock: Clock = datetime.now):
        self._store = store
        self._clock = clock
        self._performed = 0
        self._lock = threading.Lock()

    @property
    def aggregations_performed(self) -> int:
        return self._performed

    def _window(self, metric_name: str, window: timedelta):
        now = self._clock()
        start = now - window
        return start, now, self._store.query_range(metric_name, start, now)

    def _count(self) -> None:
        with self._lock:
            self._performed += 1

    def aggregate_window(
        self,
        metric_name: str,
        window: timedelta,
        aggregation_type="AVG"
    ) -> Optional[AggregatedMetric]:
        """
        Reduce samples with timestamp in (now - window, now].

        Returns:
            AggregatedMetric, or None when the window is empty
        """
        agg = parse_aggregation_type(aggregation_type)
        start, end, samples = self._window(metric_name, window)
        if not samples:
            return None

        value = reduce_values([s.value for s in samples], agg)
        self._count()
        return AggregatedMetric(
            metric_name=metric_name,
            value=value,
            aggregation_type=agg,
            window_start=start,
            window_end=end,
            sample_count=len(samples),
        )

    def aggregate_multiple(
        self,
        metric_names: List[str],
        window: timedelta,
        aggregation_type="AVG"
    ) -> List[AggregatedMetric]:
        """Aggregate several metrics; empty windows are skipped"""
        results = []
        for name in metric_names:
            result = self.aggregate_window(name, window, aggregation_type)
            if result is not None:
                results.append(result)
        return results

    def aggregate_custom(
        self,
        metric_name: str,
        window: timedelta,
        fn: AggregationFunction
    ) -> Optional[AggregatedMetric]:
        """Reduce the window with a caller-supplied function"""
        start, end, samples = self._window(metric_name, window)
        if not samples:
            return None

        value = float(fn([s.value for s in samples]))
        self._count()
        return AggregatedMetric(
            metric_name=metric_name,
            value=value,
            aggregation_type=AggregationType.CUSTOM,
            window_start=start,
            window_end=end,
            sample_count=len(samples),
        )

    async def aggregate_sliding_window(
        self,
        metric_name: str,
        window: timedelta,
        slide_interval: timedelta,
        aggregation_type="AVG"
    ) -> AsyncIterator[AggregatedMetric]:
        """
        Re-evaluate the window every `slide_interval`.

        Infinite: stops only when the consumer stops iterating (aclose)
        or the consuming task is cancelled. Pull-based, so nothing is
        computed ahead of a slow consumer.
        """
        agg = parse_aggregation_type(aggregation_type)
        interval = slide_interval.total_seconds()
        if interval <= 0:
            raise ValueError("slide_interval must be positive")

        logger.info("Sliding window started: %s window=%s slide=%s", metric_name, window, slide_interval)
        try:
            while True:
                await asyncio.sleep(interval)
                result = self.aggregate_window(metric_name, window, agg)
                if result is not None:
                    yield result
        finally:
            logger.info("Sliding window stopped: %s", metric_name)

    def window_samples(self, metric_name: str, window: timedelta) -> List[MetricSample]:
        """Raw samples of the current window"""
        return self._window(metric_name, window)[2]
