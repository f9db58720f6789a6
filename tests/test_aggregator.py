import asyncio
import logging
from datetime import timedelta

import pytest

from core.aggregator import Aggregator, parse_aggregation_type
from core.models import AggregationType, MetricSample
from core.store import MetricStore

from conftest import FakeClock


def _record(store, clock, name, values, step=10):
    """Record values ending at clock.now, `step` seconds apart"""
    now = clock()
    n = len(values)
    for i, v in enumerate(values):
        ts = now - timedelta(seconds=(n - 1 - i) * step)
        store.record(MetricSample(name=name, value=v, timestamp=ts))


def test_avg_equals_mean_of_window(store, aggregator, clock):
    _record(store, clock, "cpu", [10.0, 20.0, 30.0, 40.0])

    result = aggregator.aggregate_window("cpu", timedelta(seconds=25), "AVG")
    # (now-25s, now] holds the last three samples
    assert result.value == pytest.approx(30.0)
    assert result.sample_count == 3
    assert result.aggregation_type == AggregationType.AVG
    assert result.window_end == clock()
    assert result.window_start == clock() - timedelta(seconds=25)


def test_empty_window_returns_none(store, aggregator, clock):
    assert aggregator.aggregate_window("cpu", timedelta(minutes=1)) is None

    _record(store, clock, "cpu", [1.0])
    clock.advance(120)
    assert aggregator.aggregate_window("cpu", timedelta(minutes=1)) is None


@pytest.mark.parametrize("name, expected", [
    ("MAX", 40.0),
    ("maximum", 40.0),
    ("MIN", 10.0),
    ("minimum", 10.0),
    ("SUM", 100.0),
    ("COUNT", 4.0),
    ("average", 25.0),
])
def test_aggregation_types_and_aliases(store, aggregator, clock, name, expected):
    _record(store, clock, "cpu", [10.0, 20.0, 30.0, 40.0])
    assert aggregator.aggregate_window("cpu", timedelta(minutes=5), name).value == expected


def test_unknown_type_falls_back_to_avg(store, aggregator, clock, caplog):
    _record(store, clock, "cpu", [10.0, 20.0])
    result = aggregator.aggregate_window("cpu", timedelta(minutes=5), "median")
    assert result.aggregation_type == AggregationType.AVG
    assert result.value == 15.0
    assert "falling back to AVG" in caplog.text


def test_parse_aggregation_type_accepts_enum():
    assert parse_aggregation_type(AggregationType.SUM) == AggregationType.SUM


def test_aggregate_multiple_skips_empty(store, aggregator, clock):
    _record(store, clock, "cpu", [1.0, 3.0])
    _record(store, clock, "mem", [5.0])

    results = aggregator.aggregate_multiple(["cpu", "mem", "disk"], timedelta(minutes=5), "AVG")
    assert {r.metric_name: r.value for r in results} == {"cpu": 2.0, "mem": 5.0}


def test_aggregate_custom(store, aggregator, clock):
    _record(store, clock, "cpu", [1.0, 2.0, 3.0])

    result = aggregator.aggregate_custom("cpu", timedelta(minutes=5), lambda values: max(values) - min(values))
    assert result.value == 2.0
    assert result.aggregation_type == AggregationType.CUSTOM


def test_aggregations_performed_counter(store, aggregator, clock):
    _record(store, clock, "cpu", [1.0])
    aggregator.aggregate_window("cpu", timedelta(minutes=1))
    aggregator.aggregate_window("missing", timedelta(minutes=1))
    assert aggregator.aggregations_performed == 1


def test_sliding_window_yields_non_empty_windows():
    clock = FakeClock()
    store = MetricStore(horizon=timedelta(hours=1))
    aggregator = Aggregator(store, clock=clock)
    store.record(MetricSample(name="cpu", value=50.0, timestamp=clock()))

    async def collect():
        results = []
        stream = aggregator.aggregate_sliding_window(
            "cpu", timedelta(minutes=1), timedelta(milliseconds=10), "MAX"
        )
        async for result in stream:
            results.append(result)
            if len(results) == 2:
                break
        await stream.aclose()
        return results

    results = asyncio.run(collect())
    assert [r.value for r in results] == [50.0, 50.0]


def test_sliding_window_rejects_non_positive_interval(aggregator):
    async def start():
        stream = aggregator.aggregate_sliding_window("cpu", timedelta(minutes=1), timedelta(0))
        await stream.__anext__()

    with pytest.raises(ValueError):
        asyncio.run(start())


def test_sliding_window_silent_while_empty_and_stops_on_cancel(caplog):
    caplog.set_level(logging.INFO, logger="core.aggregator")
    clock = FakeClock()
    store = MetricStore(horizon=timedelta(hours=1))
    aggregator = Aggregator(store, clock=clock)

    async def scenario():
        results = []

        async def consume():
            async for result in aggregator.aggregate_sliding_window(
                    "cpu", timedelta(minutes=1), timedelta(milliseconds=10)):
                results.append(result)

        task = asyncio.create_task(consume())
        await asyncio.sleep(0.1)
        while_empty = list(results)

        store.record(MetricSample(name="cpu", value=42.0, timestamp=clock()))
        for _ in range(200):
            if results:
                break
            await asyncio.sleep(0.01)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        emitted = len(results)
        await asyncio.sleep(0.05)
        return while_empty, emitted, results, task

    while_empty, emitted, results, task = asyncio.run(scenario())

    assert while_empty == []
    assert emitted >= 1
    assert results[0].value == 42.0
    assert len(results) == emitted
    assert task.cancelled()
    assert aggregator.aggregations_performed == emitted
    assert "Sliding window stopped: cpu" in caplog.text
