from datetime import datetime, timedelta

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from alerts.notifiers import CallbackNotifier
from core.aggregator import Aggregator
from core.engine import MonitoringEngine
from core.settings import MonitoringSettings
from core.store import MetricStore
from db.redis_store import RedisPersistence

START = datetime(2024, 1, 15, 12, 0, 0)


class FakeClock:
    """Manually advanced clock; pass the instance wherever a clock is expected."""

    def __init__(self, start: datetime = START):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        self.current += timedelta(seconds=seconds, **kwargs)
        return self.current


class FakeRedis:
    """The subset of the redis-py client the persistence layer calls."""

    def __init__(self):
        self.hashes = {}
        self.strings = {}
        self.ttls = {}
        self.fail = False
        self.closed = False

    def _check(self):
        if self.fail:
            raise RedisConnectionError("connection refused")

    def hset(self, name, key=None, value=None, mapping=None):
        self._check()
        bucket = self.hashes.setdefault(name, {})
        if key is not None:
            bucket[key] = value
        if mapping:
            bucket.update(mapping)
        return 1

    def hgetall(self, name):
        self._check()
        return dict(self.hashes.get(name, {}))

    def hdel(self, name, *keys):
        self._check()
        bucket = self.hashes.get(name, {})
        return sum(1 for k in keys if bucket.pop(k, None) is not None)

    def expire(self, name, seconds):
        self._check()
        self.ttls[name] = seconds
        return True

    def set(self, name, value):
        self._check()
        self.strings[name] = value
        return True

    def get(self, name):
        self._check()
        return self.strings.get(name)

    def ping(self):
        self._check()
        return True

    def close(self):
        self.closed = True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MetricStore(horizon=timedelta(hours=2), maxlen=10000)


@pytest.fixture
def aggregator(store, clock):
    return Aggregator(store, clock=clock)


@pytest.fixture
def settings():
    return MonitoringSettings(
        _env_file=None,
        hot_window_seconds=2 * 3600,
        scheduler_enabled=False,
        notification_workers=0,
        persistence_workers=0,
    )


@pytest.fixture
def notified():
    """Events delivered to the in-process notifier"""
    return []


@pytest.fixture
def engine(settings, clock, notified):
    eng = MonitoringEngine(
        settings=settings,
        notifiers=[CallbackNotifier(notified.append, name="collector")],
        clock=clock,
    )
    yield eng
    eng.close()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def persistence(fake_redis):
    return RedisPersistence(fake_redis, retention=timedelta(days=7), workers=0)


@pytest.fixture
def persistent_engine(settings, clock, persistence, notified):
    eng = MonitoringEngine(
        settings=settings,
        persistence=persistence,
        notifiers=[CallbackNotifier(notified.append, name="collector")],
        clock=clock,
    )
    yield eng
    eng.close()
