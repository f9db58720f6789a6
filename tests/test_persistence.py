import json
import time
from datetime import timedelta

from alerts.models import AlertRule, AlertStatus
from alerts.notifiers import CallbackNotifier
from core.engine import MonitoringEngine
from core.models import MetricSample
from db.redis_store import (
    ALERT_EVENTS_PREFIX,
    ALERT_RULES_KEY,
    ALERT_STATISTICS_KEY,
    ALERT_SUPPRESSIONS_KEY,
    METRIC_DATA_PREFIX,
    RedisPersistence,
)

from conftest import START, FakeRedis


def test_sample_written_with_ttl(persistence, fake_redis):
    persistence.save_sample(MetricSample(name="cpu", value=42.5, timestamp=START, tags={"host": "a"}))

    key = f"{METRIC_DATA_PREFIX}cpu:2024-01-15 12:00:00"
    assert fake_redis.hashes[key]["value"] == "42.5"
    assert json.loads(fake_redis.hashes[key]["tags"]) == {"host": "a"}
    assert fake_redis.ttls[key] == 7 * 24 * 3600


def test_engine_mirrors_alert_state(persistent_engine, fake_redis, clock):
    alerts = persistent_engine.alerts
    rule = alerts.create_rule({"metric_name": "cpu", "operator": ">", "threshold": 80})
    assert json.loads(fake_redis.hashes[ALERT_RULES_KEY][rule.id])["threshold"] == 80.0

    persistent_engine.record_metric("cpu", 95)
    event = alerts.evaluate_all_rules()[0].event
    events_key = f"{ALERT_EVENTS_PREFIX}2024-01-15"
    assert json.loads(fake_redis.hashes[events_key][event.id])["status"] == "ACTIVE"

    alerts.resolve_alert(event.id, "ops")
    assert json.loads(fake_redis.hashes[events_key][event.id])["status"] == AlertStatus.RESOLVED.value

    alerts.suppress_rule(rule.id, "maintenance", 600)
    assert rule.id in fake_redis.hashes[ALERT_SUPPRESSIONS_KEY]
    alerts.unsuppress_rule(rule.id)
    assert rule.id not in fake_redis.hashes[ALERT_SUPPRESSIONS_KEY]

    alerts.get_alert_statistics()
    assert json.loads(fake_redis.strings[ALERT_STATISTICS_KEY])["total_alerts"] == 1

    alerts.delete_rule(rule.id)
    assert rule.id not in fake_redis.hashes[ALERT_RULES_KEY]


def test_redis_failure_is_counted_not_raised(persistent_engine, fake_redis):
    fake_redis.fail = True

    persistent_engine.record_metric("cpu", 1.0)
    persistent_engine.alerts.create_rule({"metric_name": "cpu", "operator": ">", "threshold": 80})

    stats = persistent_engine.persistence.stats()
    assert stats["failures"] == 2
    assert stats["writes"] == 0
    assert persistent_engine.store.count("cpu") == 1
    assert persistent_engine.persistence.ping() is False


def test_state_reloaded_on_start(settings, clock, fake_redis, persistence):
    first = MonitoringEngine(settings=settings, persistence=persistence, clock=clock)
    rule = first.alerts.create_rule({"metric_name": "cpu", "operator": ">", "threshold": 80})
    other = first.alerts.create_rule({"metric_name": "mem", "operator": ">", "threshold": 80})
    first.alerts.suppress_rule(rule.id, "maintenance", 600)
    first.alerts.suppress_rule(other.id, "blip", 1)

    clock.advance(5)
    second = MonitoringEngine(
        settings=settings,
        persistence=RedisPersistence(fake_redis, workers=0),
        clock=clock,
    )
    second.start()

    assert {r.id for r in second.alerts.get_rules()} == {rule.id, other.id}
    assert second.alerts.is_suppressed(rule.id)
    assert not second.alerts.is_suppressed(other.id)
    second.close()


def test_malformed_entries_are_skipped(persistence, fake_redis):
    fake_redis.hashes[ALERT_RULES_KEY] = {
        "bad_json": "{not json",
        "missing_fields": json.dumps({"id": "x"}),
        "ok": json.dumps({"id": "ok", "metric_name": "cpu", "operator": "<", "threshold": 1}),
    }
    rules = persistence.load_rules()
    assert [r.id for r in rules] == ["ok"]


def test_pooled_writes_drain_on_close(fake_redis):
    persistence = RedisPersistence(fake_redis, retention=timedelta(hours=1), workers=2)
    for i in range(10):
        persistence.submit(persistence.save_sample, MetricSample(name="cpu", value=i, timestamp=START + timedelta(seconds=i)))
    persistence.close()

    assert persistence.stats()["writes"] == 10
    assert fake_redis.closed
    assert set(fake_redis.ttls.values()) == {3600}


def test_unserializable_event_still_notifies(persistent_engine, notified):
    alerts = persistent_engine.alerts
    rule = alerts.create_rule({"metric_name": "cpu", "operator": ">", "threshold": 80})

    event = alerts.trigger_alert(rule.id, 90.0, context={"hosts": {"web-1", "web-2"}})

    assert event is not None
    assert notified == [event]
    assert alerts.get_active_alerts() == [event]
    stats = persistent_engine.persistence.stats()
    assert stats["failures"] == 1
    assert stats["writes"] == 1


def test_pooled_write_crash_is_counted(fake_redis):
    persistence = RedisPersistence(fake_redis, workers=2)
    rule = AlertRule.from_dict({"metric_name": "cpu", "operator": ">", "threshold": 1, "metadata": {"hosts": {"a"}}})

    future = persistence.submit(persistence.save_rule, rule, ordered=True)
    assert future.result(timeout=5) is None
    persistence.close()

    assert persistence.stats()["failures"] == 1
    assert ALERT_RULES_KEY not in fake_redis.hashes


class SlowEventRedis(FakeRedis):
    """Holds the first alert event write long enough for a later one to overtake it"""

    def __init__(self):
        super().__init__()
        self.delayed = False

    def hset(self, name, key=None, value=None, mapping=None):
        if name.startswith(ALERT_EVENTS_PREFIX) and not self.delayed:
            self.delayed = True
            time.sleep(0.1)
        return super().hset(name, key=key, value=value, mapping=mapping)


def test_event_writes_land_in_order_with_worker_pool(settings, clock):
    fake_redis = SlowEventRedis()
    notified = []
    engine = MonitoringEngine(
        settings=settings,
        persistence=RedisPersistence(fake_redis, workers=2),
        notifiers=[CallbackNotifier(notified.append)],
        clock=clock,
    )
    rule = engine.alerts.create_rule({"metric_name": "cpu", "operator": ">", "threshold": 80})
    event = engine.alerts.trigger_alert(rule.id, 95.0)
    clock.advance(5)
    engine.alerts.acknowledge_alert(event.id, "ops")
    engine.alerts.resolve_alert(event.id, "ops")
    engine.close()

    stored = json.loads(fake_redis.hashes[f"{ALERT_EVENTS_PREFIX}2024-01-15"][event.id])
    assert stored["status"] == AlertStatus.RESOLVED.value
    assert stored["resolved_by"] == "ops"
    assert engine.persistence.stats()["writes"] == 4
