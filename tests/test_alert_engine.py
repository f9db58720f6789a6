import threading
from datetime import timedelta

import pytest

from alerts.engine import AlertEngine
from alerts.models import (
    MANUAL_RULE_ID,
    AlertOperator,
    AlertRule,
    AlertSeverity,
    AlertStatus,
    AlertType,
    EvaluationOutcome,
)
from alerts.notifiers import CallbackNotifier, NotificationDispatcher
from core.engine import MonitoringEngine
from core.errors import NotFoundError, ValidationError
from core.models import MetricSample


def _cpu_rule(**overrides):
    data = {
        "metric_name": "cpu",
        "operator": ">",
        "threshold": 80,
        "severity": "HIGH",
        "alert_type": "CPU_USAGE",
        "cooldown_sec": 60,
    }
    data.update(overrides)
    return data


# =============================================================================
# Rules
# =============================================================================

def test_create_rule_from_dict_fills_defaults(engine, clock):
    rule = engine.alerts.create_rule(_cpu_rule(), created_by="ops")

    assert rule.id.startswith("rule_")
    assert rule.operator == AlertOperator.GT
    assert rule.name == "cpu > 80.0"
    assert rule.created_at == clock()
    assert rule.created_by == "ops"
    assert engine.alerts.get_rule(rule.id) is rule


def test_create_rule_rejects_bad_input(engine):
    with pytest.raises(ValidationError):
        engine.alerts.create_rule(_cpu_rule(metric_name=""))
    with pytest.raises(ValidationError):
        engine.alerts.create_rule(_cpu_rule(operator="=>"))
    with pytest.raises(ValidationError):
        engine.alerts.create_rule(_cpu_rule(cooldown_sec=-1))


def test_update_rule_keeps_identity(engine, clock):
    rule = engine.alerts.create_rule(_cpu_rule(), created_by="ops")
    clock.advance(30)

    updated = engine.alerts.update_rule(rule.id, {"threshold": 90}, updated_by="dev")
    assert updated.id == rule.id
    assert updated.threshold == 90.0
    assert updated.created_by == "ops"
    assert updated.updated_by == "dev"
    assert updated.updated_at == clock()
    assert updated.created_at < updated.updated_at


def test_delete_and_toggle_unknown_rule_raise_not_found(engine):
    with pytest.raises(NotFoundError):
        engine.alerts.delete_rule("rule_missing")
    with pytest.raises(NotFoundError):
        engine.alerts.toggle_rule("rule_missing", False)
    with pytest.raises(NotFoundError):
        engine.alerts.get_rule("rule_missing")


def test_disabled_rule_does_not_trigger(engine):
    rule = engine.alerts.create_rule(_cpu_rule())
    engine.alerts.toggle_rule(rule.id, False)
    engine.record_metric("cpu", 95)

    [result] = engine.alerts.evaluate_all_rules()
    assert result.outcome == EvaluationOutcome.DISABLED
    assert engine.alerts.get_active_alerts() == []


# =============================================================================
# Evaluation
# =============================================================================

def test_end_to_end_trigger_acknowledge_resolve(engine, clock, notified):
    rule = engine.alerts.create_rule(_cpu_rule())
    engine.record_metric("cpu", 50)
    assert engine.alerts.evaluate_all_rules()[0].outcome == EvaluationOutcome.NOT_MATCHED

    clock.advance(5)
    engine.record_metric("cpu", 95)
    [result] = engine.alerts.evaluate_all_rules()
    assert result.triggered
    event = result.event
    assert event.rule_id == rule.id
    assert event.metric_value == 95.0
    assert event.threshold == 80.0
    assert event.status == AlertStatus.ACTIVE
    assert notified == [event]

    clock.advance(10)
    acked = engine.alerts.acknowledge_alert(event.id, "alice", "looking")
    assert acked.status == AlertStatus.ACKNOWLEDGED
    assert acked.response_time == timedelta(seconds=10)

    clock.advance(20)
    resolved = engine.alerts.resolve_alert(event.id, "alice", "scaled out")
    assert resolved.status == AlertStatus.RESOLVED
    assert resolved.resolution_time == timedelta(seconds=30)
    assert engine.alerts.get_active_alerts() == []

    # History holds the same event, so it reflects the final state
    [historic] = engine.alerts.get_alert_history()
    assert historic.status == AlertStatus.RESOLVED


def test_cooldown_suppresses_second_trigger(engine, clock):
    rule = engine.alerts.create_rule(_cpu_rule(cooldown_sec=60))
    engine.record_metric("cpu", 95)

    first = engine.alerts.evaluate_all_rules()[0]
    clock.advance(30)
    second = engine.alerts.evaluate_all_rules()[0]

    assert first.outcome == EvaluationOutcome.TRIGGERED
    assert second.outcome == EvaluationOutcome.COOLDOWN
    assert len(engine.alerts.get_alert_history()) == 1
    assert engine.alerts.stats()["cooldown_skips"] == 1

    clock.advance(30)
    assert engine.alerts.trigger_alert(rule.id, 99) is not None
    assert len(engine.alerts.get_alert_history()) == 2


def test_no_data_outcome(engine):
    engine.alerts.create_rule(_cpu_rule())
    assert engine.alerts.evaluate_all_rules()[0].outcome == EvaluationOutcome.NO_DATA


def test_window_aggregate_rule(engine, clock):
    engine.alerts.create_rule(_cpu_rule(metadata={"aggregation": "AVG", "window_seconds": 60}))
    engine.record_metric("cpu", 100)
    clock.advance(10)
    engine.record_metric("cpu", 40)

    [result] = engine.alerts.evaluate_all_rules()
    # Average is 70, latest alone would not match either
    assert result.outcome == EvaluationOutcome.NOT_MATCHED
    assert result.value == 70.0

    clock.advance(10)
    engine.record_metric("cpu", 160)
    assert engine.alerts.evaluate_all_rules()[0].triggered


def test_failing_rule_is_isolated(engine):
    broken = engine.alerts.create_rule(_cpu_rule(metadata={"aggregation": "AVG", "window_seconds": "soon"}))
    healthy = engine.alerts.create_rule(_cpu_rule(threshold=10))
    engine.record_metric("cpu", 50)

    results = {r.rule_id: r for r in engine.alerts.evaluate_all_rules()}
    assert results[broken.id].outcome == EvaluationOutcome.ERROR
    assert "Metric lookup failed" in results[broken.id].error
    assert results[healthy.id].triggered
    assert engine.alerts.stats()["errors"] == 1


def test_evaluate_on_record(settings, clock, notified):
    settings.evaluate_on_record = True
    engine = MonitoringEngine(settings=settings, notifiers=[CallbackNotifier(notified.append)], clock=clock)
    try:
        engine.alerts.create_rule(_cpu_rule())
        engine.record_metric("cpu", 90)
        engine.record_metric("mem", 90)
        assert len(notified) == 1
    finally:
        engine.close()


def test_auto_resolve_when_condition_clears(store, clock):
    alerts = AlertEngine(store, dispatcher=NotificationDispatcher([]), auto_resolve=True, clock=clock)
    rule = alerts.create_rule(_cpu_rule())

    store.record(MetricSample(name="cpu", value=95, timestamp=clock()))
    event = alerts.evaluate_all_rules()[0].event

    clock.advance(5)
    store.record(MetricSample(name="cpu", value=20, timestamp=clock()))
    alerts.evaluate_all_rules()

    assert alerts.get_active_alerts() == []
    resolved = alerts.get_alert(event.id)
    assert resolved.status == AlertStatus.RESOLVED
    assert resolved.resolved_by == "SYSTEM"
    assert alerts.get_alert_efficiency().auto_resolved == 1
    assert rule.id == event.rule_id


# =============================================================================
# Lifecycle
# =============================================================================

def test_resolve_twice_raises_not_found(engine):
    rule = engine.alerts.create_rule(_cpu_rule())
    event = engine.alerts.trigger_alert(rule.id, 99)

    engine.alerts.resolve_alert(event.id, "bob")
    with pytest.raises(NotFoundError):
        engine.alerts.resolve_alert(event.id, "bob")
    with pytest.raises(NotFoundError):
        engine.alerts.acknowledge_alert(event.id, "bob")


def test_acknowledge_twice_is_invalid_transition(engine):
    rule = engine.alerts.create_rule(_cpu_rule())
    event = engine.alerts.trigger_alert(rule.id, 99)

    engine.alerts.acknowledge_alert(event.id, "bob")
    with pytest.raises(ValidationError):
        engine.alerts.acknowledge_alert(event.id, "bob")
    # Acknowledged events can still be resolved
    assert engine.alerts.resolve_alert(event.id, "bob").status == AlertStatus.RESOLVED


def test_manual_trigger(engine, notified):
    event = engine.alerts.manual_trigger_alert("SECURITY_THREAT", "CRITICAL", "Port scan", {"source_ip": "10.0.0.1"})

    assert event.rule_id == MANUAL_RULE_ID
    assert event.rule_name == "Manual Alert"
    assert event.alert_type == AlertType.SECURITY_THREAT
    assert event.context == {"source_ip": "10.0.0.1"}
    assert engine.alerts.get_active_alerts() == [event]
    assert notified == [event]

    with pytest.raises(ValidationError):
        engine.alerts.manual_trigger_alert("CUSTOM", "LOW", "")
    with pytest.raises(ValidationError):
        engine.alerts.manual_trigger_alert("CUSTOM", "URGENT", "msg")


def test_history_and_filters_newest_first(engine, clock):
    first = engine.alerts.manual_trigger_alert("CUSTOM", "LOW", "one")
    clock.advance(60)
    second = engine.alerts.manual_trigger_alert("CPU_USAGE", "HIGH", "two")

    assert engine.alerts.get_alert_history() == [second, first]
    assert engine.alerts.get_active_alerts() == [second, first]
    assert engine.alerts.get_alerts_by_type("CUSTOM") == [first]
    assert engine.alerts.get_alerts_by_severity(AlertSeverity.HIGH) == [second]

    clock.advance(hours=24)
    assert engine.alerts.get_alert_history(hours=24) == [second]


# =============================================================================
# Suppression
# =============================================================================

def test_suppressed_rule_does_not_trigger(engine, clock):
    rule = engine.alerts.create_rule(_cpu_rule())
    engine.record_metric("cpu", 95)

    suppression = engine.alerts.suppress_rule(rule.id, "maintenance", timedelta(minutes=10), "ops")
    assert suppression.expires_at == clock() + timedelta(minutes=10)
    assert engine.alerts.evaluate_all_rules()[0].outcome == EvaluationOutcome.SUPPRESSED
    assert engine.alerts.trigger_alert(rule.id, 99) is None
    assert engine.alerts.get_suppressed_rules() == [suppression]

    clock.advance(minutes=10)
    assert engine.alerts.evaluate_all_rules()[0].triggered
    assert engine.alerts.get_suppressed_rules() == []


def test_zero_duration_suppression_is_inactive(engine):
    rule = engine.alerts.create_rule(_cpu_rule())
    engine.record_metric("cpu", 95)

    engine.alerts.suppress_rule(rule.id, "blip", 0)
    assert not engine.alerts.is_suppressed(rule.id)
    assert engine.alerts.evaluate_all_rules()[0].triggered


def test_unsuppress(engine):
    rule = engine.alerts.create_rule(_cpu_rule())
    engine.alerts.suppress_rule(rule.id, "maintenance", 600)

    lifted = engine.alerts.unsuppress_rule(rule.id, "ops")
    assert lifted.active is False
    assert not engine.alerts.is_suppressed(rule.id)
    with pytest.raises(NotFoundError):
        engine.alerts.unsuppress_rule(rule.id)
    with pytest.raises(NotFoundError):
        engine.alerts.suppress_rule("rule_missing", "x", 60)


# =============================================================================
# Subscriptions
# =============================================================================

def test_subscriber_receives_events_and_full_queue_drops(engine):
    channel = engine.alerts.subscribe(maxsize=1)

    first = engine.alerts.manual_trigger_alert("CUSTOM", "LOW", "one")
    engine.alerts.manual_trigger_alert("CUSTOM", "LOW", "two")

    assert channel.get_nowait() is first
    assert channel.empty()
    assert engine.alerts.stats()["dropped_events"] == 1

    engine.alerts.unsubscribe(channel)
    engine.alerts.manual_trigger_alert("CUSTOM", "LOW", "three")
    assert channel.empty()


# =============================================================================
# Statistics
# =============================================================================

def test_alert_statistics(engine, clock):
    a = engine.alerts.manual_trigger_alert("CUSTOM", "CRITICAL", "a")
    b = engine.alerts.manual_trigger_alert("CUSTOM", "LOW", "b")
    engine.alerts.manual_trigger_alert("CUSTOM", "LOW", "c")

    clock.advance(2)
    engine.alerts.acknowledge_alert(a.id, "ops")
    clock.advance(2)
    engine.alerts.resolve_alert(b.id, "ops")

    stats = engine.alerts.get_alert_statistics()
    assert stats.total_alerts == 3
    assert stats.active_alerts == 1
    assert stats.acknowledged_alerts == 1
    assert stats.resolved_alerts == 1
    assert stats.critical_alerts == 1
    assert stats.low_alerts == 2
    assert stats.average_response_time == 2000.0
    assert stats.average_resolution_time == 4000.0

    efficiency = engine.alerts.get_alert_efficiency()
    assert efficiency.total_processed == 2
    assert efficiency.resolution_rate == pytest.approx(200 / 3)
    assert efficiency.manual_resolved == 1
    assert efficiency.auto_resolved == 0


def test_alert_trend_daily_counts(engine, clock):
    engine.alerts.manual_trigger_alert("CUSTOM", "LOW", "old")
    clock.advance(days=3)
    engine.alerts.manual_trigger_alert("CPU_USAGE", "HIGH", "new")
    engine.alerts.manual_trigger_alert("CPU_USAGE", "HIGH", "newer")

    trend = engine.alerts.get_alert_trend(days=7)
    counts = [d.count for d in trend.daily_counts]
    assert counts == [0, 0, 0, 1, 0, 0, 2]
    assert trend.daily_counts[-1].date.date() == clock().date()
    assert trend.by_type == {AlertType.CPU_USAGE: 2, AlertType.CUSTOM: 1}
    assert trend.by_severity == {AlertSeverity.HIGH: 2, AlertSeverity.LOW: 1}
    assert trend.trend_direction == 3.0

    with pytest.raises(ValidationError):
        engine.alerts.get_alert_trend(days=0)


def test_empty_trend(engine):
    trend = engine.alerts.get_alert_trend(days=3)
    assert [d.count for d in trend.daily_counts] == [0, 0, 0]
    assert trend.trend_direction == 0.0


def test_rule_model_round_trip_keeps_timestamps():
    rule = AlertRule(id="", metric_name="mem", operator=AlertOperator.LTE, threshold=5)
    restored = AlertRule.from_dict(rule.to_dict())
    assert restored.id == rule.id
    assert restored.operator == AlertOperator.LTE
    assert restored.created_at == rule.created_at


def test_rule_enabled_accepts_string_booleans(engine):
    assert AlertRule.from_dict(_cpu_rule(enabled="false")).enabled is False
    assert AlertRule.from_dict(_cpu_rule(enabled="True")).enabled is True

    rule = engine.alerts.create_rule(_cpu_rule())
    assert engine.alerts.update_rule(rule.id, {"enabled": "off"}).enabled is False
    with pytest.raises(ValidationError):
        engine.alerts.create_rule(_cpu_rule(enabled="maybe"))


def test_concurrent_update_and_toggle_keep_both_changes(engine):
    rule = engine.alerts.create_rule(_cpu_rule())

    for i in range(50):
        engine.alerts.toggle_rule(rule.id, True)
        barrier = threading.Barrier(2)

        def update():
            barrier.wait()
            engine.alerts.update_rule(rule.id, {"threshold": 100 + i})

        def disable():
            barrier.wait()
            engine.alerts.toggle_rule(rule.id, False)

        threads = [threading.Thread(target=update), threading.Thread(target=disable)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        current = engine.alerts.get_rule(rule.id)
        assert current.enabled is False
        assert current.threshold == 100 + i


# =============================================================================
# Concurrency
# =============================================================================

def _race(*targets):
    barrier = threading.Barrier(len(targets))
    outcomes = [None] * len(targets)

    def run(index, target):
        barrier.wait()
        try:
            target()
            outcomes[index] = "ok"
        except NotFoundError:
            outcomes[index] = "not_found"

    threads = [threading.Thread(target=run, args=(i, t)) for i, t in enumerate(targets)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return outcomes


def test_acknowledge_and_resolve_race_has_one_terminal_outcome(engine, clock):
    rule = engine.alerts.create_rule(_cpu_rule(cooldown_sec=0))

    for _ in range(50):
        event = engine.alerts.trigger_alert(rule.id, 99)
        clock.advance(7)

        ack, resolve = _race(
            lambda: engine.alerts.acknowledge_alert(event.id, "alice"),
            lambda: engine.alerts.resolve_alert(event.id, "bob"),
        )

        assert resolve == "ok"
        assert event.status == AlertStatus.RESOLVED
        assert event.resolved_by == "bob"
        assert event.resolution_time == timedelta(seconds=7)
        if ack == "ok":
            assert event.acknowledged_by == "alice"
            assert event.response_time == timedelta(seconds=7)
            assert event.acknowledged_at <= event.resolved_at
        else:
            assert ack == "not_found"
            assert event.acknowledged_at is None
            assert event.response_time is None

    assert engine.alerts.get_active_alerts() == []
    assert engine.alerts.get_alert_statistics().resolved_alerts == 50


def test_concurrent_resolves_succeed_once(engine):
    rule = engine.alerts.create_rule(_cpu_rule(cooldown_sec=0))

    for _ in range(50):
        event = engine.alerts.trigger_alert(rule.id, 99)
        outcomes = _race(
            lambda: engine.alerts.resolve_alert(event.id, "alice"),
            lambda: engine.alerts.resolve_alert(event.id, "bob"),
        )
        assert sorted(outcomes) == ["not_found", "ok"]
        assert event.resolved_by == ("alice" if outcomes[0] == "ok" else "bob")
