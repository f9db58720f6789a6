import time
from datetime import timedelta

from services.scheduler import MonitoringScheduler


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_run_evaluation_counts_triggered(engine):
    engine.alerts.create_rule({"metric_name": "cpu", "operator": ">", "threshold": 80})
    engine.alerts.create_rule({"metric_name": "cpu", "operator": "<", "threshold": 10})
    engine.record_metric("cpu", 90)

    scheduler = MonitoringScheduler(engine)
    assert scheduler.run_evaluation() == 1
    assert scheduler.stats()["evaluation_runs"] == 1


def test_run_cleanup_removes_expired(engine, clock):
    engine.settings.retention_seconds = 3600
    engine.record_metric("cpu", 1.0, timestamp=clock() - timedelta(minutes=90))
    engine.record_metric("cpu", 2.0)

    scheduler = MonitoringScheduler(engine)
    assert scheduler.run_cleanup() == 1
    assert engine.store.count("cpu") == 1
    assert scheduler.stats()["samples_cleaned"] == 1
    assert engine.stats()["cleaned_up"] == 1


def test_background_jobs_run_until_stopped(engine):
    engine.alerts.create_rule({"metric_name": "cpu", "operator": ">", "threshold": 80, "cooldown_sec": 0})
    engine.record_metric("cpu", 90)

    scheduler = MonitoringScheduler(engine, evaluation_interval=0.01, cleanup_interval=0.01)
    assert scheduler.start() == {"status": "started"}
    assert scheduler.start() == {"status": "already_running"}
    assert scheduler.is_running

    assert _wait_for(lambda: scheduler.stats()["evaluation_runs"] >= 2 and scheduler.stats()["cleanup_runs"] >= 1)

    result = scheduler.stop()
    assert result["status"] == "stopped"
    assert not scheduler.is_running
    assert scheduler.stop() == {"status": "not_running"}
    assert len(engine.alerts.get_alert_history()) >= 2


def test_job_failure_is_counted(engine):
    def broken():
        raise RuntimeError("store unavailable")

    engine.cleanup_expired_data = broken
    scheduler = MonitoringScheduler(engine, evaluation_interval=60, cleanup_interval=0.01)
    scheduler.start()
    try:
        assert _wait_for(lambda: scheduler.stats()["errors"] >= 1)
    finally:
        scheduler.stop()
    assert scheduler.stats()["cleanup_runs"] == 0
