"""
Alert System
Rule-based alerts over recorded metrics.

Structure:
    alerts/
    ├── models.py     → AlertRule, AlertState, AlertEvent, AlertSuppression
    ├── notifiers.py  → Notifier channels + NotificationDispatcher
    └── engine.py     → AlertEngine (evaluation + lifecycle + statistics)

Usage:
    from alerts import AlertEngine, AlertRule, AlertOperator

    engine = AlertEngine(store)

    rule = engine.create_rule(AlertRule(
        id="",
        metric_name="cpu",
        operator=AlertOperator.GT,
        threshold=80.0,
        cooldown_sec=60
    ))

    # Evaluate (called by the scheduler or on sample arrival)
    results = engine.evaluate_all_rules()

    # Lifecycle
    event = engine.get_active_alerts()[0]
    engine.acknowledge_alert(event.id, "ops")
    engine.resolve_alert(event.id, "ops", "scaled out")
"""

from .models import (
    AlertRule,
    AlertState,
    AlertEvent,
    AlertSuppression,
    AlertType,
    AlertOperator,
    AlertSeverity,
    AlertStatus,
    AlertStatistics,
    AlertTrend,
    AlertEfficiency,
    EvaluationOutcome,
    EvaluationResult,
)

from .notifiers import (
    Notifier,
    LogNotifier,
    WebhookNotifier,
    CallbackNotifier,
    NotificationDispatcher,
)

from .engine import AlertEngine

__all__ = [
    # Models
    "AlertRule",
    "AlertState",
    "AlertEvent",
    "AlertSuppression",
    "AlertType",
    "AlertOperator",
    "AlertSeverity",
    "AlertStatus",
    "AlertStatistics",
    "AlertTrend",
    "AlertEfficiency",
    "EvaluationOutcome",
    "EvaluationResult",
    # Notifiers
    "Notifier",
    "LogNotifier",
    "WebhookNotifier",
    "CallbackNotifier",
    "NotificationDispatcher",
    # Engine
    "AlertEngine",
]
