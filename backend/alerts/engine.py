"""
Alert Engine
Rule evaluation, event lifecycle, suppression and alert statistics.

Flow:
1. Sweep (or sample arrival) reads each rule's current metric value
2. Condition met and rule neither suppressed nor cooling down → event
3. Event is registered active, kept in history, persisted, published
   to subscribers and handed to the notification dispatcher
4. Operators acknowledge and resolve events
"""

import logging
import math
import queue
import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

import pandas as pd

from core.aggregator import Aggregator
from core.errors import EvaluationError, NotFoundError, TransientIOError, ValidationError
from core.store import MetricStore

from .models import (
    MANUAL_RULE_ID,
    SYSTEM_ACTOR,
    AlertEfficiency,
    AlertEvent,
    AlertRule,
    AlertSeverity,
    AlertState,
    AlertStatistics,
    AlertStatus,
    AlertSuppression,
    AlertTrend,
    AlertType,
    DailyAlertCount,
    EvaluationOutcome,
    EvaluationResult,
)
from .notifiers import LogNotifier, NotificationDispatcher

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DEFAULT_RULE_WINDOW_SECONDS = 60


def _ms(delta: timedelta) -> float:
    return delta.total_seconds() * 1000.0


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class AlertEngine:
    """
    Alert rules and the events they produce.

    No engine-wide lock:
        - rules / suppressions / active / history maps have small locks
          held only for lookups and snapshots
        - one lock per rule makes the cooldown check-and-record atomic
        - one lock per open event serializes acknowledge / resolve
    """

    def __init__(
        self,
        store: MetricStore,
        aggregator: Optional[Aggregator] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        persistence=None,
        history_size: int = 1000,
        auto_resolve: bool = False,
        subscriber_queue_size: int = 100,
        clock: Clock = datetime.now
    ):
        self._store = store
        self._aggregator = aggregator or Aggregator(store, clock=clock)
        self._dispatcher = dispatcher or NotificationDispatcher([LogNotifier()])
        self._persistence = persistence
        self._auto_resolve = auto_resolve
        self._subscriber_queue_size = subscriber_queue_size
        self._clock = clock

        self._rules: Dict[str, AlertRule] = {}
        self._states: Dict[str, AlertState] = {}
        self._rule_locks: Dict[str, threading.Lock] = {}
        self._rules_lock = threading.Lock()

        self._active: Dict[str, AlertEvent] = {}
        self._event_locks: Dict[str, threading.Lock] = {}
        self._active_lock = threading.Lock()

        self._history: deque = deque(maxlen=history_size)
        self._history_lock = threading.Lock()

        self._suppressions: Dict[str, AlertSuppression] = {}
        self._suppress_lock = threading.Lock()

        self._subscribers: List[queue.Queue] = []
        self._sub_lock = threading.Lock()

        self._stats_lock = threading.Lock()
        self._stats = {
            "evaluations": 0,
            "triggers": 0,
            "cooldown_skips": 0,
            "suppressed": 0,
            "errors": 0,
            "dropped_events": 0,
            "start_time": clock(),
        }

    @property
    def dispatcher(self) -> NotificationDispatcher:
        return self._dispatcher

    def _bump(self, key: str, n: int = 1) -> None:
        with self._stats_lock:
            self._stats[key] += n

    def _persist(self, method: str, *args) -> None:
        if self._persistence:
            self._persistence.submit(getattr(self._persistence, method), *args, ordered=True)

    # =========================================================================
    # Rule Management
    # =========================================================================

    def _build_rule(self, data: Dict[str, Any]) -> AlertRule:
        if not str(data.get("metric_name") or "").strip():
            raise ValidationError("metric_name is required")
        try:
            rule = AlertRule.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            raise ValidationError(f"Invalid alert rule: {e}")
        self._validate_rule(rule)
        return rule

    @staticmethod
    def _validate_rule(rule: AlertRule) -> None:
        if not rule.metric_name or not rule.metric_name.strip():
            raise ValidationError("metric_name is required")
        if rule.cooldown_sec < 0:
            raise ValidationError("cooldown_sec must be >= 0", detail={"rule_id": rule.id})
        if not math.isfinite(rule.threshold):
            raise ValidationError("threshold must be finite", detail={"rule_id": rule.id})

    def create_rule(self, rule: Union[AlertRule, Dict[str, Any]], created_by: Optional[str] = None) -> AlertRule:
        """Add a rule (from an AlertRule or a JSON-like dict)"""
        if isinstance(rule, dict):
            rule = self._build_rule(rule)
        else:
            self._validate_rule(rule)

        now = self._clock()
        rule.created_at = now
        rule.updated_at = now
        if created_by:
            rule.created_by = created_by

        with self._rules_lock:
            self._rules[rule.id] = rule
            self._states.setdefault(rule.id, AlertState(rule_id=rule.id))
            self._rule_locks.setdefault(rule.id, threading.Lock())

        self._persist("save_rule", rule)
        logger.info("Alert rule created: %s (%s %s %s)", rule.id, rule.metric_name, rule.operator.value, rule.threshold)
        return rule

    def update_rule(self, rule_id: str, changes: Dict[str, Any], updated_by: Optional[str] = None) -> AlertRule:
        """
        Apply partial changes.

        id, created_at and created_by are kept; updated_at is refreshed.
        """
        self.get_rule(rule_id)
        with self._rule_lock(rule_id):
            existing = self.get_rule(rule_id)
            merged = {**existing.to_dict(), **changes}
            merged["id"] = existing.id
            updated = self._build_rule(merged)
            updated.created_at = existing.created_at
            updated.created_by = existing.created_by
            updated.updated_at = self._clock()
            updated.updated_by = updated_by or changes.get("updated_by")

            with self._rules_lock:
                if rule_id not in self._rules:
                    raise NotFoundError(f"Alert rule not found: {rule_id}")
                self._rules[rule_id] = updated
            self._persist("save_rule", updated)

        logger.info("Alert rule updated: %s", rule_id)
        return updated

    def delete_rule(self, rule_id: str) -> None:
        with self._rules_lock:
            if rule_id not in self._rules:
                raise NotFoundError(f"Alert rule not found: {rule_id}")
            del self._rules[rule_id]
            self._states.pop(rule_id, None)
            self._rule_locks.pop(rule_id, None)

        self._persist("delete_rule", rule_id)
        logger.info("Alert rule deleted: %s", rule_id)

    def toggle_rule(self, rule_id: str, enabled: bool, updated_by: Optional[str] = None) -> AlertRule:
        self.get_rule(rule_id)
        with self._rule_lock(rule_id):
            rule = self.get_rule(rule_id)
            rule.enabled = enabled
            rule.updated_at = self._clock()
            if updated_by:
                rule.updated_by = updated_by
            self._persist("save_rule", rule)

        logger.info("Alert rule %s %s", rule_id, "enabled" if enabled else "disabled")
        return rule

    def get_rule(self, rule_id: str) -> AlertRule:
        with self._rules_lock:
            rule = self._rules.get(rule_id)
        if rule is None:
            raise NotFoundError(f"Alert rule not found: {rule_id}")
        return rule

    def get_rules(self) -> List[AlertRule]:
        with self._rules_lock:
            return list(self._rules.values())

    def _rule_lock(self, rule_id: str) -> threading.Lock:
        with self._rules_lock:
            return self._rule_locks.setdefault(rule_id, threading.Lock())

    # =========================================================================
    # Evaluation
    # =========================================================================

    def _current_value(self, rule: AlertRule) -> Optional[float]:
        """Latest sample, or a window aggregate when the rule asks for one"""
        aggregation = rule.metadata.get("aggregation")
        if aggregation:
            window = timedelta(seconds=float(rule.metadata.get("window_seconds", DEFAULT_RULE_WINDOW_SECONDS)))
            result = self._aggregator.aggregate_window(rule.metric_name, window, aggregation)
            return result.value if result is not None else None

        sample = self._store.latest(rule.metric_name)
        return sample.value if sample is not None else None

    def evaluate_rule(self, rule: AlertRule) -> EvaluationResult:
        if not rule.enabled:
            return EvaluationResult(rule.id, EvaluationOutcome.DISABLED)

        if self.is_suppressed(rule.id):
            self._bump("suppressed")
            return EvaluationResult(rule.id, EvaluationOutcome.SUPPRESSED)

        try:
            value = self._current_value(rule)
        except Exception as e:
            raise EvaluationError(
                f"Metric lookup failed for rule {rule.id}: {e}",
                detail={"rule_id": rule.id, "metric_name": rule.metric_name},
            ) from e

        if value is None:
            return EvaluationResult(rule.id, EvaluationOutcome.NO_DATA)

        if not rule.matches(value):
            if self._auto_resolve:
                self._resolve_cleared(rule, value)
            return EvaluationResult(rule.id, EvaluationOutcome.NOT_MATCHED, value=value)

        event = self.trigger_alert(rule.id, value, context={"source": "evaluation"})
        if event is None:
            return EvaluationResult(rule.id, EvaluationOutcome.COOLDOWN, value=value)
        return EvaluationResult(rule.id, EvaluationOutcome.TRIGGERED, value=value, event=event)

    def _evaluate_isolated(self, rule: AlertRule) -> EvaluationResult:
        try:
            return self.evaluate_rule(rule)
        except Exception as e:
            self._bump("errors")
            logger.error("Alert rule %s evaluation failed: %s", rule.id, e)
            return EvaluationResult(rule.id, EvaluationOutcome.ERROR, error=str(e))

    def evaluate_all_rules(self) -> List[EvaluationResult]:
        """
        One sweep over every rule.

        A failing rule is reported as ERROR; the sweep continues.
        """
        self._bump("evaluations")
        results = [self._evaluate_isolated(rule) for rule in self.get_rules()]

        triggered = sum(1 for r in results if r.triggered)
        logger.debug("Evaluated %d rules, %d triggered", len(results), triggered)
        return results

    def evaluate_metric(self, metric_name: str) -> List[EvaluationResult]:
        """Evaluate only the rules bound to one metric"""
        rules = [r for r in self.get_rules() if r.metric_name == metric_name]
        if not rules:
            return []
        self._bump("evaluations")
        return [self._evaluate_isolated(rule) for rule in rules]

    def _resolve_cleared(self, rule: AlertRule, value: float) -> None:
        for event in self.get_active_alerts():
            if event.rule_id != rule.id:
                continue
            try:
                self.resolve_alert(event.id, SYSTEM_ACTOR, f"Condition cleared (value={value})")
            except NotFoundError:
                # Resolved concurrently
                continue

    # =========================================================================
    # Triggering
    # =========================================================================

    def trigger_alert(
        self,
        rule_id: str,
        value: float,
        context: Optional[Dict[str, Any]] = None
    ) -> Optional[AlertEvent]:
        """
        Fire a rule.

        Returns:
            The new event, or None when the rule is suppressed or
            still cooling down (not an error)
        """
        rule = self.get_rule(rule_id)
        if self.is_suppressed(rule_id):
            self._bump("suppressed")
            logger.debug("Alert rule %s is suppressed, not triggering", rule_id)
            return None

        now = self._clock()
        with self._rule_lock(rule_id):
            with self._rules_lock:
                state = self._states.setdefault(rule_id, AlertState(rule_id=rule_id))
            if not state.can_trigger(rule.cooldown_sec, now):
                self._bump("cooldown_skips")
                logger.debug("Alert rule %s in cooldown", rule_id)
                return None
            state.record_trigger(value, now)

        event = AlertEvent.from_rule(rule, value, now, context)
        self._register(event)
        return event

    def manual_trigger_alert(
        self,
        alert_type: Union[AlertType, str],
        severity: Union[AlertSeverity, str],
        message: str,
        context: Optional[Dict[str, Any]] = None
    ) -> AlertEvent:
        """Operator-raised event, not bound to a rule"""
        try:
            alert_type = AlertType(alert_type)
            severity = AlertSeverity(severity)
        except ValueError as e:
            raise ValidationError(str(e))
        if not message:
            raise ValidationError("message is required")

        context = dict(context or {})
        event = AlertEvent(
            id="",
            rule_id=MANUAL_RULE_ID,
            rule_name="Manual Alert",
            alert_type=alert_type,
            severity=severity,
            message=message,
            triggered_at=self._clock(),
            metric_name=context.get("metric_name"),
            context=context,
        )
        self._register(event)
        return event

    def _register(self, event: AlertEvent) -> None:
        with self._active_lock:
            self._active[event.id] = event
            self._event_locks[event.id] = threading.Lock()
        with self._history_lock:
            self._history.append(event)
        self._bump("triggers")

        logger.warning(
            "Alert triggered: %s [%s] %s (value=%s)",
            event.rule_name, event.severity.value, event.message, event.metric_value
        )

        self._persist("save_event", event)
        self._publish(event)
        self._dispatcher.submit(event)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _open_event(self, alert_id: str):
        with self._active_lock:
            event = self._active.get(alert_id)
            lock = self._event_locks.get(alert_id)
        if event is None or lock is None:
            raise NotFoundError(f"Active alert not found: {alert_id}")
        return event, lock

    def acknowledge_alert(
        self,
        alert_id: str,
        acknowledged_by: str,
        comment: Optional[str] = None
    ) -> AlertEvent:
        """ACTIVE → ACKNOWLEDGED"""
        event, lock = self._open_event(alert_id)
        with lock:
            if event.status == AlertStatus.RESOLVED:
                raise NotFoundError(f"Active alert not found: {alert_id}")
            if event.status != AlertStatus.ACTIVE:
                raise ValidationError(
                    f"Alert {alert_id} cannot be acknowledged from {event.status.value}",
                    detail={"status": event.status.value},
                )
            now = self._clock()
            event.status = AlertStatus.ACKNOWLEDGED
            event.acknowledged_at = now
            event.acknowledged_by = acknowledged_by
            event.acknowledgment_comment = comment
            event.response_time = now - event.triggered_at

        self._persist("save_event", event)
        logger.info("Alert %s acknowledged by %s", alert_id, acknowledged_by)
        return event

    def resolve_alert(
        self,
        alert_id: str,
        resolved_by: str,
        resolution: Optional[str] = None
    ) -> AlertEvent:
        """ACTIVE | ACKNOWLEDGED → RESOLVED; removes the event from the active set"""
        event, lock = self._open_event(alert_id)
        with lock:
            if event.status == AlertStatus.RESOLVED:
                raise NotFoundError(f"Active alert not found: {alert_id}")
            now = self._clock()
            event.status = AlertStatus.RESOLVED
            event.resolved_at = now
            event.resolved_by = resolved_by
            event.resolution = resolution
            event.resolution_time = now - event.triggered_at

        with self._active_lock:
            self._active.pop(alert_id, None)
            self._event_locks.pop(alert_id, None)

        self._persist("save_event", event)
        logger.info("Alert %s resolved by %s", alert_id, resolved_by)
        return event

    # =========================================================================
    # Queries
    # =========================================================================

    def _history_snapshot(self) -> List[AlertEvent]:
        with self._history_lock:
            return list(self._history)

    def get_active_alerts(self) -> List[AlertEvent]:
        """Open events, newest first"""
        with self._active_lock:
            events = list(self._active.values())
        return sorted(events, key=lambda e: e.triggered_at, reverse=True)

    def get_alert(self, alert_id: str) -> AlertEvent:
        with self._active_lock:
            event = self._active.get(alert_id)
        if event is not None:
            return event
        for event in self._history_snapshot():
            if event.id == alert_id:
                return event
        raise NotFoundError(f"Alert not found: {alert_id}")

    def get_alert_history(self, hours: float = 24) -> List[AlertEvent]:
        """Events triggered in the last `hours`, newest first"""
        cutoff = self._clock() - timedelta(hours=hours)
        events = [e for e in self._history_snapshot() if e.triggered_at >= cutoff]
        events.reverse()
        return events

    def get_alerts_by_type(self, alert_type: Union[AlertType, str]) -> List[AlertEvent]:
        alert_type = AlertType(alert_type)
        return [e for e in reversed(self._history_snapshot()) if e.alert_type == alert_type]

    def get_alerts_by_severity(self, severity: Union[AlertSeverity, str]) -> List[AlertEvent]:
        severity = AlertSeverity(severity)
        return [e for e in reversed(self._history_snapshot()) if e.severity == severity]

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, maxsize: Optional[int] = None) -> queue.Queue:
        """
        Bounded channel of future events.

        A full channel drops new events for that subscriber only.
        """
        channel = queue.Queue(maxsize=maxsize or self._subscriber_queue_size)
        with self._sub_lock:
            self._subscribers.append(channel)
        return channel

    def unsubscribe(self, channel: queue.Queue) -> None:
        with self._sub_lock:
            if channel in self._subscribers:
                self._subscribers.remove(channel)

    def _publish(self, event: AlertEvent) -> None:
        with self._sub_lock:
            subscribers = list(self._subscribers)
        for channel in subscribers:
            try:
                channel.put_nowait(event)
            except queue.Full:
                self._bump("dropped_events")

    # =========================================================================
    # Suppression
    # =========================================================================

    def suppress_rule(
        self,
        rule_id: str,
        reason: str,
        duration: Union[timedelta, float],
        suppressed_by: Optional[str] = None
    ) -> AlertSuppression:
        rule = self.get_rule(rule_id)
        if not isinstance(duration, timedelta):
            duration = timedelta(seconds=float(duration))
        if duration < timedelta(0):
            raise ValidationError("suppression duration must be >= 0")

        suppression = AlertSuppression(
            rule_id=rule_id,
            rule_name=rule.name,
            reason=reason,
            duration=duration,
            suppressed_at=self._clock(),
            suppressed_by=suppressed_by,
        )
        with self._suppress_lock:
            self._suppressions[rule_id] = suppression

        self._persist("save_suppression", suppression)
        logger.info("Alert rule %s suppressed for %s: %s", rule_id, duration, reason)
        return suppression

    def unsuppress_rule(self, rule_id: str, unsuppressed_by: Optional[str] = None) -> AlertSuppression:
        now = self._clock()
        with self._suppress_lock:
            suppression = self._suppressions.pop(rule_id, None)
        if suppression is None or not suppression.is_active(now):
            raise NotFoundError(f"No active suppression for rule: {rule_id}")

        suppression.active = False
        self._persist("delete_suppression", rule_id)
        logger.info("Alert rule %s unsuppressed by %s", rule_id, unsuppressed_by or "unknown")
        return suppression

    def is_suppressed(self, rule_id: str) -> bool:
        """Lazy expiry: expired suppressions are dropped on read"""
        now = self._clock()
        with self._suppress_lock:
            suppression = self._suppressions.get(rule_id)
            if suppression is None:
                return False
            if suppression.is_active(now):
                return True
            del self._suppressions[rule_id]
        self._persist("delete_suppression", rule_id)
        return False

    def get_suppressed_rules(self) -> List[AlertSuppression]:
        now = self._clock()
        with self._suppress_lock:
            expired = [rid for rid, s in self._suppressions.items() if not s.is_active(now)]
            for rid in expired:
                del self._suppressions[rid]
            active = list(self._suppressions.values())
        for rid in expired:
            self._persist("delete_suppression", rid)
        return active

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_alert_statistics(self) -> AlertStatistics:
        history = self._history_snapshot()
        response = [_ms(e.response_time) for e in history if e.response_time is not None]
        resolution = [_ms(e.resolution_time) for e in history if e.resolution_time is not None]

        statistics = AlertStatistics(
            total_alerts=len(history),
            active_alerts=sum(1 for e in history if e.status == AlertStatus.ACTIVE),
            acknowledged_alerts=sum(1 for e in history if e.status == AlertStatus.ACKNOWLEDGED),
            resolved_alerts=sum(1 for e in history if e.status == AlertStatus.RESOLVED),
            critical_alerts=sum(1 for e in history if e.severity == AlertSeverity.CRITICAL),
            high_alerts=sum(1 for e in history if e.severity == AlertSeverity.HIGH),
            medium_alerts=sum(1 for e in history if e.severity == AlertSeverity.MEDIUM),
            low_alerts=sum(1 for e in history if e.severity == AlertSeverity.LOW),
            average_response_time=_mean(response),
            average_resolution_time=_mean(resolution),
            last_update_time=self._clock(),
        )

        self._persist("save_statistics", statistics)
        return statistics

    def get_alert_trend(self, days: int = 7) -> AlertTrend:
        """
        Daily counts over the last `days` days, oldest first.

        trend_direction = events in the second half of the days
        minus events in the first half.
        """
        if days <= 0:
            raise ValidationError("days must be positive")

        now = self._clock()
        day_index = pd.date_range(end=pd.Timestamp(now).normalize(), periods=days, freq="D")
        start = day_index[0].to_pydatetime()
        events = [e for e in self._history_snapshot() if e.triggered_at >= start]

        trend = AlertTrend(analysis_time=now)
        counts = {}
        if events:
            frame = pd.DataFrame({
                "day": [e.triggered_at.date() for e in events],
                "alert_type": [e.alert_type.value for e in events],
                "severity": [e.severity.value for e in events],
            })
            counts = frame.groupby("day").size().to_dict()
            trend.by_type = {AlertType(k): int(v) for k, v in frame["alert_type"].value_counts().items()}
            trend.by_severity = {AlertSeverity(k): int(v) for k, v in frame["severity"].value_counts().items()}

        trend.daily_counts = [
            DailyAlertCount(date=day.to_pydatetime(), count=int(counts.get(day.date(), 0)))
            for day in day_index
        ]
        half = days // 2
        values = [d.count for d in trend.daily_counts]
        trend.trend_direction = float(sum(values[half:]) - sum(values[:half]))
        return trend

    def get_alert_efficiency(self) -> AlertEfficiency:
        history = self._history_snapshot()
        processed = [e for e in history if e.status in (AlertStatus.RESOLVED, AlertStatus.ACKNOWLEDGED)]
        resolved = [e for e in history if e.status == AlertStatus.RESOLVED]
        auto = sum(1 for e in resolved if (e.resolved_by or "").startswith(SYSTEM_ACTOR))

        return AlertEfficiency(
            average_response_time=_mean([_ms(e.response_time) for e in history if e.response_time is not None]),
            average_resolution_time=_mean([_ms(e.resolution_time) for e in history if e.resolution_time is not None]),
            resolution_rate=(len(processed) / len(history) * 100.0) if history else 0.0,
            total_processed=len(processed),
            auto_resolved=auto,
            manual_resolved=len(resolved) - auto,
            calculation_time=self._clock(),
        )

    # =========================================================================
    # Persistence / Maintenance
    # =========================================================================

    def load_persisted_state(self) -> Dict[str, int]:
        """Reload rules and unexpired suppressions (best effort)"""
        if not self._persistence:
            return {"rules": 0, "suppressions": 0}

        try:
            rules = self._persistence.load_rules()
            suppressions = self._persistence.load_suppressions()
        except TransientIOError as e:
            logger.warning("Could not load persisted alert state: %s", e)
            return {"rules": 0, "suppressions": 0}

        with self._rules_lock:
            for rule in rules:
                self._rules[rule.id] = rule
                self._states.setdefault(rule.id, AlertState(rule_id=rule.id))
                self._rule_locks.setdefault(rule.id, threading.Lock())

        now = self._clock()
        live = [s for s in suppressions if s.is_active(now)]
        with self._suppress_lock:
            for suppression in live:
                self._suppressions[suppression.rule_id] = suppression

        logger.info("Loaded %d alert rules and %d suppressions", len(rules), len(live))
        return {"rules": len(rules), "suppressions": len(live)}

    def clear(self) -> None:
        """Drop rules, events, suppressions and runtime state"""
        with self._rules_lock:
            self._rules.clear()
            self._states.clear()
            self._rule_locks.clear()
        with self._active_lock:
            self._active.clear()
            self._event_locks.clear()
        with self._history_lock:
            self._history.clear()
        with self._suppress_lock:
            self._suppressions.clear()

    def stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            snapshot = dict(self._stats)
        uptime = (self._clock() - snapshot.pop("start_time")).total_seconds()
        rules = self.get_rules()
        with self._active_lock:
            active = len(self._active)
        with self._suppress_lock:
            suppressed = len(self._suppressions)
        return {
            **snapshot,
            "uptime_seconds": round(uptime, 2),
            "rules_count": len(rules),
            "enabled_rules": sum(1 for r in rules if r.enabled),
            "active_alerts": active,
            "suppressions": suppressed,
            "history_size": len(self._history),
            "subscribers": len(self._subscribers),
        }
