"""
Alert Models
Data structures for alert rules, state, events and suppressions.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid

MANUAL_RULE_ID = "MANUAL"
SYSTEM_ACTOR = "SYSTEM"
EQUALITY_TOLERANCE = 0.001


class AlertType(str, Enum):
    """What an alert is about"""
    SYSTEM_PERFORMANCE = "SYSTEM_PERFORMANCE"
    MEMORY_USAGE = "MEMORY_USAGE"
    CPU_USAGE = "CPU_USAGE"
    DISK_USAGE = "DISK_USAGE"
    NETWORK_LATENCY = "NETWORK_LATENCY"
    DATABASE_PERFORMANCE = "DATABASE_PERFORMANCE"
    CACHE_PERFORMANCE = "CACHE_PERFORMANCE"
    APPLICATION_ERROR = "APPLICATION_ERROR"
    SECURITY_THREAT = "SECURITY_THREAT"
    BUSINESS_METRIC = "BUSINESS_METRIC"
    CUSTOM = "CUSTOM"


class AlertOperator(str, Enum):
    """Alert condition operators"""
    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="
    EQ = "=="
    NE = "!="

    def evaluate(self, value: float, threshold: float) -> bool:
        if self == AlertOperator.GT:
            return value > threshold
        elif self == AlertOperator.LT:
            return value < threshold
        elif self == AlertOperator.GTE:
            return value >= threshold
        elif self == AlertOperator.LTE:
            return value <= threshold
        elif self == AlertOperator.EQ:
            return abs(value - threshold) < EQUALITY_TOLERANCE
        elif self == AlertOperator.NE:
            return abs(value - threshold) >= EQUALITY_TOLERANCE
        return False


class AlertSeverity(str, Enum):
    """Alert severity levels"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AlertStatus(str, Enum):
    """
    Event lifecycle.

    ACTIVE → ACKNOWLEDGED → RESOLVED, or ACTIVE → RESOLVED.
    """
    ACTIVE = "ACTIVE"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    RESOLVED = "RESOLVED"
    SUPPRESSED = "SUPPRESSED"


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


def _parse_ts(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _seconds(delta: Optional[timedelta]) -> Optional[float]:
    return delta.total_seconds() if delta is not None else None


def _as_bool(value) -> bool:
    """JSON booleans, plus the string forms env files and query strings use"""
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "1", "yes", "on"):
            return True
        if text in ("false", "0", "no", "off", ""):
            return False
        raise ValueError(f"Not a boolean: {value!r}")
    return bool(value)


@dataclass
class AlertRule:
    """
    Operator-defined alert rule.

    Example:
        "Alert me when cpu > 80, at most once a minute"

    metadata keys understood by the engine:
        aggregation     → evaluate a window aggregate (AVG, MAX, ...)
        window_seconds  → window size for `aggregation` (default 60)
    """
    id: str
    metric_name: str
    operator: AlertOperator
    threshold: float
    name: str = ""
    description: str = ""
    alert_type: AlertType = AlertType.CUSTOM
    severity: AlertSeverity = AlertSeverity.MEDIUM
    enabled: bool = True
    cooldown_sec: float = 60.0
    message: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    created_by: Optional[str] = None
    updated_by: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            self.id = f"rule_{uuid.uuid4().hex[:8]}"
        if not self.name:
            self.name = f"{self.metric_name} {self.operator.value} {self.threshold}"
        if not self.message:
            self.message = f"{self.metric_name} {self.operator.value} {self.threshold}"

    def matches(self, value: float) -> bool:
        return self.operator.evaluate(value, self.threshold)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "alert_type": self.alert_type.value,
            "metric_name": self.metric_name,
            "operator": self.operator.value,
            "threshold": self.threshold,
            "severity": self.severity.value,
            "enabled": self.enabled,
            "cooldown_sec": self.cooldown_sec,
            "message": self.message,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "created_by": self.created_by,
            "updated_by": self.updated_by,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertRule":
        """Raises ValueError/KeyError on malformed input"""
        now = datetime.now()
        return cls(
            id=data.get("id") or "",
            metric_name=data["metric_name"],
            operator=AlertOperator(data["operator"]),
            threshold=float(data["threshold"]),
            name=data.get("name") or "",
            description=data.get("description") or "",
            alert_type=AlertType(data.get("alert_type", AlertType.CUSTOM.value)),
            severity=AlertSeverity(data.get("severity", AlertSeverity.MEDIUM.value)),
            enabled=_as_bool(data.get("enabled", True)),
            cooldown_sec=float(data.get("cooldown_sec", 60)),
            message=data.get("message") or "",
            metadata=dict(data.get("metadata") or {}),
            created_at=_parse_ts(data.get("created_at")) or now,
            updated_at=_parse_ts(data.get("updated_at")) or now,
            created_by=data.get("created_by"),
            updated_by=data.get("updated_by"),
        )


@dataclass
class AlertState:
    """
    Runtime state for an alert rule.

    Tracks when the rule last fired to implement cooldown.
    """
    rule_id: str
    last_triggered_at: Optional[datetime] = None
    trigger_count: int = 0
    last_value: Optional[float] = None

    def can_trigger(self, cooldown_sec: float, now: datetime) -> bool:
        """Check if cooldown has elapsed"""
        if self.last_triggered_at is None:
            return True
        elapsed = (now - self.last_triggered_at).total_seconds()
        return elapsed >= cooldown_sec

    def record_trigger(self, value: float, now: datetime) -> None:
        """Record that the rule fired"""
        self.last_triggered_at = now
        self.trigger_count += 1
        self.last_value = value

    def reset(self) -> None:
        self.last_triggered_at = None
        self.trigger_count = 0
        self.last_value = None


@dataclass
class AlertEvent:
    """
    A triggered alert.

    This is what gets dispatched to notifiers, persisted and kept in history.
    """
    id: str
    rule_id: str
    rule_name: str
    alert_type: AlertType
    severity: AlertSeverity
    message: str
    triggered_at: datetime
    status: AlertStatus = AlertStatus.ACTIVE
    metric_name: Optional[str] = None
    metric_value: Optional[float] = None
    threshold: Optional[float] = None
    context: Dict[str, Any] = field(default_factory=dict)
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    resolved_by: Optional[str] = None
    acknowledgment_comment: Optional[str] = None
    resolution: Optional[str] = None
    response_time: Optional[timedelta] = None
    resolution_time: Optional[timedelta] = None

    def __post_init__(self):
        if not self.id:
            self.id = f"evt_{uuid.uuid4().hex[:12]}"

    @property
    def is_open(self) -> bool:
        return self.status in (AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "alert_type": self.alert_type.value,
            "severity": self.severity.value,
            "status": self.status.value,
            "message": self.message,
            "metric_name": self.metric_name,
            "metric_value": self.metric_value,
            "threshold": self.threshold,
            "context": {k: _iso(v) if isinstance(v, datetime) else v for k, v in self.context.items()},
            "triggered_at": self.triggered_at.isoformat(),
            "acknowledged_at": _iso(self.acknowledged_at),
            "resolved_at": _iso(self.resolved_at),
            "acknowledged_by": self.acknowledged_by,
            "resolved_by": self.resolved_by,
            "acknowledgment_comment": self.acknowledgment_comment,
            "resolution": self.resolution,
            "response_time": _seconds(self.response_time),
            "resolution_time": _seconds(self.resolution_time),
        }

    @classmethod
    def from_rule(cls, rule: AlertRule, value: float, now: datetime,
                  context: Optional[Dict[str, Any]] = None) -> "AlertEvent":
        """Create event from triggered rule"""
        return cls(
            id="",
            rule_id=rule.id,
            rule_name=rule.name,
            alert_type=rule.alert_type,
            severity=rule.severity,
            message=rule.message,
            triggered_at=now,
            metric_name=rule.metric_name,
            metric_value=value,
            threshold=rule.threshold,
            context=dict(context or {}),
        )


@dataclass
class AlertSuppression:
    """
    Time-bounded operator override that silences one rule.

    Expiry is lazy: checked whenever the suppression is read.
    """
    rule_id: str
    reason: str
    duration: timedelta
    suppressed_at: datetime
    suppressed_by: Optional[str] = None
    rule_name: Optional[str] = None
    active: bool = True
    id: str = ""

    def __post_init__(self):
        if not self.id:
            self.id = f"sup_{uuid.uuid4().hex[:8]}"

    @property
    def expires_at(self) -> datetime:
        return self.suppressed_at + self.duration

    def is_active(self, now: datetime) -> bool:
        return self.active and self.expires_at > now

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "reason": self.reason,
            "duration": self.duration.total_seconds(),
            "suppressed_at": self.suppressed_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "suppressed_by": self.suppressed_by,
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertSuppression":
        return cls(
            id=data.get("id", ""),
            rule_id=data["rule_id"],
            rule_name=data.get("rule_name"),
            reason=data.get("reason", ""),
            duration=timedelta(seconds=float(data["duration"])),
            suppressed_at=datetime.fromisoformat(data["suppressed_at"]),
            suppressed_by=data.get("suppressed_by"),
            active=_as_bool(data.get("active", True)),
        )


# =============================================================================
# Statistics Types
# =============================================================================

@dataclass
class AlertStatistics:
    total_alerts: int = 0
    active_alerts: int = 0
    acknowledged_alerts: int = 0
    resolved_alerts: int = 0
    critical_alerts: int = 0
    high_alerts: int = 0
    medium_alerts: int = 0
    low_alerts: int = 0
    average_response_time: float = 0.0     # ms
    average_resolution_time: float = 0.0   # ms
    last_update_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_alerts": self.total_alerts,
            "active_alerts": self.active_alerts,
            "acknowledged_alerts": self.acknowledged_alerts,
            "resolved_alerts": self.resolved_alerts,
            "critical_alerts": self.critical_alerts,
            "high_alerts": self.high_alerts,
            "medium_alerts": self.medium_alerts,
            "low_alerts": self.low_alerts,
            "average_response_time": self.average_response_time,
            "average_resolution_time": self.average_resolution_time,
            "last_update_time": _iso(self.last_update_time),
        }


@dataclass
class DailyAlertCount:
    date: datetime
    count: int


@dataclass
class AlertTrend:
    daily_counts: List[DailyAlertCount] = field(default_factory=list)
    by_type: Dict[AlertType, int] = field(default_factory=dict)
    by_severity: Dict[AlertSeverity, int] = field(default_factory=dict)
    trend_direction: float = 0.0   # > 0 rising, < 0 falling
    analysis_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "daily_counts": [{"date": d.date.date().isoformat(), "count": d.count} for d in self.daily_counts],
            "by_type": {k.value: v for k, v in self.by_type.items()},
            "by_severity": {k.value: v for k, v in self.by_severity.items()},
            "trend_direction": self.trend_direction,
            "analysis_time": _iso(self.analysis_time),
        }


@dataclass
class AlertEfficiency:
    average_response_time: float = 0.0     # ms
    average_resolution_time: float = 0.0   # ms
    resolution_rate: float = 0.0           # percent
    total_processed: int = 0
    auto_resolved: int = 0
    manual_resolved: int = 0
    calculation_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "average_response_time": self.average_response_time,
            "average_resolution_time": self.average_resolution_time,
            "resolution_rate": self.resolution_rate,
            "total_processed": self.total_processed,
            "auto_resolved": self.auto_resolved,
            "manual_resolved": self.manual_resolved,
            "calculation_time": _iso(self.calculation_time),
        }


# =============================================================================
# Evaluation Output
# =============================================================================

class EvaluationOutcome(str, Enum):
    TRIGGERED = "TRIGGERED"
    NOT_MATCHED = "NOT_MATCHED"
    COOLDOWN = "COOLDOWN"
    SUPPRESSED = "SUPPRESSED"
    DISABLED = "DISABLED"
    NO_DATA = "NO_DATA"
    ERROR = "ERROR"


@dataclass
class EvaluationResult:
    """What happened to one rule in one evaluation pass"""
    rule_id: str
    outcome: EvaluationOutcome
    value: Optional[float] = None
    event: Optional[AlertEvent] = None
    error: Optional[str] = None

    @property
    def triggered(self) -> bool:
        return self.outcome == EvaluationOutcome.TRIGGERED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "outcome": self.outcome.value,
            "value": self.value,
            "event": self.event.to_dict() if self.event else None,
            "error": self.error,
        }
