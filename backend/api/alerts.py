"""
Alerts API
Endpoints for alert rules, event lifecycle, suppression and statistics.

Endpoints:
    POST   /api/alerts/rules                   → Create alert rule
    GET    /api/alerts/rules                   → List all rules
    GET    /api/alerts/rules/{id}              → Get rule by ID
    PUT    /api/alerts/rules/{id}              → Update rule
    DELETE /api/alerts/rules/{id}              → Delete rule
    POST   /api/alerts/rules/{id}/enable       → Enable rule
    POST   /api/alerts/rules/{id}/disable      → Disable rule
    POST   /api/alerts/rules/{id}/trigger      → Trigger rule with a value
    POST   /api/alerts/rules/{id}/suppress     → Suppress rule
    DELETE /api/alerts/rules/{id}/suppress     → Lift suppression
    GET    /api/alerts/suppressions            → Active suppressions
    POST   /api/alerts/evaluate                → Run one evaluation sweep
    POST   /api/alerts/manual                  → Raise a manual alert
    POST   /api/alerts/{id}/acknowledge        → Acknowledge event
    POST   /api/alerts/{id}/resolve            → Resolve event
    GET    /api/alerts/active                  → Open events
    GET    /api/alerts/history                 → Event history
    GET    /api/alerts/statistics              → Alert statistics
    GET    /api/alerts/trend                   → Daily alert trend
    GET    /api/alerts/efficiency              → Response / resolution efficiency
    GET    /api/alerts/stats                   → Engine counters
    GET    /api/alerts/stream                  → SSE stream for real-time alerts

Handlers are plain `def`: triggering notifies and persists synchronously,
so FastAPI runs them in its threadpool instead of on the event loop.
"""

import asyncio
import json
import queue
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from alerts import AlertOperator, AlertSeverity, AlertType
from core.engine import MonitoringEngine

from .deps import SSE_HEADERS, get_engine, sse

router = APIRouter(prefix="/alerts", tags=["Alerts"])

STREAM_POLL_SECONDS = 0.5
KEEPALIVE_SECONDS = 30.0


# =============================================================================
# Request Models
# =============================================================================

class CreateAlertRequest(BaseModel):
    """Request body for creating an alert rule"""
    metric_name: str
    operator: AlertOperator
    threshold: float
    name: Optional[str] = None
    description: Optional[str] = None
    alert_type: AlertType = AlertType.CUSTOM
    severity: AlertSeverity = AlertSeverity.MEDIUM
    enabled: bool = True
    cooldown_sec: float = 60
    message: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_by: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "metric_name": "cpu",
                "operator": ">",
                "threshold": 80.0,
                "severity": "HIGH",
                "alert_type": "CPU_USAGE",
                "cooldown_sec": 60,
                "name": "CPU high"
            }
        }
    }


class TriggerRequest(BaseModel):
    value: float
    context: Dict[str, Any] = Field(default_factory=dict)


class ManualAlertRequest(BaseModel):
    alert_type: AlertType
    severity: AlertSeverity
    message: str
    context: Dict[str, Any] = Field(default_factory=dict)


class SuppressRequest(BaseModel):
    reason: str
    duration_seconds: float = Field(..., ge=0)
    suppressed_by: Optional[str] = None


class AcknowledgeRequest(BaseModel):
    acknowledged_by: str
    comment: Optional[str] = None


class ResolveRequest(BaseModel):
    resolved_by: str
    resolution: Optional[str] = None


# =============================================================================
# Rule Management
# =============================================================================

@router.post("/rules")
def create_rule(request: CreateAlertRequest, engine: MonitoringEngine = Depends(get_engine)):
    """
    Create a new alert rule.

    Operators: >, <, >=, <=, ==, != (equality within 0.001)
    metadata.aggregation / metadata.window_seconds evaluate a window
    aggregate instead of the latest sample.
    """
    payload = request.model_dump(mode="json", exclude_none=True)
    created_by = payload.pop("created_by", None)
    rule = engine.alerts.create_rule(payload, created_by=created_by)
    return {
        "message": "Alert rule created",
        "rule": rule.to_dict()
    }


@router.get("/rules")
def list_rules(engine: MonitoringEngine = Depends(get_engine)):
    rules = engine.alerts.get_rules()
    return {
        "count": len(rules),
        "rules": [r.to_dict() for r in rules]
    }


@router.get("/rules/{rule_id}")
def get_rule(rule_id: str, engine: MonitoringEngine = Depends(get_engine)):
    rule = engine.alerts.get_rule(rule_id)
    return {
        "rule": rule.to_dict(),
        "suppressed": engine.alerts.is_suppressed(rule_id)
    }


@router.put("/rules/{rule_id}")
def update_rule(
    rule_id: str,
    changes: Dict[str, Any],
    updated_by: Optional[str] = Query(default=None),
    engine: MonitoringEngine = Depends(get_engine)
):
    rule = engine.alerts.update_rule(rule_id, changes, updated_by=updated_by)
    return {"message": f"Rule {rule_id} updated", "rule": rule.to_dict()}


@router.delete("/rules/{rule_id}")
def delete_rule(rule_id: str, engine: MonitoringEngine = Depends(get_engine)):
    engine.alerts.delete_rule(rule_id)
    return {"message": f"Rule {rule_id} deleted"}


@router.post("/rules/{rule_id}/enable")
def enable_rule(rule_id: str, engine: MonitoringEngine = Depends(get_engine)):
    engine.alerts.toggle_rule(rule_id, True)
    return {"message": f"Rule {rule_id} enabled"}


@router.post("/rules/{rule_id}/disable")
def disable_rule(rule_id: str, engine: MonitoringEngine = Depends(get_engine)):
    engine.alerts.toggle_rule(rule_id, False)
    return {"message": f"Rule {rule_id} disabled"}


@router.post("/rules/{rule_id}/trigger")
def trigger_rule(rule_id: str, request: TriggerRequest, engine: MonitoringEngine = Depends(get_engine)):
    """Fire a rule directly. Within cooldown → triggered=false."""
    event = engine.alerts.trigger_alert(rule_id, request.value, request.context)
    return {
        "triggered": event is not None,
        "event": event.to_dict() if event else None
    }


# =============================================================================
# Suppression
# =============================================================================

@router.post("/rules/{rule_id}/suppress")
def suppress_rule(rule_id: str, request: SuppressRequest, engine: MonitoringEngine = Depends(get_engine)):
    suppression = engine.alerts.suppress_rule(
        rule_id, request.reason, request.duration_seconds, request.suppressed_by
    )
    return {"message": f"Rule {rule_id} suppressed", "suppression": suppression.to_dict()}


@router.delete("/rules/{rule_id}/suppress")
def unsuppress_rule(
    rule_id: str,
    unsuppressed_by: Optional[str] = Query(default=None),
    engine: MonitoringEngine = Depends(get_engine)
):
    engine.alerts.unsuppress_rule(rule_id, unsuppressed_by)
    return {"message": f"Rule {rule_id} unsuppressed"}


@router.get("/suppressions")
def list_suppressions(engine: MonitoringEngine = Depends(get_engine)):
    suppressions = engine.alerts.get_suppressed_rules()
    return {
        "count": len(suppressions),
        "suppressions": [s.to_dict() for s in suppressions]
    }


# =============================================================================
# Evaluation & Triggers
# =============================================================================

@router.post("/evaluate")
def evaluate(engine: MonitoringEngine = Depends(get_engine)):
    """Run one evaluation sweep over every rule"""
    results = engine.alerts.evaluate_all_rules()
    return {
        "evaluated": len(results),
        "triggered_count": sum(1 for r in results if r.triggered),
        "results": [r.to_dict() for r in results]
    }


@router.post("/manual")
def manual_alert(request: ManualAlertRequest, engine: MonitoringEngine = Depends(get_engine)):
    event = engine.alerts.manual_trigger_alert(
        request.alert_type, request.severity, request.message, request.context
    )
    return {"message": "Manual alert raised", "event": event.to_dict()}


# =============================================================================
# Queries
# =============================================================================

@router.get("/active")
def get_active(engine: MonitoringEngine = Depends(get_engine)):
    events = engine.alerts.get_active_alerts()
    return {
        "count": len(events),
        "alerts": [e.to_dict() for e in events]
    }


@router.get("/history")
def get_history(
    hours: float = Query(default=24, gt=0),
    alert_type: Optional[AlertType] = Query(default=None, alias="type"),
    severity: Optional[AlertSeverity] = Query(default=None),
    limit: int = Query(default=200, gt=0, le=1000),
    engine: MonitoringEngine = Depends(get_engine)
):
    """Recent events, newest first"""
    events = engine.alerts.get_alert_history(hours)
    if alert_type:
        events = [e for e in events if e.alert_type == alert_type]
    if severity:
        events = [e for e in events if e.severity == severity]
    events = events[:limit]
    return {
        "count": len(events),
        "alerts": [e.to_dict() for e in events]
    }


@router.get("/statistics")
def get_statistics(engine: MonitoringEngine = Depends(get_engine)):
    return engine.alerts.get_alert_statistics().to_dict()


@router.get("/trend")
def get_trend(days: int = Query(default=7, gt=0, le=90), engine: MonitoringEngine = Depends(get_engine)):
    return engine.alerts.get_alert_trend(days).to_dict()


@router.get("/efficiency")
def get_efficiency(engine: MonitoringEngine = Depends(get_engine)):
    return engine.alerts.get_alert_efficiency().to_dict()


@router.get("/stats")
def get_stats(engine: MonitoringEngine = Depends(get_engine)):
    """Get alert engine statistics"""
    stats = engine.alerts.stats()
    stats["notifications"] = engine.dispatcher.stats()
    return stats


# =============================================================================
# SSE Stream
# =============================================================================

@router.get("/stream")
async def stream_alerts(engine: MonitoringEngine = Depends(get_engine)):
    """
    Server-Sent Events stream for real-time alerts.

    Connect via EventSource in browser:
        const es = new EventSource('/api/alerts/stream');
        es.onmessage = (e) => console.log(JSON.parse(e.data));
    """
    channel = engine.alerts.subscribe()

    async def event_generator():
        yield sse(json.dumps({"type": "connected", "message": "Alert stream connected"}))
        idle = 0.0
        try:
            while True:
                try:
                    event = channel.get_nowait()
                except queue.Empty:
                    await asyncio.sleep(STREAM_POLL_SECONDS)
                    idle += STREAM_POLL_SECONDS
                    if idle >= KEEPALIVE_SECONDS:
                        idle = 0.0
                        yield ": keepalive\n\n"
                    continue
                idle = 0.0
                yield sse(json.dumps(event.to_dict()))
        finally:
            engine.alerts.unsubscribe(channel)

    return StreamingResponse(event_generator(), media_type="text/event-stream", headers=SSE_HEADERS)


# =============================================================================
# Event Lifecycle
# =============================================================================

@router.post("/{alert_id}/acknowledge")
def acknowledge(alert_id: str, request: AcknowledgeRequest, engine: MonitoringEngine = Depends(get_engine)):
    event = engine.alerts.acknowledge_alert(alert_id, request.acknowledged_by, request.comment)
    return {"message": f"Alert {alert_id} acknowledged", "event": event.to_dict()}


@router.post("/{alert_id}/resolve")
def resolve(alert_id: str, request: ResolveRequest, engine: MonitoringEngine = Depends(get_engine)):
    event = engine.alerts.resolve_alert(alert_id, request.resolved_by, request.resolution)
    return {"message": f"Alert {alert_id} resolved", "event": event.to_dict()}
