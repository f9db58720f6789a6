"""
Reports & Export API
Monitoring reports and sample downloads.

Formats:
    - CSV: MetricName,Value,Timestamp,Tags
    - JSON (default): {"metrics": [...]}
"""

import io
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from core.engine import MonitoringEngine

from .deps import get_engine, seconds

router = APIRouter(prefix="/reports", tags=["Reports"])

DAY_SECONDS = 24 * 3600


@router.get("")
async def get_report(
    report_type: str = Query(default="GENERAL", alias="type"),
    range_seconds: float = Query(default=DAY_SECONDS, gt=0),
    engine: MonitoringEngine = Depends(get_engine)
):
    return engine.reports.generate_report(report_type, seconds(range_seconds)).to_dict()


@router.get("/performance")
async def get_performance_report(
    range_seconds: float = Query(default=DAY_SECONDS, gt=0),
    engine: MonitoringEngine = Depends(get_engine)
):
    return engine.reports.generate_performance_report(seconds(range_seconds)).to_dict()


@router.get("/alerts")
async def get_alert_report(
    severity: str = Query(default="ALL", description="ALL, HIGH, MEDIUM, ..."),
    range_seconds: float = Query(default=DAY_SECONDS, gt=0),
    engine: MonitoringEngine = Depends(get_engine)
):
    return engine.reports.generate_alert_report(severity, seconds(range_seconds)).to_dict()


@router.get("/export")
async def export_metrics(
    names: Optional[List[str]] = Query(default=None, alias="name", description="Metric names (all when omitted)"),
    range_seconds: float = Query(default=3600, gt=0),
    format: str = Query(default="json", description="json or csv"),
    engine: MonitoringEngine = Depends(get_engine)
):
    """
    Export samples as a file download.

    Returns:
        CSV or JSON file
    """
    content = engine.export_metrics(names, seconds(range_seconds), format)

    fmt = format.lower()
    media_type = "text/csv" if fmt == "csv" else "application/json"
    filename = f"metrics_{datetime.now().strftime('%Y%m%d_%H%M%S')}.{fmt}"

    return StreamingResponse(
        io.BytesIO(content.encode()),
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
