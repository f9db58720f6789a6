from typing import List

from fastapi import APIRouter, Depends, Query

from core.engine import MonitoringEngine

from .deps import get_engine, seconds

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/{name}/statistics")
async def get_statistics(
    name: str,
    lookback_seconds: float = Query(default=300, gt=0),
    engine: MonitoringEngine = Depends(get_engine)
):
    stats = engine.get_statistics(name, seconds(lookback_seconds))
    return {
        "lookback_seconds": lookback_seconds,
        "statistics": stats.to_dict()
    }


@router.get("/{name}/percentiles")
async def get_percentiles(
    name: str,
    p: List[float] = Query(default=[50, 90, 95, 99]),
    lookback_seconds: float = Query(default=300, gt=0),
    engine: MonitoringEngine = Depends(get_engine)
):
    values = engine.get_percentiles(name, p, seconds(lookback_seconds))
    return {
        "metric_name": name,
        "lookback_seconds": lookback_seconds,
        "percentiles": {str(k): v for k, v in values.items()}
    }


@router.get("/{name}/trend")
async def get_trend(
    name: str,
    lookback_seconds: float = Query(default=300, gt=0),
    engine: MonitoringEngine = Depends(get_engine)
):
    trend = engine.get_trend(name, seconds(lookback_seconds))
    return trend.to_dict()


@router.get("/{name}/anomalies")
async def get_anomalies(
    name: str,
    threshold: float = Query(default=2.0, gt=0),
    lookback_seconds: float = Query(default=300, gt=0),
    engine: MonitoringEngine = Depends(get_engine)
):
    anomalies = engine.get_anomalies(name, threshold, seconds(lookback_seconds))
    return {
        "metric_name": name,
        "threshold": threshold,
        "count": len(anomalies),
        "anomalies": [a.to_dict() for a in anomalies]
    }
