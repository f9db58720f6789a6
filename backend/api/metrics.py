"""
Metrics API
Ingestion, listing, raw samples and window aggregation.

Endpoints:
    POST /api/metrics                       → Record one sample
    POST /api/metrics/batch                 → Record a batch
    POST /api/metrics/performance           → Record performance.* map
    POST /api/metrics/system                → Record system.* map
    POST /api/metrics/upload/csv            → Record samples from a CSV file
    GET  /api/metrics                       → Available metric names
    POST /api/metrics/aggregate             → Aggregate several metrics
    GET  /api/metrics/{name}/metadata       → Metadata (default created lazily)
    PUT  /api/metrics/{name}/metadata       → Register metadata
    GET  /api/metrics/{name}/samples        → Raw samples
    GET  /api/metrics/{name}/aggregate      → One window aggregate
    GET  /api/metrics/{name}/stream         → SSE sliding-window aggregates

Ingestion handlers are plain `def` (threadpool): recording may evaluate
rules and persist samples synchronously.
"""

import json
from datetime import datetime
from io import StringIO
from typing import Any, Dict, List, Optional

import pandas as pd
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from core.engine import MonitoringEngine
from core.models import IngestionResult, MetricBatch, MetricMetadata

from .deps import SSE_HEADERS, get_engine, seconds, sse

router = APIRouter(prefix="/metrics", tags=["Metrics"])


# =============================================================================
# Request Models
# =============================================================================

class RecordMetricRequest(BaseModel):
    """Request body for recording one sample"""
    name: str
    value: float
    timestamp: Optional[datetime] = None
    tags: Dict[str, str] = Field(default_factory=dict)

    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "cpu",
                "value": 85.5,
                "tags": {"host": "web-1"}
            }
        }
    }


class AggregateRequest(BaseModel):
    names: List[str]
    window_seconds: float = Field(default=60, gt=0)
    aggregation_type: str = "AVG"


class MetadataRequest(BaseModel):
    description: str = "System monitoring metric"
    unit: str = "count"
    metric_type: str = "GAUGE"
    tags: Dict[str, str] = Field(default_factory=lambda: {"source": "system"})


# =============================================================================
# Ingestion
# =============================================================================

@router.post("")
def record_metric(request: RecordMetricRequest, engine: MonitoringEngine = Depends(get_engine)):
    sample = engine.record_metric(request.name, request.value, request.timestamp, request.tags)
    return {"message": "Metric recorded", "sample": sample.to_dict()}


@router.post("/batch", response_model=IngestionResult)
def record_batch(batch: MetricBatch, engine: MonitoringEngine = Depends(get_engine)):
    return engine.record_metrics(batch.samples)


@router.post("/performance", response_model=IngestionResult)
def record_performance(values: Dict[str, Any], engine: MonitoringEngine = Depends(get_engine)):
    """Keys become performance.<key>; non-numeric values are skipped"""
    return engine.record_performance_metrics(values)


@router.post("/system", response_model=IngestionResult)
def record_system(values: Dict[str, Any], engine: MonitoringEngine = Depends(get_engine)):
    """Keys become system.<key>; non-numeric values are skipped"""
    return engine.record_system_metrics(values)


@router.post("/upload/csv", response_model=IngestionResult)
def upload_csv(
    file: UploadFile = File(...),
    metric: Optional[str] = Query(default=None, description="Metric name when the CSV has no name column"),
    engine: MonitoringEngine = Depends(get_engine)
):
    """
    CSV columns: name (or metric), value, timestamp (optional), tags (optional JSON).
    """
    content = file.file.read()
    try:
        df = pd.read_csv(StringIO(content.decode("utf-8")))
    except (UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise HTTPException(400, f"Unreadable CSV: {e}")
    df.columns = df.columns.str.lower().str.strip()

    if "metricname" in df.columns and "name" not in df.columns:
        df = df.rename(columns={"metricname": "name"})
    if "value" not in df.columns:
        raise HTTPException(400, "CSV must have a 'value' column")
    if "name" not in df.columns and "metric" not in df.columns and not metric:
        raise HTTPException(400, "CSV must have a 'name' column or a metric query parameter")

    return engine.record_metrics(_csv_records(df, metric))


def _csv_records(df: pd.DataFrame, metric: Optional[str]) -> List[Dict[str, Any]]:
    records = []
    for _, row in df.iterrows():
        # numpy scalars → python values
        record = {k: (v.item() if hasattr(v, "item") else v) for k, v in row.items() if not pd.isna(v)}
        if metric and "name" not in record and "metric" not in record:
            record["name"] = metric
        tags = record.get("tags")
        if isinstance(tags, str):
            try:
                record["tags"] = json.loads(tags)
            except json.JSONDecodeError:
                record["tags"] = {}
        records.append(record)
    return records


# =============================================================================
# Queries
# =============================================================================

@router.get("")
async def list_metrics(engine: MonitoringEngine = Depends(get_engine)):
    names = engine.get_available_metrics()
    return {"count": len(names), "metrics": names}


@router.post("/aggregate")
async def aggregate_multiple(request: AggregateRequest, engine: MonitoringEngine = Depends(get_engine)):
    results = engine.aggregator.aggregate_multiple(
        request.names, seconds(request.window_seconds), request.aggregation_type
    )
    return {"count": len(results), "results": [r.to_dict() for r in results]}


@router.get("/{name}/metadata")
async def get_metadata(name: str, engine: MonitoringEngine = Depends(get_engine)):
    return engine.get_metric_metadata(name).model_dump()


@router.put("/{name}/metadata")
async def register_metadata(name: str, request: MetadataRequest, engine: MonitoringEngine = Depends(get_engine)):
    metadata = engine.register_metric_metadata(MetricMetadata(name=name, **request.model_dump()))
    return metadata.model_dump()


@router.get("/{name}/samples")
async def get_samples(
    name: str,
    lookback_seconds: Optional[float] = Query(default=None, gt=0),
    limit: int = Query(default=1000, gt=0, le=10000),
    engine: MonitoringEngine = Depends(get_engine)
):
    """Most recent samples, oldest first"""
    lookback = seconds(lookback_seconds) if lookback_seconds else None
    samples = engine.get_samples(name, lookback)[-limit:]
    return {"metric_name": name, "count": len(samples), "samples": [s.to_dict() for s in samples]}


@router.get("/{name}/aggregate")
async def aggregate(
    name: str,
    window_seconds: float = Query(default=60, gt=0),
    aggregation_type: str = Query(default="AVG", alias="type"),
    engine: MonitoringEngine = Depends(get_engine)
):
    """Empty window → result is null"""
    result = engine.aggregator.aggregate_window(name, seconds(window_seconds), aggregation_type)
    return {"metric_name": name, "result": result.to_dict() if result else None}


@router.get("/{name}/stream")
async def stream_aggregates(
    name: str,
    window_seconds: float = Query(default=60, gt=0),
    slide_seconds: float = Query(default=5, gt=0),
    aggregation_type: str = Query(default="AVG", alias="type"),
    engine: MonitoringEngine = Depends(get_engine)
):
    """
    Server-Sent Events stream of sliding-window aggregates.

    Windows with no samples emit nothing.
    """
    async def event_generator():
        yield sse(json.dumps({"type": "connected", "metric_name": name}))
        stream = engine.aggregator.aggregate_sliding_window(
            name, seconds(window_seconds), seconds(slide_seconds), aggregation_type
        )
        try:
            async for result in stream:
                yield sse(json.dumps(result.to_dict()))
        finally:
            await stream.aclose()

    return StreamingResponse(event_generator(), media_type="text/event-stream", headers=SSE_HEADERS)
