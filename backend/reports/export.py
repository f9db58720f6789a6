"""
Metric Export
Serialize recorded samples for download.

Formats:
    - JSON: {"metrics": [{name, value, timestamp, tags}, ...]}
    - CSV:  MetricName,Value,Timestamp,Tags (tags as one JSON cell)

Samples are ascending by timestamp within each metric.
"""

import csv
import io
import json
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from core.errors import ValidationError
from core.models import MetricSample
from core.store import MetricStore

EXPORT_FORMATS = ("JSON", "CSV")
CSV_HEADER = ["MetricName", "Value", "Timestamp", "Tags"]


def collect_samples(
    store: MetricStore,
    metric_names: Optional[Iterable[str]],
    time_range: timedelta,
    now: Optional[datetime] = None
) -> List[MetricSample]:
    """Samples newer than now - time_range, grouped by metric"""
    cutoff = (now or datetime.now()) - time_range
    names = list(metric_names) if metric_names else store.names()
    samples = []
    for name in names:
        samples.extend(store.query(name, since=cutoff))
    return samples


def to_json(samples: List[MetricSample]) -> str:
    return json.dumps({"metrics": [s.to_dict() for s in samples]}, indent=2)


def to_csv(samples: List[MetricSample]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(CSV_HEADER)

    for s in samples:
        writer.writerow([s.name, s.value, s.timestamp.isoformat(), json.dumps(s.tags, sort_keys=True)])

    return output.getvalue()


def export_metrics(
    store: MetricStore,
    metric_names: Optional[Iterable[str]],
    time_range: timedelta,
    format: str = "JSON",
    now: Optional[datetime] = None
) -> str:
    """
    Export samples in the requested format.

    Raises:
        ValidationError: unknown format
    """
    fmt = (format or "").upper()
    if fmt not in EXPORT_FORMATS:
        raise ValidationError(f"Unsupported export format: {format}", detail={"supported": list(EXPORT_FORMATS)})

    samples = collect_samples(store, metric_names, time_range, now)
    if fmt == "CSV":
        return to_csv(samples)
    return to_json(samples)
