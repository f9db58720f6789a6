"""
Reports Module
Monitoring reports and metric exports.

Structure:
    reports/
    ├── models.py     → MonitoringReport, PerformanceReport, AlertReport
    ├── generator.py  → ReportGenerator
    └── export.py     → export_metrics (JSON / CSV)
"""

from .models import MonitoringReport, PerformanceReport, AlertReport
from .generator import ReportGenerator
from .export import export_metrics, EXPORT_FORMATS

__all__ = [
    "MonitoringReport",
    "PerformanceReport",
    "AlertReport",
    "ReportGenerator",
    "export_metrics",
    "EXPORT_FORMATS",
]
