"""
Services
Background work attached to the monitoring engine.
"""

from .scheduler import MonitoringScheduler, SchedulerStats

__all__ = ["MonitoringScheduler", "SchedulerStats"]
