"""
Monitoring Scheduler
Runs periodic engine jobs on a background event loop.

Jobs:
    evaluation → engine.alerts.evaluate_all_rules()
    cleanup    → engine.cleanup_expired_data()

Usage:
    scheduler = MonitoringScheduler(engine, evaluation_interval=30, cleanup_interval=300)
    scheduler.start()
    # Jobs run every interval until...
    scheduler.stop()
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class SchedulerStats:
    """Scheduler statistics"""
    is_running: bool = False
    evaluation_runs: int = 0
    cleanup_runs: int = 0
    samples_cleaned: int = 0
    errors: int = 0
    started_at: Optional[datetime] = None
    last_evaluation_at: Optional[datetime] = None
    last_cleanup_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_running": self.is_running,
            "evaluation_runs": self.evaluation_runs,
            "cleanup_runs": self.cleanup_runs,
            "samples_cleaned": self.samples_cleaned,
            "errors": self.errors,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "last_evaluation_at": self.last_evaluation_at.isoformat() if self.last_evaluation_at else None,
            "last_cleanup_at": self.last_cleanup_at.isoformat() if self.last_cleanup_at else None,
        }


class MonitoringScheduler:
    """
    Periodic background jobs.

    An asyncio loop runs in a daemon thread; each job sleeps its interval
    and then runs in the loop's default executor, so a slow sweep never
    blocks the other job. Job failures are logged and counted.
    """

    def __init__(self, engine, evaluation_interval: float = 30.0, cleanup_interval: float = 300.0):
        self._engine = engine
        self.evaluation_interval = evaluation_interval
        self.cleanup_interval = cleanup_interval
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: List[asyncio.Task] = []
        self._ready = threading.Event()
        self._lock = threading.Lock()
        self._stats = SchedulerStats()

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> Dict[str, Any]:
        """Start the background loop"""
        if self._running:
            return {"status": "already_running"}

        self._running = True
        self._ready.clear()
        self._stats = SchedulerStats(is_running=True, started_at=datetime.now())
        self._thread = threading.Thread(target=self._run_async_loop, name="monitoring-scheduler", daemon=True)
        self._thread.start()
        self._ready.wait(timeout=5.0)

        logger.info(
            "Scheduler started: evaluation every %ss, cleanup every %ss",
            self.evaluation_interval, self.cleanup_interval
        )
        return {"status": "started"}

    def stop(self, timeout: float = 5.0) -> Dict[str, Any]:
        """Cancel jobs and join the thread"""
        if not self._running:
            return {"status": "not_running"}

        loop = self._loop
        if loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(self._cancel_tasks)
        if self._thread is not None:
            self._thread.join(timeout)

        self._running = False
        self._stats.is_running = False
        logger.info("Scheduler stopped")
        return {"status": "stopped", **self._stats.to_dict()}

    def _cancel_tasks(self) -> None:
        for task in self._tasks:
            task.cancel()

    def _run_async_loop(self) -> None:
        """Run async event loop in background thread"""
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)

        try:
            self._loop.run_until_complete(self._run_jobs())
            self._loop.run_until_complete(self._loop.shutdown_default_executor())
        except Exception as e:
            self._stats.errors += 1
            logger.error("Scheduler loop crashed: %s", e)
        finally:
            self._loop.close()
            self._loop = None
            self._running = False
            self._stats.is_running = False

    async def _run_jobs(self) -> None:
        self._tasks = [
            asyncio.ensure_future(self._periodic("evaluation", self.evaluation_interval, self.run_evaluation)),
            asyncio.ensure_future(self._periodic("cleanup", self.cleanup_interval, self.run_cleanup)),
        ]
        self._ready.set()
        await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _periodic(self, name: str, interval: float, job: Callable[[], Any]) -> None:
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(interval)
            try:
                await loop.run_in_executor(None, job)
            except Exception as e:
                with self._lock:
                    self._stats.errors += 1
                logger.error("Scheduled %s job failed: %s", name, e)

    # =========================================================================
    # Jobs (also callable directly)
    # =========================================================================

    def run_evaluation(self) -> int:
        """One rule sweep. Returns number of triggered rules."""
        results = self._engine.alerts.evaluate_all_rules()
        triggered = sum(1 for r in results if r.triggered)
        with self._lock:
            self._stats.evaluation_runs += 1
            self._stats.last_evaluation_at = datetime.now()
        logger.debug("Scheduled evaluation: %d rules, %d triggered", len(results), triggered)
        return triggered

    def run_cleanup(self) -> int:
        """One retention sweep. Returns number of samples removed."""
        removed = self._engine.cleanup_expired_data()
        with self._lock:
            self._stats.cleanup_runs += 1
            self._stats.samples_cleaned += removed
            self._stats.last_cleanup_at = datetime.now()
        return removed

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                **self._stats.to_dict(),
                "evaluation_interval": self.evaluation_interval,
                "cleanup_interval": self.cleanup_interval,
            }
