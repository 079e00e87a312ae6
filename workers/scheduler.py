"""Interval scheduler for the periodic reconciliation pass.

One job, first run at start, then every interval. A pass that is still
running when the next tick fires is not overlapped; the tick is dropped.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from core.observability.logging import get_logger
from core.observability.metrics import get_metrics
from reconciliation.engine import MaterialSyncEngine
from reconciliation.models import SyncReport

logger = get_logger(__name__)

DEFAULT_INTERVAL_SECONDS = 30
JOB_ID = "material_sync"


class SyncScheduler:
    """Owns the periodic pass and its state.

    Usage:
        scheduler = SyncScheduler(engine, interval_seconds=30)
        scheduler.start()      # inside a running event loop
        ...
        scheduler.shutdown()
    """

    def __init__(self, engine: MaterialSyncEngine, interval_seconds: int = DEFAULT_INTERVAL_SECONDS):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.engine = engine
        self.interval_seconds = interval_seconds
        self.last_report: Optional[SyncReport] = None
        self.last_error: Optional[str] = None
        self._run_lock = asyncio.Lock()
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Schedule the pass with an immediate first run."""
        if self._scheduler is not None:
            logger.warning("Scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_once,
            IntervalTrigger(seconds=self.interval_seconds),
            id=JOB_ID,
            name="Reconcile material inventory",
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(f"Sync scheduler started (every {self.interval_seconds}s)")

    def shutdown(self) -> None:
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Sync scheduler stopped")

    async def run_once(self) -> Optional[SyncReport]:
        """Run one full pass unless one is already in progress.

        Errors are logged and recorded; the next tick starts from fresh state.
        """
        if self._run_lock.locked():
            logger.info("Previous sync pass still running, skipping this tick")
            return None

        metrics = get_metrics()
        async with self._run_lock:
            metrics.record_pass_started()
            try:
                report = await self.engine.sync_materials()
            except Exception as e:
                metrics.record_pass_failed()
                self.last_error = str(e)
                logger.error(f"Sync pass failed: {e}", exc_info=True)
                return None

            metrics.record_pass_completed(report.duration_ms)
            self.last_report = report
            self.last_error = None
            return report

    def status(self) -> Dict[str, Any]:
        next_run = None
        if self._scheduler is not None:
            job = self._scheduler.get_job(JOB_ID)
            if job is not None and job.next_run_time:
                next_run = job.next_run_time.isoformat()

        return {
            "running": self.running,
            "interval_seconds": self.interval_seconds,
            "next_run": next_run,
            "in_progress": self._run_lock.locked(),
            "last_error": self.last_error,
            "last_report": self.last_report.to_dict() if self.last_report else None,
        }
