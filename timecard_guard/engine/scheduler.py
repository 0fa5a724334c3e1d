"""
Automatic scan scheduling.

Two APScheduler interval jobs run on the asyncio loop while auto-scan is
allowed:
- scan job every 60s (first run immediately), which dispatches a scan
- countdown job every 1s, which only moves the visible "next scan in" number

Auto-scan is allowed only while it is enabled, the operator is an admin with
a valid session, and the model has finished training. The single-scan
guarantee comes from the engine's `scanning` flag, not from the timer.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from timecard_guard.engine.constants import AUTO_SCAN_INTERVAL_SECONDS
from timecard_guard.engine.detector import AnomalyEngine
from timecard_guard.engine.types import ScanResult


logger = logging.getLogger(__name__)

SCAN_JOB_ID = "anomaly-scan"
COUNTDOWN_JOB_ID = "anomaly-scan-countdown"


class ScanScheduler:
    """
    Usage (inside a running event loop):
        scheduler = ScanScheduler(engine, interval_seconds=60)
        scheduler.start()                       # jobs added if allowed
        scheduler.set_auto_scan_enabled(False)  # both jobs removed
        await scheduler.trigger_scan()          # manual scan, countdown reset
        scheduler.shutdown()
    """

    def __init__(
        self,
        engine: AnomalyEngine,
        interval_seconds: int = AUTO_SCAN_INTERVAL_SECONDS,
        enabled: bool = True,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        if interval_seconds < 1:
            raise ValueError(f"interval_seconds must be >= 1, got {interval_seconds}")

        self.engine = engine
        self.interval_seconds = interval_seconds
        self.enabled = enabled
        self.next_scan_in = interval_seconds
        self._scheduler = scheduler or AsyncIOScheduler(timezone="UTC")

    # ------------------------------------------------------------------
    # Gating
    # ------------------------------------------------------------------

    def can_auto_scan(self) -> bool:
        session = self.engine.session
        return (
            self.enabled
            and session.is_admin
            and session.is_authenticated
            and self.engine.model_ready
        )

    @property
    def is_active(self) -> bool:
        return self._scheduler.get_job(SCAN_JOB_ID) is not None

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
        self.refresh()

    def refresh(self) -> None:
        """Add or remove the jobs so they match the gating conditions."""
        if self.can_auto_scan():
            if not self.is_active:
                self._add_jobs()
        elif self.is_active:
            self._remove_jobs()

    def set_auto_scan_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        logger.info(f"Auto-scan {'enabled' if enabled else 'disabled'}")
        self.refresh()

    def _add_jobs(self) -> None:
        self.next_scan_in = self.interval_seconds
        self._scheduler.add_job(
            self._countdown_job,
            trigger='interval',
            seconds=1,
            id=COUNTDOWN_JOB_ID,
            replace_existing=True,
        )
        self._scheduler.add_job(
            self._scan_job,
            trigger='interval',
            seconds=self.interval_seconds,
            id=SCAN_JOB_ID,
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info(f"Auto-scan scheduled every {self.interval_seconds}s")

    def _remove_jobs(self) -> None:
        for job_id in (SCAN_JOB_ID, COUNTDOWN_JOB_ID):
            if self._scheduler.get_job(job_id) is not None:
                self._scheduler.remove_job(job_id)
        self.next_scan_in = self.interval_seconds
        logger.info("Auto-scan stopped")

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def tick(self) -> int:
        """One countdown second; wraps back to the full interval."""
        if self.next_scan_in <= 1:
            self.next_scan_in = self.interval_seconds
        else:
            self.next_scan_in -= 1
        return self.next_scan_in

    async def _countdown_job(self) -> None:
        self.tick()

    async def _scan_job(self) -> None:
        self.next_scan_in = self.interval_seconds
        await self.engine.run_scan()

    async def trigger_scan(self) -> ScanResult:
        """Manual scan; resets the countdown like an automatic dispatch."""
        self.next_scan_in = self.interval_seconds
        return await self.engine.run_scan()

    def shutdown(self) -> None:
        """Stop both timers. A scan already running is left to finish."""
        if self.is_active:
            self._remove_jobs()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    def status(self) -> dict:
        return {
            "auto_scan_enabled": self.enabled,
            "auto_scan_active": self.is_active,
            "next_scan_in": self.next_scan_in,
            "interval_seconds": self.interval_seconds,
        }
