"""
Daily scheduler for the analysis fan-out.

A single daemon thread sleeps until the configured UTC time of day, sends a
``daily-analysis-trigger`` job and drains the queue. Work happens inside
the queue handlers; this loop only decides *when*.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Any

from gardooner.utils.time import to_iso, utc_now
from gardooner.workers.daily_analysis import TRIGGER_JOB
from gardooner.workers.job_queue import InProcessJobQueue

logger = logging.getLogger(__name__)


def next_daily_run(time_of_day: str, now: datetime | None = None) -> datetime:
    """Next occurrence of ``HH:MM`` (UTC) strictly after *now*."""
    now = now or utc_now()
    hour, minute = map(int, time_of_day.split(":"))

    next_run = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return next_run


class AnalysisScheduler:
    """Fires the daily analysis trigger once a day at ``time_of_day`` UTC."""

    def __init__(self, queue: InProcessJobQueue, time_of_day: str = "06:00", *, check_interval_seconds: float = 30.0):
        self._queue = queue
        self._time_of_day = time_of_day
        self._check_interval = float(check_interval_seconds)

        self._next_run: datetime | None = None
        self._last_run: datetime | None = None
        self._run_count = 0

        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._run_lock = threading.Lock()

    # ==================== Lifecycle ====================

    def start(self) -> None:
        """Start the scheduler background thread."""
        if self.is_running():
            logger.warning("Scheduler already running")
            return

        self._stop_event.clear()
        self._next_run = next_daily_run(self._time_of_day)
        self._thread = threading.Thread(target=self._run_loop, daemon=True, name="AnalysisScheduler")
        self._thread.start()
        logger.info("AnalysisScheduler started; next run at %s", to_iso(self._next_run))

    def stop(self, wait: bool = True, timeout: float = 5.0) -> None:
        if not self.is_running():
            return
        self._stop_event.set()
        if wait and self._thread:
            self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("AnalysisScheduler stopped")

    def shutdown(self, wait: bool = True, timeout: float = 5.0) -> None:
        """Alias for stop()."""
        self.stop(wait=wait, timeout=timeout)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ==================== Execution ====================

    def run_now(self) -> int:
        """Send a trigger job and drain the queue synchronously; returns batches dispatched."""
        with self._run_lock:
            started = utc_now()
            self._queue.send(TRIGGER_JOB)
            dispatched = self._queue.drain()
            self._last_run = started
            self._run_count += 1

        failed = len(self._queue.failed)
        logger.info(
            "Daily analysis pass finished in %.1fs (%d batch(es), %d failed job(s) so far)",
            (utc_now() - started).total_seconds(),
            dispatched,
            failed,
        )
        return dispatched

    def _run_loop(self) -> None:
        logger.debug("Scheduler loop started")

        while not self._stop_event.is_set():
            now = utc_now()
            if self._next_run is not None and now >= self._next_run:
                self._next_run = next_daily_run(self._time_of_day, now)
                try:
                    self.run_now()
                except Exception as e:
                    logger.error("Error in scheduled analysis run: %s", e, exc_info=True)
                logger.info("Next analysis run at %s", to_iso(self._next_run))
            self._stop_event.wait(self._check_interval)

        logger.debug("Scheduler loop ended")

    # ==================== Status ====================

    def get_status(self) -> dict[str, Any]:
        return {
            "running": self.is_running(),
            "time_of_day": self._time_of_day,
            "next_run": to_iso(self._next_run) if self._next_run else None,
            "last_run": to_iso(self._last_run) if self._last_run else None,
            "run_count": self._run_count,
            "pending_jobs": len(self._queue.pending()),
            "failed_jobs": len(self._queue.failed),
        }
