"""
Scheduler worker that ticks the scheduler once per minute on a background thread.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Optional

from .cron_utils import minute_floor, utcnow
from .scheduler import Scheduler

logger = logging.getLogger(__name__)


class SchedulerWorker:
    """Background timer driving ``Scheduler.run_due_jobs``."""

    def __init__(self, scheduler: Scheduler, tick_seconds: float = 60):
        """
        Initialize the scheduler worker.

        Args:
            scheduler: Scheduler to tick
            tick_seconds: Upper bound on the time between wake-ups
        """
        self.scheduler = scheduler
        self.tick_seconds = tick_seconds

        self.running = False
        self.worker_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._last_minute: Optional[datetime] = None
        self.ticks = 0

    def start(self):
        """Start the worker thread."""
        if self.running:
            logger.warning("Worker is already running")
            return

        self.running = True
        self._stop_event.clear()
        self.worker_thread = threading.Thread(target=self._worker_loop, name="scheduler-worker", daemon=True)
        self.worker_thread.start()
        logger.info("Scheduler worker started")

    def stop(self, timeout: float = 5.0):
        """Stop the worker thread."""
        if not self.running:
            logger.warning("Worker is not running")
            return

        self.running = False
        self._stop_event.set()
        if self.worker_thread:
            self.worker_thread.join(timeout=timeout)
        logger.info("Scheduler worker stopped")

    def _worker_loop(self):
        logger.info("Starting scheduler worker loop")

        while not self._stop_event.is_set():
            self.tick_once()
            self._stop_event.wait(self._seconds_until_next_minute())

        logger.info("Scheduler worker loop ended")

    def tick_once(self, now: Optional[datetime] = None) -> bool:
        """
        Run the scheduler for the current minute unless it already ran.

        Returns:
            True if a tick was performed
        """
        minute = minute_floor(now or self.scheduler.clock())
        if minute == self._last_minute:
            return False
        self._last_minute = minute

        try:
            self.scheduler.run_due_jobs(minute)
            self.ticks += 1
        except Exception as e:
            logger.error(f"Error processing tick: {e}")
        return True

    def _seconds_until_next_minute(self) -> float:
        now = utcnow()
        next_minute = minute_floor(now) + timedelta(minutes=1)
        return max(0.5, min(self.tick_seconds, (next_minute - now).total_seconds() + 0.1))

    def get_status(self) -> dict:
        """Get the current status of the worker."""
        return {
            "running": self.running,
            "tick_seconds": self.tick_seconds,
            "ticks": self.ticks,
            "last_tick_minute": self._last_minute.isoformat() if self._last_minute else None,
        }
