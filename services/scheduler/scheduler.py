"""
Scheduler core: runs due jobs on a tick, force-runs single jobs on demand
and reports health.

Runs of the same job id are serialized through the job's run lock in the
store, whether they come from a tick or from a forced trigger. Runs of
different jobs may proceed in parallel when called from different threads.
"""

import logging
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .cron_utils import ensure_aware_utc, is_due, minute_floor, utcnow
from .errors import NotFoundError, SchedulerDisabledError
from .executor import Action, ExecutionEngine
from .health import FAILURE_WINDOW, build_snapshot
from .job_store import JobStore, load_jobs
from .models import HealthSnapshot, Job, OverlapPolicy, RunResult

logger = logging.getLogger(__name__)

ONE_MINUTE = timedelta(minutes=1)
MAX_CATCHUP_MINUTES = 60


class Scheduler:
    """Orchestrates due-job evaluation and job execution."""

    def __init__(
        self,
        store: JobStore,
        engine: Optional[ExecutionEngine] = None,
        enabled: bool = True,
        clock: Callable[[], datetime] = utcnow
    ):
        self.store = store
        self.engine = engine or ExecutionEngine(store)
        self.enabled = enabled
        self.clock = clock

        self._last_tick: Optional[datetime] = None
        self._last_minute: Optional[datetime] = None
        self._tick_lock = threading.Lock()

    def _ensure_enabled(self):
        if not self.enabled:
            raise SchedulerDisabledError()

    def list_jobs(self) -> List[Job]:
        return self.store.list_jobs()

    def get_job(self, job_id: str) -> Job:
        return self.store.get_job(job_id)

    def run_due_jobs(self, now: Optional[datetime] = None) -> List[RunResult]:
        """
        Run every job that is due since the last evaluated minute, one after another.

        Each wall-clock minute is evaluated once. Minutes missed since the
        previous call (a slow tick, a late timer) are caught up, up to
        ``MAX_CATCHUP_MINUTES``; a job due in several of them runs once.
        A call for a minute that was already evaluated runs nothing. A
        failing job never stops the tick.
        """
        self._ensure_enabled()
        now = now or self.clock()
        minutes = self._claim_minutes(minute_floor(ensure_aware_utc(now)))
        results: List[RunResult] = []

        try:
            for job in self.store.list_jobs():
                try:
                    if not any(is_due(job, minute) for minute in minutes):
                        continue
                    result = self._execute(job, forced=False)
                except NotFoundError:
                    logger.warning(f"Job {job.id} was removed during the tick, skipping")
                    continue
                except Exception as e:
                    logger.error(f"Error processing job {job.id}: {e}")
                    continue
                if result is not None:
                    results.append(result)
        finally:
            with self._tick_lock:
                self._last_tick = now

        logger.info(f"Tick at {now.isoformat()} evaluated {len(minutes)} minute(s), ran {len(results)} job(s)")
        return results

    def _claim_minutes(self, minute: datetime) -> List[datetime]:
        """Mark every minute up to ``minute`` as evaluated and return the new ones."""
        with self._tick_lock:
            last = self._last_minute
            if last is not None and minute <= last:
                return []
            self._last_minute = minute

        if last is None:
            return [minute]

        gap = int((minute - last) / ONE_MINUTE)
        if gap > MAX_CATCHUP_MINUTES:
            logger.warning(f"Scheduler fell {gap} minutes behind, catching up the last {MAX_CATCHUP_MINUTES}")
            gap = MAX_CATCHUP_MINUTES
        return [minute - ONE_MINUTE * offset for offset in range(gap - 1, -1, -1)]

    def run_job(self, job_id: str) -> RunResult:
        """Force-run ``job_id`` regardless of its schedule or enabled flag."""
        self._ensure_enabled()
        job = self.store.get_job(job_id)
        return self._execute(job, forced=True)

    def _execute(self, job: Job, forced: bool) -> Optional[RunResult]:
        lock = self.store.run_lock(job.id)

        if forced or job.overlap == OverlapPolicy.QUEUE:
            lock.acquire()
        elif not lock.acquire(blocking=False):
            logger.info(f"Job {job.id} is still running, skipping scheduled run")
            return None

        try:
            result = self.engine.run(job, forced=forced)
        except BaseException:
            lock.release()
            raise

        straggler = self.engine.pop_straggler(job.id)
        if straggler is None:
            lock.release()
        else:
            # the job stays "running" until its abandoned thread really exits
            logger.warning(f"Job {job.id} ignored cancellation, holding its run lock until it exits")
            threading.Thread(
                target=self._release_after,
                args=(straggler, lock),
                name=f"release-{job.id}",
                daemon=True,
            ).start()
        return result

    @staticmethod
    def _release_after(thread: threading.Thread, lock: threading.Lock) -> None:
        thread.join()
        lock.release()

    def running_jobs(self) -> List[str]:
        """Ids of jobs with a run in progress."""
        return [job_id for job_id in self.store.job_ids() if self.store.is_running(job_id)]

    def last_run(self) -> Optional[datetime]:
        """Most recent scheduler activity: the last tick or the last finished run."""
        with self._tick_lock:
            last_tick = self._last_tick
        latest = self.store.latest_result()
        candidates = [t for t in (last_tick, latest.finished_at if latest else None) if t is not None]
        return max(candidates) if candidates else None

    def get_health(self, now: Optional[datetime] = None) -> HealthSnapshot:
        now = now or self.clock()
        return build_snapshot(
            now=now,
            last_run=self.last_run(),
            scheduled_jobs=len(self.store),
            failed_job_ids=self.store.failed_job_ids(now - FAILURE_WINDOW),
            queue_size=len(self.running_jobs()),
        )

    def reload(self, jobs: List[Job]) -> None:
        self.store.replace_jobs(jobs)


def build_scheduler(settings, actions: Optional[Dict[str, Action]] = None) -> Scheduler:
    """Construct a Scheduler from application settings.

    A missing jobs file yields an empty scheduler; an invalid one is an error.
    """
    jobs: List[Job] = []
    if Path(settings.jobs_file).exists():
        jobs = load_jobs(settings.jobs_file, settings.timezone, settings.default_job_timeout)
    elif settings.scheduler_enabled:
        logger.warning(f"Jobs file {settings.jobs_file} not found, starting with no jobs")

    store = JobStore(jobs, history_limit=settings.history_limit)
    engine = ExecutionEngine(store, output_limit=settings.output_limit, actions=actions)

    for job in jobs:
        if job.action and not engine.has_action(job.action):
            logger.warning(f"Job {job.id} references unregistered action {job.action}")

    return Scheduler(store, engine, enabled=settings.scheduler_enabled)
