"""
Job store for the scheduler service.

Holds the registry of job definitions together with their last-run bookkeeping
and a bounded per-job history of run results. Every job has its own locks;
there is no store-wide lock on the read or write path.
"""

import dataclasses
import json
import logging
import threading
from collections import deque
from contextlib import ExitStack
from datetime import datetime
from pathlib import Path
from typing import Deque, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from .errors import ConfigurationError, NotFoundError
from .models import Job, JobDefinition, RunResult

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class _JobEntry:
    """A job plus the locks guarding it."""

    __slots__ = ("job", "state_lock", "run_lock", "history")

    def __init__(self, job: Job, history_limit: int):
        self.job = job
        # guards bookkeeping fields and history together
        self.state_lock = threading.Lock()
        # held for the whole duration of a run (overlap protection)
        self.run_lock = threading.Lock()
        self.history: Deque[RunResult] = deque(maxlen=history_limit)


class JobStore:
    """Registry of schedulable jobs, in insertion order."""

    def __init__(self, jobs: Iterable[Job] = (), history_limit: int = DEFAULT_HISTORY_LIMIT):
        self.history_limit = history_limit
        self._entries: Dict[str, _JobEntry] = self._build_entries(jobs)

    def _build_entries(self, jobs: Iterable[Job]) -> Dict[str, _JobEntry]:
        entries: Dict[str, _JobEntry] = {}
        for job in jobs:
            if job.id in entries:
                raise ConfigurationError(f"Duplicate job id: {job.id}")
            entries[job.id] = _JobEntry(job, self.history_limit)
        return entries

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._entries

    def _entry(self, job_id: str) -> _JobEntry:
        try:
            return self._entries[job_id]
        except KeyError:
            raise NotFoundError(job_id) from None

    def _snapshot(self, entry: _JobEntry) -> Job:
        with entry.state_lock:
            return dataclasses.replace(entry.job, env=dict(entry.job.env))

    def list_jobs(self) -> List[Job]:
        """Consistent copies of every job, in insertion order."""
        return [self._snapshot(entry) for entry in list(self._entries.values())]

    def job_ids(self) -> List[str]:
        return list(self._entries)

    def get_job(self, job_id: str) -> Job:
        """Consistent copy of one job; raises NotFoundError for unknown ids."""
        return self._snapshot(self._entry(job_id))

    def run_lock(self, job_id: str) -> threading.Lock:
        """The lock that serializes runs of ``job_id``."""
        return self._entry(job_id).run_lock

    def is_running(self, job_id: str) -> bool:
        return self._entry(job_id).run_lock.locked()

    def record_run(self, result: RunResult) -> None:
        """Apply a finished run to the job's bookkeeping and history.

        Both updates happen under the job's state lock, so readers never see
        one without the other.
        """
        while True:
            entry = self._entry(result.job_id)
            with entry.state_lock:
                # a reload may have swapped the entry while we waited for the lock
                if self._entries.get(result.job_id) is not entry:
                    continue
                job = entry.job
                job.last_run_at = result.finished_at
                job.last_success = result.success
                job.last_output = result.output
                if result.success:
                    job.consecutive_failures = 0
                else:
                    job.consecutive_failures += 1
                    if job.last_failure_at is None or result.finished_at > job.last_failure_at:
                        job.last_failure_at = result.finished_at
                entry.history.append(result)
                return

    def history(self, job_id: str) -> List[RunResult]:
        """Run results for ``job_id``, oldest first."""
        entry = self._entry(job_id)
        with entry.state_lock:
            return list(entry.history)

    def recent_results(self, since: Optional[datetime] = None) -> List[RunResult]:
        """Run results across all jobs that finished at or after ``since``."""
        results: List[RunResult] = []
        for entry in list(self._entries.values()):
            with entry.state_lock:
                results.extend(
                    r for r in entry.history if since is None or r.finished_at >= since
                )
        results.sort(key=lambda r: r.finished_at)
        return results

    def latest_result(self) -> Optional[RunResult]:
        latest = None
        for entry in list(self._entries.values()):
            with entry.state_lock:
                if entry.history and (latest is None or entry.history[-1].finished_at > latest.finished_at):
                    latest = entry.history[-1]
        return latest

    def failed_job_ids(self, since: datetime) -> List[str]:
        """Ids of jobs with at least one failed run since ``since``.

        Uses the job's last failure time rather than the bounded history,
        so a failure is still counted after newer runs have pushed it out.
        """
        failed = []
        for job_id, entry in list(self._entries.items()):
            with entry.state_lock:
                last_failure = entry.job.last_failure_at
                if last_failure is not None and last_failure >= since:
                    failed.append(job_id)
        return failed

    def replace_jobs(self, jobs: Iterable[Job]) -> None:
        """Swap in a new set of job definitions.

        Jobs whose id survives the reload keep their bookkeeping, history
        and locks; jobs that disappear are dropped.
        """
        fresh = self._build_entries(jobs)
        current = self._entries
        survivors = [(entry, current[job_id]) for job_id, entry in fresh.items() if job_id in current]

        # Copy and swap under every surviving state lock so no record_run
        # lands in an entry that is about to be discarded.
        with ExitStack() as stack:
            for _, old in survivors:
                stack.enter_context(old.state_lock)
            for entry, old in survivors:
                entry.job.last_run_at = old.job.last_run_at
                entry.job.last_success = old.job.last_success
                entry.job.last_output = old.job.last_output
                entry.job.consecutive_failures = old.job.consecutive_failures
                entry.job.last_failure_at = old.job.last_failure_at
                entry.history.extend(old.history)
                entry.run_lock = old.run_lock
                entry.state_lock = old.state_lock
            self._entries = fresh
        logger.info(f"Job store reloaded with {len(fresh)} jobs")


def parse_job_definitions(payload: Union[dict, list]) -> List[JobDefinition]:
    """Validate a decoded jobs document (``{"jobs": [...]}`` or a bare list)."""
    if isinstance(payload, dict):
        payload = payload.get("jobs", [])
    if not isinstance(payload, list):
        raise ConfigurationError("Jobs document must be a list or contain a 'jobs' list")

    definitions = []
    for index, raw in enumerate(payload):
        try:
            definitions.append(JobDefinition.model_validate(raw))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid job at index {index}: {e}") from e
    return definitions


def load_jobs(
    path: Union[str, Path],
    timezone: str = "UTC",
    default_timeout: int = 300,
) -> List[Job]:
    """Read and validate the jobs file."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Jobs file not found: {path}") from None
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Jobs file is not valid JSON: {path}: {e}") from e

    definitions = parse_job_definitions(payload)
    try:
        jobs = [Job.from_definition(d, timezone, default_timeout) for d in definitions]
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
    logger.info(f"Loaded {len(jobs)} jobs from {path}")
    return jobs


def load_jobs_file(
    path: Union[str, Path],
    timezone: str = "UTC",
    default_timeout: int = 300,
    history_limit: int = DEFAULT_HISTORY_LIMIT,
) -> JobStore:
    """Build a JobStore from a JSON jobs file."""
    return JobStore(load_jobs(path, timezone, default_timeout), history_limit=history_limit)
