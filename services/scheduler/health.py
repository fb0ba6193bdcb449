"""
Health reporting for the scheduler.

The classification thresholds are matched on by external uptime monitors
and must not change: under 10 minutes is healthy, under an hour is a
warning, anything older is critical.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from .cron_utils import ensure_aware_utc
from .models import HealthSnapshot, HealthStatus

HEALTHY_MAX_AGE = 600
WARNING_MAX_AGE = 3600
FAILURE_WINDOW = timedelta(hours=24)


def classify(last_run_age: Optional[float]) -> HealthStatus:
    """Map the age of the most recent run, in seconds, to a status."""
    if last_run_age is None:
        return HealthStatus.UNKNOWN
    if last_run_age < HEALTHY_MAX_AGE:
        return HealthStatus.HEALTHY
    if last_run_age < WARNING_MAX_AGE:
        return HealthStatus.WARNING
    return HealthStatus.CRITICAL


def build_snapshot(
    now: datetime,
    last_run: Optional[datetime],
    scheduled_jobs: int,
    failed_job_ids: Iterable[str] = (),
    queue_size: int = 0,
) -> HealthSnapshot:
    """Assemble a HealthSnapshot; a pure function of its arguments."""
    last_run_age = None
    last_run_iso = None
    if last_run is not None:
        last_run = ensure_aware_utc(last_run)
        last_run_iso = last_run.isoformat()
        last_run_age = max(0, int((ensure_aware_utc(now) - last_run).total_seconds()))

    failed = list(failed_job_ids)
    return HealthSnapshot(
        status=classify(last_run_age),
        last_run=last_run_iso,
        last_run_age=last_run_age,
        scheduled_jobs=scheduled_jobs,
        failed_jobs_24h=len(failed),
        queue_size=queue_size,
        failed_job_ids=failed,
    )
