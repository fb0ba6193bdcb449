"""
Cron Scheduler Service

Runs cron-scheduled jobs, force-runs single jobs on demand and reports
scheduler health for the webhook endpoints.
"""

from .errors import (
    AuthorizationError,
    ConfigurationError,
    NotFoundError,
    SchedulerDisabledError,
    SchedulerError,
)
from .executor import ExecutionEngine
from .gateway import TriggerGateway
from .job_store import JobStore
from .models import HealthSnapshot, HealthStatus, Job, JobDefinition, RunResult
from .scheduler import Scheduler, build_scheduler
from .worker import SchedulerWorker

__all__ = [
    "AuthorizationError",
    "ConfigurationError",
    "ExecutionEngine",
    "HealthSnapshot",
    "HealthStatus",
    "Job",
    "JobDefinition",
    "JobStore",
    "NotFoundError",
    "RunResult",
    "Scheduler",
    "SchedulerDisabledError",
    "SchedulerError",
    "SchedulerWorker",
    "TriggerGateway",
    "build_scheduler",
]
