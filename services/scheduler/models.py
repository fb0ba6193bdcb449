"""
Data models for the scheduler service.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .cron_utils import CronSchedule, validate_cron_expression


class OverlapPolicy(str, Enum):
    """What a scheduled run does when the same job is already running"""
    QUEUE = "queue"
    SKIP = "skip"


class ErrorKind(str, Enum):
    """Why a run failed"""
    NONE = "none"
    EXIT_CODE = "exit_code"
    TIMEOUT = "timeout"
    NOT_FOUND = "not_found"
    EXCEPTION = "exception"


class HealthStatus(str, Enum):
    """Scheduler liveness classification"""
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


class JobDefinition(BaseModel):
    """A job as declared in the jobs file."""

    id: str = Field(..., min_length=1, description="Unique identifier for the job")
    schedule: str = Field(..., description="Cron expression (minute hour day month weekday)")
    command: Optional[str] = Field(None, description="Shell command to run")
    action: Optional[str] = Field(None, description="Name of a registered Python action")
    enabled: bool = Field(True, description="Whether the job is picked up by scheduler ticks")
    timeout: Optional[int] = Field(None, gt=0, description="Timeout in seconds")
    overlap: OverlapPolicy = Field(OverlapPolicy.QUEUE, description="Policy for overlapping scheduled runs")
    working_dir: Optional[str] = Field(None, description="Working directory for commands")
    env: Dict[str, str] = Field(default_factory=dict, description="Extra environment for commands")
    description: Optional[str] = None

    @field_validator('schedule')
    @classmethod
    def validate_schedule(cls, v):
        """Validate cron expression format."""
        v = " ".join(v.split())
        if not validate_cron_expression(v):
            raise ValueError(f"Invalid cron expression: {v!r}")
        return v

    @model_validator(mode='after')
    def validate_target(self):
        """A job runs exactly one of a command or a registered action."""
        if bool(self.command) == bool(self.action):
            raise ValueError("Job must define exactly one of 'command' or 'action'")
        return self


@dataclass
class Job:
    """Runtime view of a job: its definition plus last-run bookkeeping.

    Bookkeeping fields are only written by ``JobStore.record_run`` while
    holding the job's state lock.
    """

    id: str
    schedule: CronSchedule
    command: Optional[str] = None
    action: Optional[str] = None
    enabled: bool = True
    timeout: int = 300
    overlap: OverlapPolicy = OverlapPolicy.QUEUE
    working_dir: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)
    description: Optional[str] = None

    last_run_at: Optional[datetime] = None
    last_success: Optional[bool] = None
    last_output: str = ""
    consecutive_failures: int = 0
    last_failure_at: Optional[datetime] = None

    @classmethod
    def from_definition(cls, definition: JobDefinition, timezone: str = "UTC",
                        default_timeout: int = 300) -> "Job":
        return cls(
            id=definition.id,
            schedule=CronSchedule(definition.schedule, timezone),
            command=definition.command,
            action=definition.action,
            enabled=definition.enabled,
            timeout=definition.timeout or default_timeout,
            overlap=definition.overlap,
            working_dir=definition.working_dir,
            env=dict(definition.env),
            description=definition.description,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "schedule": self.schedule.expression,
            "command": self.command,
            "action": self.action,
            "enabled": self.enabled,
            "timeout": self.timeout,
            "overlap": self.overlap.value,
            "last_run": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_success": self.last_success,
            "consecutive_failures": self.consecutive_failures,
            "last_failure": self.last_failure_at.isoformat() if self.last_failure_at else None,
        }


@dataclass(frozen=True)
class RunResult:
    """Outcome of one execution attempt."""

    job_id: str
    started_at: datetime
    finished_at: datetime
    success: bool
    forced: bool = False
    exit_code: Optional[int] = None
    output: str = ""
    error_kind: ErrorKind = ErrorKind.NONE
    error: Optional[str] = None

    @property
    def duration(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def timed_out(self) -> bool:
        return self.error_kind == ErrorKind.TIMEOUT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration": round(self.duration, 3),
            "success": self.success,
            "forced": self.forced,
            "exit_code": self.exit_code,
            "output": self.output,
            "error_kind": self.error_kind.value,
            "error": self.error,
        }


class HealthSnapshot(BaseModel):
    """Derived summary of scheduler liveness; recomputed on every request."""

    status: HealthStatus
    last_run: Optional[str] = Field(None, description="ISO timestamp of the most recent run")
    last_run_age: Optional[int] = Field(None, description="Seconds since the most recent run")
    scheduled_jobs: int = 0
    failed_jobs_24h: int = 0
    queue_size: int = 0
    failed_job_ids: List[str] = Field(default_factory=list)
