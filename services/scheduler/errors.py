"""
Error types raised by the scheduler service.

Job-level failures are not exceptions: the execution engine reports them as
``RunResult`` values. The errors below are reserved for store and
configuration integrity problems and for the HTTP boundary.
"""


class SchedulerError(Exception):
    """Base error for the scheduler service."""


class NotFoundError(SchedulerError):
    """Raised when a job id is not present in the job store."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class AuthorizationError(SchedulerError):
    """Raised when a webhook token does not match the configured one."""

    def __init__(self, message: str = "Invalid authorization token"):
        super().__init__(message)


class ExecutionError(SchedulerError):
    """A job action failed; translated into a failed RunResult by the engine."""


class InternalError(SchedulerError):
    """Unexpected failure during tick orchestration or health computation."""


class ConfigurationError(SchedulerError):
    """Invalid or inconsistent job definitions."""


class SchedulerDisabledError(SchedulerError):
    """Raised when work is requested from a disabled scheduler."""

    def __init__(self, message: str = "Modern scheduler is not enabled"):
        super().__init__(message)
