"""
Configuration settings for the scheduler webhook service.
"""
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Scheduler feature flags
    scheduler_enabled: bool = Field(
        default=False,
        description="Enable the scheduler and its HTTP endpoints"
    )
    webhook_enabled: bool = Field(
        default=False,
        description="Allow jobs to be triggered through the webhook endpoint"
    )
    webhook_token: Optional[str] = Field(
        default=None,
        description="Token required by the webhook endpoint (unset accepts any request)"
    )
    webhook_cors: bool = Field(
        default=False,
        description="Emit permissive CORS headers on scheduler responses"
    )
    health_enabled: bool = Field(
        default=True,
        description="Expose the health endpoint"
    )
    health_require_auth: bool = Field(
        default=False,
        description="Require the webhook token on the health endpoint"
    )

    # Job definitions
    jobs_file: str = Field(
        default="jobs.json",
        description="Path to the JSON file holding job definitions"
    )
    timezone: str = Field(
        default="UTC",
        description="IANA timezone used to evaluate cron schedules"
    )

    # Execution limits
    tick_seconds: int = Field(
        default=60,
        description="Seconds between scheduler ticks run by the worker"
    )
    worker_enabled: bool = Field(
        default=True,
        description="Start the background tick worker with the API server"
    )
    trigger_timeout_seconds: float = Field(
        default=30.0,
        description="How long a webhook waits for a forced run before answering"
    )
    default_job_timeout: int = Field(
        default=300,
        description="Timeout in seconds for jobs that do not declare one"
    )
    output_limit: int = Field(
        default=1000,
        description="Maximum number of characters of job output kept per run"
    )
    history_limit: int = Field(
        default=50,
        description="Number of run results retained per job"
    )

    # Application settings
    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional file to mirror log output into"
    )

    # API settings
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host"
    )
    api_port: int = Field(
        default=8000,
        description="API server port"
    )


# Create global settings instance
settings = Settings()
