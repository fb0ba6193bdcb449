"""
Pytest configuration and fixtures for the scheduler webhook service tests.
"""
import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from api.main import create_app
from core.config import Settings
from services.scheduler.cron_utils import CronSchedule
from services.scheduler.executor import ExecutionEngine
from services.scheduler.job_store import JobStore
from services.scheduler.models import Job, OverlapPolicy
from services.scheduler.scheduler import Scheduler


def make_job(
    job_id="backup",
    schedule="* * * * *",
    command="echo ok",
    action=None,
    enabled=True,
    timeout=5,
    overlap=OverlapPolicy.QUEUE,
):
    """Build a runtime Job without going through a jobs file."""
    return Job(
        id=job_id,
        schedule=CronSchedule(schedule),
        command=None if action else command,
        action=action,
        enabled=enabled,
        timeout=timeout,
        overlap=overlap,
    )


def make_settings(**overrides):
    """Settings isolated from any .env file."""
    values = {
        "scheduler_enabled": True,
        "webhook_enabled": True,
        "webhook_token": None,
        "worker_enabled": False,
        "trigger_timeout_seconds": 10.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def fixed_now():
    """A Monday, half past ten UTC."""
    return datetime(2024, 1, 15, 10, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def job_factory():
    return make_job


@pytest.fixture
def store():
    return JobStore([
        make_job("backup", "0 3 * * *", "echo backup"),
        make_job("cleanup", "*/5 * * * *", "echo cleanup"),
        make_job("report", "30 10 * * 1-5", "echo report"),
    ])


@pytest.fixture
def engine(store):
    return ExecutionEngine(store)


@pytest.fixture
def scheduler(store, engine):
    return Scheduler(store, engine)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def test_client(settings, scheduler):
    """Test client for an app wired to the in-memory scheduler."""
    app = create_app(settings=settings, scheduler=scheduler, start_worker=False)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def jobs_file(tmp_path):
    """A jobs file with one command job and one disabled job."""
    path = tmp_path / "jobs.json"
    path.write_text(json.dumps({
        "jobs": [
            {"id": "hello", "schedule": "* * * * *", "command": "echo hello", "timeout": 5},
            {"id": "nightly", "schedule": "0 2 * * *", "command": "echo nightly", "enabled": False},
        ]
    }))
    return path
