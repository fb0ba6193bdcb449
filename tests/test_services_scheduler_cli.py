"""
Tests for the scheduler command-line interface.
"""
import json
from unittest.mock import Mock, patch

import pytest
import requests

from services.scheduler.cli import main


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("services.scheduler.cli.configure_logging_from_settings"):
        yield


class TestLocalCommands:
    """Commands that act on an in-process scheduler."""

    def test_list(self, jobs_file, capsys):
        assert main(["--jobs-file", str(jobs_file), "list"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert [job["id"] for job in data["jobs"]] == ["hello", "nightly"]
        assert "next_run" in data["jobs"][0]

    def test_preview(self, jobs_file, capsys):
        assert main(["--jobs-file", str(jobs_file), "preview", "nightly", "--count", "3"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["enabled"] is False
        assert len(data["next_fire_times"]) == 3

    def test_run(self, jobs_file, capsys):
        assert main(["--jobs-file", str(jobs_file), "run", "hello"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["success"] is True
        assert data["forced"] is True
        assert data["output"].strip() == "hello"

    def test_unknown_job(self, jobs_file, capsys):
        assert main(["--jobs-file", str(jobs_file), "run", "ghost"]) == 2
        assert "Job not found: ghost" in capsys.readouterr().err


class TestRemoteCommands:
    """Commands that call a running service."""

    @patch("services.scheduler.cli.requests.request")
    def test_trigger_sends_bearer_token(self, mock_request, capsys):
        mock_request.return_value = Mock(ok=True, json=Mock(return_value={"success": True}))

        assert main(["trigger", "--url", "http://svc:8000/", "--token", "abc", "--job", "backup"]) == 0

        args, kwargs = mock_request.call_args
        assert args == ("POST", "http://svc:8000/scheduler/webhook")
        assert kwargs["headers"] == {"Authorization": "Bearer abc"}
        assert kwargs["params"] == {"job": "backup"}

    @patch("services.scheduler.cli.requests.request")
    def test_health_not_healthy(self, mock_request, capsys):
        mock_request.return_value = Mock(ok=True, json=Mock(return_value={"status": "warning"}))
        assert main(["health"]) == 1

    @patch("services.scheduler.cli.requests.request")
    def test_connection_error(self, mock_request, capsys):
        mock_request.side_effect = requests.exceptions.ConnectionError()
        assert main(["health", "--url", "http://nowhere:1"]) == 2
        assert "Cannot connect" in capsys.readouterr().err


class TestServe:
    """The serve command starts uvicorn with the app factory."""

    @patch("uvicorn.run")
    def test_serve(self, mock_run):
        assert main(["serve", "--port", "9001"]) == 0
        args, kwargs = mock_run.call_args
        assert args == ("api.main:create_app",)
        assert kwargs["factory"] is True
        assert kwargs["port"] == 9001
