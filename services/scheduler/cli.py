#!/usr/bin/env python3
"""
Command-line interface for the scheduler.

Local commands load the jobs file and act on an in-process scheduler;
``trigger`` and ``health`` call a running service over HTTP.
"""

import argparse
import json
import sys
from typing import List, Optional

import requests

from core.config import Settings
from core.logging_config import configure_logging_from_settings

from .errors import SchedulerError
from .scheduler import Scheduler, build_scheduler

DEFAULT_SCHEDULER_URL = "http://localhost:8000"


def format_json(data):
    """Format JSON data for display."""
    return json.dumps(data, indent=2, default=str)


def make_request(method: str, endpoint: str, base_url: str = DEFAULT_SCHEDULER_URL,
                 token: Optional[str] = None, params: Optional[dict] = None):
    """Make an HTTP request to the scheduler service."""
    url = f"{base_url.rstrip('/')}{endpoint}"
    headers = {"Authorization": f"Bearer {token}"} if token else {}

    try:
        return requests.request(method, url, headers=headers, params=params, timeout=60)
    except requests.exceptions.ConnectionError:
        print(f"Error: Cannot connect to scheduler service at {base_url}", file=sys.stderr)
        return None
    except requests.exceptions.Timeout:
        print("Error: Request timed out", file=sys.stderr)
        return None


def _local_scheduler(args) -> Scheduler:
    overrides = {"scheduler_enabled": True}
    if args.jobs_file:
        overrides["jobs_file"] = args.jobs_file
    return build_scheduler(Settings(**overrides))


def command_list(args) -> int:
    scheduler = _local_scheduler(args)
    jobs = []
    for job in scheduler.list_jobs():
        data = job.to_dict()
        data["next_run"] = job.schedule.next_fire_time().isoformat()
        jobs.append(data)
    print(format_json({"jobs": jobs}))
    return 0


def command_preview(args) -> int:
    scheduler = _local_scheduler(args)
    job = scheduler.get_job(args.job_id)
    times = job.schedule.next_fire_times(args.count)
    print(format_json({
        "job_id": job.id,
        "schedule": job.schedule.expression,
        "enabled": job.enabled,
        "next_fire_times": [t.isoformat() for t in times],
    }))
    return 0


def command_tick(args) -> int:
    scheduler = _local_scheduler(args)
    results = scheduler.run_due_jobs()
    print(format_json({"results": [r.to_dict() for r in results]}))
    return 0 if all(r.success for r in results) else 1


def command_run(args) -> int:
    scheduler = _local_scheduler(args)
    result = scheduler.run_job(args.job_id)
    print(format_json(result.to_dict()))
    return 0 if result.success else 1


def command_trigger(args) -> int:
    params = {"job": args.job_id} if args.job_id else None
    response = make_request("POST", "/scheduler/webhook", args.url, args.token, params)
    if response is None:
        return 2
    print(format_json(response.json()))
    return 0 if response.ok else 1


def command_health(args) -> int:
    response = make_request("GET", "/scheduler/health", args.url, args.token)
    if response is None:
        return 2
    print(format_json(response.json()))
    return 0 if response.ok and response.json().get("status") == "healthy" else 1


def command_serve(args) -> int:
    import uvicorn

    from core.config import settings

    uvicorn.run(
        "api.main:create_app",
        factory=True,
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
    )
    return 0


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="scheduler", description="Cron scheduler CLI")
    parser.add_argument("--jobs-file", help="Jobs file (defaults to JOBS_FILE setting)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List jobs and their next run")

    p_preview = subparsers.add_parser("preview", help="Show upcoming fire times for a job")
    p_preview.add_argument("job_id")
    p_preview.add_argument("--count", type=int, default=5)

    subparsers.add_parser("tick", help="Run all jobs due now")

    p_run = subparsers.add_parser("run", help="Force-run one job")
    p_run.add_argument("job_id")

    for name, help_text in (("trigger", "Call the webhook of a running service"),
                            ("health", "Query the health endpoint of a running service")):
        p_remote = subparsers.add_parser(name, help=help_text)
        p_remote.add_argument("--url", default=DEFAULT_SCHEDULER_URL)
        p_remote.add_argument("--token")
        if name == "trigger":
            p_remote.add_argument("--job", dest="job_id")

    p_serve = subparsers.add_parser("serve", help="Run the webhook service")
    p_serve.add_argument("--host")
    p_serve.add_argument("--port", type=int)

    return parser.parse_args(argv)


COMMANDS = {
    "list": command_list,
    "preview": command_preview,
    "tick": command_tick,
    "run": command_run,
    "trigger": command_trigger,
    "health": command_health,
    "serve": command_serve,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging_from_settings(stream=sys.stderr)
    try:
        return COMMANDS[args.command](args)
    except SchedulerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
