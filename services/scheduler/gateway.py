"""
Trigger gateway: the boundary between HTTP callers and the scheduler core.

Each operation returns a ``(payload, status_code)`` pair. The payload keys
and messages are consumed by existing monitoring integrations and are kept
stable.
"""

import hmac
import logging
import re
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Any, Dict, Mapping, Optional, Tuple

from .cron_utils import utcnow
from .errors import AuthorizationError, NotFoundError, SchedulerDisabledError
from .scheduler import Scheduler

logger = logging.getLogger(__name__)

Response = Tuple[Dict[str, Any], int]

BEARER_RE = re.compile(r'Bearer\s+(.+)$', re.IGNORECASE)
OUTPUT_LIMIT = 1000


def iso_timestamp() -> str:
    return utcnow().isoformat(timespec="seconds")


def extract_token(headers: Mapping[str, str], query: Mapping[str, str]) -> Optional[str]:
    """
    Find the caller's token.

    Looks at the ``Authorization: Bearer`` header first, then the
    ``X-Webhook-Token`` header, then the ``token`` query parameter.
    """
    lowered = {k.lower(): v for k, v in headers.items()}

    auth_header = lowered.get("authorization")
    if auth_header:
        match = BEARER_RE.search(auth_header.strip())
        if match:
            return match.group(1).strip()

    webhook_token = lowered.get("x-webhook-token")
    if webhook_token:
        return webhook_token

    return query.get("token")


class TriggerGateway:
    """Validates trigger and health requests and calls into the scheduler."""

    def __init__(self, scheduler: Scheduler, settings, max_workers: int = 4):
        self.scheduler = scheduler
        self.settings = settings
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="trigger")

    def close(self):
        self._pool.shutdown(wait=False)

    def authorize(self, provided: Optional[str]) -> None:
        """Raise AuthorizationError unless ``provided`` matches the configured token."""
        configured = self.settings.webhook_token
        if not configured:
            return
        if provided is None or not hmac.compare_digest(
            provided.encode("utf-8"), configured.encode("utf-8")
        ):
            raise AuthorizationError()

    def trigger(self, method: str, job_id: Optional[str], token: Optional[str]) -> Response:
        """Handle a webhook call: force-run ``job_id`` or run all due jobs."""
        if not self.settings.scheduler_enabled:
            return {"error": "Modern scheduler is not enabled"}, 404
        if not self.settings.webhook_enabled:
            return {"error": "Webhook triggers are disabled"}, 403
        if method.upper() != "POST":
            return {"error": "Method not allowed"}, 405

        try:
            self.authorize(token)
        except AuthorizationError as e:
            logger.warning("Rejected webhook call with an invalid token")
            return {"error": str(e)}, 401

        try:
            if job_id:
                return self._trigger_job(job_id)
            return self._trigger_due()
        except SchedulerDisabledError as e:
            return {"error": str(e)}, 404
        except Exception as e:
            logger.error(f"Scheduler execution failed: {e}")
            return {
                "success": False,
                "error": "Scheduler execution failed",
                "message": str(e)
            }, 500

    def _trigger_job(self, job_id: str) -> Response:
        if job_id not in self.scheduler.store:
            return {"success": False, "message": f"Job not found: {job_id}"}, 400

        future = self._pool.submit(self.scheduler.run_job, job_id)
        try:
            result = future.result(timeout=self.settings.trigger_timeout_seconds)
        except NotFoundError as e:
            return {"success": False, "message": str(e)}, 400
        except FutureTimeoutError:
            logger.info(f"Job {job_id} outlived the webhook timeout, still running")
            return {
                "success": True,
                "message": "Job still running",
                "job_id": job_id,
                "forced": True,
                "status": "running",
            }, 202

        payload = {
            "success": result.success,
            "message": "Job executed successfully" if result.success else "Job execution failed",
            "job_id": job_id,
            "forced": True,
            "output": result.output[:OUTPUT_LIMIT],
            "status": "completed",
            "duration": round(result.duration, 3),
        }
        if not result.success:
            payload["error"] = result.error
        return payload, 200 if result.success else 400

    def _trigger_due(self) -> Response:
        results = self.scheduler.run_due_jobs()
        return {
            "success": True,
            "message": "Scheduler executed (due jobs only)",
            "timestamp": iso_timestamp(),
            "jobs_run": len(results),
            "jobs_failed": sum(1 for r in results if not r.success),
        }, 200

    def health(self, token: Optional[str] = None) -> Response:
        """Build the health payload."""
        if not self.settings.scheduler_enabled:
            return {"error": "Modern scheduler is not enabled"}, 404
        if not self.settings.health_enabled:
            return {"error": "Health check is disabled"}, 403

        if self.settings.health_require_auth:
            try:
                self.authorize(token)
            except AuthorizationError as e:
                return {"error": str(e)}, 401

        try:
            snapshot = self.scheduler.get_health()
        except Exception as e:
            logger.error(f"Failed to get health status: {e}")
            return {
                "status": "error",
                "message": "Failed to get health status",
                "error": str(e)
            }, 500

        return {
            "status": snapshot.status.value,
            "last_run": snapshot.last_run,
            "last_run_age": snapshot.last_run_age,
            "scheduled_jobs": snapshot.scheduled_jobs,
            "failed_jobs_24h": snapshot.failed_jobs_24h,
            "queue_size": snapshot.queue_size,
            "modern_features": self.settings.scheduler_enabled,
            "webhook_enabled": self.settings.webhook_enabled,
            "health_check_enabled": True,
            "timestamp": iso_timestamp(),
        }, 200
