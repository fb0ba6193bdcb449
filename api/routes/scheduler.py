"""
Scheduler routes: webhook trigger and health check.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from core.logging_config import get_logger
from services.scheduler.gateway import TriggerGateway, extract_token

logger = get_logger(__name__)
router = APIRouter(prefix="/scheduler", tags=["scheduler"])

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Authorization, X-Webhook-Token, Content-Type",
}


def response_headers(settings) -> Dict[str, str]:
    headers = {"Cache-Control": "no-cache, no-store, must-revalidate"}
    if settings.webhook_cors:
        headers.update(CORS_HEADERS)
    return headers


def scheduler_response(request: Request, payload: Dict[str, Any], status_code: int = 200) -> JSONResponse:
    """JSON response with the scheduler's cache and CORS headers."""
    return JSONResponse(
        content=payload,
        status_code=status_code,
        headers=response_headers(request.app.state.settings)
    )


def get_gateway(request: Request) -> TriggerGateway:
    return request.app.state.gateway


@router.api_route("/webhook", methods=ALL_METHODS)
def webhook(request: Request, job: Optional[str] = None):
    """Trigger the scheduler: run one job when ``job`` is given, else all due jobs."""
    gateway = get_gateway(request)
    token = extract_token(request.headers, request.query_params)
    payload, status_code = gateway.trigger(request.method, job, token)
    return scheduler_response(request, payload, status_code)


@router.api_route("/health", methods=ALL_METHODS)
def health(request: Request):
    """Scheduler health status."""
    gateway = get_gateway(request)
    token = extract_token(request.headers, request.query_params)
    payload, status_code = gateway.health(token)
    return scheduler_response(request, payload, status_code)


@router.api_route("/{path:path}", methods=ALL_METHODS + ["OPTIONS"])
def not_found(request: Request, path: str):
    """Unknown scheduler routes and CORS preflight."""
    settings = request.app.state.settings
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=response_headers(settings))
    if not settings.scheduler_enabled:
        return scheduler_response(request, {"error": "Modern scheduler is not enabled"}, 404)
    return scheduler_response(request, {"error": "Not found"}, 404)
