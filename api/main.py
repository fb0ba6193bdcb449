"""
Main FastAPI application for the scheduler webhook service.

The application does not build its scheduler from global state: the entry
point constructs a Scheduler and hands it to ``create_app``.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.middleware import add_logging_middleware
from api.routes import scheduler_router
from core.config import Settings, settings as default_settings
from core.logging_config import get_logger
from services.scheduler import Scheduler, SchedulerWorker, TriggerGateway, build_scheduler

logger = get_logger(__name__)

API_VERSION = "1.0.0"


def create_app(
    settings: Optional[Settings] = None,
    scheduler: Optional[Scheduler] = None,
    start_worker: Optional[bool] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (defaults to the environment)
        scheduler: Scheduler instance; built from settings when omitted
        start_worker: Run the background tick worker; defaults to
            ``settings.worker_enabled`` when the scheduler is enabled

    Returns:
        Configured FastAPI application
    """
    settings = settings or default_settings
    scheduler = scheduler or build_scheduler(settings)
    gateway = TriggerGateway(scheduler, settings)

    if start_worker is None:
        start_worker = settings.worker_enabled and settings.scheduler_enabled
    worker = SchedulerWorker(scheduler, tick_seconds=settings.tick_seconds) if start_worker else None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("🚀 Starting scheduler webhook service...")
        logger.info(f"📋 {len(scheduler.store)} job(s) registered, scheduler "
                    f"{'enabled' if scheduler.enabled else 'disabled'}")
        if worker:
            worker.start()
        yield
        logger.info("🛑 Shutting down scheduler webhook service...")
        if worker:
            worker.stop()
        gateway.close()

    app = FastAPI(
        title="Scheduler Webhook Service",
        description="HTTP endpoints to trigger the job scheduler and check its health.",
        version=API_VERSION,
        lifespan=lifespan,
        openapi_tags=[
            {
                "name": "scheduler",
                "description": "Webhook trigger and health check endpoints"
            }
        ]
    )

    app.state.settings = settings
    app.state.scheduler = scheduler
    app.state.gateway = gateway
    app.state.worker = worker

    add_logging_middleware(app)
    app.include_router(scheduler_router)

    @app.get("/")
    async def root():
        """Root endpoint with service information"""
        return {
            "message": "Scheduler Webhook Service",
            "version": API_VERSION,
            "docs": "/docs"
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler."""
        logger.error(f"Unhandled exception on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error"}
        )

    return app
