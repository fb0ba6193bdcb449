#!/usr/bin/env python3
"""
Startup script for the scheduler webhook service
"""

import uvicorn

from core.config import settings
from core.logging_config import configure_logging_from_settings, get_logger

logger = get_logger(__name__)


def main():
    configure_logging_from_settings()
    logger.info(f"Starting scheduler webhook service on {settings.api_host}:{settings.api_port}")

    uvicorn.run(
        "api.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        log_level="debug" if settings.debug else "info"
    )


if __name__ == "__main__":
    main()
