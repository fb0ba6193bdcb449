"""
API Routes Package

This package contains the route modules organized by functionality.
"""

from api.routes.scheduler import router as scheduler_router

__all__ = [
    "scheduler_router",
]
