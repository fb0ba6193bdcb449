"""
Middleware for the scheduler webhook service: request logging and request IDs.
"""

from .logging_middleware import LoggingMiddleware, add_logging_middleware

__all__ = ["LoggingMiddleware", "add_logging_middleware"]
