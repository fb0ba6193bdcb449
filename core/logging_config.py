"""
Centralized logging configuration for the scheduler webhook service.

Features:
- Colored logging with different colors for different log levels
- Structured formatting with timestamps and logger names
- API call dividers for request tracing
- Configurable log levels, output formats and an optional log file
"""

import logging
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO, Union


# Color codes for terminal output
class Colors:
    """ANSI color codes for terminal output"""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    WHITE = "\033[97m"
    GRAY = "\033[90m"


TIMESTAMP_PATTERN = re.compile(r'(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}(?:\.\d{2,3})?)')


class ColoredFormatter(logging.Formatter):
    """Custom formatter that adds colors to log messages"""

    COLORS = {
        logging.DEBUG: Colors.GRAY,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.MAGENTA,
    }

    def format(self, record):
        formatted = super().format(record)

        level_color = self.COLORS.get(record.levelno, Colors.WHITE)
        formatted = formatted.replace(
            record.levelname,
            f"{level_color}{record.levelname}{Colors.RESET}",
            1
        )

        formatted = TIMESTAMP_PATTERN.sub(f"{Colors.CYAN}\\1{Colors.RESET}", formatted, count=1)

        if record.name:
            formatted = formatted.replace(
                f"{record.name} - ",
                f"{Colors.BLUE}{record.name}{Colors.RESET} - ",
                1
            )

        return formatted


class ApiCallLogger:
    """Logs the start and end of API calls with clear dividers"""

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.divider_length = 80

    def log_api_call_start(self, endpoint: str, method: str = "POST", request_id: Optional[str] = None):
        """Log the start of an API call"""
        divider = "=" * self.divider_length
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

        self.logger.debug(divider)
        self.logger.info(f"🚀 API CALL START - {method} {endpoint}"
                         + (f" [{request_id}]" if request_id else ""))
        self.logger.debug(f"⏰ Timestamp: {timestamp}")

    def log_api_call_end(self, endpoint: str, method: str = "POST", request_id: Optional[str] = None,
                         duration_ms: Optional[float] = None, status: str = "completed"):
        """Log the end of an API call with its duration and status"""
        message = f"✅ API CALL END - {method} {endpoint}"
        if request_id:
            message += f" [{request_id}]"
        if duration_ms is not None:
            message += f" {duration_ms:.2f}ms"
        message += f" - {status}"

        self.logger.info(message)
        self.logger.debug("=" * self.divider_length)


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "detailed",
    log_file: Optional[Union[str, Path]] = None,
    enable_colors: bool = True,
    stream: Optional[TextIO] = None
) -> logging.Logger:
    """
    Set up centralized logging configuration

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format style ('simple', 'detailed', 'json')
        log_file: Optional file path for logging
        enable_colors: Whether to enable colored output (terminal only)
        stream: Console stream (defaults to stdout)

    Returns:
        Configured root logger
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stream = stream or sys.stdout
    console_handler = logging.StreamHandler(stream)
    console_handler.setLevel(numeric_level)

    use_colors = enable_colors and stream.isatty()

    if log_format == "simple":
        fmt = "%(levelname)s - %(message)s"
        formatter = ColoredFormatter(fmt) if use_colors else logging.Formatter(fmt)
    elif log_format == "json":
        formatter = logging.Formatter(
            '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}'
        )
    else:  # detailed (default)
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        if use_colors:
            formatter = ColoredFormatter(fmt, datefmt="%Y-%m-%d %H:%M:%S")
        else:
            formatter = logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        # File handler always uses non-colored format
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        root_logger.addHandler(file_handler)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name"""
    return logging.getLogger(name)


def get_api_logger(name: str) -> ApiCallLogger:
    """Get an API call logger for the specified logger name"""
    return ApiCallLogger(logging.getLogger(name))


def configure_logging_from_settings(stream: Optional[TextIO] = None):
    """Configure logging based on application settings"""
    from core.config import settings

    log_level = settings.log_level
    if settings.debug:
        log_level = 'DEBUG'

    setup_logging(
        log_level=log_level,
        log_format='detailed',
        log_file=settings.log_file,
        enable_colors=True,
        stream=stream
    )

    logger = get_logger(__name__)
    logger.debug(f"🎨 Logging configured with level: {log_level}")
