"""
Centralized logging configuration.

Format: 2026-01-06T14:05:52Z [source] LEVEL message

Usage:
    from rideshare.core.logging_config import configure_logging

    configure_logging(source="api")
    logger = logging.getLogger(__name__)
"""
import logging
import sys
from datetime import datetime, timezone
from typing import Optional


class ISO8601Formatter(logging.Formatter):
    """Formatter producing ISO8601 UTC timestamps with a source tag."""

    def __init__(self, source: str = "app"):
        self.source = source
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"{timestamp} [{self.source}] {record.levelname} {message}"


class HealthCheckFilter(logging.Filter):
    """Suppress access-log noise from health probes unless debugging."""

    HEALTH_PATHS = {"/health", "/api/v1/health"}

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno <= logging.DEBUG:
            return True
        message = record.getMessage()
        return not any(path in message and "GET" in message for path in self.HEALTH_PATHS)


def configure_logging(source: str = "app", level: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger once for a service component.

    Args:
        source: Identifier shown in brackets (e.g. "api", "sweeper")
        level: Level name; defaults to settings.LOG_LEVEL

    Returns:
        The configured root logger
    """
    if level is None:
        from rideshare.core.config import settings
        level = settings.LOG_LEVEL

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Replace handlers so repeated calls (reloads, tests) don't duplicate output
    for handler in list(root.handlers):
        if getattr(handler, "_rideshare_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ISO8601Formatter(source=source))
    handler._rideshare_handler = True
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").addFilter(HealthCheckFilter())
    return root
