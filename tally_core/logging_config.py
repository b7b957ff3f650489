"""
Tally Core - Structured JSON Logging

Provides structured logging for the workpaper engine.
Outputs JSON format for log aggregation, or plain text for local use.
"""

import logging
import json
import sys
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import traceback


# LogRecord attributes that are not user-supplied extra fields
_RESERVED_ATTRS = frozenset([
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "taskName", "tax_year", "workpaper_key",
])


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs one JSON object per log record.
    """

    def __init__(self, service_name: str = "tally-core"):
        super().__init__()
        self.service_name = service_name
        self.environment = os.environ.get("ENVIRONMENT", "development")

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "environment": self.environment,
        }

        # Workpaper context, when a session has set it
        tax_year = getattr(record, "tax_year", None)
        workpaper_key = getattr(record, "workpaper_key", None)
        if tax_year or workpaper_key:
            log_data["workpaper"] = {"tax_year": tax_year, "key": workpaper_key}

        log_data["location"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info) if record.exc_info[0] else None,
            }

        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str)


class WorkpaperContextFilter(logging.Filter):
    """
    Stamps the active workpaper's tax year and storage key on every record.
    """

    def __init__(self):
        super().__init__()
        self._tax_year: Optional[str] = None
        self._workpaper_key: Optional[str] = None

    def set_workpaper_context(self, tax_year: Optional[str] = None, workpaper_key: Optional[str] = None):
        self._tax_year = tax_year
        self._workpaper_key = workpaper_key

    def clear_workpaper_context(self):
        self._tax_year = None
        self._workpaper_key = None

    def filter(self, record: logging.LogRecord) -> bool:
        record.tax_year = self._tax_year
        record.workpaper_key = self._workpaper_key
        return True


# Global context filter instance, installed by setup_logging
_workpaper_context_filter: Optional[WorkpaperContextFilter] = None


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    service_name: str = "tally-core"
) -> logging.Logger:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON format (True for production)
        service_name: Service name for log aggregation

    Returns:
        Configured root logger
    """
    global _workpaper_context_filter

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper(), logging.INFO))

    if json_format:
        handler.setFormatter(JSONFormatter(service_name=service_name))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))

    _workpaper_context_filter = WorkpaperContextFilter()
    handler.addFilter(_workpaper_context_filter)

    root_logger.addHandler(handler)

    return root_logger


def setup_logging_from_settings(settings=None) -> logging.Logger:
    """Configure logging from Settings (LOG_LEVEL, LOG_JSON, SERVICE_NAME)."""
    if settings is None:
        from tally_core.config import get_settings
        settings = get_settings()
    return setup_logging(
        level=settings.LOG_LEVEL,
        json_format=settings.LOG_JSON,
        service_name=settings.SERVICE_NAME,
    )


def get_workpaper_context_filter() -> Optional[WorkpaperContextFilter]:
    return _workpaper_context_filter


def set_workpaper_context(tax_year: Optional[str] = None, workpaper_key: Optional[str] = None):
    """Set workpaper context for logging."""
    if _workpaper_context_filter:
        _workpaper_context_filter.set_workpaper_context(tax_year, workpaper_key)


def clear_workpaper_context():
    """Clear workpaper context."""
    if _workpaper_context_filter:
        _workpaper_context_filter.clear_workpaper_context()
