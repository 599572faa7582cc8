"""Structured logging configuration with JSON output and request-scoped IDs.

Uses python-json-logger for structured JSON logging suitable for
log aggregation systems like Loki, ELK, or CloudWatch.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Any

from pythonjsonlogger import jsonlogger

from decision_bot.config import get_settings

# Request-scoped identifiers
delivery_id_ctx: ContextVar[str | None] = ContextVar("delivery_id", default=None)
issue_id_ctx: ContextVar[str | None] = ContextVar("issue_id", default=None)
job_id_ctx: ContextVar[str | None] = ContextVar("job_id", default=None)


class ContextIdFilter(logging.Filter):
    """Log filter that adds the request-scoped IDs to all log records.

    An ID passed explicitly through ``extra`` is kept.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for field, context in (
            ("delivery_id", delivery_id_ctx),
            ("issue_id", issue_id_ctx),
            ("job_id", job_id_ctx),
        ):
            if getattr(record, field, None) is None:
                setattr(record, field, context.get())
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with additional fields."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        for field in ("delivery_id", "issue_id", "job_id"):
            value = getattr(record, field, None)
            if value:
                log_record[field] = value

        # Source location for debugging
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["line"] = record.lineno


def setup_logging() -> None:
    """Configure structured logging for the application."""
    settings = get_settings()

    handler = logging.StreamHandler(sys.stdout)

    # JSON in production, text in dev
    if settings.log_format == "json":
        formatter: logging.Formatter = CustomJsonFormatter(
            fmt="%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    handler.addFilter(ContextIdFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.log_level)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
