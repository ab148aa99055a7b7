"""JSON log formatter for structured gateway logs.

Example log output:
    {
        "timestamp": "2026-10-16T10:30:00.000Z",
        "level": "INFO",
        "service": "query_gateway",
        "request_id": "abc123-def456",
        "message": "sql_query_gateway",
        "context": {
            "status": "success",
            "row_count": 10
        }
    }

Result rows and raw SQL must never reach log storage. Context keys listed in
``REDACTED_FIELDS`` are replaced by a placeholder whatever their value.
"""

import json
import logging
import traceback
from datetime import UTC, datetime
from types import TracebackType
from typing import Any

REDACTED_FIELDS = frozenset({"rows", "data", "sql", "raw_sql", "query", "params"})
REDACTED_PLACEHOLDER = "[redacted]"

_RESERVED_FIELDS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "request_id",
        "context",
    }
)


class JSONFormatter(logging.Formatter):
    """Formatter that renders log records as single-line JSON.

    Context comes either from an explicit ``extra={"context": {...}}`` dict or
    from any other ``extra=`` keys attached to the record.

    Attributes:
        service_name: Name of the service emitting logs
        include_context: Whether to include extra context fields
    """

    def __init__(
        self, service_name: str, include_context: bool = True, *args: Any, **kwargs: Any
    ) -> None:
        super().__init__(*args, **kwargs)
        self.service_name = service_name
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self._format_timestamp(record.created),
            "level": record.levelname,
            "service": self.service_name,
            "request_id": getattr(record, "request_id", None),
            "message": record.getMessage(),
        }

        if self.include_context:
            context = self._extract_context(record)
            if context:
                log_entry["context"] = context

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self._format_exception(record.exc_info),
            }

        log_entry["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        return json.dumps(log_entry, default=str)

    def _format_timestamp(self, created: float) -> str:
        """Format a record timestamp as ISO 8601 UTC with millisecond precision."""
        dt = datetime.fromtimestamp(created, tz=UTC)
        return dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

    def _extract_context(self, record: logging.LogRecord) -> dict[str, Any] | None:
        context = getattr(record, "context", None)
        if isinstance(context, dict):
            fields = dict(context)
        else:
            fields = {
                key: value
                for key, value in record.__dict__.items()
                if key not in _RESERVED_FIELDS
            }
        if not fields:
            return None
        return {
            key: REDACTED_PLACEHOLDER if key in REDACTED_FIELDS else value
            for key, value in fields.items()
        }

    def _format_exception(
        self,
        exc_info: tuple[type[BaseException] | None, BaseException | None, TracebackType | None],
    ) -> str:
        return "".join(traceback.format_exception(*exc_info))
