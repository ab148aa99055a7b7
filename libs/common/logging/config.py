"""Logging setup for services embedding the query gateway.

Example:
    >>> from libs.common.logging.config import configure_logging
    >>> logger = configure_logging(service_name="query_gateway", log_level="INFO")
    >>> logger.info("gateway_started", extra={"context": {"dialect": "postgres"}})
"""

import logging
import sys

from libs.common.logging.context import get_request_id
from libs.common.logging.formatter import JSONFormatter


class RequestIDFilter(logging.Filter):
    """Logging filter that stamps the current request ID onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True


def configure_logging(
    service_name: str,
    log_level: str = "INFO",
    include_context: bool = True,
) -> logging.Logger:
    """Configure structured JSON logging on the root logger.

    Sets up a single stdout handler with the JSON formatter and the request ID
    filter. Existing root handlers are removed to avoid duplicate output. Call
    once at service startup.

    Args:
        service_name: Name reported in the ``service`` field
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        include_context: Whether to include context dict in output

    Returns:
        Configured root logger instance

    Raises:
        ValueError: If log_level is invalid
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter(service_name=service_name, include_context=include_context))
    handler.addFilter(RequestIDFilter())
    root_logger.addHandler(handler)

    return root_logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance (thin wrapper over ``logging.getLogger``)."""
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context_fields: object,
) -> None:
    """Log a message with keyword fields placed in the JSON ``context`` dict.

    Example:
        >>> log_with_context(logger, "INFO", "sql_query_gateway", status="success", row_count=3)
    """
    log_method = getattr(logger, level.lower())
    log_method(message, extra={"context": context_fields})
