"""Structured logging for the query gateway.

Usage:
    # At service startup
    from libs.common.logging import configure_logging
    configure_logging(service_name="query_gateway", log_level="INFO")

    # Around each incoming question
    from libs.common.logging import RequestContext
    with RequestContext(request.headers.get(REQUEST_ID_HEADER)):
        response = await gateway.run_safe_query(sql)
"""

from libs.common.logging.config import (
    RequestIDFilter,
    configure_logging,
    get_logger,
    log_with_context,
)
from libs.common.logging.context import (
    REQUEST_ID_HEADER,
    RequestContext,
    clear_request_id,
    generate_request_id,
    get_or_create_request_id,
    get_request_id,
    set_request_id,
)
from libs.common.logging.formatter import REDACTED_FIELDS, JSONFormatter

__all__ = [
    # Configuration
    "configure_logging",
    "get_logger",
    "log_with_context",
    "RequestIDFilter",
    # Request ID management
    "generate_request_id",
    "get_request_id",
    "set_request_id",
    "clear_request_id",
    "get_or_create_request_id",
    "RequestContext",
    "REQUEST_ID_HEADER",
    # Formatter
    "JSONFormatter",
    "REDACTED_FIELDS",
]
