"""SQL Query Safety Gateway.

Sits between model-generated SQL and a live analytical PostgreSQL database:
- Statement validation (sqlglot parse with keyword fallback)
- Row ceiling enforcement
- Bounded, always-rolled-back execution
- Database error translation
- Fixed-window rate limiting
"""

from libs.query_gateway.error_translator import format_error_response, translate_error
from libs.query_gateway.gateway import QueryGateway, build_gateway, run_safe_query
from libs.query_gateway.models import (
    ErrorCode,
    ExecutionOutcome,
    GatewayResponse,
    QueryFailure,
    QuerySuccess,
    TranslatedError,
    ValidationResult,
)
from libs.query_gateway.query_executor import QueryExecutor, build_connection_pool
from libs.query_gateway.rate_limiter import (
    CounterStore,
    FixedWindowRateLimiter,
    build_redis_client,
    create_login_rate_limiter,
    create_query_rate_limiter,
)
from libs.query_gateway.sql_validator import SQLValidator, sanitize_sql

__all__ = [
    "CounterStore",
    "ErrorCode",
    "ExecutionOutcome",
    "FixedWindowRateLimiter",
    "GatewayResponse",
    "QueryExecutor",
    "QueryFailure",
    "QueryGateway",
    "QuerySuccess",
    "SQLValidator",
    "TranslatedError",
    "ValidationResult",
    "build_connection_pool",
    "build_gateway",
    "build_redis_client",
    "create_login_rate_limiter",
    "create_query_rate_limiter",
    "format_error_response",
    "run_safe_query",
    "sanitize_sql",
    "translate_error",
]
