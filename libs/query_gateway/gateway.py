"""Entry point that takes model-generated SQL through validation, execution and translation.

Flow for one call::

    rate limit (optional) -> classify -> sanitize + enforce LIMIT -> execute
        -> success: rows passed through
        -> failure: translated error message + suggestion

Every call produces exactly one ``sql_query_gateway`` audit record. The record
carries a literal-free fingerprint of the candidate statement, never the raw
SQL or any row values.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Protocol

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from config.settings import Settings
from libs.common.logging.context import RequestContext, get_request_id
from libs.query_gateway.error_translator import UNKNOWN_ERROR, translate_error
from libs.query_gateway.metrics import query_gateway_requests_total
from libs.query_gateway.models import ExecutionOutcome, GatewayResponse, QueryFailure
from libs.query_gateway.query_executor import AsyncConnectionSource, QueryExecutor
from libs.query_gateway.rate_limiter import (
    CounterStore,
    FixedWindowRateLimiter,
    create_query_rate_limiter,
)
from libs.query_gateway.sql_validator import DEFAULT_DIALECT, SQLValidator

logger = logging.getLogger(__name__)

RATE_LIMIT_EXCEEDED = "Rate limit exceeded. Try again later."
QUERY_REJECTED = "Query rejected"
UNPARSEABLE_FINGERPRINT = "<unparseable query>"


class Executor(Protocol):
    async def execute(self, sql: str) -> ExecutionOutcome: ...


def _fingerprint_query(sql: str, dialect: str = DEFAULT_DIALECT) -> str:
    """Normalize query by replacing literals with placeholders."""
    try:
        parsed = sqlglot.parse_one(sql, read=dialect)
        for literal in list(parsed.find_all(exp.Literal)):
            literal.replace(exp.Placeholder())
        return parsed.sql(dialect=dialect)
    except (SqlglotError, RecursionError):
        return UNPARSEABLE_FINGERPRINT


def _log_query(
    candidate_sql: str,
    executed_sql: str | None,
    *,
    dialect: str,
    status: str,
    row_count: int,
    execution_ms: int,
    duration_ms: int,
    caller_id: str | None,
    error_code: str | None,
) -> None:
    """Structured query audit logging."""
    candidate = candidate_sql.strip() if isinstance(candidate_sql, str) else ""
    fingerprint = _fingerprint_query(candidate, dialect) if candidate else None
    logger.info(
        "sql_query_gateway",
        extra={
            "caller_id": caller_id,
            "query_fingerprint": fingerprint,
            "query_modified": executed_sql is not None and executed_sql != candidate,
            "status": status,
            "row_count": row_count,
            "execution_ms": execution_ms,
            "duration_ms": duration_ms,
            "error_code": error_code,
        },
    )


class QueryGateway:
    """Runs untrusted SQL against the analytical database with bounded blast radius.

    Holds no mutable state of its own; the connection pool (inside the
    executor) and the counter store (inside the rate limiter) are owned by
    the caller.
    """

    def __init__(
        self,
        executor: Executor,
        validator: SQLValidator | None = None,
        rate_limiter: FixedWindowRateLimiter | None = None,
    ) -> None:
        self.executor = executor
        self.validator = validator or SQLValidator()
        self.rate_limiter = rate_limiter

    async def run_safe_query(
        self, candidate_sql: str, *, caller_id: str | None = None
    ) -> GatewayResponse:
        """Validate, bound and execute ``candidate_sql``.

        Never raises for bad input or database failures. The rate limit is
        checked only when both a limiter and ``caller_id`` are present.
        """
        with RequestContext(get_request_id()):
            start = time.monotonic()
            status = "internal_error"
            executed_sql: str | None = None
            row_count = 0
            execution_ms = 0
            error_code: str | None = None
            try:
                if self.rate_limiter is not None and caller_id is not None:
                    if not await self.rate_limiter.allow(caller_id):
                        status = "rate_limited"
                        return GatewayResponse.failed(RATE_LIMIT_EXCEEDED)

                verdict = self.validator.classify(candidate_sql)
                if not verdict.safe:
                    status = "validation_failed"
                    return GatewayResponse.failed(verdict.reason or QUERY_REJECTED)

                executed_sql = self.validator.enforce_limit(verdict.normalized_text or candidate_sql)
                outcome = await self.executor.execute(executed_sql)
                execution_ms = outcome.execution_ms

                if isinstance(outcome, QueryFailure):
                    translated = translate_error(outcome.raw_message)
                    status = "execution_failed"
                    error_code = translated.code.value
                    return GatewayResponse.failed(translated.message, translated)

                status = "success"
                row_count = len(outcome.rows)
                return GatewayResponse.ok(outcome)
            except Exception:
                logger.exception("sql_query_gateway_unexpected_error")
                status = "internal_error"
                error_code = UNKNOWN_ERROR.code.value
                return GatewayResponse.failed(UNKNOWN_ERROR.message, UNKNOWN_ERROR)
            finally:
                query_gateway_requests_total.labels(status=status).inc()
                _log_query(
                    candidate_sql,
                    executed_sql,
                    dialect=self.validator.dialect,
                    status=status,
                    row_count=row_count,
                    execution_ms=execution_ms,
                    duration_ms=int((time.monotonic() - start) * 1000),
                    caller_id=caller_id,
                    error_code=error_code,
                )


def build_gateway(
    settings: Settings,
    pool: AsyncConnectionSource,
    counter_store: CounterStore | None = None,
) -> QueryGateway:
    """Wire a gateway from settings.

    Rate limiting is enabled only when a counter store is supplied.
    """
    validator = SQLValidator(
        settings.sql_dialect,
        max_limit=settings.max_result_rows,
        default_limit=settings.default_result_rows,
    )
    executor = QueryExecutor.from_settings(pool, settings)
    rate_limiter = (
        create_query_rate_limiter(counter_store, settings) if counter_store is not None else None
    )
    return QueryGateway(executor, validator=validator, rate_limiter=rate_limiter)


async def run_safe_query(
    candidate_sql: str,
    executor: Executor,
    *,
    validator: SQLValidator | None = None,
    rate_limiter: FixedWindowRateLimiter | None = None,
    caller_id: str | None = None,
) -> dict[str, Any]:
    """One-shot helper returning the wire-format response dict."""
    gateway = QueryGateway(executor, validator=validator, rate_limiter=rate_limiter)
    response = await gateway.run_safe_query(candidate_sql, caller_id=caller_id)
    return response.to_dict()


__all__ = [
    "Executor",
    "QueryGateway",
    "RATE_LIMIT_EXCEEDED",
    "build_gateway",
    "run_safe_query",
]
