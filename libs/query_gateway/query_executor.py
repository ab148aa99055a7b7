"""Bounded execution of validated SQL against the analytical database.

The executor makes no safety judgement of its own. Callers must pass text that
already went through validation and limit enforcement. What it does guarantee:

- nothing a statement does is committed (the transaction always rolls back);
- server-side ``statement_timeout`` plus a client-side ``asyncio`` timeout;
- at most ``max_rows`` rows are ever fetched;
- driver and database failures come back as ``QueryFailure`` values.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from config.settings import Settings
from libs.common.exceptions import ConfigurationError
from libs.query_gateway.error_translator import (
    EXECUTION_DISABLED,
    QUERY_TIMED_OUT,
    RESULT_SET_TOO_LARGE,
)
from libs.query_gateway.metrics import query_gateway_execution_seconds
from libs.query_gateway.models import ExecutionOutcome, QueryFailure, QuerySuccess

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 30
_DEFAULT_MAX_ROWS = 1000
_APPLICATION_NAME = "query_gateway"


class AsyncConnectionSource(Protocol):
    """Anything exposing ``connection()`` like psycopg_pool.AsyncConnectionPool."""

    def connection(self) -> AbstractAsyncContextManager[Any]:
        """Get a connection context manager."""
        ...


def build_connection_pool(settings: Settings) -> AsyncConnectionPool:
    """Create an unopened pool for the analytical database.

    The caller owns the pool lifecycle (``await pool.open()`` at startup,
    ``await pool.close()`` at shutdown).

    Raises:
        ConfigurationError: If ANALYTICS_DATABASE_URL is not set
    """
    if not settings.analytics_database_url:
        raise ConfigurationError("ANALYTICS_DATABASE_URL not configured")
    return AsyncConnectionPool(
        conninfo=settings.analytics_database_url,
        min_size=settings.analytics_pool_min_size,
        max_size=settings.analytics_pool_max_size,
        kwargs={"application_name": _APPLICATION_NAME},
        open=False,
    )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class QueryExecutor:
    """Runs one statement per call with a hard timeout and a row ceiling."""

    def __init__(
        self,
        pool: AsyncConnectionSource,
        *,
        timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS,
        max_rows: int = _DEFAULT_MAX_ROWS,
        disabled: bool = False,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if max_rows <= 0:
            raise ValueError("max_rows must be positive")
        self._pool = pool
        self.timeout_seconds = timeout_seconds
        self.max_rows = max_rows
        self.disabled = disabled

    @classmethod
    def from_settings(cls, pool: AsyncConnectionSource, settings: Settings) -> QueryExecutor:
        return cls(
            pool,
            timeout_seconds=settings.query_timeout_seconds,
            max_rows=settings.max_result_rows,
            disabled=settings.analytics_disabled,
        )

    async def execute(self, sql: str) -> ExecutionOutcome:
        """Execute ``sql`` and return rows or the raw failure text."""
        if self.disabled:
            logger.info("analytics_query_execution_disabled")
            return QueryFailure(EXECUTION_DISABLED)

        start = time.monotonic()
        try:
            rows = await asyncio.wait_for(self._run(sql), timeout=self.timeout_seconds)
        except (TimeoutError, psycopg.errors.QueryCanceled):
            logger.warning(
                "analytics_query_timeout",
                extra={"timeout_seconds": self.timeout_seconds},
            )
            return QueryFailure(QUERY_TIMED_OUT, _elapsed_ms(start))
        except psycopg.Error as exc:
            logger.warning(
                "analytics_query_failed",
                extra={
                    "error_type": type(exc).__name__,
                    "sqlstate": getattr(exc, "sqlstate", None),
                },
            )
            return QueryFailure(str(exc), _elapsed_ms(start))
        finally:
            query_gateway_execution_seconds.observe(time.monotonic() - start)

        execution_ms = _elapsed_ms(start)
        if len(rows) > self.max_rows:
            return QueryFailure(
                f"{RESULT_SET_TOO_LARGE}: more than {self.max_rows} rows", execution_ms
            )
        return QuerySuccess(rows=rows, execution_ms=execution_ms)

    async def _run(self, sql: str) -> list[dict[str, Any]]:
        timeout_ms = int(self.timeout_seconds * 1000)
        async with self._pool.connection() as conn:
            async with conn.transaction(force_rollback=True):
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(
                        "SELECT set_config('statement_timeout', %s, true)",
                        (f"{timeout_ms}ms",),
                    )
                    await cur.execute(sql)
                    if cur.description is None:
                        return []
                    rows: list[dict[str, Any]] = await cur.fetchmany(self.max_rows + 1)
                    return rows


__all__ = [
    "AsyncConnectionSource",
    "QueryExecutor",
    "build_connection_pool",
]
