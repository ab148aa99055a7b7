"""
Root conftest for tests.

This ensures:
1. Redis module is properly initialized before test collection
2. Cached settings never leak between tests
3. Query gateway fakes (counter store, clock, async pool) are available
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

# Import redis first to ensure it's in sys.modules before any module
# does 'import redis.asyncio as redis' which could shadow it
import redis  # noqa: F401

# Also import redis.exceptions to ensure it's available
import redis.exceptions  # noqa: F401

from config.settings import get_settings

_SET_CONFIG_PREFIX = "SELECT set_config"


class InMemoryCounterStore:
    """Counter store with redis INCR/EXPIRE semantics kept in a dict."""

    def __init__(self) -> None:
        self.counters: dict[str, int] = {}
        self.expirations: dict[str, int] = {}

    async def incr(self, name: str) -> int:
        self.counters[name] = self.counters.get(name, 0) + 1
        return self.counters[name]

    async def expire(self, name: str, time: int) -> bool:
        self.expirations[name] = time
        return True


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class _FakeCursor:
    def __init__(self, conn: FakeConnection) -> None:
        self._conn = conn
        self.description: list[str] | None = None

    async def __aenter__(self) -> _FakeCursor:
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def execute(self, query: str, params: Any = None) -> None:
        self._conn.executed.append((query, params))
        if query.startswith(_SET_CONFIG_PREFIX):
            self.description = ["set_config"]
            return
        if self._conn.delay:
            await asyncio.sleep(self._conn.delay)
        if self._conn.error is not None:
            raise self._conn.error
        self.description = ["columns"] if self._conn.returns_rows else None

    async def fetchmany(self, size: int = 0) -> list[dict[str, Any]]:
        self._conn.fetch_sizes.append(size)
        return list(self._conn.rows[:size])


class _FakeTransaction:
    def __init__(self, conn: FakeConnection) -> None:
        self._conn = conn

    async def __aenter__(self) -> _FakeTransaction:
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._conn.rolled_back = True
        return False


class FakeConnection:
    """psycopg AsyncConnection stand-in that records every statement."""

    def __init__(
        self,
        rows: list[dict[str, Any]] | None = None,
        *,
        error: Exception | None = None,
        delay: float = 0.0,
        returns_rows: bool = True,
    ) -> None:
        self.rows = rows or []
        self.error = error
        self.delay = delay
        self.returns_rows = returns_rows
        self.executed: list[tuple[str, Any]] = []
        self.fetch_sizes: list[int] = []
        self.force_rollback: bool | None = None
        self.rolled_back = False
        self.row_factory: Any = None

    def transaction(self, force_rollback: bool = False) -> _FakeTransaction:
        self.force_rollback = force_rollback
        return _FakeTransaction(self)

    def cursor(self, row_factory: Any = None) -> _FakeCursor:
        self.row_factory = row_factory
        return _FakeCursor(self)

    @property
    def statements(self) -> list[str]:
        """Executed statements other than the per-transaction timeout setup."""
        return [sql for sql, _ in self.executed if not sql.startswith(_SET_CONFIG_PREFIX)]


class _AsyncConnCM:
    def __init__(self, pool: FakePool) -> None:
        self._pool = pool

    async def __aenter__(self) -> FakeConnection:
        self._pool.acquired += 1
        return self._pool.conn

    async def __aexit__(self, exc_type, exc, tb):
        self._pool.released += 1
        return False


class FakePool:
    """AsyncConnectionPool-style pool handing out a single fake connection."""

    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn
        self.acquired = 0
        self.released = 0

    def connection(self) -> _AsyncConnCM:
        return _AsyncConnCM(self)


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def counter_store() -> InMemoryCounterStore:
    return InMemoryCounterStore()


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_pool():
    """Factory for a FakePool around a FakeConnection built from kwargs."""

    def _make(rows: list[dict[str, Any]] | None = None, **kwargs: Any) -> FakePool:
        return FakePool(FakeConnection(rows, **kwargs))

    return _make
