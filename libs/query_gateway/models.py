"""Value types passed between query gateway stages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class ValidationResult:
    """Allow/deny verdict for one candidate SQL string.

    ``safe`` implies a single read-only statement with nothing after its
    terminator. ``reason`` is set on every rejection.
    """

    safe: bool
    reason: str | None = None
    normalized_text: str | None = None

    @classmethod
    def allow(cls, normalized_text: str | None = None) -> ValidationResult:
        return cls(safe=True, normalized_text=normalized_text)

    @classmethod
    def deny(cls, reason: str) -> ValidationResult:
        return cls(safe=False, reason=reason)


@dataclass(frozen=True)
class QuerySuccess:
    """Rows returned by the analytical database, verbatim."""

    rows: list[dict[str, Any]]
    execution_ms: int = 0

    success = True


@dataclass(frozen=True)
class QueryFailure:
    """Raw driver/database failure text, not yet translated."""

    raw_message: str
    execution_ms: int = 0

    success = False


ExecutionOutcome = QuerySuccess | QueryFailure


class ErrorCode(StrEnum):
    """Stable codes for translated execution errors."""

    COLUMN_NOT_FOUND = "COLUMN_NOT_FOUND"
    TABLE_NOT_FOUND = "TABLE_NOT_FOUND"
    SYNTAX_ERROR = "SYNTAX_ERROR"
    DIVISION_BY_ZERO = "DIVISION_BY_ZERO"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    AGGREGATE_IN_WHERE = "AGGREGATE_IN_WHERE"
    MISSING_GROUP_BY = "MISSING_GROUP_BY"
    AMBIGUOUS_COLUMN = "AMBIGUOUS_COLUMN"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    TIMEOUT = "TIMEOUT"
    TOO_MANY_RESULTS = "TOO_MANY_RESULTS"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NUMERIC_OVERFLOW = "NUMERIC_OVERFLOW"
    JSON_PARSE_ERROR = "JSON_PARSE_ERROR"
    EXECUTION_DISABLED = "EXECUTION_DISABLED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass(frozen=True)
class TranslatedError:
    """User-facing description of an execution failure."""

    message: str
    code: ErrorCode
    suggestion: str | None = None


class ErrorDetailsDTO(BaseModel):
    """Actionable hint attached to a failed gateway response."""

    suggestion: str
    code: str


class GatewayResponse(BaseModel):
    """Response envelope handed to the response formatter.

    Serialises with camelCase keys, e.g.
    ``{"success": false, "error": "...", "errorDetails": {"suggestion": ..., "code": ...}}``.
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    rows: list[dict[str, Any]] | None = None
    row_count: int | None = Field(default=None, alias="rowCount")
    execution_ms: int | None = Field(default=None, alias="executionMs")
    error: str | None = None
    error_details: ErrorDetailsDTO | None = Field(default=None, alias="errorDetails")

    @classmethod
    def ok(cls, outcome: QuerySuccess) -> GatewayResponse:
        return cls(
            success=True,
            rows=outcome.rows,
            row_count=len(outcome.rows),
            execution_ms=outcome.execution_ms,
        )

    @classmethod
    def failed(cls, error: str, translated: TranslatedError | None = None) -> GatewayResponse:
        details = None
        if translated is not None and translated.suggestion:
            details = ErrorDetailsDTO(suggestion=translated.suggestion, code=translated.code.value)
        return cls(success=False, error=error, error_details=details)

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe dict (Decimal, datetime and UUID values become strings).

        Unset envelope keys are dropped; ``None`` values inside rows are kept.
        """
        data = self.model_dump(mode="json", by_alias=True)
        return {key: value for key, value in data.items() if value is not None}


__all__ = [
    "ErrorCode",
    "ErrorDetailsDTO",
    "ExecutionOutcome",
    "GatewayResponse",
    "QueryFailure",
    "QuerySuccess",
    "TranslatedError",
    "ValidationResult",
]
