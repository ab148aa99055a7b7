"""Translate raw database failures into user-facing messages.

Patterns are evaluated top to bottom and the first match wins, so more
specific wording must come before the generic pattern it overlaps with
(JSON input errors before the generic type mismatch). Unmatched text maps to
a fixed generic message and is never echoed back.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from libs.query_gateway.models import ErrorCode, TranslatedError

QUERY_TIMED_OUT = "Query timed out"
EXECUTION_DISABLED = "Analytics query execution is disabled for this environment."
RESULT_SET_TOO_LARGE = "result set too large"


@dataclass(frozen=True)
class ErrorPattern:
    """One row of the translation table."""

    pattern: re.Pattern[str]
    build: Callable[[re.Match[str]], TranslatedError]


def _fixed(message: str, suggestion: str, code: ErrorCode) -> Callable[[re.Match[str]], TranslatedError]:
    def build(_match: re.Match[str]) -> TranslatedError:
        return TranslatedError(message=message, suggestion=suggestion, code=code)

    return build


def _identifier(match: re.Match[str]) -> str:
    """Quoted or bare identifier captured by a ``does not exist`` pattern."""
    return next(group for group in match.groups() if group is not None)


def _column_not_found(match: re.Match[str]) -> TranslatedError:
    return TranslatedError(
        message=f'The field "{_identifier(match)}" doesn\'t exist in the database.',
        suggestion="Check the schema for available fields.",
        code=ErrorCode.COLUMN_NOT_FOUND,
    )


def _table_not_found(match: re.Match[str]) -> TranslatedError:
    return TranslatedError(
        message=f'The table "{_identifier(match)}" doesn\'t exist.',
        suggestion="Check the schema for the list of available tables.",
        code=ErrorCode.TABLE_NOT_FOUND,
    )


def _syntax_error(match: re.Match[str]) -> TranslatedError:
    return TranslatedError(
        message=f'SQL syntax error near "{match.group(1)}".',
        suggestion="Try rephrasing your question more clearly.",
        code=ErrorCode.SYNTAX_ERROR,
    )


def _type_mismatch(match: re.Match[str]) -> TranslatedError:
    return TranslatedError(
        message=f'Invalid value "{match.group(2)}" for type {match.group(1)}.',
        suggestion="Check that you're comparing the right types (e.g., numbers vs text).",
        code=ErrorCode.TYPE_MISMATCH,
    )


def _ambiguous_column(match: re.Match[str]) -> TranslatedError:
    column = match.group(1)
    return TranslatedError(
        message=f'Column "{column}" exists in multiple tables.',
        suggestion=f"Specify the table: table_name.{column}",
        code=ErrorCode.AMBIGUOUS_COLUMN,
    )


ERROR_PATTERNS: tuple[ErrorPattern, ...] = (
    ErrorPattern(
        re.compile(r'column (?:"([^"]+)"|(\S+)) does not exist', re.IGNORECASE),
        _column_not_found,
    ),
    ErrorPattern(
        re.compile(r'relation (?:"([^"]+)"|(\S+)) does not exist', re.IGNORECASE),
        _table_not_found,
    ),
    ErrorPattern(re.compile(r'syntax error at or near "([^"]+)"', re.IGNORECASE), _syntax_error),
    ErrorPattern(
        re.compile(r"division by zero", re.IGNORECASE),
        _fixed(
            "Cannot divide by zero.",
            "Add a filter to exclude zero values: WHERE column > 0",
            ErrorCode.DIVISION_BY_ZERO,
        ),
    ),
    ErrorPattern(
        re.compile(r"invalid input syntax for type json", re.IGNORECASE),
        _fixed(
            "Invalid JSON format in data.",
            "Parse JSON columns explicitly (e.g. column::jsonb) before filtering on them.",
            ErrorCode.JSON_PARSE_ERROR,
        ),
    ),
    ErrorPattern(
        re.compile(r'invalid input syntax for (?:type )?([\w ]+?): "([^"]*)"', re.IGNORECASE),
        _type_mismatch,
    ),
    ErrorPattern(
        re.compile(r"aggregate functions are not allowed in WHERE", re.IGNORECASE),
        _fixed(
            "Cannot use SUM, COUNT, AVG in WHERE clause.",
            "Use HAVING for filtering aggregates: GROUP BY ... HAVING COUNT(*) > 5",
            ErrorCode.AGGREGATE_IN_WHERE,
        ),
    ),
    ErrorPattern(
        re.compile(r"must appear in the GROUP BY clause", re.IGNORECASE),
        _fixed(
            "Missing GROUP BY clause for aggregate query.",
            "Add all non-aggregated columns to GROUP BY.",
            ErrorCode.MISSING_GROUP_BY,
        ),
    ),
    ErrorPattern(re.compile(r'column reference "([^"]+)" is ambiguous', re.IGNORECASE), _ambiguous_column),
    ErrorPattern(
        re.compile(
            r"connection (?:refused|timed out|reset)|couldn't get a connection", re.IGNORECASE
        ),
        _fixed(
            "Database connection failed.",
            "Please try again in a few moments.",
            ErrorCode.CONNECTION_ERROR,
        ),
    ),
    ErrorPattern(
        re.compile(
            rf"{re.escape(QUERY_TIMED_OUT)}|canceling statement due to statement timeout",
            re.IGNORECASE,
        ),
        _fixed(
            "Query took too long to execute.",
            "Try adding filters (WHERE), reducing date range, or limiting results.",
            ErrorCode.TIMEOUT,
        ),
    ),
    ErrorPattern(
        re.compile(RESULT_SET_TOO_LARGE, re.IGNORECASE),
        _fixed(
            "Query returned too many results.",
            "Add LIMIT or filter with WHERE to reduce results.",
            ErrorCode.TOO_MANY_RESULTS,
        ),
    ),
    ErrorPattern(
        re.compile(r"permission denied", re.IGNORECASE),
        _fixed(
            "Access denied to this data.",
            "Contact an admin if you need access.",
            ErrorCode.PERMISSION_DENIED,
        ),
    ),
    ErrorPattern(
        re.compile(r"numeric field overflow", re.IGNORECASE),
        _fixed(
            "Number too large for calculation.",
            "Try using ::numeric cast or filtering large values.",
            ErrorCode.NUMERIC_OVERFLOW,
        ),
    ),
    ErrorPattern(
        re.compile(re.escape(EXECUTION_DISABLED), re.IGNORECASE),
        _fixed(
            "Analytics queries are disabled for this environment.",
            "Ask an admin to enable the analytics database for this deployment.",
            ErrorCode.EXECUTION_DISABLED,
        ),
    ),
)

UNKNOWN_ERROR = TranslatedError(
    message="Query execution failed.",
    suggestion="Try rephrasing your question or check the query syntax.",
    code=ErrorCode.UNKNOWN_ERROR,
)


def translate_error(raw_message: str) -> TranslatedError:
    """Map a raw database error to a user-facing message, suggestion and code."""
    for entry in ERROR_PATTERNS:
        match = entry.pattern.search(raw_message)
        if match:
            return entry.build(match)
    return UNKNOWN_ERROR


def format_error_response(raw_message: str) -> dict[str, Any]:
    """Render a raw error as ``{"error": ..., "errorDetails": {...}}``."""
    translated = translate_error(raw_message)
    response: dict[str, Any] = {"error": translated.message}
    if translated.suggestion:
        response["errorDetails"] = {
            "suggestion": translated.suggestion,
            "code": translated.code.value,
        }
    return response


__all__ = [
    "ERROR_PATTERNS",
    "EXECUTION_DISABLED",
    "ErrorPattern",
    "QUERY_TIMED_OUT",
    "RESULT_SET_TOO_LARGE",
    "UNKNOWN_ERROR",
    "format_error_response",
    "translate_error",
]
