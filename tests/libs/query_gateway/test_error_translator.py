"""Unit tests for database error translation."""

from __future__ import annotations

import pytest

from libs.query_gateway.error_translator import (
    EXECUTION_DISABLED,
    QUERY_TIMED_OUT,
    UNKNOWN_ERROR,
    format_error_response,
    translate_error,
)
from libs.query_gateway.models import ErrorCode


@pytest.mark.parametrize(
    ("raw", "code"),
    [
        ('column "foo" does not exist', ErrorCode.COLUMN_NOT_FOUND),
        ('relation "players" does not exist', ErrorCode.TABLE_NOT_FOUND),
        ('syntax error at or near "FORM"', ErrorCode.SYNTAX_ERROR),
        ("division by zero", ErrorCode.DIVISION_BY_ZERO),
        ('invalid input syntax for type integer: "abc"', ErrorCode.TYPE_MISMATCH),
        ('invalid input syntax for type json', ErrorCode.JSON_PARSE_ERROR),
        (
            "aggregate functions are not allowed in WHERE",
            ErrorCode.AGGREGATE_IN_WHERE,
        ),
        (
            'column "users.name" must appear in the GROUP BY clause or be used in an aggregate function',
            ErrorCode.MISSING_GROUP_BY,
        ),
        ('column reference "id" is ambiguous', ErrorCode.AMBIGUOUS_COLUMN),
        ("connection refused", ErrorCode.CONNECTION_ERROR),
        ("couldn't get a connection after 30.00 sec", ErrorCode.CONNECTION_ERROR),
        (QUERY_TIMED_OUT, ErrorCode.TIMEOUT),
        ("canceling statement due to statement timeout", ErrorCode.TIMEOUT),
        ("result set too large: more than 1000 rows", ErrorCode.TOO_MANY_RESULTS),
        ("permission denied for table salaries", ErrorCode.PERMISSION_DENIED),
        ("numeric field overflow", ErrorCode.NUMERIC_OVERFLOW),
        (EXECUTION_DISABLED, ErrorCode.EXECUTION_DISABLED),
    ],
)
def test_translate_error_codes(raw: str, code: ErrorCode) -> None:
    translated = translate_error(raw)
    assert translated.code == code
    assert translated.suggestion


def test_column_not_found_names_the_field() -> None:
    translated = translate_error('column "foo" does not exist')
    assert translated.message == 'The field "foo" doesn\'t exist in the database.'


def test_unquoted_column_name_is_captured() -> None:
    translated = translate_error("ERROR: column foo does not exist at character 8")
    assert translated.code == ErrorCode.COLUMN_NOT_FOUND
    assert "foo" in translated.message


def test_table_not_found_names_the_table() -> None:
    translated = translate_error('relation "players" does not exist')
    assert '"players"' in translated.message


def test_syntax_error_quotes_token() -> None:
    assert 'near "FORM"' in translate_error('syntax error at or near "FORM"').message


def test_type_mismatch_mentions_value_and_type() -> None:
    translated = translate_error('invalid input syntax for type integer: "abc"')
    assert '"abc"' in translated.message
    assert "integer" in translated.message


def test_json_error_checked_before_generic_type_mismatch() -> None:
    translated = translate_error('invalid input syntax for type json: "{bad"')
    assert translated.code == ErrorCode.JSON_PARSE_ERROR


def test_ambiguous_column_suggests_qualifying() -> None:
    translated = translate_error('column reference "id" is ambiguous')
    assert translated.suggestion == "Specify the table: table_name.id"


def test_matching_is_case_insensitive() -> None:
    assert translate_error("DIVISION BY ZERO").code == ErrorCode.DIVISION_BY_ZERO


def test_unknown_error_never_echoes_raw_text() -> None:
    raw = "FATAL: password authentication failed for user secret_admin"
    translated = translate_error(raw)
    assert translated == UNKNOWN_ERROR
    assert "secret_admin" not in translated.message
    assert translated.code == ErrorCode.UNKNOWN_ERROR


def test_empty_message_is_unknown() -> None:
    assert translate_error("") == UNKNOWN_ERROR


def test_translation_is_deterministic() -> None:
    raw = 'column "points" does not exist'
    assert translate_error(raw) == translate_error(raw)


def test_format_error_response_shape() -> None:
    response = format_error_response('column "points" does not exist')
    assert response == {
        "error": 'The field "points" doesn\'t exist in the database.',
        "errorDetails": {
            "suggestion": "Check the schema for available fields.",
            "code": "COLUMN_NOT_FOUND",
        },
    }


def test_format_error_response_unknown() -> None:
    response = format_error_response("something odd happened")
    assert response["error"] == "Query execution failed."
    assert response["errorDetails"]["code"] == "UNKNOWN_ERROR"
