"""SQL validation for model-generated analytical queries.

The sqlglot parse is the source of truth. The keyword fallback only runs when
sqlglot cannot parse the text at all, and it never overrides a parsed verdict.
"""

from __future__ import annotations

import logging
import re
from typing import NamedTuple

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError, TokenError
from sqlglot.tokens import TokenType

from libs.query_gateway.metrics import query_gateway_validation_path_total
from libs.query_gateway.models import ValidationResult

logger = logging.getLogger(__name__)

DEFAULT_DIALECT = "postgres"
MAX_RESULTS_LIMIT = 1000
DEFAULT_LIMIT = 500

EMPTY_QUERY_REASON = "Empty query"
NO_STATEMENT_REASON = "No valid SQL statement found"
MULTIPLE_STATEMENTS_REASON = "Multiple statements not allowed"
PERMANENT_TABLE_REASON = "Only CREATE TEMPORARY TABLE is allowed, not permanent tables."
TEMP_SHORTHAND_REASON = "Only CREATE TEMPORARY TABLE is allowed. Spell out TEMPORARY instead of TEMP."
FALLBACK_PREFIX_REASON = "Query must start with SELECT, WITH, or CREATE TEMPORARY TABLE"
FALLBACK_MULTIPLE_REASON = "Multiple statements detected"

_CREATE_TEMPORARY_TABLE = re.compile(r"^CREATE\s+TEMPORARY\s+TABLE\b", re.IGNORECASE)
_CREATE_TEMP_TABLE = re.compile(r"^CREATE\s+(?:LOCAL\s+|GLOBAL\s+)?TEMP\s+TABLE\b", re.IGNORECASE)
_AS_QUERY_BODY = re.compile(r"\bAS\s*\(?\s*(?:SELECT|WITH)\b", re.IGNORECASE)
_LIMIT_CLAUSE = re.compile(r"\bLIMIT\s+(\d+)", re.IGNORECASE)
_FETCH_CLAUSE = re.compile(r"\bFETCH\s+(?:FIRST|NEXT)\s+(\d+)", re.IGNORECASE)
_OFFSET_CLAUSE = re.compile(r"\bOFFSET\s+\d+", re.IGNORECASE)
_LEADING_KEYWORD = re.compile(r"[A-Za-z]+")

# Checked in order; the first hit names the rejected operation.
FORBIDDEN_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bINSERT\s+INTO\b", re.IGNORECASE), "INSERT"),
    (re.compile(r"\bUPDATE\s+\w+\s+SET\b", re.IGNORECASE), "UPDATE"),
    (re.compile(r"\bDELETE\s+FROM\b", re.IGNORECASE), "DELETE"),
    (re.compile(r"\bDROP\s+(?:TABLE|DATABASE|INDEX|VIEW)\b", re.IGNORECASE), "DROP"),
    (re.compile(r"\bALTER\s+(?:TABLE|DATABASE)\b", re.IGNORECASE), "ALTER"),
    (re.compile(r"\bTRUNCATE\b", re.IGNORECASE), "TRUNCATE"),
    (re.compile(r"\b(?:GRANT|REVOKE)\b", re.IGNORECASE), "GRANT/REVOKE"),
    (re.compile(r"\bCREATE\b(?!\s+TEMPORARY\b)", re.IGNORECASE), "CREATE"),
    (re.compile(r"\b(?:EXEC|EXECUTE|CALL)\b", re.IGNORECASE), "EXECUTE"),
)

# Nodes that write, change schema, or escape the single-read model. Any of
# these nested inside an otherwise allowed statement rejects it.
_DISALLOWED_NODES: tuple[type[exp.Expression], ...] = (
    # DML operations
    exp.Insert,
    exp.Update,
    exp.Delete,
    exp.Merge,
    exp.Into,  # SELECT ... INTO new_table
    # DDL operations
    exp.Create,
    exp.Drop,
    exp.Alter,
    exp.TruncateTable,
    # Admin/privilege operations
    exp.Grant,
    exp.Revoke,
    exp.Transaction,
    exp.Commit,
    exp.Rollback,
    exp.Command,
    exp.Copy,
    exp.Set,
    exp.Use,
    exp.Lock,  # SELECT ... FOR UPDATE / FOR SHARE
)

_STATEMENT_NAMES: dict[type[exp.Expression], str] = {
    exp.Select: "SELECT",
    exp.Insert: "INSERT",
    exp.Update: "UPDATE",
    exp.Delete: "DELETE",
    exp.Merge: "MERGE",
    exp.Into: "SELECT INTO",
    exp.TruncateTable: "TRUNCATE",
    exp.Grant: "GRANT",
    exp.Revoke: "REVOKE",
    exp.Transaction: "BEGIN",
    exp.Commit: "COMMIT",
    exp.Rollback: "ROLLBACK",
    exp.Copy: "COPY",
    exp.Set: "SET",
    exp.Use: "USE",
}

_KIND_VERBS: dict[type[exp.Expression], str] = {
    exp.Create: "CREATE",
    exp.Drop: "DROP",
    exp.Alter: "ALTER",
}


class _RowClauses(NamedTuple):
    """Top-level LIMIT/OFFSET positions found in a statement."""

    has_limit: bool
    limit_value: int | None  # None for LIMIT ALL or a non-literal argument
    limit_span: tuple[int, int] | None  # rewritable literal/ALL argument
    offset_start: int | None


def sanitize_sql(query: str) -> str:
    """Trim whitespace and drop exactly one trailing statement terminator."""
    sql = query.strip()
    if sql.endswith(";"):
        sql = sql[:-1].rstrip()
    return sql


def _statement_kind(node: exp.Expression, sql: str | None = None) -> str:
    """Human-readable statement kind, e.g. ``DROP TABLE`` or ``INSERT``.

    Nodes without a known name are reported by the statement's leading
    keyword when the text is available (``TABLE users`` parses as an alias).
    """
    for node_type, verb in _KIND_VERBS.items():
        if isinstance(node, node_type):
            kind = node.args.get("kind")
            return f"{verb} {str(kind).upper()}" if kind else verb
    if isinstance(node, exp.Command):
        return str(node.this).upper()
    if isinstance(node, exp.Lock):
        return "SELECT FOR UPDATE" if node.args.get("update") else "SELECT FOR SHARE"
    name = _STATEMENT_NAMES.get(type(node))
    if name is not None:
        return name
    if sql:
        keyword = _LEADING_KEYWORD.match(sql)
        if keyword:
            return keyword.group(0).upper()
    return node.key.upper()


def _rejection(node: exp.Expression, sql: str | None = None) -> ValidationResult:
    return ValidationResult.deny(
        f"Only SELECT queries are allowed. Detected: {_statement_kind(node, sql)}"
    )


def _scan_row_clauses_text(sql: str) -> _RowClauses:
    """Plain text search, used when the tokenizer rejects the statement."""
    offset_match = _OFFSET_CLAUSE.search(sql)
    offset_start = offset_match.start() if offset_match else None
    limit_match = _LIMIT_CLAUSE.search(sql) or _FETCH_CLAUSE.search(sql)
    if limit_match is None:
        return _RowClauses(False, None, None, offset_start)
    return _RowClauses(True, int(limit_match.group(1)), limit_match.span(1), offset_start)


class SQLValidator:
    """Validates model-generated SQL for safe single-read execution."""

    def __init__(
        self,
        dialect: str = DEFAULT_DIALECT,
        *,
        max_limit: int = MAX_RESULTS_LIMIT,
        default_limit: int = DEFAULT_LIMIT,
    ) -> None:
        if max_limit <= 0 or default_limit <= 0:
            raise ValueError("Row limits must be positive")
        if default_limit > max_limit:
            raise ValueError("default_limit cannot exceed max_limit")
        self.dialect = dialect
        self.max_limit = max_limit
        self.default_limit = default_limit

    def classify(self, query: str) -> ValidationResult:
        """Parse the query and allow only a single SELECT or CREATE TEMPORARY TABLE."""
        sql = query.strip()
        if not sql:
            return ValidationResult.deny(EMPTY_QUERY_REASON)

        try:
            statements = sqlglot.parse(sql, read=self.dialect)
        except (SqlglotError, RecursionError) as exc:
            # Deeply nested input exhausts the recursive-descent parser.
            # The parser error text quotes the statement, so only its type is logged.
            logger.warning(
                "sql_validator_parse_fallback",
                extra={"dialect": self.dialect, "error_type": type(exc).__name__},
            )
            query_gateway_validation_path_total.labels(path="fallback").inc()
            return self.fallback_validate(sql)

        query_gateway_validation_path_total.labels(path="parser").inc()

        # An empty chunk after a terminator (``SELECT 1;;``) still counts.
        if len(statements) > 1:
            return ValidationResult.deny(MULTIPLE_STATEMENTS_REASON)
        statement = statements[0] if statements else None
        if statement is None:
            return ValidationResult.deny(NO_STATEMENT_REASON)

        if isinstance(statement, exp.Create):
            if str(statement.args.get("kind") or "").upper() != "TABLE":
                return _rejection(statement)
            if _CREATE_TEMP_TABLE.match(sql):
                return ValidationResult.deny(TEMP_SHORTHAND_REASON)
            if not _CREATE_TEMPORARY_TABLE.match(sql):
                return ValidationResult.deny(PERMANENT_TABLE_REASON)
        elif not self._is_select_statement(statement):
            return _rejection(statement, sql)

        nested = self._first_disallowed_node(statement)
        if nested is not None:
            return _rejection(nested)

        return ValidationResult.allow(sql)

    def fallback_validate(self, query: str) -> ValidationResult:
        """Keyword safety net for text sqlglot cannot parse.

        Best-effort only: keywords hidden in comments or string literals are
        not disambiguated.
        """
        sql = query.strip()

        for pattern, operation in FORBIDDEN_PATTERNS:
            if pattern.search(sql):
                return ValidationResult.deny(f"Forbidden operation: {operation}")

        upper_sql = sql.upper()
        if not (
            upper_sql.startswith("SELECT")
            or upper_sql.startswith("WITH")
            or _CREATE_TEMPORARY_TABLE.match(sql)
        ):
            return ValidationResult.deny(FALLBACK_PREFIX_REASON)

        terminators = sql.count(";")
        if terminators > 1 or (terminators == 1 and not sql.endswith(";")):
            return ValidationResult.deny(FALLBACK_MULTIPLE_REASON)

        return ValidationResult.allow(sql)

    def enforce_limit(self, query: str) -> str:
        """Add or clamp the top-level LIMIT so every query has a row ceiling.

        Must only be called on text that passed :meth:`classify`.
        """
        sql = sanitize_sql(query)

        # Column-definition CREATE TEMPORARY TABLE returns no rows.
        if _CREATE_TEMPORARY_TABLE.match(sql) and not _AS_QUERY_BODY.search(sql):
            return sql

        clauses = self._find_row_clauses(sql)
        if clauses.has_limit:
            if clauses.limit_span is not None and (
                clauses.limit_value is None or clauses.limit_value > self.max_limit
            ):
                start, end = clauses.limit_span
                return f"{sql[:start]}{self.max_limit}{sql[end:]}"
            return sql

        if clauses.offset_start is not None:
            start = clauses.offset_start
            return f"{sql[:start]}LIMIT {self.default_limit} {sql[start:]}"

        # A trailing line comment would swallow a same-line LIMIT.
        separator = "\n" if "--" in sql.rsplit("\n", 1)[-1] else " "
        return f"{sql}{separator}LIMIT {self.default_limit}"

    def _find_row_clauses(self, sql: str) -> _RowClauses:
        """Locate LIMIT/FETCH/OFFSET at parenthesis depth zero using sqlglot tokens.

        ``FETCH FIRST n ROWS ONLY`` counts as a LIMIT; PostgreSQL rejects both together.
        """
        try:
            tokens = sqlglot.tokenize(sql, read=self.dialect)
        except TokenError:
            return _scan_row_clauses_text(sql)

        depth = 0
        has_limit = False
        limit_value: int | None = None
        limit_span: tuple[int, int] | None = None
        offset_start: int | None = None

        for index, token in enumerate(tokens):
            if token.token_type == TokenType.L_PAREN:
                depth += 1
            elif token.token_type == TokenType.R_PAREN:
                depth -= 1
            elif depth != 0:
                continue
            elif token.token_type == TokenType.LIMIT:
                has_limit = True
                argument = tokens[index + 1] if index + 1 < len(tokens) else None
                if argument is None:
                    continue
                if argument.token_type == TokenType.NUMBER and argument.text.isdigit():
                    limit_value = int(argument.text)
                    limit_span = (argument.start, argument.start + len(argument.text))
                elif argument.token_type == TokenType.ALL:
                    limit_span = (argument.start, argument.start + len(argument.text))
            elif token.token_type == TokenType.FETCH:
                has_limit = True
                # FETCH {FIRST|NEXT} [n] {ROW|ROWS} ONLY; a missing count means one row.
                argument = tokens[index + 2] if index + 2 < len(tokens) else None
                if (
                    argument is not None
                    and argument.token_type == TokenType.NUMBER
                    and argument.text.isdigit()
                ):
                    limit_value = int(argument.text)
                    limit_span = (argument.start, argument.start + len(argument.text))
            elif token.token_type == TokenType.OFFSET and offset_start is None:
                offset_start = token.start

        return _RowClauses(has_limit, limit_value, limit_span, offset_start)

    @staticmethod
    def _is_select_statement(expression: exp.Expression) -> bool:
        if isinstance(expression, exp.Select | exp.SetOperation):
            return True
        if isinstance(expression, exp.With):
            return isinstance(expression.this, exp.Select | exp.SetOperation)
        return False

    @staticmethod
    def _first_disallowed_node(expression: exp.Expression) -> exp.Expression | None:
        for node in expression.find_all(*_DISALLOWED_NODES):
            if node is not expression:
                return node
        return None


__all__ = [
    "DEFAULT_DIALECT",
    "DEFAULT_LIMIT",
    "FORBIDDEN_PATTERNS",
    "MAX_RESULTS_LIMIT",
    "MULTIPLE_STATEMENTS_REASON",
    "PERMANENT_TABLE_REASON",
    "SQLValidator",
    "TEMP_SHORTHAND_REASON",
    "sanitize_sql",
]
