"""
SQL Validator

Pattern-based safety gate applied to every generated statement:

- statements split on real separators and classified one by one by
  leading keyword
- read-only policy: only SELECT / EXPLAIN SELECT, no forbidden keywords
- write policy: UPDATE and DELETE require a WHERE clause
- advisory warnings for SELECT (``SELECT *``, missing WHERE, missing LIMIT)
- touched-table extraction from FROM / JOIN; tables outside the schema
  context produce warnings, never errors
"""

import logging
import re

from sqlagent.models.ask import ValidationReport
from sqlagent.models.schema import SchemaContext
from sqlagent.sql.postprocess import split_statements

logger = logging.getLogger(__name__)

FORBIDDEN_KEYWORDS = ("insert", "update", "delete", "drop", "alter", "truncate")

WRITE_ALLOWED = re.compile(
    r"^\s*(explain\s+)?(select|insert|update|delete|create\s+table|drop\s+table|alter\s+table)\b"
)
READ_ALLOWED = re.compile(r"^\s*(explain\s+)?select\b")
IS_UPDATE = re.compile(r"^\s*update\b")
IS_DELETE = re.compile(r"^\s*delete\b")
HAS_WHERE = re.compile(r"\bwhere\b")
HAS_LIMIT = re.compile(r"\blimit\b")
HAS_GROUP_BY = re.compile(r"\bgroup\s+by\b")
SELECT_STAR = re.compile(r"select\s+\*")
TOKEN = re.compile(r"[a-z0-9_]+")

# Tokens that can follow FROM/JOIN without naming a table
NON_TABLE_TOKENS = {"select", "lateral", "unnest", "only"}

UNSUPPORTED_WRITE = (
    "Unsupported SQL statement type. "
    "Allowed: SELECT/INSERT/UPDATE/DELETE/CREATE TABLE/ALTER TABLE/DROP TABLE."
)
READ_ONLY = "Only SELECT/EXPLAIN SELECT queries are allowed (read-only mode)."
UNSAFE_WRITE = "Unsafe write: UPDATE/DELETE without WHERE is not allowed."
SELECT_STAR_WARNING = "SELECT * detected; consider projecting explicit columns."
NO_WHERE_WARNING = (
    "No WHERE clause; consider adding filters (e.g., created_at >= ...) to reduce scan size."
)
NO_LIMIT_WARNING = "No LIMIT found; consider adding LIMIT or pagination for large result sets."


def extract_tables(sql: str) -> list[str]:
    """Lowercased table names following FROM or JOIN, first occurrence order."""
    tokens = TOKEN.findall(sql.lower())
    tables: list[str] = []
    for current, following in zip(tokens, tokens[1:]):
        if current in ("from", "join") and following not in NON_TABLE_TOKENS:
            if following not in tables:
                tables.append(following)
    return tables


class SqlValidator:
    """Validates post-processed statements against the read/write policy."""

    def _check_statement(
        self, lowered: str, allow_write: bool, errors: list[str], warnings: list[str]
    ) -> None:
        allowed = WRITE_ALLOWED if allow_write else READ_ALLOWED
        if not allowed.search(lowered):
            errors.append(UNSUPPORTED_WRITE if allow_write else READ_ONLY)

        if not allow_write:
            for keyword in FORBIDDEN_KEYWORDS:
                if re.search(rf"\b{keyword}\b", lowered):
                    errors.append(f"Statement contains forbidden keyword: {keyword}.")

        if READ_ALLOWED.search(lowered):
            if SELECT_STAR.search(lowered):
                warnings.append(SELECT_STAR_WARNING)
            if not HAS_WHERE.search(lowered) and not HAS_GROUP_BY.search(lowered):
                warnings.append(NO_WHERE_WARNING)
            if not HAS_LIMIT.search(lowered):
                warnings.append(NO_LIMIT_WARNING)
        elif allow_write and (IS_UPDATE.search(lowered) or IS_DELETE.search(lowered)):
            if not HAS_WHERE.search(lowered):
                errors.append(UNSAFE_WRITE)

    def validate(
        self, statements: list[str], context: SchemaContext, allow_write: bool
    ) -> ValidationReport:
        warnings: list[str] = []
        errors: list[str] = []
        split = [sql for statement in statements for sql in split_statements(statement)]

        if not split:
            errors.append(UNSUPPORTED_WRITE if allow_write else READ_ONLY)
        for sql in split:
            self._check_statement(sql.lower(), allow_write, errors, warnings)

        touched: list[str] = []
        for sql in split:
            for table in extract_tables(sql):
                if table not in touched:
                    touched.append(table)
        for table in touched:
            if not context.contains(table):
                warnings.append(f"Table '{table}' not in retrieved SchemaContext.")

        errors = list(dict.fromkeys(errors))
        warnings = list(dict.fromkeys(warnings))
        is_valid = not errors
        report = ValidationReport(
            is_valid=is_valid,
            warnings=warnings,
            errors=errors,
            touched_tables=touched,
            confidence="medium" if is_valid else "low",
        )
        logger.debug(
            "Validated SQL",
            extra={
                "is_valid": is_valid,
                "errors": len(errors),
                "warnings": len(warnings),
                "touched_tables": touched,
            },
        )
        return report


def validate(statements: list[str], context: SchemaContext, allow_write: bool) -> ValidationReport:
    return SqlValidator().validate(statements, context, allow_write)
