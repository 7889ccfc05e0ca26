"""
SQL Post-Processor

Normalizes generated SQL before validation:

- statements split on real ``;`` separators (sqlparse), comments stripped,
  separators removed; every statement stays its own list entry
- whitespace outside quoted literals collapsed to single spaces
- placeholders rewritten into one style per dialect: ``@pN`` (named) for
  SQLite, MySQL, SQL Server and unknown dialects, ``$N`` (positional)
  for PostgreSQL

Numbered placeholders (``@p3``, ``:p3``, ``$3``) keep their number; ``?``
placeholders are numbered by their position among ``?`` tokens across all
statements. Quoted string literals are never rewritten. Running the
post-processor twice yields the same result.
"""

import logging
import re
from typing import Any

import sqlparse

from sqlagent.models.ask import GeneratedSql
from sqlagent.prompts.assembler import placeholder_style

logger = logging.getLogger(__name__)

NUMBERED_PLACEHOLDER = re.compile(r"(@p\d+)(?!\w)|(:p\d+)(?!\w)|(\$\d+)(?!\w)|(\?)", re.IGNORECASE)
NAMED_PLACEHOLDER = re.compile(r"(?<![:@\w])[@:]([a-zA-Z_]\w*)")
STRING_LITERAL = re.compile(r"('(?:[^']|'')*'|\"(?:[^\"]|\"\")*\")")
WHITESPACE = re.compile(r"\s+")


def _split_literals(sql: str) -> list[tuple[bool, str]]:
    """Split into (is_literal, text) segments."""
    segments: list[tuple[bool, str]] = []
    position = 0
    for match in STRING_LITERAL.finditer(sql):
        if match.start() > position:
            segments.append((False, sql[position:match.start()]))
        segments.append((True, match.group(0)))
        position = match.end()
    if position < len(sql):
        segments.append((False, sql[position:]))
    return segments


def _lookup(parameters: dict[str, Any], number: int) -> tuple[str, Any] | None:
    for key in (f"p{number}", f"P{number}", str(number)):
        if key in parameters:
            return key, parameters[key]
    return None


def split_statements(sql: str) -> list[str]:
    """Individual statements of ``sql`` without trailing separators or comments."""
    statements: list[str] = []
    for piece in sqlparse.split(sql or ""):
        stripped = sqlparse.format(piece, strip_comments=True).strip().rstrip(";").strip()
        if stripped:
            statements.append(stripped)
    return statements


class SqlPostProcessor:
    """Whitespace, separator and placeholder normalization."""

    def normalize_statements(self, statements: list[str]) -> list[str]:
        normalized: list[str] = []
        for statement in statements:
            for sql in split_statements(statement):
                collapsed = "".join(
                    text if is_literal else WHITESPACE.sub(" ", text)
                    for is_literal, text in _split_literals(sql)
                )
                normalized.append(collapsed.strip())
        return normalized

    def rewrite_placeholders(
        self, statements: list[str], parameters: dict[str, Any], dialect: str | None
    ) -> tuple[list[str], dict[str, Any]]:
        style = placeholder_style(dialect)
        source = {str(key).lstrip("@:$"): value for key, value in parameters.items()}
        rewritten: dict[str, Any] = {}
        consumed: set[str] = set()
        question_marks = 0

        def target_key(number: int) -> str:
            return str(number) if style == "positional" else f"p{number}"

        def replace_numbered(match: re.Match) -> str:
            nonlocal question_marks
            token = match.group(0)
            if token == "?":
                question_marks += 1
                number = question_marks
            else:
                number = int(re.sub(r"\D", "", token))
            found = _lookup(source, number)
            if found:
                consumed.add(found[0])
                rewritten[target_key(number)] = found[1]
            return f"${number}" if style == "positional" else f"@p{number}"

        segmented = [
            [
                (is_literal, text if is_literal else NUMBERED_PLACEHOLDER.sub(replace_numbered, text))
                for is_literal, text in _split_literals(sql)
            ]
            for sql in statements
        ]

        highest = max((int(key) for key in rewritten if key.isdigit()), default=0)
        if style == "positional":
            highest = max(highest, question_marks)
        positions: dict[str, int] = {}

        def replace_named(match: re.Match) -> str:
            nonlocal highest
            name = match.group(1)
            if name not in source or re.fullmatch(r"p\d+", name, re.IGNORECASE):
                return match.group(0)
            consumed.add(name)
            if style == "positional":
                if name not in positions:
                    highest += 1
                    positions[name] = highest
                    rewritten[str(highest)] = source[name]
                return f"${positions[name]}"
            rewritten[name] = source[name]
            return f"@{name}"

        result = [
            "".join(
                text if is_literal else NAMED_PLACEHOLDER.sub(replace_named, text)
                for is_literal, text in segments
            )
            for segments in segmented
        ]

        for key, value in source.items():
            if key not in consumed and key not in rewritten:
                rewritten[key] = value
        return result, rewritten

    def process(self, generated: GeneratedSql, dialect: str | None) -> GeneratedSql:
        statements = self.normalize_statements(generated.statements)
        statements, parameters = self.rewrite_placeholders(
            statements, generated.parameters, dialect
        )
        logger.debug(
            "Post-processed SQL",
            extra={
                "dialect": dialect,
                "statements": len(statements),
                "parameters": sorted(parameters.keys()),
            },
        )
        return generated.model_copy(update={"statements": statements, "parameters": parameters})


def postprocess(generated: GeneratedSql, dialect: str | None) -> GeneratedSql:
    return SqlPostProcessor().process(generated, dialect)
