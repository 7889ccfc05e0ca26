"""Schema search tool."""

from __future__ import annotations

import json
import logging
from typing import Annotated

from sqlagent.models.schema import DatabaseSchema, TableDoc
from sqlagent.tools.base import tool

logger = logging.getLogger(__name__)

MAX_KEYWORDS = 10
DEFAULT_MAX_RESULTS = 20


def search_schema_tables(
    schema: DatabaseSchema, keywords: list[str], max_results: int = DEFAULT_MAX_RESULTS
) -> list[TableDoc]:
    """
    Fuzzy table lookup over name, aliases, description and column names.

    At most ``MAX_KEYWORDS`` keywords are considered and ``max_results`` is
    clamped to 1..100. With no usable keyword the first tables are returned.
    """
    max_results = min(max(int(max_results), 1), 100)
    terms = [kw.strip().lower() for kw in (keywords or [])[:MAX_KEYWORDS] if kw and kw.strip()]
    if not terms:
        return list(schema.tables[:max_results])

    matches: list[TableDoc] = []
    for table in schema.tables:
        haystack = [table.name, table.description, *table.aliases]
        for column in table.columns:
            haystack.extend([column.name, column.description, *column.aliases])
        lowered = " ".join(part.lower() for part in haystack if part)
        if any(term in lowered for term in terms):
            matches.append(table)
            if len(matches) >= max_results:
                break
    return matches


class SchemaSearchTools:
    """Non-terminal schema lookup offered during SQL generation."""

    def __init__(self, schema: DatabaseSchema):
        self.schema = schema
        self.calls = 0

    @tool(
        name="search_tables",
        description="""
        Fuzzy search table names using one or more keywords. Returns a JSON array of
        matching tables with their columns, descriptions and foreign keys.
        Keywords are matched against table names, aliases, descriptions and column names.
        """,
    )
    def search_tables(
        self,
        keywords: Annotated[list[str], "Keywords for fuzzy search (at most 10 are used)"],
        max_results: Annotated[int, "Maximum number of tables to return (1-100)"] = DEFAULT_MAX_RESULTS,
    ) -> str:
        self.calls += 1
        tables = search_schema_tables(self.schema, keywords, max_results)
        logger.debug(
            "search_tables",
            extra={"keywords": keywords, "matches": [table.name for table in tables]},
        )
        return json.dumps([table.to_summary() for table in tables], ensure_ascii=False)
