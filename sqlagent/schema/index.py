"""
Schema Index

Keyword lookup tables and a foreign-key graph built once per loaded schema.

Table keywords come from the table name, its aliases and description
tokens; column keywords from column names, aliases and description tokens.
Tokens are lowercase ``[a-z0-9_]+`` runs of length two or more. Snake-case
names also contribute their parts, and simple plural forms are folded so
"categories" finds a ``category`` column.
"""

import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field

import networkx as nx

from sqlagent.models.schema import DatabaseSchema

logger = logging.getLogger(__name__)

TOKEN = re.compile(r"[a-z0-9_]+")


def tokenize(text: str | None) -> list[str]:
    """Distinct lowercase tokens of length >= 2, in first-seen order."""
    if not text:
        return []
    seen: dict[str, None] = {}
    for token in TOKEN.findall(text.lower()):
        if len(token) >= 2:
            seen.setdefault(token, None)
    return list(seen)


def keyword_variants(token: str) -> set[str]:
    """The token, its snake_case parts, and singular forms of each."""
    variants = {token}
    variants.update(part for part in token.split("_") if len(part) >= 2)
    for value in list(variants):
        if len(value) > 3 and value.endswith("ies"):
            variants.add(value[:-3] + "y")
        elif len(value) > 3 and value.endswith("ses"):
            variants.add(value[:-2])
        elif len(value) > 2 and value.endswith("s") and not value.endswith("ss"):
            variants.add(value[:-1])
    return variants


@dataclass
class SchemaIndex:
    """Keyword -> tables, keyword -> (table, column), and the FK graph."""

    keyword_to_tables: dict[str, set[str]] = field(default_factory=dict)
    keyword_to_columns: dict[str, set[tuple[str, str]]] = field(default_factory=dict)
    graph: nx.Graph = field(default_factory=nx.Graph)

    def neighbors(self, table_name: str) -> list[str]:
        if table_name not in self.graph:
            return []
        return sorted(self.graph.neighbors(table_name))

    def join_path(self, source: str, target: str) -> list[str]:
        """Shortest FK path between two tables, empty when unconnected."""
        try:
            return nx.shortest_path(self.graph, source, target)
        except (nx.NetworkXNoPath, nx.NodeNotFound):
            return []


class SchemaIndexer:
    def build(self, schema: DatabaseSchema) -> SchemaIndex:
        keyword_to_tables: dict[str, set[str]] = defaultdict(set)
        keyword_to_columns: dict[str, set[tuple[str, str]]] = defaultdict(set)
        graph = nx.Graph()

        for table in schema.tables:
            graph.add_node(table.name)
            table_tokens = [table.name.lower(), *(alias.lower() for alias in table.aliases)]
            table_tokens.extend(tokenize(table.description))
            for token in table_tokens:
                for variant in keyword_variants(token):
                    keyword_to_tables[variant].add(table.name)

            for column in table.columns:
                column_tokens = [column.name.lower(), *(alias.lower() for alias in column.aliases)]
                column_tokens.extend(tokenize(column.description))
                for token in column_tokens:
                    for variant in keyword_variants(token):
                        keyword_to_columns[variant].add((table.name, column.name))

            for fk in table.foreign_keys:
                if fk.ref_table and fk.ref_table.strip():
                    graph.add_edge(table.name, fk.ref_table)

        logger.debug(
            "Built schema index",
            extra={
                "tables": len(schema.tables),
                "table_keywords": len(keyword_to_tables),
                "column_keywords": len(keyword_to_columns),
                "edges": graph.number_of_edges(),
            },
        )
        return SchemaIndex(
            keyword_to_tables=dict(keyword_to_tables),
            keyword_to_columns=dict(keyword_to_columns),
            graph=graph,
        )
