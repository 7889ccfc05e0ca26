"""
Prompt Assembler

Builds the system and user messages for SQL generation, repair, chart
option generation and knowledge-base documents. Rendering is deterministic:
identical inputs produce identical text.
"""

import json
from dataclasses import dataclass
from typing import Any

from sqlagent.llm.models import LLMMessage
from sqlagent.models.ask import GeneratedSql, ValidationReport
from sqlagent.models.schema import DatabaseSchema, SchemaContext
from sqlagent.prompts.loader import PromptLoader

POSITIONAL_DIALECTS = {"postgres", "postgresql", "pg"}


def placeholder_style(dialect: str | None) -> str:
    """``positional`` ($1) for PostgreSQL, ``named`` (@p1) for everything else."""
    return "positional" if (dialect or "").strip().lower() in POSITIONAL_DIALECTS else "named"


@dataclass(frozen=True)
class AssembledPrompt:
    system: str
    user: str

    def to_messages(self) -> list[LLMMessage]:
        return [
            LLMMessage(role="system", content=self.system),
            LLMMessage(role="user", content=self.user),
        ]


class PromptAssembler:
    def __init__(self, loader: PromptLoader | None = None):
        self.loader = loader or PromptLoader()

    def assemble(
        self,
        question: str,
        dialect: str,
        context: SchemaContext,
        allow_write: bool,
        agent_document: str | None = None,
    ) -> AssembledPrompt:
        system = self.loader.render(
            "sql/generator.md",
            dialect=dialect,
            allow_write=allow_write,
            placeholder_style=placeholder_style(dialect),
            agent_document=(agent_document or "").strip(),
            tables=context.tables,
        )
        return AssembledPrompt(system=system, user=question)

    def assemble_repair(
        self,
        question: str,
        dialect: str,
        context: SchemaContext,
        allow_write: bool,
        failed: GeneratedSql,
        report: ValidationReport,
        agent_document: str | None = None,
    ) -> list[LLMMessage]:
        """Original prompt followed by the failed attempt and its validation errors."""
        base = self.assemble(question, dialect, context, allow_write, agent_document)
        feedback = self.loader.render(
            "sql/repair.md",
            sql="\n".join(failed.statements),
            errors=report.errors,
            warnings=report.warnings,
        )
        return [*base.to_messages(), LLMMessage(role="user", content=feedback)]

    def assemble_chart(
        self,
        question: str,
        dialect: str,
        sql: str,
        columns: list[str],
        sample_rows: list[dict[str, Any]] | None = None,
    ) -> list[LLMMessage]:
        content = self.loader.render(
            "chart/generator.md",
            question=question,
            dialect=dialect,
            sql=sql,
            columns=columns,
            sample_rows=json.dumps(sample_rows[:5], default=str) if sample_rows else "",
        )
        return [LLMMessage(role="user", content=content)]

    def assemble_document(self, schema: DatabaseSchema, dialect: str) -> list[LLMMessage]:
        content = self.loader.render(
            "knowledge/document.md",
            dialect=dialect,
            tables=schema.tables,
        )
        return [
            LLMMessage(role="system", content=content),
            LLMMessage(
                role="user",
                content=f"Generate the knowledge-base document for the '{schema.name or dialect}' database.",
            ),
        ]
