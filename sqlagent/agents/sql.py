"""
SQLAgent

Generates SQL for a question through a tool-calling session.

The SQLAgent:
1. Builds the system prompt from dialect, schema context, read/write mode
   and the stored knowledge-base document
2. Offers the model ``search_tables`` (any number of lookups) and the
   terminal ``write_sql`` tool
3. Returns the written statement; free text alone or a missing write is a
   generation error, never fabricated SQL
"""

import logging

from sqlagent.agents.base import BaseAgent
from sqlagent.config import get_settings
from sqlagent.llm.base import BaseLLMProvider
from sqlagent.llm.factory import LLMProviderFactory
from sqlagent.llm.models import LLMMessage
from sqlagent.models.agent import (
    SQLAgentInput,
    SQLAgentOutput,
    SQLGenerationError,
)
from sqlagent.models.ask import GeneratedSql
from sqlagent.prompts.assembler import PromptAssembler
from sqlagent.sql.validator import extract_tables
from sqlagent.tools.builtin.schema import SchemaSearchTools
from sqlagent.tools.builtin.sql import SqlWriterTools

logger = logging.getLogger(__name__)


class SQLAgent(BaseAgent):
    """
    SQL generation agent.

    Usage:
        agent = SQLAgent()
        output = await agent(
            SQLAgentInput(
                query="top 5 categories by sales",
                dialect="sqlite",
                schema_context=context,
                database_schema=schema,
            )
        )
        output.generated.statements
    """

    def __init__(
        self,
        llm_provider: BaseLLMProvider | None = None,
        assembler: PromptAssembler | None = None,
        max_tool_rounds: int | None = None,
        temperature: float | None = None,
        name: str = "SQLAgent",
    ):
        config = get_settings()
        super().__init__(
            name=name,
            llm_provider=llm_provider
            or LLMProviderFactory.create_default_provider(config.llm),
            max_tool_rounds=max_tool_rounds or config.ask.max_tool_rounds,
            temperature=config.ask.sql_temperature if temperature is None else temperature,
        )
        self.assembler = assembler or PromptAssembler()

    async def execute(self, input: SQLAgentInput) -> SQLAgentOutput:
        messages = self._build_messages(input)
        generated = await self._generate(messages, input)
        return SQLAgentOutput(
            success=True,
            data={"sql": generated.statements, "execute_type": generated.execute_type.value},
            metadata=self._metadata,
            generated=generated,
        )

    def _build_messages(self, input: SQLAgentInput) -> list[LLMMessage]:
        prompt = self.assembler.assemble(
            input.query,
            input.dialect,
            input.schema_context,
            input.allow_write,
            input.agent_document,
        )
        return prompt.to_messages()

    async def _generate(self, messages: list[LLMMessage], input: SQLAgentInput) -> GeneratedSql:
        writer = SqlWriterTools()
        search = SchemaSearchTools(input.database_schema)
        await self._run_generation(messages, search, writer, on_text=input.on_text)

        if writer.result is None:
            # The session only returns after an accepted write
            raise SQLGenerationError(
                agent=self.name,
                message="Terminal write_sql call did not produce a statement",
            )

        generated = writer.result
        if not generated.tables:
            tables: list[str] = []
            for statement in generated.statements:
                for table in extract_tables(statement):
                    if table not in tables:
                        tables.append(table)
            generated = generated.model_copy(update={"tables": tables})

        logger.info(
            "SQL generated",
            extra={
                "agent": self.name,
                "execute_type": generated.execute_type.value,
                "tables": generated.tables,
                "search_calls": search.calls,
            },
        )
        return generated
