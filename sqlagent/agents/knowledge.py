"""
KnowledgeAgent

Writes the per-connection knowledge-base document from the full schema.
The model may call ``think`` as a scratchpad any number of times and must
finish with the terminal ``write_document`` tool.
"""

import logging

from sqlagent.agents.base import BaseAgent
from sqlagent.config import get_settings
from sqlagent.llm.base import BaseLLMProvider
from sqlagent.llm.factory import LLMProviderFactory
from sqlagent.models.agent import (
    KnowledgeAgentInput,
    KnowledgeAgentOutput,
    SQLGenerationError,
)
from sqlagent.prompts.assembler import PromptAssembler
from sqlagent.tools.builtin.document import DocumentWriterTools

logger = logging.getLogger(__name__)


class KnowledgeAgent(BaseAgent):
    def __init__(
        self,
        llm_provider: BaseLLMProvider | None = None,
        assembler: PromptAssembler | None = None,
    ):
        config = get_settings()
        super().__init__(
            name="KnowledgeAgent",
            llm_provider=llm_provider or LLMProviderFactory.create_build_provider(config.llm),
            max_tool_rounds=config.build.max_tool_rounds,
            temperature=config.build.temperature,
            max_tokens=config.build.max_tokens,
        )
        self.assembler = assembler or PromptAssembler()

    async def execute(self, input: KnowledgeAgentInput) -> KnowledgeAgentOutput:
        messages = self.assembler.assemble_document(input.database_schema, input.dialect)
        writer = DocumentWriterTools()
        await self._run_generation(messages, writer)
        if not writer.document:
            raise SQLGenerationError(
                agent=self.name,
                message="Terminal write_document call did not produce a document",
            )

        logger.info(
            "Knowledge document generated",
            extra={
                "agent": self.name,
                "tables": len(input.database_schema.tables),
                "thoughts": len(writer.thoughts),
            },
        )
        return KnowledgeAgentOutput(
            success=True,
            data={"length": len(writer.document)},
            metadata=self._metadata,
            document=writer.document,
        )
