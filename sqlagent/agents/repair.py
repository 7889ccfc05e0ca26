"""
RepairAgent

One regeneration attempt seeded with the failed SQL and its validation
errors. The caller post-processes and re-validates the result; there is
never a second attempt.
"""

import logging

from sqlagent.agents.sql import SQLAgent
from sqlagent.llm.base import BaseLLMProvider
from sqlagent.llm.models import LLMMessage
from sqlagent.models.agent import RepairAgentInput, SQLAgentInput
from sqlagent.prompts.assembler import PromptAssembler

logger = logging.getLogger(__name__)


class RepairAgent(SQLAgent):
    def __init__(
        self,
        llm_provider: BaseLLMProvider | None = None,
        assembler: PromptAssembler | None = None,
        max_tool_rounds: int | None = None,
        temperature: float | None = None,
    ):
        super().__init__(
            llm_provider=llm_provider,
            assembler=assembler,
            max_tool_rounds=max_tool_rounds,
            temperature=temperature,
            name="RepairAgent",
        )

    def _build_messages(self, input: SQLAgentInput) -> list[LLMMessage]:
        if not isinstance(input, RepairAgentInput):
            return super()._build_messages(input)
        logger.info(
            "Repairing SQL",
            extra={"agent": self.name, "errors": input.report.errors},
        )
        return self.assembler.assemble_repair(
            input.query,
            input.dialect,
            input.schema_context,
            input.allow_write,
            input.failed,
            input.report,
            input.agent_document,
        )
