"""
ChartAgent

Second, narrower generation for chart-producing statements: the model sees
the SQL, its columns and a few sample rows, and must call the terminal
``write_chart_option`` tool with an ECharts option containing data
placeholders. Data is injected later by the visualization injector.
"""

import logging

from sqlagent.agents.base import BaseAgent
from sqlagent.config import get_settings
from sqlagent.llm.base import BaseLLMProvider
from sqlagent.llm.factory import LLMProviderFactory
from sqlagent.models.agent import ChartAgentInput, ChartAgentOutput, SQLGenerationError
from sqlagent.prompts.assembler import PromptAssembler
from sqlagent.tools.builtin.chart import ChartWriterTools

logger = logging.getLogger(__name__)


class ChartAgent(BaseAgent):
    def __init__(
        self,
        llm_provider: BaseLLMProvider | None = None,
        assembler: PromptAssembler | None = None,
        max_tool_rounds: int | None = None,
        temperature: float | None = None,
    ):
        config = get_settings()
        super().__init__(
            name="ChartAgent",
            llm_provider=llm_provider
            or LLMProviderFactory.create_default_provider(config.llm),
            max_tool_rounds=max_tool_rounds or config.ask.max_tool_rounds,
            temperature=config.ask.chart_temperature if temperature is None else temperature,
        )
        self.assembler = assembler or PromptAssembler()

    async def execute(self, input: ChartAgentInput) -> ChartAgentOutput:
        messages = self.assembler.assemble_chart(
            input.query,
            input.dialect,
            input.sql,
            input.columns,
            input.sample_rows,
        )
        writer = ChartWriterTools()
        await self._run_generation(messages, writer)
        if writer.option is None:
            raise SQLGenerationError(
                agent=self.name,
                message="Terminal write_chart_option call did not produce an option",
            )

        logger.info("Chart option generated", extra={"agent": self.name, "length": len(writer.option)})
        return ChartAgentOutput(
            success=True,
            data={"option_length": len(writer.option)},
            metadata=self._metadata,
            option=writer.option,
        )
