"""Tests for KnowledgeAgent."""

import pytest

from sqlagent.agents.knowledge import KnowledgeAgent
from sqlagent.models.agent import KnowledgeAgentInput, SQLGenerationError

DOCUMENT = "# Shop\n\norders belong to customers; order_items.amount holds sales."


@pytest.fixture
def knowledge_input(shop_schema):
    return KnowledgeAgentInput(
        query="Document the shop database", dialect="sqlite", database_schema=shop_schema
    )


class TestKnowledgeAgent:
    @pytest.mark.asyncio
    async def test_think_then_write(self, scripted_provider, knowledge_input):
        scripted_provider.queue_tool_call("think", {"thought": "order_items joins products"})
        scripted_provider.queue_tool_call("write_document", {"content": DOCUMENT})

        output = await KnowledgeAgent(llm_provider=scripted_provider)(knowledge_input)

        assert output.document == DOCUMENT
        assert output.metadata.llm_calls == 2
        system = scripted_provider.requests[0].messages[0].content
        assert "order_items" in system
        assert "'shop' database" in scripted_provider.requests[0].messages[1].content
        # the thought is echoed back to the model
        assert scripted_provider.requests[1].messages[-1].content == "order_items joins products"

    @pytest.mark.asyncio
    async def test_empty_document_is_rejected(self, scripted_provider, knowledge_input):
        scripted_provider.queue_tool_call("write_document", {"content": ""})
        scripted_provider.queue_tool_call("write_document", {"content": DOCUMENT})

        output = await KnowledgeAgent(llm_provider=scripted_provider)(knowledge_input)

        assert output.document == DOCUMENT
        assert scripted_provider.requests[1].messages[-1].content.startswith("Error: Agent content")

    @pytest.mark.asyncio
    async def test_text_only(self, scripted_provider, knowledge_input):
        scripted_provider.queue_text("Here is your document")

        with pytest.raises(SQLGenerationError):
            await KnowledgeAgent(llm_provider=scripted_provider)(knowledge_input)
