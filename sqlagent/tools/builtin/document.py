"""Knowledge-base document tools: the terminal writer and a think scratchpad."""

from __future__ import annotations

import logging
from typing import Annotated

from sqlagent.tools.base import ToolArgumentError, tool

logger = logging.getLogger(__name__)

DOCUMENT_WRITTEN = "Success: Agent configuration has been written."
EMPTY_DOCUMENT = "Error: Agent content cannot be empty."


class DocumentWriterTools:
    def __init__(self) -> None:
        self.document: str | None = None
        self.thoughts: list[str] = []

    @tool(
        name="write_document",
        terminal=True,
        description="""
        Writes the completed knowledge-base document (Markdown) describing the
        database: table purposes, relationships, important columns and query guidance.
        """,
    )
    def write_document(
        self, content: Annotated[str, "The complete document in Markdown format"]
    ) -> str:
        if not content or not content.strip():
            raise ToolArgumentError(EMPTY_DOCUMENT)
        self.document = content
        return DOCUMENT_WRITTEN

    @tool(
        name="think",
        description="""
        Record structured reasoning about the schema (table purposes, relationships,
        query strategy). Does not fetch new data; the thought is echoed back.
        """,
    )
    def think(self, thought: Annotated[str, "Reasoning to record"]) -> str:
        self.thoughts.append(thought)
        logger.debug("think", extra={"length": len(thought)})
        return thought
