"""Terminal chart option writing tool."""

from __future__ import annotations

from typing import Annotated

from sqlagent.tools.base import ToolArgumentError, tool

CHART_WRITTEN = "The Echarts option has been written and completed."


class ChartWriterTools:
    def __init__(self) -> None:
        self.option: str | None = None

    @tool(
        name="write_chart_option",
        terminal=True,
        description="""
        Writes the generated ECharts option as a JSON document. Use the data
        placeholders ({{DATA_PLACEHOLDER}}, {{DATA_PLACEHOLDER_X}}, {{DATA_PLACEHOLDER_Y}})
        where query results must be injected.
        """,
    )
    def write_chart_option(
        self, option: Annotated[str, "Complete ECharts option JSON with data placeholders"]
    ) -> str:
        if not option or not option.strip():
            raise ToolArgumentError("ERROR: 'option' cannot be empty.")
        self.option = option
        return CHART_WRITTEN
