"""
Stream Event Models

Payloads produced by ``AskPipeline.stream``. A stream is any number of
``delta`` and ``block`` events terminated by exactly one ``done`` or ``error``.
Transport framing (SSE) is left to the caller.
"""

import uuid
from typing import Any, Literal

from pydantic import BaseModel, Field


def new_block_id() -> str:
    return str(uuid.uuid4())


class SqlBlock(BaseModel):
    type: Literal["sql"] = "sql"
    id: str = Field(default_factory=new_block_id)
    sql: str
    tables: list[str] = Field(default_factory=list)
    dialect: str


class DataBlock(BaseModel):
    type: Literal["data"] = "data"
    id: str = Field(default_factory=new_block_id)
    columns: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    total_rows: int = Field(0, serialization_alias="totalRows")


class ChartConfig(BaseModel):
    x_axis: str | None = Field(None, serialization_alias="xAxis")
    y_axis: list[str] = Field(default_factory=list, serialization_alias="yAxis")
    title: str | None = None
    show_legend: bool = Field(True, serialization_alias="showLegend")


class ChartBlock(BaseModel):
    type: Literal["chart"] = "chart"
    id: str = Field(default_factory=new_block_id)
    chart_type: str = Field("bar", serialization_alias="chartType")
    echarts_option: str = Field(..., serialization_alias="echartsOption")
    config: ChartConfig = Field(default_factory=ChartConfig)
    data: list[dict[str, Any]] = Field(default_factory=list)


class ErrorBlock(BaseModel):
    type: Literal["error"] = "error"
    id: str = Field(default_factory=new_block_id)
    code: str
    message: str
    details: str | None = None


Block = SqlBlock | DataBlock | ChartBlock | ErrorBlock


class StreamEvent(BaseModel):
    """One event of the ask stream."""

    event: Literal["delta", "block", "done", "error"]
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def delta(cls, text: str) -> "StreamEvent":
        return cls(event="delta", data={"delta": text})

    @classmethod
    def block(cls, block: Block) -> "StreamEvent":
        return cls(event="block", data={"block": block.model_dump(by_alias=True)})

    @classmethod
    def done(cls, elapsed_ms: int) -> "StreamEvent":
        return cls(event="done", data={"elapsedMs": elapsed_ms})

    @classmethod
    def error(cls, code: str, message: str, details: str | None = None) -> "StreamEvent":
        return cls(event="error", data={"code": code, "message": message, "details": details})
