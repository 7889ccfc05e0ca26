"""Tool system base types and decorator."""

from __future__ import annotations

import inspect
import logging
import types
from collections.abc import Callable
from typing import Annotated, Any, Literal, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel, Field
from pydantic.fields import FieldInfo

from sqlagent.llm.models import LLMToolSpec

logger = logging.getLogger(__name__)
NONE_TYPE = type(None)
TOOL_ATTRIBUTE = "__tool_definition__"


class ToolDefinition(BaseModel):
    name: str
    description: str
    parameters_schema: dict[str, Any]
    terminal: bool = Field(
        default=False,
        description="Calling this tool ends the generation session",
    )

    def to_spec(self) -> LLMToolSpec:
        return LLMToolSpec(
            name=self.name,
            description=self.description,
            parameters=self.parameters_schema,
        )


class ToolInvocation(BaseModel):
    """Result of executing one tool call, fed back to the model."""

    call_id: str
    name: str
    content: str
    is_error: bool = False
    terminal: bool = False


def _extract_parameters_schema(func: Callable[..., Any]) -> dict[str, Any]:
    signature = inspect.signature(func)
    type_hints = get_type_hints(func, include_extras=True)
    properties: dict[str, Any] = {}
    required: list[str] = []

    for name, param in signature.parameters.items():
        if name in ("self", "ctx", "context"):
            continue
        resolved_annotation = type_hints.get(name, param.annotation)
        param_schema = _annotation_to_json_schema(resolved_annotation)
        if param.default is inspect.Parameter.empty:
            required.append(name)
        else:
            if param.default is None:
                param_schema = _ensure_nullable(param_schema)
            else:
                param_schema["default"] = param.default
        properties[name] = param_schema

    return {
        "type": "object",
        "properties": properties,
        "required": required,
        "additionalProperties": False,
    }


def _annotation_to_json_schema(annotation: Any) -> dict[str, Any]:
    if annotation is inspect.Parameter.empty or annotation is Any:
        return {}

    origin = get_origin(annotation)
    if origin is Annotated:
        base, *extras = get_args(annotation)
        schema = _annotation_to_json_schema(base)
        for extra in extras:
            if isinstance(extra, str):
                schema["description"] = extra
            elif isinstance(extra, FieldInfo) and extra.description:
                schema["description"] = extra.description
        return schema
    if origin is not None:
        return _origin_to_schema(origin, get_args(annotation))

    if annotation is bool:
        return {"type": "boolean"}
    if annotation is int:
        return {"type": "integer"}
    if annotation is float:
        return {"type": "number"}
    if annotation is str:
        return {"type": "string"}
    if annotation is dict:
        return {"type": "object", "additionalProperties": True}
    if annotation in (list, tuple, set, frozenset):
        return {"type": "array", "items": {}}
    if annotation is NONE_TYPE:
        return {"type": "null"}

    if inspect.isclass(annotation):
        if issubclass(annotation, BaseModel):
            schema = annotation.model_json_schema()
            schema.pop("title", None)
            return schema
        if issubclass(annotation, str) and hasattr(annotation, "__members__"):
            return {"type": "string", "enum": [member.value for member in annotation]}

    return {"type": "string"}


def _origin_to_schema(origin: Any, args: tuple[Any, ...]) -> dict[str, Any]:
    if origin is Literal:
        values = list(args)
        schema: dict[str, Any] = {"enum": values}
        if values and all(isinstance(value, str) for value in values):
            schema["type"] = "string"
        elif values and all(isinstance(value, int) for value in values):
            schema["type"] = "integer"
        return schema

    if origin in (list, tuple, set, frozenset):
        item_schema = _annotation_to_json_schema(args[0]) if args else {}
        return {"type": "array", "items": item_schema}

    if origin is dict:
        value_schema = _annotation_to_json_schema(args[1]) if len(args) > 1 else {}
        return {"type": "object", "additionalProperties": value_schema or True}

    if origin in (Union, types.UnionType):
        return _union_to_schema(args)

    return _annotation_to_json_schema(origin)


def _union_to_schema(args: tuple[Any, ...]) -> dict[str, Any]:
    non_none = [arg for arg in args if arg is not NONE_TYPE]
    has_none = len(non_none) != len(args)
    if len(non_none) == 1:
        base_schema = _annotation_to_json_schema(non_none[0])
        return _ensure_nullable(base_schema) if has_none else base_schema
    variants = [_annotation_to_json_schema(arg) for arg in non_none]
    if has_none:
        variants.append({"type": "null"})
    return {"anyOf": variants}


def _ensure_nullable(schema: dict[str, Any]) -> dict[str, Any]:
    if not schema:
        return {"anyOf": [{}, {"type": "null"}]}
    if schema.get("type") == "null":
        return schema
    if "anyOf" in schema:
        variants = schema["anyOf"]
        if not any(variant.get("type") == "null" for variant in variants if isinstance(variant, dict)):
            return {**schema, "anyOf": [*variants, {"type": "null"}]}
        return schema
    description = schema.pop("description", None)
    nullable: dict[str, Any] = {"anyOf": [schema, {"type": "null"}]}
    if description:
        nullable["description"] = description
    return nullable


def tool(name: str, description: str, terminal: bool = False):
    """
    Mark a function or method as a model-callable tool.

    The definition is attached to the function; a ``ToolRegistry`` collects
    it when the owning object is registered.
    """

    def decorator(func: Callable[..., Any]):
        definition = ToolDefinition(
            name=name,
            description=description.strip(),
            parameters_schema=_extract_parameters_schema(func),
            terminal=terminal,
        )
        setattr(func, TOOL_ATTRIBUTE, definition)
        return func

    return decorator


def get_tool_definition(func: Callable[..., Any]) -> ToolDefinition | None:
    return getattr(func, TOOL_ATTRIBUTE, None)


class ToolArgumentError(Exception):
    """Raised by a tool handler when the model supplied unusable arguments."""
