"""
Visualization Injector

Chooses the dimension and measure columns of a query result and writes the
rows into a chart-option template produced by the chart generation step.

Column roles come from name and sample-value heuristics:
- identifier-like columns (``id``, ``*_id``, ``uuid``...) never take a role
- the dimension is a short text, categorical or temporal column
- the measure is a numeric column other than the dimension

When the heuristics cannot fill both roles the first two non-identifier
columns are used in declaration order.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

logger = logging.getLogger(__name__)

PLACEHOLDER_ALL = ("{{DATA_PLACEHOLDER}}", "{DATA_PLACEHOLDER}")
PLACEHOLDER_X = ("{{DATA_PLACEHOLDER_X}}", "{DATA_PLACEHOLDER_X}")
PLACEHOLDER_Y = ("{{DATA_PLACEHOLDER_Y}}", "{DATA_PLACEHOLDER_Y}")

MAX_DIMENSION_TEXT_LENGTH = 50

_IDENTIFIER_TOKENS = {"id", "uuid", "guid", "pk"}
_DESCRIPTIVE_TOKENS = {
    "description",
    "desc",
    "comment",
    "comments",
    "note",
    "notes",
    "remark",
    "remarks",
    "content",
    "body",
    "text",
    "details",
    "summary",
    "address",
    "url",
}
_MEASURE_TOKENS = {
    "amount",
    "total",
    "sum",
    "count",
    "avg",
    "average",
    "price",
    "revenue",
    "sales",
    "qty",
    "quantity",
    "value",
    "cost",
    "score",
    "rate",
    "ratio",
    "num",
}


def _tokens(column_name: str) -> list[str]:
    # camelCase -> snake_case before splitting
    snake = re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", column_name)
    return [token for token in re.split(r"[^a-z0-9]+", snake.lower()) if token]


def is_identifier_column(column_name: str) -> bool:
    tokens = _tokens(column_name)
    if not tokens:
        return False
    if column_name.lower() in _IDENTIFIER_TOKENS:
        return True
    return tokens[-1] in _IDENTIFIER_TOKENS


def _is_numeric_value(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float, Decimal)):
        return True
    if isinstance(value, str):
        try:
            float(value)
            return True
        except ValueError:
            return False
    return False


def _is_descriptive(column_name: str, value: Any) -> bool:
    if any(token in _DESCRIPTIVE_TOKENS for token in _tokens(column_name)):
        return True
    return isinstance(value, str) and len(value) > MAX_DIMENSION_TEXT_LENGTH


def _is_dimension_candidate(column_name: str, value: Any) -> bool:
    if _is_descriptive(column_name, value):
        return False
    if isinstance(value, (datetime, date)):
        return True
    if isinstance(value, str):
        return not _is_numeric_value(value)
    if value is None:
        return not any(token in _MEASURE_TOKENS for token in _tokens(column_name))
    return False


def _is_measure_candidate(column_name: str, value: Any) -> bool:
    if _is_numeric_value(value):
        return True
    return value is None and any(token in _MEASURE_TOKENS for token in _tokens(column_name))


def select_chart_columns(
    columns: list[str], sample_row: dict[str, Any] | None
) -> tuple[str | None, str | None]:
    """
    Pick (dimension, measure) for a result set.

    Args:
        columns: Result column names in declaration order
        sample_row: First result row (may be None or empty)

    Returns:
        Tuple of dimension and measure column names, either possibly None
    """
    row = sample_row or {}
    candidates = [column for column in columns if not is_identifier_column(column)]

    dimension = next(
        (column for column in candidates if _is_dimension_candidate(column, row.get(column))),
        None,
    )
    measure = next(
        (
            column
            for column in candidates
            if column != dimension and _is_measure_candidate(column, row.get(column))
        ),
        None,
    )

    if dimension is None or measure is None:
        if len(candidates) >= 2:
            return candidates[0], candidates[1]
        if dimension is None and measure is None and candidates:
            return candidates[0], None
    return dimension, measure


def _to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


@dataclass
class InjectionResult:
    option: str
    dimension: str | None = None
    measure: str | None = None
    diagnostic: str | None = None
    replaced: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.diagnostic is None


def inject_chart_data(
    template: str | None,
    rows: list[dict[str, Any]] | None,
    columns: list[str] | None = None,
) -> InjectionResult:
    """
    Replace data placeholders in a chart-option template with result data.

    Never raises. On failure the unmodified template is returned together
    with a diagnostic message.
    """
    template = template or ""
    if not template.strip():
        logger.warning("Chart injection skipped: empty option template")
        return InjectionResult(option=template, diagnostic="empty chart option template")
    if not rows:
        logger.warning("Chart injection skipped: no rows")
        return InjectionResult(option=template, diagnostic="no rows to inject")

    try:
        column_names = list(columns or rows[0].keys())
        dimension, measure = select_chart_columns(column_names, rows[0])

        result = template
        replaced: list[str] = []
        data_json = _to_json(rows)
        for token in PLACEHOLDER_ALL:
            if token in result:
                result = result.replace(token, data_json)
                replaced.append(token)

        if dimension is not None:
            x_json = _to_json([row.get(dimension) for row in rows])
            for token in PLACEHOLDER_X:
                if token in result:
                    result = result.replace(token, x_json)
                    replaced.append(token)
        if measure is not None:
            y_json = _to_json([row.get(measure) for row in rows])
            for token in PLACEHOLDER_Y:
                if token in result:
                    result = result.replace(token, y_json)
                    replaced.append(token)

        logger.info(
            "Injected chart data",
            extra={"dimension": dimension, "measure": measure, "rows": len(rows)},
        )
        return InjectionResult(
            option=result, dimension=dimension, measure=measure, replaced=replaced
        )
    except Exception as e:
        logger.warning(f"Chart data injection failed: {e}")
        return InjectionResult(option=template, diagnostic=f"injection failed: {e}")


def infer_chart_type(option: str, default: str = "bar") -> str:
    """Type of the first series in a JSON chart option, ``default`` otherwise."""
    try:
        parsed = json.loads(option)
    except (TypeError, ValueError):
        return default
    if not isinstance(parsed, dict):
        return default
    series = parsed.get("series")
    if isinstance(series, dict):
        series = [series]
    if isinstance(series, list) and series and isinstance(series[0], dict):
        chart_type = series[0].get("type")
        if isinstance(chart_type, str) and chart_type:
            return chart_type
    return default
