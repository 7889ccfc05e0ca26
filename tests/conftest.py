"""
Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests.
"""

import json
import logging
import sqlite3
from collections.abc import AsyncIterator

import pytest

from sqlagent.llm.base import BaseLLMProvider
from sqlagent.llm.models import (
    LLMRequest,
    LLMResponse,
    LLMStreamChunk,
    LLMToolCall,
    LLMToolCallDelta,
    LLMUsage,
    ModelInfo,
)
from sqlagent.models.schema import ColumnDoc, DatabaseSchema, ForeignKeyDoc, TableDoc

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests (requires API keys and external services)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (may require external services)"
    )
    config.addinivalue_line("markers", "slow: mark test as slow (takes more than 1 second)")
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly enabled."""
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(
        reason="Integration tests disabled (use --run-integration to enable)."
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def configure_test_logging(caplog):
    """Capture logs at DEBUG for every test."""
    caplog.set_level(logging.DEBUG)
    yield


# ============================================================================
# Environment and Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def mock_openai_api_key(monkeypatch):
    """
    Mock OpenAI API key and isolate settings between tests.

    Prevents tests from attempting real API calls or reading a developer .env.
    """
    from sqlagent.config import clear_settings_cache

    clear_settings_cache()
    test_key = "sk-test-key-1234567890-abcdefghijklmnop"
    monkeypatch.setenv("LLM_OPENAI_API_KEY", test_key)
    monkeypatch.setenv("LLM_DEFAULT_PROVIDER", "openai")
    monkeypatch.setenv("CHROMA_ENABLED", "false")
    yield test_key
    clear_settings_cache()


# ============================================================================
# Mock LLM Providers
# ============================================================================


def make_response(
    content: str = "",
    tool_calls: list[LLMToolCall] | None = None,
    total_tokens: int = 10,
) -> LLMResponse:
    return LLMResponse(
        content=content,
        model="mock-model",
        usage=LLMUsage(
            prompt_tokens=total_tokens // 2,
            completion_tokens=total_tokens - total_tokens // 2,
            total_tokens=total_tokens,
        ),
        finish_reason="tool_calls" if tool_calls else "stop",
        provider="mock",
        tool_calls=tool_calls or [],
    )


def tool_call(name: str, arguments: dict | str, call_id: str | None = None) -> LLMToolCall:
    payload = arguments if isinstance(arguments, str) else json.dumps(arguments)
    return LLMToolCall(id=call_id or f"call_{name}", name=name, arguments=payload)


class ScriptedProvider(BaseLLMProvider):
    """
    Provider that replays a fixed list of responses (or exceptions).

    Every request is recorded in ``requests`` for assertions.
    """

    def __init__(self, responses: list[LLMResponse | Exception] | None = None):
        super().__init__(provider_name="scripted")
        self.responses = list(responses or [])
        self.requests: list[LLMRequest] = []
        # False mimics providers that report no usage while streaming
        self.stream_usage = True

    def queue(self, *responses: LLMResponse | Exception) -> "ScriptedProvider":
        self.responses.extend(responses)
        return self

    def queue_tool_call(
        self, name: str, arguments: dict | str, content: str = ""
    ) -> "ScriptedProvider":
        """Queue a response carrying a single tool call."""
        return self.queue_tool_calls((name, arguments), content=content)

    def queue_tool_calls(
        self, *calls: tuple[str, dict | str], content: str = ""
    ) -> "ScriptedProvider":
        """Queue one response carrying several tool calls, in order."""
        offset = len(self.requests) + len(self.responses)
        tool_calls = [
            tool_call(name, arguments, call_id=f"call_{offset}_{position}")
            for position, (name, arguments) in enumerate(calls)
        ]
        return self.queue(make_response(content, tool_calls))

    def queue_text(self, text: str) -> "ScriptedProvider":
        return self.queue(make_response(text))

    async def generate(self, request: LLMRequest) -> LLMResponse:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError("ScriptedProvider ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """Replay the next response as text, then split tool call fragments."""
        response = await self.generate(request)
        if response.content:
            yield LLMStreamChunk(content=response.content)
        for index, call in enumerate(response.tool_calls):
            middle = len(call.arguments) // 2
            yield LLMStreamChunk(
                tool_calls=[
                    LLMToolCallDelta(
                        index=index, id=call.id, name=call.name, arguments=call.arguments[:middle]
                    )
                ]
            )
            yield LLMStreamChunk(
                tool_calls=[LLMToolCallDelta(index=index, arguments=call.arguments[middle:])]
            )
        yield LLMStreamChunk(
            finish_reason=response.finish_reason,
            usage=response.usage if self.stream_usage else None,
            model=response.model,
        )

    def count_tokens(self, text: str) -> int:
        return len(text.split())

    def get_model_info(self, model_name: str | None = None) -> ModelInfo:
        return ModelInfo(
            name=model_name or "mock-model",
            provider="scripted",
            context_window=8000,
            max_output=2000,
        )


@pytest.fixture
def scripted_provider():
    """
    Scripted tool-calling provider.

    Usage:
        def test_agent(scripted_provider):
            scripted_provider.queue_tool_call("write_sql", {"sql": "...", ...})
    """
    return ScriptedProvider()


@pytest.fixture
def mock_llm_provider():
    """
    Mock LLM provider with AsyncMock methods.

    Usage:
        def test_agent(mock_llm_provider):
            mock_llm_provider.generate.return_value = make_response("text")
    """
    from unittest.mock import AsyncMock, MagicMock

    provider = MagicMock(spec=BaseLLMProvider)
    provider.provider_name = "mock"
    provider.generate = AsyncMock(return_value=make_response("mock response"))
    provider.count_tokens = MagicMock(return_value=100)
    return provider


# ============================================================================
# Common Test Data
# ============================================================================


@pytest.fixture
def shop_schema() -> DatabaseSchema:
    """Small commerce schema: customers, products, orders, order_items."""
    return DatabaseSchema(
        name="shop",
        dialect="sqlite",
        tables=[
            TableDoc(
                name="customers",
                aliases=["clients"],
                description="People who place orders",
                columns=[
                    ColumnDoc(name="id", data_type="INTEGER", is_primary_key=True),
                    ColumnDoc(name="name", data_type="TEXT"),
                    ColumnDoc(name="region", data_type="TEXT", description="Sales region"),
                ],
            ),
            TableDoc(
                name="products",
                description="Catalog of items for sale",
                columns=[
                    ColumnDoc(name="id", data_type="INTEGER", is_primary_key=True),
                    ColumnDoc(name="name", data_type="TEXT"),
                    ColumnDoc(name="category", data_type="TEXT", aliases=["segment"]),
                    ColumnDoc(name="price", data_type="REAL"),
                ],
            ),
            TableDoc(
                name="orders",
                description="Customer purchases",
                columns=[
                    ColumnDoc(name="id", data_type="INTEGER", is_primary_key=True),
                    ColumnDoc(name="customer_id", data_type="INTEGER"),
                    ColumnDoc(name="created_at", data_type="TEXT"),
                ],
                foreign_keys=[
                    ForeignKeyDoc(column="customer_id", ref_table="customers", ref_column="id")
                ],
            ),
            TableDoc(
                name="order_items",
                description="Line items with quantity and amount",
                columns=[
                    ColumnDoc(name="id", data_type="INTEGER", is_primary_key=True),
                    ColumnDoc(name="order_id", data_type="INTEGER"),
                    ColumnDoc(name="product_id", data_type="INTEGER"),
                    ColumnDoc(name="quantity", data_type="INTEGER"),
                    ColumnDoc(name="amount", data_type="REAL", description="Sales amount"),
                ],
                foreign_keys=[
                    ForeignKeyDoc(column="order_id", ref_table="orders", ref_column="id"),
                    ForeignKeyDoc(column="product_id", ref_table="products", ref_column="id"),
                ],
            ),
        ],
    )


@pytest.fixture
def shop_db(tmp_path) -> str:
    """
    SQLite file with the shop schema and a few rows.

    Returns the database path.
    """
    path = tmp_path / "shop.db"
    conn = sqlite3.connect(path)
    try:
        conn.executescript(
            """
            CREATE TABLE customers (id INTEGER PRIMARY KEY, name TEXT, region TEXT);
            CREATE TABLE products (id INTEGER PRIMARY KEY, name TEXT, category TEXT, price REAL);
            CREATE TABLE orders (
                id INTEGER PRIMARY KEY,
                customer_id INTEGER REFERENCES customers(id),
                created_at TEXT
            );
            CREATE TABLE order_items (
                id INTEGER PRIMARY KEY,
                order_id INTEGER REFERENCES orders(id),
                product_id INTEGER REFERENCES products(id),
                quantity INTEGER,
                amount REAL
            );
            INSERT INTO customers VALUES (1, 'Ada', 'EU'), (2, 'Grace', 'US');
            INSERT INTO products VALUES
                (1, 'Novel', 'Books', 12.0),
                (2, 'Laptop', 'Electronics', 900.0),
                (3, 'Chair', 'Furniture', 80.0),
                (4, 'Pen', 'Stationery', 2.0),
                (5, 'Lamp', 'Lighting', 30.0),
                (6, 'Mug', 'Kitchen', 8.0);
            INSERT INTO orders VALUES (1, 1, '2024-01-05'), (2, 2, '2024-02-11');
            INSERT INTO order_items VALUES
                (1, 1, 1, 2, 24.0),
                (2, 1, 2, 1, 900.0),
                (3, 2, 3, 2, 160.0),
                (4, 2, 4, 10, 20.0),
                (5, 2, 5, 1, 30.0),
                (6, 1, 6, 3, 24.0);
            """
        )
        conn.commit()
    finally:
        conn.close()
    return str(path)
