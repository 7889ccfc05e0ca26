"""
Ask Pipeline

LangGraph state machine turning a question plus a connection id into a
validated, parameterized SQL result:

    resolve -> (cached? -> replay) -> generate -> validate -> [repair]
            -> execute -> [chart] -> finalize

- resolve: connection lookup, dialect choice, schema load, index build,
  context retrieval, cache lookup
- validate: post-processing and the safety gate
- repair: one regeneration when validation fails, then re-validation
- execute: sandboxed execution when requested and valid
- chart: chart-option generation and data injection for EChart statements

Configuration errors (missing connection id or manager, unknown or disabled
connection) and generation protocol errors propagate to the caller.
Validation, execution and chart failures are reported as warnings.
"""

import asyncio
import inspect
import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TypedDict

from langgraph.graph import END, StateGraph

from sqlagent.agents.chart import ChartAgent
from sqlagent.agents.repair import RepairAgent
from sqlagent.agents.sql import SQLAgent
from sqlagent.cache import SemanticCache, make_cache_key
from sqlagent.config import get_settings
from sqlagent.connections.manager import ConnectionManager
from sqlagent.execution.sandbox import ExecutorSandbox, is_read_statement
from sqlagent.llm.base import BaseLLMProvider
from sqlagent.llm.factory import LLMProviderFactory
from sqlagent.models import (
    AgentError,
    AskOptions,
    ChartAgentInput,
    ChartBlock,
    ChartConfig,
    ConfigurationError,
    ConnectionRecord,
    DatabaseSchema,
    DataBlock,
    ErrorBlock,
    ExecuteType,
    ExecutionOutcome,
    GeneratedSql,
    RepairAgentInput,
    SchemaContext,
    SqlBlock,
    SQLAgentInput,
    SQLGenerationError,
    SqlResult,
    StreamEvent,
    ValidationReport,
)
from sqlagent.schema.index import SchemaIndexer
from sqlagent.schema.provider import ConnectorSchemaProvider, SchemaProvider
from sqlagent.schema.retriever import KeywordRetriever, SchemaRetriever, VectorRetriever
from sqlagent.sql.postprocess import SqlPostProcessor
from sqlagent.sql.validator import SqlValidator
from sqlagent.visualization.injector import infer_chart_type, inject_chart_data

logger = logging.getLogger(__name__)

EventSink = Callable[[StreamEvent], Awaitable[None] | None]


# ============================================================================
# Pipeline State Schema
# ============================================================================


class AskState(TypedDict, total=False):
    # Input
    question: str
    options: AskOptions
    sink: EventSink | None

    # Resolution
    connection: ConnectionRecord
    dialect: str
    database_schema: DatabaseSchema
    schema_context: SchemaContext
    cache_key: str
    cached_result: SqlResult | None
    claims: list[str]

    # Generation and validation
    generated: GeneratedSql
    validation: ValidationReport
    repair_attempted: bool

    # Execution
    execution: ExecutionOutcome | None
    chart_option: str | None
    warnings: list[str]

    # Output
    result: SqlResult
    llm_calls: int
    agent_timings: dict[str, float]


def build_explanation(question: str, context: SchemaContext, confidence: str) -> str:
    return (
        f"Question: {question}\n"
        f"Used tables: {', '.join(context.table_names())}\n"
        f"Confidence: {confidence}"
    )


def error_code_for(error: BaseException) -> str:
    if isinstance(error, ConfigurationError):
        return "configuration_error"
    if isinstance(error, SQLGenerationError):
        return "generation_error"
    if isinstance(error, AgentError):
        return "agent_error"
    if isinstance(error, (ValueError, RuntimeError)):
        return "invalid_request"
    return "internal_error"


def halts_execution(outcome: ExecutionOutcome) -> bool:
    """True when later statements must not run (failure or no sandbox)."""
    return any(
        warning.startswith(("execution:", "execution disabled")) for warning in outcome.warnings
    )


def merge_outcomes(outcomes: list[ExecutionOutcome]) -> ExecutionOutcome | None:
    """
    Combine per-statement outcomes into the one reported for the ask.

    Rows and columns come from the last statement that returned rows;
    affected-row counts are summed; previews and warnings are concatenated
    in statement order.
    """
    if not outcomes:
        return None
    if len(outcomes) == 1:
        return outcomes[0]

    with_rows = [outcome for outcome in outcomes if outcome.columns and not outcome.is_plan]
    affected = [outcome.affected_rows for outcome in outcomes if outcome.affected_rows is not None]
    last_rows = with_rows[-1] if with_rows else None
    return ExecutionOutcome(
        columns=last_rows.columns if last_rows else [],
        rows=last_rows.rows if last_rows else [],
        total_rows=last_rows.total_rows if last_rows else None,
        affected_rows=sum(affected) if affected else None,
        preview="\n".join(outcome.preview for outcome in outcomes if outcome.preview),
        warnings=[warning for outcome in outcomes for warning in outcome.warnings],
        is_plan=all(outcome.is_plan for outcome in outcomes),
    )


def chart_statement(statements: list[str]) -> str:
    """The read statement whose rows feed the chart (the last one)."""
    reads = [sql for sql in statements if is_read_statement(sql)]
    return reads[-1] if reads else statements[0]


class AskPipeline:
    """
    Text-to-SQL ask pipeline.

    Usage:
        pipeline = AskPipeline(connection_manager=manager, llm_provider=provider)
        result = await pipeline.ask(
            "top 5 categories by sales",
            AskOptions(connection_id="shop", execute=True),
        )

        # Or with streaming:
        async for event in pipeline.stream("revenue by region", options):
            print(event.event, event.data)
    """

    def __init__(
        self,
        connection_manager: ConnectionManager | None = None,
        schema_provider: SchemaProvider | None = None,
        llm_provider: BaseLLMProvider | None = None,
        retriever: SchemaRetriever | None = None,
        cache: SemanticCache | None = None,
        sandbox: ExecutorSandbox | None = None,
        sql_agent: SQLAgent | None = None,
        repair_agent: RepairAgent | None = None,
        chart_agent: ChartAgent | None = None,
        repair_enabled: bool | None = None,
        cache_enabled: bool | None = None,
    ):
        self.config = get_settings()
        self.connection_manager = connection_manager
        self.schema_provider = schema_provider or ConnectorSchemaProvider()
        self.indexer = SchemaIndexer()
        self.retriever = retriever or KeywordRetriever()
        self.post_processor = SqlPostProcessor()
        self.validator = SqlValidator()
        self.sandbox = sandbox or ExecutorSandbox()
        # Cache keys with a generation in flight; identical asks wait on these
        self._inflight: dict[str, asyncio.Future] = {}

        use_cache = self.config.ask.cache_enabled if cache_enabled is None else cache_enabled
        self.cache = (
            (cache or SemanticCache(ttl_seconds=self.config.ask.cache_ttl_seconds))
            if use_cache
            else None
        )

        if llm_provider is None and not (sql_agent and chart_agent):
            llm_provider = LLMProviderFactory.create_default_provider(self.config.llm)
        self.sql_agent = sql_agent or SQLAgent(llm_provider=llm_provider)
        self.chart_agent = chart_agent or ChartAgent(llm_provider=llm_provider)

        use_repair = self.config.ask.repair_enabled if repair_enabled is None else repair_enabled
        if use_repair:
            self.repair_agent = repair_agent or RepairAgent(
                llm_provider=llm_provider or self.sql_agent.llm
            )
        else:
            self.repair_agent = None

        self.graph = self._build_graph()
        logger.info(
            "AskPipeline initialized",
            extra={
                "retriever": type(self.retriever).__name__,
                "cache": self.cache is not None,
                "repair": self.repair_agent is not None,
            },
        )

    def _build_graph(self):
        workflow = StateGraph(AskState)

        workflow.add_node("resolve", self._run_resolve)
        workflow.add_node("replay", self._run_replay)
        workflow.add_node("generate", self._run_generate)
        workflow.add_node("validate", self._run_validate)
        workflow.add_node("repair", self._run_repair)
        workflow.add_node("execute", self._run_execute)
        workflow.add_node("chart", self._run_chart)
        workflow.add_node("finalize", self._run_finalize)

        workflow.set_entry_point("resolve")
        workflow.add_conditional_edges(
            "resolve",
            self._route_after_resolve,
            {"replay": "replay", "generate": "generate"},
        )
        workflow.add_edge("replay", END)
        workflow.add_edge("generate", "validate")
        workflow.add_conditional_edges(
            "validate",
            self._route_after_validate,
            {"repair": "repair", "execute": "execute"},
        )
        workflow.add_edge("repair", "execute")
        workflow.add_conditional_edges(
            "execute",
            self._route_after_execute,
            {"chart": "chart", "finalize": "finalize"},
        )
        workflow.add_edge("chart", "finalize")
        workflow.add_edge("finalize", END)

        return workflow.compile()

    # ========================================================================
    # Nodes
    # ========================================================================

    async def _run_resolve(self, state: AskState) -> AskState:
        options = state["options"]
        question = state["question"]
        start_time = time.perf_counter()

        connection = await self._get_connection(options.connection_id)
        schema = await self.schema_provider.load(connection)
        dialect = options.dialect or connection.database_type or schema.dialect
        index = self.indexer.build(schema)
        context = await self.retriever.retrieve(
            question, schema, index, options.top_k, connection_id=connection.id
        )

        cache_key = make_cache_key(dialect, connection.id, question, context.table_names())
        cached = await self._lookup_or_claim(cache_key, state["claims"]) if self.cache else None

        state["agent_timings"]["resolve"] = (time.perf_counter() - start_time) * 1000
        logger.info(
            "Resolved ask context",
            extra={
                "connection_id": connection.id,
                "dialect": dialect,
                "tables": context.table_names(),
                "cache_hit": cached is not None,
            },
        )
        return {
            "connection": connection,
            "dialect": dialect,
            "database_schema": schema,
            "schema_context": context,
            "cache_key": cache_key,
            "cached_result": cached,
        }

    async def _run_replay(self, state: AskState) -> AskState:
        result = state["cached_result"]
        await self._emit_result_blocks(state, result)
        return {"result": result}

    async def _run_generate(self, state: AskState) -> AskState:
        start_time = time.perf_counter()
        output = await self.sql_agent(
            SQLAgentInput(
                query=state["question"],
                context={"connection_id": state["connection"].id},
                dialect=state["dialect"],
                schema_context=state["schema_context"],
                database_schema=state["database_schema"],
                allow_write=state["options"].allow_write,
                agent_document=state["connection"].agent_document,
                on_text=self._text_sink(state),
            )
        )
        state["agent_timings"]["generate"] = (time.perf_counter() - start_time) * 1000
        return {
            "generated": output.generated,
            "llm_calls": state.get("llm_calls", 0) + output.metadata.llm_calls,
        }

    async def _run_validate(self, state: AskState) -> AskState:
        generated = self.post_processor.process(state["generated"], state["dialect"])
        report = self.validator.validate(
            generated.statements, state["schema_context"], state["options"].allow_write
        )
        logger.info(
            "Validated SQL",
            extra={"is_valid": report.is_valid, "errors": report.errors},
        )
        return {"generated": generated, "validation": report}

    async def _run_repair(self, state: AskState) -> AskState:
        start_time = time.perf_counter()
        options = state["options"]
        try:
            output = await self.repair_agent(
                RepairAgentInput(
                    query=state["question"],
                    context={"connection_id": state["connection"].id},
                    dialect=state["dialect"],
                    schema_context=state["schema_context"],
                    database_schema=state["database_schema"],
                    allow_write=options.allow_write,
                    agent_document=state["connection"].agent_document,
                    on_text=self._text_sink(state),
                    failed=state["generated"],
                    report=state["validation"],
                )
            )
        except AgentError as e:
            # The original failed validation stands
            logger.warning(f"Repair attempt failed: {e}")
            return {"repair_attempted": True}

        repaired = self.post_processor.process(output.generated, state["dialect"])
        report = self.validator.validate(
            repaired.statements, state["schema_context"], options.allow_write
        )
        state["agent_timings"]["repair"] = (time.perf_counter() - start_time) * 1000
        logger.info("Repair attempt complete", extra={"is_valid": report.is_valid})
        return {
            "generated": repaired,
            "validation": report,
            "repair_attempted": True,
            "llm_calls": state.get("llm_calls", 0) + output.metadata.llm_calls,
        }

    async def _run_execute(self, state: AskState) -> AskState:
        generated = state["generated"]
        report = state["validation"]
        options = state["options"]

        warnings = list(report.warnings)
        if not report.is_valid:
            warnings.extend(f"error: {error}" for error in report.errors)
            await self._emit(
                state,
                StreamEvent.block(
                    ErrorBlock(
                        code="validation_error",
                        message="Generated SQL failed validation",
                        details="\n".join(report.errors),
                    )
                ),
            )

        await self._emit(
            state,
            StreamEvent.block(
                SqlBlock(
                    sql="\n".join(generated.statements),
                    tables=report.touched_tables,
                    dialect=state["dialect"],
                )
            ),
        )

        if not (options.execute and report.is_valid):
            return {"warnings": warnings, "execution": None}

        start_time = time.perf_counter()
        connection = state["connection"]
        multiple = len(generated.statements) > 1
        outcomes: list[ExecutionOutcome] = []
        for number, sql in enumerate(generated.statements, start=1):
            outcome = await self.sandbox.run(
                connection_string=connection.connection_string,
                database_type=connection.database_type or state["dialect"],
                sql=sql,
                parameters=generated.parameters,
                max_rows=options.max_rows,
                preview_only=options.preview_only,
            )
            if multiple:
                outcome.warnings = [
                    f"{warning} (statement {number})" for warning in outcome.warnings
                ]
            outcomes.append(outcome)
            warnings.extend(outcome.warnings)

            if outcome.columns and not outcome.is_plan:
                await self._emit(
                    state,
                    StreamEvent.block(
                        DataBlock(
                            columns=outcome.columns,
                            rows=outcome.rows,
                            total_rows=outcome.total_rows or 0,
                        )
                    ),
                )
            for warning in outcome.warnings:
                if warning.startswith("execution"):
                    await self._emit(
                        state,
                        StreamEvent.block(ErrorBlock(code="execution_warning", message=warning)),
                    )
            if halts_execution(outcome):
                if number < len(generated.statements):
                    logger.warning(
                        f"Skipping {len(generated.statements) - number} statement(s) "
                        f"after statement {number} failed"
                    )
                break

        state["agent_timings"]["execute"] = (time.perf_counter() - start_time) * 1000
        return {"warnings": warnings, "execution": merge_outcomes(outcomes)}

    async def _run_chart(self, state: AskState) -> AskState:
        generated = state["generated"]
        outcome = state["execution"]
        warnings = list(state.get("warnings", []))
        columns = outcome.columns or generated.columns

        try:
            output = await self.chart_agent(
                ChartAgentInput(
                    query=state["question"],
                    dialect=state["dialect"],
                    sql=chart_statement(generated.statements),
                    columns=columns,
                    sample_rows=outcome.rows[:5],
                )
            )
        except AgentError as e:
            logger.warning(f"Chart generation failed: {e}")
            warnings.append(f"chart: {e.message}")
            return {"warnings": warnings, "chart_option": None}

        injection = inject_chart_data(output.option, outcome.rows, columns)
        if not injection.ok:
            warnings.append(f"chart: {injection.diagnostic}")

        await self._emit(
            state,
            StreamEvent.block(
                ChartBlock(
                    chart_type=infer_chart_type(injection.option),
                    echarts_option=injection.option,
                    config=ChartConfig(
                        x_axis=injection.dimension,
                        y_axis=[injection.measure] if injection.measure else [],
                    ),
                    data=outcome.rows,
                )
            ),
        )
        return {
            "warnings": warnings,
            "chart_option": injection.option,
            "llm_calls": state.get("llm_calls", 0) + output.metadata.llm_calls,
        }

    async def _run_finalize(self, state: AskState) -> AskState:
        generated = state["generated"]
        report = state["validation"]
        options = state["options"]
        outcome = state.get("execution")

        result = SqlResult(
            sql=generated.statements,
            parameters=generated.parameters,
            dialect=state["dialect"],
            touched_tables=report.touched_tables,
            explanation=build_explanation(
                state["question"], state["schema_context"], report.confidence
            )
            if options.return_explanation
            else None,
            confidence=report.confidence,
            warnings=state.get("warnings", []),
            execution_preview=(outcome.preview or None) if outcome else None,
            chart_option=state.get("chart_option"),
            is_valid=report.is_valid,
            execute_type=generated.execute_type,
            columns=(outcome.columns if outcome and outcome.columns else generated.columns),
            rows=outcome.rows if outcome and not outcome.is_plan and outcome.columns else None,
            total_rows=outcome.total_rows if outcome else None,
            affected_rows=outcome.affected_rows if outcome else None,
        )

        if self.cache:
            await self.cache.set(state["cache_key"], result)
            self._release_claim(state["cache_key"], result)
        return {"result": result}

    # ========================================================================
    # Routing
    # ========================================================================

    def _route_after_resolve(self, state: AskState) -> str:
        return "replay" if state.get("cached_result") is not None else "generate"

    def _route_after_validate(self, state: AskState) -> str:
        if (
            not state["validation"].is_valid
            and self.repair_agent is not None
            and not state.get("repair_attempted")
        ):
            return "repair"
        return "execute"

    def _route_after_execute(self, state: AskState) -> str:
        outcome = state.get("execution")
        if (
            state["options"].suggest_chart
            and state["generated"].execute_type == ExecuteType.ECHART
            and outcome is not None
            and not outcome.is_plan
            and outcome.rows
        ):
            return "chart"
        return "finalize"

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _get_connection(self, connection_id: str) -> ConnectionRecord:
        if self.connection_manager is None:
            raise RuntimeError(
                "No connection manager configured. "
                "Please configure a connection manager before calling ask()."
            )
        connection = await self.connection_manager.get(connection_id)
        if connection is None:
            raise ConfigurationError(
                agent="AskPipeline",
                message=f"Connection '{connection_id}' not found.",
                context={"connection_id": connection_id},
            )
        if not connection.is_enabled:
            raise ConfigurationError(
                agent="AskPipeline",
                message=f"Connection '{connection_id}' is disabled.",
                context={"connection_id": connection_id},
            )
        return connection

    async def _lookup_or_claim(self, cache_key: str, claims: list[str]) -> SqlResult | None:
        """
        Cached result for ``cache_key``, waiting for an identical ask in flight.

        A miss with nothing in flight claims the key; the claim is released
        with the final result, or with ``None`` if the ask fails, in which
        case waiters generate on their own.
        """
        while True:
            cached = await self.cache.get(cache_key)
            if cached is not None:
                return cached
            pending = self._inflight.get(cache_key)
            if pending is None:
                self._inflight[cache_key] = asyncio.get_running_loop().create_future()
                claims.append(cache_key)
                return None
            logger.debug("Waiting for identical ask in flight", extra={"cache_key": cache_key})
            result = await asyncio.shield(pending)
            if result is not None:
                return result

    def _release_claim(self, cache_key: str, result: SqlResult | None) -> None:
        pending = self._inflight.pop(cache_key, None)
        if pending is not None and not pending.done():
            pending.set_result(result)

    async def _emit(self, state: AskState, event: StreamEvent) -> None:
        sink = state.get("sink")
        if sink is None:
            return
        outcome = sink(event)
        if inspect.isawaitable(outcome):
            await outcome

    def _text_sink(self, state: AskState):
        if state.get("sink") is None:
            return None

        async def on_text(text: str) -> None:
            await self._emit(state, StreamEvent.delta(text))

        return on_text

    async def _emit_result_blocks(self, state: AskState, result: SqlResult) -> None:
        await self._emit(
            state,
            StreamEvent.block(
                SqlBlock(
                    sql="\n".join(result.sql),
                    tables=result.touched_tables,
                    dialect=result.dialect,
                )
            ),
        )
        if result.rows is not None:
            await self._emit(
                state,
                StreamEvent.block(
                    DataBlock(
                        columns=result.columns,
                        rows=result.rows,
                        total_rows=result.total_rows or 0,
                    )
                ),
            )
        if result.chart_option:
            await self._emit(
                state,
                StreamEvent.block(
                    ChartBlock(
                        chart_type=infer_chart_type(result.chart_option),
                        echarts_option=result.chart_option,
                        data=result.rows or [],
                    )
                ),
            )

    def _initial_state(
        self, question: str | None, options: AskOptions | None, sink: EventSink | None
    ) -> AskState:
        if options is None:
            raise ValueError("AskOptions is required. Please provide ConnectionId.")
        if not options.connection_id or not options.connection_id.strip():
            raise ValueError("ConnectionId is required.")
        return {
            "question": (question or "").strip(),
            "options": options,
            "sink": sink,
            "warnings": [],
            "repair_attempted": False,
            "execution": None,
            "chart_option": None,
            "llm_calls": 0,
            "agent_timings": {},
            "claims": [],
        }

    # ========================================================================
    # Public API
    # ========================================================================

    async def ask(self, question: str, options: AskOptions | None) -> SqlResult:
        """
        Run the pipeline to completion.

        Raises:
            ValueError: Missing options or connection id
            RuntimeError: No connection manager configured
            ConfigurationError: Unknown or disabled connection
            SQLGenerationError: The model did not complete the tool protocol
        """
        initial_state = self._initial_state(question, options, sink=None)
        return (await self._invoke(initial_state))["result"]

    async def _invoke(self, initial_state: AskState) -> AskState:
        logger.info(f"Starting ask for question: {initial_state['question'][:100]}")
        start_time = time.perf_counter()

        try:
            final_state = await self.graph.ainvoke(initial_state)
        finally:
            for cache_key in initial_state["claims"]:
                self._release_claim(cache_key, None)

        total_time = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Ask complete in {total_time:.1f}ms ({final_state.get('llm_calls', 0)} LLM calls)"
        )
        return final_state

    async def stream(self, question: str, options: AskOptions | None) -> AsyncIterator[StreamEvent]:
        """
        Run the pipeline and yield stream events.

        Yields ``delta`` events with model text, ``block`` events as results
        become available, then exactly one ``done`` or ``error`` event.
        """
        queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()
        start_time = time.perf_counter()

        async def runner() -> None:
            try:
                initial_state = self._initial_state(question, options, sink=queue.put)
                await self._invoke(initial_state)
                elapsed_ms = int((time.perf_counter() - start_time) * 1000)
                await queue.put(StreamEvent.done(elapsed_ms))
            except AgentError as e:
                await queue.put(
                    StreamEvent.error(
                        error_code_for(e), e.message, json.dumps(e.context, default=str)
                    )
                )
            except Exception as e:
                logger.error(f"Ask stream failed: {e}", exc_info=True)
                await queue.put(StreamEvent.error(error_code_for(e), str(e)))
            finally:
                await queue.put(None)

        task = asyncio.create_task(runner())
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
        finally:
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass


# ============================================================================
# Helper Functions
# ============================================================================


async def create_pipeline(
    connection_manager: ConnectionManager,
    schema_provider: SchemaProvider | None = None,
    llm_provider: BaseLLMProvider | None = None,
) -> AskPipeline:
    """
    Create an AskPipeline from settings.

    Vector retrieval is used when ``CHROMA_ENABLED`` is set; otherwise tables
    are selected by keyword.
    """
    config = get_settings()

    retriever: SchemaRetriever = KeywordRetriever()
    if config.chroma.enabled:
        from sqlagent.schema.vectors import SchemaVectorStore

        store = SchemaVectorStore()
        await store.initialize()
        retriever = VectorRetriever(store)

    return AskPipeline(
        connection_manager=connection_manager,
        schema_provider=schema_provider,
        llm_provider=llm_provider,
        retriever=retriever,
    )