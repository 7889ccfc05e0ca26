"""
Connection Build Service

Background generation of the per-connection knowledge-base document.

Each connection id has its own asyncio.Lock. ``start_build`` never waits:
it either takes the lock, marks the connection InProgress and launches a
detached task, or reports that a build is already running. The task moves
the state to Completed (document stored through the connection manager) or
Failed (error stored) and always releases the lock.
"""

import asyncio
import logging
from dataclasses import dataclass

from sqlagent.agents.knowledge import KnowledgeAgent
from sqlagent.connections.manager import ConnectionManager
from sqlagent.models import (
    BuildStatus,
    ConfigurationError,
    ConnectionBuildState,
    ConnectionRecord,
    KnowledgeAgentInput,
)
from sqlagent.models.agent import utcnow
from sqlagent.schema.provider import ConnectorSchemaProvider, SchemaProvider
from sqlagent.schema.vectors import SchemaVectorIndexer

logger = logging.getLogger(__name__)

MESSAGE_STARTED = "Agent generation started"
MESSAGE_IN_PROGRESS = "Agent generation in progress"
MESSAGE_COMPLETED = "Agent generated successfully"
MESSAGE_FAILED = "Agent generation failed"


@dataclass(frozen=True)
class BuildStartResult:
    connection_id: str
    started: bool
    message: str


class ConnectionBuildService:
    """
    Owns the build lock registry and the build state store.

    Usage:
        service = ConnectionBuildService(connection_manager, agent=KnowledgeAgent())
        result = await service.start_build("shop")
        state = service.get_status("shop")
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        agent: KnowledgeAgent | None = None,
        schema_provider: SchemaProvider | None = None,
        vector_indexer: SchemaVectorIndexer | None = None,
    ):
        self.connection_manager = connection_manager
        self.agent = agent or KnowledgeAgent()
        self.schema_provider = schema_provider or ConnectorSchemaProvider()
        self.vector_indexer = vector_indexer
        self._states: dict[str, ConnectionBuildState] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def get_status(self, connection_id: str) -> ConnectionBuildState:
        """Current state, created as NotStarted on first query."""
        return self._states.setdefault(connection_id, ConnectionBuildState())

    def _lock_for(self, connection_id: str) -> asyncio.Lock:
        return self._locks.setdefault(connection_id, asyncio.Lock())

    async def start_build(self, connection_id: str) -> BuildStartResult:
        """
        Start a background build unless one is already running.

        Raises:
            ConfigurationError: Unknown or disabled connection
        """
        connection = await self.connection_manager.get(connection_id)
        if connection is None:
            raise ConfigurationError(
                agent="ConnectionBuildService",
                message=f"Connection '{connection_id}' not found",
            )
        if not connection.is_enabled:
            raise ConfigurationError(
                agent="ConnectionBuildService",
                message=f"Connection '{connection.name or connection_id}' is disabled",
            )

        lock = self._lock_for(connection_id)
        if lock.locked():
            logger.info(f"Build already running for {connection_id}")
            return BuildStartResult(connection_id, started=False, message=MESSAGE_IN_PROGRESS)

        await lock.acquire()
        try:
            self._states[connection_id] = ConnectionBuildState(
                status=BuildStatus.IN_PROGRESS,
                message=MESSAGE_STARTED,
                start_time=utcnow(),
            )
            self._tasks[connection_id] = asyncio.create_task(
                self._build(connection, lock), name=f"build:{connection_id}"
            )
        except Exception:
            lock.release()
            raise

        logger.info(f"Build started for {connection_id}")
        return BuildStartResult(connection_id, started=True, message=MESSAGE_STARTED)

    async def wait_for_build(self, connection_id: str) -> ConnectionBuildState:
        """Await the running (or last) build task and return the final state."""
        task = self._tasks.get(connection_id)
        if task is not None:
            await asyncio.shield(task)
        return self.get_status(connection_id)

    async def _build(self, connection: ConnectionRecord, lock: asyncio.Lock) -> None:
        connection_id = connection.id
        start_time = self._states[connection_id].start_time
        try:
            schema = await self.schema_provider.load(connection)
            output = await self.agent(
                KnowledgeAgentInput(
                    query=f"Document the {connection.name or connection_id} database",
                    context={"connection_id": connection_id},
                    dialect=connection.database_type or schema.dialect,
                    database_schema=schema,
                )
            )
            await self.connection_manager.update_agent_document(connection_id, output.document)

            if self.vector_indexer is not None:
                await self.vector_indexer.sync(connection_id, schema)

            self._states[connection_id] = ConnectionBuildState(
                status=BuildStatus.COMPLETED,
                message=MESSAGE_COMPLETED,
                start_time=start_time,
                end_time=utcnow(),
            )
            logger.info(f"Build completed for {connection_id}")
        except asyncio.CancelledError:
            self._states[connection_id] = ConnectionBuildState(
                status=BuildStatus.FAILED,
                message=MESSAGE_FAILED,
                error_message="Build cancelled",
                start_time=start_time,
                end_time=utcnow(),
            )
            raise
        except Exception as e:
            logger.error(f"Build failed for {connection_id}: {e}", exc_info=True)
            self._states[connection_id] = ConnectionBuildState(
                status=BuildStatus.FAILED,
                message=MESSAGE_FAILED,
                error_message=str(e),
                start_time=start_time,
                end_time=utcnow(),
            )
        finally:
            lock.release()
