"""Connection registry consumed by the ask pipeline and the build workflow."""

from __future__ import annotations

import asyncio
from typing import Protocol, runtime_checkable
from uuid import uuid4

from sqlagent.connectors.factory import infer_database_type, normalize_database_type
from sqlagent.models.connection import ConnectionRecord


@runtime_checkable
class ConnectionManager(Protocol):
    """Lookup and knowledge-base document storage for connections."""

    async def get(self, connection_id: str) -> ConnectionRecord | None: ...

    async def update_agent_document(self, connection_id: str, document: str) -> None: ...


class InMemoryConnectionManager:
    """Process-local connection registry."""

    def __init__(self, connections: list[ConnectionRecord] | None = None) -> None:
        self._connections: dict[str, ConnectionRecord] = {
            connection.id: connection for connection in connections or []
        }
        self._lock = asyncio.Lock()

    async def add(
        self,
        connection_string: str,
        database_type: str | None = None,
        name: str = "",
        connection_id: str | None = None,
        is_enabled: bool = True,
    ) -> ConnectionRecord:
        record = ConnectionRecord(
            id=connection_id or str(uuid4()),
            name=name,
            connection_string=connection_string,
            database_type=normalize_database_type(database_type)
            if database_type
            else infer_database_type(connection_string),
            is_enabled=is_enabled,
        )
        async with self._lock:
            self._connections[record.id] = record
        return record

    async def get(self, connection_id: str) -> ConnectionRecord | None:
        return self._connections.get(connection_id)

    async def list(self) -> list[ConnectionRecord]:
        return list(self._connections.values())

    async def update_agent_document(self, connection_id: str, document: str) -> None:
        async with self._lock:
            record = self._connections.get(connection_id)
            if record is None:
                raise KeyError(f"Connection not found: {connection_id}")
            self._connections[connection_id] = record.model_copy(
                update={"agent_document": document}
            )

    async def remove(self, connection_id: str) -> None:
        async with self._lock:
            self._connections.pop(connection_id, None)
