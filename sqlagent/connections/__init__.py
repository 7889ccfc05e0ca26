"""Connection registry."""

from sqlagent.connections.manager import ConnectionManager, InMemoryConnectionManager

__all__ = ["ConnectionManager", "InMemoryConnectionManager"]
