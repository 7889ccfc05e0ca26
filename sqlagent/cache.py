"""
Semantic Cache

Time-bounded memo of completed ask results, keyed by dialect, connection,
normalized question and the selected context tables. Expiry is lazy: stale
entries are dropped when read.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from sqlagent.models.ask import SqlResult

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 600


def make_cache_key(
    dialect: str | None,
    connection_id: str,
    question: str,
    table_names: Iterable[str],
) -> str:
    """sha256 of ``"{dialect}|{connection_id}\\n{question}\\n{tables}"``."""
    tables = ",".join(sorted(table_names, key=str.lower))
    identity = f"{dialect or ''}|{connection_id}\n{question}\n{tables}"
    return hashlib.sha256(identity.encode("utf-8")).hexdigest()


@dataclass
class CacheEntry:
    value: SqlResult
    expires_at: float


class SemanticCache:
    """In-process TTL cache shared by concurrent asks."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> SqlResult | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                logger.debug(f"Cache entry expired: {key[:12]}")
                return None
            return entry.value.model_copy(deep=True)

    async def set(self, key: str, value: SqlResult, ttl_seconds: int | None = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        async with self._lock:
            self._entries[key] = CacheEntry(
                value=value.model_copy(deep=True), expires_at=self._clock() + ttl
            )

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
