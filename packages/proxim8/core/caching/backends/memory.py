"""In-process cache backend.

Entries live in a dict guarded by an asyncio.Lock and are shared by every
pipeline run in the process.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
import logging
import time
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from proxim8.core.caching.models import CacheKey

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass(frozen=True)
class _Entry:
    payload: str | None  # None marks a tombstone
    expires_at: float | None


class MemoryCache:
    """
    Async in-memory cache with TTL and tombstones.

    Artifacts are stored as JSON so callers never share object identity with
    the cached value.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize memory cache.

        Args:
            ttl_seconds: Default entry lifetime (None = never expires)
            clock: Time source returning unix seconds
        """
        self._entries: dict[str, _Entry] = {}
        self._lock = asyncio.Lock()
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    async def _live_entry(self, key: CacheKey) -> _Entry | None:
        async with self._lock:
            entry = self._entries.get(str(key))
            if entry is None:
                return None
            if entry.expires_at is not None and self._clock() >= entry.expires_at:
                del self._entries[str(key)]
                return None
            return entry

    async def exists(self, key: CacheKey) -> bool:
        entry = await self._live_entry(key)
        return entry is not None and entry.payload is not None

    async def load(self, key: CacheKey, model_cls: type[T]) -> T | None:
        entry = await self._live_entry(key)
        if entry is None or entry.payload is None:
            return None
        try:
            return model_cls.model_validate_json(entry.payload)
        except ValidationError as e:
            logger.warning(f"Cached entry {key} failed validation, treating as miss: {e}")
            return None

    async def store(
        self,
        key: CacheKey,
        artifact: BaseModel | None,
        ttl_seconds: float | None = None,
    ) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._ttl_seconds
        expires_at = self._clock() + ttl if ttl is not None else None
        payload = artifact.model_dump_json() if artifact is not None else None
        async with self._lock:
            self._entries[str(key)] = _Entry(payload=payload, expires_at=expires_at)

    async def invalidate(self, key: CacheKey) -> None:
        async with self._lock:
            self._entries.pop(str(key), None)

    async def initialize(self) -> None:
        """No-op (async)."""
        pass
