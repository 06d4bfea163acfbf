"""Filesystem-backed cache using aiofiles.

Provides atomic commit pattern (artifact -> meta) for cache correctness.
"""

import asyncio
import hashlib
import logging
from pathlib import Path
import time
from typing import TypeVar

import aiofiles
import aiofiles.os
from pydantic import BaseModel, ValidationError

from proxim8.core.caching.models import CacheKey, CacheMeta
from proxim8.core.errors import CacheError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def _sanitize_path_component(value: str) -> str:
    return "".join(c if c.isalnum() or c in "-_." else "_" for c in value) or "_"


async def _write_atomic(path: Path, text: str) -> None:
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
        await f.write(text)
    await aiofiles.os.replace(tmp_path, path)


class FSCache:
    """
    Async filesystem-backed cache.

    Layout: <root>/<namespace>/<subject>/<sha256(key)>/{artifact,meta}.json
    The cache lazily initializes on first use.
    """

    def __init__(self, root: Path | str, ttl_seconds: float | None = None) -> None:
        """
        Initialize filesystem cache.

        Args:
            root: Cache root directory
            ttl_seconds: Default entry lifetime (None = never expires)
        """
        self.root = Path(root)
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._ttl_seconds = ttl_seconds

    async def initialize(self) -> None:
        """
        Initialize cache (ensure root exists).

        Called automatically on first use. Safe to call multiple times.
        """
        async with self._init_lock:
            if not self._initialized:
                await aiofiles.os.makedirs(self.root, exist_ok=True)
                self._initialized = True

    def _entry_dir(self, key: CacheKey) -> Path:
        digest = hashlib.sha256(str(key).encode("utf-8")).hexdigest()
        return (
            self.root
            / _sanitize_path_component(key.namespace)
            / _sanitize_path_component(key.subject_id)
            / digest
        )

    def _artifact_path(self, key: CacheKey) -> Path:
        return self._entry_dir(key) / "artifact.json"

    def _meta_path(self, key: CacheKey) -> Path:
        """Compute meta.json path - commit marker."""
        return self._entry_dir(key) / "meta.json"

    async def _read_meta(self, key: CacheKey) -> CacheMeta | None:
        meta_path = self._meta_path(key)
        if not await aiofiles.os.path.exists(meta_path):
            return None
        try:
            async with aiofiles.open(meta_path, encoding="utf-8") as f:
                meta = CacheMeta.model_validate_json(await f.read())
        except (OSError, ValidationError, ValueError) as e:
            logger.warning(f"Corrupt cache meta for {key}, treating as miss: {e}")
            return None

        if meta.key != str(key) or meta.is_expired(time.time()):
            return None
        return meta

    async def exists(self, key: CacheKey) -> bool:
        await self.initialize()
        meta = await self._read_meta(key)
        if meta is None or meta.tombstone:
            return False
        return await aiofiles.os.path.exists(self._artifact_path(key))

    async def load(self, key: CacheKey, model_cls: type[T]) -> T | None:
        await self.initialize()
        meta = await self._read_meta(key)
        if meta is None or meta.tombstone:
            return None

        try:
            async with aiofiles.open(self._artifact_path(key), encoding="utf-8") as f:
                return model_cls.model_validate_json(await f.read())
        except (OSError, ValidationError, ValueError) as e:
            logger.warning(f"Unreadable cache artifact for {key}, treating as miss: {e}")
            return None

    async def store(
        self,
        key: CacheKey,
        artifact: BaseModel | None,
        ttl_seconds: float | None = None,
    ) -> None:
        """
        Store artifact with atomic commit pattern.

        Writes artifact.json first, then meta.json (commit marker). A None
        artifact removes any previous artifact and commits a tombstone meta.
        """
        await self.initialize()
        entry_dir = self._entry_dir(key)
        ttl = ttl_seconds if ttl_seconds is not None else self._ttl_seconds
        now = time.time()

        try:
            await aiofiles.os.makedirs(entry_dir, exist_ok=True)

            artifact_path = self._artifact_path(key)
            if artifact is None:
                if await aiofiles.os.path.exists(artifact_path):
                    await aiofiles.os.remove(artifact_path)
                artifact_model = None
            else:
                await _write_atomic(artifact_path, artifact.model_dump_json(indent=2))
                artifact_model = f"{artifact.__class__.__module__}.{artifact.__class__.__name__}"

            meta = CacheMeta(
                key=str(key),
                created_at=now,
                expires_at=now + ttl if ttl is not None else None,
                artifact_model=artifact_model,
                tombstone=artifact is None,
            )
            await _write_atomic(self._meta_path(key), meta.model_dump_json(indent=2))
        except OSError as e:
            raise CacheError(f"Failed to write cache entry {key}: {e}") from e

    async def invalidate(self, key: CacheKey) -> None:
        """Invalidate cache entry by removing its files."""
        await self.initialize()
        for path in (self._meta_path(key), self._artifact_path(key)):
            if await aiofiles.os.path.exists(path):
                await aiofiles.os.remove(path)
