"""Generation cache stages.

CacheLookupMiddleware runs before the paid generation stages and short-cuts
them on a hit; CacheSaveMiddleware runs last and snapshots a clean run. When
a run fails, the save stage invalidates the key instead (through its failure
hook, since the executor stops before reaching it).
"""

from __future__ import annotations

import logging

from proxim8.core.caching.fingerprint import KeyStrategy, create_cache_key
from proxim8.core.caching.models import CacheKey
from proxim8.core.caching.protocols import Cache
from proxim8.core.errors import CacheError
from proxim8.core.pipeline.context import ContextKey, GenerationContext, MetaKey
from proxim8.core.pipeline.outputs import CachedMedia, CacheLookupOutput
from proxim8.core.pipeline.result import (
    StageResult,
    degraded_result,
    failure_result,
    skipped_result,
    success_result,
)
from proxim8.core.pipeline.stage import StageId
from proxim8.core.utils.time import utc_now

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 259200.0
TOMBSTONE_TTL_SECONDS = 1.0


def _context_key(
    context: GenerationContext, namespace: str, strategy: KeyStrategy
) -> CacheKey | None:
    nft_id = context.get(ContextKey.NFT_ID)
    prompt = context.get(ContextKey.USER_PROMPT)
    if not nft_id or not prompt:
        return None
    return create_cache_key(nft_id, prompt, namespace=namespace, strategy=strategy)


class CacheLookupMiddleware:
    """Loads a previous run's media for the same NFT and prompt.

    Args:
        cache: Shared cache backend
        key_strategy: Prompt fingerprint strategy ('prefix' or 'hash')
        namespace: Cache key namespace
    """

    def __init__(
        self,
        cache: Cache,
        *,
        key_strategy: KeyStrategy = "prefix",
        namespace: str = "pipeline",
    ):
        self._cache = cache
        self._key_strategy = key_strategy
        self._namespace = namespace

    @property
    def stage_id(self) -> StageId:
        return StageId.CACHING

    async def execute(self, context: GenerationContext) -> StageResult[CacheLookupOutput]:
        key = _context_key(context, self._namespace, self._key_strategy)
        if key is None:
            logger.debug("Missing nft_id or user_prompt, skipping cache")
            return skipped_result(
                StageId.CACHING, "Missing nft_id or user_prompt", {MetaKey.CACHE_HIT: False}
            )

        logger.debug(f"Checking cache for key: {key}")
        try:
            cached = await self._cache.load(key, CachedMedia)
        except CacheError as e:
            return failure_result(
                f"Cache lookup failed: {e}",
                StageId.CACHING,
                metadata={MetaKey.CACHE_HIT: False, MetaKey.CACHE_KEY: str(key)},
            )

        if cached is None:
            logger.debug(f"Cache miss for key: {key}")
            return success_result(
                None, StageId.CACHING, {MetaKey.CACHE_HIT: False, MetaKey.CACHE_KEY: str(key)}
            )

        logger.info(f"Cache hit for key: {key}")
        video_status = cached.metadata.get("video_status")
        if cached.video_url and not video_status:
            video_status = "completed"
        output = CacheLookupOutput(**cached.media_fields(), video_status=video_status)
        return success_result(
            output,
            StageId.CACHING,
            {
                **cached.metadata,
                MetaKey.CACHE_HIT: True,
                MetaKey.FROM_CACHE: True,
                MetaKey.CACHE_TIME: utc_now().isoformat(),
                MetaKey.CACHE_KEY: str(key),
            },
        )


class CacheSaveMiddleware:
    """Snapshots the media of a clean run; invalidates the key after a failure.

    Args:
        cache: Shared cache backend
        ttl_seconds: Lifetime of a snapshot (3 days by default)
        tombstone_ttl_seconds: Lifetime of the invalidation entry
        key_strategy: Must match the lookup stage
        namespace: Cache key namespace
    """

    def __init__(
        self,
        cache: Cache,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        tombstone_ttl_seconds: float = TOMBSTONE_TTL_SECONDS,
        key_strategy: KeyStrategy = "prefix",
        namespace: str = "pipeline",
    ):
        self._cache = cache
        self._ttl_seconds = ttl_seconds
        self._tombstone_ttl_seconds = tombstone_ttl_seconds
        self._key_strategy = key_strategy
        self._namespace = namespace

    @property
    def stage_id(self) -> StageId:
        return StageId.CACHE_SAVE

    def _key(self, context: GenerationContext) -> CacheKey | None:
        # Only runs that went through the lookup stage carry a key
        if not context.get_metadata(MetaKey.CACHE_KEY):
            return None
        return _context_key(context, self._namespace, self._key_strategy)

    async def execute(self, context: GenerationContext) -> StageResult[None]:
        if context.failed:
            await self.on_pipeline_failure(context)
            return skipped_result(StageId.CACHE_SAVE, "Run has errors")

        if context.get_metadata(MetaKey.CACHE_HIT):
            return skipped_result(StageId.CACHE_SAVE, "Result was loaded from cache")

        key = self._key(context)
        if key is None:
            return skipped_result(StageId.CACHE_SAVE, "No cache key")

        if not context.get(ContextKey.IMAGE_URL) or not context.get(ContextKey.IMAGE_PATH):
            return skipped_result(StageId.CACHE_SAVE, "Missing required image data")

        snapshot = CachedMedia(
            video_url=context.get(ContextKey.VIDEO_URL),
            image_path=context.get(ContextKey.IMAGE_PATH),
            video_path=context.get(ContextKey.VIDEO_PATH),
            thumbnail_path=context.get(ContextKey.THUMBNAIL_PATH),
            image_url=context.get(ContextKey.IMAGE_URL),
            thumbnail_url=context.get(ContextKey.THUMBNAIL_URL),
            video_operation_name=context.get(ContextKey.VIDEO_OPERATION_NAME),
            metadata={
                "cached_at": utc_now().isoformat(),
                "video_status": context.get(ContextKey.VIDEO_STATUS),
            },
        )

        try:
            await self._cache.store(key, snapshot, ttl_seconds=self._ttl_seconds)
        except CacheError as e:
            return degraded_result(f"Failed to save cache: {e}", StageId.CACHE_SAVE)

        logger.info(f"Cached generation result under {key}")
        return success_result(None, StageId.CACHE_SAVE)

    async def on_pipeline_failure(self, context: GenerationContext) -> None:
        """Tombstone the run's key so a failed run never serves stale media."""
        key = self._key(context)
        if key is None:
            return
        try:
            await self._cache.store(key, None, ttl_seconds=self._tombstone_ttl_seconds)
        except CacheError as e:
            logger.error(f"Error invalidating cache key {key}: {e}")
            return
        logger.info(f"Invalidated cache key {key} due to errors")
