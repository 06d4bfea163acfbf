"""No-op cache for development/testing.

Always reports cache miss, discards all stores.
"""

from typing import TypeVar

from pydantic import BaseModel

from proxim8.core.caching.models import CacheKey

T = TypeVar("T", bound=BaseModel)


class NullCache:
    """
    No-op async cache.

    Always reports cache miss, discards all stores. Disables generation
    reuse without changing pipeline wiring.
    """

    def __init__(self, ttl_seconds: float | None = None) -> None:
        """Initialize null cache. TTL is ignored."""
        pass

    async def exists(self, key: CacheKey) -> bool:
        """Always returns False."""
        return False

    async def load(self, key: CacheKey, model_cls: type[T]) -> T | None:
        """Always returns None."""
        return None

    async def store(
        self,
        key: CacheKey,
        artifact: BaseModel | None,
        ttl_seconds: float | None = None,
    ) -> None:
        """Discard."""
        pass

    async def invalidate(self, key: CacheKey) -> None:
        """No-op."""
        pass

    async def initialize(self) -> None:
        """No-op."""
        pass
