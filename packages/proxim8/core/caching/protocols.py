"""Protocol for cache backends."""

from typing import Protocol, TypeVar

from pydantic import BaseModel

from .models import CacheKey

T = TypeVar("T", bound=BaseModel)


class Cache(Protocol):
    """
    Protocol for cache backends (async).

    All implementations must support:
    - Per-entry TTL (expired entries read as a miss)
    - Tombstones (storing None invalidates the key until the tombstone expires)
    - Pydantic model validation on load
    - Miss-on-error semantics (corruption or backend failure -> cache miss)
    """

    async def exists(self, key: CacheKey) -> bool:
        """
        Check if a live, non-tombstoned entry exists for key.

        Args:
            key: Cache key

        Returns:
            True if an artifact is stored and not expired
        """
        ...

    async def load(self, key: CacheKey, model_cls: type[T]) -> T | None:
        """
        Load and validate cached artifact.

        Args:
            key: Cache key
            model_cls: Pydantic model class for validation

        Returns:
            Validated artifact model, or None on miss/tombstone/error/expiration
        """
        ...

    async def store(
        self,
        key: CacheKey,
        artifact: BaseModel | None,
        ttl_seconds: float | None = None,
    ) -> None:
        """
        Store artifact under key.

        Args:
            key: Cache key
            artifact: Pydantic model to cache, or None to write a tombstone
            ttl_seconds: Entry lifetime, None for the backend default

        Raises:
            CacheError: On write failure
        """
        ...

    async def invalidate(self, key: CacheKey) -> None:
        """
        Delete cache entry (no-op if absent).

        Args:
            key: Cache key
        """
        ...
