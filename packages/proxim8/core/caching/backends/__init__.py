"""Cache backends."""

from proxim8.core.caching.backends.fs import FSCache
from proxim8.core.caching.backends.memory import MemoryCache
from proxim8.core.caching.backends.null import NullCache

__all__ = ["FSCache", "MemoryCache", "NullCache"]
