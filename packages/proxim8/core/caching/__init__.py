"""Generation result cache for proxim8.

Caches the media produced by a pipeline run so a repeat request for the
same NFT and prompt can skip the paid generation calls.

Key features:
- Deterministic keys (namespace + subject id + prompt fingerprint)
- Per-entry TTL and tombstones for invalidation
- Pydantic model validation on load
- Miss-on-error semantics
"""

from proxim8.core.caching.backends.fs import FSCache
from proxim8.core.caching.backends.memory import MemoryCache
from proxim8.core.caching.backends.null import NullCache
from proxim8.core.caching.fingerprint import compute_prompt_fingerprint, create_cache_key
from proxim8.core.caching.models import CacheKey, CacheMeta
from proxim8.core.caching.protocols import Cache

__all__ = [
    # Core
    "Cache",
    "CacheKey",
    "CacheMeta",
    # Backends
    "FSCache",
    "MemoryCache",
    "NullCache",
    # Utils
    "compute_prompt_fingerprint",
    "create_cache_key",
]
