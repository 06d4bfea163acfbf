"""Models for cache system.

Provides cache key and entry metadata models.
"""

from pydantic import BaseModel, Field


class CacheKey(BaseModel):
    """
    Stable identifier for a cache entry.

    Identifies a cached generation by:
    - Namespace (operation name, e.g. 'pipeline')
    - Subject id (the NFT id)
    - Prompt fingerprint (prefix or digest, see fingerprint.py)
    """

    namespace: str = Field(default="pipeline", description="Operation namespace")
    subject_id: str = Field(description="Subject identifier (NFT id)")
    prompt_fingerprint: str = Field(description="Deterministic prompt fingerprint")

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return f"{self.namespace}:{self.subject_id}:{self.prompt_fingerprint}"


class CacheMeta(BaseModel):
    """
    Metadata committed after artifact write (commit marker).

    Presence of meta indicates a complete entry. A tombstone entry has no
    artifact and always reads as a miss.
    """

    key: str = Field(description="String form of the CacheKey")
    created_at: float = Field(description="Unix timestamp (seconds)")
    expires_at: float | None = Field(default=None, description="Unix timestamp, None = never")
    artifact_model: str | None = Field(
        default=None, description="Fully-qualified artifact model class name"
    )
    tombstone: bool = Field(default=False, description="Entry invalidates the key")

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at
