"""Typed outputs produced at each stage boundary.

Field names match the context vocabulary (ContextKey); None means "not
computed by this stage" and leaves the context untouched.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _StageOutput(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class NftOutput(_StageOutput):
    """NFT extraction output."""

    nft_data: dict[str, Any] | None = Field(default=None, description="NFT metadata")
    nft_image_url: str | None = Field(default=None, description="NFT image (reference image)")


class CacheLookupOutput(_StageOutput):
    """Media copied into the context on a cache hit."""

    video_url: str | None = None
    image_path: str | None = None
    video_path: str | None = None
    thumbnail_path: str | None = None
    image_url: str | None = None
    thumbnail_url: str | None = None
    video_operation_name: str | None = None
    video_status: str | None = None


class PromptOutput(_StageOutput):
    """Prompt enhancement output."""

    enhanced_prompt: str | None = None
    original_prompt: str | None = None
    prompt_id: str | None = None


class ImageOutput(_StageOutput):
    """Image generation output."""

    image_url: str | None = Field(default=None, description="Signed URL for the image")
    image_path: str | None = Field(default=None, description="Object storage path")
    thumbnail_path: str | None = None
    thumbnail_url: str | None = None


class VideoOutput(_StageOutput):
    """Video generation output (synchronous part).

    video_url/video_path are only filled in later, by the status poller,
    on the job record.
    """

    video_status: str | None = None
    video_operation_name: str | None = None
    video_job_id: str | None = None
    video_url: str | None = None
    video_path: str | None = None


class CachedMedia(_StageOutput):
    """Snapshot of a successful run stored in the generation cache."""

    video_url: str | None = None
    image_path: str | None = None
    video_path: str | None = None
    thumbnail_path: str | None = None
    image_url: str | None = None
    thumbnail_url: str | None = None
    video_operation_name: str | None = Field(
        default=None, description="Operation still rendering when the entry was written"
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="cached_at and last known video_status"
    )

    def media_fields(self) -> dict[str, str]:
        """Cached media fields, without the metadata block."""
        return {
            k: v
            for k, v in self.model_dump(exclude={"metadata"}).items()
            if v is not None
        }
