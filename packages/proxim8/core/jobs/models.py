"""Generation job schema and status."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from proxim8.core.utils.time import utc_now


class JobStatus(str, Enum):
    """Lifecycle of a generation job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    def can_transition(self, to: JobStatus) -> bool:
        """Whether moving from this status to `to` is allowed.

        queued -> processing -> {completed, failed}; queued may also go
        straight to a terminal status (image-only runs, early failures).
        Rewriting the current status is allowed.
        """
        if to is self:
            return True
        if self is JobStatus.QUEUED:
            return True
        if self is JobStatus.PROCESSING:
            return to.terminal
        return False


class Job(BaseModel):
    """A generation request, persisted for status polling."""

    model_config = ConfigDict(validate_assignment=True)

    job_id: str = Field(description="Unique job identifier")
    nft_id: str
    prompt: str = Field(description="User prompt as submitted")
    created_by: str = Field(description="Owner wallet address")
    status: JobStatus = JobStatus.QUEUED
    pipeline_type: str = "standard"
    options: dict[str, Any] = Field(default_factory=dict)

    enhanced_prompt: str | None = None

    image_path: str | None = None
    image_url: str | None = None
    image_url_expiry: datetime | None = None

    thumbnail_path: str | None = None
    thumbnail_url: str | None = None
    thumbnail_url_expiry: datetime | None = None

    video_path: str | None = None
    video_url: str | None = None
    video_url_expiry: datetime | None = None
    video_operation_name: str | None = None

    is_public: bool = False
    public_video_id: str | None = None
    from_cache: bool = False
    error: str | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def has_media_paths(self) -> bool:
        return bool(self.image_path or self.thumbnail_path or self.video_path)
