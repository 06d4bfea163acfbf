"""Generation context: the mutable state threaded through one pipeline run.

Stages communicate through an agreed key vocabulary (ContextKey). Typed stage
outputs are merged into the context by the executor; diagnostics and error
annotations live in the separate metadata map.
"""

from __future__ import annotations

import asyncio
import copy
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from proxim8.core.pipeline.stage import ERROR_PRIORITY, StageId
from proxim8.core.utils.time import utc_now

UNKNOWN_ERROR = "Unknown error occurred"


class ContextKey:
    """Field names shared between stages."""

    USER_PROMPT = "user_prompt"
    ENHANCED_PROMPT = "enhanced_prompt"
    ORIGINAL_PROMPT = "original_prompt"
    PROMPT_ID = "prompt_id"
    NFT_ID = "nft_id"
    WALLET_ADDRESS = "wallet_address"
    JOB_ID = "job_id"
    NFT_DATA = "nft_data"
    NFT_IMAGE_URL = "nft_image_url"
    LORE_DATA = "lore_data"
    STYLE = "style"
    ADDITIONAL_CONTEXT = "additional_context"
    OPTIONS = "options"
    IMAGE_URL = "image_url"
    IMAGE_PATH = "image_path"
    THUMBNAIL_PATH = "thumbnail_path"
    THUMBNAIL_URL = "thumbnail_url"
    VIDEO_URL = "video_url"
    VIDEO_PATH = "video_path"
    VIDEO_STATUS = "video_status"
    VIDEO_JOB_ID = "video_job_id"
    VIDEO_OPERATION_NAME = "video_operation_name"


class MetaKey:
    """Metadata names written by the executor and the support stages."""

    HAS_ERRORS = "has_errors"
    GLOBAL_ERROR = "global_error"
    CACHE_HIT = "cache_hit"
    CACHE_KEY = "cache_key"
    CACHE_TIME = "cache_time"
    FROM_CACHE = "from_cache"
    AUTHENTICATED = "authenticated"
    START_TIME = "start_time"
    STAGE_TIMINGS = "stage_timings_ms"


@dataclass
class GenerationContext:
    """Per-run pipeline state.

    Owned by exactly one pipeline execution and mutated only by the stage
    currently running (or by the executor applying that stage's result).

    Attributes:
        fields: Stage vocabulary values (see ContextKey)
        metadata: Diagnostic and error annotations (see MetaKey)
        error: Top-level fatal error message; set means the run failed
        status: "error" once the run has failed
        cancel_token: Optional cancellation token (asyncio.Event)

    Example:
        >>> ctx = GenerationContext.create(
        ...     nft_id="nft-1", user_prompt="infiltrate the tower", wallet_address="Wallet1"
        ... )
        >>> ctx.get(ContextKey.NFT_ID)
        'nft-1'
    """

    fields: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    status: str | None = None
    cancel_token: asyncio.Event | None = None

    @classmethod
    def create(cls, **fields: Any) -> GenerationContext:
        """Build a context from keyword fields, dropping None values."""
        return cls(fields={k: v for k, v in fields.items() if v is not None})

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.fields[key] = value

    def get_metadata(self, key: str, default: Any = None) -> Any:
        return self.metadata.get(key, default)

    def set_metadata(self, key: str, value: Any) -> None:
        self.metadata[key] = value

    def option(self, key: str, default: Any = None) -> Any:
        """Read a caller-supplied option (from the `options` field)."""
        options = self.fields.get(ContextKey.OPTIONS) or {}
        value = options.get(key)
        return default if value is None else value

    def copy(self) -> GenerationContext:
        """Deep copy fields and metadata; the cancel token is shared."""
        return GenerationContext(
            fields=copy.deepcopy(self.fields),
            metadata=copy.deepcopy(self.metadata),
            error=self.error,
            status=self.status,
            cancel_token=self.cancel_token,
        )

    def apply(self, output: BaseModel | None) -> None:
        """Merge the non-None fields of a typed stage output."""
        if output is None:
            return
        for name in type(output).model_fields:
            value = getattr(output, name)
            if value is not None:
                self.fields[name] = value

    def clear(self, keys: tuple[str, ...] | list[str]) -> None:
        for key in keys:
            self.fields.pop(key, None)

    def record_error(self, stage: StageId, message: str, *, fatal: bool = True) -> None:
        """Annotate a stage failure.

        Fatal errors also set the top-level error and status so the run halts.

        Args:
            stage: Failing stage
            message: Error message
            fatal: Whether the run must stop
        """
        self.metadata[stage.error_key] = message
        self.metadata[stage.error_time_key] = utc_now().isoformat()
        if fatal:
            self.metadata[MetaKey.HAS_ERRORS] = True
            self.error = f"{stage.label} failed: {message}"
            self.status = "error"

    def clear_errors(self) -> None:
        self.metadata[MetaKey.HAS_ERRORS] = False
        self.error = None
        self.status = None

    @property
    def failed(self) -> bool:
        """Whether a fatal error has been recorded.

        Detection is tag-based: stage error keys in metadata (``image_error`` and
        friends) only feed ``failure_message`` and never halt a run on their own.
        """
        return (
            bool(self.error)
            or self.status == "error"
            or bool(self.metadata.get(MetaKey.GLOBAL_ERROR))
            or self.metadata.get(MetaKey.HAS_ERRORS) is True
        )

    def failure_message(self) -> str:
        """First non-empty error message, by fixed priority."""
        if self.error:
            return self.error
        for key in ERROR_PRIORITY:
            value = self.metadata.get(key)
            if value:
                return str(value)
        return UNKNOWN_ERROR

    def mark_failed(self, message: str | None = None) -> None:
        self.status = "error"
        self.error = message or self.failure_message()

    def is_cancelled(self) -> bool:
        """Check if the run has been cancelled."""
        return self.cancel_token is not None and self.cancel_token.is_set()
