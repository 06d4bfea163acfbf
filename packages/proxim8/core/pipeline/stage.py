"""Middleware protocol and stage identifiers.

Defines the contract for pipeline stages using Protocol pattern for extensibility.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from proxim8.core.pipeline.context import GenerationContext
    from proxim8.core.pipeline.result import StageResult


class StageId(str, Enum):
    """Identifier of every stage in the middleware catalog."""

    LOGGING = "logging"
    ERROR_HANDLING = "error_handling"
    AUTH = "auth"
    CACHING = "caching"
    NFT_EXTRACTION = "nft_extraction"
    PROMPT = "prompt"
    IMAGE = "image"
    VIDEO = "video"
    CACHE_SAVE = "cache_save"

    @property
    def label(self) -> str:
        """Human-readable name used in error messages."""
        return _LABELS[self]

    @property
    def error_key(self) -> str:
        """Metadata key holding this stage's last error."""
        return f"{self.value}_error"

    @property
    def error_time_key(self) -> str:
        return f"{self.value}_error_time"


_LABELS: dict[StageId, str] = {
    StageId.LOGGING: "Logging",
    StageId.ERROR_HANDLING: "Error handling",
    StageId.AUTH: "Auth",
    StageId.CACHING: "Caching",
    StageId.NFT_EXTRACTION: "NFT extraction",
    StageId.PROMPT: "Prompt",
    StageId.IMAGE: "Image",
    StageId.VIDEO: "Video",
    StageId.CACHE_SAVE: "Cache save",
}

# Metadata keys consulted, in order, for the message of a failed run
ERROR_PRIORITY: tuple[str, ...] = (
    "global_error",
    StageId.IMAGE.error_key,
    StageId.VIDEO.error_key,
    StageId.PROMPT.error_key,
    StageId.NFT_EXTRACTION.error_key,
    StageId.AUTH.error_key,
    StageId.CACHING.error_key,
    StageId.CACHE_SAVE.error_key,
)


class Middleware(Protocol):
    """Protocol for pipeline stages.

    A stage reads what it needs from the context and reports its outcome as a
    StageResult. Expected failures (missing input, upstream API error) are
    returned as failure results; the executor records them on the context,
    clears the fields the stage owns and halts the run when the failure is
    fatal. Unexpected exceptions are caught by the executor.

    Example:
        >>> class AuthMiddleware:
        ...     @property
        ...     def stage_id(self) -> StageId:
        ...         return StageId.AUTH
        ...
        ...     async def execute(self, context: GenerationContext) -> StageResult[None]:
        ...         if not context.get(ContextKey.WALLET_ADDRESS):
        ...             return failure_result("Wallet address is required", StageId.AUTH)
        ...         return success_result(None, StageId.AUTH, {"authenticated": True})
    """

    @property
    def stage_id(self) -> StageId:
        """Stage identifier for logging, error keys and tracking."""
        ...

    async def execute(self, context: GenerationContext) -> StageResult[Any]:
        """Execute stage against the shared context.

        Args:
            context: Context for this run

        Returns:
            StageResult containing a typed output or an error
        """
        ...


@runtime_checkable
class FailureHook(Protocol):
    """Optional stage hook run after the pipeline has halted on an error.

    Lets a stage that was never reached react to the failure (for example to
    invalidate a cache entry) without its execute() being invoked.
    """

    async def on_pipeline_failure(self, context: GenerationContext) -> None: ...
