"""Result types for stage execution.

Every stage reports a tagged outcome; the executor inspects the tag instead
of scanning the context for error keys.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from proxim8.core.pipeline.stage import StageId

TOutput = TypeVar("TOutput")


class StageResult(BaseModel, Generic[TOutput]):
    """Result from a single stage execution.

    Immutable result type with success/failure semantics.

    Attributes:
        success: Whether stage executed successfully
        stage_id: Stage that produced the result
        output: Typed stage output, merged into the context
        error: Error message (if success=False)
        fatal: Whether a failure halts the run
        suggestion: Optional human-readable hint for resolving the error
        cleared_fields: Context fields to remove on failure
        metadata: Values merged into context metadata

    Example:
        >>> result = success_result(PromptOutput(enhanced_prompt="..."), StageId.PROMPT)
        >>> result = failure_result("Wallet address is required", StageId.AUTH)
        >>> if not result.success and result.fatal:
        ...     print(result.error)
    """

    success: bool = Field(description="Whether stage executed successfully")
    stage_id: StageId = Field(description="Stage that produced the result")
    output: TOutput | None = Field(default=None, description="Stage output")
    error: str | None = Field(default=None, description="Error message (if failure)")
    fatal: bool = Field(default=True, description="Whether a failure halts the run")
    suggestion: str | None = Field(default=None, description="Hint for resolving the error")
    cleared_fields: tuple[str, ...] = Field(
        default=(), description="Context fields removed on failure"
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Values merged into context metadata"
    )

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    @property
    def skipped(self) -> bool:
        return bool(self.metadata.get("skipped"))


# Helper functions to create results (avoids Pydantic classmethod issues)


def success_result(
    output: TOutput,
    stage_id: StageId,
    metadata: dict[str, Any] | None = None,
) -> StageResult[TOutput]:
    """Create success result."""
    return StageResult(
        success=True,
        output=output,
        stage_id=stage_id,
        metadata=metadata or {},
    )


def failure_result(
    error: str,
    stage_id: StageId,
    *,
    cleared_fields: tuple[str, ...] = (),
    suggestion: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> StageResult[Any]:
    """Create fatal failure result.

    Args:
        error: Error message
        stage_id: Failing stage
        cleared_fields: Context fields owned by the stage to remove
        suggestion: Optional hint appended to logs
        metadata: Optional metadata

    Returns:
        StageResult with success=False, fatal=True
    """
    return StageResult(
        success=False,
        error=error,
        stage_id=stage_id,
        fatal=True,
        suggestion=suggestion,
        cleared_fields=cleared_fields,
        metadata=metadata or {},
    )


def degraded_result(
    error: str,
    stage_id: StageId,
    fallback: TOutput | None = None,
) -> StageResult[TOutput]:
    """Create a non-fatal failure that still carries a fallback output.

    The error is recorded on the context but the run continues.
    """
    return StageResult(
        success=False,
        error=error,
        stage_id=stage_id,
        fatal=False,
        output=fallback,
    )


def skipped_result(
    stage_id: StageId,
    reason: str,
    metadata: dict[str, Any] | None = None,
) -> StageResult[Any]:
    """Create skipped result.

    Treated as success (does not fail the run) but with no output.
    """
    return StageResult(
        success=True,
        output=None,
        stage_id=stage_id,
        metadata={"skipped": True, "skip_reason": reason, **(metadata or {})},
    )
