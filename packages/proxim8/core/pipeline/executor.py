"""Sequential middleware pipeline.

Runs stages strictly in order (later stages read what earlier ones wrote)
and stops at the first fatal error.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
import logging
import time
from typing import Any

from proxim8.core.pipeline.context import ContextKey, GenerationContext, MetaKey
from proxim8.core.pipeline.result import StageResult
from proxim8.core.pipeline.stage import FailureHook, Middleware, StageId
from proxim8.core.utils.logging import get_logger

logger = logging.getLogger(__name__)

# Result metadata that describes the result itself, not the run
_RESULT_ONLY_METADATA = frozenset({"skipped", "skip_reason"})


class Pipeline:
    """Ordered sequence of middlewares with short-circuit on failure.

    Handles:
    - Copying the caller's context (stages never see the original object)
    - Applying typed stage outputs and metadata
    - Recording stage errors and clearing the fields a failed stage owns
    - Converting unexpected exceptions into fatal errors
    - Cancellation between stages
    - Failure hooks for stages that were not reached

    Example:
        >>> pipeline = factory.create(PipelineType.STANDARD)
        >>> result = await pipeline.execute(GenerationContext.create(nft_id="nft-1", ...))
        >>> if result.status == "error":
        ...     print(result.error)
    """

    def __init__(
        self,
        name: str,
        middlewares: Sequence[Middleware],
        cancel_token: asyncio.Event | None = None,
    ) -> None:
        self.name = name
        self.middlewares: tuple[Middleware, ...] = tuple(middlewares)
        self.cancel_token = cancel_token

    @property
    def stage_ids(self) -> list[StageId]:
        return [m.stage_id for m in self.middlewares]

    def has_stage(self, stage_id: StageId) -> bool:
        return stage_id in self.stage_ids

    async def execute(self, initial_context: GenerationContext) -> GenerationContext:
        """Run every middleware in order.

        Args:
            initial_context: Caller's context (copied, never mutated)

        Returns:
            Final context. On failure status="error" and error holds the
            first non-empty message in priority order.
        """
        context = initial_context.copy()
        if context.cancel_token is None:
            context.cancel_token = self.cancel_token
        timings: dict[str, float] = context.metadata.setdefault(MetaKey.STAGE_TIMINGS, {})

        logger.debug(f"Executing pipeline '{self.name}': {[s.value for s in self.stage_ids]}")

        for index, middleware in enumerate(self.middlewares):
            stage_id = middleware.stage_id
            log = get_logger(__name__, job_id=context.get(ContextKey.JOB_ID), stage=stage_id.value)

            if context.is_cancelled():
                log.warning(f"Pipeline '{self.name}' cancelled before {stage_id.value}")
                context.mark_failed(f"[CANCELLED] Pipeline cancelled before {stage_id.label}")
                await self._run_failure_hooks(index, context)
                return context

            start = time.perf_counter()
            try:
                result = await middleware.execute(context)
            except Exception as e:
                log.exception(f"{stage_id.value} raised exception", exc_info=e)
                context.record_error(stage_id, str(e) or type(e).__name__)
            else:
                self._apply_result(context, result)
            finally:
                timings[stage_id.value] = (time.perf_counter() - start) * 1000

            if context.failed:
                context.mark_failed()
                log.error(f"Pipeline '{self.name}' stopped at {stage_id.value}: {context.error}")
                await self._run_failure_hooks(index + 1, context)
                return context

        logger.debug(f"Pipeline '{self.name}' completed")
        return context

    def _apply_result(self, context: GenerationContext, result: StageResult[Any]) -> None:
        stage_id = result.stage_id
        log = get_logger(__name__, job_id=context.get(ContextKey.JOB_ID), stage=stage_id.value)

        context.metadata.update(
            {k: v for k, v in result.metadata.items() if k not in _RESULT_ONLY_METADATA}
        )

        if result.success:
            context.apply(result.output)
            if result.skipped:
                log.debug(f"  - {stage_id.value} skipped: {result.metadata.get('skip_reason')}")
            else:
                log.debug(f"  ✓ {stage_id.value} completed")
            return

        message = result.error or "Stage failed"
        if result.suggestion:
            log.error(f"  ✗ {stage_id.value} failed: {message} ({result.suggestion})")
        else:
            log.error(f"  ✗ {stage_id.value} failed: {message}")

        context.clear(result.cleared_fields)
        context.apply(result.output)
        context.record_error(stage_id, message, fatal=result.fatal)

    async def _run_failure_hooks(self, start: int, context: GenerationContext) -> None:
        """Give stages that were not executed a chance to react to the failure."""
        for middleware in self.middlewares[start:]:
            if not isinstance(middleware, FailureHook):
                continue
            try:
                await middleware.on_pipeline_failure(context)
            except Exception as e:
                logger.exception(
                    f"Failure hook of {middleware.stage_id.value} raised exception", exc_info=e
                )
