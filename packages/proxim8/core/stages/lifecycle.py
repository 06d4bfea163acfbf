"""Run bookkeeping stages that open every pipeline."""

from __future__ import annotations

import logging

from proxim8.core.pipeline.context import ContextKey, GenerationContext, MetaKey
from proxim8.core.pipeline.result import StageResult, success_result
from proxim8.core.pipeline.stage import StageId
from proxim8.core.utils.time import utc_now

logger = logging.getLogger(__name__)


class LoggingMiddleware:
    """Records the run start time and logs what is being generated."""

    @property
    def stage_id(self) -> StageId:
        return StageId.LOGGING

    async def execute(self, context: GenerationContext) -> StageResult[None]:
        logger.info(
            f"Generation run started: nft={context.get(ContextKey.NFT_ID)} "
            f"job={context.get(ContextKey.JOB_ID)} wallet={context.get(ContextKey.WALLET_ADDRESS)}"
        )
        return success_result(None, StageId.LOGGING, {MetaKey.START_TIME: utc_now().isoformat()})


class ErrorHandlingMiddleware:
    """Resets error state so a reused context starts clean."""

    @property
    def stage_id(self) -> StageId:
        return StageId.ERROR_HANDLING

    async def execute(self, context: GenerationContext) -> StageResult[None]:
        context.clear_errors()
        return success_result(None, StageId.ERROR_HANDLING)
