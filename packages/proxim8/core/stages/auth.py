"""Wallet presence check.

Signature verification happens before a request reaches the pipeline; this
stage only guarantees that a run is attributed to a wallet.
"""

from __future__ import annotations

from proxim8.core.pipeline.context import ContextKey, GenerationContext, MetaKey
from proxim8.core.pipeline.result import StageResult, failure_result, success_result
from proxim8.core.pipeline.stage import StageId


class AuthMiddleware:
    @property
    def stage_id(self) -> StageId:
        return StageId.AUTH

    async def execute(self, context: GenerationContext) -> StageResult[None]:
        if not context.get(ContextKey.WALLET_ADDRESS):
            return failure_result(
                "Wallet address is required",
                StageId.AUTH,
                metadata={MetaKey.AUTHENTICATED: False},
            )
        return success_result(None, StageId.AUTH, {MetaKey.AUTHENTICATED: True})
