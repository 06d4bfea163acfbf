"""NFT extraction stage."""

from __future__ import annotations

import logging

from proxim8.core.pipeline.context import ContextKey, GenerationContext
from proxim8.core.pipeline.outputs import NftOutput
from proxim8.core.pipeline.result import StageResult, failure_result, success_result
from proxim8.core.pipeline.stage import StageId
from proxim8.core.providers.errors import ProviderError
from proxim8.core.providers.nft import NftSource, find_nft

logger = logging.getLogger(__name__)


class NftExtractionMiddleware:
    """Looks up the requested NFT among the wallet's holdings.

    The NFT's image becomes the reference image for image generation.

    Example:
        >>> stage = NftExtractionMiddleware(StaticNftSource({"Wallet1": [nft]}))
        >>> result = await stage.execute(context)
        >>> result.output.nft_image_url
        'https://...'
    """

    def __init__(self, nft_source: NftSource):
        self._nft_source = nft_source

    @property
    def stage_id(self) -> StageId:
        return StageId.NFT_EXTRACTION

    async def execute(self, context: GenerationContext) -> StageResult[NftOutput]:
        nft_id = context.get(ContextKey.NFT_ID)
        wallet_address = context.get(ContextKey.WALLET_ADDRESS)
        if not nft_id:
            return failure_result("NFT ID is required", StageId.NFT_EXTRACTION)
        if not wallet_address:
            return failure_result("Wallet address is required", StageId.NFT_EXTRACTION)

        try:
            nfts = await self._nft_source.get_wallet_nfts(wallet_address)
        except ProviderError as e:
            return failure_result(
                f"Failed to fetch NFTs: {e.message}",
                StageId.NFT_EXTRACTION,
                suggestion=e.suggestion,
            )

        nft = find_nft(nfts, nft_id)
        if nft is None:
            return failure_result(
                f"NFT {nft_id} not found in wallet {wallet_address}",
                StageId.NFT_EXTRACTION,
            )

        logger.debug(f"Resolved NFT {nft_id}: {nft.name}")
        return success_result(
            NftOutput(nft_data=nft.model_dump(mode="json"), nft_image_url=nft.image or None),
            StageId.NFT_EXTRACTION,
        )
