"""NFT ownership lookup.

HeliusNftSource queries the Helius DAS `getAssetsByOwner` JSON-RPC method and
resolves each asset's off-chain JSON metadata.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
import logging
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field

from proxim8.core.providers.errors import ProviderError, ProviderTimeoutError

logger = logging.getLogger(__name__)


class NftMetadata(BaseModel):
    """NFT owned by a wallet."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    image: str | None = None
    description: str = ""
    attributes: list[dict[str, Any]] = Field(default_factory=list)
    mint: str | None = None
    token_id: str | None = None
    collection: str | None = None
    owner: str | None = None

    def matches(self, nft_id: str) -> bool:
        return nft_id in (self.id, self.mint, self.token_id)


class NftSource(Protocol):
    """Lists the NFTs a wallet owns."""

    async def get_wallet_nfts(self, wallet_address: str) -> list[NftMetadata]: ...


def find_nft(nfts: Iterable[NftMetadata], nft_id: str) -> NftMetadata | None:
    """Find an NFT by id, mint address or token id."""
    return next((nft for nft in nfts if nft.matches(nft_id)), None)


class StaticNftSource:
    """In-memory NFT source keyed by wallet address."""

    def __init__(self, holdings: dict[str, list[NftMetadata]] | None = None):
        self._holdings = holdings or {}

    def add(self, wallet_address: str, nft: NftMetadata) -> None:
        self._holdings.setdefault(wallet_address, []).append(nft)

    async def get_wallet_nfts(self, wallet_address: str) -> list[NftMetadata]:
        return list(self._holdings.get(wallet_address, []))


def _in_collection(asset: dict[str, Any], collection: str) -> bool:
    return any(
        g.get("group_key") == "collection" and g.get("group_value") == collection
        for g in asset.get("grouping") or []
    )


class HeliusNftSource:
    """NFT source backed by the Helius DAS API."""

    def __init__(
        self,
        *,
        api_key: str,
        rpc_url: str = "https://mainnet.helius-rpc.com",
        collection: str | None = None,
        page_limit: int = 1000,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._url = f"{rpc_url.rstrip('/')}/?api-key={api_key}"
        self._collection = collection
        self._page_limit = page_limit
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def get_wallet_nfts(self, wallet_address: str) -> list[NftMetadata]:
        """Fetch the wallet's NFTs (filtered to the configured collection).

        Raises:
            ProviderError: If the RPC call fails
        """
        logger.info(f"Fetching NFTs for wallet: {wallet_address}")
        body = {
            "jsonrpc": "2.0",
            "id": "owner-query",
            "method": "getAssetsByOwner",
            "params": {"ownerAddress": wallet_address, "page": 1, "limit": self._page_limit},
        }
        try:
            response = await self._http.post(self._url, json=body)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"NFT lookup failed with status {e.response.status_code}", provider="helius"
            ) from e
        except httpx.RequestError as e:
            raise ProviderTimeoutError(
                f"NFT lookup failed: {e}", provider="helius", retryable=True
            ) from e
        except ValueError as e:
            raise ProviderError(f"Invalid NFT lookup response: {e}", provider="helius") from e

        if "error" in payload:
            message = (payload["error"] or {}).get("message", "unknown error")
            raise ProviderError(f"NFT lookup rejected: {message}", provider="helius")

        assets = (payload.get("result") or {}).get("items") or []
        if self._collection:
            assets = [a for a in assets if _in_collection(a, self._collection)]
            logger.debug(f"{len(assets)} assets in collection {self._collection}")

        resolved = await asyncio.gather(
            *(self._resolve_asset(asset, wallet_address) for asset in assets)
        )
        return [nft for nft in resolved if nft is not None]

    async def _resolve_asset(self, asset: dict[str, Any], wallet_address: str) -> NftMetadata | None:
        asset_id = asset.get("id", "")
        json_uri = (asset.get("content") or {}).get("json_uri")
        if not json_uri:
            logger.warning(f"No JSON URI found for asset: {asset_id}")
            return None

        try:
            response = await self._http.get(json_uri, follow_redirects=True)
            response.raise_for_status()
            metadata = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Skipping asset {asset_id}, metadata unavailable: {e}")
            return None

        return NftMetadata(
            id=asset_id,
            name=metadata.get("name") or f"NFT #{asset_id}",
            image=metadata.get("image"),
            description=metadata.get("description") or "",
            attributes=metadata.get("attributes") or [],
            mint=asset_id,
            token_id=metadata.get("tokenId"),
            collection=self._collection,
            owner=wallet_address,
        )

    async def aclose(self) -> None:
        await self._http.aclose()
