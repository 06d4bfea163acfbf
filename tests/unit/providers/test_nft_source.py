"""Tests for NFT lookup and media download."""

from __future__ import annotations

import json

import httpx
import pytest

from proxim8.core.providers.errors import ProviderError, ProviderTimeoutError
from proxim8.core.providers.http import HttpMediaFetcher
from proxim8.core.providers.nft import HeliusNftSource, StaticNftSource, find_nft
from tests.fixtures.generation import WALLET, sample_nft

COLLECTION = "Proxim8Collection"


def asset(asset_id: str, collection: str | None = COLLECTION, json_uri: str | None = None) -> dict:
    return {
        "id": asset_id,
        "content": {"json_uri": json_uri or f"https://meta.test/{asset_id}.json"},
        "grouping": [{"group_key": "collection", "group_value": collection}] if collection else [],
    }


def helius_handler(assets: list[dict], metadata: dict[str, dict]):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            body = json.loads(request.content)
            assert body["method"] == "getAssetsByOwner"
            assert body["params"]["ownerAddress"] == WALLET
            return httpx.Response(200, json={"result": {"items": assets}})
        doc = metadata.get(request.url.path.strip("/"))
        if doc is None:
            return httpx.Response(404)
        return httpx.Response(200, json=doc)

    return handler


def helius(handler, collection: str | None = COLLECTION) -> HeliusNftSource:
    return HeliusNftSource(
        api_key="k",
        collection=collection,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestFindNft:
    def test_matches_id_or_mint(self):
        nfts = [sample_nft("a"), sample_nft("b")]

        assert find_nft(nfts, "b").id == "b"
        assert find_nft(nfts, "mint-a").id == "a"
        assert find_nft(nfts, "zzz") is None

    async def test_static_source(self):
        source = StaticNftSource()
        source.add(WALLET, sample_nft())

        assert len(await source.get_wallet_nfts(WALLET)) == 1
        assert await source.get_wallet_nfts("Other") == []


class TestHeliusNftSource:
    async def test_resolves_collection_assets(self):
        handler = helius_handler(
            [asset("a1"), asset("b2", collection="Other"), asset("c3")],
            {
                "a1.json": {"name": "Proxim8 #1", "image": "https://img/1.png", "attributes": []},
                "c3.json": {"image": "https://img/3.png"},
            },
        )

        nfts = await helius(handler).get_wallet_nfts(WALLET)

        assert [n.id for n in nfts] == ["a1", "c3"]
        assert nfts[0].name == "Proxim8 #1"
        assert nfts[1].name == "NFT #c3"
        assert nfts[0].owner == WALLET
        assert nfts[0].collection == COLLECTION

    async def test_unreadable_metadata_is_skipped(self):
        handler = helius_handler([asset("a1"), asset("x9")], {"a1.json": {"name": "One"}})

        nfts = await helius(handler, collection=None).get_wallet_nfts(WALLET)

        assert [n.id for n in nfts] == ["a1"]

    async def test_rpc_error(self):
        source = helius(
            lambda request: httpx.Response(200, json={"error": {"message": "bad owner"}})
        )

        with pytest.raises(ProviderError, match="bad owner"):
            await source.get_wallet_nfts(WALLET)

    async def test_http_error(self):
        source = helius(lambda request: httpx.Response(500))

        with pytest.raises(ProviderError, match="status 500"):
            await source.get_wallet_nfts(WALLET)


class TestHttpMediaFetcher:
    async def test_fetch(self):
        fetcher = HttpMediaFetcher(
            httpx.AsyncClient(
                transport=httpx.MockTransport(
                    lambda request: httpx.Response(
                        200, content=b"png", headers={"content-type": "image/png"}
                    )
                )
            )
        )

        media = await fetcher.fetch("https://arweave.test/1.png")
        await fetcher.aclose()

        assert media.data == b"png"
        assert media.content_type == "image/png"

    async def test_not_found(self):
        fetcher = HttpMediaFetcher(
            httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
        )

        with pytest.raises(ProviderError) as exc_info:
            await fetcher.fetch("https://arweave.test/missing.png")
        assert not exc_info.value.retryable

    async def test_connection_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        fetcher = HttpMediaFetcher(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        with pytest.raises(ProviderTimeoutError):
            await fetcher.fetch("https://arweave.test/1.png")
