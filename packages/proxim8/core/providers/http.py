"""HTTP media download built on HTTPX."""

from __future__ import annotations

import logging

import httpx

from proxim8.core.providers.base import DownloadedMedia
from proxim8.core.providers.errors import ProviderError, ProviderTimeoutError

logger = logging.getLogger(__name__)


async def fetch_bytes(
    client: httpx.AsyncClient,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    provider: str = "http",
) -> DownloadedMedia:
    """GET url and return its body and content type.

    Raises:
        ProviderTimeoutError: On connection failure or timeout
        ProviderError: On non-2xx responses
    """
    try:
        response = await client.get(url, headers=headers, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise ProviderError(
            f"Download failed with status {e.response.status_code}: {url[:80]}",
            provider=provider,
            retryable=e.response.status_code >= 500,
        ) from e
    except httpx.RequestError as e:
        raise ProviderTimeoutError(
            f"Download failed: {e}", provider=provider, retryable=True
        ) from e

    content_type = response.headers.get("content-type", "application/octet-stream")
    logger.debug(f"Downloaded {len(response.content)} bytes ({content_type}) from {url[:60]}")
    return DownloadedMedia(data=response.content, content_type=content_type.split(";")[0])


class HttpMediaFetcher:
    """Downloads remote media with a shared AsyncClient."""

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 60.0):
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch(self, url: str, *, headers: dict[str, str] | None = None) -> DownloadedMedia:
        return await fetch_bytes(self._client, url, headers=headers)

    async def aclose(self) -> None:
        await self._client.aclose()
