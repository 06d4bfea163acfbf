"""Veo video generation model.

Submission goes through google-genai; the returned operation is then
polled by name over the Generative Language REST API, since the poller
only keeps the operation name between checks.
"""

from __future__ import annotations

import logging
from typing import Any

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
import httpx

from proxim8.core.providers.base import (
    DownloadedMedia,
    OperationState,
    OperationStatus,
    VideoRequest,
)
from proxim8.core.providers.errors import (
    ContentPolicyError,
    InvalidRequestError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    UpstreamServerError,
)
from proxim8.core.providers.http import fetch_bytes

logger = logging.getLogger(__name__)

DEFAULT_STATUS_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

# Clip lengths Veo accepts, in seconds
MIN_DURATION_SECONDS = 5
MAX_DURATION_SECONDS = 8


def clamp_duration(seconds: int) -> int:
    return max(MIN_DURATION_SECONDS, min(MAX_DURATION_SECONDS, seconds))


def video_config(model: str, request: VideoRequest) -> types.GenerateVideosConfig:
    """Map a request onto the options Veo accepts.

    Veo 2 renders 720p only, so resolution is sent for later models. The
    Gemini API rejects fps; Veo renders at 24 fps.
    """
    options: dict[str, Any] = {}
    if not model.startswith("veo-2"):
        options["resolution"] = request.resolution
    return types.GenerateVideosConfig(
        aspect_ratio=request.aspect_ratio,
        duration_seconds=clamp_duration(request.duration),
        number_of_videos=1,
        person_generation="allow_adult",
        **options,
    )


def extract_video_uri(payload: dict[str, Any]) -> str | None:
    """Find the finished video URI in an operation payload.

    Checks response.generateVideoResponse.generatedSamples[0].video.uri,
    then the older metadata.videoGenerations[0].videoUrls[0] shape.
    """
    samples = (
        payload.get("response", {}).get("generateVideoResponse", {}).get("generatedSamples") or []
    )
    if samples:
        uri = (samples[0].get("video") or {}).get("uri")
        if uri:
            return uri

    generations = payload.get("metadata", {}).get("videoGenerations") or []
    if generations:
        urls = generations[0].get("videoUrls") or []
        if urls:
            return urls[0]
    return None


def parse_operation(payload: dict[str, Any]) -> OperationStatus:
    """Convert a raw operation payload into an OperationStatus."""
    metadata = payload.get("metadata") or {}
    state = str(metadata.get("state", "")).upper()

    if "error" in payload:
        message = (payload.get("error") or {}).get("message") or "Video generation failed"
        return OperationStatus(state=OperationState.FAILED, error=message, raw=payload)

    if state == "FAILED":
        message = (metadata.get("error") or {}).get("message") or "Video generation failed"
        return OperationStatus(state=OperationState.FAILED, error=message, raw=payload)

    if payload.get("done") or state == "SUCCEEDED":
        uri = extract_video_uri(payload)
        if uri is None:
            filtered = (
                payload.get("response", {})
                .get("generateVideoResponse", {})
                .get("raiMediaFilteredReasons")
            )
            reason = filtered[0] if filtered else "No video URI in completed operation"
            return OperationStatus(state=OperationState.FAILED, error=reason, raw=payload)
        return OperationStatus(state=OperationState.SUCCEEDED, video_uri=uri, raw=payload)

    return OperationStatus(state=OperationState.RUNNING, raw=payload)


def _enrich_genai_error(exc: genai_errors.APIError) -> ProviderError:
    message = exc.message or str(exc)
    if exc.code == 429:
        return RateLimitError(
            f"Veo quota exceeded: {message}",
            provider="veo",
            suggestion="Wait before submitting another video",
            retryable=True,
        )
    if isinstance(exc, genai_errors.ServerError):
        return UpstreamServerError(f"Veo server error: {message}", provider="veo", retryable=True)
    if "safety" in message.lower() or "policy" in message.lower():
        return ContentPolicyError(
            f"Video request rejected: {message}",
            provider="veo",
            suggestion="Rephrase the prompt or use a different image",
        )
    return InvalidRequestError(f"Veo rejected the request: {message}", provider="veo")


class VeoVideoModel:
    """Video model backed by Veo via the Gemini API."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "veo-2.0-generate-001",
        status_base_url: str = DEFAULT_STATUS_BASE_URL,
        client: genai.Client | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ):
        self._api_key = api_key
        self._model = model
        self._status_base_url = status_base_url.rstrip("/")
        self._client = client or genai.Client(api_key=api_key)
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def _auth_headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self._api_key}

    async def submit(self, request: VideoRequest) -> str:
        """Start video generation.

        Returns:
            Operation name (the handle used for status checks)

        Raises:
            ProviderError: If the request is rejected
        """
        prompt = f"{request.prompt}\n\nStyle: {request.style}." if request.style else request.prompt
        try:
            operation = await self._client.aio.models.generate_videos(
                model=self._model,
                prompt=prompt,
                image=types.Image(
                    image_bytes=request.image_bytes, mime_type=request.image_mime_type
                ),
                config=video_config(self._model, request),
            )
        except genai_errors.APIError as e:
            raise _enrich_genai_error(e) from e

        if not operation.name:
            raise ProviderError("Veo returned an operation without a name", provider="veo")

        logger.info(f"Video operation started: {operation.name}")
        return operation.name

    async def get_status(self, operation_name: str) -> OperationStatus:
        """Fetch an operation by name.

        Raises:
            ProviderError: On HTTP errors or an unparsable response
        """
        url = f"{self._status_base_url}/{operation_name}"
        try:
            response = await self._http.get(url, headers=self._auth_headers)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"Status check failed with status {e.response.status_code}",
                provider="veo",
                retryable=e.response.status_code >= 500 or e.response.status_code == 429,
            ) from e
        except httpx.RequestError as e:
            raise ProviderTimeoutError(
                f"Status check failed: {e}", provider="veo", retryable=True
            ) from e
        except ValueError as e:
            raise ProviderError(f"Invalid status response: {e}", provider="veo") from e

        return parse_operation(payload)

    async def download(self, uri: str) -> DownloadedMedia:
        """Download a finished video (the file URI requires the API key)."""
        return await fetch_bytes(self._http, uri, headers=self._auth_headers, provider="veo")

    async def aclose(self) -> None:
        await self._http.aclose()
