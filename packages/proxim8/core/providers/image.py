"""OpenAI Images API model with retry logic.

Async-first wrapper around client.images.generate() (prompt only) and
client.images.edit() (seeded by a reference image), with exponential
backoff on transient errors.

Reference-image edits use gpt-image-1, which:
- Requires a PNG with an alpha channel
- Only supports sizes: 1024x1024, 1024x1536, 1536x1024, auto
- Ignores the style parameter
"""

from __future__ import annotations

import asyncio
import base64
from io import BytesIO
import logging

from openai import (
    APIConnectionError,
    APITimeoutError,
    AsyncOpenAI,
    InternalServerError,
    OpenAIError,
    RateLimitError,
)
from PIL import Image, UnidentifiedImageError

from proxim8.core.providers.base import GeneratedImage
from proxim8.core.providers.errors import ProviderError, enrich_openai_error

logger = logging.getLogger(__name__)

# Errors worth retrying
_RETRYABLE_ERRORS = (APIConnectionError, APITimeoutError, RateLimitError, InternalServerError)

# Sizes accepted by the edit endpoint
REFERENCE_SIZES = frozenset({"1024x1024", "1024x1536", "1536x1024", "auto"})

# Closest accepted size for sizes only standalone generation supports
_REFERENCE_SIZE_MAP = {
    "1792x1024": "1536x1024",
    "1024x1792": "1024x1536",
}


def coerce_reference_size(size: str) -> str:
    """Map a requested size onto one accepted by the reference-image endpoint.

    Args:
        size: Requested size (e.g., '1792x1024')

    Returns:
        Accepted size string; unknown sizes fall back to '1024x1024'

    Example:
        >>> coerce_reference_size("1792x1024")
        '1536x1024'
    """
    if size in REFERENCE_SIZES:
        return size
    return _REFERENCE_SIZE_MAP.get(size, "1024x1024")


def to_rgba_png(data: bytes) -> bytes:
    """Re-encode image bytes as a PNG with an alpha channel.

    Args:
        data: Image bytes in any format Pillow can read

    Returns:
        RGBA PNG bytes

    Raises:
        ProviderError: If the bytes are not a readable image
    """
    try:
        img: Image.Image = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ProviderError(f"Reference image could not be decoded: {e}") from e

    if img.mode != "RGBA":
        img = img.convert("RGBA")

    buf = BytesIO()
    img.save(buf, "PNG")
    return buf.getvalue()


class OpenAIImageModel:
    """Async client for generating images via the OpenAI Images API.

    Args:
        client: AsyncOpenAI client instance.
        generation_model: Model for prompt-only generation.
        edit_model: Model for reference-image edits.
        max_retries: Maximum attempts on transient errors.
        retry_delay_s: Initial delay between retries in seconds.
        retry_backoff: Backoff multiplier for retry delays.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        generation_model: str = "dall-e-3",
        edit_model: str = "gpt-image-1",
        max_retries: int = 3,
        retry_delay_s: float = 2.0,
        retry_backoff: float = 2.0,
    ) -> None:
        self._client = client
        self.generation_model = generation_model
        self.edit_model = edit_model
        self._max_retries = max_retries
        self._retry_delay_s = retry_delay_s
        self._retry_backoff = retry_backoff

    async def generate(self, prompt: str, *, size: str, style: str | None) -> GeneratedImage:
        """Generate an image from a prompt alone.

        Raises:
            ProviderError: If all retries are exhausted or the request is rejected.
        """
        params: dict[str, object] = {
            "model": self.generation_model,
            "prompt": prompt,
            "n": 1,
            "size": size,
        }
        if style:
            params["style"] = style

        response = await self._with_retries(
            "generate", lambda: self._client.images.generate(**params)  # type: ignore[arg-type]
        )
        return _to_generated_image(response)

    async def edit(self, prompt: str, reference_png: bytes, *, size: str) -> GeneratedImage:
        """Generate an image seeded by a reference RGBA PNG.

        Raises:
            ProviderError: If all retries are exhausted or the request is rejected.
        """
        response = await self._with_retries(
            "edit",
            lambda: self._client.images.edit(
                model=self.edit_model,
                image=("reference.png", reference_png, "image/png"),
                prompt=prompt,
                n=1,
                size=size,  # type: ignore[arg-type]
            ),
        )
        return _to_generated_image(response)

    async def _with_retries(self, operation: str, call):  # type: ignore[no-untyped-def]
        last_error: Exception | None = None
        delay = self._retry_delay_s

        for attempt in range(1, self._max_retries + 1):
            try:
                return await call()
            except _RETRYABLE_ERRORS as e:
                last_error = e
                logger.warning(
                    "Image %s attempt %d/%d failed (retryable): %s",
                    operation,
                    attempt,
                    self._max_retries,
                    e,
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(delay)
                    delay *= self._retry_backoff
            except OpenAIError as e:
                raise enrich_openai_error(e) from e

        if last_error is None:
            raise ProviderError(f"Image {operation} was not attempted", provider="openai")
        raise enrich_openai_error(last_error) from last_error


def _to_generated_image(response) -> GeneratedImage:  # type: ignore[no-untyped-def]
    if not response.data:
        raise ProviderError("Image API returned empty data list", provider="openai")

    item = response.data[0]
    revised_prompt = getattr(item, "revised_prompt", None)
    if getattr(item, "b64_json", None):
        return GeneratedImage(
            data=base64.b64decode(item.b64_json), revised_prompt=revised_prompt
        )
    if getattr(item, "url", None):
        return GeneratedImage(url=item.url, revised_prompt=revised_prompt)
    raise ProviderError("Image API returned neither url nor b64_json", provider="openai")
