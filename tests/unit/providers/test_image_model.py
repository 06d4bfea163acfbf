"""Tests for the OpenAI image model and reference image helpers."""

from __future__ import annotations

import base64
from io import BytesIO
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
from PIL import Image
import pytest

from proxim8.core.providers.errors import InvalidRequestError, ProviderError, RateLimitError
from proxim8.core.providers.image import (
    OpenAIImageModel,
    coerce_reference_size,
    to_rgba_png,
)
from tests.fixtures.generation import png_bytes

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/images/generations")


def images_response(**item) -> SimpleNamespace:
    return SimpleNamespace(data=[SimpleNamespace(**item)])


def make_model(generate=None, edit=None, **kwargs) -> tuple[OpenAIImageModel, MagicMock]:
    client = MagicMock()
    client.images.generate = generate or AsyncMock()
    client.images.edit = edit or AsyncMock()
    kwargs.setdefault("retry_delay_s", 0)
    return OpenAIImageModel(client, **kwargs), client


class TestReferenceHelpers:
    @pytest.mark.parametrize(
        ("requested", "expected"),
        [
            ("1792x1024", "1536x1024"),
            ("1024x1792", "1024x1536"),
            ("1024x1024", "1024x1024"),
            ("auto", "auto"),
            ("512x512", "1024x1024"),
        ],
    )
    def test_coerce_reference_size(self, requested: str, expected: str):
        assert coerce_reference_size(requested) == expected

    def test_to_rgba_png(self):
        converted = Image.open(BytesIO(to_rgba_png(png_bytes(mode="RGB"))))

        assert converted.mode == "RGBA"
        assert converted.format == "PNG"

    def test_to_rgba_png_rejects_garbage(self):
        with pytest.raises(ProviderError, match="could not be decoded"):
            to_rgba_png(b"not an image")


class TestOpenAIImageModel:
    async def test_generate_decodes_base64(self):
        encoded = base64.b64encode(b"pixels").decode()
        model, client = make_model(
            generate=AsyncMock(return_value=images_response(b64_json=encoded))
        )

        image = await model.generate("a tower", size="1792x1024", style="vivid")

        assert image.data == b"pixels"
        kwargs = client.images.generate.await_args.kwargs
        assert kwargs["model"] == "dall-e-3"
        assert kwargs["size"] == "1792x1024"
        assert kwargs["style"] == "vivid"

    async def test_generate_without_style(self):
        model, client = make_model(
            generate=AsyncMock(return_value=images_response(url="https://img/1.png"))
        )

        image = await model.generate("a tower", size="1024x1024", style=None)

        assert image.url == "https://img/1.png"
        assert "style" not in client.images.generate.await_args.kwargs

    async def test_edit_sends_reference(self):
        encoded = base64.b64encode(b"edited").decode()
        model, client = make_model(edit=AsyncMock(return_value=images_response(b64_json=encoded)))

        image = await model.edit("a tower", b"rgba", size="1536x1024")

        assert image.data == b"edited"
        kwargs = client.images.edit.await_args.kwargs
        assert kwargs["model"] == "gpt-image-1"
        assert kwargs["image"] == ("reference.png", b"rgba", "image/png")

    async def test_retries_transient_errors(self):
        rate_limited = openai.RateLimitError(
            "slow down", response=httpx.Response(429, request=REQUEST), body=None
        )
        generate = AsyncMock(side_effect=[rate_limited, images_response(url="https://img/2.png")])
        model, _ = make_model(generate=generate)

        image = await model.generate("a tower", size="1024x1024", style=None)

        assert image.url == "https://img/2.png"
        assert generate.await_count == 2

    async def test_gives_up_after_max_retries(self):
        rate_limited = openai.RateLimitError(
            "slow down", response=httpx.Response(429, request=REQUEST), body=None
        )
        generate = AsyncMock(side_effect=rate_limited)
        model, _ = make_model(generate=generate, max_retries=2)

        with pytest.raises(RateLimitError):
            await model.generate("a tower", size="1024x1024", style=None)
        assert generate.await_count == 2

    async def test_bad_request_is_not_retried(self):
        bad = openai.BadRequestError(
            "Invalid size", response=httpx.Response(400, request=REQUEST), body={"param": "size"}
        )
        edit = AsyncMock(side_effect=bad)
        model, _ = make_model(edit=edit)

        with pytest.raises(InvalidRequestError):
            await model.edit("a tower", b"rgba", size="999x999")
        assert edit.await_count == 1

    async def test_empty_response(self):
        model, _ = make_model(generate=AsyncMock(return_value=SimpleNamespace(data=[])))

        with pytest.raises(ProviderError, match="empty data"):
            await model.generate("a tower", size="1024x1024", style=None)
