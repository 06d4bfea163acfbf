"""Tests for ImageGenerationMiddleware."""

from __future__ import annotations

from datetime import timedelta
from io import BytesIO

from PIL import Image
import pytest

from proxim8.core.pipeline.context import ContextKey, GenerationContext, MetaKey
from proxim8.core.pipeline.executor import Pipeline
from proxim8.core.providers.base import GeneratedImage
from proxim8.core.providers.errors import ContentPolicyError
from proxim8.core.stages import IMAGE_FIELDS, ImageDefaults, ImageGenerationMiddleware
from tests.fixtures.generation import (
    NFT_IMAGE_URL,
    WALLET,
    FakeStorage,
    StubFetcher,
    StubImageModel,
)


@pytest.fixture
def stage(
    image_model: StubImageModel, storage: FakeStorage, fetcher: StubFetcher
) -> ImageGenerationMiddleware:
    return ImageGenerationMiddleware(image_model, storage, fetcher)


class TestGeneration:
    """Prompt-only generation."""

    async def test_generates_stores_and_signs(
        self,
        stage: ImageGenerationMiddleware,
        context: GenerationContext,
        image_model: StubImageModel,
        storage: FakeStorage,
    ):
        context.set(ContextKey.ENHANCED_PROMPT, "The agent scales the tower")
        result = await stage.execute(context)

        assert result.success
        path = f"users/{WALLET}/images/job-1_preview.png"
        assert result.output.image_path == path
        assert result.output.thumbnail_path == path
        assert result.output.image_url == result.output.thumbnail_url
        assert path in storage.objects
        assert storage.sign_calls == [(path, timedelta(minutes=60))]
        assert image_model.generate_calls == [
            {"prompt": "The agent scales the tower", "size": "1792x1024", "style": "vivid"}
        ]

    async def test_falls_back_to_user_prompt(
        self, stage: ImageGenerationMiddleware, context: GenerationContext, image_model: StubImageModel
    ):
        await stage.execute(context)

        assert image_model.generate_calls[0]["prompt"] == "infiltrate the tower at dawn"

    async def test_options_override_defaults(
        self, stage: ImageGenerationMiddleware, image_model: StubImageModel
    ):
        ctx = GenerationContext.create(
            job_id="j",
            user_prompt="walk",
            wallet_address=WALLET,
            options={"size": "1024x1024", "style": "natural"},
        )
        await stage.execute(ctx)

        assert image_model.generate_calls[0]["size"] == "1024x1024"
        assert image_model.generate_calls[0]["style"] == "natural"

    async def test_url_result_is_downloaded(
        self, storage: FakeStorage, fetcher: StubFetcher, context: GenerationContext
    ):
        model = StubImageModel(image=GeneratedImage(url="https://oaidalle.test/img.png"))
        result = await ImageGenerationMiddleware(model, storage, fetcher).execute(context)

        assert result.success
        assert fetcher.urls == ["https://oaidalle.test/img.png"]

    async def test_jpeg_content_type_sets_extension(
        self, storage: FakeStorage, fetcher: StubFetcher, context: GenerationContext
    ):
        model = StubImageModel(image=GeneratedImage(data=b"jpeg", content_type="image/jpeg"))
        result = await ImageGenerationMiddleware(model, storage, fetcher).execute(context)

        assert result.output.image_path.endswith(".jpg")


class TestReferenceImage:
    """Generation seeded by the NFT artwork."""

    async def test_reference_is_rgba_png_with_coerced_size(
        self,
        stage: ImageGenerationMiddleware,
        context: GenerationContext,
        image_model: StubImageModel,
        fetcher: StubFetcher,
    ):
        context.set(ContextKey.NFT_IMAGE_URL, NFT_IMAGE_URL)
        result = await stage.execute(context)

        assert result.success
        assert fetcher.urls == [NFT_IMAGE_URL]
        assert image_model.generate_calls == []
        call = image_model.edit_calls[0]
        assert call["size"] == "1536x1024"
        assert Image.open(BytesIO(call["reference"])).mode == "RGBA"

    async def test_explicit_reference_wins(
        self, stage: ImageGenerationMiddleware, fetcher: StubFetcher
    ):
        ctx = GenerationContext.create(
            job_id="j",
            user_prompt="walk",
            wallet_address=WALLET,
            nft_image_url=NFT_IMAGE_URL,
            options={"reference_image_url": "https://ref.test/a.png", "size": "1024x1792"},
        )
        await stage.execute(ctx)

        assert fetcher.urls == ["https://ref.test/a.png"]

    async def test_undecodable_reference_fails(
        self, storage: FakeStorage, image_model: StubImageModel, context: GenerationContext
    ):
        stage = ImageGenerationMiddleware(image_model, storage, StubFetcher(data=b"not an image"))
        context.set(ContextKey.NFT_IMAGE_URL, NFT_IMAGE_URL)

        result = await stage.execute(context)

        assert not result.success
        assert "could not be decoded" in result.error
        assert image_model.edit_calls == []


class TestFailures:
    @pytest.mark.parametrize(
        ("missing", "message"),
        [
            (ContextKey.USER_PROMPT, "Prompt is required for image generation"),
            (ContextKey.WALLET_ADDRESS, "Wallet address is required for image generation"),
            (ContextKey.JOB_ID, "Job ID is required for image generation"),
        ],
    )
    async def test_missing_inputs(
        self,
        stage: ImageGenerationMiddleware,
        context: GenerationContext,
        image_model: StubImageModel,
        missing: str,
        message: str,
    ):
        context.fields.pop(missing)
        result = await stage.execute(context)

        assert result.error == message
        assert result.fatal
        assert image_model.generate_calls == []

    async def test_provider_error_clears_image_fields(
        self, storage: FakeStorage, fetcher: StubFetcher, context: GenerationContext
    ):
        model = StubImageModel(
            error=ContentPolicyError(
                "Content policy violation: rejected", provider="openai", suggestion="Rephrase"
            )
        )
        for field in IMAGE_FIELDS:
            context.set(field, "stale")

        result = await Pipeline(
            "image", [ImageGenerationMiddleware(model, storage, fetcher)]
        ).execute(context)

        assert result.status == "error"
        assert result.error == "Image failed: Content policy violation: rejected"
        for field in IMAGE_FIELDS:
            assert result.get(field) is None

    async def test_storage_error_fails(
        self, stage: ImageGenerationMiddleware, storage: FakeStorage, context: GenerationContext
    ):
        storage.fail_uploads = True
        result = await stage.execute(context)

        assert not result.success
        assert result.error.startswith("Failed to store image")


class TestCacheHit:
    async def test_skips_when_cached(
        self, stage: ImageGenerationMiddleware, context: GenerationContext, image_model: StubImageModel
    ):
        context.set_metadata(MetaKey.CACHE_HIT, True)
        context.set(ContextKey.IMAGE_URL, "https://cached")
        context.set(ContextKey.IMAGE_PATH, "users/w/images/old.png")

        result = await stage.execute(context)

        assert result.skipped
        assert image_model.generate_calls == []


def test_defaults():
    defaults = ImageDefaults()

    assert (defaults.size, defaults.style, defaults.signed_url_minutes) == ("1792x1024", "vivid", 60)
