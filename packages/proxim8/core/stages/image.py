"""Image generation stage.

Generates the still image for a run, seeded by the NFT's artwork when a
reference image is available, and stores it durably under the owner's
prefix.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
import logging

from proxim8.core.errors import StorageError
from proxim8.core.pipeline.context import ContextKey, GenerationContext, MetaKey
from proxim8.core.pipeline.outputs import ImageOutput
from proxim8.core.pipeline.result import (
    StageResult,
    failure_result,
    skipped_result,
    success_result,
)
from proxim8.core.pipeline.stage import StageId
from proxim8.core.providers.base import GeneratedImage, ImageModel, MediaFetcher
from proxim8.core.providers.errors import ProviderError
from proxim8.core.providers.image import coerce_reference_size, to_rgba_png
from proxim8.core.storage.paths import extension_for_content_type, image_object_path
from proxim8.core.storage.protocols import ObjectStorage
from proxim8.core.utils.logging import get_logger

logger = logging.getLogger(__name__)

# Fields owned by this stage, removed when it fails
IMAGE_FIELDS: tuple[str, ...] = (
    ContextKey.IMAGE_URL,
    ContextKey.IMAGE_PATH,
    ContextKey.THUMBNAIL_PATH,
    ContextKey.THUMBNAIL_URL,
    "local_image_url",
    "image_id",
    "image_local_path",
)


@dataclass(frozen=True)
class ImageDefaults:
    """Defaults applied when the request options leave them out."""

    size: str = "1792x1024"
    style: str = "vivid"
    signed_url_minutes: int = 60


class ImageGenerationMiddleware:
    """Generates, stores and signs the run's image.

    Options read from the context (`options` field):
        reference_image_url: Reference image (defaults to the NFT image)
        size: Requested size
        style: Requested style (standalone generation only)

    Args:
        image_model: Injected image model
        storage: Durable object storage
        fetcher: Downloads reference images and URL-only results
        defaults: Size, style and URL lifetime defaults
    """

    def __init__(
        self,
        image_model: ImageModel,
        storage: ObjectStorage,
        fetcher: MediaFetcher,
        defaults: ImageDefaults | None = None,
    ):
        self._image_model = image_model
        self._storage = storage
        self._fetcher = fetcher
        self.defaults = defaults or ImageDefaults()

    @property
    def stage_id(self) -> StageId:
        return StageId.IMAGE

    def _fail(self, message: str, suggestion: str | None = None) -> StageResult[ImageOutput]:
        return failure_result(
            message, StageId.IMAGE, cleared_fields=IMAGE_FIELDS, suggestion=suggestion
        )

    async def execute(self, context: GenerationContext) -> StageResult[ImageOutput]:
        if context.get_metadata(MetaKey.CACHE_HIT) and context.get(ContextKey.IMAGE_URL):
            if context.get(ContextKey.IMAGE_PATH):
                return skipped_result(StageId.IMAGE, "Image loaded from cache")

        prompt = context.get(ContextKey.ENHANCED_PROMPT) or context.get(ContextKey.USER_PROMPT)
        wallet_address = context.get(ContextKey.WALLET_ADDRESS)
        job_id = context.get(ContextKey.JOB_ID)
        log = get_logger(__name__, job_id=job_id, stage=StageId.IMAGE.value)
        if not prompt:
            return self._fail("Prompt is required for image generation")
        if not wallet_address:
            return self._fail("Wallet address is required for image generation")
        if not job_id:
            return self._fail("Job ID is required for image generation")

        reference_url = context.option("reference_image_url") or context.get(
            ContextKey.NFT_IMAGE_URL
        )
        size = context.option("size", self.defaults.size)
        style = context.option("style", self.defaults.style)

        try:
            if reference_url:
                image = await self._generate_from_reference(prompt, reference_url, size, style)
            else:
                log.info(f"Generating image for job {job_id} (size={size}, style={style})")
                image = await self._image_model.generate(prompt, size=size, style=style)

            data = await self._image_bytes(image)
            ext = extension_for_content_type(image.content_type, default="png")
            path = image_object_path(wallet_address, job_id, ext)
            await self._storage.upload(path, data, image.content_type)
            url = await self._storage.signed_url(
                path, timedelta(minutes=self.defaults.signed_url_minutes)
            )
        except ProviderError as e:
            return self._fail(e.message, suggestion=e.suggestion)
        except StorageError as e:
            return self._fail(f"Failed to store image: {e}")

        log.info(f"Image for job {job_id} stored at {path}")
        return success_result(
            ImageOutput(image_url=url, image_path=path, thumbnail_path=path, thumbnail_url=url),
            StageId.IMAGE,
        )

    async def _generate_from_reference(
        self, prompt: str, reference_url: str, size: str, style: str | None
    ) -> GeneratedImage:
        reference = await self._fetcher.fetch(reference_url)
        reference_png = to_rgba_png(reference.data)

        edit_size = coerce_reference_size(size)
        if edit_size != size:
            logger.info(f"Size {size} not supported with a reference image, using {edit_size}")
        if style:
            logger.info(f"Style '{style}' is ignored when generating from a reference image")

        return await self._image_model.edit(prompt, reference_png, size=edit_size)

    async def _image_bytes(self, image: GeneratedImage) -> bytes:
        if image.data is not None:
            return image.data
        if image.url:
            return (await self._fetcher.fetch(image.url)).data
        raise ProviderError("Image model returned neither data nor a URL", provider="openai")
