"""Video generation stage.

Submits the long-running video operation and returns immediately with its
handle. Completion is tracked by a supervised background poller that writes
the result to the job record, so the pipeline never waits on rendering.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from urllib.parse import urlparse

from proxim8.core.errors import StorageError
from proxim8.core.jobs.poller import VideoPollSupervisor
from proxim8.core.pipeline.context import ContextKey, GenerationContext, MetaKey
from proxim8.core.pipeline.outputs import VideoOutput
from proxim8.core.pipeline.result import (
    StageResult,
    failure_result,
    skipped_result,
    success_result,
)
from proxim8.core.pipeline.stage import StageId
from proxim8.core.providers.base import MediaFetcher, VideoModel, VideoRequest
from proxim8.core.providers.errors import ProviderError
from proxim8.core.storage.paths import content_type_for
from proxim8.core.storage.protocols import ObjectStorage
from proxim8.core.utils.logging import get_logger

logger = logging.getLogger(__name__)

PROCESSING = "processing"
FAILED = "failed"

# Fields owned by this stage, removed when it fails
VIDEO_FIELDS: tuple[str, ...] = (
    ContextKey.VIDEO_URL,
    ContextKey.VIDEO_PATH,
    ContextKey.VIDEO_JOB_ID,
    ContextKey.VIDEO_OPERATION_NAME,
)


@dataclass(frozen=True)
class VideoDefaults:
    """Generation parameters used when the request options leave them out."""

    resolution: str = "1080p"
    aspect_ratio: str = "16:9"
    style: str = "cinematic"
    duration: int = 10
    fps: int = 24


def is_absolute_http_url(value: str | None) -> bool:
    if not value:
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class VideoGenerationMiddleware:
    """Starts video generation from the run's image.

    Args:
        video_model: Injected video model
        storage: Object storage holding the run's image
        fetcher: Downloads the image when it is not in storage
        supervisor: Owner of the background status pollers
        defaults: Generation parameter defaults
    """

    def __init__(
        self,
        video_model: VideoModel,
        storage: ObjectStorage,
        fetcher: MediaFetcher,
        supervisor: VideoPollSupervisor,
        defaults: VideoDefaults | None = None,
    ):
        self._video_model = video_model
        self._storage = storage
        self._fetcher = fetcher
        self._supervisor = supervisor
        self.defaults = defaults or VideoDefaults()

    @property
    def stage_id(self) -> StageId:
        return StageId.VIDEO

    def _fail(self, message: str, suggestion: str | None = None) -> StageResult[VideoOutput]:
        return failure_result(
            message,
            StageId.VIDEO,
            cleared_fields=VIDEO_FIELDS,
            suggestion=suggestion,
            metadata={ContextKey.VIDEO_STATUS: FAILED},
        )

    def _track(self, context: GenerationContext, operation_name: str) -> None:
        job_id = context.get(ContextKey.JOB_ID)
        wallet_address = context.get(ContextKey.WALLET_ADDRESS)
        if not job_id or not wallet_address:
            logger.warning(
                f"No job to track operation {operation_name}; its result will not be stored"
            )
            return
        self._supervisor.start(job_id, operation_name, wallet_address)

    async def execute(self, context: GenerationContext) -> StageResult[VideoOutput]:
        log = get_logger(__name__, job_id=context.get(ContextKey.JOB_ID), stage=StageId.VIDEO.value)
        if context.get_metadata(MetaKey.CACHE_HIT):
            if context.get(ContextKey.VIDEO_URL):
                return skipped_result(StageId.VIDEO, "Video loaded from cache")
            cached_operation = context.get(ContextKey.VIDEO_OPERATION_NAME)
            if cached_operation:
                log.info(f"Reusing cached video operation {cached_operation}")
                self._track(context, cached_operation)
                return success_result(
                    VideoOutput(
                        video_status=PROCESSING,
                        video_operation_name=cached_operation,
                        video_job_id=cached_operation,
                    ),
                    StageId.VIDEO,
                )

        prompt = context.get(ContextKey.ENHANCED_PROMPT) or context.get(ContextKey.USER_PROMPT)
        image_url = context.get(ContextKey.IMAGE_URL)
        if not prompt:
            return self._fail("Prompt is required for video generation")
        if not is_absolute_http_url(image_url):
            return self._fail(f"Image URL must be an absolute http(s) URL, got: {image_url!r}")

        request_options = {
            "resolution": context.option("resolution", self.defaults.resolution),
            "aspect_ratio": context.option("aspect_ratio", self.defaults.aspect_ratio),
            "style": context.option("video_style", self.defaults.style),
            "duration": int(context.option("duration", self.defaults.duration)),
            "fps": int(context.option("fps", self.defaults.fps)),
        }

        try:
            image_bytes, mime_type = await self._load_image(context, image_url)
            operation_name = await self._video_model.submit(
                VideoRequest(
                    prompt=prompt,
                    image_bytes=image_bytes,
                    image_mime_type=mime_type,
                    **request_options,
                )
            )
        except ProviderError as e:
            return self._fail(e.message, suggestion=e.suggestion)
        except StorageError as e:
            return self._fail(f"Failed to read image: {e}")

        log.info(f"Video operation started: {operation_name}")
        self._track(context, operation_name)
        return success_result(
            VideoOutput(
                video_status=PROCESSING,
                video_operation_name=operation_name,
                video_job_id=operation_name,
            ),
            StageId.VIDEO,
        )

    async def _load_image(self, context: GenerationContext, image_url: str) -> tuple[bytes, str]:
        image_path = context.get(ContextKey.IMAGE_PATH)
        if image_path:
            return await self._storage.download(image_path), content_type_for(image_path)
        media = await self._fetcher.fetch(image_url)
        return media.data, media.content_type
