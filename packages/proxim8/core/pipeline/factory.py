"""Pipeline factory.

Builds pipelines from predefined types, stage name lists or saved
configurations. Every dependency a stage needs is injected through
PipelineServices; the factory holds no module-level clients.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
import logging

from proxim8.core.caching.fingerprint import KeyStrategy
from proxim8.core.caching.protocols import Cache
from proxim8.core.jobs.poller import VideoPollSupervisor
from proxim8.core.pipeline.configs import PipelineConfig
from proxim8.core.pipeline.executor import Pipeline
from proxim8.core.pipeline.stage import Middleware, StageId
from proxim8.core.providers.base import (
    ImageModel,
    MediaFetcher,
    PromptModel,
    TextGenerationOptions,
    VideoModel,
)
from proxim8.core.providers.nft import NftSource
from proxim8.core.stages.auth import AuthMiddleware
from proxim8.core.stages.caching import CacheLookupMiddleware, CacheSaveMiddleware
from proxim8.core.stages.image import ImageDefaults, ImageGenerationMiddleware
from proxim8.core.stages.lifecycle import ErrorHandlingMiddleware, LoggingMiddleware
from proxim8.core.stages.nft import NftExtractionMiddleware
from proxim8.core.stages.prompt import DEFAULT_STYLE, PromptEnhancementMiddleware
from proxim8.core.stages.video import VideoDefaults, VideoGenerationMiddleware
from proxim8.core.storage.protocols import ObjectStorage

logger = logging.getLogger(__name__)


class PipelineType(str, Enum):
    """Predefined pipeline shapes."""

    STANDARD = "standard"
    IMAGE_ONLY = "image-only"
    PROMPT_ONLY = "prompt-only"
    VIDEO_ONLY = "video-only"
    CUSTOM = "custom"


CORE_STAGES: tuple[StageId, ...] = (StageId.LOGGING, StageId.ERROR_HANDLING)

PIPELINE_STAGES: dict[PipelineType, tuple[StageId, ...]] = {
    PipelineType.STANDARD: (
        *CORE_STAGES,
        StageId.AUTH,
        StageId.CACHING,
        StageId.NFT_EXTRACTION,
        StageId.PROMPT,
        StageId.IMAGE,
        StageId.VIDEO,
        StageId.CACHE_SAVE,
    ),
    PipelineType.IMAGE_ONLY: (
        *CORE_STAGES,
        StageId.AUTH,
        StageId.NFT_EXTRACTION,
        StageId.PROMPT,
        StageId.IMAGE,
    ),
    PipelineType.PROMPT_ONLY: (*CORE_STAGES, StageId.PROMPT),
    PipelineType.VIDEO_ONLY: (*CORE_STAGES, StageId.AUTH, StageId.VIDEO),
}

# Accepted stage names: enum values plus the short names used in saved configurations
STAGE_ALIASES: dict[str, StageId] = {
    **{stage.value: stage for stage in StageId},
    "errorHandling": StageId.ERROR_HANDLING,
    "nft": StageId.NFT_EXTRACTION,
    "nftExtraction": StageId.NFT_EXTRACTION,
    "cache": StageId.CACHING,
    "cacheSave": StageId.CACHE_SAVE,
}


def resolve_stage_name(name: str) -> StageId | None:
    return STAGE_ALIASES.get(name)


@dataclass(frozen=True)
class PipelineSettings:
    """Tunables passed to the stages the factory builds."""

    cache_ttl_seconds: float = 259200.0
    tombstone_ttl_seconds: float = 1.0
    key_strategy: KeyStrategy = "prefix"
    text_options: TextGenerationOptions = field(default_factory=TextGenerationOptions)
    default_style: str = DEFAULT_STYLE
    world_lore: str = ""
    image: ImageDefaults = field(default_factory=ImageDefaults)
    video: VideoDefaults = field(default_factory=VideoDefaults)


@dataclass
class PipelineServices:
    """Dependencies injected into every pipeline the factory builds."""

    cache: Cache
    storage: ObjectStorage
    nft_source: NftSource
    prompt_model: PromptModel
    image_model: ImageModel
    video_model: VideoModel
    fetcher: MediaFetcher
    supervisor: VideoPollSupervisor
    settings: PipelineSettings = field(default_factory=PipelineSettings)


class PipelineFactory:
    """Creates pipelines over a shared set of services.

    Example:
        >>> factory = PipelineFactory(services)
        >>> pipeline = factory.create(PipelineType.STANDARD)
        >>> custom = factory.create_custom(["auth", "prompt", "image"])
        >>> [s.value for s in custom.stage_ids]
        ['logging', 'error_handling', 'auth', 'prompt', 'image']
    """

    def __init__(self, services: PipelineServices):
        self.services = services

    def build_stage(self, stage_id: StageId, settings: PipelineSettings | None = None) -> Middleware:
        """Instantiate the middleware for a stage."""
        s = self.services
        settings = settings or s.settings
        match stage_id:
            case StageId.LOGGING:
                return LoggingMiddleware()
            case StageId.ERROR_HANDLING:
                return ErrorHandlingMiddleware()
            case StageId.AUTH:
                return AuthMiddleware()
            case StageId.CACHING:
                return CacheLookupMiddleware(s.cache, key_strategy=settings.key_strategy)
            case StageId.NFT_EXTRACTION:
                return NftExtractionMiddleware(s.nft_source)
            case StageId.PROMPT:
                return PromptEnhancementMiddleware(
                    s.prompt_model,
                    settings.text_options,
                    default_style=settings.default_style,
                    world_lore=settings.world_lore,
                )
            case StageId.IMAGE:
                return ImageGenerationMiddleware(s.image_model, s.storage, s.fetcher, settings.image)
            case StageId.VIDEO:
                return VideoGenerationMiddleware(
                    s.video_model, s.storage, s.fetcher, s.supervisor, settings.video
                )
            case StageId.CACHE_SAVE:
                return CacheSaveMiddleware(
                    s.cache,
                    ttl_seconds=settings.cache_ttl_seconds,
                    tombstone_ttl_seconds=settings.tombstone_ttl_seconds,
                    key_strategy=settings.key_strategy,
                )
        raise ValueError(f"Unknown stage: {stage_id}")

    def create(
        self,
        pipeline_type: PipelineType | str = PipelineType.STANDARD,
        custom_steps: Iterable[str] | None = None,
    ) -> Pipeline:
        """Create a predefined pipeline, or a custom one from stage names.

        Raises:
            ValueError: If pipeline_type is not a known type
        """
        pipeline_type = PipelineType(pipeline_type)
        if pipeline_type is PipelineType.CUSTOM:
            return self.create_custom(custom_steps or [])

        stages = [self.build_stage(stage_id) for stage_id in PIPELINE_STAGES[pipeline_type]]
        return Pipeline(pipeline_type.value, stages)

    def create_custom(
        self,
        names: Iterable[str],
        *,
        name: str = PipelineType.CUSTOM.value,
        settings: PipelineSettings | None = None,
    ) -> Pipeline:
        """Create a pipeline from stage names.

        Logging and error handling always come first; unknown names are skipped.
        """
        stage_ids = list(CORE_STAGES)
        for step in names:
            stage_id = resolve_stage_name(step)
            if stage_id is None:
                logger.debug(f"Skipping unknown stage '{step}'")
                continue
            if stage_id in CORE_STAGES:
                continue
            stage_ids.append(stage_id)

        stages = [self.build_stage(stage_id, settings) for stage_id in stage_ids]
        return Pipeline(name, stages)

    def from_config(self, config: PipelineConfig) -> Pipeline:
        """Create a pipeline from a saved configuration, applying its output settings."""
        base = self.services.settings
        video = replace(
            base.video,
            resolution=config.output.resolution,
            aspect_ratio=config.output.aspect_ratio,
            style=config.output.style,
        )
        return self.create_custom(
            config.steps, name=config.name, settings=replace(base, video=video)
        )
