"""Proxim8 session - wires configured services into the generation pipeline.

The session owns every long-lived dependency (cache, storage, job store,
provider clients, video pollers) and builds them lazily from AppConfig, so a
command that only reads job state never constructs a model client.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from openai import AsyncOpenAI

from proxim8.core.caching import Cache, FSCache, MemoryCache, NullCache
from proxim8.core.config.models import AppConfig
from proxim8.core.jobs.poller import PollSettings, VideoPollSupervisor
from proxim8.core.jobs.service import GenerationService
from proxim8.core.jobs.store import FileJobStore, JobStore, MemoryJobStore
from proxim8.core.pipeline.configs import PipelineConfigRegistry
from proxim8.core.pipeline.factory import PipelineFactory, PipelineServices, PipelineSettings
from proxim8.core.providers.base import (
    ImageModel,
    PromptModel,
    TextGenerationOptions,
    VideoModel,
)
from proxim8.core.providers.http import HttpMediaFetcher
from proxim8.core.providers.image import OpenAIImageModel
from proxim8.core.providers.nft import HeliusNftSource, NftSource
from proxim8.core.providers.prompt import GeminiPromptModel, OpenAIPromptModel
from proxim8.core.providers.video import VeoVideoModel
from proxim8.core.stages.image import ImageDefaults
from proxim8.core.stages.video import VideoDefaults
from proxim8.core.storage.gcs import GCSStorage
from proxim8.core.storage.local import LocalStorage
from proxim8.core.storage.protocols import ObjectStorage
from proxim8.core.url_manager import UrlManager

logger = logging.getLogger(__name__)


class Proxim8Session:
    """Session coordinator for generation runs.

    Example:
        >>> session = Proxim8Session(app_config="config.yaml")
        >>> job = await session.generation_service.submit(
        ...     "standard", "nft-1", "infiltrate the tower", "Wallet1"
        ... )
    """

    def __init__(
        self,
        *,
        app_config: AppConfig | Path | str | None = None,
        nft_source: NftSource | None = None,
    ):
        """Initialize session.

        Args:
            app_config: AppConfig instance, path, or None (uses default path)
            nft_source: Override the configured NFT source

        Raises:
            TypeError: If app_config is the wrong type
            ValidationError: If the config is invalid
        """
        if app_config is None or isinstance(app_config, (Path, str)):
            self.app_config = AppConfig.load_or_default(app_config)
        elif isinstance(app_config, AppConfig):
            self.app_config = app_config
        else:
            raise TypeError(
                f"Expected AppConfig, Path, str, or None; got {type(app_config).__name__}"
            )
        if nft_source is not None:
            self._nft_source = nft_source

    @staticmethod
    def _require(value: str | None, name: str) -> str:
        if not value:
            raise ValueError(f"{name} not configured")
        return value

    @property
    def cache(self) -> Cache:
        if not hasattr(self, "_cache"):
            cfg = self.app_config.cache
            cache: Cache
            if cfg.backend == "fs":
                cache = FSCache(cfg.root, ttl_seconds=cfg.ttl_seconds)
            elif cfg.backend == "null":
                cache = NullCache()
            else:
                cache = MemoryCache(ttl_seconds=cfg.ttl_seconds)
            logger.debug(f"Generation cache: {cfg.backend}")
            self._cache = cache
        return self._cache

    @property
    def storage(self) -> ObjectStorage:
        if not hasattr(self, "_storage"):
            cfg = self.app_config.storage
            storage: ObjectStorage
            if cfg.backend == "gcs":
                storage = GCSStorage(
                    self._require(cfg.bucket, "Storage bucket"),
                    project_id=cfg.project_id,
                    key_file=cfg.key_file,
                )
            else:
                storage = LocalStorage(
                    cfg.local_root,
                    public_base_url=cfg.public_base_url,
                    signing_secret=cfg.signing_secret,
                )
            self._storage = storage
        return self._storage

    @property
    def job_store(self) -> JobStore:
        if not hasattr(self, "_job_store"):
            cfg = self.app_config.jobs
            self._job_store: JobStore = (
                FileJobStore(cfg.root) if cfg.backend == "file" else MemoryJobStore()
            )
        return self._job_store

    @property
    def fetcher(self) -> HttpMediaFetcher:
        if not hasattr(self, "_fetcher"):
            self._fetcher = HttpMediaFetcher(timeout=self.app_config.image.timeout_seconds)
        return self._fetcher

    @property
    def nft_source(self) -> NftSource:
        if not hasattr(self, "_nft_source"):
            cfg = self.app_config.nft
            self._nft_source = HeliusNftSource(
                api_key=self._require(self.app_config.helius_api_key, "Helius API key"),
                rpc_url=cfg.rpc_url,
                collection=cfg.collection,
                page_limit=cfg.page_limit,
                timeout=cfg.timeout_seconds,
            )
        return self._nft_source

    @property
    def prompt_model(self) -> PromptModel:
        if not hasattr(self, "_prompt_model"):
            cfg = self.app_config.prompt
            model: PromptModel
            if cfg.provider == "openai":
                model = OpenAIPromptModel(
                    api_key=self._require(self.app_config.openai_api_key, "OpenAI API key"),
                    model=cfg.model,
                )
            else:
                model = GeminiPromptModel(
                    api_key=self._require(self.app_config.gemini_api_key, "Gemini API key"),
                    model=cfg.model,
                )
            self._prompt_model = model
        return self._prompt_model

    @property
    def image_model(self) -> ImageModel:
        if not hasattr(self, "_image_model"):
            cfg = self.app_config.image
            client = AsyncOpenAI(
                api_key=self._require(self.app_config.openai_api_key, "OpenAI API key"),
                timeout=cfg.timeout_seconds,
            )
            self._image_model = OpenAIImageModel(
                client, generation_model=cfg.generation_model, edit_model=cfg.model
            )
        return self._image_model

    @property
    def video_model(self) -> VideoModel:
        if not hasattr(self, "_video_model"):
            cfg = self.app_config.video
            self._video_model = VeoVideoModel(
                api_key=self._require(self.app_config.gemini_api_key, "Gemini API key"),
                model=cfg.model,
                status_base_url=cfg.status_base_url,
            )
        return self._video_model

    @property
    def supervisor(self) -> VideoPollSupervisor:
        if not hasattr(self, "_supervisor"):
            cfg = self.app_config.video
            self._supervisor = VideoPollSupervisor(
                self.video_model,
                self.storage,
                self.job_store,
                PollSettings(
                    max_retries=cfg.max_retries,
                    initial_delay_seconds=cfg.initial_delay_seconds,
                    backoff_multiplier=cfg.backoff_multiplier,
                    signed_url_hours=cfg.signed_url_hours,
                ),
            )
        return self._supervisor

    @property
    def url_manager(self) -> UrlManager:
        if not hasattr(self, "_url_manager"):
            cfg = self.app_config.urls
            self._url_manager = UrlManager(
                self.storage,
                self.job_store,
                expiry_hours=cfg.expiry_hours,
                refresh_buffer_minutes=cfg.refresh_buffer_minutes,
            )
        return self._url_manager

    @property
    def pipeline_settings(self) -> PipelineSettings:
        cfg = self.app_config
        return PipelineSettings(
            cache_ttl_seconds=cfg.cache.ttl_seconds,
            tombstone_ttl_seconds=cfg.cache.tombstone_ttl_seconds,
            key_strategy=cfg.cache.key_strategy,
            text_options=TextGenerationOptions(
                temperature=cfg.prompt.temperature,
                top_p=cfg.prompt.top_p,
                max_output_tokens=cfg.prompt.max_output_tokens,
            ),
            default_style=cfg.prompt.default_style,
            world_lore=self._load_world_lore(),
            image=ImageDefaults(
                size=cfg.image.default_size,
                style=cfg.image.default_style,
                signed_url_minutes=cfg.image.signed_url_minutes,
            ),
            video=VideoDefaults(
                resolution=cfg.video.resolution,
                aspect_ratio=cfg.video.aspect_ratio,
                style=cfg.video.style,
                duration=cfg.video.duration,
                fps=cfg.video.fps,
            ),
        )

    def _load_world_lore(self) -> str:
        path = self.app_config.prompt.world_lore_path
        if not path:
            return ""
        lore_file = Path(path)
        if not lore_file.exists():
            logger.warning(f"World lore file not found: {lore_file}")
            return ""
        content = lore_file.read_text(encoding="utf-8")
        logger.debug(f"Loaded {len(content)} characters of world lore")
        return content

    @property
    def services(self) -> PipelineServices:
        if not hasattr(self, "_services"):
            self._services = PipelineServices(
                cache=self.cache,
                storage=self.storage,
                nft_source=self.nft_source,
                prompt_model=self.prompt_model,
                image_model=self.image_model,
                video_model=self.video_model,
                fetcher=self.fetcher,
                supervisor=self.supervisor,
                settings=self.pipeline_settings,
            )
        return self._services

    @property
    def factory(self) -> PipelineFactory:
        if not hasattr(self, "_factory"):
            self._factory = PipelineFactory(self.services)
        return self._factory

    @property
    def pipeline_configs(self) -> PipelineConfigRegistry:
        if not hasattr(self, "_pipeline_configs"):
            self._pipeline_configs = PipelineConfigRegistry()
        return self._pipeline_configs

    @property
    def generation_service(self) -> GenerationService:
        if not hasattr(self, "_generation_service"):
            self._generation_service = GenerationService(
                self.factory,
                self.job_store,
                self.url_manager,
                self.supervisor,
                configs=self.pipeline_configs,
            )
        return self._generation_service

    async def aclose(self, *, detach_pollers: bool = False) -> None:
        """Stop background work and close HTTP clients that were created.

        Args:
            detach_pollers: Leave jobs with a video in progress as processing
                instead of cancelling them, so they can be resumed later
        """
        if hasattr(self, "_generation_service"):
            if detach_pollers:
                await self._generation_service.detach()
            else:
                await self._generation_service.shutdown()
        elif hasattr(self, "_supervisor"):
            if detach_pollers:
                await self._supervisor.detach()
            else:
                await self._supervisor.shutdown()

        closers: list[Any] = [
            getattr(self, name, None) for name in ("_fetcher", "_video_model", "_nft_source")
        ]
        for client in closers:
            aclose = getattr(client, "aclose", None)
            if aclose is not None:
                await aclose()
