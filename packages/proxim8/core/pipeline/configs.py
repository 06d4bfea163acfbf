"""Named pipeline configurations.

A configuration is a saved, named stage list plus output settings. The
built-in configurations mirror the predefined pipeline types and cannot be
modified; user configurations support full CRUD.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Literal
import uuid

from pydantic import BaseModel, ConfigDict, Field

from proxim8.core.errors import PreconditionError
from proxim8.core.utils.time import utc_now

logger = logging.getLogger(__name__)


class OutputSettings(BaseModel):
    """Video output settings applied by a configuration."""

    model_config = ConfigDict(frozen=True)

    resolution: Literal["720p", "1080p"] = "1080p"
    aspect_ratio: Literal["16:9", "9:16", "1:1"] = "16:9"
    style: str = "cinematic"


class PipelineConfig(BaseModel):
    """Saved pipeline configuration.

    Attributes:
        id: Configuration identifier
        name: Display name
        description: What the pipeline is for
        steps: Stage names, in order (logging and error handling are implicit)
        output: Video output settings
        is_system: Built-in configurations are read-only
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    steps: list[str] = Field(default_factory=list)
    output: OutputSettings = Field(default_factory=OutputSettings)
    is_system: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


def predefined_configs() -> list[PipelineConfig]:
    """Built-in configurations, one per predefined pipeline type."""
    return [
        PipelineConfig(
            id="standard",
            name="Standard Video Pipeline",
            description=(
                "Complete pipeline for NFT video generation including prompt enhancement, "
                "image and video generation"
            ),
            steps=["auth", "cache", "nft", "prompt", "image", "video", "cacheSave"],
            is_system=True,
        ),
        PipelineConfig(
            id="image-only",
            name="Image Generation Only",
            description="Creates enhanced images from NFTs without generating videos",
            steps=["auth", "nft", "prompt", "image"],
            is_system=True,
        ),
        PipelineConfig(
            id="prompt-only",
            name="Prompt Engineering Only",
            description="Enhances prompts without generating media - useful for testing",
            steps=["prompt"],
            is_system=True,
        ),
        PipelineConfig(
            id="video-only",
            name="Video Generation Only",
            description="Generates videos from existing images",
            steps=["auth", "video"],
            is_system=True,
        ),
    ]


class PipelineConfigRegistry:
    """In-memory registry of pipeline configurations.

    Example:
        >>> registry = PipelineConfigRegistry()
        >>> config = registry.create("Fast", steps=["auth", "prompt", "image"])
        >>> registry.get(config.id).name
        'Fast'
    """

    def __init__(self, configs: list[PipelineConfig] | None = None):
        seed = predefined_configs() if configs is None else configs
        self._configs: dict[str, PipelineConfig] = {c.id: c for c in seed}

    def get(self, config_id: str) -> PipelineConfig | None:
        return self._configs.get(config_id)

    def list(self) -> list[PipelineConfig]:
        return list(self._configs.values())

    def create(
        self,
        name: str,
        steps: list[str],
        *,
        description: str = "",
        output: OutputSettings | dict[str, Any] | None = None,
    ) -> PipelineConfig:
        config = PipelineConfig(
            id=str(uuid.uuid4()),
            name=name,
            description=description,
            steps=steps,
            output=OutputSettings.model_validate(output or {}),
        )
        self._configs[config.id] = config
        logger.info(f"Created pipeline configuration {config.id} ({name})")
        return config

    def update(self, config_id: str, **changes: Any) -> PipelineConfig | None:
        """Update a user configuration.

        Returns:
            Updated configuration, or None if it does not exist

        Raises:
            PreconditionError: If the configuration is built-in
        """
        existing = self._configs.get(config_id)
        if existing is None:
            return None
        if existing.is_system:
            raise PreconditionError(f"Configuration '{config_id}' is built-in and read-only")

        protected = {"id", "is_system", "created_at"}
        data = existing.model_dump()
        data.update({k: v for k, v in changes.items() if k not in protected})
        data["updated_at"] = utc_now()
        updated = PipelineConfig.model_validate(data)
        self._configs[config_id] = updated
        return updated

    def delete(self, config_id: str) -> bool:
        """Delete a user configuration.

        Raises:
            PreconditionError: If the configuration is built-in
        """
        existing = self._configs.get(config_id)
        if existing is None:
            return False
        if existing.is_system:
            raise PreconditionError(f"Configuration '{config_id}' is built-in and read-only")
        del self._configs[config_id]
        return True
