"""Configuration models for proxim8."""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Self

from pydantic import BaseModel, ConfigDict, Field


class ConfigBase(BaseModel):
    """Base class for all proxim8 configurations.

    Provides common functionality for loading from files with defaults.
    Subclasses must implement default_path() to specify their default location.
    """

    model_config = ConfigDict(extra="ignore")  # Forward compatibility

    @classmethod
    def default_path(cls) -> Path:
        """Return the default config file path for this config type."""
        raise NotImplementedError(f"{cls.__name__} must implement default_path()")

    @classmethod
    def load_or_default(cls, path: Path | str | None = None) -> Self:
        """Load config from path or use default path.

        Args:
            path: Path to config file, or None to use default

        Returns:
            Loaded config instance

        Raises:
            ValidationError: If config is invalid
        """
        # AppConfig needs environment variable loading for API keys
        if cls.__name__ == "AppConfig":
            from proxim8.core.config.loader import load_app_config

            return load_app_config(path)  # type: ignore[return-value]

        from proxim8.core.config.loader import load_config

        if path is None:
            path = cls.default_path()
        raw = load_config(path)
        return cls.model_validate(raw)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    structured: bool = Field(default=False, description="Emit JSON log records")
    filename: str | None = Field(default=None, description="Log file (stdout if unset)")


class CacheConfig(BaseModel):
    """Generation cache configuration."""

    backend: Literal["memory", "fs", "null"] = "memory"
    root: str = Field(default="data/cache/pipeline", description="Root for the fs backend")
    ttl_seconds: float = Field(default=259200.0, gt=0, description="Entry lifetime (3 days)")
    tombstone_ttl_seconds: float = Field(
        default=1.0, gt=0, description="Lifetime of the entry written to invalidate a key"
    )
    key_strategy: Literal["prefix", "hash"] = Field(
        default="prefix",
        description="'prefix' keys on the first 20 prompt chars, 'hash' on the full prompt",
    )


class StorageConfig(BaseModel):
    """Durable object storage configuration."""

    backend: Literal["local", "gcs"] = "local"
    bucket: str | None = None
    project_id: str | None = None
    key_file: str | None = Field(
        default=None, description="Service account key; Application Default Credentials if unset"
    )
    local_root: str = "data/storage"
    public_base_url: str = "http://localhost:8080/media"
    signing_secret: str = Field(default="dev-secret", repr=False)


class JobStoreConfig(BaseModel):
    """Job store configuration."""

    backend: Literal["memory", "file"] = "memory"
    root: str = "data/jobs"


class PromptConfig(BaseModel):
    """Prompt enhancement model configuration."""

    provider: Literal["gemini", "openai"] = "gemini"
    model: str = "gemini-2.0-flash"
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    top_p: float = Field(default=0.95, ge=0.0, le=1.0)
    max_output_tokens: int = Field(default=1000, gt=0)
    default_style: str = "Realistic, detailed, cinematic lighting"
    world_lore_path: str | None = Field(
        default=None, description="Text file of background lore included in every request"
    )


class ImageConfig(BaseModel):
    """Image generation configuration."""

    model: str = Field(default="gpt-image-1", description="Model for reference-image edits")
    generation_model: str = Field(default="dall-e-3", description="Model for prompt-only images")
    default_size: str = "1792x1024"
    default_style: str = "vivid"
    signed_url_minutes: int = Field(default=60, gt=0)
    timeout_seconds: float = Field(default=120.0, gt=0)


class VideoConfig(BaseModel):
    """Video generation and status polling configuration."""

    model: str = "veo-2.0-generate-001"
    resolution: str = "1080p"
    aspect_ratio: str = "16:9"
    style: str = "cinematic"
    duration: int = Field(default=10, gt=0, description="Clip duration (seconds)")
    fps: int = Field(default=24, gt=0)
    max_retries: int = Field(default=5, gt=0, description="Status checks before giving up")
    initial_delay_seconds: float = Field(default=10.0, gt=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    status_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    signed_url_hours: int = Field(default=24, gt=0)


class NftConfig(BaseModel):
    """NFT lookup configuration."""

    rpc_url: str = "https://mainnet.helius-rpc.com"
    collection: str | None = Field(
        default="5QBfYxnihn5De4UEV3U1To4sWuWoWwHYJsxpd3hPamaf",
        description="Collection grouping filter (None disables filtering)",
    )
    timeout_seconds: float = Field(default=30.0, gt=0)
    page_limit: int = Field(default=1000, gt=0)


class UrlConfig(BaseModel):
    """Signed URL lifetime configuration."""

    expiry_hours: int = Field(default=24, gt=0)
    refresh_buffer_minutes: int = Field(default=60, ge=0)


class AppConfig(ConfigBase):
    """Application-level configuration."""

    model_config = ConfigDict(extra="ignore")

    logging: LoggingConfig = LoggingConfig()
    cache: CacheConfig = CacheConfig()
    storage: StorageConfig = StorageConfig()
    jobs: JobStoreConfig = JobStoreConfig()
    prompt: PromptConfig = PromptConfig()
    image: ImageConfig = ImageConfig()
    video: VideoConfig = VideoConfig()
    nft: NftConfig = NftConfig()
    urls: UrlConfig = UrlConfig()

    openai_api_key: str | None = Field(default=None, repr=False)
    gemini_api_key: str | None = Field(default=None, repr=False)
    helius_api_key: str | None = Field(default=None, repr=False)

    @classmethod
    def default_path(cls) -> Path:
        """Default path for application config."""
        return Path("config.json")
