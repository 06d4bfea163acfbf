"""Configuration models and loaders."""

from proxim8.core.config.loader import load_app_config, load_config
from proxim8.core.config.models import (
    AppConfig,
    CacheConfig,
    ConfigBase,
    ImageConfig,
    JobStoreConfig,
    LoggingConfig,
    NftConfig,
    PromptConfig,
    StorageConfig,
    UrlConfig,
    VideoConfig,
)

__all__ = [
    "AppConfig",
    "CacheConfig",
    "ConfigBase",
    "ImageConfig",
    "JobStoreConfig",
    "LoggingConfig",
    "NftConfig",
    "PromptConfig",
    "StorageConfig",
    "UrlConfig",
    "VideoConfig",
    "load_app_config",
    "load_config",
]
