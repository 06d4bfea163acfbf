"""Middleware catalog for the generation pipeline."""

from proxim8.core.stages.auth import AuthMiddleware
from proxim8.core.stages.caching import CacheLookupMiddleware, CacheSaveMiddleware
from proxim8.core.stages.image import IMAGE_FIELDS, ImageDefaults, ImageGenerationMiddleware
from proxim8.core.stages.lifecycle import ErrorHandlingMiddleware, LoggingMiddleware
from proxim8.core.stages.nft import NftExtractionMiddleware
from proxim8.core.stages.prompt import (
    DEFAULT_STYLE,
    SYSTEM_INSTRUCTION,
    PromptEnhancementMiddleware,
    build_enhancement_request,
)
from proxim8.core.stages.video import (
    VIDEO_FIELDS,
    VideoDefaults,
    VideoGenerationMiddleware,
    is_absolute_http_url,
)

__all__ = [
    "DEFAULT_STYLE",
    "IMAGE_FIELDS",
    "SYSTEM_INSTRUCTION",
    "VIDEO_FIELDS",
    "AuthMiddleware",
    "CacheLookupMiddleware",
    "CacheSaveMiddleware",
    "ErrorHandlingMiddleware",
    "ImageDefaults",
    "ImageGenerationMiddleware",
    "LoggingMiddleware",
    "NftExtractionMiddleware",
    "PromptEnhancementMiddleware",
    "VideoDefaults",
    "VideoGenerationMiddleware",
    "build_enhancement_request",
    "is_absolute_http_url",
]
