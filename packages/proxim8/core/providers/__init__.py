"""External generation and data providers.

Every provider is constructed explicitly and injected into the pipeline
factory; nothing here holds module-level client instances.
"""

from proxim8.core.providers.base import (
    DownloadedMedia,
    GeneratedImage,
    ImageModel,
    MediaFetcher,
    OperationState,
    OperationStatus,
    PromptModel,
    ProviderType,
    TextGenerationOptions,
    VideoModel,
    VideoRequest,
)
from proxim8.core.providers.errors import (
    ContentPolicyError,
    InvalidRequestError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    UpstreamServerError,
    enrich_openai_error,
)
from proxim8.core.providers.nft import (
    HeliusNftSource,
    NftMetadata,
    NftSource,
    StaticNftSource,
    find_nft,
)

__all__ = [
    "ContentPolicyError",
    "DownloadedMedia",
    "GeneratedImage",
    "HeliusNftSource",
    "ImageModel",
    "InvalidRequestError",
    "MediaFetcher",
    "NftMetadata",
    "NftSource",
    "OperationState",
    "OperationStatus",
    "PromptModel",
    "ProviderError",
    "ProviderTimeoutError",
    "ProviderType",
    "RateLimitError",
    "StaticNftSource",
    "TextGenerationOptions",
    "UpstreamServerError",
    "VideoModel",
    "VideoRequest",
    "enrich_openai_error",
    "find_nft",
]
