"""Sequential middleware pipeline for NFT media generation.

The factory lives in proxim8.core.pipeline.factory (it depends on the stage
catalog, which itself imports this package).
"""

from proxim8.core.pipeline.configs import (
    OutputSettings,
    PipelineConfig,
    PipelineConfigRegistry,
    predefined_configs,
)
from proxim8.core.pipeline.context import (
    UNKNOWN_ERROR,
    ContextKey,
    GenerationContext,
    MetaKey,
)
from proxim8.core.pipeline.executor import Pipeline
from proxim8.core.pipeline.outputs import (
    CachedMedia,
    CacheLookupOutput,
    ImageOutput,
    NftOutput,
    PromptOutput,
    VideoOutput,
)
from proxim8.core.pipeline.result import (
    StageResult,
    degraded_result,
    failure_result,
    skipped_result,
    success_result,
)
from proxim8.core.pipeline.stage import ERROR_PRIORITY, FailureHook, Middleware, StageId

__all__ = [
    # Context
    "ContextKey",
    "GenerationContext",
    "MetaKey",
    "UNKNOWN_ERROR",
    # Stage protocol and results
    "ERROR_PRIORITY",
    "FailureHook",
    "Middleware",
    "StageId",
    "StageResult",
    "degraded_result",
    "failure_result",
    "skipped_result",
    "success_result",
    # Typed outputs
    "CacheLookupOutput",
    "CachedMedia",
    "ImageOutput",
    "NftOutput",
    "PromptOutput",
    "VideoOutput",
    # Execution
    "Pipeline",
    # Configurations
    "OutputSettings",
    "PipelineConfig",
    "PipelineConfigRegistry",
    "predefined_configs",
]
