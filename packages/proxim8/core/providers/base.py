"""Base types and protocols for generation providers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class ProviderType(str, Enum):
    """Supported provider types."""

    OPENAI = "openai"
    GEMINI = "gemini"
    VEO = "veo"
    HELIUS = "helius"


@dataclass(frozen=True)
class TextGenerationOptions:
    """Sampling options for prompt enhancement."""

    temperature: float = 0.7
    top_p: float = 0.95
    max_output_tokens: int = 1000


@dataclass(frozen=True)
class GeneratedImage:
    """Image returned by an image model: remote URL or inline bytes."""

    url: str | None = None
    data: bytes | None = None
    content_type: str = "image/png"
    revised_prompt: str | None = None


@dataclass(frozen=True)
class VideoRequest:
    """Parameters for a video generation request."""

    prompt: str
    image_bytes: bytes
    image_mime_type: str = "image/png"
    resolution: str = "1080p"
    aspect_ratio: str = "16:9"
    style: str = "cinematic"
    duration: int = 10
    fps: int = 24


class OperationState(str, Enum):
    """Remote video operation state."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class OperationStatus:
    """Snapshot of a remote video operation."""

    state: OperationState
    video_uri: str | None = None
    error: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def done(self) -> bool:
        return self.state is not OperationState.RUNNING


@dataclass(frozen=True)
class DownloadedMedia:
    """Bytes fetched from a remote URL."""

    data: bytes
    content_type: str


class PromptModel(Protocol):
    """Text model used to enhance prompts."""

    @property
    def provider_type(self) -> ProviderType: ...

    async def generate_text(
        self,
        system_instruction: str,
        prompt: str,
        options: TextGenerationOptions,
    ) -> str:
        """Generate text for prompt under the system instruction.

        Raises:
            ProviderError: On any upstream failure or empty response
        """
        ...


class ImageModel(Protocol):
    """Image generation model."""

    async def generate(self, prompt: str, *, size: str, style: str | None) -> GeneratedImage:
        """Generate an image from a prompt alone."""
        ...

    async def edit(self, prompt: str, reference_png: bytes, *, size: str) -> GeneratedImage:
        """Generate an image seeded by a reference image (RGBA PNG bytes)."""
        ...


class VideoModel(Protocol):
    """Long-running video generation model."""

    async def submit(self, request: VideoRequest) -> str:
        """Start generation and return the operation handle (name)."""
        ...

    async def get_status(self, operation_name: str) -> OperationStatus:
        """Fetch the current state of an operation."""
        ...

    async def download(self, uri: str) -> DownloadedMedia:
        """Download the finished video."""
        ...


class MediaFetcher(Protocol):
    """Downloads remote media (reference images, finished videos)."""

    async def fetch(self, url: str, *, headers: dict[str, str] | None = None) -> DownloadedMedia: ...
