"""In-memory stand-ins for the external services a generation run touches."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import timedelta
from io import BytesIO

from PIL import Image

from proxim8.core.errors import StorageError
from proxim8.core.providers.base import (
    DownloadedMedia,
    GeneratedImage,
    OperationState,
    OperationStatus,
    ProviderType,
    TextGenerationOptions,
    VideoRequest,
)
from proxim8.core.providers.errors import ProviderError
from proxim8.core.providers.nft import NftMetadata

WALLET = "Wallet1111111111111111111111111111111111111"
NFT_ID = "nft-001"
NFT_IMAGE_URL = "https://arweave.test/nft-001.png"
OPERATION_NAME = "models/veo-2.0-generate-001/operations/op123"


def png_bytes(size: tuple[int, int] = (4, 4), mode: str = "RGB") -> bytes:
    buf = BytesIO()
    Image.new(mode, size, color=(200, 40, 40) if mode == "RGB" else (200, 40, 40, 255)).save(
        buf, "PNG"
    )
    return buf.getvalue()


def sample_nft(nft_id: str = NFT_ID) -> NftMetadata:
    return NftMetadata(
        id=nft_id,
        name="Proxim8 #1",
        image=NFT_IMAGE_URL,
        description="Field agent",
        attributes=[{"trait_type": "Role", "value": "Infiltrator"}],
        mint=f"mint-{nft_id}",
        owner=WALLET,
    )


async def no_sleep(_delay: float) -> None:
    await asyncio.sleep(0)


class FakeStorage:
    """Object storage keeping bytes in a dict.

    Every signed_url call returns a distinct URL so re-signing is observable.
    """

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.sign_calls: list[tuple[str, timedelta]] = []
        self.fail_uploads = False
        self.fail_signing = False

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        if self.fail_uploads:
            raise StorageError(f"Upload to {path} failed: bucket unavailable")
        self.objects[path] = data
        self.content_types[path] = content_type
        return path

    async def signed_url(self, path: str, expires_in: timedelta) -> str:
        if self.fail_signing:
            raise StorageError(f"Cannot sign {path}")
        self.sign_calls.append((path, expires_in))
        return f"https://storage.test/{path}?sig={len(self.sign_calls)}"

    async def exists(self, path: str) -> bool:
        return path in self.objects

    async def download(self, path: str) -> bytes:
        if path not in self.objects:
            raise StorageError(f"No object at {path}")
        return self.objects[path]


class StubPromptModel:
    def __init__(
        self, response: str = "The agent scales the tower at dawn", error: Exception | None = None
    ):
        self.response = response
        self.error = error
        self.requests: list[str] = []

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.GEMINI

    async def generate_text(
        self, system_instruction: str, prompt: str, options: TextGenerationOptions
    ) -> str:
        self.requests.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


class StubImageModel:
    def __init__(self, image: GeneratedImage | None = None, error: ProviderError | None = None):
        self.image = image or GeneratedImage(data=png_bytes())
        self.error = error
        self.generate_calls: list[dict[str, object]] = []
        self.edit_calls: list[dict[str, object]] = []

    async def generate(self, prompt: str, *, size: str, style: str | None) -> GeneratedImage:
        self.generate_calls.append({"prompt": prompt, "size": size, "style": style})
        if self.error is not None:
            raise self.error
        return self.image

    async def edit(self, prompt: str, reference_png: bytes, *, size: str) -> GeneratedImage:
        self.edit_calls.append({"prompt": prompt, "reference": reference_png, "size": size})
        if self.error is not None:
            raise self.error
        return self.image


class StubVideoModel:
    """Video model replaying a fixed sequence of status snapshots."""

    def __init__(
        self,
        statuses: Iterable[OperationStatus | Exception] | None = None,
        *,
        operation_name: str = OPERATION_NAME,
        submit_error: ProviderError | None = None,
    ):
        self.operation_name = operation_name
        self.submit_error = submit_error
        self.statuses = list(
            statuses
            if statuses is not None
            else [
                OperationStatus(state=OperationState.RUNNING),
                OperationStatus(
                    state=OperationState.SUCCEEDED, video_uri="https://veo.test/video.mp4"
                ),
            ]
        )
        self.requests: list[VideoRequest] = []
        self.status_calls = 0
        self.downloads: list[str] = []

    async def submit(self, request: VideoRequest) -> str:
        self.requests.append(request)
        if self.submit_error is not None:
            raise self.submit_error
        return self.operation_name

    async def get_status(self, operation_name: str) -> OperationStatus:
        index = min(self.status_calls, len(self.statuses) - 1)
        self.status_calls += 1
        status = self.statuses[index]
        if isinstance(status, Exception):
            raise status
        return status

    async def download(self, uri: str) -> DownloadedMedia:
        self.downloads.append(uri)
        return DownloadedMedia(data=b"\x00\x00\x00\x18ftypmp42", content_type="video/mp4")


class StubFetcher:
    def __init__(self, data: bytes | None = None, content_type: str = "image/png"):
        self.data = data if data is not None else png_bytes()
        self.content_type = content_type
        self.urls: list[str] = []

    async def fetch(self, url: str, *, headers: dict[str, str] | None = None) -> DownloadedMedia:
        self.urls.append(url)
        return DownloadedMedia(data=self.data, content_type=self.content_type)


class PollGate:
    """Poller sleep that blocks until released and records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []
        self.released = asyncio.Event()

    def release(self) -> None:
        self.released.set()

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await self.released.wait()
