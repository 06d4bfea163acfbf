"""End-to-end tests for GenerationService over in-memory services."""

from __future__ import annotations

from datetime import timedelta

import pytest

from proxim8.core.caching import MemoryCache, create_cache_key
from proxim8.core.errors import JobNotFound, PreconditionError
from proxim8.core.jobs.models import JobStatus
from proxim8.core.jobs.poller import CANCELLED_MESSAGE
from proxim8.core.jobs.service import GenerationService, job_status_for
from proxim8.core.jobs.store import MemoryJobStore
from proxim8.core.pipeline.context import ContextKey, GenerationContext
from proxim8.core.pipeline.executor import Pipeline
from proxim8.core.pipeline.outputs import CachedMedia
from proxim8.core.pipeline.stage import StageId
from proxim8.core.providers.errors import InvalidRequestError, RateLimitError
from proxim8.core.stages import VideoGenerationMiddleware
from proxim8.core.utils.time import utc_now
from tests.fixtures.generation import (
    NFT_ID,
    OPERATION_NAME,
    WALLET,
    FakeStorage,
    PollGate,
    StubImageModel,
    StubPromptModel,
    StubVideoModel,
)

PROMPT = "infiltrate the tower at dawn"


@pytest.fixture
def gate() -> PollGate:
    return PollGate()


@pytest.fixture
def poll_sleep(gate: PollGate):
    """Pollers stay parked until the test releases the gate."""
    return gate


class TestStandardRun:
    async def test_pipeline_then_poller(self, service: GenerationService, gate: PollGate):
        job = await service.submit("standard", NFT_ID, PROMPT, WALLET)
        assert job.status is JobStatus.QUEUED

        job = await service.wait(job.job_id)

        assert job.status is JobStatus.PROCESSING
        assert job.error is None
        assert job.enhanced_prompt == StubPromptModel().response
        assert job.image_path == f"users/{WALLET}/images/{job.job_id}_preview.png"
        assert job.image_url.startswith("https://storage.test/")
        assert job.image_url_expiry > utc_now() + timedelta(hours=23)
        assert job.thumbnail_url is not None
        assert job.video_operation_name == OPERATION_NAME
        assert job.video_url is None
        assert job.from_cache is False

        gate.release()
        job = await service.wait(job.job_id, include_video=True)

        assert job.status is JobStatus.COMPLETED
        assert job.video_path.startswith(f"users/{WALLET}/videos/")
        assert job.video_url is not None

    async def test_prompt_failure_keeps_running(
        self, service: GenerationService, prompt_model: StubPromptModel
    ):
        prompt_model.error = RateLimitError("Gemini quota exceeded", provider="gemini")

        job = await service.submit("standard", NFT_ID, PROMPT, WALLET)
        job = await service.wait(job.job_id)

        assert job.status is JobStatus.PROCESSING
        assert job.enhanced_prompt == PROMPT
        assert job.image_path is not None

    async def test_unowned_nft_fails(
        self, service: GenerationService, image_model: StubImageModel
    ):
        job = await service.submit("standard", "nft-999", PROMPT, WALLET)
        job = await service.wait(job.job_id)

        assert job.status is JobStatus.FAILED
        assert job.error == f"NFT extraction failed: NFT nft-999 not found in wallet {WALLET}"
        assert image_model.edit_calls == []
        assert image_model.generate_calls == []

    async def test_unexpected_exception_fails_job(
        self, service: GenerationService, image_model: StubImageModel
    ):
        image_model.error = RuntimeError("socket closed")  # type: ignore[assignment]

        job = await service.submit("standard", NFT_ID, PROMPT, WALLET)
        job = await service.wait(job.job_id)

        assert job.status is JobStatus.FAILED
        assert job.error == "Image failed: socket closed"
        assert job.video_operation_name is None


class TestCacheReuse:
    async def test_second_run_reuses_media(
        self,
        service: GenerationService,
        gate: PollGate,
        image_model: StubImageModel,
        video_model: StubVideoModel,
        prompt_model: StubPromptModel,
    ):
        gate.release()
        first = await service.submit("standard", NFT_ID, PROMPT, WALLET)
        first = await service.wait(first.job_id, include_video=True)

        second = await service.submit("standard", NFT_ID, PROMPT, WALLET)
        second = await service.wait(second.job_id, include_video=True)

        assert second.from_cache is True
        assert second.image_path == first.image_path
        assert second.video_operation_name == first.video_operation_name
        assert second.status is JobStatus.COMPLETED
        assert len(image_model.edit_calls) == 1
        assert len(video_model.requests) == 1
        assert len(prompt_model.requests) == 1

    async def test_hit_then_video_failure_tombstones_entry(
        self,
        service: GenerationService,
        cache: MemoryCache,
        storage: FakeStorage,
        image_model: StubImageModel,
        video_model: StubVideoModel,
    ):
        image_path = f"users/{WALLET}/images/earlier_preview.png"
        await storage.upload(image_path, b"png", "image/png")
        key = create_cache_key(NFT_ID, PROMPT)
        await cache.store(
            key,
            CachedMedia(
                image_url=f"https://storage.test/{image_path}?sig=0",
                image_path=image_path,
                thumbnail_path=image_path,
            ),
        )
        video_model.submit_error = InvalidRequestError("Veo rejected the image", provider="veo")

        job = await service.submit("standard", NFT_ID, PROMPT, WALLET)
        job = await service.wait(job.job_id)

        assert job.status is JobStatus.FAILED
        assert "Veo rejected the image" in job.error
        assert image_model.generate_calls == []
        assert image_model.edit_calls == []
        assert len(video_model.requests) == 1
        assert await cache.load(key, CachedMedia) is None


class TestPipelineSelection:
    async def test_image_only_completes_without_video(
        self, service: GenerationService, video_model: StubVideoModel
    ):
        job = await service.submit("image-only", NFT_ID, PROMPT, WALLET)
        job = await service.wait(job.job_id)

        assert job.status is JobStatus.COMPLETED
        assert job.image_url is not None
        assert video_model.requests == []

    async def test_custom_steps(self, service: GenerationService):
        job = await service.submit(
            "custom", NFT_ID, PROMPT, WALLET, {"steps": ["auth", "prompt"]}
        )
        job = await service.wait(job.job_id)

        assert job.status is JobStatus.COMPLETED
        assert job.enhanced_prompt is not None
        assert job.image_path is None

    async def test_saved_configuration(self, service: GenerationService):
        config = service.configs.create("Stills", steps=["auth", "nft", "prompt", "image"])

        job = await service.submit(config.id, NFT_ID, PROMPT, WALLET)
        job = await service.wait(job.job_id)

        assert job.status is JobStatus.COMPLETED
        assert job.pipeline_type == config.id
        assert job.image_path is not None

    async def test_unknown_pipeline(self, service: GenerationService):
        with pytest.raises(ValueError):
            await service.submit("everything", NFT_ID, PROMPT, WALLET)


class TestReads:
    async def test_get_status_missing(self, service: GenerationService):
        with pytest.raises(JobNotFound):
            await service.get_status("nope")

    async def test_list_by_owner(self, service: GenerationService):
        job = await service.submit("image-only", NFT_ID, PROMPT, WALLET)
        await service.wait(job.job_id)

        jobs = await service.list_by_owner(WALLET)

        assert [j.job_id for j in jobs] == [job.job_id]
        assert await service.list_by_owner("Wallet2") == []

    async def test_refresh_resigns_urls(self, service: GenerationService):
        job = await service.submit("image-only", NFT_ID, PROMPT, WALLET)
        job = await service.wait(job.job_id)

        refreshed = await service.refresh(job.job_id)

        assert refreshed.image_url != job.image_url
        assert refreshed.image_path == job.image_path


class TestCancel:
    async def test_cancel_stops_poller(self, service: GenerationService):
        job = await service.submit("standard", NFT_ID, PROMPT, WALLET)
        await service.wait(job.job_id)

        assert await service.cancel(job.job_id) is True

        job = await service.get_status(job.job_id)
        assert job.status is JobStatus.FAILED
        assert job.error == CANCELLED_MESSAGE

    async def test_cancel_idle_job(self, service: GenerationService):
        job = await service.submit("image-only", NFT_ID, PROMPT, WALLET)
        await service.wait(job.job_id)

        assert await service.cancel(job.job_id) is False


class TestDetach:
    async def test_detach_keeps_video_job_processing(
        self, service: GenerationService, job_store: MemoryJobStore
    ):
        job = await service.submit("standard", NFT_ID, PROMPT, WALLET)
        await service.wait(job.job_id)

        assert await service.detach() == [job.job_id]

        stored = await job_store.get(job.job_id)
        assert stored.status is JobStatus.PROCESSING
        assert stored.error is None
        assert stored.video_operation_name == OPERATION_NAME

    async def test_resume_collects_video(self, service: GenerationService, gate: PollGate):
        job = await service.submit("standard", NFT_ID, PROMPT, WALLET)
        await service.wait(job.job_id)
        await service.detach()

        gate.release()
        await service.resume(job.job_id)
        job = await service.wait(job.job_id, include_video=True)

        assert job.status is JobStatus.COMPLETED
        assert job.video_url is not None

    async def test_resume_requires_video_in_progress(self, service: GenerationService):
        job = await service.submit("image-only", NFT_ID, PROMPT, WALLET)
        await service.wait(job.job_id)

        with pytest.raises(PreconditionError, match="no video in progress"):
            await service.resume(job.job_id)

    async def test_resume_unknown_job(self, service: GenerationService):
        with pytest.raises(JobNotFound):
            await service.resume("nope")

class TestJobStatusFor:
    def _video_pipeline(self, factory) -> Pipeline:
        return factory.create("video-only")

    def test_error_is_failed(self, factory):
        ctx = GenerationContext()
        ctx.record_error(StageId.AUTH, "no wallet")

        assert job_status_for(ctx, self._video_pipeline(factory)) is JobStatus.FAILED

    def test_video_status_wins(self, factory):
        ctx = GenerationContext.create(video_status="completed")

        assert job_status_for(ctx, self._video_pipeline(factory)) is JobStatus.COMPLETED

    def test_unexpected_video_status_is_processing(self, factory):
        ctx = GenerationContext.create(video_status="rendering")

        assert job_status_for(ctx, self._video_pipeline(factory)) is JobStatus.PROCESSING

    def test_video_stage_without_status_is_processing(self, factory):
        pipeline = self._video_pipeline(factory)

        assert any(isinstance(m, VideoGenerationMiddleware) for m in pipeline.middlewares)
        assert job_status_for(GenerationContext(), pipeline) is JobStatus.PROCESSING

    def test_no_video_stage_is_completed(self):
        ctx = GenerationContext.create(**{ContextKey.IMAGE_URL: "https://img"})

        assert job_status_for(ctx, Pipeline("stills", [])) is JobStatus.COMPLETED
