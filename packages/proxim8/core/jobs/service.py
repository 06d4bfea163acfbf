"""Generation service: the entry point that turns requests into jobs.

Submitting creates a queued job and runs the pipeline in the background.
The run's outcome (and, later, the video poller's) is written to the job
record, which is what callers read back. Every read refreshes signed URLs.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
import uuid

from proxim8.core.errors import JobNotFound, PreconditionError
from proxim8.core.jobs.models import Job, JobStatus
from proxim8.core.jobs.poller import VideoPollSupervisor
from proxim8.core.jobs.store import JobStore
from proxim8.core.pipeline.configs import PipelineConfigRegistry
from proxim8.core.pipeline.context import ContextKey, GenerationContext, MetaKey
from proxim8.core.pipeline.executor import Pipeline
from proxim8.core.pipeline.factory import PipelineFactory, PipelineType
from proxim8.core.pipeline.stage import StageId
from proxim8.core.url_manager import UrlManager

logger = logging.getLogger(__name__)

_PIPELINE_TYPES = {t.value for t in PipelineType}


def job_status_for(context: GenerationContext, pipeline: Pipeline) -> JobStatus:
    """Job status implied by a finished pipeline run.

    Failed runs are failed. Otherwise the video status decides; a run whose
    pipeline has no video stage is complete once the image exists.
    """
    if context.status == "error":
        return JobStatus.FAILED
    video_status = context.get(ContextKey.VIDEO_STATUS)
    if video_status:
        try:
            return JobStatus(video_status)
        except ValueError:
            logger.warning(f"Unexpected video status '{video_status}', treating as processing")
            return JobStatus.PROCESSING
    if pipeline.has_stage(StageId.VIDEO):
        return JobStatus.PROCESSING
    return JobStatus.COMPLETED


class GenerationService:
    """Runs generation jobs and serves their state.

    Args:
        factory: Builds the pipeline for each job
        job_store: Job persistence
        url_manager: Signs and refreshes media URLs
        supervisor: Background video pollers
        configs: Saved pipeline configurations, addressable by id

    Example:
        >>> service = GenerationService(factory, job_store, url_manager, supervisor)
        >>> job = await service.submit("standard", "nft-1", "infiltrate the tower", "Wallet1")
        >>> job = await service.wait(job.job_id)
        >>> job.status
        <JobStatus.PROCESSING: 'processing'>
    """

    def __init__(
        self,
        factory: PipelineFactory,
        job_store: JobStore,
        url_manager: UrlManager,
        supervisor: VideoPollSupervisor,
        *,
        configs: PipelineConfigRegistry | None = None,
    ):
        self._factory = factory
        self._job_store = job_store
        self._url_manager = url_manager
        self._supervisor = supervisor
        self._configs = configs or PipelineConfigRegistry()
        self._tasks: dict[str, asyncio.Task[Job]] = {}
        self._cancel_tokens: dict[str, asyncio.Event] = {}

    @property
    def configs(self) -> PipelineConfigRegistry:
        return self._configs

    def build_pipeline(self, pipeline_type: str, options: dict[str, Any] | None = None) -> Pipeline:
        """Resolve a pipeline type or saved configuration id into a pipeline.

        Raises:
            ValueError: If the name is neither a pipeline type nor a configuration
        """
        options = options or {}
        if pipeline_type == PipelineType.CUSTOM.value:
            return self._factory.create_custom(options.get("steps") or [])
        if pipeline_type in _PIPELINE_TYPES:
            return self._factory.create(pipeline_type)
        config = self._configs.get(pipeline_type)
        if config is None:
            raise ValueError(f"Unknown pipeline type or configuration: {pipeline_type}")
        return self._factory.from_config(config)

    async def submit(
        self,
        pipeline_type: str,
        nft_id: str,
        user_prompt: str,
        wallet_address: str,
        options: dict[str, Any] | None = None,
    ) -> Job:
        """Create a queued job and start running it in the background.

        Raises:
            ValueError: If the pipeline type is unknown
        """
        pipeline = self.build_pipeline(pipeline_type, options)
        job = Job(
            job_id=uuid.uuid4().hex,
            nft_id=nft_id,
            prompt=user_prompt,
            created_by=wallet_address,
            pipeline_type=pipeline_type,
            options=options or {},
        )
        await self._job_store.create(job)

        job_id = job.job_id
        task = asyncio.create_task(self.run(job, pipeline), name=f"generation-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job_id, None))
        logger.info(f"Submitted job {job_id} ({pipeline_type}) for NFT {nft_id}")
        return job

    async def run(self, job: Job, pipeline: Pipeline | None = None) -> Job:
        """Execute the pipeline for a job and persist the outcome."""
        pipeline = pipeline or self.build_pipeline(job.pipeline_type, job.options)
        cancel_token = self._cancel_tokens.setdefault(job.job_id, asyncio.Event())

        try:
            await self._job_store.update(job.job_id, status=JobStatus.PROCESSING)
            context = GenerationContext.create(
                job_id=job.job_id,
                nft_id=job.nft_id,
                user_prompt=job.prompt,
                wallet_address=job.created_by,
                options=job.options,
                style=job.options.get("prompt_style"),
                lore_data=job.options.get("lore_data"),
                additional_context=job.options.get("additional_context"),
            )
            context.cancel_token = cancel_token

            result = await pipeline.execute(context)
            return await self._persist(job, pipeline, result)
        except Exception as e:
            logger.exception(f"Job {job.job_id} crashed", exc_info=e)
            return await self._job_store.update(
                job.job_id, status=JobStatus.FAILED, error=str(e) or type(e).__name__
            )
        finally:
            self._cancel_tokens.pop(job.job_id, None)

    async def _persist(self, job: Job, pipeline: Pipeline, result: GenerationContext) -> Job:
        status = job_status_for(result, pipeline)
        if status is JobStatus.FAILED:
            logger.error(f"Job {job.job_id} failed: {result.error}")
            return await self._job_store.update(
                job.job_id,
                status=status,
                error=result.error,
                enhanced_prompt=result.get(ContextKey.ENHANCED_PROMPT),
            )

        changes: dict[str, Any] = {
            "status": status,
            "enhanced_prompt": result.get(ContextKey.ENHANCED_PROMPT),
            "image_path": result.get(ContextKey.IMAGE_PATH),
            "thumbnail_path": result.get(ContextKey.THUMBNAIL_PATH),
            "video_path": result.get(ContextKey.VIDEO_PATH),
            "video_operation_name": result.get(ContextKey.VIDEO_OPERATION_NAME),
            "from_cache": bool(result.get_metadata(MetaKey.FROM_CACHE)),
        }
        changes = {k: v for k, v in changes.items() if v is not None}
        changes.update(await self._url_manager.sign_media(job.model_copy(update=changes), force=True))

        updated = await self._job_store.update(job.job_id, **changes)
        logger.info(f"Job {job.job_id} finished pipeline with status {updated.status.value}")
        return updated

    async def get_status(self, job_id: str) -> Job:
        """Current job state with fresh URLs.

        Raises:
            JobNotFound: If the job does not exist
        """
        job = await self._job_store.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return await self._url_manager.refresh_url_if_needed(job)

    async def list_by_owner(self, wallet_address: str) -> list[Job]:
        jobs = await self._job_store.list_by_owner(wallet_address)
        return await self._url_manager.refresh_many(jobs)

    async def refresh(self, job_id: str) -> Job:
        """Re-sign every media URL of a job."""
        return await self._url_manager.force_refresh_urls(job_id)

    async def cancel(self, job_id: str) -> bool:
        """Stop a job's pipeline run and its video poller.

        Returns:
            True if anything was running
        """
        cancelled = False
        token = self._cancel_tokens.get(job_id)
        if token is not None and not token.is_set():
            token.set()
            cancelled = True
        if await self._supervisor.cancel(job_id):
            cancelled = True
        if cancelled:
            logger.info(f"Cancelled job {job_id}")
        return cancelled

    async def wait(self, job_id: str, *, include_video: bool = False) -> Job:
        """Wait for a job's pipeline run (and optionally its video) to finish."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.wait({task})
        if include_video:
            await self._supervisor.wait(job_id)
        return await self.get_status(job_id)

    async def resume(self, job_id: str) -> Job:
        """Start polling the video of a job whose poller was detached.

        Raises:
            JobNotFound: If the job does not exist
            PreconditionError: If the job has no video in progress
        """
        job = await self._job_store.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        if job.status is not JobStatus.PROCESSING or not job.video_operation_name:
            raise PreconditionError(f"Job {job_id} has no video in progress")
        self._supervisor.start(job_id, job.video_operation_name, job.created_by)
        return job

    async def detach(self) -> list[str]:
        """Let running pipelines finish, then stop pollers without failing their jobs."""
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.wait(tasks)
        return await self._supervisor.detach()

    async def shutdown(self) -> None:
        """Cancel running pipelines and pollers."""
        for token in self._cancel_tokens.values():
            token.set()
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.wait(tasks)
        await self._supervisor.shutdown()
