"""Background video status polling.

Video generation is a long-running remote operation. The video stage returns
as soon as the operation is submitted; a supervised asyncio task per job
then polls the operation with exponential backoff, stores the finished video
and writes the outcome to the job record. The poller never touches the
pipeline context.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
import logging
from typing import Any

from proxim8.core.errors import JobNotFound, StorageError
from proxim8.core.jobs.models import JobStatus
from proxim8.core.jobs.store import JobStore
from proxim8.core.providers.base import OperationState, VideoModel
from proxim8.core.providers.errors import ProviderError
from proxim8.core.storage.paths import extension_for_content_type, video_object_path
from proxim8.core.storage.protocols import ObjectStorage
from proxim8.core.utils.logging import get_logger
from proxim8.core.utils.time import utc_now

logger = logging.getLogger(__name__)

TIMED_OUT_MESSAGE = "Video generation timed out"
CANCELLED_MESSAGE = "Video generation cancelled"


class PollState(str, Enum):
    """State of one polling task."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    DETACHED = "detached"


@dataclass(frozen=True)
class PollSettings:
    """Backoff schedule and output URL lifetime.

    With the defaults the checks happen after 10, 20, 40, 80 and 160 seconds.
    """

    max_retries: int = 5
    initial_delay_seconds: float = 10.0
    backoff_multiplier: float = 2.0
    signed_url_hours: int = 24


class PollHandle:
    """Handle on the polling task for one job."""

    def __init__(self, job_id: str, operation_name: str, wallet_address: str):
        self.job_id = job_id
        self.operation_name = operation_name
        self.wallet_address = wallet_address
        self.attempts = 0
        self.state = PollState.PENDING
        self.error: str | None = None
        self.detached = False
        self.log = get_logger(__name__, job_id=job_id, stage="video_poll")
        self._task: asyncio.Task[None] | None = None

    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def cancel(self) -> bool:
        """Request cancellation; returns False if the task already finished."""
        if self._task is None or self._task.done():
            return False
        self._task.cancel()
        return True

    async def wait(self) -> PollState:
        """Wait for the task to finish (cancellation included)."""
        if self._task is not None:
            await asyncio.wait({self._task})
        return self.state

    def __repr__(self) -> str:
        return (
            f"PollHandle(job_id={self.job_id!r}, operation={self.operation_name!r}, "
            f"state={self.state.value}, attempts={self.attempts})"
        )


class VideoPollSupervisor:
    """Owns the polling tasks, keyed by job id.

    Example:
        >>> supervisor = VideoPollSupervisor(video_model, storage, job_store)
        >>> handle = supervisor.start("job-1", "operations/abc", "Wallet1")
        >>> await handle.wait()
        <PollState.SUCCEEDED: 'succeeded'>
    """

    def __init__(
        self,
        video_model: VideoModel,
        storage: ObjectStorage,
        job_store: JobStore,
        settings: PollSettings | None = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._video_model = video_model
        self._storage = storage
        self._job_store = job_store
        self.settings = settings or PollSettings()
        self._sleep = sleep
        self._handles: dict[str, PollHandle] = {}

    def start(self, job_id: str, operation_name: str, wallet_address: str) -> PollHandle:
        """Start polling an operation for a job.

        A job that already has an active poller keeps it.
        """
        existing = self._handles.get(job_id)
        if existing is not None and not existing.done():
            logger.warning(f"Poller already running for job {job_id}")
            return existing

        handle = PollHandle(job_id, operation_name, wallet_address)
        handle._task = asyncio.create_task(self._run(handle), name=f"video-poll-{job_id}")
        self._handles[job_id] = handle
        handle.log.info(f"Started video poller for job {job_id} (operation {operation_name})")
        return handle

    def get(self, job_id: str) -> PollHandle | None:
        return self._handles.get(job_id)

    def active(self) -> list[PollHandle]:
        return [h for h in self._handles.values() if not h.done()]

    async def cancel(self, job_id: str) -> bool:
        """Cancel a job's poller and wait for it to record the cancellation.

        Returns:
            True if a running poller was cancelled
        """
        handle = self._handles.get(job_id)
        if handle is None or not handle.cancel():
            return False
        await self._settle_cancelled(handle)
        return True

    async def wait(self, job_id: str) -> PollState | None:
        handle = self._handles.get(job_id)
        if handle is None:
            return None
        return await handle.wait()

    async def shutdown(self) -> None:
        """Cancel every running poller."""
        handles = self.active()
        for handle in handles:
            handle.cancel()
        for handle in handles:
            await self._settle_cancelled(handle)
        if handles:
            logger.info(f"Cancelled {len(handles)} video poller(s)")

    async def detach(self) -> list[str]:
        """Stop every running poller without touching its job.

        The jobs stay ``processing`` with their operation name recorded, so
        another process can pick them up with ``start`` later.

        Returns:
            Ids of the detached jobs
        """
        handles = self.active()
        for handle in handles:
            handle.detached = True
            handle.cancel()
        for handle in handles:
            # A task cancelled before its first step never reaches _run's handler
            if await handle.wait() is PollState.PENDING:
                handle.state = PollState.DETACHED
        if handles:
            logger.info(f"Detached {len(handles)} video poller(s)")
        return [h.job_id for h in handles]

    async def _settle_cancelled(self, handle: PollHandle) -> None:
        await handle.wait()
        # A task cancelled before its first step never reaches _run's handler
        if handle.state is PollState.PENDING:
            await self._fail(handle, PollState.CANCELLED, CANCELLED_MESSAGE)

    async def _run(self, handle: PollHandle) -> None:
        settings = self.settings
        delay = settings.initial_delay_seconds
        handle.state = PollState.RUNNING

        try:
            for attempt in range(1, settings.max_retries + 1):
                await self._sleep(delay)
                delay *= settings.backoff_multiplier
                handle.attempts = attempt

                try:
                    status = await self._video_model.get_status(handle.operation_name)
                except ProviderError as e:
                    handle.log.warning(
                        f"Status check {attempt}/{settings.max_retries} for "
                        f"{handle.operation_name} failed: {e}"
                    )
                    continue

                if not status.done:
                    handle.log.debug(
                        f"Operation {handle.operation_name} still running "
                        f"(check {attempt}/{settings.max_retries})"
                    )
                    continue

                if status.state is OperationState.FAILED or not status.video_uri:
                    await self._fail(
                        handle, PollState.FAILED, status.error or "Video generation failed"
                    )
                    return

                await self._complete(handle, status.video_uri)
                return

            await self._fail(handle, PollState.TIMED_OUT, TIMED_OUT_MESSAGE)

        except asyncio.CancelledError:
            if handle.detached:
                handle.state = PollState.DETACHED
                handle.log.info(f"Video poller for job {handle.job_id} detached")
                raise
            handle.log.info(f"Video poller for job {handle.job_id} cancelled")
            await self._fail(handle, PollState.CANCELLED, CANCELLED_MESSAGE)
            raise
        except Exception as e:
            handle.log.exception(f"Video poller for job {handle.job_id} crashed", exc_info=e)
            await self._fail(handle, PollState.FAILED, str(e) or type(e).__name__)

    async def _complete(self, handle: PollHandle, video_uri: str) -> None:
        try:
            media = await self._video_model.download(video_uri)
            ext = extension_for_content_type(media.content_type, default="mp4")
            path = video_object_path(handle.wallet_address, handle.operation_name, ext)
            await self._storage.upload(path, media.data, media.content_type)
            lifetime = timedelta(hours=self.settings.signed_url_hours)
            url = await self._storage.signed_url(path, lifetime)
        except (ProviderError, StorageError) as e:
            await self._fail(handle, PollState.FAILED, f"Failed to store video: {e}")
            return

        handle.state = PollState.SUCCEEDED
        handle.log.info(f"Video for job {handle.job_id} stored at {path}")
        await self._update_job(
            handle.job_id,
            status=JobStatus.COMPLETED,
            video_path=path,
            video_url=url,
            video_url_expiry=utc_now() + lifetime,
            error=None,
        )

    async def _fail(self, handle: PollHandle, state: PollState, message: str) -> None:
        handle.state = state
        handle.error = message
        handle.log.error(f"Video for job {handle.job_id} failed: {message}")
        await self._update_job(handle.job_id, status=JobStatus.FAILED, error=message)

    async def _update_job(self, job_id: str, **changes: Any) -> None:
        try:
            await self._job_store.update(job_id, **changes)
        except JobNotFound:
            logger.warning(f"Job {job_id} disappeared before its video finished")
