"""Signed URL lifecycle for stored job media.

Signed URLs expire, so every read of job state goes through the URL manager,
which re-signs the media whose URL is missing or about to expire.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
import logging
from typing import Any

from proxim8.core.errors import JobNotFound, StorageError
from proxim8.core.jobs.models import Job
from proxim8.core.jobs.store import JobStore
from proxim8.core.storage.protocols import ObjectStorage
from proxim8.core.utils.time import utc_now

logger = logging.getLogger(__name__)

# (path field, url field, expiry field) per media kind
MEDIA_FIELDS: tuple[tuple[str, str, str], ...] = (
    ("image_path", "image_url", "image_url_expiry"),
    ("thumbnail_path", "thumbnail_url", "thumbnail_url_expiry"),
    ("video_path", "video_url", "video_url_expiry"),
)


class UrlManager:
    """Refreshes signed URLs on job records.

    Args:
        storage: Object storage that mints the URLs
        job_store: Where refreshed URLs are persisted
        expiry_hours: Lifetime of a freshly signed URL
        refresh_buffer_minutes: Re-sign URLs expiring within this window
    """

    def __init__(
        self,
        storage: ObjectStorage,
        job_store: JobStore,
        *,
        expiry_hours: int = 24,
        refresh_buffer_minutes: int = 60,
    ):
        self._storage = storage
        self._job_store = job_store
        self.lifetime = timedelta(hours=expiry_hours)
        self.buffer = timedelta(minutes=refresh_buffer_minutes)

    def new_expiry(self, now: datetime | None = None) -> datetime:
        return (now or utc_now()) + self.lifetime

    def needs_refresh(self, expiry: datetime | None, now: datetime | None = None) -> bool:
        """True if there is no expiry or it falls within the refresh buffer."""
        if expiry is None:
            return True
        return expiry - self.buffer <= (now or utc_now())

    async def sign_media(self, job: Job, *, force: bool = False) -> dict[str, Any]:
        """Sign the stale (or, with force, all) media URLs of a job.

        A signing failure for one kind is logged and leaves that kind unchanged.

        Returns:
            The changed url/expiry fields
        """
        changes: dict[str, Any] = {}
        now = utc_now()
        for path_field, url_field, expiry_field in MEDIA_FIELDS:
            path = getattr(job, path_field)
            if not path:
                continue
            if not force and not self.needs_refresh(getattr(job, expiry_field), now):
                continue
            try:
                url = await self._storage.signed_url(path, self.lifetime)
            except StorageError as e:
                logger.error(f"Failed to sign {path_field} for job {job.job_id}: {e}")
                continue
            changes[url_field] = url
            changes[expiry_field] = self.new_expiry(now)
        return changes

    async def refresh_url_if_needed(self, job: Job) -> Job:
        """Re-sign only the URLs that are missing or close to expiry."""
        if not job.has_media_paths:
            return job
        changes = await self.sign_media(job)
        if not changes:
            return job
        logger.debug(f"Refreshed {sorted(changes)} for job {job.job_id}")
        return await self._job_store.update(job.job_id, **changes)

    async def force_refresh_urls(self, job_id: str) -> Job:
        """Re-sign every stored media URL of a job.

        Raises:
            JobNotFound: If the job does not exist
        """
        job = await self._job_store.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        changes = await self.sign_media(job, force=True)
        if not changes:
            return job
        return await self._job_store.update(job_id, **changes)

    async def refresh_many(self, jobs: list[Job]) -> list[Job]:
        """Refresh a batch of jobs concurrently; failures keep the original job."""
        results = await asyncio.gather(
            *(self.refresh_url_if_needed(job) for job in jobs), return_exceptions=True
        )
        refreshed = []
        for job, result in zip(jobs, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(f"URL refresh failed for job {job.job_id}: {result}")
                refreshed.append(job)
            else:
                refreshed.append(result)
        return refreshed
