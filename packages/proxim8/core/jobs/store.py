"""Generation job storage: in-memory or one JSON file per job."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Protocol

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from proxim8.core.errors import JobNotFound
from proxim8.core.jobs.models import Job, JobStatus
from proxim8.core.utils.time import utc_now

logger = logging.getLogger(__name__)


class JobStore(Protocol):
    """Protocol for job persistence (async)."""

    async def create(self, job: Job) -> Job: ...

    async def get(self, job_id: str) -> Job | None: ...

    async def update(self, job_id: str, **changes: Any) -> Job:
        """Apply field changes and stamp updated_at.

        Raises:
            JobNotFound: If no job has this id
        """
        ...

    async def list_by_owner(self, wallet_address: str) -> list[Job]:
        """Jobs created by a wallet, newest first."""
        ...


def _apply_changes(job: Job, changes: dict[str, Any]) -> Job:
    status = changes.get("status")
    if status is not None and not job.status.can_transition(JobStatus(status)):
        logger.warning(
            f"Job {job.job_id}: ignoring status change {job.status.value} -> {JobStatus(status).value}"
        )
        changes = {k: v for k, v in changes.items() if k != "status"}
    return job.model_copy(update={**changes, "updated_at": utc_now()})


class MemoryJobStore:
    """Process-local job store."""

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._lock = asyncio.Lock()

    async def create(self, job: Job) -> Job:
        async with self._lock:
            self._jobs[job.job_id] = job
        return job

    async def get(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    async def update(self, job_id: str, **changes: Any) -> Job:
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFound(job_id)
            updated = _apply_changes(job, changes)
            self._jobs[job_id] = Job.model_validate(updated.model_dump())
            return self._jobs[job_id]

    async def list_by_owner(self, wallet_address: str) -> list[Job]:
        jobs = [j for j in self._jobs.values() if j.created_by == wallet_address]
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)


class FileJobStore:
    """Persist jobs as JSON files (`<root>/<job_id>.json`). Survives restarts."""

    def __init__(self, root: Path | str):
        self.root = Path(root)
        self._lock = asyncio.Lock()

    def _job_path(self, job_id: str) -> Path:
        return self.root / f"{job_id}.json"

    async def _write_job(self, job: Job) -> None:
        await aiofiles.os.makedirs(self.root, exist_ok=True)
        path = self._job_path(job.job_id)
        tmp_path = path.with_suffix(".tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(job.model_dump_json(indent=2))
        await aiofiles.os.replace(tmp_path, path)

    async def _read_job(self, path: Path) -> Job | None:
        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                return Job.model_validate_json(await f.read())
        except FileNotFoundError:
            return None
        except ValidationError as e:
            logger.warning(f"Unreadable job file {path}: {e}")
            return None

    async def create(self, job: Job) -> Job:
        async with self._lock:
            await self._write_job(job)
        return job

    async def get(self, job_id: str) -> Job | None:
        return await self._read_job(self._job_path(job_id))

    async def update(self, job_id: str, **changes: Any) -> Job:
        async with self._lock:
            job = await self._read_job(self._job_path(job_id))
            if job is None:
                raise JobNotFound(job_id)
            updated = Job.model_validate(_apply_changes(job, changes).model_dump())
            await self._write_job(updated)
            return updated

    async def list_by_owner(self, wallet_address: str) -> list[Job]:
        if not await aiofiles.os.path.isdir(self.root):
            return []
        jobs = []
        for name in await aiofiles.os.listdir(self.root):
            if not name.endswith(".json"):
                continue
            job = await self._read_job(self.root / name)
            if job is not None and job.created_by == wallet_address:
                jobs.append(job)
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)
