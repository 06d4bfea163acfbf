"""Generation jobs: records, persistence and background video polling.

GenerationService lives in proxim8.core.jobs.service.
"""

from proxim8.core.jobs.models import Job, JobStatus
from proxim8.core.jobs.poller import (
    CANCELLED_MESSAGE,
    TIMED_OUT_MESSAGE,
    PollHandle,
    PollSettings,
    PollState,
    VideoPollSupervisor,
)
from proxim8.core.jobs.store import FileJobStore, JobStore, MemoryJobStore

__all__ = [
    "CANCELLED_MESSAGE",
    "TIMED_OUT_MESSAGE",
    "FileJobStore",
    "Job",
    "JobStatus",
    "JobStore",
    "MemoryJobStore",
    "PollHandle",
    "PollSettings",
    "PollState",
    "VideoPollSupervisor",
]
