"""Base exception types for proxim8.core."""

from __future__ import annotations


class Proxim8Error(Exception):
    """Base class for all proxim8 errors."""


class PreconditionError(Proxim8Error):
    """Raised when a stage is missing a required input.

    Always raised before any external call is made.
    """


class JobNotFound(Proxim8Error):
    """Raised when a job id is not present in the job store."""

    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class StorageError(Proxim8Error):
    """Raised when an object storage upload or signing call fails."""


class CacheError(Proxim8Error):
    """Raised when a cache backend cannot be used at all."""
