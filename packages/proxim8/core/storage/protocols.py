"""Protocol for durable object storage."""

from __future__ import annotations

from datetime import timedelta
from typing import Protocol


class ObjectStorage(Protocol):
    """
    Protocol for object storage backends (async).

    Paths are bucket-relative ('users/<wallet>/images/<job>_preview.png').
    Objects are private; read access is granted through signed URLs.
    """

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """
        Upload bytes from memory.

        Args:
            path: Destination path
            data: Object content
            content_type: MIME type

        Returns:
            The stored path

        Raises:
            StorageError: On upload failure
        """
        ...

    async def signed_url(self, path: str, expires_in: timedelta) -> str:
        """
        Mint a time-limited read URL.

        Args:
            path: Object path
            expires_in: URL lifetime

        Returns:
            Signed URL

        Raises:
            StorageError: If signing fails
        """
        ...

    async def exists(self, path: str) -> bool:
        """Check whether an object exists."""
        ...

    async def download(self, path: str) -> bytes:
        """
        Read an object's content.

        Raises:
            StorageError: If the object is missing or unreadable
        """
        ...
