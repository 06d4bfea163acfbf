"""Google Cloud Storage backend.

The google-cloud-storage client is blocking, so every call runs in a worker
thread via asyncio.to_thread.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
import logging
from pathlib import Path

from google.api_core import exceptions as gcs_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage

from proxim8.core.errors import StorageError

logger = logging.getLogger(__name__)

_CACHE_CONTROL = "public, max-age=31536000"


class GCSStorage:
    """Private GCS bucket with v4 signed URLs."""

    def __init__(
        self,
        bucket_name: str,
        *,
        project_id: str | None = None,
        key_file: str | None = None,
        client: storage.Client | None = None,
    ):
        """
        Initialize GCS storage.

        Uses the service account key file when it exists, otherwise
        Application Default Credentials.

        Args:
            bucket_name: Bucket name
            project_id: GCP project
            key_file: Path to a service account JSON key
            client: Pre-built client (tests)
        """
        if client is None:
            if key_file and Path(key_file).exists():
                logger.info(f"Using GCP service account key file: {key_file}")
                client = storage.Client.from_service_account_json(key_file, project=project_id)
            else:
                if key_file:
                    logger.warning(f"Key file specified but not found: {key_file}")
                logger.info("Using Application Default Credentials for GCP")
                client = storage.Client(project=project_id)
        self._client = client
        self._bucket = client.bucket(bucket_name)
        self.bucket_name = bucket_name

    def _upload_sync(self, path: str, data: bytes, content_type: str) -> None:
        blob = self._bucket.blob(path)
        blob.cache_control = _CACHE_CONTROL
        blob.upload_from_string(data, content_type=content_type)

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(self._upload_sync, path, data, content_type)
        except (gcs_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as e:
            raise StorageError(f"Upload to gs://{self.bucket_name}/{path} failed: {e}") from e
        logger.info(f"Uploaded {len(data)} bytes to gs://{self.bucket_name}/{path}")
        return path

    def _sign_sync(self, path: str, expires_in: timedelta) -> str:
        return self._bucket.blob(path).generate_signed_url(
            version="v4", expiration=expires_in, method="GET"
        )

    async def signed_url(self, path: str, expires_in: timedelta) -> str:
        try:
            return await asyncio.to_thread(self._sign_sync, path, expires_in)
        except (
            gcs_exceptions.GoogleAPIError,
            auth_exceptions.GoogleAuthError,
            # Credentials without a private key cannot sign
            AttributeError,
        ) as e:
            raise StorageError(f"Signing gs://{self.bucket_name}/{path} failed: {e}") from e

    async def exists(self, path: str) -> bool:
        try:
            return await asyncio.to_thread(self._bucket.blob(path).exists)
        except gcs_exceptions.GoogleAPIError as e:
            raise StorageError(f"Existence check for {path} failed: {e}") from e

    async def download(self, path: str) -> bytes:
        try:
            return await asyncio.to_thread(self._bucket.blob(path).download_as_bytes)
        except (gcs_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as e:
            raise StorageError(f"Download of gs://{self.bucket_name}/{path} failed: {e}") from e
