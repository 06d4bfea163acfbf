"""Local filesystem object storage.

Signed URLs carry an expiry timestamp and an HMAC-SHA256 signature over
(path, expiry), checked by verify_signed_url when the file is served.
"""

from __future__ import annotations

from datetime import timedelta
import hashlib
import hmac
import logging
from pathlib import Path
import time
from urllib.parse import parse_qs, quote, unquote, urlparse

import aiofiles
import aiofiles.os

from proxim8.core.errors import StorageError

logger = logging.getLogger(__name__)


class LocalStorage:
    """Stores objects under a root directory."""

    def __init__(
        self,
        root: Path | str,
        *,
        public_base_url: str = "http://localhost:8080/media",
        signing_secret: str = "dev-secret",
    ):
        self.root = Path(root).resolve()
        self.public_base_url = public_base_url.rstrip("/")
        self._secret = signing_secret.encode("utf-8")

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root):
            raise StorageError(f"Object path escapes storage root: {path}")
        return target

    def _signature(self, path: str, expires: int) -> str:
        message = f"{path}:{expires}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        target = self._resolve(path)
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            async with aiofiles.open(target, "wb") as f:
                await f.write(data)
        except OSError as e:
            raise StorageError(f"Upload to {path} failed: {e}") from e
        logger.debug(f"Stored {len(data)} bytes ({content_type}) at {target}")
        return path

    async def signed_url(self, path: str, expires_in: timedelta) -> str:
        self._resolve(path)
        expires = int(time.time() + expires_in.total_seconds())
        signature = self._signature(path, expires)
        return f"{self.public_base_url}/{quote(path)}?expires={expires}&signature={signature}"

    async def exists(self, path: str) -> bool:
        return await aiofiles.os.path.exists(self._resolve(path))

    async def download(self, path: str) -> bytes:
        try:
            async with aiofiles.open(self._resolve(path), "rb") as f:
                return await f.read()
        except OSError as e:
            raise StorageError(f"Download of {path} failed: {e}") from e

    def verify_signed_url(self, url: str, now: float | None = None) -> str | None:
        """Check a signed URL.

        Args:
            url: URL produced by signed_url
            now: Current unix time (defaults to time.time())

        Returns:
            The object path if the signature is valid and unexpired, else None
        """
        parsed = urlparse(url)
        base_path = urlparse(self.public_base_url).path
        if not parsed.path.startswith(base_path + "/"):
            return None
        path = unquote(parsed.path[len(base_path) + 1 :])

        query = parse_qs(parsed.query)
        try:
            expires = int(query["expires"][0])
            signature = query["signature"][0]
        except (KeyError, IndexError, ValueError):
            return None

        if (now if now is not None else time.time()) >= expires:
            return None
        if not hmac.compare_digest(signature, self._signature(path, expires)):
            return None
        return path
