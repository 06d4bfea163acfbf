"""Object path scheme and content type helpers."""

from __future__ import annotations

import re

_CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mov": "video/quicktime",
}

# Checked in order against the (lowercased) content type
_EXTENSIONS = (
    ("webm", "webm"),
    ("quicktime", "mov"),
    ("mov", "mov"),
    ("mp4", "mp4"),
    ("jpeg", "jpg"),
    ("jpg", "jpg"),
    ("webp", "webp"),
    ("gif", "gif"),
    ("png", "png"),
)

_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")


def content_type_for(path: str) -> str:
    """MIME type for a path, from its extension."""
    lowered = path.lower()
    for ext, content_type in _CONTENT_TYPES.items():
        if lowered.endswith(ext):
            return content_type
    return "application/octet-stream"


def extension_for_content_type(content_type: str | None, default: str = "bin") -> str:
    """File extension for a content type.

    Example:
        >>> extension_for_content_type("video/quicktime", default="mp4")
        'mov'
        >>> extension_for_content_type(None, default="png")
        'png'
    """
    lowered = (content_type or "").lower()
    for marker, ext in _EXTENSIONS:
        if marker in lowered:
            return ext
    return default


def safe_name(value: str) -> str:
    """Reduce an arbitrary identifier to a filename-safe string."""
    return _UNSAFE.sub("_", value)


def image_object_path(wallet_address: str, job_id: str, ext: str = "png") -> str:
    return f"users/{wallet_address}/images/{job_id}_preview.{ext}"


def video_object_path(wallet_address: str, operation_name: str, ext: str = "mp4") -> str:
    return f"users/{wallet_address}/videos/{safe_name(operation_name)}.{ext}"
