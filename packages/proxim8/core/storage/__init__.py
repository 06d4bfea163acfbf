"""Durable object storage with signed URLs."""

from proxim8.core.storage.local import LocalStorage
from proxim8.core.storage.paths import (
    content_type_for,
    extension_for_content_type,
    image_object_path,
    safe_name,
    video_object_path,
)
from proxim8.core.storage.protocols import ObjectStorage

__all__ = [
    "LocalStorage",
    "ObjectStorage",
    "content_type_for",
    "extension_for_content_type",
    "image_object_path",
    "safe_name",
    "video_object_path",
]
