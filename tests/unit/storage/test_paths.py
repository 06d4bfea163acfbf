"""Tests for object paths and content type helpers."""

from __future__ import annotations

import pytest

from proxim8.core.storage.paths import (
    content_type_for,
    extension_for_content_type,
    image_object_path,
    safe_name,
    video_object_path,
)


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("a/b.PNG", "image/png"),
        ("a/b.jpeg", "image/jpeg"),
        ("clip.mov", "video/quicktime"),
        ("clip.mp4", "video/mp4"),
        ("notes.txt", "application/octet-stream"),
    ],
)
def test_content_type_for(path: str, expected: str):
    assert content_type_for(path) == expected


@pytest.mark.parametrize(
    ("content_type", "expected"),
    [
        ("video/mp4", "mp4"),
        ("video/webm", "webm"),
        ("video/quicktime", "mov"),
        ("image/jpeg", "jpg"),
        ("IMAGE/PNG", "png"),
        ("application/octet-stream", "bin"),
        (None, "bin"),
    ],
)
def test_extension_for_content_type(content_type: str | None, expected: str):
    assert extension_for_content_type(content_type) == expected


def test_object_paths():
    assert image_object_path("W1", "job-9") == "users/W1/images/job-9_preview.png"
    assert image_object_path("W1", "job-9", "jpg").endswith("job-9_preview.jpg")
    assert (
        video_object_path("W1", "models/veo/operations/op.1")
        == "users/W1/videos/models_veo_operations_op_1.mp4"
    )


def test_safe_name():
    assert safe_name("a/b c.d-e_f") == "a_b_c_d-e_f"
