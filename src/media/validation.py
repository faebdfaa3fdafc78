"""Per-file media checks: mime allow-lists and size ceilings."""

from __future__ import annotations

from storyhub.content.models import MediaKind, UploadedFile
from storyhub.errors import PayloadTooLarge, UnsupportedMediaType, ValidationError

MiB = 1024 * 1024

IMAGE_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/webp", "image/gif"})
VIDEO_MIME_TYPES = frozenset({"video/mp4", "video/quicktime", "video/webm"})

MAX_IMAGE_BYTES = 10 * MiB
MAX_VIDEO_BYTES = 100 * MiB

_RULES: dict[MediaKind, tuple[frozenset[str], int, str]] = {
    MediaKind.IMAGE: (IMAGE_MIME_TYPES, MAX_IMAGE_BYTES, "JPEG, PNG, WebP, GIF"),
    MediaKind.VIDEO: (VIDEO_MIME_TYPES, MAX_VIDEO_BYTES, "MP4, MOV, WebM"),
}


def screen_upload(file: UploadedFile) -> None:
    """Reject anything that is neither an image nor a video."""
    content_type = file.content_type.lower()
    if not (content_type.startswith("image/") or content_type.startswith("video/")):
        raise UnsupportedMediaType("Only image and video files are allowed")


def validate_media_file(file: UploadedFile | None, kind: MediaKind) -> None:
    """Check a file against the rules for its declared kind.

    Raises:
        ValidationError: If no file was supplied.
        UnsupportedMediaType: If the mime type is not allowed for ``kind``.
        PayloadTooLarge: If the file exceeds the size ceiling for ``kind``.
    """
    if file is None:
        raise ValidationError("File is required")

    allowed, max_bytes, label = _RULES[kind]
    noun = kind.value.capitalize()
    if file.content_type.lower() not in allowed:
        raise UnsupportedMediaType(
            f"{noun} type {file.content_type} not allowed. Allowed types: {label}"
        )
    if (file.size or 0) > max_bytes:
        raise PayloadTooLarge(f"{noun} size must not exceed {max_bytes // MiB}MB")
