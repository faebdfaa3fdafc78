"""Tests for per-file media validation."""

import pytest

from storyhub.content.models import MediaKind, UploadedFile
from storyhub.errors import PayloadTooLarge, UnsupportedMediaType, ValidationError
from storyhub.media.validation import (
    MAX_IMAGE_BYTES,
    MAX_VIDEO_BYTES,
    screen_upload,
    validate_media_file,
)


def _file(content_type: str, size: int = 10) -> UploadedFile:
    return UploadedFile(filename="f", content_type=content_type, size=size)


class TestValidateMediaFile:
    def test_missing_file(self):
        with pytest.raises(ValidationError, match="File is required"):
            validate_media_file(None, MediaKind.IMAGE)

    @pytest.mark.parametrize("mime", ["image/jpeg", "image/png", "image/webp", "image/gif"])
    def test_allowed_images(self, mime: str):
        validate_media_file(_file(mime), MediaKind.IMAGE)

    @pytest.mark.parametrize("mime", ["video/mp4", "video/quicktime", "video/webm"])
    def test_allowed_videos(self, mime: str):
        validate_media_file(_file(mime), MediaKind.VIDEO)

    def test_image_mime_rejected(self):
        with pytest.raises(UnsupportedMediaType, match="Image type image/bmp not allowed"):
            validate_media_file(_file("image/bmp"), MediaKind.IMAGE)

    def test_video_declared_for_image_file(self):
        with pytest.raises(UnsupportedMediaType, match="Allowed types: MP4, MOV, WebM"):
            validate_media_file(_file("image/png"), MediaKind.VIDEO)

    def test_image_at_limit_accepted(self):
        validate_media_file(_file("image/png", MAX_IMAGE_BYTES), MediaKind.IMAGE)

    def test_image_over_limit(self):
        with pytest.raises(PayloadTooLarge, match="Image size must not exceed 10MB"):
            validate_media_file(_file("image/png", MAX_IMAGE_BYTES + 1), MediaKind.IMAGE)

    def test_video_over_limit(self):
        with pytest.raises(PayloadTooLarge, match="Video size must not exceed 100MB"):
            validate_media_file(_file("video/mp4", MAX_VIDEO_BYTES + 1), MediaKind.VIDEO)

    def test_errors_are_validation_errors(self):
        assert issubclass(UnsupportedMediaType, ValidationError)
        assert issubclass(PayloadTooLarge, ValidationError)


class TestScreenUpload:
    def test_accepts_media(self):
        screen_upload(_file("image/tiff"))
        screen_upload(_file("video/x-msvideo"))

    def test_rejects_other_types(self):
        with pytest.raises(UnsupportedMediaType, match="Only image and video files"):
            screen_upload(_file("application/pdf"))
