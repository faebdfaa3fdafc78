"""Media domain — payload normalization, validation and the lifecycle coordinator."""

from storyhub.media.models import (
    CaptionUpdate,
    MediaAttachment,
    MediaAttachments,
    MediaRemovalResult,
)
from storyhub.media.payload import (
    align_media,
    normalize_string_array,
    parse_caption_updates,
    parse_captions,
    parse_media_fields,
    parse_media_kinds,
    parse_remove_ids,
)
from storyhub.media.services import MediaCoordinator
from storyhub.media.validation import screen_upload, validate_media_file

__all__ = [
    "CaptionUpdate",
    "MediaAttachment",
    "MediaAttachments",
    "MediaCoordinator",
    "MediaRemovalResult",
    "align_media",
    "normalize_string_array",
    "parse_caption_updates",
    "parse_captions",
    "parse_media_fields",
    "parse_media_kinds",
    "parse_remove_ids",
    "screen_upload",
    "validate_media_file",
]
