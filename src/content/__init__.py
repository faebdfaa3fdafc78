"""Content domain — story models and the story store.

Provides the Story record with its embedded media list and a
JSON-backed StoryStore for whole-record reads and versioned writes.
"""

from storyhub.content.models import (
    AuthorRole,
    ItemOutcome,
    Language,
    LocalizedText,
    MediaItem,
    MediaKind,
    Outcome,
    Story,
    StoryMetadata,
    UploadedFile,
    UploadResult,
)
from storyhub.content.store import StoryStore, update_story

__all__ = [
    "AuthorRole",
    "ItemOutcome",
    "Language",
    "LocalizedText",
    "MediaItem",
    "MediaKind",
    "Outcome",
    "Story",
    "StoryMetadata",
    "StoryStore",
    "UploadResult",
    "UploadedFile",
    "update_story",
]
