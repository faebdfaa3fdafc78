"""Story domain models — pure Pydantic v2 data types.

A Story carries bilingual text, optional back-references to a program
and a beneficiary, and an ordered list of MediaItems embedded inline.
Every MediaItem with a public_id is expected to reference a live object
in the storage service; only the media coordinator adds or drops them.
"""

from __future__ import annotations

import mimetypes
import uuid
from datetime import UTC, date, datetime
from enum import StrEnum
from pathlib import Path

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator


class Language(StrEnum):
    """Languages every story is written in."""

    EN = "en"
    RW = "rw"


class AuthorRole(StrEnum):
    """Kind of actor who authored a story."""

    ADMIN = "admin"
    DONOR = "donor"
    BENEFICIARY = "beneficiary"


class MediaKind(StrEnum):
    """Kind of media attached to a story."""

    IMAGE = "image"
    VIDEO = "video"


class Outcome(StrEnum):
    """Per-id result of a best-effort batch operation."""

    OK = "ok"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class LocalizedText(BaseModel):
    """Text present in every supported language."""

    en: str = Field(min_length=1)
    rw: str = Field(min_length=1)

    @field_validator("en", "rw")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    def get(self, language: Language) -> str:
        return getattr(self, language.value)


class StoryMetadata(BaseModel):
    """Free-form descriptors attached to a story."""

    tags: list[str] = Field(default_factory=list)
    location: str = ""
    duration_seconds: float = Field(
        default=0, ge=0, validation_alias=AliasChoices("duration_seconds", "duration")
    )


class MediaItem(BaseModel):
    """An image or video attached to a story.

    ``public_id`` is the storage handle and the only key used to find an
    item for removal or caption edits.  Images reuse their own URL as
    thumbnail; videos carry a derived first-frame preview URL.
    """

    url: str
    public_id: str
    kind: MediaKind
    caption: str = ""
    thumbnail_url: str | None = None
    thumbnail_public_id: str | None = None

    @model_validator(mode="after")
    def _fill_thumbnail(self) -> MediaItem:
        if self.thumbnail_url is None and self.kind == MediaKind.IMAGE:
            self.thumbnail_url = self.url
        if self.kind == MediaKind.VIDEO and not self.thumbnail_url:
            raise ValueError("video media requires a thumbnail_url")
        return self


class Story(BaseModel):
    """Canonical story record — the unit read and written by the store."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: LocalizedText
    body: LocalizedText
    author_name: str = Field(min_length=1)
    author_role: AuthorRole
    program_id: str | None = None
    beneficiary_id: str | None = None
    media: list[MediaItem] = Field(default_factory=list)
    is_featured: bool = False
    is_published: bool = True
    published_date: date = Field(default_factory=date.today)
    language: Language = Language.EN
    view_count: int = Field(default=0, ge=0)
    share_count: int = Field(default=0, ge=0)
    metadata: StoryMetadata | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    version: int = 0

    def find_media(self, public_id: str) -> MediaItem | None:
        for item in self.media:
            if item.public_id == public_id:
                return item
        return None


class UploadedFile(BaseModel):
    """A file delivered by the transport layer, already read into memory."""

    filename: str
    content_type: str
    data: bytes = b""
    size: int | None = None

    @model_validator(mode="after")
    def _default_size(self) -> UploadedFile:
        if self.size is None:
            self.size = len(self.data)
        return self

    @classmethod
    def from_path(cls, path: Path, content_type: str | None = None) -> UploadedFile:
        """Read a file from disk, guessing its mime type from the name."""
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            filename=path.name,
            content_type=content_type or guessed or "application/octet-stream",
            data=path.read_bytes(),
        )


class UploadResult(BaseModel):
    """What the storage service reports back after an upload."""

    url: str
    public_id: str
    resource_type: str = "image"
    format: str = ""
    size_bytes: int = 0


class ItemOutcome(BaseModel):
    """Result row for one id in a batch operation."""

    id: str
    outcome: Outcome
    detail: str = ""
