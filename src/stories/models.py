"""Request and result shapes for the story service.

Request models accept the camelCase names form clients send
(``authorName``, ``publishedDate``...) as well as the snake_case field
names.  Structured fields may arrive JSON-encoded inside a form string.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from storyhub.content.models import (
    AuthorRole,
    ItemOutcome,
    Language,
    LocalizedText,
    Outcome,
    Story,
)
from storyhub.media.models import CaptionUpdate, MediaAttachments
from storyhub.media.payload import normalize_string_array
from storyhub.stories.references import Reference


def _decode_json_text(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


class _FormModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class StoryMetadataPatch(_FormModel):
    """Metadata as supplied by a client; unset fields are left alone on update."""

    tags: list[str] | None = None
    location: str | None = None
    duration_seconds: float | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("durationSeconds", "duration_seconds", "duration"),
    )

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: Any) -> Any:
        if value is None:
            return None
        return [tag for tag in normalize_string_array(value) if tag]

    @field_validator("duration_seconds", mode="before")
    @classmethod
    def _numeric_text(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or None
        return value


class _StoryForm(_FormModel):
    @field_validator("title", "body", "metadata", mode="before", check_fields=False)
    @classmethod
    def _structured_text(cls, value: Any) -> Any:
        return _decode_json_text(value)

    @field_validator("published_date", mode="before", check_fields=False)
    @classmethod
    def _date_part(cls, value: Any) -> Any:
        """Accept full ISO date-times, keeping the date as written."""
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str) and "T" in value:
            try:
                return datetime.fromisoformat(value.strip()).date()
            except ValueError:
                return value
        return value

    @field_validator("program_id", "beneficiary_id", mode="before", check_fields=False)
    @classmethod
    def _blank_reference(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class CreateStoryRequest(_StoryForm):
    """Fields for a new story.  Title, body and author are required."""

    title: LocalizedText
    body: LocalizedText = Field(validation_alias=AliasChoices("body", "content"))
    author_name: str = Field(min_length=1)
    author_role: AuthorRole
    program_id: str | None = None
    beneficiary_id: str | None = None
    published_date: date | None = None
    language: Language | None = None
    is_featured: bool | None = None
    is_published: bool | None = None
    metadata: StoryMetadataPatch | None = None


class UpdateStoryRequest(_StoryForm):
    """Partial update; only fields present in ``model_fields_set`` are applied.

    ``program_id``/``beneficiary_id`` present but empty clear the reference.
    """

    title: LocalizedText | None = None
    body: LocalizedText | None = Field(
        default=None, validation_alias=AliasChoices("body", "content")
    )
    author_name: str | None = Field(default=None, min_length=1)
    author_role: AuthorRole | None = None
    program_id: str | None = None
    beneficiary_id: str | None = None
    published_date: date | None = None
    language: Language | None = None
    is_featured: bool | None = None
    is_published: bool | None = None
    metadata: StoryMetadataPatch | None = None


class CreateStoryCommand(BaseModel):
    """A parsed creation request with its aligned attachments."""

    request: CreateStoryRequest
    attachments: MediaAttachments = Field(default_factory=MediaAttachments)


class UpdateStoryCommand(BaseModel):
    """A parsed composite update: field edits, removals, caption edits, additions."""

    request: UpdateStoryRequest = Field(default_factory=UpdateStoryRequest)
    removals: list[str] = Field(default_factory=list)
    caption_updates: list[CaptionUpdate] = Field(default_factory=list)
    attachments: MediaAttachments = Field(default_factory=MediaAttachments)


class ResolvedStory(BaseModel):
    """A story with its program and beneficiary looked up."""

    story: Story
    program: Reference | None = None
    beneficiary: Reference | None = None


class StoryWithStats(ResolvedStory):
    """A resolved story plus derived engagement figures."""

    reading_time_minutes: int = 0
    media_count: int = 0
    engagement: int = 0


class BulkDeleteResult(BaseModel):
    """Per-id outcome of a best-effort batch deletion."""

    outcomes: list[ItemOutcome] = Field(default_factory=list)

    @property
    def deleted_count(self) -> int:
        return sum(1 for o in self.outcomes if o.outcome == Outcome.OK)

    @property
    def failed_ids(self) -> list[str]:
        return [o.id for o in self.outcomes if o.outcome != Outcome.OK]
