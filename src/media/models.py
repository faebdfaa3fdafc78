"""Media payload models — aligned attachments, caption edits, results."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storyhub.content.models import ItemOutcome, MediaKind, Outcome, Story, UploadedFile


class CaptionUpdate(BaseModel):
    """One ``updateMedia`` entry: set the caption of an existing item."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    public_id: str = Field(min_length=1)
    caption: str


class MediaAttachment(BaseModel):
    """A file paired with its declared kind and caption."""

    file: UploadedFile
    kind: MediaKind
    caption: str = ""


class MediaAttachments(BaseModel):
    """Files with kinds and captions aligned one-to-one."""

    items: list[MediaAttachment] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)

    def __bool__(self) -> bool:
        return bool(self.items)

    @property
    def files(self) -> list[UploadedFile]:
        return [a.file for a in self.items]

    @property
    def kinds(self) -> list[MediaKind]:
        return [a.kind for a in self.items]

    @property
    def captions(self) -> list[str]:
        return [a.caption for a in self.items]


class MediaRemovalResult(BaseModel):
    """Outcome of a best-effort multi-item removal."""

    story: Story
    outcomes: list[ItemOutcome] = Field(default_factory=list)

    @property
    def removed_ids(self) -> list[str]:
        return [o.id for o in self.outcomes if o.outcome != Outcome.NOT_FOUND]
