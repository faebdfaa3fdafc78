"""Stories domain — request shapes, form intake and the story service."""

from storyhub.stories.forms import parse_add_media_form, parse_create_form, parse_update_form
from storyhub.stories.models import (
    BulkDeleteResult,
    CreateStoryCommand,
    CreateStoryRequest,
    ResolvedStory,
    StoryMetadataPatch,
    StoryWithStats,
    UpdateStoryCommand,
    UpdateStoryRequest,
)
from storyhub.stories.references import Reference, ReferenceDirectory
from storyhub.stories.services import StoryService

__all__ = [
    "BulkDeleteResult",
    "CreateStoryCommand",
    "CreateStoryRequest",
    "Reference",
    "ReferenceDirectory",
    "ResolvedStory",
    "StoryMetadataPatch",
    "StoryService",
    "StoryWithStats",
    "UpdateStoryCommand",
    "UpdateStoryRequest",
    "parse_add_media_form",
    "parse_create_form",
    "parse_update_form",
]
