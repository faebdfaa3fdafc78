"""Turn raw multipart fields and files into service commands.

The transport hands over a mapping of form field strings and the list
of uploaded files.  These helpers screen the files, validate the
structured fields, and normalize the four array-shaped media fields
(``mediaTypes``, ``captions``, ``updateMedia``, ``removeMedia``).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from storyhub.content.models import UploadedFile
from storyhub.errors import ValidationError
from storyhub.media.models import MediaAttachments
from storyhub.media.payload import parse_caption_updates, parse_media_fields, parse_remove_ids
from storyhub.media.validation import screen_upload
from storyhub.stories.models import (
    CreateStoryCommand,
    CreateStoryRequest,
    UpdateStoryCommand,
    UpdateStoryRequest,
)

MEDIA_FIELDS = frozenset({"media", "mediaTypes", "captions", "updateMedia", "removeMedia"})

# Present-but-blank means "clear" for these; for every other field it means "absent".
_CLEARABLE_FIELDS = frozenset({"programId", "program_id", "beneficiaryId", "beneficiary_id"})

M = TypeVar("M", bound=BaseModel)


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "request"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def _validate(model: type[M], data: Mapping[str, Any]) -> M:
    try:
        return model.model_validate(dict(data))
    except PydanticValidationError as exc:
        raise ValidationError(_describe(exc)) from exc


def _story_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for key, value in fields.items():
        if key in MEDIA_FIELDS:
            continue
        if isinstance(value, str) and not value.strip() and key not in _CLEARABLE_FIELDS:
            continue
        data[key] = value
    return data


def _screen(files: Sequence[UploadedFile]) -> list[UploadedFile]:
    for file in files:
        screen_upload(file)
    return list(files)


def parse_create_form(
    fields: Mapping[str, Any],
    files: Sequence[UploadedFile] = (),
) -> CreateStoryCommand:
    """Parse a story-creation form.

    Raises:
        ValidationError: If a required field is missing or malformed.
        UnsupportedMediaType: If a file is neither an image nor a video.
    """
    files = _screen(files)
    request = _validate(CreateStoryRequest, _story_fields(fields))
    attachments = parse_media_fields(files, fields.get("mediaTypes"), fields.get("captions"))
    return CreateStoryCommand(request=request, attachments=attachments)


def parse_update_form(
    fields: Mapping[str, Any],
    files: Sequence[UploadedFile] = (),
) -> UpdateStoryCommand:
    """Parse a composite story-update form.

    Malformed ``mediaTypes``/``captions`` degrade to inferred defaults;
    malformed ``updateMedia`` is rejected.

    Raises:
        ValidationError: If a field is malformed or ``updateMedia`` is not
            a JSON array of ``{publicId, caption}`` objects.
        UnsupportedMediaType: If a file is neither an image nor a video.
    """
    files = _screen(files)
    request = _validate(UpdateStoryRequest, _story_fields(fields))
    return UpdateStoryCommand(
        request=request,
        removals=parse_remove_ids(fields.get("removeMedia")),
        caption_updates=parse_caption_updates(fields.get("updateMedia")),
        attachments=parse_media_fields(files, fields.get("mediaTypes"), fields.get("captions")),
    )


def parse_add_media_form(
    files: Sequence[UploadedFile],
    fields: Mapping[str, Any] | None = None,
) -> MediaAttachments:
    """Parse an add-media form.

    Raises:
        ValidationError: If no files were uploaded.
        UnsupportedMediaType: If a file is neither an image nor a video.
    """
    if not files:
        raise ValidationError("No files uploaded")
    fields = fields or {}
    return parse_media_fields(_screen(files), fields.get("mediaTypes"), fields.get("captions"))
