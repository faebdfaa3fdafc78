"""Normalization of loosely-typed multipart fields into typed arrays.

Form clients send array-shaped fields in every encoding imaginable: a
JSON array, a JSON scalar, a comma-separated string, a bare value, or a
repeated form field that arrives as a list.  Everything funnels through
``normalize_string_array``; the field-specific parsers only add a
post-processing step.  Nothing here performs I/O.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Sequence
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from storyhub.content.models import MediaKind, UploadedFile
from storyhub.errors import ValidationError
from storyhub.media.models import CaptionUpdate, MediaAttachment, MediaAttachments

logger = logging.getLogger(__name__)

_KIND_ARTIFACTS = re.compile(r"""['"\[\]]""")

_caption_updates_adapter = TypeAdapter(list[CaptionUpdate])


def _stringify(value: Any) -> str:
    """Render a decoded JSON value the way a form client would print it."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (list, tuple)):
        return ",".join(_stringify(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _flatten_once(items: Sequence[Any]) -> list[Any]:
    flat: list[Any] = []
    for item in items:
        if isinstance(item, (list, tuple)):
            flat.extend(item)
        else:
            flat.append(item)
    return flat


def normalize_string_array(
    raw: str | Sequence[Any] | None,
    post_process: Callable[[str], str] | None = None,
) -> list[str]:
    """Turn a raw form value into a flat list of trimmed strings.

    Args:
        raw: JSON array/scalar text, CSV text, a bare value, or a list
            (repeated form fields).  None and blank values yield ``[]``.
        post_process: Optional per-element transform applied after
            trimming.

    Returns:
        The normalized elements, in input order.
    """
    if raw is None:
        return []

    if isinstance(raw, (list, tuple)):
        items = _flatten_once(raw)
    else:
        text = str(raw)
        if not text.strip():
            return []
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            items = text.split(",") if "," in text else [text]
        else:
            if isinstance(parsed, list):
                items = _flatten_once(parsed)
            elif isinstance(parsed, str):
                items = [parsed]
            else:
                # Numbers, booleans and null keep their literal spelling.
                items = [text]

    result = [_stringify(item).strip() for item in items]
    if post_process is not None:
        result = [post_process(item) for item in result]
    return result


def classify_media_kind(token: str) -> MediaKind:
    """Classify a loose kind token; anything starting with "vid" is video."""
    clean = _KIND_ARTIFACTS.sub("", token).strip().lower()
    return MediaKind.VIDEO if clean.startswith("vid") else MediaKind.IMAGE


def infer_media_kind(content_type: str) -> MediaKind:
    """Infer the media kind from a mime type."""
    return MediaKind.VIDEO if content_type.lower().startswith("video/") else MediaKind.IMAGE


def _unwrap_caption(caption: str) -> str:
    if caption.startswith('["') and caption.endswith('"]'):
        try:
            decoded = json.loads(caption)
        except json.JSONDecodeError:
            return caption
        if isinstance(decoded, list) and decoded:
            return _stringify(decoded[0])
    return caption


def parse_media_kinds(raw: str | Sequence[Any] | None) -> list[MediaKind]:
    """Parse the ``mediaTypes`` field."""
    return [classify_media_kind(t) for t in normalize_string_array(raw)]


def parse_captions(raw: str | Sequence[Any] | None) -> list[str]:
    """Parse the ``captions`` field."""
    return normalize_string_array(raw, post_process=_unwrap_caption)


def parse_remove_ids(raw: str | Sequence[Any] | None) -> list[str]:
    """Parse the ``removeMedia`` field into public ids, dropping blanks."""
    return [pid for pid in normalize_string_array(raw) if pid]


def parse_caption_updates(
    raw: str | Sequence[Any] | dict[str, Any] | None,
) -> list[CaptionUpdate]:
    """Parse the ``updateMedia`` field.

    Unlike the other array fields this one carries structured data, so a
    value that is not a JSON array (or single object) of
    ``{publicId, caption}`` pairs is rejected instead of guessed at.

    Raises:
        ValidationError: If the value cannot be decoded or validated.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        if not raw.strip():
            return []
        try:
            decoded: Any = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValidationError("Invalid updateMedia format. Must be a JSON array.") from exc
    else:
        decoded = raw

    if not isinstance(decoded, list):
        decoded = [decoded]
    try:
        return _caption_updates_adapter.validate_python(decoded)
    except PydanticValidationError as exc:
        raise ValidationError(
            "Invalid updateMedia format. Each item needs a publicId and a caption."
        ) from exc


def align_media(
    files: Sequence[UploadedFile],
    kinds: Sequence[MediaKind],
    captions: Sequence[str],
) -> MediaAttachments:
    """Pair files with kinds and captions, one entry per file.

    Missing kinds are inferred from each file's mime type and missing
    captions default to ``""``; surplus entries are dropped.
    """
    items: list[MediaAttachment] = []
    for i, file in enumerate(files):
        kind = kinds[i] if i < len(kinds) else infer_media_kind(file.content_type)
        caption = captions[i] if i < len(captions) else ""
        items.append(MediaAttachment(file=file, kind=kind, caption=caption))

    if len(kinds) > len(files) or len(captions) > len(files):
        logger.debug(
            "Dropped surplus media fields: %d files, %d kinds, %d captions",
            len(files), len(kinds), len(captions),
        )
    return MediaAttachments(items=items)


def parse_media_fields(
    files: Sequence[UploadedFile],
    media_types: str | Sequence[Any] | None,
    captions: str | Sequence[Any] | None,
) -> MediaAttachments:
    """Normalize ``mediaTypes``/``captions`` and align them with ``files``."""
    return align_media(files, parse_media_kinds(media_types), parse_captions(captions))
