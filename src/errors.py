"""Error taxonomy shared by every storyhub layer.

Validation and not-found errors are surfaced to callers unchanged.
Storage errors propagate on single-item paths and are logged-and-skipped
on the bulk/cascade paths.
"""

from __future__ import annotations


class StoryhubError(Exception):
    """Base error for storyhub."""


class ValidationError(StoryhubError):
    """Malformed input: bad file, bad JSON field, future publish date."""


class UnsupportedMediaType(ValidationError):
    """File mime type is not allowed for the declared media kind."""


class PayloadTooLarge(ValidationError):
    """File exceeds the size ceiling for its media kind."""


class NotFoundError(StoryhubError):
    """A story, referenced entity, or media item does not exist."""


class UpstreamStorageError(StoryhubError):
    """The object storage service rejected or failed a call."""


class StaleRecordError(StoryhubError):
    """A save was attempted with an outdated version token."""

    def __init__(self, story_id: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Story {story_id} was modified concurrently "
            f"(saved version {actual}, attempted from {expected})"
        )
        self.story_id = story_id
        self.expected = expected
        self.actual = actual
