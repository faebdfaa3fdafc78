"""JSON-backed story store.

Persists every Story in a single JSON file, loaded on init and saved
after every write.  Stories are always read and written whole, media
list included; ``save`` rejects a record whose version token is stale.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field

from storyhub.content.models import Story
from storyhub.errors import NotFoundError, StaleRecordError

logger = logging.getLogger(__name__)

STORE_FILENAME = ".storyhub-stories.json"

# Alias to avoid shadowing by StoryStore.list method
_list = list


class _StoreData(BaseModel):
    """Internal wrapper for JSON serialization."""

    stories: list[Story] = Field(default_factory=list)


class StoryStore:
    """JSON-backed CRUD store for stories.

    Returned records are copies; callers mutate them freely and hand them
    back to ``save``.
    """

    def __init__(self, directory: Path) -> None:
        self._path = directory / STORE_FILENAME
        self._lock = threading.Lock()
        self._data = self._load()

    # ── Private helpers ──────────────────────────────────────────

    def _load(self) -> _StoreData:
        if not self._path.exists():
            return _StoreData()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            return _StoreData.model_validate(raw)
        except (json.JSONDecodeError, ValueError, KeyError):
            logger.warning("Corrupt story store at %s, starting fresh", self._path)
            return _StoreData()

    def _commit(self, stories: _list[Story]) -> None:
        """Write ``stories`` to disk, then make them the in-memory state."""
        data = _StoreData(stories=stories)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            data.model_dump_json(indent=2),
            encoding="utf-8",
        )
        self._data = data

    def _index_of(self, story_id: str) -> int | None:
        for i, story in enumerate(self._data.stories):
            if story.id == story_id:
                return i
        return None

    # ── Read operations ──────────────────────────────────────────

    def find_by_id(self, story_id: str) -> Story:
        """Return a copy of the story.

        Raises NotFoundError if the id does not exist.
        """
        with self._lock:
            idx = self._index_of(story_id)
            if idx is None:
                raise NotFoundError(f"Story with ID {story_id} not found")
            return self._data.stories[idx].model_copy(deep=True)

    def get(self, story_id: str) -> Story | None:
        """Return a copy of the story, or None if not found."""
        try:
            return self.find_by_id(story_id)
        except NotFoundError:
            return None

    def exists(self, story_id: str) -> bool:
        with self._lock:
            return self._index_of(story_id) is not None

    def list(self) -> _list[Story]:
        """Return copies of every story in insertion order."""
        with self._lock:
            return [s.model_copy(deep=True) for s in self._data.stories]

    # ── Write operations ─────────────────────────────────────────

    def save(self, story: Story) -> Story:
        """Insert or replace a story, checking its version token.

        A new story must carry version 0.  An existing story must carry
        the version currently stored, otherwise StaleRecordError is
        raised and nothing is written.  Returns the saved copy with the
        bumped version.
        """
        with self._lock:
            idx = self._index_of(story.id)
            current = 0 if idx is None else self._data.stories[idx].version
            if story.version != current:
                raise StaleRecordError(story.id, story.version, current)

            saved = story.model_copy(deep=True)
            saved.version = current + 1
            saved.updated_at = datetime.now(tz=UTC)
            stories = _list(self._data.stories)
            if idx is None:
                stories.append(saved)
            else:
                stories[idx] = saved
            self._commit(stories)
            return saved.model_copy(deep=True)

    def delete(self, story_id: str) -> None:
        """Remove a story.

        Raises NotFoundError if the id does not exist.
        """
        with self._lock:
            idx = self._index_of(story_id)
            if idx is None:
                raise NotFoundError(f"Story with ID {story_id} not found")
            stories = _list(self._data.stories)
            del stories[idx]
            self._commit(stories)


def update_story(
    store: StoryStore,
    story_id: str,
    change: Callable[[Story], None],
    *,
    attempts: int = 3,
) -> Story:
    """Read-modify-write a story, retrying when another writer got there first.

    ``change`` is re-applied to a freshly loaded copy on every attempt, so
    it must only edit the record and never touch external services.
    StaleRecordError propagates once ``attempts`` saves have been rejected.
    """
    attempt = 1
    while True:
        story = store.find_by_id(story_id)
        change(story)
        try:
            return store.save(story)
        except StaleRecordError:
            if attempt >= attempts:
                raise
            logger.info(
                "Story %s changed during update, retrying (%d/%d)", story_id, attempt, attempts
            )
            attempt += 1
