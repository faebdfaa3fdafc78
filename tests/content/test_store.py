"""Tests for StoryStore — JSON-backed story store with version checks."""

import json
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from storyhub.content.models import AuthorRole, LocalizedText, Story
from storyhub.content.store import STORE_FILENAME, StoryStore, update_story
from storyhub.errors import NotFoundError, StaleRecordError


def _make_story(**kwargs: object) -> Story:
    return Story(
        title=LocalizedText(en="Title", rw="Umutwe"),
        body=LocalizedText(en="Body", rw="Inkuru"),
        author_name="Author",
        author_role=AuthorRole.ADMIN,
        **kwargs,  # type: ignore[arg-type]
    )


class TestSave:
    def test_inserts_new_story(self, tmp_path: Path):
        store = StoryStore(tmp_path)
        saved = store.save(_make_story(id="s1"))

        assert saved.version == 1
        assert store.find_by_id("s1").title.en == "Title"

    def test_persists_to_disk(self, tmp_path: Path):
        store = StoryStore(tmp_path)
        store.save(_make_story(id="s1"))

        data = json.loads((tmp_path / STORE_FILENAME).read_text(encoding="utf-8"))
        assert len(data["stories"]) == 1
        assert data["stories"][0]["id"] == "s1"

    def test_reloads_from_disk(self, tmp_path: Path):
        StoryStore(tmp_path).save(_make_story(id="s1"))
        assert StoryStore(tmp_path).exists("s1")

    def test_bumps_version_and_updated_at(self, tmp_path: Path):
        store = StoryStore(tmp_path)
        first = store.save(_make_story(id="s1"))
        first.author_name = "Editor"
        second = store.save(first)

        assert second.version == 2
        assert second.updated_at >= first.updated_at
        assert store.find_by_id("s1").author_name == "Editor"

    def test_stale_version_rejected(self, tmp_path: Path):
        store = StoryStore(tmp_path)
        store.save(_make_story(id="s1"))
        a = store.find_by_id("s1")
        b = store.find_by_id("s1")

        a.author_name = "A"
        store.save(a)
        b.author_name = "B"
        with pytest.raises(StaleRecordError) as exc_info:
            store.save(b)

        assert exc_info.value.expected == 1
        assert exc_info.value.actual == 2
        assert store.find_by_id("s1").author_name == "A"

    def test_new_story_with_nonzero_version_rejected(self, tmp_path: Path):
        store = StoryStore(tmp_path)
        with pytest.raises(StaleRecordError):
            store.save(_make_story(id="s1", version=3))

    def test_returned_copy_is_detached(self, tmp_path: Path):
        store = StoryStore(tmp_path)
        saved = store.save(_make_story(id="s1"))
        saved.author_name = "Changed"
        assert store.find_by_id("s1").author_name == "Author"

    def test_failed_write_leaves_memory_unchanged(self, tmp_path: Path):
        store = StoryStore(tmp_path)
        saved = store.save(_make_story(id="s1"))
        saved.author_name = "Changed"

        with patch.object(Path, "write_text", side_effect=OSError("disk full")):
            with pytest.raises(OSError, match="disk full"):
                store.save(saved)
            with pytest.raises(OSError):
                store.save(_make_story(id="s2"))

        current = store.find_by_id("s1")
        assert current.version == 1
        assert current.author_name == "Author"
        assert not store.exists("s2")
        assert store.save(saved).version == 2


class TestRead:
    def test_find_by_id_missing_raises(self, tmp_path: Path):
        store = StoryStore(tmp_path)
        with pytest.raises(NotFoundError, match="Story with ID nope not found"):
            store.find_by_id("nope")

    def test_get_returns_none_for_missing(self, tmp_path: Path):
        assert StoryStore(tmp_path).get("nope") is None

    def test_list_in_insertion_order(self, tmp_path: Path):
        store = StoryStore(tmp_path)
        for story_id in ("a", "b", "c"):
            store.save(_make_story(id=story_id))
        assert [s.id for s in store.list()] == ["a", "b", "c"]

    def test_corrupt_file_starts_fresh(self, tmp_path: Path):
        (tmp_path / STORE_FILENAME).write_text("{not json", encoding="utf-8")
        assert StoryStore(tmp_path).list() == []


class TestDelete:
    def test_removes_story(self, tmp_path: Path):
        store = StoryStore(tmp_path)
        store.save(_make_story(id="s1"))
        store.delete("s1")
        assert not store.exists("s1")

    def test_missing_raises(self, tmp_path: Path):
        with pytest.raises(NotFoundError):
            StoryStore(tmp_path).delete("nope")

    def test_failed_write_keeps_story(self, tmp_path: Path):
        store = StoryStore(tmp_path)
        store.save(_make_story(id="s1"))
        with patch.object(Path, "write_text", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                store.delete("s1")
        assert store.exists("s1")


class TestUpdateStory:
    def test_applies_change(self, tmp_path: Path):
        store = StoryStore(tmp_path)
        store.save(_make_story(id="s1"))

        saved = update_story(store, "s1", lambda s: setattr(s, "share_count", 5))
        assert saved.share_count == 5
        assert store.find_by_id("s1").share_count == 5

    def test_retries_after_concurrent_write(self, tmp_path: Path):
        store = StoryStore(tmp_path)
        store.save(_make_story(id="s1"))
        calls = []

        def change(story: Story) -> None:
            calls.append(story.version)
            if len(calls) == 1:
                # Another writer lands between our read and our save.
                other = store.find_by_id("s1")
                other.view_count += 1
                store.save(other)
            story.share_count += 1

        saved = update_story(store, "s1", change)

        assert calls == [1, 2]
        assert saved.view_count == 1
        assert saved.share_count == 1

    def test_gives_up_after_attempts(self, tmp_path: Path):
        store = StoryStore(tmp_path)
        store.save(_make_story(id="s1"))

        def always_conflict(story: Story) -> None:
            other = store.find_by_id("s1")
            store.save(other)

        with pytest.raises(StaleRecordError):
            update_story(store, "s1", always_conflict, attempts=2)

    def test_missing_story_raises(self, tmp_path: Path):
        with pytest.raises(NotFoundError):
            update_story(StoryStore(tmp_path), "nope", lambda s: None)

    def test_concurrent_increments_are_not_lost(self, tmp_path: Path):
        store = StoryStore(tmp_path)
        store.save(_make_story(id="s1"))

        def bump() -> None:
            for _ in range(5):
                update_story(
                    store, "s1", lambda s: setattr(s, "view_count", s.view_count + 1),
                    attempts=100,
                )

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.find_by_id("s1").view_count == 20
