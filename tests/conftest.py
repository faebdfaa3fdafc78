"""Shared fixtures: a temp story store, local media storage and wired services."""

from __future__ import annotations

from pathlib import Path

import pytest

from storyhub.content.models import AuthorRole, LocalizedText, Story, UploadedFile
from storyhub.content.store import StoryStore
from storyhub.integrations.storage import LocalObjectStorage
from storyhub.media.services import MediaCoordinator
from storyhub.stories.references import ReferenceDirectory
from storyhub.stories.services import StoryService


@pytest.fixture
def store(tmp_path: Path) -> StoryStore:
    return StoryStore(tmp_path / "store")


@pytest.fixture
def storage(tmp_path: Path) -> LocalObjectStorage:
    return LocalObjectStorage(tmp_path / "media", base_url="https://media.test")


@pytest.fixture
def coordinator(store: StoryStore, storage: LocalObjectStorage) -> MediaCoordinator:
    return MediaCoordinator(store, storage)


@pytest.fixture
def service(store: StoryStore, coordinator: MediaCoordinator):
    programs = ReferenceDirectory("program", {"prog-1": "Clean Water"})
    beneficiaries = ReferenceDirectory("beneficiary", {"ben-1": "Aline"})
    svc = StoryService(store, coordinator, programs=programs, beneficiaries=beneficiaries)
    yield svc
    svc.close()


@pytest.fixture
def saved_story(store: StoryStore) -> Story:
    story = Story(
        title=LocalizedText(en="Water for Musanze", rw="Amazi i Musanze"),
        body=LocalizedText(en="A new well.", rw="Iriba rishya."),
        author_name="Admin",
        author_role=AuthorRole.ADMIN,
    )
    return store.save(story)


@pytest.fixture
def jpeg() -> UploadedFile:
    return UploadedFile(filename="img.jpg", content_type="image/jpeg", data=b"\xff\xd8jpeg")


@pytest.fixture
def mp4() -> UploadedFile:
    return UploadedFile(filename="clip.mp4", content_type="video/mp4", data=b"\x00\x00mp4")
