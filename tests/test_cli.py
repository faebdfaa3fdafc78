"""Smoke tests for the CLI."""

from __future__ import annotations

import re
from pathlib import Path

import pytest
from typer.testing import CliRunner

from storyhub.cli import app
from storyhub.content.store import StoryStore


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def dirs(tmp_path: Path, monkeypatch) -> list[str]:
    """Global options pointing the CLI at temp store and media directories."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("storyhub.config.GLOBAL_CONFIG", tmp_path / "no-global.toml")
    for key in ("STORYHUB_STORE_DIR", "STORYHUB_STORAGE_BACKEND", "STORYHUB_STORAGE_DIR"):
        monkeypatch.delenv(key, raising=False)
    return ["--store-dir", str(tmp_path / "store"), "--storage-dir", str(tmp_path / "media")]


@pytest.fixture
def photo(tmp_path: Path) -> Path:
    path = tmp_path / "photo.jpg"
    path.write_bytes(b"\xff\xd8jpeg")
    return path


def _create(runner: CliRunner, dirs: list[str], *extra: str) -> str:
    result = runner.invoke(
        app,
        [
            *dirs, "create",
            "--title-en", "Water", "--title-rw", "Amazi",
            "--body-en", "A well.", "--body-rw", "Iriba.",
            "--author", "Admin",
            *extra,
        ],
    )
    assert result.exit_code == 0, result.output
    match = re.search(r"Created story ([0-9a-f-]{36})", result.output)
    assert match
    return match.group(1)


class TestCLI:
    def test_main_help(self, runner: CliRunner):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "create" in result.output

    def test_main_version(self, runner: CliRunner):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "storyhub" in result.output

    def test_create_with_media(self, runner: CliRunner, dirs: list[str], photo: Path, tmp_path):
        story_id = _create(
            runner, dirs, "--file", str(photo), "--media-types", "image", "--captions", "Front"
        )
        story = StoryStore(tmp_path / "store").find_by_id(story_id)
        assert [m.caption for m in story.media] == ["Front"]

    def test_create_future_date_fails(self, runner: CliRunner, dirs: list[str]):
        result = runner.invoke(
            app,
            [
                *dirs, "create",
                "--title-en", "W", "--title-rw", "A", "--body-en", "B", "--body-rw", "I",
                "--author", "Admin", "--published-date", "2999-01-01",
            ],
        )
        assert result.exit_code == 1

    def test_show(self, runner: CliRunner, dirs: list[str]):
        story_id = _create(runner, dirs, "--duration", "90")
        result = runner.invoke(app, [*dirs, "show", story_id, "--no-count-view"])
        assert result.exit_code == 0, result.output
        assert "Water" in result.output
        assert "Reading time: 2 min" in result.output

    def test_show_missing(self, runner: CliRunner, dirs: list[str]):
        result = runner.invoke(app, [*dirs, "show", "nope"])
        assert result.exit_code == 1

    def test_update_fields(self, runner: CliRunner, dirs: list[str], tmp_path: Path):
        story_id = _create(runner, dirs)
        result = runner.invoke(app, [*dirs, "update", story_id, "--author", "Editor"])
        assert result.exit_code == 0, result.output
        assert StoryStore(tmp_path / "store").find_by_id(story_id).author_name == "Editor"

    def test_bad_update_media_fails(self, runner: CliRunner, dirs: list[str]):
        story_id = _create(runner, dirs)
        result = runner.invoke(app, [*dirs, "update", story_id, "--update-media", "{oops"])
        assert result.exit_code == 1

    def test_media_lifecycle(self, runner: CliRunner, dirs: list[str], photo: Path, tmp_path):
        story_id = _create(runner, dirs)
        result = runner.invoke(app, [*dirs, "add-media", story_id, "--file", str(photo)])
        assert result.exit_code == 0, result.output

        store_dir = tmp_path / "store"
        public_id = StoryStore(store_dir).find_by_id(story_id).media[0].public_id

        result = runner.invoke(app, [*dirs, "caption", story_id, public_id, "New caption"])
        assert result.exit_code == 0, result.output
        assert StoryStore(store_dir).find_by_id(story_id).media[0].caption == "New caption"

        result = runner.invoke(app, [*dirs, "remove-media", story_id, public_id, "ghost"])
        assert result.exit_code == 0, result.output
        assert "not_found" in result.output
        assert StoryStore(store_dir).find_by_id(story_id).media == []

    def test_add_media_requires_files(self, runner: CliRunner, dirs: list[str]):
        story_id = _create(runner, dirs)
        result = runner.invoke(app, [*dirs, "add-media", story_id])
        assert result.exit_code == 1

    def test_remove_media_requires_target(self, runner: CliRunner, dirs: list[str]):
        story_id = _create(runner, dirs)
        result = runner.invoke(app, [*dirs, "remove-media", story_id])
        assert result.exit_code == 1

    def test_share(self, runner: CliRunner, dirs: list[str]):
        story_id = _create(runner, dirs)
        result = runner.invoke(app, [*dirs, "share", story_id])
        assert result.exit_code == 0
        assert "shared 1 time(s)" in result.output

    def test_delete_many(self, runner: CliRunner, dirs: list[str], tmp_path: Path):
        a = _create(runner, dirs)
        b = _create(runner, dirs)
        result = runner.invoke(app, [*dirs, "delete", a, "missing-id", b])
        assert "Deleted 2 of 3 stories" in result.output
        assert result.exit_code == 1
        assert StoryStore(tmp_path / "store").list() == []
