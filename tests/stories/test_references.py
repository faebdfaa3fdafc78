"""Tests for program/beneficiary reference lookups."""

import json
from pathlib import Path

import pytest

from storyhub.errors import NotFoundError
from storyhub.stories.references import ReferenceDirectory


class TestReferenceDirectory:
    def test_get_known_id(self):
        programs = ReferenceDirectory("program", {"p1": "Clean Water"})
        ref = programs.get("p1")
        assert ref.id == "p1"
        assert ref.kind == "program"
        assert ref.name == "Clean Water"

    def test_unknown_id_message(self):
        with pytest.raises(NotFoundError, match="Beneficiary with ID b9 not found"):
            ReferenceDirectory("beneficiary").get("b9")

    def test_exists(self):
        programs = ReferenceDirectory("program", {"p1": ""})
        assert programs.exists("p1")
        assert not programs.exists("p2")

    def test_from_file(self, tmp_path: Path):
        path = tmp_path / "programs.json"
        path.write_text(json.dumps({"p1": "Clean Water", "p2": "Schools"}), encoding="utf-8")
        programs = ReferenceDirectory.from_file(path, "program")
        assert programs.get("p2").name == "Schools"

    def test_missing_file_is_empty(self, tmp_path: Path, caplog):
        programs = ReferenceDirectory.from_file(tmp_path / "none.json", "program")
        assert not programs.exists("p1")
        assert "not found" in caplog.text

    def test_corrupt_file_is_empty(self, tmp_path: Path):
        path = tmp_path / "programs.json"
        path.write_text("[1, 2", encoding="utf-8")
        assert not ReferenceDirectory.from_file(path, "program").exists("1")

    def test_non_object_file_is_empty(self, tmp_path: Path):
        path = tmp_path / "programs.json"
        path.write_text('["p1"]', encoding="utf-8")
        assert not ReferenceDirectory.from_file(path, "program").exists("p1")
