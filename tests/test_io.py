"""Tests for storygraph.io module - JSON and text I/O utilities."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from storygraph.io import read_json, write_json, write_text


class TestReadJson:
    def test_read_valid_json(self, tmp_path: Path) -> None:
        data = {"key": "value", "number": 42}
        json_file = tmp_path / "test.json"
        json_file.write_text(json.dumps(data))

        assert read_json(json_file) == data

    def test_read_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            read_json(tmp_path / "nonexistent.json")

    def test_read_invalid_json_raises(self, tmp_path: Path) -> None:
        json_file = tmp_path / "invalid.json"
        json_file.write_text("{not valid json}")

        with pytest.raises(json.JSONDecodeError):
            read_json(json_file)


class TestWriteJson:
    def test_writes_json_file(self, tmp_path: Path) -> None:
        data = {"key": "value", "nested": {"a": 1}}

        output_path = tmp_path / "output.json"
        write_json(output_path, data)

        with open(output_path) as f:
            assert json.load(f) == data

    def test_keys_sorted_for_stable_output(self, tmp_path: Path) -> None:
        output_path = tmp_path / "output.json"
        write_json(output_path, {"b": 1, "a": 2})

        content = output_path.read_text()
        assert content.index('"a"') < content.index('"b"')

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        output_path = tmp_path / "subdir" / "nested" / "output.json"
        write_json(output_path, {"key": "value"})

        assert output_path.exists()

    def test_does_not_escape_non_ascii(self, tmp_path: Path) -> None:
        output_path = tmp_path / "output.json"
        write_json(output_path, {"filename": "entrevista_niño.mov"})

        content = output_path.read_text(encoding="utf-8")
        assert "niño" in content
        assert "\\u" not in content

    def test_unserializable_data_leaves_no_temp_file(self, tmp_path: Path) -> None:
        output_path = tmp_path / "output.json"

        with pytest.raises(TypeError):
            write_json(output_path, {"bad": object()})

        assert not output_path.exists()
        assert not any(tmp_path.glob("*.tmp"))


class TestWriteText:
    def test_writes_unicode(self, tmp_path: Path) -> None:
        content = "<name>Día 1</name>"

        output_path = tmp_path / "output.xml"
        write_text(output_path, content)

        assert output_path.read_text(encoding="utf-8") == content

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        output_path = tmp_path / "subdir" / "nested" / "output.xml"
        write_text(output_path, "Test content")

        assert output_path.exists()


class TestAtomicWrites:
    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        write_json(tmp_path / "output.json", {"key": "value"})
        write_text(tmp_path / "output.txt", "Test content")

        assert not any(tmp_path.glob("*.tmp"))

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        output_path = tmp_path / "output.json"
        output_path.write_text(json.dumps({"old": "data"}))

        write_json(output_path, {"new": "value"})

        assert read_json(output_path) == {"new": "value"}
