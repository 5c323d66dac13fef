"""Tests for storygraph CLI commands."""

from __future__ import annotations

from pathlib import Path

import pytest
from conftest import make_asset
from typer.testing import CliRunner

from storygraph import __version__
from storygraph.cli import app
from storygraph.config import ACCESS_TOKEN_ENV, load_config
from storygraph.models import ClipType, MediaCategory
from storygraph.project import Project

runner = CliRunner()


@pytest.fixture
def in_project(tmp_project: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_project)
    monkeypatch.delenv(ACCESS_TOKEN_ENV, raising=False)
    return tmp_project


@pytest.fixture
def media_dir(tmp_path: Path) -> Path:
    media = tmp_path / "media"
    (media / "cams").mkdir(parents=True)
    (media / "cams" / "A001.mov").write_bytes(b"camera A")
    (media / "master.wav").write_bytes(b"master")
    (media / "notes.txt").write_text("call sheet")
    return media


def _seed(project_dir: Path, assets) -> None:
    registry = Project(project_dir).open_registry()
    for asset in assets:
        registry.upsert(asset)


class TestGlobalOptions:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestInitCommand:
    def test_init_creates_project_directory(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["init", "shoot", "-d", str(tmp_path)])

        assert result.exit_code == 0
        assert (tmp_path / "shoot" / "storygraph.yaml").exists()
        assert (tmp_path / "shoot" / "registry").is_dir()
        assert (tmp_path / "shoot" / "export").is_dir()

    def test_init_fails_if_directory_exists(self, tmp_path: Path) -> None:
        (tmp_path / "existing").mkdir()
        result = runner.invoke(app, ["init", "existing", "-d", str(tmp_path)])
        assert result.exit_code == 1
        assert "already exists" in result.output


class TestOutsideProject:
    @pytest.mark.parametrize("command", [["status"], ["tech"], ["export"], ["reset", "-y"]])
    def test_fails_outside_project(self, tmp_path: Path, monkeypatch, command) -> None:
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, command)
        assert result.exit_code == 1
        assert "Not in a StoryGraph project" in result.output


class TestIndexCommand:
    def test_index_registers_media(self, in_project: Path, media_dir: Path) -> None:
        result = runner.invoke(app, ["index", str(media_dir)])

        assert result.exit_code == 0
        assert "Indexed 2 asset(s)" in result.output
        registry = Project(in_project).open_registry()
        assert [a.id for a in registry.get_all()] == ["cams/A001.mov", "master.wav"]
        assert registry.get("master.wav").media_category == MediaCategory.AUDIO
        assert load_config(in_project).media_root == str(media_dir.resolve())

    def test_reindex_leaves_existing_records(self, in_project: Path, media_dir: Path) -> None:
        runner.invoke(app, ["index", str(media_dir)])
        runner.invoke(app, ["tag", "master.wav", "--clip-type", "interview"])

        result = runner.invoke(app, ["index", str(media_dir)])

        assert result.exit_code == 0
        assert "Indexed 0 asset(s), 2 already registered" in result.output
        registry = Project(in_project).open_registry()
        assert registry.get("master.wav").clip_type == ClipType.INTERVIEW

    def test_index_missing_folder(self, in_project: Path, tmp_path: Path) -> None:
        result = runner.invoke(app, ["index", str(tmp_path / "nope")])
        assert result.exit_code == 1
        assert "Not a directory" in result.output


class TestStatusCommand:
    def test_empty_registry(self, in_project: Path) -> None:
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "Registry is empty" in result.output

    def test_lists_assets(self, in_project: Path) -> None:
        _seed(in_project, [make_asset("a.mov"), make_asset("b.wav")])

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "Assets (2)" in result.output


class TestTagCommand:
    def test_overrides_clip_type_and_category(self, in_project: Path) -> None:
        _seed(in_project, [make_asset("boom.mov")])

        result = runner.invoke(
            app, ["tag", "boom.mov", "--clip-type", "interview", "--category", "audio"]
        )

        assert result.exit_code == 0
        stored = Project(in_project).open_registry().get("boom.mov")
        assert stored.clip_type == ClipType.INTERVIEW
        assert stored.media_category == MediaCategory.AUDIO

    def test_unknown_asset(self, in_project: Path) -> None:
        result = runner.invoke(app, ["tag", "ghost.mov", "--clip-type", "b-roll"])
        assert result.exit_code == 1
        assert "Unknown asset" in result.output

    def test_requires_an_override(self, in_project: Path) -> None:
        result = runner.invoke(app, ["tag", "a.mov"])
        assert result.exit_code == 1


class TestPhaseCommands:
    def test_nothing_to_do(self, in_project: Path) -> None:
        result = runner.invoke(app, ["tech"])
        assert result.exit_code == 0
        assert "nothing to do" in result.output

    def test_categorize_with_empty_registry(self, in_project: Path) -> None:
        result = runner.invoke(app, ["categorize"])
        assert result.exit_code == 0

    def test_sync_without_master(self, in_project: Path) -> None:
        _seed(in_project, [make_asset("camA.mov", clip_type=ClipType.INTERVIEW)])

        result = runner.invoke(app, ["sync"])

        assert result.exit_code == 1
        assert "No master audio" in result.output

    def test_analyze_without_token(self, in_project: Path) -> None:
        result = runner.invoke(app, ["analyze"])
        assert result.exit_code == 1
        assert ACCESS_TOKEN_ENV in result.output

    def test_poll_without_jobs(self, in_project: Path) -> None:
        result = runner.invoke(app, ["poll"])
        assert result.exit_code == 0
        assert "No outstanding jobs" in result.output


class TestExportCommand:
    def test_refuses_without_synced_angles(self, in_project: Path) -> None:
        _seed(
            in_project,
            [
                make_asset(
                    "master.wav",
                    media_category=MediaCategory.AUDIO,
                    clip_type=ClipType.INTERVIEW,
                ),
                make_asset("camA.mov", clip_type=ClipType.INTERVIEW),
            ],
        )

        result = runner.invoke(app, ["export"])

        assert result.exit_code == 1
        assert "No synchronized angles" in result.output

    def test_writes_timeline(self, in_project: Path, multicam_assets) -> None:
        _seed(in_project, multicam_assets)

        result = runner.invoke(app, ["export", "--name", "Day 1"])

        assert result.exit_code == 0
        output = in_project / "export" / "StoryGraph_Final_Sync.xml"
        assert output.exists()
        assert "<name>Day 1</name>" in output.read_text()

    def test_custom_output_path(self, in_project: Path, multicam_assets, tmp_path: Path) -> None:
        _seed(in_project, multicam_assets)
        output = tmp_path / "out" / "timeline.xml"

        result = runner.invoke(app, ["export", "-o", str(output)])

        assert result.exit_code == 0
        assert output.exists()


class TestResetCommand:
    def test_reset_with_confirmation_flag(self, in_project: Path) -> None:
        _seed(in_project, [make_asset("a.mov"), make_asset("b.mov")])

        result = runner.invoke(app, ["reset", "--yes"])

        assert result.exit_code == 0
        assert "Removed 2" in result.output
        assert Project(in_project).open_registry().count() == 0

    def test_reset_declined(self, in_project: Path) -> None:
        _seed(in_project, [make_asset("a.mov")])

        result = runner.invoke(app, ["reset"], input="n\n")

        assert result.exit_code == 1
        assert Project(in_project).open_registry().count() == 1

    def test_reset_empty_registry(self, in_project: Path) -> None:
        result = runner.invoke(app, ["reset"])
        assert result.exit_code == 0
        assert "already empty" in result.output
