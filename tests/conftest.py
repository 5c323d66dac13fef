"""
Test configuration and shared fixtures.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from storygraph.config import StoryGraphConfig
from storygraph.models import (
    ClipType,
    JobState,
    MediaAsset,
    MediaCategory,
    TechnicalMetadata,
)
from storygraph.project import Project
from storygraph.registry import AssetRegistry


class FakeServiceClient:
    """Stands in for ServiceClient; answers per service name.

    A response entry may be a dict, a list of dicts (consumed in order), a
    callable taking the payload, or an exception instance to raise.
    """

    def __init__(self, responses: dict[str, Any] | None = None, access_token: str | None = "token"):
        self.responses = responses or {}
        self.access_token = access_token
        self.calls: list[dict[str, Any]] = []

    def _respond(self, method: str, url: str, service: str, payload, authenticated: bool):
        self.calls.append(
            {
                "method": method,
                "url": url,
                "service": service,
                "payload": payload,
                "authenticated": authenticated,
            }
        )
        handler = self.responses.get(service, {})
        if isinstance(handler, list):
            result = handler.pop(0)
        elif callable(handler):
            result = handler(payload if payload is not None else url)
        else:
            result = handler
        if isinstance(result, Exception):
            raise result
        return result

    def post(self, url: str, service: str, payload: dict[str, Any], authenticated: bool = False):
        return self._respond("POST", url, service, payload, authenticated)

    def get(self, url: str, service: str, authenticated: bool = False):
        return self._respond("GET", url, service, None, authenticated)

    def calls_for(self, service: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["service"] == service]


def make_tech(
    fps: Any = 25.0,
    frames: Any = 250,
    start_tc: str = "00:00:00:00",
    **extra: Any,
) -> TechnicalMetadata:
    return TechnicalMetadata(start_timecode=start_tc, frame_rate=fps, total_frames=frames, **extra)


def make_asset(asset_id: str, **fields: Any) -> MediaAsset:
    """Build a MediaAsset with filename defaulting to the id."""
    fields.setdefault("filename", asset_id.rsplit("/", 1)[-1])
    return MediaAsset(id=asset_id, **fields)


@pytest.fixture
def config() -> StoryGraphConfig:
    return StoryGraphConfig(project_name="test-project", retry_delay=0.0)


@pytest.fixture
def registry(tmp_path: Path) -> AssetRegistry:
    return AssetRegistry(tmp_path / "registry")


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a temporary project directory with default config."""
    project_dir = tmp_path / "test_project"
    Project(project_dir).create()
    return project_dir


@pytest.fixture
def multicam_assets() -> list[MediaAsset]:
    """Master audio, two synced interview angles and a b-roll clip."""
    return [
        make_asset(
            "audio/master.wav",
            media_category=MediaCategory.AUDIO,
            clip_type=ClipType.INTERVIEW,
            tech_metadata=make_tech(frames=0, duration_ms=60000, channels=2),
            job_state=JobState.LIGHT_COMPLETE,
        ),
        make_asset(
            "cams/camA.mov",
            relative_path="cams",
            media_category=MediaCategory.VIDEO,
            clip_type=ClipType.INTERVIEW,
            tech_metadata=make_tech(
                frames=1500, start_tc="10:00:00:00", width=3840, height=2160
            ),
            sync_offset_frames=48,
        ),
        make_asset(
            "cams/camB.mov",
            relative_path="cams",
            media_category=MediaCategory.VIDEO,
            clip_type=ClipType.INTERVIEW,
            tech_metadata=make_tech(frames=750),
            sync_offset_frames=-12,
        ),
        make_asset(
            "broll/river.mp4",
            relative_path="broll",
            media_category=MediaCategory.VIDEO,
            clip_type=ClipType.B_ROLL,
            tech_metadata=make_tech(frames=400),
        ),
    ]
