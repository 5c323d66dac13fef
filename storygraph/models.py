"""
storygraph.models - Asset record schema.

MediaAsset is the single persisted record type. Technical metadata arrives
from the extractor service with textual numbers ("25.000", "1542"); the
validators here normalize them to native types before anything downstream
does arithmetic on them.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator

from storygraph.export.timecode import (
    DEFAULT_FPS,
    ZERO_TIMECODE,
    is_valid_timecode,
    parse_frame_rate,
    parse_timecode,
    timebase,
)

logger = logging.getLogger("storygraph")


class MediaCategory(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"


class ClipType(str, Enum):
    UNKNOWN = "unknown"
    INTERVIEW = "interview"
    B_ROLL = "b-roll"
    EXTERNAL_AUDIO = "external_audio"
    LOCATION_SOUND = "location_sound"


class JobState(str, Enum):
    """Remote job sentinel. IN_FLIGHT is paired with MediaAsset.job_id."""

    NONE = "none"
    IN_FLIGHT = "in_flight"
    LIGHT_COMPLETE = "light_complete"
    COMPLETE = "completed"
    ERROR = "error"


TERMINAL_JOB_STATES = frozenset({JobState.LIGHT_COMPLETE, JobState.COMPLETE, JobState.ERROR})


class ForensicStage(str, Enum):
    NONE = "none"
    LIGHT = "light"
    HEAVY = "heavy"
    TECH = "tech"
    SYNC = "sync"


def _coerce_int(value: Any, field: str, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(float(value)) if isinstance(value, str) and "." in value else int(value)
    except (TypeError, ValueError):
        logger.warning("Malformed %s %r, defaulting to %s", field, value, default)
        return default


class TechnicalMetadata(BaseModel):
    """Technical specs reported by the metadata extractor."""

    start_timecode: str = ZERO_TIMECODE
    frame_rate: float = DEFAULT_FPS
    total_frames: int = 0
    codec_id: str = "Unknown"
    width: int = 0
    height: int = 0
    sample_rate: int | None = None
    channels: int | None = None
    bit_depth: int | None = None
    duration_ms: int = 0
    reel_name: str | None = None

    @field_validator("start_timecode", mode="before")
    @classmethod
    def normalize_timecode(cls, v: Any) -> str:
        if not v:
            return ZERO_TIMECODE
        text = str(v).strip()
        if not is_valid_timecode(text):
            logger.warning("Malformed start timecode %r, defaulting to %s", v, ZERO_TIMECODE)
            return ZERO_TIMECODE
        return text.replace(";", ":")

    @field_validator("frame_rate", mode="before")
    @classmethod
    def normalize_frame_rate(cls, v: Any) -> float:
        fps = parse_frame_rate(v, default=-1.0)
        if fps < 0:
            if v is not None:
                logger.warning("Malformed frame rate %r, defaulting to %s", v, DEFAULT_FPS)
            return DEFAULT_FPS
        return fps

    @field_validator("total_frames", "width", "height", "duration_ms", mode="before")
    @classmethod
    def normalize_count(cls, v: Any, info: ValidationInfo) -> int:
        return max(0, _coerce_int(v, info.field_name))

    @field_validator("sample_rate", "channels", "bit_depth", mode="before")
    @classmethod
    def normalize_optional_count(cls, v: Any, info: ValidationInfo) -> int | None:
        if v is None or v == "":
            return None
        return _coerce_int(v, info.field_name)

    @model_validator(mode="after")
    def check_timecode_frames(self) -> TechnicalMetadata:
        frames = parse_timecode(self.start_timecode)[3]
        if frames >= timebase(self.frame_rate):
            logger.warning(
                "Start timecode %s exceeds %s fps, defaulting to %s",
                self.start_timecode,
                self.frame_rate,
                ZERO_TIMECODE,
            )
            self.start_timecode = ZERO_TIMECODE
        return self

    @classmethod
    def from_service(cls, payload: dict[str, Any]) -> TechnicalMetadata:
        """Build from the extractor's wire shape (start_tc, frame_rate_fraction)."""
        return cls(
            start_timecode=payload.get("start_tc"),
            frame_rate=payload.get("frame_rate_fraction"),
            total_frames=payload.get("total_frames"),
            codec_id=payload.get("codec_id") or "Unknown",
            width=payload.get("width"),
            height=payload.get("height"),
            sample_rate=payload.get("sample_rate"),
            channels=payload.get("channels"),
            bit_depth=payload.get("bit_depth"),
            duration_ms=payload.get("duration_ms"),
            reel_name=payload.get("reel_name"),
        )


class MediaAsset(BaseModel):
    """One discovered media file and its pipeline state."""

    id: str = Field(min_length=1)
    filename: str
    checksum: str = ""
    size_bytes: int = Field(default=0, ge=0)
    mime_type: str = ""
    relative_path: str = ""
    duration_ms: int = Field(default=0, ge=0)

    media_category: MediaCategory = MediaCategory.VIDEO
    clip_type: ClipType = ClipType.UNKNOWN

    tech_metadata: TechnicalMetadata | None = None

    job_state: JobState = JobState.NONE
    job_id: str | None = None
    last_stage: ForensicStage = ForensicStage.NONE

    sync_offset_frames: int = 0
    analysis_content: str | None = None

    @field_validator("size_bytes", "duration_ms", mode="before")
    @classmethod
    def normalize_size(cls, v: Any, info: ValidationInfo) -> int:
        return max(0, _coerce_int(v, info.field_name))

    @field_validator("sync_offset_frames", mode="before")
    @classmethod
    def normalize_offset(cls, v: Any) -> int:
        return _coerce_int(v, "sync_offset_frames")

    @model_validator(mode="after")
    def check_job_id(self) -> MediaAsset:
        if self.job_state == JobState.IN_FLIGHT and not self.job_id:
            raise ValueError("in_flight job_state requires a job_id")
        if self.job_state != JobState.IN_FLIGHT and self.job_id is not None:
            self.job_id = None
        return self

    @property
    def is_video(self) -> bool:
        return self.media_category == MediaCategory.VIDEO

    @property
    def is_audio(self) -> bool:
        return self.media_category == MediaCategory.AUDIO

    @property
    def is_interview(self) -> bool:
        return self.clip_type == ClipType.INTERVIEW

    @property
    def duration_seconds(self) -> float:
        if self.tech_metadata and self.tech_metadata.duration_ms:
            return self.tech_metadata.duration_ms / 1000
        return self.duration_ms / 1000
