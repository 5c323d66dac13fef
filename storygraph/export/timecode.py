"""
storygraph.export.timecode - Timecode math utilities.

Non-drop-frame SMPTE arithmetic: timecode <-> absolute frame counts,
frame-rate parsing, and cross-framerate duration conversion.
"""

from __future__ import annotations

import math
import re

DEFAULT_FPS = 25.0

# Placeholder clip length (10s at 25fps) used when an asset carries neither
# technical metadata nor a discovery duration.
DEFAULT_CLIP_FRAMES = 250

ZERO_TIMECODE = "00:00:00:00"

_TIMECODE_RE = re.compile(r"^(\d{1,2}):(\d{2}):(\d{2})[:;](\d{2})$")


def parse_frame_rate(value: object, default: float = DEFAULT_FPS) -> float:
    """Parse a frame rate from a number or string.

    Accepts numbers, decimal strings ("25.000", "23.976") and rational
    strings ("30000/1001").

    Args:
        value: Raw frame rate value
        default: Returned when the value is missing, unparseable or <= 0

    Returns:
        Frame rate as float
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        if isinstance(value, str):
            text = value.strip()
            if "/" in text:
                num, den = text.split("/", 1)
                fps = float(num) / float(den)
            else:
                fps = float(text)
        else:
            fps = float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return default
    if not math.isfinite(fps) or fps <= 0:
        return default
    return fps


def timebase(fps: float) -> int:
    """Nominal integer frame count per timecode second.

    Non-drop timecode counts 23.976 as 24, 29.97 as 30, and so on.
    """
    return max(1, round_half_up(fps))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(value + 0.5)


def is_valid_timecode(timecode: str) -> bool:
    """Check whether a string is a well-formed HH:MM:SS:FF timecode."""
    if not isinstance(timecode, str):
        return False
    match = _TIMECODE_RE.match(timecode.strip())
    if not match:
        return False
    mm, ss = int(match.group(2)), int(match.group(3))
    return mm < 60 and ss < 60


def parse_timecode(timecode: str) -> tuple[int, int, int, int]:
    """Split a timecode string into hours, minutes, seconds, frames.

    Raises:
        ValueError: If the timecode is malformed
    """
    if not is_valid_timecode(timecode):
        raise ValueError(f"Malformed timecode: {timecode!r}")
    match = _TIMECODE_RE.match(timecode.strip())
    return (
        int(match.group(1)),
        int(match.group(2)),
        int(match.group(3)),
        int(match.group(4)),
    )


def timecode_to_frames(timecode: str, fps: float = DEFAULT_FPS) -> int:
    """Convert non-drop timecode to an absolute frame count.

    Args:
        timecode: Timecode string in HH:MM:SS:FF format
        fps: Frames per second

    Returns:
        Absolute frame count
    """
    hh, mm, ss, ff = parse_timecode(timecode)
    base = timebase(fps)
    return (hh * 3600 + mm * 60 + ss) * base + ff


def frames_to_timecode(
    frames: int,
    fps: float = DEFAULT_FPS,
    base_timecode: str = ZERO_TIMECODE,
) -> str:
    """Convert a frame offset (added to a base timecode) to timecode.

    Args:
        frames: Frame offset from the base timecode
        fps: Frames per second
        base_timecode: Timecode the offset is relative to

    Returns:
        Timecode string in HH:MM:SS:FF format
    """
    base = timebase(fps)
    total = timecode_to_frames(base_timecode, fps) + int(frames)
    if total < 0:
        raise ValueError(f"Frame position {total} is before 00:00:00:00")

    hh = total // (3600 * base)
    mm = (total % (3600 * base)) // (60 * base)
    ss = (total % (60 * base)) // base
    ff = total % base

    return f"{hh:02d}:{mm:02d}:{ss:02d}:{ff:02d}"


def native_to_timeline_frames(native_frames: int, native_fps: float, timeline_fps: float) -> int:
    """Convert a clip length in native frames to timeline frames.

    Args:
        native_frames: Frame count at the clip's native rate
        native_fps: Native frames per second
        timeline_fps: Timeline frames per second

    Returns:
        Nearest-integer frame count at the timeline rate
    """
    if native_fps <= 0:
        native_fps = timeline_fps
    return round_half_up(native_frames / native_fps * timeline_fps)


def milliseconds_to_frames(duration_ms: float, fps: float) -> int:
    """Convert a duration in milliseconds to frames at the given rate."""
    return round_half_up(duration_ms / 1000 * fps)


def rescale_frames(frames: int, from_fps: float, to_fps: float) -> int:
    """Rescale a signed frame offset between frame rates."""
    if from_fps <= 0 or abs(from_fps - to_fps) < 1e-9:
        return int(frames)
    scaled = frames / from_fps * to_fps
    return round_half_up(scaled) if scaled >= 0 else -round_half_up(-scaled)


def clip_timeline_frames(
    timeline_fps: float,
    native_frames: int = 0,
    native_fps: float | None = None,
    duration_ms: int = 0,
) -> int:
    """Length of a clip in timeline frames.

    Prefers the native frame count at its native rate, then the millisecond
    duration, then DEFAULT_CLIP_FRAMES when nothing is known.
    """
    if native_frames > 0:
        return native_to_timeline_frames(native_frames, native_fps or timeline_fps, timeline_fps)
    if duration_ms > 0:
        return milliseconds_to_frames(duration_ms, timeline_fps)
    return DEFAULT_CLIP_FRAMES
