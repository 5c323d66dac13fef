"""
storygraph.export.xmeml - Multicam timeline synthesizer.

Builds a frame-accurate multicam sequence from a registry snapshot and
renders it as XMEML (Final Cut Pro 7 XML, version 5) for DaVinci Resolve
and Premiere Pro.

Layout: one video track per camera angle, one camera-scratch audio track
linked to each angle, and the master audio (the spine) last on its own
unlinked audio track. The sequence starts at 01:00:00:00.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import PurePosixPath
from urllib.parse import quote
from xml.sax.saxutils import escape

from storygraph.export.timecode import (
    ZERO_TIMECODE,
    clip_timeline_frames,
    frames_to_timecode,
    timebase,
    timecode_to_frames,
)
from storygraph.models import MediaAsset
from storygraph.pipeline.phases import resolve_master, satellites, timeline_frame_rate

ANCHOR_TIMECODE = "01:00:00:00"
DEFAULT_WIDTH = 1920
DEFAULT_HEIGHT = 1080


@dataclass(frozen=True)
class ClipPlacement:
    """A clip on the timeline, in both timeline and native terms."""

    asset_id: str
    filename: str
    start: int
    duration: int
    native_duration: int
    native_fps: int
    native_start_timecode: str
    pathurl: str
    width: int = 0
    height: int = 0
    channels: int = 2

    @property
    def end(self) -> int:
        return self.start + self.duration

    @property
    def native_start_frame(self) -> int:
        return timecode_to_frames(self.native_start_timecode, self.native_fps)


@dataclass(frozen=True)
class TimelineDocument:
    """Synthesized multicam sequence."""

    sequence_name: str
    fps: int
    duration: int
    width: int
    height: int
    angles: tuple[ClipPlacement, ...]
    master: ClipPlacement

    @property
    def anchor_frame(self) -> int:
        return 3600 * self.fps

    def record_in(self, clip: ClipPlacement) -> str:
        """Sequence timecode at which a clip starts."""
        return frames_to_timecode(self.anchor_frame + clip.start, self.fps)

    def to_xml(self) -> str:
        return render_xmeml(self)


def media_pathurl(media_root: str, relative_path: str, filename: str) -> str:
    """Build a file URL for an asset under the media root.

    Args:
        media_root: Local directory or URL prefix the relative paths hang off
        relative_path: Folder path of the asset within the discovery root
        filename: Asset filename

    Returns:
        URL string (path segments percent-encoded)
    """
    parts = [p for p in relative_path.split("/") if p] + [filename]
    rel = "/".join(quote(p) for p in parts)
    if "://" in media_root:
        prefix = media_root
    elif media_root:
        prefix = "file://" + quote(PurePosixPath(media_root.replace("\\", "/")).as_posix())
    else:
        prefix = "file://"
    if not prefix.endswith("/"):
        prefix += "/"
    return prefix + rel


def place_clip(asset: MediaAsset, timeline_fps: int, start: int, media_root: str) -> ClipPlacement:
    """Compute placement and native descriptors for one asset."""
    tech = asset.tech_metadata
    if tech is not None:
        duration = clip_timeline_frames(
            timeline_fps,
            native_frames=tech.total_frames,
            native_fps=tech.frame_rate,
            duration_ms=tech.duration_ms or asset.duration_ms,
        )
        native_fps = timebase(tech.frame_rate)
        native_duration = tech.total_frames or duration
        start_tc = tech.start_timecode
        width, height = tech.width, tech.height
        channels = tech.channels or 2
    else:
        duration = clip_timeline_frames(timeline_fps, duration_ms=asset.duration_ms)
        native_fps = timeline_fps
        native_duration = duration
        start_tc = ZERO_TIMECODE
        width = height = 0
        channels = 2

    return ClipPlacement(
        asset_id=asset.id,
        filename=asset.filename,
        start=start,
        duration=max(0, duration),
        native_duration=native_duration,
        native_fps=native_fps,
        native_start_timecode=start_tc,
        pathurl=media_pathurl(media_root, asset.relative_path, asset.filename),
        width=width,
        height=height,
        channels=channels,
    )


def synthesize(
    assets: Iterable[MediaAsset],
    sequence_name: str = "StoryGraph_Multicam_Sync",
    media_root: str = "",
) -> TimelineDocument:
    """Synthesize the multicam timeline from a registry snapshot.

    Deterministic for a given input: clip order follows input order and
    nothing time- or environment-dependent is embedded.

    Args:
        assets: Registry snapshot
        sequence_name: Name of the emitted sequence
        media_root: Prefix for clip file URLs

    Returns:
        TimelineDocument

    Raises:
        MissingMasterError: If there is no unique interview audio asset
    """
    assets = list(assets)
    fps = timeline_frame_rate(assets)
    master_asset = resolve_master(assets)

    master = place_clip(master_asset, fps, 0, media_root)
    angles = tuple(
        place_clip(asset, fps, asset.sync_offset_frames, media_root) for asset in satellites(assets)
    )

    duration = max([master.end, *(a.end for a in angles)])

    width, height = DEFAULT_WIDTH, DEFAULT_HEIGHT
    for angle in angles:
        if angle.width and angle.height:
            width, height = angle.width, angle.height
            break

    return TimelineDocument(
        sequence_name=sequence_name,
        fps=fps,
        duration=duration,
        width=width,
        height=height,
        angles=angles,
        master=master,
    )


def _rate_lines(indent: str, fps: int) -> list[str]:
    return [
        f"{indent}<rate>",
        f"{indent}    <timebase>{fps}</timebase>",
        f"{indent}    <ntsc>FALSE</ntsc>",
        f"{indent}</rate>",
    ]


def _filter_lines(
    indent: str,
    name: str,
    effect_id: str,
    effect_type: str,
    media_type: str,
    end: int,
    parameters: list[tuple[str, str, str, str | None, str | None]],
) -> list[str]:
    lines = [
        f"{indent}<filter>",
        f"{indent}    <enabled>TRUE</enabled>",
        f"{indent}    <start>0</start>",
        f"{indent}    <end>{end}</end>",
        f"{indent}    <effect>",
        f"{indent}        <name>{name}</name>",
        f"{indent}        <effectid>{effect_id}</effectid>",
        f"{indent}        <effecttype>{effect_type}</effecttype>",
        f"{indent}        <mediatype>{media_type}</mediatype>",
    ]
    for param_name, param_id, value, vmin, vmax in parameters:
        lines.append(f"{indent}        <parameter>")
        lines.append(f"{indent}            <name>{param_name}</name>")
        lines.append(f"{indent}            <parameterid>{param_id}</parameterid>")
        lines.append(f"{indent}            <value>{value}</value>")
        if vmin is not None:
            lines.append(f"{indent}            <valuemin>{vmin}</valuemin>")
        if vmax is not None:
            lines.append(f"{indent}            <valuemax>{vmax}</valuemax>")
        lines.append(f"{indent}        </parameter>")
    lines.extend([f"{indent}    </effect>", f"{indent}</filter>"])
    return lines


def _audio_filters(indent: str, end: int) -> list[str]:
    return _filter_lines(
        indent, "Audio Levels", "audiolevels", "audiolevels", "audio", end,
        [("Level", "level", "1", "1e-05", "31.6228")],
    ) + _filter_lines(
        indent, "Audio Pan", "audiopan", "audiopan", "audio", end,
        [("Pan", "pan", "0", "-1", "1")],
    )


def _video_filters(indent: str, end: int) -> list[str]:
    return _filter_lines(
        indent, "Basic Motion", "basic", "motion", "video", end,
        [("Scale", "scale", "100", "0", "10000"), ("Rotation", "rotation", "0", "-100000", "100000")],
    ) + _filter_lines(
        indent, "Opacity", "opacity", "motion", "video", end,
        [("opacity", "opacity", "100", "0", "100")],
    )


def _clip_header(indent: str, clip_id: str, clip: ClipPlacement, fps: int) -> list[str]:
    return [
        f'{indent}<clipitem id="{escape(clip_id)}">',
        f"{indent}    <name>{escape(clip.filename)}</name>",
        f"{indent}    <duration>{clip.duration}</duration>",
        *_rate_lines(indent + "    ", fps),
        f"{indent}    <start>{clip.start}</start>",
        f"{indent}    <end>{clip.end}</end>",
        f"{indent}    <enabled>TRUE</enabled>",
        f"{indent}    <in>0</in>",
        f"{indent}    <out>{clip.duration}</out>",
    ]


def _file_lines(indent: str, file_id: str, clip: ClipPlacement, media: list[str]) -> list[str]:
    return [
        f'{indent}<file id="{escape(file_id)}">',
        f"{indent}    <duration>{clip.native_duration}</duration>",
        *_rate_lines(indent + "    ", clip.native_fps),
        f"{indent}    <name>{escape(clip.filename)}</name>",
        f"{indent}    <pathurl>{escape(clip.pathurl)}</pathurl>",
        f"{indent}    <timecode>",
        f"{indent}        <string>{clip.native_start_timecode}</string>",
        f"{indent}        <frame>{clip.native_start_frame}</frame>",
        f"{indent}        <displayformat>NDF</displayformat>",
        *_rate_lines(indent + "        ", clip.native_fps),
        f"{indent}    </timecode>",
        f"{indent}    <media>",
        *media,
        f"{indent}    </media>",
        f"{indent}</file>",
    ]


def _link_lines(indent: str, clip_ref: str, media_type: str | None = None) -> list[str]:
    lines = [f"{indent}<link>", f"{indent}    <linkclipref>{escape(clip_ref)}</linkclipref>"]
    if media_type:
        lines.append(f"{indent}    <mediatype>{media_type}</mediatype>")
    lines.append(f"{indent}</link>")
    return lines


def _track(indent: str, clip_lines: list[str]) -> list[str]:
    return [
        f"{indent}<track>",
        *clip_lines,
        f"{indent}    <enabled>TRUE</enabled>",
        f"{indent}    <locked>FALSE</locked>",
        f"{indent}</track>",
    ]


def _source_track(indent: str) -> list[str]:
    return [
        f"{indent}<sourcetrack>",
        f"{indent}    <mediatype>audio</mediatype>",
        f"{indent}    <trackindex>1</trackindex>",
        f"{indent}</sourcetrack>",
    ]


def render_xmeml(doc: TimelineDocument) -> str:
    """Render a TimelineDocument as XMEML v5.

    Args:
        doc: Synthesized timeline

    Returns:
        XML content as string
    """
    fps = doc.fps
    t = "    "
    track_indent = t * 4
    clip_indent = t * 5
    inner = t * 6

    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        "<!DOCTYPE xmeml>",
        '<xmeml version="5">',
        f"{t}<sequence>",
        f"{t * 2}<name>{escape(doc.sequence_name)}</name>",
        f"{t * 2}<duration>{doc.duration}</duration>",
        *_rate_lines(t * 2, fps),
        f"{t * 2}<in>-1</in>",
        f"{t * 2}<out>-1</out>",
        f"{t * 2}<timecode>",
        f"{t * 3}<string>{ANCHOR_TIMECODE}</string>",
        f"{t * 3}<frame>{doc.anchor_frame}</frame>",
        f"{t * 3}<displayformat>NDF</displayformat>",
        *_rate_lines(t * 3, fps),
        f"{t * 2}</timecode>",
        f"{t * 2}<media>",
        f"{t * 3}<video>",
    ]

    for n, clip in enumerate(doc.angles, 1):
        video_id, audio_id, file_id = f"clipitem-v{n}", f"clipitem-a{n}", f"file-{n}"
        media = [
            f"{inner}    <video>",
            f"{inner}        <duration>{clip.native_duration}</duration>",
            f"{inner}        <samplecharacteristics>",
            f"{inner}            <width>{clip.width or DEFAULT_WIDTH}</width>",
            f"{inner}            <height>{clip.height or DEFAULT_HEIGHT}</height>",
            f"{inner}        </samplecharacteristics>",
            f"{inner}    </video>",
            f"{inner}    <audio>",
            f"{inner}        <channelcount>{clip.channels}</channelcount>",
            f"{inner}    </audio>",
        ]
        clip_lines = [
            *_clip_header(clip_indent, video_id, clip, fps),
            *_file_lines(inner, file_id, clip, media),
            f"{inner}<compositemode>normal</compositemode>",
            *_video_filters(inner, clip.duration),
            *_link_lines(inner, video_id),
            *_link_lines(inner, audio_id),
            f"{inner}<comments/>",
            f"{clip_indent}</clipitem>",
        ]
        lines.extend(_track(track_indent, clip_lines))

    lines.extend(
        [
            f"{track_indent}<format>",
            f"{track_indent}    <samplecharacteristics>",
            f"{track_indent}        <width>{doc.width}</width>",
            f"{track_indent}        <height>{doc.height}</height>",
            f"{track_indent}        <pixelaspectratio>square</pixelaspectratio>",
            *_rate_lines(track_indent + t * 2, fps),
            f"{track_indent}    </samplecharacteristics>",
            f"{track_indent}</format>",
            f"{t * 3}</video>",
            f"{t * 3}<audio>",
        ]
    )

    # Camera scratch audio, linked back to its picture
    for n, clip in enumerate(doc.angles, 1):
        video_id, audio_id, file_id = f"clipitem-v{n}", f"clipitem-a{n}", f"file-{n}"
        clip_lines = [
            *_clip_header(clip_indent, audio_id, clip, fps),
            f'{inner}<file id="{file_id}"/>',
            *_source_track(inner),
            *_audio_filters(inner, clip.duration),
            *_link_lines(inner, video_id, "video"),
            *_link_lines(inner, audio_id),
            f"{inner}<comments/>",
            f"{clip_indent}</clipitem>",
        ]
        lines.extend(_track(track_indent, clip_lines))

    # Master spine, never linked to picture
    master = doc.master
    media = [
        f"{inner}    <audio>",
        f"{inner}        <channelcount>{master.channels}</channelcount>",
        f"{inner}    </audio>",
    ]
    clip_lines = [
        *_clip_header(clip_indent, "clipitem-master", master, fps),
        *_file_lines(inner, "file-master", master, media),
        *_source_track(inner),
        *_audio_filters(inner, master.duration),
        f"{inner}<comments/>",
        f"{clip_indent}</clipitem>",
    ]
    lines.extend(_track(track_indent, clip_lines))

    lines.extend(
        [
            f"{t * 3}</audio>",
            f"{t * 2}</media>",
            f"{t}</sequence>",
            "</xmeml>",
        ]
    )

    return "\n".join(lines) + "\n"
