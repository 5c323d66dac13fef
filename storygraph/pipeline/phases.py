"""
storygraph.pipeline.phases - Phase definitions and eligibility predicates.

Phase progress is derived from registry content alone: each phase selects
its targets with a pure predicate over the stored record, so an
interrupted batch resumes with exactly the unfinished assets.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from storygraph.exceptions import MissingMasterError
from storygraph.export.timecode import DEFAULT_FPS, timebase
from storygraph.models import TERMINAL_JOB_STATES, ClipType, JobState, MediaAsset


class Phase(str, Enum):
    TECH_SPECS = "tech_specs"
    CATEGORIZATION = "categorization"
    WAVEFORM_SYNC = "waveform_sync"
    DEEP_ANALYSIS = "deep_analysis"

    @property
    def label(self) -> str:
        return PHASE_LABELS[self]


PHASE_LABELS = {
    Phase.TECH_SPECS: "Phase 0: Tech Specs",
    Phase.CATEGORIZATION: "Phase 1: Categorization",
    Phase.WAVEFORM_SYNC: "Phase 2: Waveform Sync",
    Phase.DEEP_ANALYSIS: "Phase 3: Deep Analysis",
}


def needs_tech_specs(asset: MediaAsset) -> bool:
    return asset.tech_metadata is None


def needs_categorization(asset: MediaAsset) -> bool:
    return asset.clip_type == ClipType.UNKNOWN


def is_satellite(asset: MediaAsset) -> bool:
    return asset.is_interview and asset.is_video


def is_master_candidate(asset: MediaAsset) -> bool:
    return asset.is_interview and asset.is_audio


def needs_deep_analysis(asset: MediaAsset) -> bool:
    return asset.job_state == JobState.LIGHT_COMPLETE and asset.clip_type != ClipType.UNKNOWN


def is_pending_job(asset: MediaAsset) -> bool:
    """True while a remote job is outstanding and may still be polled."""
    return asset.job_state not in TERMINAL_JOB_STATES and asset.job_state != JobState.NONE


PHASE_PREDICATES = {
    Phase.TECH_SPECS: needs_tech_specs,
    Phase.CATEGORIZATION: needs_categorization,
    Phase.WAVEFORM_SYNC: is_satellite,
    Phase.DEEP_ANALYSIS: needs_deep_analysis,
}


def eligible_assets(phase: Phase, assets: Iterable[MediaAsset]) -> list[MediaAsset]:
    predicate = PHASE_PREDICATES[phase]
    return [a for a in assets if predicate(a)]


def satellites(assets: Iterable[MediaAsset]) -> list[MediaAsset]:
    return [a for a in assets if is_satellite(a)]


def resolve_master(assets: Iterable[MediaAsset]) -> MediaAsset:
    """Return the single interview audio asset that anchors the timeline.

    Raises:
        MissingMasterError: If there is no candidate, or more than one
    """
    candidates = [a for a in assets if is_master_candidate(a)]
    if not candidates:
        raise MissingMasterError(
            "No master audio found (needs one audio asset categorized as interview)"
        )
    if len(candidates) > 1:
        names = ", ".join(a.filename for a in candidates)
        raise MissingMasterError(f"Ambiguous master audio, {len(candidates)} candidates: {names}")
    return candidates[0]


def timeline_frame_rate(assets: Iterable[MediaAsset], default: float = DEFAULT_FPS) -> int:
    """Timeline rate: the first video asset with technical metadata, as an integer timebase."""
    for asset in assets:
        if asset.is_video and asset.tech_metadata is not None:
            return timebase(asset.tech_metadata.frame_rate)
    return timebase(default)
