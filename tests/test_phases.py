"""Tests for storygraph.pipeline.phases and lease modules."""

from __future__ import annotations

import pytest
from conftest import make_asset, make_tech

from storygraph.exceptions import MissingMasterError, PhaseActiveError
from storygraph.models import ClipType, JobState, MediaCategory
from storygraph.pipeline.lease import PhaseLease
from storygraph.pipeline.phases import (
    Phase,
    eligible_assets,
    is_pending_job,
    resolve_master,
    satellites,
    timeline_frame_rate,
)


class TestEligibility:
    def test_tech_specs_targets_missing_metadata(self) -> None:
        assets = [make_asset("a.mov"), make_asset("b.mov", tech_metadata=make_tech())]
        assert [a.id for a in eligible_assets(Phase.TECH_SPECS, assets)] == ["a.mov"]

    def test_categorization_targets_unknown(self) -> None:
        assets = [
            make_asset("a.mov"),
            make_asset("b.mov", clip_type=ClipType.B_ROLL),
            make_asset("c.mov", clip_type=ClipType.INTERVIEW),
        ]
        assert [a.id for a in eligible_assets(Phase.CATEGORIZATION, assets)] == ["a.mov"]

    def test_waveform_sync_targets_interview_video(self, multicam_assets) -> None:
        targets = eligible_assets(Phase.WAVEFORM_SYNC, multicam_assets)
        assert [a.id for a in targets] == ["cams/camA.mov", "cams/camB.mov"]
        assert satellites(multicam_assets) == targets

    def test_deep_analysis_targets_light_complete(self) -> None:
        assets = [
            make_asset("a.mov", clip_type=ClipType.INTERVIEW, job_state=JobState.LIGHT_COMPLETE),
            make_asset("b.mov", job_state=JobState.LIGHT_COMPLETE),
            make_asset("c.mov", clip_type=ClipType.B_ROLL, job_state=JobState.COMPLETE),
        ]
        assert [a.id for a in eligible_assets(Phase.DEEP_ANALYSIS, assets)] == ["a.mov"]

    @pytest.mark.parametrize(
        "state",
        [JobState.NONE, JobState.LIGHT_COMPLETE, JobState.COMPLETE, JobState.ERROR],
    )
    def test_terminal_states_are_not_pending(self, state: JobState) -> None:
        assert not is_pending_job(make_asset("a.mov", job_state=state))

    def test_in_flight_is_pending(self) -> None:
        asset = make_asset("a.mov", job_state=JobState.IN_FLIGHT, job_id="jobs/1")
        assert is_pending_job(asset)

    def test_labels(self) -> None:
        assert Phase.TECH_SPECS.label == "Phase 0: Tech Specs"
        assert Phase.WAVEFORM_SYNC.label == "Phase 2: Waveform Sync"


class TestResolveMaster:
    def test_single_candidate(self, multicam_assets) -> None:
        assert resolve_master(multicam_assets).id == "audio/master.wav"

    def test_no_candidate(self) -> None:
        assets = [make_asset("a.wav", media_category=MediaCategory.AUDIO)]
        with pytest.raises(MissingMasterError, match="No master audio"):
            resolve_master(assets)

    def test_ambiguous_candidates(self, multicam_assets) -> None:
        extra = make_asset(
            "audio/boom.wav", media_category=MediaCategory.AUDIO, clip_type=ClipType.INTERVIEW
        )
        with pytest.raises(MissingMasterError, match="Ambiguous"):
            resolve_master([*multicam_assets, extra])


class TestTimelineFrameRate:
    def test_first_video_with_metadata(self) -> None:
        assets = [
            make_asset("a.wav", media_category=MediaCategory.AUDIO, tech_metadata=make_tech(fps=48)),
            make_asset("b.mov"),
            make_asset("c.mov", tech_metadata=make_tech(fps="23.976")),
            make_asset("d.mov", tech_metadata=make_tech(fps=30)),
        ]
        assert timeline_frame_rate(assets) == 24

    def test_default(self) -> None:
        assert timeline_frame_rate([make_asset("a.mov")]) == 25


class TestPhaseLease:
    def test_second_acquire_rejected(self) -> None:
        lease = PhaseLease()
        lease.acquire("Phase 0: Tech Specs")

        with pytest.raises(PhaseActiveError, match="Phase 0"):
            lease.acquire("Phase 1: Categorization")

        assert lease.holder == "Phase 0: Tech Specs"
        lease.release()
        assert not lease.active

    def test_released_after_error(self) -> None:
        lease = PhaseLease()

        with pytest.raises(RuntimeError):
            with lease.hold("Phase 2: Waveform Sync"):
                raise RuntimeError("boom")

        assert not lease.active
        with lease.hold("Phase 2: Waveform Sync"):
            assert lease.holder == "Phase 2: Waveform Sync"
