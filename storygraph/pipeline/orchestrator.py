"""
storygraph.pipeline.orchestrator - Phase batch sequencing.

Runs one analysis phase over the registry at a time. Targets are chosen by
the phase's eligibility predicate; within a batch, assets are processed
strictly in sequence. A failure on one asset is recorded on that asset
(job_state=error) and the batch moves on.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from storygraph.exceptions import ExportError, StorageError
from storygraph.export.xmeml import TimelineDocument, synthesize
from storygraph.io import write_text
from storygraph.models import ForensicStage, JobState, MediaAsset
from storygraph.pipeline.lease import PhaseLease
from storygraph.pipeline.phases import (
    Phase,
    eligible_assets,
    resolve_master,
    timeline_frame_rate,
)

logger = logging.getLogger("storygraph")


# A sync failure must not orphan a remote job or discard its results
KEEP_ON_SYNC_FAILURE = frozenset({JobState.IN_FLIGHT, JobState.COMPLETE})

SYNC_ERROR_PREFIX = f"{Phase.WAVEFORM_SYNC.label} Error:"


def is_failed_sync(asset: MediaAsset) -> bool:
    """True when the asset's error state was left by a failed waveform sync."""
    return asset.job_state == JobState.ERROR and (asset.analysis_content or "").startswith(
        SYNC_ERROR_PREFIX
    )


def _new_results() -> dict[str, Any]:
    return {
        "processed": 0,
        "failed": 0,
        "targets": 0,
        "errors": [],
    }


class Orchestrator:
    """Sequences the analysis phases over the asset registry."""

    def __init__(
        self,
        registry: Any,
        dispatcher: Any,
        config: Any,
        transcoder: Any = None,
        lease: PhaseLease | None = None,
    ) -> None:
        self.registry = registry
        self.dispatcher = dispatcher
        self.config = config
        self.transcoder = transcoder
        self.lease = lease or PhaseLease()

    def run_phase(self, phase: Phase, console=None) -> dict[str, Any]:
        """Run one phase batch under the exclusive lease.

        Args:
            phase: Phase to run
            console: Optional rich console for output

        Returns:
            Dict with batch summary (targets, processed, failed, errors)

        Raises:
            PhaseActiveError: If another phase is running
            MissingMasterError: Waveform sync without a resolvable master
            AuthError: Deep analysis without a credential
            StorageError: If the registry cannot be read
        """
        runners: dict[Phase, Callable[..., dict[str, Any]]] = {
            Phase.TECH_SPECS: self._run_tech_specs,
            Phase.CATEGORIZATION: self._run_categorization,
            Phase.WAVEFORM_SYNC: self._run_waveform_sync,
            Phase.DEEP_ANALYSIS: self._run_deep_analysis,
        }
        with self.lease.hold(phase.label):
            logger.info("%s started", phase.label)
            results = runners[phase](console)
            logger.info(
                "%s finished: %d processed, %d failed",
                phase.label,
                results["processed"],
                results["failed"],
            )
        return results

    def run_tech_specs(self, console=None) -> dict[str, Any]:
        return self.run_phase(Phase.TECH_SPECS, console)

    def run_categorization(self, console=None) -> dict[str, Any]:
        return self.run_phase(Phase.CATEGORIZATION, console)

    def run_waveform_sync(self, console=None) -> dict[str, Any]:
        return self.run_phase(Phase.WAVEFORM_SYNC, console)

    def run_deep_analysis(self, console=None) -> dict[str, Any]:
        return self.run_phase(Phase.DEEP_ANALYSIS, console)

    def _record_failure(
        self, phase: Phase, asset: MediaAsset, error: Exception, results: dict[str, Any]
    ) -> None:
        message = f"{phase.label} Error: {error}"
        logger.error("%s: %s", asset.filename, message)
        results["failed"] += 1
        results["errors"].append({"asset_id": asset.id, "error": str(error)})
        try:
            if phase == Phase.WAVEFORM_SYNC:
                current = self.registry.get(asset.id)
                if current is not None and current.job_state in KEEP_ON_SYNC_FAILURE:
                    logger.warning(
                        "Keeping %s job state for %s after sync failure",
                        current.job_state.value,
                        asset.filename,
                    )
                    return
            self.registry.patch(asset.id, job_state=JobState.ERROR, analysis_content=message)
        except StorageError as e:
            logger.error("Could not record failure on %s: %s", asset.id, e)

    def _run_batch(
        self,
        phase: Phase,
        targets: list[MediaAsset],
        step: Callable[[MediaAsset], str],
        console=None,
    ) -> dict[str, Any]:
        results = _new_results()
        results["targets"] = len(targets)

        if console:
            console.print(f"[cyan]{phase.label}[/cyan] [dim]({len(targets)} target(s))[/dim]")

        for i, asset in enumerate(targets, 1):
            if console:
                console.print(f"[dim]  [{i}/{len(targets)}] {asset.filename}[/dim]")
            try:
                summary = step(asset)
            except Exception as e:
                self._record_failure(phase, asset, e, results)
                if console:
                    console.print(f"[red]    ✗ {e}[/red]")
                continue
            results["processed"] += 1
            if console:
                console.print(f"[green]    ✓[/green] {summary}")

        return results

    # Phase 0

    def _run_tech_specs(self, console=None) -> dict[str, Any]:
        targets = eligible_assets(Phase.TECH_SPECS, self.registry.get_all())

        def step(asset: MediaAsset) -> str:
            changes = self.dispatcher.extract_tech_specs(asset)
            self.registry.patch(asset.id, **changes)
            return changes["analysis_content"]

        return self._run_batch(Phase.TECH_SPECS, targets, step, console)

    # Phase 1

    def _run_categorization(self, console=None) -> dict[str, Any]:
        targets = eligible_assets(Phase.CATEGORIZATION, self.registry.get_all())

        def step(asset: MediaAsset) -> str:
            changes, _ = self.dispatcher.categorize(asset)
            stored = self.registry.patch(asset.id, **changes)
            if stored.is_interview and stored.is_video:
                self._trigger_transcode(stored)
            return changes["analysis_content"]

        return self._run_batch(Phase.CATEGORIZATION, targets, step, console)

    def _trigger_transcode(self, asset: MediaAsset) -> None:
        if self.transcoder is None:
            return
        try:
            self.transcoder.trigger(asset.filename)
        except RuntimeError as e:
            logger.warning("Transcode trigger not dispatched for %s: %s", asset.filename, e)

    # Phase 2

    def _run_waveform_sync(self, console=None) -> dict[str, Any]:
        assets = self.registry.get_all()
        master = resolve_master(assets)
        fps = timeline_frame_rate(assets)
        targets = eligible_assets(Phase.WAVEFORM_SYNC, assets)

        if console:
            console.print(f"[dim]  Master (spine): {master.filename} @ {fps}fps timeline[/dim]")

        def step(asset: MediaAsset) -> str:
            offset = self.dispatcher.compute_offset(master, asset, fps)
            changes: dict[str, Any] = {
                "sync_offset_frames": offset,
                "last_stage": ForensicStage.SYNC,
            }
            current = self.registry.get(asset.id)
            if current is not None and is_failed_sync(current):
                changes["job_state"] = JobState.LIGHT_COMPLETE
                changes["analysis_content"] = f"Synced at {offset:+d} frames"
            self.registry.patch(asset.id, **changes)
            return f"{offset:+d} frames"

        return self._run_batch(Phase.WAVEFORM_SYNC, targets, step, console)

    # Phase 3

    def _run_deep_analysis(self, console=None) -> dict[str, Any]:
        self.dispatcher.ensure_authenticated()
        targets = eligible_assets(Phase.DEEP_ANALYSIS, self.registry.get_all())

        def step(asset: MediaAsset) -> str:
            changes = self.dispatcher.start_deep_analysis(asset)
            self.registry.patch(asset.id, **changes)
            return f"job {changes['job_id']}"

        return self._run_batch(Phase.DEEP_ANALYSIS, targets, step, console)

    # Export

    def synthesize_timeline(self, sequence_name: str | None = None) -> TimelineDocument:
        """Synthesize the timeline, requiring at least one synchronized angle.

        Raises:
            ExportError: If no asset carries a non-zero sync offset
            MissingMasterError: If the master audio cannot be resolved
        """
        assets = self.registry.get_all()
        if not any(a.sync_offset_frames != 0 for a in assets):
            raise ExportError("No synchronized angles (all offsets are zero). Run sync first.")
        return synthesize(
            assets,
            sequence_name or self.config.sequence_name,
            media_root=self.config.media_root,
        )

    def export_timeline(self, output_path: Path, sequence_name: str | None = None) -> TimelineDocument:
        """Synthesize the timeline and write it as a single XML file."""
        document = self.synthesize_timeline(sequence_name)
        try:
            write_text(output_path, document.to_xml())
        except OSError as e:
            raise ExportError(f"Failed to write {output_path}: {e}") from e
        logger.info("Timeline written to %s", output_path)
        return document
