"""
storygraph.services.dispatcher - Forensic analysis dispatcher.

Issues phase-specific requests to the remote analysis services and
normalizes their responses into registry field updates. Failures are
raised; recording them on the asset is the orchestrator's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from storygraph.exceptions import AuthError, RemoteServiceError
from storygraph.export.timecode import rescale_frames
from storygraph.models import (
    ClipType,
    ForensicStage,
    JobState,
    MediaAsset,
    TechnicalMetadata,
)

logger = logging.getLogger("storygraph")

TRANSCRIBE_FEATURES = ["SPEECH_TRANSCRIPTION"]
DESCRIBE_FEATURES = ["LABEL_DETECTION", "SHOT_CHANGE_DETECTION"]


@dataclass
class TriageResult:
    """Outcome of snippet-based categorization."""

    category: ClipType
    confidence: float
    window_seconds: int
    attempts: int

    @property
    def retried(self) -> bool:
        return self.attempts > 1

    def summary(self) -> str:
        label = "Interview" if self.category == ClipType.INTERVIEW else "B-Roll"
        return (
            f"Snippet Triage ({self.window_seconds}s): {label} "
            f"(Conf: {round(self.confidence * 100)}%)"
        )


@dataclass
class JobStatus:
    """Status of a long-running analysis job."""

    done: bool
    content: str | None = None
    error: str | None = None


def _parse_confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    return min(1.0, max(0.0, confidence))


def format_transcription(annotation_results: list[dict[str, Any]]) -> str:
    """Format speech transcription results as "[start] transcript" paragraphs."""
    transcriptions = (annotation_results or [{}])[0].get("speechTranscriptions") or []
    if not transcriptions:
        return "No speech detected."
    paragraphs = []
    for transcription in transcriptions:
        alternatives = transcription.get("alternatives") or [{}]
        alt = alternatives[0]
        words = alt.get("words") or [{}]
        start = words[0].get("startTime", "0s")
        paragraphs.append(f"[{start}] {alt.get('transcript', '')}")
    return "\n\n".join(paragraphs)


def format_labels(annotation_results: list[dict[str, Any]]) -> str:
    labels = (annotation_results or [{}])[0].get("segmentLabelAnnotations") or []
    names = [l.get("entity", {}).get("description", "") for l in labels]
    names = [n for n in names if n]
    return f"Visual Labels: {', '.join(names) if names else 'None'}"


class ForensicDispatcher:
    """Calls the remote services for each analysis phase."""

    def __init__(self, client: Any, config: Any) -> None:
        self.client = client
        self.config = config

    @property
    def services(self) -> Any:
        return self.config.services

    def ensure_authenticated(self) -> None:
        """Raise AuthError unless the client carries a credential."""
        if not getattr(self.client, "access_token", None):
            raise AuthError("No access token configured. Set STORYGRAPH_ACCESS_TOKEN.")

    # Phase 0

    def extract_tech_specs(self, asset: MediaAsset) -> dict[str, Any]:
        """Fetch technical metadata for an asset.

        Returns:
            Registry field updates (tech_metadata, stage, job state)

        Raises:
            RemoteServiceError: If the extractor fails
        """
        data = self.client.post(
            self.services.metadata_url,
            "metadata-extractor",
            {"filename": asset.filename},
        )
        raw = data.get("tech_metadata") or data
        if not isinstance(raw, dict):
            raise RemoteServiceError("metadata-extractor", "tech_metadata is not an object")
        metadata = TechnicalMetadata.from_service(raw)

        return {
            "tech_metadata": metadata,
            "analysis_content": (
                f"SMPTE TC: {metadata.start_timecode} | FPS: {metadata.frame_rate:g} "
                f"| Frames: {metadata.total_frames}"
            ),
            "last_stage": ForensicStage.TECH,
            "job_state": JobState.COMPLETE,
        }

    # Phase 1

    def _triage_once(self, asset: MediaAsset, window_seconds: int) -> dict[str, Any]:
        tech_ms = asset.tech_metadata.duration_ms if asset.tech_metadata else 0
        duration_ms = tech_ms or asset.duration_ms
        logger.info("Snippet triage (%ds): %s", window_seconds, asset.filename)
        return self.client.post(
            self.services.triage_url,
            "categorization-triage",
            {
                "filename": asset.filename,
                "duration_ms": duration_ms,
                "duration_limit": window_seconds,
            },
        )

    def triage(self, asset: MediaAsset) -> TriageResult:
        """Classify an asset as interview or b-roll.

        A first-pass confidence below the threshold triggers exactly one
        retry on the wider window; the second result is final.
        """
        window = self.config.triage_window_seconds
        response = self._triage_once(asset, window)
        attempts = 1
        confidence = _parse_confidence(response.get("confidence"))

        if confidence < self.config.triage_confidence_threshold:
            logger.warning(
                "Low confidence (%.2f) for %s, retrying with %ds snippet",
                confidence,
                asset.filename,
                self.config.triage_retry_window_seconds,
            )
            window = self.config.triage_retry_window_seconds
            response = self._triage_once(asset, window)
            attempts = 2
            confidence = _parse_confidence(response.get("confidence"))

        category = ClipType.INTERVIEW if response.get("category") == "interview" else ClipType.B_ROLL
        return TriageResult(
            category=category,
            confidence=confidence,
            window_seconds=window,
            attempts=attempts,
        )

    def categorize(self, asset: MediaAsset) -> tuple[dict[str, Any], TriageResult]:
        """Run triage and return registry updates alongside the raw result."""
        result = self.triage(asset)
        changes = {
            "clip_type": result.category,
            "analysis_content": result.summary(),
            "last_stage": ForensicStage.LIGHT,
            "job_state": JobState.LIGHT_COMPLETE,
        }
        return changes, result

    # Phase 2

    def compute_offset(self, master: MediaAsset, satellite: MediaAsset, timeline_fps: float) -> int:
        """Ask the cross-correlation service for a satellite's offset.

        The stored unit is timeline-fps frames. When the service is
        configured as reporting in another unit (sync_offset_fps), the value
        is rescaled here.

        Raises:
            RemoteServiceError: If the service fails or omits the offset
        """
        data = self.client.post(
            self.services.sync_url,
            "hybrid-sync",
            {
                "master": master.filename,
                "sample": satellite.filename,
                "bucket": self.config.bucket,
                "start_offset": self.config.sync_start_offset,
                "duration_limit": self.config.sync_window_seconds,
            },
        )
        raw = data.get("offset_frames", data.get("hybrid_offset_frames"))
        if raw is None:
            raise RemoteServiceError("hybrid-sync", "Response missing offset_frames")
        try:
            offset = int(round(float(raw)))
        except (TypeError, ValueError) as e:
            raise RemoteServiceError("hybrid-sync", f"Malformed offset {raw!r}") from e

        if self.config.sync_offset_fps:
            offset = rescale_frames(offset, self.config.sync_offset_fps, timeline_fps)
        return offset

    # Phase 3

    def start_deep_analysis(self, asset: MediaAsset) -> dict[str, Any]:
        """Submit a long-running transcription or visual-description job.

        Raises:
            AuthError: If no access token is configured
            RemoteServiceError: If the job cannot be submitted
        """
        transcribe = asset.is_interview
        if transcribe:
            features = TRANSCRIBE_FEATURES
            context = {
                "speechTranscriptionConfig": {
                    "languageCode": self.config.transcription_language,
                    "enableAutomaticPunctuation": True,
                }
            }
        else:
            features = DESCRIBE_FEATURES
            context = {"labelDetectionConfig": {"labelDetectionMode": "SHOT_MODE"}}

        data = self.client.post(
            f"{self.services.analysis_url.rstrip('/')}/videos:annotate",
            "video-analysis",
            {
                "inputUri": f"gs://{self.config.bucket}/{asset.filename}",
                "features": features,
                "videoContext": context,
            },
            authenticated=True,
        )
        job_id = data.get("name")
        if not job_id:
            raise RemoteServiceError("video-analysis", "Response missing job name")

        return {
            "job_state": JobState.IN_FLIGHT,
            "job_id": job_id,
            "last_stage": ForensicStage.HEAVY,
            "analysis_content": (
                "Transcription in progress..."
                if transcribe
                else "Deep visual analysis in progress..."
            ),
        }

    # Polling

    def check_job(self, job_id: str) -> JobStatus:
        """Fetch the status of a long-running job."""
        data = self.client.get(
            f"{self.services.analysis_url.rstrip('/')}/{job_id}",
            "video-analysis",
            authenticated=True,
        )
        if not data.get("done"):
            return JobStatus(done=False)

        error = data.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            return JobStatus(done=True, error=message or "Analysis failed")

        results = (data.get("response") or {}).get("annotationResults") or []
        if results and results[0].get("speechTranscriptions"):
            return JobStatus(done=True, content=format_transcription(results))
        return JobStatus(done=True, content=format_labels(results))
