"""
storygraph.pipeline - Phase orchestration.

Runs the analysis phases one batch at a time under an exclusive lease
and reconciles long-running remote jobs in the background:
- Phase 0: technical metadata extraction
- Phase 1: snippet-based categorization
- Phase 2: waveform sync against the master audio
- Phase 3: deep analysis (transcription / visual labels)
"""

from __future__ import annotations
