"""
storygraph.export - Timeline export.

Frame-accurate non-drop timecode math and the multicam timeline
synthesizer that emits XMEML (Final Cut Pro 7 XML) for DaVinci Resolve
and Premiere Pro.
"""

from __future__ import annotations
