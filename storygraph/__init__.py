"""
StoryGraph - Forensic ingest pipeline for multicamera interview footage.

Registers media assets, drives them through remote analysis phases
(tech specs → categorization → waveform sync → deep analysis) and
synthesizes a frame-accurate multicam timeline for NLE import.
"""

__version__ = "0.1.0"
