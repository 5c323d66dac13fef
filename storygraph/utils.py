"""
storygraph.utils - Shared utility functions.

Display formatting used by the CLI tables.
"""

from __future__ import annotations


def format_duration(seconds: float) -> str:
    """Format seconds as HH:MM:SS or MM:SS.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string (HH:MM:SS if >= 1 hour, otherwise MM:SS)
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_size(size: float) -> str:
    """Format a byte count in human-readable form."""
    if size <= 0:
        return "-"
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def format_offset(frames: int) -> str:
    """Signed frame offset, e.g. "+48f" or "-12f"; zero renders as "0"."""
    if frames == 0:
        return "0"
    return f"{frames:+d}f"
