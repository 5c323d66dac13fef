"""Tests for storygraph.utils module."""

from __future__ import annotations

from storygraph.utils import format_duration, format_offset, format_size


class TestFormatDuration:
    def test_seconds_only(self) -> None:
        assert format_duration(45.0) == "0:45"

    def test_minutes_and_seconds(self) -> None:
        assert format_duration(125.0) == "2:05"

    def test_hours_minutes_seconds(self) -> None:
        assert format_duration(3725.0) == "1:02:05"

    def test_float_seconds(self) -> None:
        assert format_duration(90.7) == "1:30"


class TestFormatSize:
    def test_bytes(self) -> None:
        assert format_size(512) == "512.0 B"

    def test_megabytes(self) -> None:
        assert format_size(5 * 1024 * 1024) == "5.0 MB"

    def test_unknown_size(self) -> None:
        assert format_size(0) == "-"


class TestFormatOffset:
    def test_signed(self) -> None:
        assert format_offset(48) == "+48f"
        assert format_offset(-12) == "-12f"

    def test_zero(self) -> None:
        assert format_offset(0) == "0"
