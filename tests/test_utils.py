"""Tests for atomic writes and formatting helpers."""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from transbatch.utils import atomic_write_bytes, atomic_write_text, format_iso_date, humanize_size, utc_now


class TestAtomicWrites:
    """Test atomic write operations."""

    def test_atomic_write_basic(self, tmp_path):
        target = tmp_path / "test.txt"

        atomic_write_text(target, "line one\nline two\n")

        assert target.read_text() == "line one\nline two\n"

    def test_atomic_write_overwrites(self, tmp_path):
        target = tmp_path / "out.png"
        target.write_bytes(b"old")

        atomic_write_bytes(target, b"new")

        assert target.read_bytes() == b"new"

    def test_atomic_write_creates_directories(self, tmp_path):
        target = tmp_path / "deep" / "nested" / "file.png"

        atomic_write_bytes(target, b"\x00\x01")

        assert target.read_bytes() == b"\x00\x01"

    def test_no_partial_files_on_error(self, tmp_path):
        target = tmp_path / "test.txt"
        target.write_text("original")

        with patch("os.replace", side_effect=OSError("Simulated rename failure")):
            with pytest.raises(OSError):
                atomic_write_text(target, "replacement")

        assert target.read_text() == "original"
        assert [p.name for p in tmp_path.iterdir()] == ["test.txt"]


class TestFormatting:

    def test_humanize_size(self):
        assert humanize_size(512) == "512.0 B"
        assert humanize_size(15 * 1024 * 1024) == "15.0 MB"

    def test_format_iso_date(self):
        value = datetime(2025, 8, 26, 2, 51, 17, 317839, tzinfo=timezone.utc)
        assert format_iso_date(value) == "2025-08-26 02:51:17"

    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo is not None
