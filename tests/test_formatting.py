"""
Tests for the human-readable formatting helpers.
"""

import pytest

from debrid_dl.utils.formatting import format_progress, format_size, redact


@pytest.mark.parametrize(
    "size,expected",
    [(0, "0 B"), (512, "512.0 B"), (1536, "1.5 KB"), (48 * 1024**2, "48.0 MB")],
)
def test_format_size(size, expected):
    assert format_size(size) == expected


def test_progress_with_known_total():
    assert format_progress(12 * 1024**2, 48 * 1024**2) == "12.0 MB / 48.0 MB (25%)"


def test_progress_without_total_shows_bytes_only():
    assert format_progress(2048, None) == "2.0 KB"


def test_progress_never_exceeds_100_percent():
    assert format_progress(2000, 1000).endswith("(100%)")


def test_redact_keeps_tail_only():
    assert redact("abcdef123456") == "********3456"
    assert redact("abc") == "***"
    assert redact("") == ""
