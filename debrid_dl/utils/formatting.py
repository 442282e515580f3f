"""
Helper functions for formatting data into human-readable strings.
"""

from typing import Optional


def format_size(bytes_size: int) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while bytes_size >= 1024 and i < len(units) - 1:
        bytes_size /= 1024
        i += 1
    return f"{bytes_size:.1f} {units[i]}"


def format_progress(bytes_written: int, total_size: Optional[int]) -> str:
    """Formats download progress, e.g. '12.0 MB / 48.0 MB (25%)' or '12.0 MB'."""
    if not total_size:
        return format_size(bytes_written)
    percent = min(100, int(bytes_written * 100 / total_size))
    return f"{format_size(bytes_written)} / {format_size(total_size)} ({percent}%)"


def redact(secret: str, keep: int = 4) -> str:
    """Masks all but the last few characters of a secret for display."""
    if not secret:
        return ""
    if len(secret) <= keep:
        return "*" * len(secret)
    return "*" * (len(secret) - keep) + secret[-keep:]
