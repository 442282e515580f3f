"""
Utilities for choosing destination paths and checking save directories.
"""

import os
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import unquote, urlparse

from pathvalidate import sanitize_filename

from debrid_dl.exceptions import DirectoryNotWritableError

FALLBACK_FILENAME = "download.bin"


def filename_from_url(url: Optional[str]) -> str:
    """Returns the unquoted last path segment of a URL, or an empty string."""
    if not url:
        return ""
    path = urlparse(url).path
    return unquote(path.rstrip("/").rsplit("/", 1)[-1])


def choose_filename(*candidates: Optional[str]) -> str:
    """
    Picks the first usable file name from the candidates, sanitized for the
    local platform.
    """
    for candidate in candidates:
        if candidate:
            name = sanitize_filename(candidate, platform="auto").strip()
            if name and name not in (".", ".."):
                return name
    return FALLBACK_FILENAME


def unique_destination(
    directory: str, filename: str, claimed: Iterable[str] = ()
) -> str:
    """
    Joins directory and filename, adding a ' (n)' suffix if the path already
    exists on disk or is claimed by another in-flight download.
    """
    claimed = set(claimed)
    candidate = Path(directory) / filename
    stem, suffix = candidate.stem, candidate.suffix
    n = 1
    while str(candidate) in claimed or candidate.exists():
        candidate = candidate.with_name(f"{stem} ({n}){suffix}")
        n += 1
    return str(candidate)


def check_writable_dir(directory: str) -> None:
    """
    Ensures the directory exists and can be written by this process.

    Raises:
        DirectoryNotWritableError: If it is missing, not a directory, or
        not writable.
    """
    if not os.path.exists(directory):
        raise DirectoryNotWritableError(directory, "missing")
    if not os.path.isdir(directory):
        raise DirectoryNotWritableError(directory, "not a directory")
    if not os.access(directory, os.W_OK | os.X_OK):
        raise DirectoryNotWritableError(directory)
