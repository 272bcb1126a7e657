"""Shared utility functions."""

from __future__ import annotations

import ntpath
import posixpath
from datetime import datetime, timezone

ILLEGAL_FILENAME_CHARS = '<>:"/\\|?*'


def format_size(size_bytes: int) -> str:
    """Format byte count to human-readable string."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.2f} GB"


def sanitize_filename(name: str) -> str:
    """Remove or replace illegal filename characters."""
    for ch in ILLEGAL_FILENAME_CHARS:
        name = name.replace(ch, "_")
    name = name.replace("\n", " ").replace("\r", "").strip()
    while "__" in name:
        name = name.replace("__", "_")
    return name.strip(". ")


def path_module(path: str):
    """
    Pick the path flavour a recorded path was written in.

    Backup headers record paths as the source engine saw them, which is often
    a Windows host, independent of where the planner runs.
    """
    if "\\" in path or (len(path) >= 2 and path[1] == ":"):
        return ntpath
    return posixpath


def split_file_path(path: str) -> tuple[str, str, str]:
    """Split a recorded path into (directory, stem, extension)."""
    mod = path_module(path)
    directory, name = mod.split(path)
    stem, ext = mod.splitext(name)
    return directory, stem, ext


def join_path(directory: str, *parts: str) -> str:
    """Join using the flavour of ``directory``."""
    return path_module(directory).join(directory, *parts)


def path_key(path: str) -> str:
    """Normalized form used to compare target paths for collisions."""
    return path.replace("\\", "/").rstrip("/").casefold()


def normalize_time(value: datetime | None) -> datetime | None:
    """
    Bring a timestamp to the planner's convention: naive, in UTC when known.

    Aware values are converted to UTC and stripped of their offset; naive
    values are kept as they are.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
