"""I/O utility functions for file names, extensions and scratch files."""

import re
import uuid
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import unquote, urlparse

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"})
VIDEO_EXTENSIONS = frozenset({".mp4", ".mov", ".avi", ".webm", ".mkv"})
DEFAULT_VIDEO_EXTENSION = ".mp4"

_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def sanitize_file_name(name: str) -> str:
    """
    Reduce a user supplied name to a bare, filesystem-safe file name.

    Args:
        name: Raw file name (may contain directories or reserved characters)

    Returns:
        File name without path components
    """
    name = name.strip().replace("\\", "/").split("/")[-1]
    name = _UNSAFE_CHARS.sub("_", name).strip()
    if not name.strip("."):
        return ""
    return name


def ensure_video_extension(name: str) -> str:
    """
    Make sure an output name ends in a supported video extension.

    "clip" -> "clip.mp4", "clip.mov" -> "clip.mov", "clip.txt" -> "clip.mp4"
    """
    path = Path(name)
    if path.suffix.lower() in VIDEO_EXTENSIONS:
        return name
    base = name[: -len(path.suffix)] if path.suffix else name
    return f"{base}{DEFAULT_VIDEO_EXTENSION}"


def generate_output_name() -> str:
    """Generate a unique default output file name."""
    return f"output_{uuid.uuid4()}{DEFAULT_VIDEO_EXTENSION}"


def normalize_output_name(name: Optional[str]) -> str:
    """
    Sanitize an output name and enforce a video extension.

    Empty or unusable names are replaced with a generated one.
    """
    if not name or not str(name).strip():
        return generate_output_name()
    cleaned = sanitize_file_name(str(name))
    if not cleaned:
        return generate_output_name()
    return ensure_video_extension(cleaned)


def guess_extension(reference: str, default: str) -> str:
    """
    Guess a file extension from the path part of a URL.

    Args:
        reference: Remote URL or bare identifier
        default: Extension returned when the path has no usable suffix

    Returns:
        Lowercased extension including the dot
    """
    suffix = Path(unquote(urlparse(reference).path)).suffix.lower()
    if suffix and 1 < len(suffix) <= 6 and suffix[1:].isalnum():
        return suffix
    return default


def remove_files(paths: Iterable[Optional[Path]]) -> int:
    """
    Delete files that exist, ignoring missing ones.

    Returns:
        Number of files deleted
    """
    removed = 0
    for path in paths:
        if path is not None and Path(path).is_file():
            Path(path).unlink()
            removed += 1
    return removed
