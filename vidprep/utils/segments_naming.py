"""Utilities for generating canonical artifact base names and filenames."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

INVALID_WINDOWS_CHARS = {'<', '>', ':', '"', '/', '\\', '|', '?', '*'}
FALLBACK_BASE_NAME = 'video'
MAX_BASE_LENGTH = 180

__all__ = [
    'sanitize_base_name',
    'base_name_for',
    'processed_filename',
    'thumbnail_filename',
    'part_filename',
]


def sanitize_base_name(name: Optional[Union[str, Path]]) -> str:
    """
    Normalize potentially messy titles into filesystem-safe base names.

    - Replaces Windows-reserved characters and the Unicode division slash (⧸).
    - Drops control characters; keeps other printable text, including non-ASCII.
    - Trims leading/trailing whitespace and dots, enforcing a deterministic fallback.
    """
    text = str(name or '').strip()
    if not text:
        return FALLBACK_BASE_NAME

    safe_chars: list[str] = []
    for char in text:
        if char == '⧸' or char in INVALID_WINDOWS_CHARS:
            safe_chars.append('_')
        elif ord(char) < 32:
            continue
        else:
            safe_chars.append(char)

    sanitized = ''.join(safe_chars).strip().strip('. ')
    if not sanitized:
        sanitized = FALLBACK_BASE_NAME

    if len(sanitized) > MAX_BASE_LENGTH:
        sanitized = sanitized[:MAX_BASE_LENGTH].rstrip('. ')
        if not sanitized:
            sanitized = FALLBACK_BASE_NAME

    return sanitized


def base_name_for(file_name: Union[str, Path]) -> str:
    """Derive the sanitized base name from an original file name ('clip.mov' -> 'clip')."""
    return sanitize_base_name(Path(str(file_name)).stem)


def processed_filename(base_name: str, extension: str = '.mp4') -> str:
    return f"{base_name}_processed{extension}"


def thumbnail_filename(base_name: str) -> str:
    return f"{base_name}_thumbnail.jpg"


def part_filename(base_name: str, part_index: int, extension: str = '.mp4') -> str:
    """Construct '<base>_part<N><ext>' with a 1-based part index."""
    if part_index < 1:
        raise ValueError(f"part_index must be >= 1, got {part_index}")
    return f"{base_name}_part{part_index}{extension}"
