"""File classification and filename handling.

Classification is derived purely from the lowercased extension. Binary files
are scanned for a trailing metadata block; everything else is read whole and
decoded as UTF-8.
"""
from __future__ import annotations

import posixpath
from typing import Iterable, Optional

from .config import DEFAULT_BINARY_EXTENSIONS
from .errors import InvalidFilenameError
from .models.files import FileClassification

BINARY_EXTENSIONS = frozenset(DEFAULT_BINARY_EXTENSIONS)


def file_extension(filename: str) -> str:
    """Return the lowercased extension including its dot, or "" if none.

    Dotfiles such as `.env` have no extension, matching `os.path.splitext`.
    """
    return posixpath.splitext(filename)[1].lower()


def classify(
    filename: str, binary_extensions: Optional[Iterable[str]] = None
) -> FileClassification:
    allowed = BINARY_EXTENSIONS if binary_extensions is None else frozenset(binary_extensions)
    ext = file_extension(filename).lstrip(".")
    if ext and ext in allowed:
        return FileClassification.BINARY
    return FileClassification.TEXT


def sanitize_filename(name: str) -> str:
    """Reject anything that is not a plain basename.

    Callers address uploaded files by name only; a name carrying directory
    components (either separator style) or a parent reference is refused.
    """
    if not name or not name.strip():
        raise InvalidFilenameError("Invalid filename.")
    base = posixpath.basename(name.replace("\\", "/"))
    if base != name or base in {".", ".."}:
        raise InvalidFilenameError("Invalid filename.")
    return base


def decode_text(data: bytes) -> str:
    """Decode a text file verbatim; invalid UTF-8 sequences become U+FFFD."""
    return data.decode("utf-8", errors="replace")


__all__ = [
    "BINARY_EXTENSIONS",
    "classify",
    "decode_text",
    "file_extension",
    "sanitize_filename",
]
