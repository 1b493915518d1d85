"""Exception types shared by the storage, extraction and pipeline layers.

Only `StorageError` (and bad caller input via `InvalidFilenameError`) is
terminal for a request. `ExtractorError` is always caught by the pipeline and
downgraded to "no structured records". A missing or malformed metadata block
is not an exception at all; the locator returns None.
"""
from __future__ import annotations

from typing import Optional


class StorageError(RuntimeError):
    """An object-store operation (list/stat/read/delete/sign) failed."""

    def __init__(
        self, message: str, *, key: Optional[str] = None, cause: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.key = key
        self.cause = cause


class ExtractorError(RuntimeError):
    """The structured-data extractor could not produce records."""


class InvalidFilenameError(ValueError):
    """A caller supplied a name that is not a plain file basename."""


__all__ = ["ExtractorError", "InvalidFilenameError", "StorageError"]
