"""Chunk fetcher: read exactly the bytes the locator needs.

GUANO blocks are appended at the end of a recording, so for binary files only
the trailing `window_bytes` (1 MiB by default) are requested. Text files are
small and displayed whole, so they are always read from offset 0.

No retries happen here; retry policy belongs to the object-store adapter.
"""
from __future__ import annotations

import logging

from .config import DEFAULT_WINDOW_BYTES
from .errors import StorageError
from .models.files import ByteWindow, FileClassification
from .storage import ObjectStore

logger = logging.getLogger(__name__)


def window_start(
    file_size: int,
    classification: FileClassification,
    window_bytes: int = DEFAULT_WINDOW_BYTES,
) -> int:
    """Return the absolute offset the window starts at."""
    if file_size < 0:
        raise ValueError("file_size must be non-negative")
    if classification is FileClassification.TEXT:
        return 0
    window = min(file_size, window_bytes)
    return max(0, file_size - window)


async def fetch_window(
    store: ObjectStore,
    key: str,
    file_size: int,
    classification: FileClassification,
    *,
    window_bytes: int = DEFAULT_WINDOW_BYTES,
) -> ByteWindow:
    """Fetch the trailing window (binary) or the whole object (text).

    Raises:
        StorageError: the object store read failed; the original exception is
            available as `cause`.
    """
    start = window_start(file_size, classification, window_bytes)
    try:
        data = await store.read_range(key, start)
    except StorageError:
        raise
    except Exception as e:
        raise StorageError(f"read failed key={key}: {e}", key=key, cause=e) from e
    window = ByteWindow(data=data, offset_in_file=start)
    if not window.is_suffix_of(file_size):
        # object changed between stat and read
        logger.debug(
            "fetch size mismatch key=%s expected_size=%s window_end=%s",
            key,
            file_size,
            window.end_offset,
        )
    logger.debug(
        "fetched window key=%s class=%s start=%s length=%s",
        key,
        classification.value,
        start,
        window.length,
    )
    return window


__all__ = ["fetch_window", "window_start"]
