"""Request-level orchestration: inspect, list, delete and sign stored files.

`process_file` runs one inspection:

1. Sanitize the name and classify it by extension.
2. Resolve the file size (caller supplied, or `store.stat`).
3. Fetch the trailing window (binary) or the whole object (text).
4. Binary: locate the GUANO block. Text: decode UTF-8 verbatim.
5. Hand non-empty text to the optional extractor. Extractor failures are
   logged and downgraded to "no records".

Only storage failures (and invalid names) are terminal. The `*_file`
payload helpers convert them to `{"error": ...}` dicts for callers that
render results directly.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .classification import classify, decode_text, file_extension, sanitize_filename
from .config import Settings
from .errors import InvalidFilenameError, StorageError
from .extractor import StructuredDataExtractor
from .fetcher import fetch_window
from .guano import RejectCallback, locate
from .models.files import FileClassification, ProcessingResult, StoredFile
from .models.records import GuanoRecord
from .storage import ObjectStore

logger = logging.getLogger(__name__)

FIELD_DELIMITER = "|"


def normalize_display_text(text: str) -> str:
    """Put each pipe-delimited metadata field on its own line."""
    return text.replace(FIELD_DELIMITER, "\n")


async def _extract(
    extractor: Optional[StructuredDataExtractor], text: str, name: str
) -> Optional[List[GuanoRecord]]:
    if extractor is None or not text:
        return None
    try:
        return await extractor.extract(text, name)
    except Exception as e:
        logger.warning("structured extraction failed file=%s err=%s", name, e)
        return None


async def process_file(
    name: str,
    *,
    store: ObjectStore,
    settings: Settings,
    extractor: Optional[StructuredDataExtractor] = None,
    size: Optional[int] = None,
    on_reject: Optional[RejectCallback] = None,
) -> ProcessingResult:
    """Inspect one stored file.

    Args:
        name: Plain file name (no directories); the key is derived from
            `settings.STORAGE_PREFIX`.
        store: Object store adapter.
        settings: Application settings (window size, extension list, prefix).
        extractor: Optional structured-data extractor.
        size: File size when already known (e.g. from a listing); otherwise
            the store is asked.
        on_reject: Diagnostic callback forwarded to the locator.

    Raises:
        InvalidFilenameError: `name` is not a plain basename.
        StorageError: the object store could not stat or read the file.
    """
    name = sanitize_filename(name)
    key = settings.key_for(name)
    classification = classify(name, settings.BINARY_EXTENSIONS)
    if size is None:
        size = (await store.stat(key)).size

    window = await fetch_window(
        store, key, size, classification, window_bytes=settings.WINDOW_BYTES
    )

    if classification is FileClassification.BINARY:
        block = locate(window, on_reject=on_reject)
        if block is None:
            logger.info("no GUANO metadata located file=%s window=%s", name, window.length)
            return ProcessingResult(
                name=name,
                extension=file_extension(name),
                is_binary=True,
                metadata_found=False,
            )
        raw_text = block.text
        display_text = normalize_display_text(raw_text)
        logger.debug(
            "GUANO block located file=%s offset=%s declared=%s",
            name,
            block.anchor_offset,
            block.length_declared,
        )
    else:
        raw_text = decode_text(window.data)
        display_text = raw_text

    records = await _extract(extractor, raw_text, name)
    return ProcessingResult(
        name=name,
        extension=file_extension(name),
        is_binary=classification is FileClassification.BINARY,
        metadata_found=True,
        display_text=display_text,
        raw_metadata_text=raw_text,
        extracted_records=records,
    )


async def inspect_file(
    name: str,
    *,
    store: ObjectStore,
    settings: Settings,
    extractor: Optional[StructuredDataExtractor] = None,
    size: Optional[int] = None,
) -> Dict[str, Any]:
    """`process_file` in payload form: a result dict or `{"error": ...}`."""
    try:
        result = await process_file(
            name, store=store, settings=settings, extractor=extractor, size=size
        )
    except InvalidFilenameError as e:
        logger.error("inspect rejected file=%r err=%s", name, e)
        return {"error": str(e)}
    except StorageError as e:
        logger.error("inspect failed file=%s err=%s", name, e)
        return {"error": f"Failed to read file {name}: {e}"}
    return result.to_payload()


async def list_files(store: ObjectStore, settings: Settings) -> List[StoredFile]:
    """List uploaded files, newest first (undated entries last)."""
    files = await store.list(settings.STORAGE_PREFIX)
    dated = sorted(
        (f for f in files if f.created_at is not None),
        key=lambda f: f.created_at,  # type: ignore[arg-type,return-value]
        reverse=True,
    )
    return dated + [f for f in files if f.created_at is None]


async def delete_file(name: str, *, store: ObjectStore, settings: Settings) -> Dict[str, Any]:
    try:
        name = sanitize_filename(name)
        await store.delete(settings.key_for(name))
    except (InvalidFilenameError, StorageError) as e:
        logger.error("delete failed file=%r err=%s", name, e)
        return {"error": f"Failed to delete file: {e}"}
    return {"success": True}


async def signed_url(
    name: str,
    *,
    store: ObjectStore,
    settings: Settings,
    mode: str = "read",
    ttl: Optional[int] = None,
) -> str:
    """Mint a signed URL for an uploaded file (raises on failure)."""
    name = sanitize_filename(name)
    lifetime = settings.SIGNED_URL_TTL_SECONDS if ttl is None else ttl
    return await store.signed_url(settings.key_for(name), lifetime, mode)


__all__ = [
    "delete_file",
    "inspect_file",
    "list_files",
    "normalize_display_text",
    "process_file",
    "signed_url",
]
