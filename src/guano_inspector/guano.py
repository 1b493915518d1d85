"""Locate and decode a GUANO metadata block inside a trailing byte window.

Field recorders append GUANO metadata as the last RIFF chunk of a WAV file::

    ... b"guan" <u32 LE length> b"GUANO|Version: 1.0|Make: ...|..."

The chunk length sits in the four bytes immediately before the `GUANO`
keyword and covers the keyword plus the payload. Because the block lives near
the end of the file only a trailing window is needed, and only the rightmost
keyword match is structurally meaningful (earlier matches can occur by chance
inside sample data).

Detection rules:
    - Anchor: last occurrence of b"GUANO" in the window
    - Length prefix: unsigned 32-bit little-endian at anchor - 4
    - Bounds: 0 < length <= bytes remaining from the anchor to window end
    - Decode: keep ASCII 32..126 plus TAB/LF/CR, drop everything else, trim

Any failed rule yields None. The format offers no way to tell an absent block
from a corrupt one, so neither is an exception. Callers wanting to know which
rule failed pass an `on_reject(reason, details)` callback.

Public Functions:
    locate: find and decode the block
    decode_printable: the byte filter used for decoding
    parse_fields: split decoded text into `Key: Value` pairs
"""
from __future__ import annotations

import logging
import re
import struct
from typing import Callable, Dict, Optional, Union

from .models.files import ByteWindow, MetadataBlock

__all__ = [
    "ANCHOR",
    "LENGTH_PREFIX_SIZE",
    "RejectCallback",
    "decode_printable",
    "locate",
    "parse_fields",
]

logger = logging.getLogger(__name__)

ANCHOR = b"GUANO"
LENGTH_PREFIX_SIZE = 4

REJECT_ANCHOR_MISSING = "anchor_missing"
REJECT_PREFIX_TRUNCATED = "prefix_truncated"
REJECT_LENGTH_ZERO = "length_zero"
REJECT_LENGTH_EXCEEDS_WINDOW = "length_exceeds_window"

RejectCallback = Callable[[str, Dict[str, int]], None]

_LENGTH = struct.Struct("<I")
_PRINTABLE = frozenset(range(32, 127)) | {9, 10, 13}
_NON_PRINTABLE = bytes(b for b in range(256) if b not in _PRINTABLE)
_FIELD_SPLIT_RE = re.compile(r"[|\r\n]+")


def decode_printable(raw: bytes) -> str:
    """Drop every byte outside the printable set and trim the result."""
    return raw.translate(None, _NON_PRINTABLE).decode("ascii").strip()


def _reject(on_reject: Optional[RejectCallback], reason: str, **details: int) -> None:
    logger.debug("guano locate rejected reason=%s details=%s", reason, details)
    if on_reject is not None:
        on_reject(reason, details)


def locate(
    window: Union[ByteWindow, bytes],
    *,
    on_reject: Optional[RejectCallback] = None,
) -> Optional[MetadataBlock]:
    """Return the GUANO block carried by `window`, or None.

    Args:
        window: Trailing bytes of the file (a bare `bytes` value is treated as
            a window starting at offset 0).
        on_reject: Optional diagnostic callback receiving the rejection reason
            and the offsets involved. It has no effect on the result.

    Returns:
        The decoded `MetadataBlock`, or None when no valid block is present.
    """
    if not isinstance(window, ByteWindow):
        window = ByteWindow(bytes(window))
    buf = window.data

    anchor_index = buf.rfind(ANCHOR)
    if anchor_index < 0:
        _reject(on_reject, REJECT_ANCHOR_MISSING, window_length=len(buf))
        return None

    length_offset = anchor_index - LENGTH_PREFIX_SIZE
    if length_offset < 0:
        _reject(on_reject, REJECT_PREFIX_TRUNCATED, anchor_index=anchor_index)
        return None

    (declared,) = _LENGTH.unpack_from(buf, length_offset)
    remaining = len(buf) - anchor_index
    if declared == 0:
        _reject(on_reject, REJECT_LENGTH_ZERO, anchor_index=anchor_index)
        return None
    if declared > remaining:
        _reject(
            on_reject,
            REJECT_LENGTH_EXCEEDS_WINDOW,
            anchor_index=anchor_index,
            declared=declared,
            remaining=remaining,
        )
        return None

    raw = buf[anchor_index : anchor_index + declared]
    return MetadataBlock(
        raw_bytes=raw,
        text=decode_printable(raw),
        length_declared=declared,
        anchor_offset=window.offset_in_file + anchor_index,
    )


def parse_fields(text: str) -> Dict[str, str]:
    """Split decoded GUANO text into a `{key: value}` mapping.

    Fields are separated by `|` or line breaks and split on their first colon.
    Segments without a colon (the leading `GUANO` marker) are skipped; a key
    seen twice keeps its last value.
    """
    fields: Dict[str, str] = {}
    for segment in _FIELD_SPLIT_RE.split(text):
        key, sep, value = segment.partition(":")
        key = key.strip()
        if not sep or not key:
            continue
        fields[key] = value.strip()
    return fields
