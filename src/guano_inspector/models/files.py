"""Models describing stored files and the result of inspecting one.

`ByteWindow` and `MetadataBlock` are plain frozen dataclasses: they wrap raw
bytes and never cross a serialization boundary. `StoredFile` and
`ProcessingResult` are Pydantic models because they are returned to callers
(CLI JSON output, API payloads) in camelCase form.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from .records import GuanoRecord


class FileClassification(str, Enum):
    """Whether a file is scanned for a trailing metadata block or read as text."""

    BINARY = "binary"
    TEXT = "text"


@dataclass(frozen=True)
class ByteWindow:
    """An immutable suffix (or the whole) of a stored file."""

    data: bytes
    offset_in_file: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.data, bytes):
            # bytearray / memoryview callers get an immutable copy
            object.__setattr__(self, "data", bytes(self.data))
        if self.offset_in_file < 0:
            raise ValueError("offset_in_file must be non-negative")

    @property
    def length(self) -> int:
        return len(self.data)

    @property
    def end_offset(self) -> int:
        return self.offset_in_file + len(self.data)

    def is_suffix_of(self, file_size: int) -> bool:
        return self.end_offset == file_size


@dataclass(frozen=True)
class MetadataBlock:
    """A located GUANO block.

    `raw_bytes` starts at the anchor keyword and spans exactly
    `length_declared` bytes. `anchor_offset` is absolute within the original
    file, not the window.
    """

    raw_bytes: bytes
    text: str
    length_declared: int
    anchor_offset: int


class StoredFile(BaseModel):
    """A file listed from the object store."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    name: str
    key: str
    size: int
    created_at: Optional[datetime] = None

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Naive timestamps are taken as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class ProcessingResult(BaseModel):
    """Outcome of inspecting one file.

    `raw_metadata_text` keeps the metadata exactly as decoded (pipe delimited)
    for structured extraction; `display_text` is the presentation form.
    `raw_metadata_text` is None only for binary files with no locatable block,
    so the `rawMetadataText` payload key is `null` rather than a string there.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    name: str
    extension: str
    is_binary: bool
    metadata_found: bool
    display_text: str = ""
    raw_metadata_text: Optional[str] = None
    extracted_records: Optional[List[GuanoRecord]] = None

    def to_payload(self) -> Dict[str, Any]:
        """Return the camelCase dict handed to callers."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=False)


__all__ = [
    "ByteWindow",
    "FileClassification",
    "MetadataBlock",
    "ProcessingResult",
    "StoredFile",
]
