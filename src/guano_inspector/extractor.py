"""Structured-data extraction from decoded metadata text.

The pipeline treats extraction as optional: any exception raised here is
caught by the caller, logged, and reported as "no structured records".

Two extractors implement `StructuredDataExtractor`:

* `GuanoFieldExtractor` maps well-known GUANO keys onto a `GuanoRecord`
  locally and deterministically.
* `HttpExtractor` hands the text to a remote extraction service which
  replies with `{"data": [record, ...]}`.

Key mapping used by `GuanoFieldExtractor`:

    Original Filename   -> fileInformation.originalFilename
    Timestamp           -> fileInformation.recordingDateTime
    Length              -> fileInformation.recordingDurationSeconds
    Samplerate          -> fileInformation.sampleRateHz
    Make / Model        -> recorderDetails.make / model
    Serial              -> recorderDetails.serialNumber
    Firmware Version    -> recorderDetails.firmwareVersion
    Loc Position        -> locationEnvironmentalData.latitude, longitude ("lat lon")
    Temperature Int     -> locationEnvironmentalData.temperatureCelsius
    Audio settings      -> JSON array; gain -> recorderDetails.gainSetting,
                           trig * -> triggerSettings.*, rate -> sampleRateHz
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import httpx
from pydantic import ValidationError

from .config import Settings
from .errors import ExtractorError
from .guano import parse_fields
from .models.records import GuanoRecord

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")

_TRIGGER_KEYS = {
    "trig window": "windowSeconds",
    "trig max len": "maxLengthSeconds",
    "trig min freq": "minFrequencyHz",
    "trig max freq": "maxFrequencyHz",
    "trig min dur": "minDurationSeconds",
    "trig max dur": "maxDurationSeconds",
}


@runtime_checkable
class StructuredDataExtractor(Protocol):
    async def extract(self, text: str, filename: Optional[str] = None) -> Optional[List[GuanoRecord]]:
        ...


def _number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _NUMBER_RE.search(str(value))
    return float(match.group()) if match else None


def _text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _audio_settings(raw: Optional[str]) -> Dict[str, Any]:
    """Flatten the JSON array carried in the `Audio settings` field."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.debug("extract audio settings not JSON value=%r", raw[:200])
        return {}
    entries = parsed if isinstance(parsed, list) else [parsed]
    merged: Dict[str, Any] = {}
    for entry in entries:
        if isinstance(entry, dict):
            merged.update({str(k).strip().lower(): v for k, v in entry.items()})
    return merged


def normalize_records(records: List[GuanoRecord]) -> List[GuanoRecord]:
    """Apply recorder conventions: a max trigger duration of 0 means unused."""
    for record in records:
        if record.triggerSettings.maxDurationSeconds == 0:
            record.triggerSettings.maxDurationSeconds = None
    return records


def map_fields(fields: Dict[str, str]) -> GuanoRecord:
    """Build a record from parsed GUANO fields; unknown keys are ignored."""
    record = GuanoRecord()
    info = record.fileInformation
    info.originalFilename = _text(fields.get("Original Filename"))
    info.recordingDateTime = _text(fields.get("Timestamp"))
    info.recordingDurationSeconds = _number(fields.get("Length"))
    info.sampleRateHz = _number(fields.get("Samplerate"))

    recorder = record.recorderDetails
    recorder.make = _text(fields.get("Make"))
    recorder.model = _text(fields.get("Model"))
    recorder.serialNumber = _text(fields.get("Serial"))
    recorder.firmwareVersion = _text(fields.get("Firmware Version"))

    location = record.locationEnvironmentalData
    position = (fields.get("Loc Position") or "").split()
    if len(position) >= 2:
        location.latitude = _number(position[0])
        location.longitude = _number(position[1])
    location.temperatureCelsius = _number(fields.get("Temperature Int"))

    audio = _audio_settings(fields.get("Audio settings"))
    if "gain" in audio:
        recorder.gainSetting = _number(audio["gain"])
    if info.sampleRateHz is None and "rate" in audio:
        info.sampleRateHz = _number(audio["rate"])
    for source_key, attr in _TRIGGER_KEYS.items():
        if source_key in audio:
            setattr(record.triggerSettings, attr, _number(audio[source_key]))
    return record


class GuanoFieldExtractor:
    """Local extractor mapping GUANO `Key: Value` fields onto one record."""

    async def extract(self, text: str, filename: Optional[str] = None) -> Optional[List[GuanoRecord]]:
        fields = parse_fields(text)
        if not fields:
            return None
        record = map_fields(fields)
        if record.is_empty():
            logger.debug("extract no known fields filename=%s keys=%s", filename, list(fields)[:20])
            return None
        return normalize_records([record])


class HttpExtractor:
    """Remote extraction service client."""

    def __init__(
        self,
        url: str,
        *,
        api_key: str = "",
        timeout: int = 60,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not url:
            raise ExtractorError("EXTRACTOR_URL is empty; cannot reach extraction service")
        self.url = url
        self.timeout = timeout
        self._headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = client

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(self.url, json=payload, headers=self._headers)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.url, json=payload, headers=self._headers)

    async def extract(self, text: str, filename: Optional[str] = None) -> Optional[List[GuanoRecord]]:
        payload = {"fileContent": text, "filename": filename or ""}
        try:
            resp = await self._post(payload)
        except httpx.HTTPError as e:
            raise ExtractorError(f"extraction request failed: {e}") from e
        if resp.status_code >= 400:
            raise ExtractorError(
                f"extraction failed status={resp.status_code} body={resp.text[:300]}"
            )
        try:
            body = resp.json()
        except ValueError as e:
            raise ExtractorError(f"invalid extraction JSON: {e}") from e
        items = body.get("data") if isinstance(body, dict) else None
        if not items:
            return None
        if not isinstance(items, list):
            raise ExtractorError("extraction response 'data' is not a list")
        try:
            records = [GuanoRecord.model_validate(item) for item in items]
        except ValidationError as e:
            raise ExtractorError(f"extraction record validation failed: {e}") from e
        return normalize_records(records)


def build_extractor(settings: Settings) -> Optional[StructuredDataExtractor]:
    """Return the configured extractor, or None when extraction is disabled."""
    if not settings.ENABLE_EXTRACTION:
        return None
    if settings.EXTRACTOR_BACKEND == "fields":
        return GuanoFieldExtractor()
    if settings.EXTRACTOR_BACKEND == "http":
        return HttpExtractor(
            settings.EXTRACTOR_URL,
            api_key=settings.EXTRACTOR_API_KEY,
            timeout=settings.EXTRACTOR_TIMEOUT,
        )
    raise ExtractorError(f"unknown EXTRACTOR_BACKEND {settings.EXTRACTOR_BACKEND!r}")


__all__ = [
    "GuanoFieldExtractor",
    "HttpExtractor",
    "StructuredDataExtractor",
    "build_extractor",
    "map_fields",
    "normalize_records",
]
