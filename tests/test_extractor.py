from __future__ import annotations

import json

import httpx
import pytest

from guano_inspector.errors import ExtractorError
from guano_inspector.extractor import (
    GuanoFieldExtractor,
    HttpExtractor,
    build_extractor,
    map_fields,
)
from guano_inspector.guano import parse_fields
from guano_inspector.models.records import GuanoRecord


@pytest.mark.asyncio
async def test_field_extractor_maps_sample(sample_guano):
    records = await GuanoFieldExtractor().extract(sample_guano, "SMU12345_20240501_211403.wav")
    assert records is not None and len(records) == 1
    r = records[0]
    assert r.fileInformation.originalFilename == "SMU12345_20240501_211403.wav"
    assert r.fileInformation.recordingDateTime == "2024-05-01T21:14:03-04:00"
    assert r.fileInformation.recordingDurationSeconds == 3.0
    assert r.fileInformation.sampleRateHz == 256000
    assert r.recorderDetails.make == "Wildlife Acoustics"
    assert r.recorderDetails.model == "Song Meter Mini Bat"
    assert r.recorderDetails.serialNumber == "SMU12345"
    assert r.recorderDetails.firmwareVersion == "4.6"
    assert r.recorderDetails.gainSetting == 12
    assert r.locationEnvironmentalData.latitude == 42.36
    assert r.locationEnvironmentalData.longitude == -71.06
    assert r.locationEnvironmentalData.temperatureCelsius == 18.5
    assert r.triggerSettings.windowSeconds == 3
    assert r.triggerSettings.maxLengthSeconds == 15
    assert r.triggerSettings.minFrequencyHz == 16000
    assert r.triggerSettings.maxFrequencyHz == 128000
    assert r.triggerSettings.minDurationSeconds == 1.5
    # 0 means unused on the recorder
    assert r.triggerSettings.maxDurationSeconds is None


@pytest.mark.asyncio
async def test_field_extractor_unknown_fields_yield_none():
    assert await GuanoFieldExtractor().extract("GUANO|Version: 1.0|Vendor X: 7") is None
    assert await GuanoFieldExtractor().extract("time,value\n1,2\n") is None


def test_partial_fields_leave_other_values_unset():
    record = map_fields(parse_fields("GUANO|Make: Titley|Loc Position: 51.5"))
    assert record.recorderDetails.make == "Titley"
    assert record.locationEnvironmentalData.latitude is None
    assert record.triggerSettings.is_empty()


def test_audio_settings_not_json_ignored():
    record = map_fields({"Audio settings": "gain=high", "Samplerate": "384 kHz"})
    assert record.recorderDetails.gainSetting is None
    assert record.fileInformation.sampleRateHz == 384


def test_audio_rate_used_when_samplerate_missing():
    record = map_fields({"Audio settings": '{"rate": 192000}'})
    assert record.fileInformation.sampleRateHz == 192000


def _extractor(handler) -> HttpExtractor:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpExtractor("https://extract.example.com/v1/guano", api_key="k", client=client)


@pytest.mark.asyncio
async def test_http_extractor_posts_text_and_validates():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "data": [
                    {
                        "recorderDetails": {"make": "Wildlife Acoustics"},
                        "triggerSettings": {"maxDurationSeconds": 0, "minDurationSeconds": 2},
                    }
                ]
            },
        )

    records = await _extractor(handler).extract("GUANO|Make: Wildlife Acoustics", "a.wav")
    assert records is not None
    assert records[0].recorderDetails.make == "Wildlife Acoustics"
    assert records[0].triggerSettings.maxDurationSeconds is None
    assert records[0].triggerSettings.minDurationSeconds == 2
    assert json.loads(seen[0].content) == {
        "fileContent": "GUANO|Make: Wildlife Acoustics",
        "filename": "a.wav",
    }
    assert seen[0].headers["authorization"] == "Bearer k"


@pytest.mark.asyncio
async def test_http_extractor_empty_data_is_none():
    assert await _extractor(lambda r: httpx.Response(200, json={"data": []})).extract("x") is None


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"data": {"not": "a list"}}),
        httpx.Response(200, json={"data": [{"fileInformation": {"sampleRateHz": "fast"}}]}),
    ],
)
@pytest.mark.asyncio
async def test_http_extractor_failures_raise(response):
    with pytest.raises(ExtractorError):
        await _extractor(lambda r: response).extract("GUANO|Make: X")


@pytest.mark.asyncio
async def test_http_extractor_transport_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ExtractorError):
        await _extractor(handler).extract("GUANO|Make: X")


def test_build_extractor(settings):
    assert isinstance(build_extractor(settings), GuanoFieldExtractor)
    assert build_extractor(settings.model_copy(update={"ENABLE_EXTRACTION": False})) is None
    remote = build_extractor(
        settings.model_copy(
            update={"EXTRACTOR_BACKEND": "http", "EXTRACTOR_URL": "https://extract.example.com"}
        )
    )
    assert isinstance(remote, HttpExtractor)
    with pytest.raises(ExtractorError):
        build_extractor(settings.model_copy(update={"EXTRACTOR_BACKEND": "http", "EXTRACTOR_URL": ""}))


def test_records_serialize_camel_case():
    dumped = GuanoRecord().model_dump()
    assert set(dumped) == {
        "fileInformation",
        "recorderDetails",
        "locationEnvironmentalData",
        "triggerSettings",
    }
