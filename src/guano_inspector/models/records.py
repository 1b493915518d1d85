"""Pydantic models for structured records extracted from GUANO metadata.

Field names are camelCase because these records are exchanged verbatim with
the remote extraction service and rendered by the presentation layer. Every
leaf is optional: a value absent from the metadata is omitted, never guessed.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _Group(BaseModel):
    model_config = ConfigDict(extra="ignore")

    def is_empty(self) -> bool:
        return all(v is None for v in self.model_dump().values())


class FileInformation(_Group):
    originalFilename: Optional[str] = None
    recordingDateTime: Optional[str] = None
    recordingDurationSeconds: Optional[float] = None
    sampleRateHz: Optional[float] = None


class RecorderDetails(_Group):
    make: Optional[str] = None
    model: Optional[str] = None
    serialNumber: Optional[str] = None
    firmwareVersion: Optional[str] = None
    gainSetting: Optional[float] = None


class LocationEnvironmentalData(_Group):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    temperatureCelsius: Optional[float] = None


class TriggerSettings(_Group):
    windowSeconds: Optional[float] = None
    maxLengthSeconds: Optional[float] = None
    minFrequencyHz: Optional[float] = None
    maxFrequencyHz: Optional[float] = None
    minDurationSeconds: Optional[float] = None
    # 0 means "unused" on the recorder; normalized to None after extraction
    maxDurationSeconds: Optional[float] = None


class GuanoRecord(BaseModel):
    """One structured data point describing a recording."""

    model_config = ConfigDict(extra="ignore")

    fileInformation: FileInformation = Field(default_factory=FileInformation)
    recorderDetails: RecorderDetails = Field(default_factory=RecorderDetails)
    locationEnvironmentalData: LocationEnvironmentalData = Field(
        default_factory=LocationEnvironmentalData
    )
    triggerSettings: TriggerSettings = Field(default_factory=TriggerSettings)

    def is_empty(self) -> bool:
        return (
            self.fileInformation.is_empty()
            and self.recorderDetails.is_empty()
            and self.locationEnvironmentalData.is_empty()
            and self.triggerSettings.is_empty()
        )


__all__ = [
    "FileInformation",
    "GuanoRecord",
    "LocationEnvironmentalData",
    "RecorderDetails",
    "TriggerSettings",
]
