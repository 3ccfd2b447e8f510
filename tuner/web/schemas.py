from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _Model(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class InitMessage(_Model):
    type: Literal["init"]
    sample_rate: int = Field(alias="sampleRate", ge=8_000, le=192_000)
    block_size: int = Field(alias="blockSize", default=2048, ge=256, le=16_384)


class ResetMessage(_Model):
    type: Literal["reset"]


class ReadingEvent(_Model):
    type: Literal["reading"] = "reading"
    t: float
    note: str
    octave: int
    cents: float
    frequency: float
    target_frequency: float = Field(alias="targetFrequency")
    active: bool
    gauge_angle: float = Field(alias="gaugeAngle")
    guidance: str
    raw_hz: float = Field(alias="rawHz")
    rms: float


class AnalyzeResponse(_Model):
    sample_rate: int = Field(alias="sampleRate")
    block_size: int = Field(alias="blockSize")
    readings: list[ReadingEvent]
