"""Request models for streaming reads and audiobook generation."""

from __future__ import annotations

import math
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

MIN_SPEED = 0.5
MAX_SPEED = 2.0
DEFAULT_SPEED = 1.0

VoiceGender = Literal["female", "male"]
DEFAULT_GENDER: VoiceGender = "female"


def clamp_speed(value: Any) -> float:
    """Clamp playback speed into [0.5, 2.0]; anything non-numeric becomes 1.0."""

    if isinstance(value, bool) or value is None:
        return DEFAULT_SPEED
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return DEFAULT_SPEED
    if not math.isfinite(numeric):
        return DEFAULT_SPEED
    return max(MIN_SPEED, min(MAX_SPEED, numeric))


def normalize_gender(value: Any) -> VoiceGender:
    if isinstance(value, str) and value.strip().lower() == "male":
        return "male"
    return DEFAULT_GENDER


class VoiceConfig(BaseModel):
    """Voice selection shared by every segment of one read request."""

    model_config = ConfigDict(frozen=True)

    speed: float = DEFAULT_SPEED
    gender: VoiceGender = DEFAULT_GENDER

    @field_validator("speed", mode="before")
    @classmethod
    def _clamp_speed(cls, value: Any) -> float:
        return clamp_speed(value)

    @field_validator("gender", mode="before")
    @classmethod
    def _normalize_gender(cls, value: Any) -> str:
        return normalize_gender(value)

    @property
    def rate(self) -> str:
        """Edge TTS rate string, e.g. ``+25%`` for speed 1.25."""
        percent = round((self.speed - 1) * 100)
        return f"{percent:+d}%"


class _VoiceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("sessionId", "session_id"),
    )
    target_language: str = Field(
        min_length=1,
        validation_alias=AliasChoices("targetLanguage", "language", "target_language"),
    )
    speed: float = DEFAULT_SPEED
    voice_gender: VoiceGender = Field(
        default=DEFAULT_GENDER,
        validation_alias=AliasChoices("voiceGender", "voice_gender"),
    )

    @field_validator("speed", mode="before")
    @classmethod
    def _clamp_speed(cls, value: Any) -> float:
        return clamp_speed(value)

    @field_validator("voice_gender", mode="before")
    @classmethod
    def _normalize_gender(cls, value: Any) -> str:
        return normalize_gender(value)

    @property
    def voice(self) -> VoiceConfig:
        return VoiceConfig(speed=self.speed, gender=self.voice_gender)


class StreamReadRequest(_VoiceRequest):
    """Body of ``POST /api/stream-read``."""

    page_index: int = Field(validation_alias=AliasChoices("pageIndex", "page_index"))
    start_offset: int = Field(
        default=0,
        validation_alias=AliasChoices("startOffset", "start_offset"),
    )

    @field_validator("start_offset", mode="before")
    @classmethod
    def _coerce_offset(cls, value: Any) -> Any:
        return 0 if value is None else value


class AudiobookRequest(_VoiceRequest):
    """Body of ``POST /api/audiobook``."""


class StopReadingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("sessionId", "session_id"),
    )


class StopReadingResponse(BaseModel):
    stopped: int
    message: str


class AudiobookResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    language: str
    audio_url: str = Field(alias="audioUrl")
    segments: int
    size_bytes: int = Field(alias="sizeBytes")


__all__ = [
    "AudiobookRequest",
    "AudiobookResponse",
    "DEFAULT_GENDER",
    "DEFAULT_SPEED",
    "MAX_SPEED",
    "MIN_SPEED",
    "StopReadingRequest",
    "StopReadingResponse",
    "StreamReadRequest",
    "VoiceConfig",
    "VoiceGender",
    "clamp_speed",
    "normalize_gender",
]
