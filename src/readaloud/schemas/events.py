"""Tagged event variants emitted by a streaming read.

The orchestrator only depends on this closed set of events; the SSE router
serializes them and the playback client parses them back with
:func:`parse_event`.
"""

from __future__ import annotations

from typing import Annotated, Any, List, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .documents import DetectedLanguage


class _Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class WordTiming(BaseModel):
    """When one word of the spoken text is audible, in milliseconds."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    text: str
    start_ms: float = Field(alias="startMs")
    end_ms: float = Field(alias="endMs")


class StreamStartEvent(_Event):
    type: Literal["stream-start"] = "stream-start"
    total_segments: int = Field(alias="totalSegments")
    detected_language: DetectedLanguage = Field(alias="detectedLanguage")
    needs_translation: bool = Field(alias="needsTranslation")


class ChunkReadyEvent(_Event):
    type: Literal["chunk-ready"] = "chunk-ready"
    index: int
    total_segments: int = Field(alias="totalSegments")
    audio_ref: str = Field(alias="audioRef")
    word_timings: List[WordTiming] = Field(default_factory=list, alias="wordTimings")
    original_text: str = Field(alias="originalText")
    spoken_text: str = Field(alias="spokenText")
    char_start: int = Field(alias="charStart")
    char_end: int = Field(alias="charEnd")
    translated: bool


class ChunkErrorEvent(_Event):
    type: Literal["chunk-error"] = "chunk-error"
    index: int
    message: str


class StoppedEvent(_Event):
    type: Literal["stopped"] = "stopped"


class PageDoneEvent(_Event):
    type: Literal["page-done"] = "page-done"
    page_index: int = Field(alias="pageIndex")


class ErrorEvent(_Event):
    type: Literal["error"] = "error"
    message: str


ReadEvent = Annotated[
    Union[
        StreamStartEvent,
        ChunkReadyEvent,
        ChunkErrorEvent,
        StoppedEvent,
        PageDoneEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]

_EVENT_ADAPTER: TypeAdapter[ReadEvent] = TypeAdapter(ReadEvent)


def parse_event(payload: Mapping[str, Any] | str | bytes) -> ReadEvent:
    """Parse a JSON string or decoded mapping into its event variant."""

    if isinstance(payload, (str, bytes)):
        return _EVENT_ADAPTER.validate_json(payload)
    return _EVENT_ADAPTER.validate_python(payload)


__all__ = [
    "ChunkErrorEvent",
    "ChunkReadyEvent",
    "ErrorEvent",
    "PageDoneEvent",
    "ReadEvent",
    "StoppedEvent",
    "StreamStartEvent",
    "WordTiming",
    "parse_event",
]
