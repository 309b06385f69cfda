from __future__ import annotations

import pytest
from pydantic import ValidationError

from readaloud.schemas.documents import DetectedLanguage
from readaloud.schemas.events import (
    ChunkReadyEvent,
    PageDoneEvent,
    StoppedEvent,
    StreamStartEvent,
    WordTiming,
    parse_event,
)
from readaloud.schemas.reading import (
    AudiobookRequest,
    StreamReadRequest,
    VoiceConfig,
    clamp_speed,
    normalize_gender,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(0, 0.5), (5, 2.0), ("abc", 1.0), (None, 1.0), (True, 1.0), ("1.5", 1.5), (float("nan"), 1.0)],
)
def test_clamp_speed(raw, expected) -> None:
    assert clamp_speed(raw) == expected


def test_normalize_gender() -> None:
    assert normalize_gender("robot") == "female"
    assert normalize_gender(" Male ") == "male"
    assert normalize_gender(None) == "female"


def test_stream_request_accepts_loose_input() -> None:
    request = StreamReadRequest.model_validate(
        {
            "sessionId": "abc",
            "language": "hi",
            "pageIndex": 2,
            "startOffset": None,
            "speed": "abc",
            "voiceGender": "robot",
        }
    )

    assert request.session_id == "abc"
    assert request.target_language == "hi"
    assert request.page_index == 2
    assert request.start_offset == 0
    assert request.voice == VoiceConfig(speed=1.0, gender="female")


def test_stream_request_requires_session() -> None:
    with pytest.raises(ValidationError):
        StreamReadRequest.model_validate({"targetLanguage": "en", "pageIndex": 0})


def test_audiobook_request_clamps_speed() -> None:
    request = AudiobookRequest.model_validate(
        {"sessionId": "abc", "targetLanguage": "ta", "speed": 5, "voiceGender": "male"}
    )

    assert request.voice.speed == 2.0
    assert request.voice.gender == "male"


def test_voice_rate_string() -> None:
    assert VoiceConfig(speed=1.25).rate == "+25%"
    assert VoiceConfig(speed=0).rate == "-50%"
    assert VoiceConfig().rate == "+0%"


def test_events_serialize_with_wire_names() -> None:
    event = ChunkReadyEvent(
        index=0,
        total_segments=1,
        audio_ref="/audio/s/chunk.mp3",
        word_timings=[WordTiming(text="Hello", start_ms=0, end_ms=250)],
        original_text="Hello",
        spoken_text="Hello",
        char_start=0,
        char_end=5,
        translated=False,
    )

    parsed = parse_event(event.to_json())

    assert parsed == event
    assert '"type":"chunk-ready"' in event.to_json()
    assert '"audioRef"' in event.to_json()
    assert '"startMs"' in event.to_json()


def test_parse_event_dispatches_on_type() -> None:
    start = parse_event(
        {
            "type": "stream-start",
            "totalSegments": 3,
            "detectedLanguage": {"code": "en", "name": "English", "confidence": "high"},
            "needsTranslation": True,
        }
    )

    assert isinstance(start, StreamStartEvent)
    assert start.detected_language == DetectedLanguage(
        code="en", name="English", confidence="high"
    )
    assert isinstance(parse_event('{"type": "stopped"}'), StoppedEvent)
    assert parse_event({"type": "page-done", "pageIndex": 4}) == PageDoneEvent(page_index=4)

    with pytest.raises(ValidationError):
        parse_event({"type": "unknown"})
