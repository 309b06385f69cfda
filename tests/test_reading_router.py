from __future__ import annotations

import asyncio
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sse_starlette.sse import AppStatus

from conftest import FakeSynthesizer, FakeTranslator
from readaloud.app import create_app
from readaloud.config import get_settings
from readaloud.reading import ReadingService
from readaloud.schemas.events import parse_event
from readaloud.services.language_detector import LanguageDetector

SCENARIO = (
    "Hello world. This is a test sentence that continues for a while to exceed "
    "the micro-chunk size."
)


@pytest.fixture(autouse=True)
def reset_sse_app_status() -> Generator[None, None, None]:
    # sse-starlette keeps a module level exit event bound to the first loop
    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
    yield


@pytest.fixture
def synthesizer() -> FakeSynthesizer:
    return FakeSynthesizer(fail=lambda text: "unspeakable" in text)


@pytest.fixture
def api_client(monkeypatch, tmp_path, synthesizer) -> Generator[TestClient, None, None]:
    monkeypatch.setenv("AUDIO_DIR", str(tmp_path / "audio"))
    monkeypatch.delenv("LOG_FILE", raising=False)
    get_settings.cache_clear()

    app = create_app()
    app.state.reading_service = ReadingService(
        get_settings(),
        translator=FakeTranslator(),
        synthesizer=synthesizer,
        detector=LanguageDetector(detect_fn=lambda sample: "en"),
        audio_dir=tmp_path / "audio",
    )

    with TestClient(app) as client:
        yield client

    get_settings.cache_clear()


def _create_session(client: TestClient, text: str = SCENARIO, **extra) -> dict:
    response = client.post("/api/process-text", json={"text": text, **extra})
    assert response.status_code == 200, response.text
    return response.json()


def _read_events(client: TestClient, payload: dict) -> list:
    events = []
    with client.stream("POST", "/api/stream-read", json=payload) as response:
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        for line in response.iter_lines():
            if line.startswith("data:"):
                events.append(parse_event(line[5:].strip()))
    return events


def test_process_text_creates_session(api_client: TestClient) -> None:
    body = _create_session(api_client)

    assert body["totalPages"] == 1
    assert body["detectedLanguage"] == {
        "code": "en",
        "name": "English",
        "confidence": "high",
    }
    assert body["pagePreviews"] == [{"page": 1, "preview": SCENARIO, "length": len(SCENARIO)}]

    info = api_client.get(f"/api/session/{body['sessionId']}")
    assert info.status_code == 200
    assert info.json()["totalPages"] == 1


def test_process_text_prefers_supplied_pages(api_client: TestClient) -> None:
    body = _create_session(
        api_client, text="ignored text", pages=["  First   page  ", "Second\npage"]
    )

    assert body["totalPages"] == 2
    assert [p["preview"] for p in body["pagePreviews"]] == ["First page", "Second page"]


def test_process_text_rejects_empty_documents(api_client: TestClient) -> None:
    assert api_client.post("/api/process-text", json={"text": ""}).status_code == 422
    assert api_client.post("/api/process-text", json={"text": "\x00\x01"}).status_code == 400


def test_stream_read_emits_ordered_events(api_client: TestClient) -> None:
    session_id = _create_session(api_client)["sessionId"]

    events = _read_events(
        api_client,
        {"sessionId": session_id, "targetLanguage": "en", "pageIndex": 0, "speed": 5},
    )

    assert [e.type for e in events] == ["stream-start", "chunk-ready", "page-done"]
    chunk = events[1]
    assert chunk.translated is False

    audio = api_client.get(chunk.audio_ref)
    assert audio.status_code == 200
    assert audio.content.startswith(b"ID3|en|")


def test_stream_read_translates_for_other_language(api_client: TestClient, synthesizer) -> None:
    session_id = _create_session(api_client)["sessionId"]

    events = _read_events(
        api_client,
        {
            "sessionId": session_id,
            "language": "hi",
            "pageIndex": 0,
            "voiceGender": "robot",
        },
    )

    assert events[0].needs_translation is True
    assert events[1].translated is True
    assert events[1].spoken_text != events[1].original_text
    assert synthesizer.calls[0]["voice"].gender == "female"


def test_stream_read_reports_failed_segment(api_client: TestClient) -> None:
    session_id = _create_session(api_client, text="This unspeakable sentence fails.")["sessionId"]

    events = _read_events(
        api_client, {"sessionId": session_id, "targetLanguage": "en", "pageIndex": 0}
    )

    assert [e.type for e in events] == ["stream-start", "chunk-error", "page-done"]
    assert events[1].index == 0


@pytest.mark.parametrize(
    ("payload", "status"),
    [
        ({"sessionId": "missing", "targetLanguage": "en", "pageIndex": 0}, 404),
        ({"targetLanguage": "en", "pageIndex": 0}, 422),
        ({"targetLanguage": "xx", "pageIndex": 0}, 400),
        ({"targetLanguage": "en", "pageIndex": 9}, 400),
    ],
)
def test_stream_read_rejects_bad_requests(api_client: TestClient, payload, status) -> None:
    if "sessionId" not in payload and status != 422:
        payload = {"sessionId": _create_session(api_client)["sessionId"], **payload}

    response = api_client.post("/api/stream-read", json=payload)

    assert response.status_code == status


def test_stop_reading_without_streams(api_client: TestClient) -> None:
    session_id = _create_session(api_client)["sessionId"]

    response = api_client.post("/api/stop-reading", json={"sessionId": session_id})

    assert response.status_code == 200
    assert response.json() == {"stopped": 0, "message": "No active streams"}


def test_audiobook_success_and_failure(api_client: TestClient) -> None:
    session_id = _create_session(
        api_client, text="x", pages=["Page one is fine.", "Page two is fine too."]
    )["sessionId"]

    response = api_client.post(
        "/api/audiobook", json={"sessionId": session_id, "targetLanguage": "en"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["segments"] == 2
    assert api_client.get(body["audioUrl"]).content == (
        b"ID3|en|Page one is fine.|ID3|en|Page two is fine too.|"
    )

    failing = _create_session(
        api_client, text="x", pages=["Fine page.", "An unspeakable page."]
    )["sessionId"]
    response = api_client.post(
        "/api/audiobook", json={"sessionId": failing, "targetLanguage": "en"}
    )
    assert response.status_code == 502


def test_delete_session(api_client: TestClient) -> None:
    session_id = _create_session(api_client)["sessionId"]

    assert api_client.delete(f"/api/session/{session_id}").status_code == 204
    assert api_client.get(f"/api/session/{session_id}").status_code == 404
    assert api_client.delete(f"/api/session/{session_id}").status_code == 404


def test_catalogue_endpoints(api_client: TestClient) -> None:
    languages = api_client.get("/api/languages").json()["languages"]
    voices = api_client.get("/api/voices").json()["voices"]

    assert {"code": "hi", "name": "Hindi"} in languages
    assert len(voices) == 2 * len(languages)

    health = api_client.get("/health").json()
    assert health["status"] == "ok"
    assert health["sessions"] == 0


def test_process_text_runs_off_the_event_loop(api_client: TestClient, monkeypatch) -> None:
    service = api_client.app.state.reading_service
    create_session = service.create_session
    seen: list[bool] = []

    def recording_create(text, pages=None):
        try:
            asyncio.get_running_loop()
            seen.append(True)
        except RuntimeError:
            seen.append(False)
        return create_session(text, pages)

    monkeypatch.setattr(service, "create_session", recording_create)

    _create_session(api_client)

    assert seen == [False]
