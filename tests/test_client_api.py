from __future__ import annotations

import json

import httpx
import pytest

from readaloud.client import ReaderAPIError, ReaderClient, iter_sse_events
from readaloud.schemas.events import ChunkErrorEvent, PageDoneEvent, StoppedEvent

pytestmark = pytest.mark.anyio


async def _lines(*lines: str):
    for line in lines:
        yield line


async def test_iter_sse_events_skips_comments() -> None:
    lines = _lines(
        ": ping - 2024-01-01",
        "",
        "event: chunk-error",
        'data: {"type": "chunk-error", "index": 2, "message": "boom"}',
        "",
        'data: {"type": "stopped"}\r',
    )

    events = [event async for event in iter_sse_events(lines)]

    assert events == [ChunkErrorEvent(index=2, message="boom"), StoppedEvent()]


def _client(handler) -> tuple[ReaderClient, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(record), base_url="http://reader")
    return ReaderClient("http://reader/", client=http), requests


async def test_stream_read_yields_events() -> None:
    body = (
        'event: chunk-error\r\ndata: {"type":"chunk-error","index":0,"message":"x"}\r\n\r\n'
        'event: page-done\r\ndata: {"type":"page-done","pageIndex":1}\r\n\r\n'
    )
    client, requests = _client(
        lambda request: httpx.Response(
            200, content=body.encode(), headers={"content-type": "text/event-stream"}
        )
    )

    events = [event async for event in client.stream_read("abc", "hi", 1, start_offset=7)]

    assert [type(e) for e in events] == [ChunkErrorEvent, PageDoneEvent]
    assert events[1].page_index == 1
    payload = json.loads(requests[0].content)
    assert payload["sessionId"] == "abc"
    assert payload["targetLanguage"] == "hi"
    assert payload["startOffset"] == 7


async def test_errors_carry_server_detail() -> None:
    client, _ = _client(
        lambda request: httpx.Response(404, json={"detail": "Session not found"})
    )

    with pytest.raises(ReaderAPIError) as excinfo:
        await client.get_session("missing")
    assert excinfo.value.status_code == 404
    assert excinfo.value.detail == "Session not found"

    with pytest.raises(ReaderAPIError):
        async for _ in client.stream_read("missing", "en", 0):
            pass


async def test_process_text_and_audio_url() -> None:
    client, requests = _client(
        lambda request: httpx.Response(200, json={"sessionId": "s1", "totalPages": 2})
    )

    async with client:
        result = await client.process_text("text", pages=["a", "b"])

    assert result["sessionId"] == "s1"
    assert json.loads(requests[0].content) == {"text": "text", "pages": ["a", "b"]}
    assert requests[0].url.path == "/api/process-text"
    assert client.audio_url("/audio/s1/chunk.mp3") == "http://reader/audio/s1/chunk.mp3"
