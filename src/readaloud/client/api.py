"""Async HTTP client for the read-aloud API."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional, Sequence

import httpx

from ..schemas.events import ReadEvent, parse_event

logger = logging.getLogger(__name__)


class ReaderAPIError(RuntimeError):
    """Raised when the server rejects a request."""

    def __init__(self, status_code: int, detail: Any) -> None:
        super().__init__(f"HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code < 400:
        return
    try:
        detail = response.json().get("detail", response.text)
    except ValueError:
        detail = response.text
    raise ReaderAPIError(response.status_code, detail)


async def iter_sse_events(lines: AsyncIterator[str]) -> AsyncIterator[ReadEvent]:
    """Parse Server-Sent Event lines into read events. Comments and pings are skipped."""

    data: list[str] = []
    async for raw in lines:
        line = raw.rstrip("\r")
        if not line:
            if data:
                yield parse_event("\n".join(data))
                data = []
            continue
        if line.startswith(":"):
            continue
        if line.startswith("data:"):
            data.append(line[5:].lstrip())
    if data:
        yield parse_event("\n".join(data))


class ReaderClient:
    """Thin wrapper over the JSON and SSE endpoints."""

    def __init__(
        self,
        server_url: str = "http://localhost:8000",
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self._client = client or httpx.AsyncClient(base_url=self.server_url, timeout=timeout)
        self._owns_client = client is None

    async def __aenter__(self) -> "ReaderClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def health(self) -> dict[str, Any]:
        response = await self._client.get("/health")
        _raise_for_status(response)
        return response.json()

    async def process_text(
        self, text: str, pages: Optional[Sequence[str]] = None
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"text": text}
        if pages is not None:
            payload["pages"] = list(pages)
        response = await self._client.post("/api/process-text", json=payload)
        _raise_for_status(response)
        return response.json()

    async def get_session(self, session_id: str) -> dict[str, Any]:
        response = await self._client.get(f"/api/session/{session_id}")
        _raise_for_status(response)
        return response.json()

    async def delete_session(self, session_id: str) -> None:
        response = await self._client.delete(f"/api/session/{session_id}")
        _raise_for_status(response)

    async def stream_read(
        self,
        session_id: str,
        target_language: str,
        page_index: int,
        *,
        start_offset: int = 0,
        speed: float = 1.0,
        voice_gender: str = "female",
    ) -> AsyncIterator[ReadEvent]:
        payload = {
            "sessionId": session_id,
            "targetLanguage": target_language,
            "pageIndex": page_index,
            "startOffset": start_offset,
            "speed": speed,
            "voiceGender": voice_gender,
        }
        async with self._client.stream(
            "POST",
            "/api/stream-read",
            json=payload,
            headers={"Accept": "text/event-stream"},
            timeout=None,
        ) as response:
            if response.status_code != 200:
                await response.aread()
                _raise_for_status(response)
            async for event in iter_sse_events(response.aiter_lines()):
                yield event

    async def stop_reading(self, session_id: str) -> dict[str, Any]:
        response = await self._client.post(
            "/api/stop-reading", json={"sessionId": session_id}
        )
        _raise_for_status(response)
        return response.json()

    async def create_audiobook(
        self,
        session_id: str,
        target_language: str,
        *,
        speed: float = 1.0,
        voice_gender: str = "female",
    ) -> dict[str, Any]:
        response = await self._client.post(
            "/api/audiobook",
            json={
                "sessionId": session_id,
                "targetLanguage": target_language,
                "speed": speed,
                "voiceGender": voice_gender,
            },
            timeout=None,
        )
        _raise_for_status(response)
        return response.json()

    def audio_url(self, audio_ref: str) -> str:
        return f"{self.server_url}{audio_ref}"


__all__ = ["ReaderAPIError", "ReaderClient", "iter_sse_events"]
