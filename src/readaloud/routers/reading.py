"""Streaming read and audiobook routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sse_starlette.sse import EventSourceResponse

from ..config import Settings, get_settings
from ..reading import BookCompositionError, InvalidPageError, ReadingService
from ..schemas.reading import (
    AudiobookRequest,
    AudiobookResponse,
    StopReadingRequest,
    StopReadingResponse,
    StreamReadRequest,
)
from ..services.session_store import SessionNotFoundError
from ..services.tts_service import UnsupportedLanguageError
from .documents import get_reading_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["reading"])


@router.post("/stream-read", response_model=None, status_code=200)
async def stream_read(
    payload: StreamReadRequest,
    service: ReadingService = Depends(get_reading_service),
    settings: Settings = Depends(get_settings),
) -> EventSourceResponse:
    """Stream synthesized segments of one page through Server-Sent Events."""

    try:
        stream = service.open_stream(payload)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Session not found") from exc
    except (InvalidPageError, UnsupportedLanguageError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    async def event_publisher():
        async for event in stream.events():
            yield {"event": event.type, "data": event.to_json()}

    return EventSourceResponse(
        event_publisher(),
        ping=settings.sse_ping_seconds,
        send_timeout=settings.sse_send_timeout_seconds,
    )


@router.post("/stop-reading", response_model=StopReadingResponse)
async def stop_reading(
    payload: StopReadingRequest,
    service: ReadingService = Depends(get_reading_service),
) -> StopReadingResponse:
    stopped = service.stop_reading(payload.session_id)
    message = f"Stopped {stopped} stream(s)" if stopped else "No active streams"
    return StopReadingResponse(stopped=stopped, message=message)


@router.post(
    "/audiobook",
    response_model=AudiobookResponse,
    response_model_by_alias=True,
)
async def create_audiobook(
    payload: AudiobookRequest,
    service: ReadingService = Depends(get_reading_service),
) -> AudiobookResponse:
    """Read the whole document into one downloadable MP3 file."""

    try:
        return await service.compose_book(payload)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Session not found") from exc
    except UnsupportedLanguageError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except BookCompositionError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


__all__ = ["router"]
