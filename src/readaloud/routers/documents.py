"""Document session routes."""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from ..reading import DocumentTooLargeError, EmptyDocumentError, ReadingService
from ..schemas.documents import ProcessTextRequest, ProcessTextResponse, SessionInfo
from ..services.language_detector import LANGUAGE_NAMES
from ..services.session_store import SessionNotFoundError
from ..services.tts_service import VOICE_MAP, list_voices

router = APIRouter(prefix="/api", tags=["documents"])


def get_reading_service(request: Request) -> ReadingService:
    service = getattr(request.app.state, "reading_service", None)
    if service is None:
        raise HTTPException(status_code=500, detail="Reading service unavailable")
    return service


@router.post(
    "/process-text",
    response_model=ProcessTextResponse,
    response_model_by_alias=True,
)
async def process_text(
    payload: ProcessTextRequest,
    service: ReadingService = Depends(get_reading_service),
) -> ProcessTextResponse:
    """Create a document session from extracted text."""

    try:
        return await asyncio.to_thread(
            service.create_session, payload.text, payload.pages
        )
    except DocumentTooLargeError as exc:
        raise HTTPException(status_code=413, detail=str(exc)) from exc
    except EmptyDocumentError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get(
    "/session/{session_id}",
    response_model=SessionInfo,
    response_model_by_alias=True,
)
async def get_session(
    session_id: str,
    service: ReadingService = Depends(get_reading_service),
) -> SessionInfo:
    try:
        return service.get_session(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Session not found") from exc


@router.delete("/session/{session_id}", status_code=204)
async def delete_session(
    session_id: str,
    service: ReadingService = Depends(get_reading_service),
) -> Response:
    if not await asyncio.to_thread(service.delete_session, session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return Response(status_code=204)


@router.get("/languages")
async def list_languages() -> dict[str, Any]:
    return {
        "languages": [
            {"code": code, "name": LANGUAGE_NAMES.get(code, code)} for code in VOICE_MAP
        ]
    }


@router.get("/voices")
async def voices() -> dict[str, Any]:
    return {"voices": list_voices()}


__all__ = ["get_reading_service", "router"]
