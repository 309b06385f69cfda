"""Pydantic models for document session requests and responses."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Confidence = Literal["low", "medium", "high"]


class DetectedLanguage(BaseModel):
    """Language resolved once for a whole document."""

    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    confidence: Confidence


class ProcessTextRequest(BaseModel):
    """Text handed over by the extraction step (client side PDF parsing)."""

    text: str = Field(min_length=1)
    pages: Optional[List[str]] = None


class PagePreview(BaseModel):
    page: int
    preview: str
    length: int


class ProcessTextResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    total_pages: int = Field(alias="totalPages")
    detected_language: DetectedLanguage = Field(alias="detectedLanguage")
    page_previews: List[PagePreview] = Field(alias="pagePreviews")


class SessionInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    total_pages: int = Field(alias="totalPages")
    detected_language: DetectedLanguage = Field(alias="detectedLanguage")


__all__ = [
    "Confidence",
    "DetectedLanguage",
    "PagePreview",
    "ProcessTextRequest",
    "ProcessTextResponse",
    "SessionInfo",
]
