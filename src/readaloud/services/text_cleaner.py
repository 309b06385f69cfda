"""Clean extracted document text and split it into readable pages."""

from __future__ import annotations

import re
from typing import Iterable, Optional

_PAGE_NUMBER_LINE = re.compile(r"^[ \t]*[-–—]?[ \t]*\d+[ \t]*[-–—]?[ \t]*$", re.MULTILINE)
_PAGE_LABEL = re.compile(r"\bpage\s+\d+\b", re.IGNORECASE)
_MANY_NEWLINES = re.compile(r"\n{3,}")
_SOFT_WRAP = re.compile(r"(?<!\n)\n(?!\n)")
_RUN_OF_SPACES = re.compile(r"[ \t]{2,}")
_PARAGRAPH_BREAK = re.compile(r"\n\n+")
_ANY_WHITESPACE = re.compile(r"\s+")

# C0 controls except \t \n \r, plus DEL
_CONTROL_CHARS = dict.fromkeys(
    [c for c in range(32) if c not in (9, 10, 13)] + [127]
)

PAGE_TARGET_CHARS = 2000
PAGE_MIN_CHARS = 500


def clean_text(raw_text: Optional[str]) -> str:
    """Normalize raw extracted text for translation and speech synthesis."""

    if not raw_text or not isinstance(raw_text, str):
        return ""

    text = raw_text.replace("\r\n", "\n").replace("\r", "\n")

    # Page numbers ("- 12 -", "12", "Page 12")
    text = _PAGE_NUMBER_LINE.sub("", text)
    text = _PAGE_LABEL.sub("", text)

    text = _MANY_NEWLINES.sub("\n\n", text)
    text = _SOFT_WRAP.sub(" ", text)
    text = _RUN_OF_SPACES.sub(" ", text)

    text = text.replace("“", '"').replace("”", '"')
    text = text.replace("‘", "'").replace("’", "'")
    text = text.replace("–", "-").replace("—", "-")

    text = text.translate(_CONTROL_CHARS)

    # Paragraph breaks become sentence pauses for the voice
    text = text.replace("\n\n", ".\n\n")
    text = re.sub(r"\.{2,}", ".", text)
    text = re.sub(r"\.\s*\.", ".", text)

    # Paragraph breaks survive as one blank line so pagination can use them
    text = "\n".join(line.strip() for line in text.split("\n"))
    return _MANY_NEWLINES.sub("\n\n", text).strip()


def split_into_pages(text: str) -> list[str]:
    """Group paragraphs into pages of roughly ``PAGE_TARGET_CHARS`` characters."""

    if not text:
        return []

    paragraphs = [p for p in _PARAGRAPH_BREAK.split(text) if p.strip()]
    if not paragraphs:
        return [text]

    pages: list[str] = []
    current = ""
    for paragraph in paragraphs:
        if len(current) + len(paragraph) > PAGE_TARGET_CHARS and len(current) > PAGE_MIN_CHARS:
            pages.append(current.strip())
            current = paragraph
        else:
            current = f"{current}\n\n{paragraph}" if current else paragraph

    if current.strip():
        pages.append(current.strip())
    return pages


def normalize_pages(pages: Optional[Iterable[str]]) -> list[str]:
    """Collapse whitespace in client-supplied pages.

    Returns an empty list when no page has content, in which case callers fall
    back to :func:`split_into_pages`.
    """

    if not pages:
        return []
    normalized = [
        _ANY_WHITESPACE.sub(" ", page).strip() if isinstance(page, str) else ""
        for page in pages
    ]
    if not any(normalized):
        return []
    return normalized


__all__ = ["clean_text", "normalize_pages", "split_into_pages"]
