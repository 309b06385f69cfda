"""
Text Segmenter for the read-aloud pipeline.

Splits a page of document text into ordered segments that are translated and
synthesized one at a time. Two granularities are provided:

- MICRO: ~100 words (hard cap 700 chars) for low-latency streaming reads
- BATCH: ~2,000 chars (hard cap 2,500 chars) for whole-document audiobooks

Split points are chosen in priority order:

    sentence terminator  →  clause mark  →  whitespace  →  force cut at cap

Within one rule the first candidate at/after the size target wins, otherwise
the last candidate before it. Candidates below the granularity floor are
rejected so that no tiny fragments are emitted when a larger split exists.

Offsets always refer to the page text. Trailing whitespace after a split
belongs to the segment that ends there, so the slices of consecutive segments
are contiguous and concatenate back to ``page_text[start_offset:]``.

Usage:
    segments = segment_text(page_text, start_offset=120, granularity=MICRO)
    for seg in segments:
        print(seg.char_start, seg.char_end, seg.text)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

# Latin/Devanagari/Arabic terminators need trailing whitespace (or end of text)
# so that "3.14" and "e.g.x" do not split. CJK terminators stand alone.
_SENTENCE_END = re.compile(
    r"(?:[.!?…।॥؟]+[\"'”’)\]]*(?=\s|$))"
    r"|[。！？]+"
)
_CLAUSE_END = re.compile(
    r"(?:[,;:،][\"'”’)\]]*(?=\s))|[，；、]"
)
_WHITESPACE = re.compile(r"\s+")
_WORD = re.compile(r"\S+")


@dataclass(frozen=True)
class Granularity:
    """Size policy for one segmentation mode."""

    name: str
    max_chars: int
    min_chars: int
    target_chars: int
    target_words: Optional[int] = None


MICRO = Granularity(
    name="micro",
    max_chars=700,
    min_chars=150,
    target_chars=600,
    target_words=100,
)
BATCH = Granularity(
    name="batch",
    max_chars=2500,
    min_chars=500,
    target_chars=2000,
)


@dataclass(frozen=True)
class TextSegment:
    """A slice of page text processed as one translate+synthesize unit."""

    text: str
    char_start: int
    char_end: int
    word_count: int


def count_words(text: str) -> int:
    return len(_WORD.findall(text))


def segment_text(
    page_text: str,
    start_offset: int = 0,
    granularity: Granularity = MICRO,
) -> list[TextSegment]:
    """
    Split ``page_text[start_offset:]`` into ordered segments.

    Args:
        page_text: Full text of the page being read
        start_offset: Character offset to start from (click-to-start)
        granularity: MICRO for streaming, BATCH for audiobook synthesis

    Returns:
        Segments with contiguous, increasing ``[char_start, char_end)`` ranges.
        Empty when the remainder is empty or whitespace-only.
    """
    if not page_text:
        return []

    position = max(0, start_offset)
    end = len(page_text)
    if position >= end or not page_text[position:].strip():
        return []

    segments: list[TextSegment] = []
    while position < end:
        remainder = page_text[position:]
        lead = len(remainder) - len(remainder.lstrip())
        split = lead + _find_split(remainder[lead:], granularity)
        split = _extend_over_whitespace(remainder, split)

        piece = remainder[:split]
        segments.append(
            TextSegment(
                text=piece.strip(),
                char_start=position,
                char_end=position + split,
                word_count=count_words(piece),
            )
        )
        position += split

    return segments


def _find_split(text: str, granularity: Granularity) -> int:
    """Return the split index for ``text``, which starts with a non-space."""

    content_length = len(text.rstrip())
    word_ends = [match.end() for match in _WORD.finditer(text)]

    fits_chars = content_length <= granularity.max_chars
    fits_words = (
        granularity.target_words is None or len(word_ends) <= granularity.target_words
    )
    if fits_chars and fits_words:
        return len(text)

    target = min(granularity.target_chars, granularity.max_chars)
    if granularity.target_words is not None and len(word_ends) >= granularity.target_words:
        target = min(target, word_ends[granularity.target_words - 1])

    # One character of lookahead so terminators at the cap can see what follows
    window = text[: granularity.max_chars + 1]
    upper = min(granularity.max_chars, len(text))

    for candidates in (
        [m.end() for m in _SENTENCE_END.finditer(window)],
        [m.end() for m in _CLAUSE_END.finditer(window)],
        [m.start() for m in _WHITESPACE.finditer(window) if m.start() > 0],
    ):
        allowed = [p for p in candidates if granularity.min_chars <= p <= upper]
        if not allowed:
            continue
        after = [p for p in allowed if p >= target]
        if after:
            return after[0]
        return allowed[-1]

    return upper


def _extend_over_whitespace(text: str, index: int) -> int:
    while index < len(text) and text[index].isspace():
        index += 1
    return index


__all__ = [
    "BATCH",
    "MICRO",
    "Granularity",
    "TextSegment",
    "count_words",
    "segment_text",
]
