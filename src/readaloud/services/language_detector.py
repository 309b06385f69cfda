"""Document-level language detection.

Detection runs once per document session and the result is reused for every
segment read from it: short per-segment samples are too unreliable to detect
on their own.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from langdetect import DetectorFactory, LangDetectException, detect

from ..schemas.documents import DetectedLanguage

logger = logging.getLogger(__name__)

# langdetect is probabilistic; a fixed seed keeps results stable per input
DetectorFactory.seed = 0

DEFAULT_LANGUAGE = "en"
MIN_SAMPLE_CHARS = 20
NARROW_SAMPLE_CHARS = 3000
WIDE_SAMPLE_CHARS = 10000

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "hi": "Hindi",
    "bn": "Bengali",
    "ta": "Tamil",
    "te": "Telugu",
    "mr": "Marathi",
    "gu": "Gujarati",
    "kn": "Kannada",
    "ml": "Malayalam",
    "pa": "Punjabi",
    "or": "Odia",
    "as": "Assamese",
    "ur": "Urdu",
}

UNDETERMINED = "und"

DetectFn = Callable[[str], str]


def _langdetect(sample: str) -> str:
    try:
        return detect(sample)
    except LangDetectException:
        return UNDETERMINED


def _normalize_code(code: str) -> str:
    # langdetect reports some codes with a region suffix ("zh-cn")
    return code.split("-", 1)[0].lower()


class LanguageDetector:
    """Two-attempt language detector returning a confidence-tagged result."""

    def __init__(
        self,
        detect_fn: Optional[DetectFn] = None,
        *,
        supported: Optional[dict[str, str]] = None,
        default_code: str = DEFAULT_LANGUAGE,
    ) -> None:
        self._detect = detect_fn or _langdetect
        self._names = supported or LANGUAGE_NAMES
        self._default = default_code

    def _fallback(self) -> DetectedLanguage:
        return DetectedLanguage(
            code=self._default,
            name=self._names.get(self._default, self._default),
            confidence="low",
        )

    def _result(self, code: str, confidence: str) -> DetectedLanguage:
        return DetectedLanguage(code=code, name=self._names[code], confidence=confidence)

    def detect(self, text: Optional[str]) -> DetectedLanguage:
        if not text or len(text.strip()) < MIN_SAMPLE_CHARS:
            return self._fallback()

        narrow = _normalize_code(self._detect(text[:NARROW_SAMPLE_CHARS]))
        if narrow != UNDETERMINED:
            if narrow in self._names:
                return self._result(narrow, "high")
            logger.info("Detected unsupported language %r, using %s", narrow, self._default)
            return self._fallback()

        wide = _normalize_code(self._detect(text[:WIDE_SAMPLE_CHARS]))
        if wide != UNDETERMINED and wide in self._names:
            return self._result(wide, "medium")
        return self._fallback()

    def is_supported(self, code: str) -> bool:
        return code in self._names


def needs_translation(source_code: str, target_code: str) -> bool:
    """Translation is needed whenever the resolved source differs from the target."""

    return source_code != target_code


__all__ = [
    "DEFAULT_LANGUAGE",
    "LANGUAGE_NAMES",
    "LanguageDetector",
    "UNDETERMINED",
    "needs_translation",
]
