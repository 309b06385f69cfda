from __future__ import annotations

from readaloud.services.language_detector import (
    NARROW_SAMPLE_CHARS,
    WIDE_SAMPLE_CHARS,
    LanguageDetector,
    needs_translation,
)

LONG_TEXT = "Reading documents aloud helps people follow along. " * 300


def _recording(*answers: str):
    samples: list[int] = []
    replies = list(answers)

    def detect(sample: str) -> str:
        samples.append(len(sample))
        return replies.pop(0)

    return detect, samples


def test_short_text_falls_back_with_low_confidence() -> None:
    detect, samples = _recording()
    result = LanguageDetector(detect).detect("too short")

    assert (result.code, result.confidence) == ("en", "low")
    assert samples == []


def test_narrow_sample_detection_is_high_confidence() -> None:
    detect, samples = _recording("hi")
    result = LanguageDetector(detect).detect(LONG_TEXT)

    assert (result.code, result.name, result.confidence) == ("hi", "Hindi", "high")
    assert samples == [NARROW_SAMPLE_CHARS]


def test_widened_sample_is_medium_confidence() -> None:
    detect, samples = _recording("und", "ta")
    result = LanguageDetector(detect).detect(LONG_TEXT)

    assert (result.code, result.confidence) == ("ta", "medium")
    assert samples == [NARROW_SAMPLE_CHARS, WIDE_SAMPLE_CHARS]


def test_unsupported_or_undetermined_language_uses_default() -> None:
    detect, _ = _recording("fr")
    assert LanguageDetector(detect).detect(LONG_TEXT).code == "en"

    detect, _ = _recording("und", "und")
    result = LanguageDetector(detect).detect(LONG_TEXT)
    assert (result.code, result.confidence) == ("en", "low")


def test_region_suffix_is_stripped() -> None:
    detect, _ = _recording("ur-PK")
    assert LanguageDetector(detect).detect(LONG_TEXT).code == "ur"


def test_langdetect_recognizes_english() -> None:
    result = LanguageDetector().detect(
        "The quick brown fox jumps over the lazy dog while the children read "
        "their favourite stories aloud in the library every afternoon."
    )

    assert result.code == "en"
    assert result.confidence == "high"


def test_needs_translation() -> None:
    assert needs_translation("en", "hi") is True
    assert needs_translation("hi", "hi") is False
