"""
Per-segment translate → synthesize pipeline.

Both stages are time-boxed. Translation failures degrade to the original
text; a synthesis failure on translated text is retried once with the
original text in the target language's voice. Only when that retry (or the
synthesis of untranslated text) fails does the segment fail terminally.

    segment ──▶ translate (optional, 45s) ──▶ synthesize (180s) ──▶ result
                     │ timeout/error                │ failure on translated
                     ▼                              ▼
               original text              synthesize original text
                                                    │ failure
                                                    ▼
                                           SegmentFailedError
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Hashable, Optional, Protocol, TypeVar

from ..schemas.events import WordTiming
from ..schemas.reading import VoiceConfig
from .text_segmenter import TextSegment
from .translation_service import TranslationRateLimitedError
from .tts_service import SynthesisResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CollaboratorTimeout(TimeoutError):
    """An external call did not finish before its deadline."""

    def __init__(self, label: str, seconds: float) -> None:
        super().__init__(f"{label} timed out after {seconds:g}s")
        self.label = label
        self.seconds = seconds


class SegmentFailedError(RuntimeError):
    """Synthesis failed for a segment even after the fallback attempt."""


async def with_deadline(awaitable: Awaitable[T], seconds: float, *, label: str) -> T:
    """Race ``awaitable`` against a deadline; the awaited call is abandoned on expiry."""

    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as exc:
        raise CollaboratorTimeout(label, seconds) from exc


class Translator(Protocol):
    async def translate(
        self,
        text: str,
        target_language: str,
        *,
        source_language: Optional[str] = None,
        cache_key: Optional[tuple[Hashable, ...]] = None,
    ) -> str: ...


class Synthesizer(Protocol):
    async def synthesize(
        self,
        text: str,
        language: str,
        voice: VoiceConfig,
        output_path: Path,
    ) -> SynthesisResult: ...


@dataclass(frozen=True)
class TranslationPlan:
    """Decision made once per document session and reused for every segment."""

    source_language: str
    target_language: str
    needs_translation: bool
    voice: VoiceConfig = field(default_factory=VoiceConfig)


@dataclass
class SegmentResult:
    original_text: str
    spoken_text: str
    translated: bool
    audio_path: Path
    word_timings: list[WordTiming]


class SegmentPipeline:
    """Run translation and synthesis for one segment at a time."""

    def __init__(
        self,
        translator: Translator,
        synthesizer: Synthesizer,
        *,
        translate_timeout: float = 45.0,
        synthesize_timeout: float = 180.0,
        rate_limit_delay: float = 2.0,
    ) -> None:
        self._translator = translator
        self._synthesizer = synthesizer
        self._translate_timeout = translate_timeout
        self._synthesize_timeout = synthesize_timeout
        self._rate_limit_delay = rate_limit_delay

    async def process(
        self,
        segment: TextSegment,
        plan: TranslationPlan,
        output_path: Path,
        *,
        cache_key: Optional[tuple[Hashable, ...]] = None,
    ) -> SegmentResult:
        """
        Translate (when the plan says so) and synthesize ``segment``.

        Raises:
            SegmentFailedError: Synthesis failed terminally. No file is left
                at ``output_path`` in that case.
        """
        original = segment.text
        spoken, translated = original, False
        if plan.needs_translation:
            spoken, translated = await self._translate_stage(original, plan, cache_key)

        try:
            synthesis = await self._synthesize(spoken, plan, output_path)
        except Exception as exc:
            _discard(output_path)
            if not translated:
                raise SegmentFailedError(f"Speech synthesis failed: {exc}") from exc

            logger.warning(
                "Synthesis of translated text failed (%s); retrying with original text",
                exc,
            )
            spoken, translated = original, False
            try:
                synthesis = await self._synthesize(spoken, plan, output_path)
            except Exception as retry_exc:
                _discard(output_path)
                raise SegmentFailedError(
                    f"Speech synthesis failed after fallback: {retry_exc}"
                ) from retry_exc

        return SegmentResult(
            original_text=original,
            spoken_text=spoken,
            translated=translated,
            audio_path=synthesis.audio_path,
            word_timings=list(synthesis.word_timings),
        )

    async def _translate_stage(
        self,
        text: str,
        plan: TranslationPlan,
        cache_key: Optional[tuple[Hashable, ...]],
    ) -> tuple[str, bool]:
        try:
            translated = await with_deadline(
                self._translate_with_retry(text, plan, cache_key),
                self._translate_timeout,
                label="translation",
            )
        except Exception as exc:
            logger.warning("Translation failed, reading original text: %s", exc)
            return text, False

        if not translated or not translated.strip():
            logger.warning("Translation returned empty text, reading original text")
            return text, False
        return translated, True

    async def _translate_with_retry(
        self,
        text: str,
        plan: TranslationPlan,
        cache_key: Optional[tuple[Hashable, ...]],
    ) -> str:
        kwargs = {"source_language": plan.source_language, "cache_key": cache_key}
        try:
            return await self._translator.translate(text, plan.target_language, **kwargs)
        except TranslationRateLimitedError:
            logger.info("Translation rate limited, retrying in %.1fs", self._rate_limit_delay)
            await asyncio.sleep(self._rate_limit_delay)
            return await self._translator.translate(text, plan.target_language, **kwargs)

    async def _synthesize(
        self, text: str, plan: TranslationPlan, output_path: Path
    ) -> SynthesisResult:
        return await with_deadline(
            self._synthesizer.synthesize(text, plan.target_language, plan.voice, output_path),
            self._synthesize_timeout,
            label="speech synthesis",
        )


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.warning("Could not remove failed artifact %s", path, exc_info=True)


__all__ = [
    "CollaboratorTimeout",
    "SegmentFailedError",
    "SegmentPipeline",
    "SegmentResult",
    "Synthesizer",
    "TranslationPlan",
    "Translator",
    "with_deadline",
]
