"""Speech synthesis collaborator backed by Microsoft Edge neural voices."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import edge_tts
from edge_tts.exceptions import EdgeTTSException

from ..schemas.events import WordTiming
from ..schemas.reading import VoiceConfig

logger = logging.getLogger(__name__)

# Edge TTS reports offsets in 100-nanosecond ticks
_TICKS_PER_MS = 10_000


@dataclass(frozen=True)
class VoicePack:
    locale: str
    female: str
    male: str


VOICE_MAP: dict[str, VoicePack] = {
    "en": VoicePack("en-US", "en-US-JennyNeural", "en-US-GuyNeural"),
    "hi": VoicePack("hi-IN", "hi-IN-SwaraNeural", "hi-IN-MadhurNeural"),
    "bn": VoicePack("bn-IN", "bn-IN-TanishaaNeural", "bn-IN-BashkarNeural"),
    "ta": VoicePack("ta-IN", "ta-IN-PallaviNeural", "ta-IN-ValluvarNeural"),
    "te": VoicePack("te-IN", "te-IN-ShrutiNeural", "te-IN-MohanNeural"),
    "mr": VoicePack("mr-IN", "mr-IN-AarohiNeural", "mr-IN-ManoharNeural"),
    "gu": VoicePack("gu-IN", "gu-IN-DhwaniNeural", "gu-IN-NiranjanNeural"),
    "kn": VoicePack("kn-IN", "kn-IN-SapnaNeural", "kn-IN-GaganNeural"),
    "ml": VoicePack("ml-IN", "ml-IN-SobhanaNeural", "ml-IN-MidhunNeural"),
    "pa": VoicePack("pa-IN", "pa-IN-GurleenNeural", "pa-IN-VikasNeural"),
    "or": VoicePack("or-IN", "or-IN-SubhasiniNeural", "or-IN-SukantNeural"),
    "as": VoicePack("as-IN", "as-IN-YashicaNeural", "as-IN-PriyomNeural"),
    "ur": VoicePack("ur-IN", "ur-IN-GulNeural", "ur-IN-SalmanNeural"),
}


class SpeechSynthesisError(RuntimeError):
    """Raised when the voice provider produced no usable audio."""


class UnsupportedLanguageError(ValueError):
    """Raised for a language without a configured voice."""


@dataclass
class SynthesisResult:
    audio_path: Path
    word_timings: list[WordTiming] = field(default_factory=list)


def select_voice(language: str, voice: VoiceConfig) -> str:
    pack = VOICE_MAP.get(language)
    if pack is None:
        raise UnsupportedLanguageError(f"No voice configured for language {language!r}")
    return pack.male if voice.gender == "male" else pack.female


def list_voices() -> list[dict[str, str]]:
    voices: list[dict[str, str]] = []
    for language, pack in VOICE_MAP.items():
        for gender, name in (("female", pack.female), ("male", pack.male)):
            voices.append(
                {"language": language, "locale": pack.locale, "gender": gender, "voice": name}
            )
    return voices


class TTSService:
    """
    Synthesize one segment of text into an MP3 file plus word timings.

    Audio is buffered in memory and written in one go once the provider has
    finished, so a cancelled or failed call never leaves a partial file.
    """

    def __init__(
        self,
        *,
        receive_timeout: int = 60,
        pitch: str = "+0Hz",
        volume: str = "+5%",
    ) -> None:
        self._receive_timeout = receive_timeout
        self._pitch = pitch
        self._volume = volume

    async def synthesize(
        self,
        text: str,
        language: str,
        voice: VoiceConfig,
        output_path: Path,
    ) -> SynthesisResult:
        if not text or not text.strip():
            raise SpeechSynthesisError("Empty text provided for TTS")

        voice_name = select_voice(language, voice)
        communicate = edge_tts.Communicate(
            text,
            voice_name,
            rate=voice.rate,
            pitch=self._pitch,
            volume=self._volume,
            boundary="WordBoundary",
            receive_timeout=self._receive_timeout,
        )

        audio = bytearray()
        timings: list[WordTiming] = []
        try:
            async for chunk in communicate.stream():
                if chunk["type"] == "audio":
                    audio.extend(chunk["data"])
                elif chunk["type"] == "WordBoundary":
                    start = chunk["offset"] / _TICKS_PER_MS
                    timings.append(
                        WordTiming(
                            text=chunk["text"],
                            start_ms=start,
                            end_ms=start + chunk["duration"] / _TICKS_PER_MS,
                        )
                    )
        except EdgeTTSException as exc:
            raise SpeechSynthesisError(f"Speech generation failed for {language}: {exc}") from exc

        if not audio:
            raise SpeechSynthesisError(f"No audio received for {language}")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(bytes(audio))
        logger.info(
            "Generated %s (%s, %s, %d words, %d bytes)",
            output_path.name,
            language,
            voice_name,
            len(timings),
            len(audio),
        )
        return SynthesisResult(audio_path=output_path, word_timings=timings)


__all__ = [
    "SpeechSynthesisError",
    "SynthesisResult",
    "TTSService",
    "UnsupportedLanguageError",
    "VOICE_MAP",
    "VoicePack",
    "list_voices",
    "select_voice",
]
