import asyncio
import pathlib
import sys
from typing import Callable, Optional

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from readaloud.config import Settings  # noqa: E402
from readaloud.schemas.events import WordTiming  # noqa: E402
from readaloud.services.tts_service import SpeechSynthesisError, SynthesisResult  # noqa: E402


class FakeTranslator:
    """Prefixes text with the target language; optionally fails."""

    def __init__(
        self,
        *,
        errors: Optional[list[BaseException]] = None,
        result: Optional[Callable[[str, str], str]] = None,
        delay: float = 0.0,
    ) -> None:
        self.calls: list[dict] = []
        self._errors = list(errors or [])
        self._result = result or (lambda text, target: f"[{target}] {text}")
        self._delay = delay

    async def translate(self, text, target_language, *, source_language=None, cache_key=None):
        self.calls.append(
            {
                "text": text,
                "target": target_language,
                "source": source_language,
                "cache_key": cache_key,
            }
        )
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._errors:
            raise self._errors.pop(0)
        return self._result(text, target_language)


class FakeSynthesizer:
    """Writes a small fake MP3 per call with 100ms per word timings."""

    def __init__(
        self,
        *,
        fail: Optional[Callable[[str], bool]] = None,
        delay: float = 0.0,
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.calls: list[dict] = []
        self._fail = fail or (lambda text: False)
        self._delay = delay
        self.gate = gate
        self.started = asyncio.Event() if gate is not None else None

    async def synthesize(self, text, language, voice, output_path):
        self.calls.append(
            {"text": text, "language": language, "voice": voice, "path": output_path}
        )
        if self.started is not None:
            self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._fail(text):
            raise SpeechSynthesisError(f"cannot speak {text[:20]!r}")

        words = text.split()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(f"ID3|{language}|{text}|".encode("utf-8"))
        timings = [
            WordTiming(text=word, start_ms=i * 100.0, end_ms=i * 100.0 + 80.0)
            for i, word in enumerate(words)
        ]
        return SynthesisResult(audio_path=output_path, word_timings=timings)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        audio_dir=tmp_path / "audio",
        translate_timeout_seconds=2.0,
        synthesize_timeout_seconds=2.0,
        translation_rate_limit_delay_seconds=0.0,
    )


@pytest.fixture
def translator() -> FakeTranslator:
    return FakeTranslator()


@pytest.fixture
def synthesizer() -> FakeSynthesizer:
    return FakeSynthesizer()
