"""Reading service coordinating sessions, streams and audiobook jobs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Sequence

from ..schemas.documents import PagePreview, ProcessTextResponse, SessionInfo
from ..schemas.reading import (
    AudiobookRequest,
    AudiobookResponse,
    StreamReadRequest,
    VoiceConfig,
)
from ..services.language_detector import LanguageDetector, needs_translation
from ..services.segment_pipeline import (
    SegmentPipeline,
    Synthesizer,
    TranslationPlan,
    Translator,
)
from ..services.session_store import Clock, DocumentSession, SessionStore
from ..services.text_cleaner import clean_text, normalize_pages, split_into_pages
from ..services.translation_service import TranslationService
from ..services.tts_service import VOICE_MAP, TTSService, UnsupportedLanguageError
from .book_composer import BookComposer
from .registry import StreamRegistry
from .streaming import ReadStream, StreamOrchestrator

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 200


class EmptyDocumentError(ValueError):
    """Raised when a document has no readable text after cleaning."""


class DocumentTooLargeError(ValueError):
    """Raised when submitted text exceeds the configured limit."""


class ReadingService:
    """High-level coordination for document sessions and read requests."""

    def __init__(
        self,
        settings: Settings,
        *,
        translator: Optional[Translator] = None,
        synthesizer: Optional[Synthesizer] = None,
        detector: Optional[LanguageDetector] = None,
        clock: Optional[Clock] = None,
        audio_dir: Optional[Path] = None,
    ) -> None:
        self._settings = settings
        self._owned_translator: Optional[TranslationService] = None
        if translator is None:
            self._owned_translator = TranslationService(settings)
            translator = self._owned_translator
        if synthesizer is None:
            synthesizer = TTSService(receive_timeout=settings.tts_receive_timeout_seconds)

        self._translator = translator
        self._detector = detector or LanguageDetector()

        store_kwargs = {"idle_timeout": settings.session_idle_timeout_seconds}
        if clock is not None:
            store_kwargs["clock"] = clock
        self._store = SessionStore(audio_dir or settings.audio_dir, **store_kwargs)

        self._pipeline = SegmentPipeline(
            translator,
            synthesizer,
            translate_timeout=settings.translate_timeout_seconds,
            synthesize_timeout=settings.synthesize_timeout_seconds,
            rate_limit_delay=settings.translation_rate_limit_delay_seconds,
        )
        self._registry = StreamRegistry()
        self._streams = StreamOrchestrator(
            self._store,
            self._pipeline,
            self._registry,
            audio_url_prefix=settings.public_audio_path,
        )
        self._composer = BookComposer(self._pipeline)

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def registry(self) -> StreamRegistry:
        return self._registry

    @property
    def supported_languages(self) -> list[str]:
        return list(VOICE_MAP)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------
    def create_session(
        self, text: str, pages: Optional[Sequence[str]] = None
    ) -> ProcessTextResponse:
        if len(text) > self._settings.max_text_chars:
            raise DocumentTooLargeError(
                f"Text exceeds {self._settings.max_text_chars} characters"
            )

        cleaned = clean_text(text)
        supplied = normalize_pages(pages)
        page_list = supplied or split_into_pages(cleaned)
        if not any(page.strip() for page in page_list):
            raise EmptyDocumentError("No readable text in document")

        full_text = "\n\n".join(supplied) if supplied else cleaned
        detected = self._detector.detect(full_text)
        session = self._store.create(full_text, page_list, detected)

        return ProcessTextResponse(
            session_id=session.id,
            total_pages=session.total_pages,
            detected_language=detected,
            page_previews=[
                PagePreview(
                    page=index + 1,
                    preview=page[:PREVIEW_CHARS] + ("..." if len(page) > PREVIEW_CHARS else ""),
                    length=len(page),
                )
                for index, page in enumerate(session.pages)
            ],
        )

    def get_session(self, session_id: str) -> SessionInfo:
        session = self._store.touch(session_id)
        return SessionInfo(
            id=session.id,
            total_pages=session.total_pages,
            detected_language=session.detected_language,
        )

    def delete_session(self, session_id: str) -> bool:
        """Explicit teardown: cancel streams, drop audio and cached translations."""

        self._registry.cancel_session(session_id)
        removed = self._store.delete(session_id)
        if self._owned_translator is not None:
            self._owned_translator.clear_session(session_id)
        return removed

    def sweep_idle(self) -> list[str]:
        evicted = self._store.evict_idle()
        for session_id in evicted:
            self._registry.cancel_session(session_id)
            if self._owned_translator is not None:
                self._owned_translator.clear_session(session_id)
        if evicted:
            logger.info("Evicted %d idle session(s)", len(evicted))
        return evicted

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------
    def _plan(
        self, session: DocumentSession, target_language: str, voice: VoiceConfig
    ) -> TranslationPlan:
        if target_language not in VOICE_MAP:
            raise UnsupportedLanguageError(f"Unsupported language: {target_language}")
        source = session.detected_language.code
        return TranslationPlan(
            source_language=source,
            target_language=target_language,
            needs_translation=needs_translation(source, target_language),
            voice=voice,
        )

    def open_stream(self, request: StreamReadRequest) -> ReadStream:
        """Validate a read request and return a stream ready to be consumed.

        Raises:
            SessionNotFoundError: Unknown or evicted session
            InvalidPageError: Page index outside the document
            UnsupportedLanguageError: No voice for the target language
        """
        session = self._store.touch(request.session_id)
        plan = self._plan(session, request.target_language, request.voice)
        prepared = self._streams.prepare(
            session, request.page_index, request.start_offset, plan
        )
        return self._streams.open(prepared)

    def stop_reading(self, session_id: str) -> int:
        stopped = self._registry.cancel_session(session_id)
        logger.info("Stop requested for session %s (%d stream(s))", session_id, stopped)
        return stopped

    async def compose_book(self, request: AudiobookRequest) -> AudiobookResponse:
        session = self._store.touch(request.session_id)
        plan = self._plan(session, request.target_language, request.voice)
        logger.info(
            "Generating audiobook for session %s (%d page(s), %s)",
            session.id,
            session.total_pages,
            plan.target_language,
        )
        book = await self._composer.compose(session, plan)
        prefix = self._settings.public_audio_path.rstrip("/")
        return AudiobookResponse(
            session_id=session.id,
            language=plan.target_language,
            audio_url=f"{prefix}/{session.id}/{book.audio_path.name}",
            segments=book.segments,
            size_bytes=book.size_bytes,
        )

    async def shutdown(self) -> None:
        await self._streams.shutdown()
        if self._owned_translator is not None:
            await self._owned_translator.aclose()


__all__ = ["DocumentTooLargeError", "EmptyDocumentError", "ReadingService"]
