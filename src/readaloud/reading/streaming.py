"""
Stream orchestrator for page reads.

Each read request becomes one producer task. The task walks the page's
segments strictly in order and pushes events into an ordered queue; segment
``i + 1`` is not started until the event for segment ``i`` has been queued.
The SSE endpoint drains the queue. When the consumer goes away the stream is
cancelled through its handle, so the producer finishes the segment it is
working on and then stops instead of being torn down mid-synthesis.

    starting ──▶ streaming ──▶ completed
                     │  └────▶ stopped   (handle cancelled)
                     └───────▶ errored   (unexpected exception)
"""

from __future__ import annotations

import asyncio
import enum
import logging
import shutil
import uuid
from contextlib import suppress
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from ..schemas.events import (
    ChunkErrorEvent,
    ChunkReadyEvent,
    ErrorEvent,
    PageDoneEvent,
    ReadEvent,
    StoppedEvent,
    StreamStartEvent,
)
from ..services.segment_pipeline import SegmentPipeline, TranslationPlan
from ..services.session_store import DocumentSession, SessionNotFoundError, SessionStore
from ..services.text_segmenter import MICRO, TextSegment, segment_text
from .registry import StreamHandle, StreamRegistry

logger = logging.getLogger(__name__)


class InvalidPageError(ValueError):
    """Raised when a page index falls outside the document."""


class StreamState(str, enum.Enum):
    STARTING = "starting"
    STREAMING = "streaming"
    STOPPED = "stopped"
    COMPLETED = "completed"
    ERRORED = "errored"


@dataclass
class PreparedStream:
    """Everything validated before the transport is opened."""

    session: DocumentSession
    page_index: int
    start_offset: int
    plan: TranslationPlan
    segments: list[TextSegment]
    handle: StreamHandle


def clamp_offset(offset: int, page_text: str) -> int:
    """Clamp into the page and move forward onto the next non-space character.

    The first segment then starts where its trimmed text starts, so clients
    can map word positions from ``char_start`` alone.
    """
    last = max(len(page_text) - 1, 0)
    offset = max(0, min(offset, last))
    while offset < last and page_text[offset].isspace():
        offset += 1
    return offset


class ReadStream:
    """One running page read: a producer task feeding an ordered queue."""

    def __init__(self, orchestrator: "StreamOrchestrator", prepared: PreparedStream) -> None:
        self._orchestrator = orchestrator
        self.prepared = prepared
        self.state = StreamState.STARTING
        self._queue: asyncio.Queue[Optional[ReadEvent]] = asyncio.Queue()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def handle(self) -> StreamHandle:
        return self.prepared.handle

    @property
    def task(self) -> Optional[asyncio.Task[None]]:
        return self._task

    def start(self) -> asyncio.Task[None]:
        if self._task is None:
            self._task = self._orchestrator.spawn(self._produce())
        return self._task

    async def emit(self, event: ReadEvent) -> None:
        await self._queue.put(event)

    async def _produce(self) -> None:
        try:
            await self._orchestrator.run(self)
        finally:
            self._orchestrator.registry.release(self.handle)
            self._orchestrator.discard_orphaned_audio(self.prepared.session)
            self._queue.put_nowait(None)

    async def events(self) -> AsyncIterator[ReadEvent]:
        """Yield events in emission order until the producer finishes."""

        self.start()
        try:
            while True:
                event = await self._queue.get()
                if event is None:
                    return
                yield event
        finally:
            if self._task is not None and not self._task.done():
                # Consumer left early: transport disconnect
                self.handle.cancel()

    async def wait_closed(self) -> None:
        if self._task is not None:
            with suppress(asyncio.CancelledError):
                await self._task


class StreamOrchestrator:
    """Drive the segment pipeline for page reads and emit ordered events."""

    def __init__(
        self,
        store: SessionStore,
        pipeline: SegmentPipeline,
        registry: StreamRegistry,
        *,
        audio_url_prefix: str = "/audio",
    ) -> None:
        self._store = store
        self._pipeline = pipeline
        self.registry = registry
        self._audio_url_prefix = audio_url_prefix.rstrip("/")
        self._tasks: set[asyncio.Task[None]] = set()

    def prepare(
        self,
        session: DocumentSession,
        page_index: int,
        start_offset: int,
        plan: TranslationPlan,
    ) -> PreparedStream:
        if not 0 <= page_index < session.total_pages:
            raise InvalidPageError(
                f"Invalid page index {page_index} (document has {session.total_pages} page(s))"
            )

        page_text = session.pages[page_index]
        offset = clamp_offset(start_offset, page_text)
        segments = segment_text(page_text, offset, MICRO)
        handle = self.registry.open(session.id)
        logger.info(
            "Streaming: session=%s page=%d offset=%d segments=%d lang=%s translate=%s",
            session.id,
            page_index + 1,
            offset,
            len(segments),
            plan.target_language,
            plan.needs_translation,
        )
        return PreparedStream(
            session=session,
            page_index=page_index,
            start_offset=offset,
            plan=plan,
            segments=segments,
            handle=handle,
        )

    def open(self, prepared: PreparedStream) -> ReadStream:
        return ReadStream(self, prepared)

    def spawn(self, coro) -> asyncio.Task[None]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run(self, stream: ReadStream) -> None:
        prepared = stream.prepared
        total = len(prepared.segments)
        try:
            await stream.emit(
                StreamStartEvent(
                    total_segments=total,
                    detected_language=prepared.session.detected_language,
                    needs_translation=prepared.plan.needs_translation,
                )
            )
            stream.state = StreamState.STREAMING

            for index, segment in enumerate(prepared.segments):
                if not prepared.handle.active:
                    await self._stop(stream)
                    return
                with suppress(SessionNotFoundError):
                    self._store.touch(prepared.session.id)
                event = await self._process_segment(prepared, index, segment, total)
                if prepared.session.id not in self._store:
                    # Session torn down mid-segment; its audio is removed on exit
                    await self._stop(stream)
                    return
                await stream.emit(event)

            await stream.emit(PageDoneEvent(page_index=prepared.page_index))
            stream.state = StreamState.COMPLETED
        except Exception as exc:
            logger.exception("Stream %s failed", prepared.handle.stream_id)
            stream.state = StreamState.ERRORED
            await stream.emit(ErrorEvent(message=str(exc) or exc.__class__.__name__))

    async def _stop(self, stream: ReadStream) -> None:
        await stream.emit(StoppedEvent())
        stream.state = StreamState.STOPPED

    def discard_orphaned_audio(self, session: DocumentSession) -> None:
        """Remove audio a finished producer wrote for a session torn down under it."""
        if session.id not in self._store:
            shutil.rmtree(session.audio_dir, ignore_errors=True)

    async def _process_segment(
        self,
        prepared: PreparedStream,
        index: int,
        segment: TextSegment,
        total: int,
    ) -> ReadEvent:
        session = prepared.session
        plan = prepared.plan
        file_name = (
            f"chunk_p{prepared.page_index}_{plan.target_language}_{index}_"
            f"{uuid.uuid4().hex[:8]}.mp3"
        )
        cache_key = (
            session.id,
            prepared.page_index,
            segment.char_start,
            segment.char_end,
            plan.target_language,
        )
        try:
            result = await self._pipeline.process(
                segment,
                plan,
                session.audio_dir / file_name,
                cache_key=cache_key,
            )
        except Exception as exc:
            logger.error("Segment %d/%d failed: %s", index + 1, total, exc)
            return ChunkErrorEvent(index=index, message=str(exc) or exc.__class__.__name__)

        logger.info(
            "Segment %d/%d ready (%d words, translated=%s)",
            index + 1,
            total,
            len(result.word_timings),
            result.translated,
        )
        return ChunkReadyEvent(
            index=index,
            total_segments=total,
            audio_ref=f"{self._audio_url_prefix}/{session.id}/{file_name}",
            word_timings=result.word_timings,
            original_text=result.original_text,
            spoken_text=result.spoken_text,
            char_start=segment.char_start,
            char_end=segment.char_end,
            translated=result.translated,
        )

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Cancel all streams and wait briefly for producers to wind down."""

        self.registry.cancel_all()
        tasks = list(self._tasks)
        if not tasks:
            return
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()


__all__ = [
    "InvalidPageError",
    "PreparedStream",
    "ReadStream",
    "StreamOrchestrator",
    "StreamState",
    "clamp_offset",
]
