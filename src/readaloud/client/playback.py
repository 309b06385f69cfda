"""
Client-side playback scheduler.

Consumes the ordered event stream of a read request and keeps audio playing
back to back while tracking which word to highlight. The audio device and
the presentation layer are abstracted behind two small protocols so the
scheduler can drive a browser bridge, a terminal UI or a test double.

    handle_event(chunk-ready) ──▶ queue ──▶ play_next ──▶ player.play
                                               ▲              │
                                               └── on_ended ◀─┘
"""

from __future__ import annotations

import enum
import logging
import re
from collections import deque
from typing import Callable, Optional, Protocol, Sequence

from ..schemas.events import (
    ChunkErrorEvent,
    ChunkReadyEvent,
    ErrorEvent,
    PageDoneEvent,
    StoppedEvent,
    StreamStartEvent,
    WordTiming,
)

logger = logging.getLogger(__name__)

_WORD = re.compile(r"\S+")


class AudioPlayer(Protocol):
    def play(self, audio_ref: str) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def release(self) -> None: ...

    def position_ms(self) -> float: ...


class Highlighter(Protocol):
    def highlight(self, char_start: int, char_end: int) -> None: ...


class PlaybackState(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"


def select_word(timings: Sequence[WordTiming], elapsed_ms: float) -> Optional[int]:
    """Index of the word audible at ``elapsed_ms``.

    Falls back to the last word already started when ``elapsed_ms`` lands in a
    gap between two words.
    """
    last_started: Optional[int] = None
    for index, timing in enumerate(timings):
        if timing.start_ms <= elapsed_ms <= timing.end_ms:
            return index
        if timing.start_ms <= elapsed_ms:
            last_started = index
    return last_started


def word_span(
    chunk: ChunkReadyEvent,
    word_index: int,
    page_text: Optional[str] = None,
) -> Optional[tuple[int, int]]:
    """Map a spoken word back to ``[start, end)`` offsets in the page text.

    Translated speech has no one-to-one word correspondence with the original,
    so the word is placed proportionally.
    """
    words = list(_WORD.finditer(chunk.original_text))
    if not words:
        return None

    spoken_count = max(len(chunk.word_timings), 1)
    if chunk.translated:
        index = int(word_index * len(words) / spoken_count)
    else:
        index = word_index
    index = max(0, min(index, len(words) - 1))

    base = chunk.char_start
    if page_text is not None:
        found = page_text.find(chunk.original_text, chunk.char_start, chunk.char_end)
        if found >= 0:
            base = found
    match = words[index]
    return base + match.start(), base + match.end()


class PlaybackScheduler:
    """FIFO playback of segment results with word highlighting."""

    def __init__(
        self,
        player: AudioPlayer,
        highlighter: Optional[Highlighter] = None,
        *,
        on_stop: Optional[Callable[[], None]] = None,
        page_text: Optional[str] = None,
    ) -> None:
        self._player = player
        self._highlighter = highlighter
        self._on_stop = on_stop
        self._page_text = page_text
        self._queue: deque[ChunkReadyEvent] = deque()
        self._current: Optional[ChunkReadyEvent] = None
        self._current_word: Optional[int] = None
        self.state = PlaybackState.IDLE
        self.page_done = False
        self.errors: list[str] = []

    @property
    def current(self) -> Optional[ChunkReadyEvent]:
        return self._current

    @property
    def pending(self) -> int:
        return len(self._queue)

    def handle_event(self, event: object) -> None:
        if isinstance(event, StreamStartEvent):
            self.page_done = False
            if self.state is PlaybackState.IDLE:
                self.state = PlaybackState.LOADING
        elif isinstance(event, ChunkReadyEvent):
            self.enqueue(event)
        elif isinstance(event, ChunkErrorEvent):
            logger.warning("Segment %d skipped: %s", event.index, event.message)
            self.errors.append(event.message)
        elif isinstance(event, PageDoneEvent):
            self.page_done = True
            if self._current is None and not self._queue:
                self.state = PlaybackState.IDLE
        elif isinstance(event, ErrorEvent):
            self.errors.append(event.message)
        elif isinstance(event, StoppedEvent):
            logger.info("Server stopped the stream")

    def enqueue(self, chunk: ChunkReadyEvent) -> None:
        if self.state is PlaybackState.STOPPED:
            return
        self._queue.append(chunk)
        # Resume immediately if playback was waiting on this segment
        if self._current is None and self.state in (PlaybackState.IDLE, PlaybackState.LOADING):
            self.play_next()

    def play_next(self) -> bool:
        if not self._queue:
            self._current = None
            self._current_word = None
            self.state = PlaybackState.IDLE if self.page_done else PlaybackState.LOADING
            return False

        self._current = self._queue.popleft()
        self._current_word = None
        self._player.play(self._current.audio_ref)
        self.state = PlaybackState.PLAYING
        return True

    def on_ended(self) -> None:
        """Called by the player when the current segment finishes naturally."""
        if self.state is PlaybackState.STOPPED:
            return
        self.play_next()

    def tick(self) -> Optional[tuple[int, int]]:
        """Update highlighting from the player position.

        Returns the highlighted page span when the active word changed.
        """
        if self.state is not PlaybackState.PLAYING or self._current is None:
            return None

        index = select_word(self._current.word_timings, self._player.position_ms())
        if index is None or index == self._current_word:
            return None
        self._current_word = index

        span = word_span(self._current, index, self._page_text)
        if span is not None and self._highlighter is not None:
            self._highlighter.highlight(*span)
        return span

    def pause(self) -> None:
        if self.state is PlaybackState.PLAYING:
            self._player.pause()
            self.state = PlaybackState.PAUSED
        elif self.state is PlaybackState.LOADING:
            # Between segments: hold the next one until resume
            self.state = PlaybackState.PAUSED

    def resume(self) -> None:
        if self.state is not PlaybackState.PAUSED:
            return
        if self._current is None:
            self.play_next()
        else:
            self._player.resume()
            self.state = PlaybackState.PLAYING

    def stop(self) -> None:
        """Drop queued audio, release the player and cancel the server stream."""
        if self.state is PlaybackState.STOPPED:
            return
        self._queue.clear()
        self._current = None
        self._current_word = None
        self._player.release()
        self.state = PlaybackState.STOPPED
        if self._on_stop is not None:
            self._on_stop()


__all__ = [
    "AudioPlayer",
    "Highlighter",
    "PlaybackScheduler",
    "PlaybackState",
    "select_word",
    "word_span",
]
