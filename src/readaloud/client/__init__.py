"""Client-side consumers of the read-aloud API."""

from .api import ReaderAPIError, ReaderClient, iter_sse_events
from .playback import (
    AudioPlayer,
    Highlighter,
    PlaybackScheduler,
    PlaybackState,
    select_word,
    word_span,
)

__all__ = [
    "AudioPlayer",
    "Highlighter",
    "PlaybackScheduler",
    "PlaybackState",
    "ReaderAPIError",
    "ReaderClient",
    "iter_sse_events",
    "select_word",
    "word_span",
]
