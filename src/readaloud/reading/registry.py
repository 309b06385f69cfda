"""Registry of active streams and the single cancellation primitive."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class StreamHandle:
    """Cooperative cancellation flag for one streaming read."""

    stream_id: str
    session_id: str
    _active: bool = field(default=True, repr=False)

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        """Stop the stream after its in-flight segment. Explicit stops and
        transport disconnects both end up here."""
        if self._active:
            self._active = False
            logger.info("Stream cancelled: %s", self.stream_id)


class StreamRegistry:
    """Streams keyed by stream id, looked up by session on teardown."""

    def __init__(self) -> None:
        self._streams: dict[str, StreamHandle] = {}
        self._lock = threading.Lock()

    def open(self, session_id: str) -> StreamHandle:
        handle = StreamHandle(
            stream_id=f"{session_id}-{uuid.uuid4().hex[:12]}",
            session_id=session_id,
        )
        with self._lock:
            self._streams[handle.stream_id] = handle
        return handle

    def release(self, handle: StreamHandle) -> None:
        with self._lock:
            self._streams.pop(handle.stream_id, None)

    def get(self, stream_id: str) -> Optional[StreamHandle]:
        with self._lock:
            return self._streams.get(stream_id)

    def cancel(self, stream_id: str) -> bool:
        handle = self.get(stream_id)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_session(self, session_id: str) -> int:
        """Cancel every active stream that belongs to ``session_id``."""

        with self._lock:
            handles = [h for h in self._streams.values() if h.session_id == session_id]
        stopped = 0
        for handle in handles:
            if handle.active:
                handle.cancel()
                stopped += 1
        return stopped

    def cancel_all(self) -> int:
        with self._lock:
            handles = list(self._streams.values())
        for handle in handles:
            handle.cancel()
        return len(handles)

    def streams_for(self, session_id: str) -> list[StreamHandle]:
        with self._lock:
            return [h for h in self._streams.values() if h.session_id == session_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._streams)


__all__ = ["StreamHandle", "StreamRegistry"]
