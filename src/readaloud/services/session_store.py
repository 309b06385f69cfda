"""In-memory document session store with idle eviction."""

from __future__ import annotations

import logging
import shutil
import threading
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Sequence

from ..schemas.documents import DetectedLanguage

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class SessionNotFoundError(LookupError):
    """Raised when a session id is unknown or already evicted."""


@dataclass
class DocumentSession:
    """One processed document. Text, pages and language never change."""

    id: str
    full_text: str
    pages: tuple[str, ...]
    detected_language: DetectedLanguage
    last_access: float
    audio_dir: Path = field(repr=False, default=Path("."))

    @property
    def total_pages(self) -> int:
        return len(self.pages)


class SessionStore:
    """
    Keyed table of document sessions.

    ``clock`` returns seconds and is injectable so that idle eviction can be
    tested without waiting. Every session owns ``<audio_root>/<session_id>/``;
    deleting a session removes that directory on a best-effort basis.
    """

    def __init__(
        self,
        audio_root: Path,
        *,
        idle_timeout: float = 2 * 60 * 60,
        clock: Clock = time.time,
    ) -> None:
        self._audio_root = audio_root
        self._idle_timeout = idle_timeout
        self._clock = clock
        self._sessions: dict[str, DocumentSession] = {}
        self._lock = threading.Lock()

    @property
    def audio_root(self) -> Path:
        return self._audio_root

    def create(
        self,
        full_text: str,
        pages: Sequence[str],
        detected_language: DetectedLanguage,
    ) -> DocumentSession:
        session_id = uuid.uuid4().hex
        audio_dir = self._audio_root / session_id
        audio_dir.mkdir(parents=True, exist_ok=True)

        session = DocumentSession(
            id=session_id,
            full_text=full_text,
            pages=tuple(pages),
            detected_language=detected_language,
            last_access=self._clock(),
            audio_dir=audio_dir,
        )
        with self._lock:
            self._sessions[session_id] = session
        logger.info(
            "Session created: %s (%d page(s), %s/%s)",
            session_id,
            session.total_pages,
            detected_language.code,
            detected_language.confidence,
        )
        return session

    def get(self, session_id: str) -> DocumentSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def touch(self, session_id: str) -> DocumentSession:
        session = self.get(session_id)
        session.last_access = self._clock()
        return session

    def delete(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        _remove_tree(session.audio_dir)
        logger.info("Session cleaned: %s", session_id)
        return True

    def evict_idle(self, now: Optional[float] = None) -> list[str]:
        """Delete sessions idle for longer than the timeout and return their ids."""

        reference = self._clock() if now is None else now
        with self._lock:
            expired = [
                session_id
                for session_id, session in self._sessions.items()
                if reference - session.last_access > self._idle_timeout
            ]
        return [session_id for session_id in expired if self.delete(session_id)]

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


def _remove_tree(path: Path) -> None:
    # Files may still be in flight for a stream that is winding down
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Failed to delete %s: %s", path, exc)
        shutil.rmtree(path, ignore_errors=True)


__all__ = ["Clock", "DocumentSession", "SessionNotFoundError", "SessionStore"]
