"""Translation collaborator backed by the public Google Translate endpoint."""

from __future__ import annotations

import logging
import re
from typing import Any, Hashable, Optional

import httpx

from ..config import Settings

logger = logging.getLogger(__name__)

_SENTENCES = re.compile(r"[.!?।]*[^.!?।]*(?:[.!?।]+|$)")


class TranslationError(RuntimeError):
    """Raised when the translation provider fails or returns garbage."""


class TranslationRateLimitedError(TranslationError):
    """Raised when the provider asks us to slow down (HTTP 429)."""


def _split_batches(text: str, max_chars: int) -> list[str]:
    """Group sentences into batches no longer than ``max_chars``."""

    sentences = [s for s in _SENTENCES.findall(text) if s.strip()] or [text]
    batches: list[str] = []
    batch = ""
    for sentence in sentences:
        while len(sentence) > max_chars:
            if batch.strip():
                batches.append(batch)
                batch = ""
            batches.append(sentence[:max_chars])
            sentence = sentence[max_chars:]
        if len(batch) + len(sentence) > max_chars:
            if batch.strip():
                batches.append(batch)
            batch = sentence
        else:
            batch += sentence
    if batch.strip():
        batches.append(batch)
    return batches


class TranslationService:
    """
    Translate text with an optional per-session cache.

    Cache keys are tuples whose first element is the session id so that a
    session teardown can drop every cached translation it produced.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = str(settings.translation_base_url)
        self._timeout = settings.translation_request_timeout
        self._max_chars = settings.translation_max_chars
        self._client = client
        self._owns_client = client is None
        self._cache: dict[tuple[Hashable, ...], str] = {}

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            logger.info("Created httpx.AsyncClient for translation")
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
            logger.info("Closed translation HTTP client")

    async def translate(
        self,
        text: str,
        target_language: str,
        *,
        source_language: Optional[str] = None,
        cache_key: Optional[tuple[Hashable, ...]] = None,
    ) -> str:
        """
        Translate ``text`` into ``target_language``.

        Args:
            text: Text to translate
            target_language: Target language code (e.g. "hi")
            source_language: Document-level source language hint; "auto" if None
            cache_key: Optional key; the first element must be the session id

        Raises:
            TranslationRateLimitedError: Provider responded with HTTP 429
            TranslationError: Any other provider failure
        """
        if not text.strip():
            return text

        cached = self._cache.get(cache_key) if cache_key is not None else None
        if cached is not None:
            logger.debug("Translation cache hit for %s", cache_key)
            return cached

        logger.info("Translating %d chars to %s", len(text), target_language)
        parts = [
            await self._request(batch, target_language, source_language)
            for batch in _split_batches(text, self._max_chars)
        ]
        translated = " ".join(part.strip() for part in parts if part.strip())
        if not translated:
            raise TranslationError("Translation provider returned empty text")

        if cache_key is not None:
            self._cache[cache_key] = translated
        return translated

    async def _request(
        self, text: str, target_language: str, source_language: Optional[str]
    ) -> str:
        params = {
            "client": "gtx",
            "sl": source_language or "auto",
            "tl": target_language,
            "dt": "t",
            "q": text,
        }
        try:
            response = await self._get_client().get(self._base_url, params=params)
        except httpx.HTTPError as exc:
            raise TranslationError(f"Translation request failed: {exc}") from exc

        if response.status_code == 429:
            raise TranslationRateLimitedError("Translation provider rate limited")
        if response.status_code >= 400:
            raise TranslationError(
                f"Translation provider returned HTTP {response.status_code}"
            )

        try:
            payload: Any = response.json()
            return "".join(
                part[0] for part in payload[0] if isinstance(part, list) and part and part[0]
            )
        except (ValueError, TypeError, IndexError, KeyError) as exc:
            raise TranslationError("Malformed translation response") from exc

    def clear_session(self, session_id: str) -> int:
        """Drop cached translations for ``session_id``."""

        # Snapshot the keys: teardown may run on a worker thread
        stale = [key for key in list(self._cache) if key and key[0] == session_id]
        for key in stale:
            self._cache.pop(key, None)
        return len(stale)


__all__ = [
    "TranslationError",
    "TranslationRateLimitedError",
    "TranslationService",
]
