from __future__ import annotations

import httpx
import pytest

from readaloud.config import Settings
from readaloud.services.translation_service import (
    TranslationError,
    TranslationRateLimitedError,
    TranslationService,
    _split_batches,
)

pytestmark = pytest.mark.anyio


def _gtx_payload(*parts: str) -> list:
    return [[[part, "source", None, None] for part in parts], None, "en"]


def _service(handler, **overrides) -> tuple[TranslationService, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(record))
    settings = Settings(**overrides)
    return TranslationService(settings, client=client), requests


async def test_translate_joins_sentence_parts() -> None:
    service, requests = _service(
        lambda request: httpx.Response(200, json=_gtx_payload("Namaste ", "duniya."))
    )

    result = await service.translate("Hello world.", "hi", source_language="en")

    assert result == "Namaste duniya."
    params = requests[0].url.params
    assert params["tl"] == "hi"
    assert params["sl"] == "en"
    assert params["client"] == "gtx"
    assert params["q"] == "Hello world."


async def test_source_defaults_to_auto() -> None:
    service, requests = _service(
        lambda request: httpx.Response(200, json=_gtx_payload("Vanakkam"))
    )

    await service.translate("Hello", "ta")

    assert requests[0].url.params["sl"] == "auto"


async def test_rate_limit_is_distinguishable() -> None:
    service, _ = _service(lambda request: httpx.Response(429))

    with pytest.raises(TranslationRateLimitedError):
        await service.translate("Hello", "hi")


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={}),
        httpx.Response(200, json=_gtx_payload("")),
    ],
)
async def test_provider_failures_raise_translation_error(response) -> None:
    service, _ = _service(lambda request: response)

    with pytest.raises(TranslationError) as excinfo:
        await service.translate("Hello", "hi")
    assert not isinstance(excinfo.value, TranslationRateLimitedError)


async def test_cache_is_scoped_to_session() -> None:
    service, requests = _service(
        lambda request: httpx.Response(200, json=_gtx_payload("Namaste"))
    )
    key = ("session-1", 0, 0, 5, "hi")

    assert await service.translate("Hello", "hi", cache_key=key) == "Namaste"
    assert await service.translate("Hello", "hi", cache_key=key) == "Namaste"
    assert len(requests) == 1

    assert service.clear_session("session-2") == 0
    assert service.clear_session("session-1") == 1

    await service.translate("Hello", "hi", cache_key=key)
    assert len(requests) == 2


async def test_long_text_is_sent_in_batches() -> None:
    service, requests = _service(
        lambda request: httpx.Response(200, json=_gtx_payload("ok")),
        translation_max_chars=100,
    )
    text = "This sentence is about forty characters. " * 6

    result = await service.translate(text, "hi")

    assert len(requests) > 1
    assert all(len(r.url.params["q"]) <= 100 for r in requests)
    assert result == " ".join(["ok"] * len(requests))


async def test_blank_text_is_not_sent() -> None:
    service, requests = _service(lambda request: httpx.Response(500))

    assert await service.translate("   ", "hi") == "   "
    assert requests == []


def test_split_batches_keeps_every_character() -> None:
    text = "One. Two! Three? " + "x" * 250
    batches = _split_batches(text, 100)

    assert "".join(batches) == text
    assert all(len(batch) <= 100 for batch in batches)


@pytest.mark.parametrize("text", [".5 percent of readers", "...and then it ended. Fine"])
def test_split_batches_keeps_leading_terminators(text) -> None:
    assert "".join(_split_batches(text, 100)) == text
