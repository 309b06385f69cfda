from __future__ import annotations

from readaloud.reading.registry import StreamRegistry


def test_cancel_session_only_touches_that_session() -> None:
    registry = StreamRegistry()
    first = registry.open("s1")
    second = registry.open("s1")
    other = registry.open("s2")

    assert registry.cancel_session("s1") == 2

    assert not first.active
    assert not second.active
    assert other.active
    # Already cancelled streams are not counted twice
    assert registry.cancel_session("s1") == 0


def test_release_and_lookup() -> None:
    registry = StreamRegistry()
    handle = registry.open("s1")

    assert handle.stream_id.startswith("s1-")
    assert registry.get(handle.stream_id) is handle
    assert registry.streams_for("s1") == [handle]

    registry.release(handle)

    assert registry.get(handle.stream_id) is None
    assert len(registry) == 0
    assert registry.cancel(handle.stream_id) is False


def test_cancel_is_idempotent() -> None:
    registry = StreamRegistry()
    handle = registry.open("s1")

    assert registry.cancel(handle.stream_id) is True
    handle.cancel()

    assert handle.active is False


def test_cancel_all() -> None:
    registry = StreamRegistry()
    handles = [registry.open(f"s{i}") for i in range(3)]

    assert registry.cancel_all() == 3
    assert not any(h.active for h in handles)
