#!/usr/bin/env python3
"""Read Along CLI - terminal client for the read-aloud backend.

Sends a text file to the server, streams one page at a time over SSE and
follows along with word highlighting. Audio is not played locally: playback
is simulated from the word timings so the highlighting advances in real time.
"""

import argparse
import asyncio
import os
import signal
import sys
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.style import Style
from rich.text import Text

from readaloud.client import PlaybackScheduler, ReaderAPIError, ReaderClient
from readaloud.schemas.events import ChunkReadyEvent
from readaloud.services.text_cleaner import (
    clean_text,
    normalize_pages,
    split_into_pages,
)

HIGHLIGHT_STYLE = Style(color="black", bgcolor="bright_yellow", bold=True)
ERROR_STYLE = Style(color="red", bold=True)
INFO_STYLE = Style(color="cyan")

TICK_SECONDS = 0.05


class SimulatedPlayer:
    """Clock-driven stand-in for an audio device."""

    def __init__(self) -> None:
        self._started: Optional[float] = None
        self._paused_at: Optional[float] = None
        self._duration_ms = 0.0
        self.audio_ref: Optional[str] = None

    def load_duration(self, chunk: ChunkReadyEvent) -> None:
        timings = chunk.word_timings
        self._duration_ms = timings[-1].end_ms + 300 if timings else 1000.0

    def play(self, audio_ref: str) -> None:
        self.audio_ref = audio_ref
        self._started = time.monotonic()
        self._paused_at = None

    def pause(self) -> None:
        if self._paused_at is None:
            self._paused_at = time.monotonic()

    def resume(self) -> None:
        if self._paused_at is not None and self._started is not None:
            self._started += time.monotonic() - self._paused_at
            self._paused_at = None

    def release(self) -> None:
        self._started = None
        self.audio_ref = None

    def position_ms(self) -> float:
        if self._started is None:
            return 0.0
        now = self._paused_at or time.monotonic()
        return (now - self._started) * 1000

    @property
    def ended(self) -> bool:
        return self._started is not None and self.position_ms() >= self._duration_ms


class TerminalHighlighter:
    def __init__(self, page_text: str) -> None:
        self.page_text = page_text
        self.span: Optional[tuple[int, int]] = None

    def highlight(self, char_start: int, char_end: int) -> None:
        self.span = (char_start, char_end)

    def render(self, status: str) -> Panel:
        text = Text(self.page_text)
        if self.span is not None:
            text.stylize(HIGHLIGHT_STYLE, *self.span)
        return Panel(text, title=status, border_style="cyan")


class ReadAlong:
    """Terminal read-along session."""

    def __init__(
        self,
        server_url: str,
        language: str,
        *,
        speed: float = 1.0,
        voice_gender: str = "female",
    ) -> None:
        self.client = ReaderClient(server_url)
        self.language = language
        self.speed = speed
        self.voice_gender = voice_gender
        self.console = Console()
        self.session_id: Optional[str] = None
        self._stop_tasks: set[asyncio.Task] = set()

    async def _check_health(self) -> bool:
        try:
            data = await self.client.health()
        except Exception as e:
            self.console.print(f"Cannot connect to backend: {e}", style=ERROR_STYLE)
            return False
        self.console.print(f"[dim]Connected ({data.get('sessions', 0)} active session(s))[/dim]")
        return True

    def _request_stop(self) -> None:
        if self.session_id is None:
            return
        task = asyncio.get_running_loop().create_task(self.client.stop_reading(self.session_id))
        self._stop_tasks.add(task)
        task.add_done_callback(self._stop_tasks.discard)

    async def _read_page(self, page_index: int, page_text: str) -> None:
        assert self.session_id is not None
        player = SimulatedPlayer()
        highlighter = TerminalHighlighter(page_text)
        scheduler = PlaybackScheduler(
            player,
            highlighter,
            on_stop=self._request_stop,
            page_text=page_text,
        )

        async def consume() -> None:
            async for event in self.client.stream_read(
                self.session_id,
                self.language,
                page_index,
                speed=self.speed,
                voice_gender=self.voice_gender,
            ):
                scheduler.handle_event(event)
                if isinstance(event, ChunkReadyEvent) and scheduler.current is event:
                    player.load_duration(event)

        consumer = asyncio.create_task(consume())
        title = f"Page {page_index + 1} [{self.language}]"
        try:
            with Live(highlighter.render(title), console=self.console, refresh_per_second=20) as live:
                while True:
                    if player.ended:
                        scheduler.on_ended()
                        if scheduler.current is not None:
                            player.load_duration(scheduler.current)
                    scheduler.tick()
                    live.update(highlighter.render(f"{title} - {scheduler.state.value}"))
                    if consumer.done() and scheduler.current is None and not scheduler.pending:
                        break
                    await asyncio.sleep(TICK_SECONDS)
        except (KeyboardInterrupt, asyncio.CancelledError):
            scheduler.stop()
            raise
        finally:
            if not consumer.done():
                consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass
            except ReaderAPIError as e:
                self.console.print(f"Error: {e}", style=ERROR_STYLE)

        for message in scheduler.errors:
            self.console.print(f"[dim]Skipped segment: {message}[/dim]")

    async def run(self, path: Path, first_page: int = 0) -> None:
        if not await self._check_health():
            return

        text = path.read_text(encoding="utf-8")
        # Send our own pagination so that server offsets match the displayed text
        pages = normalize_pages(split_into_pages(clean_text(text)))
        try:
            info = await self.client.process_text(text, pages)
        except ReaderAPIError as e:
            self.console.print(f"Error: {e}", style=ERROR_STYLE)
            return

        self.session_id = info["sessionId"]
        detected = info["detectedLanguage"]
        self.console.print(
            f"{path.name}: {info['totalPages']} page(s), "
            f"detected {detected['name']} ({detected['confidence']})",
            style=INFO_STYLE,
        )

        try:
            for page_index in range(first_page, min(len(pages), info["totalPages"])):
                await self._read_page(page_index, pages[page_index])
        finally:
            await self.client.delete_session(self.session_id)
            await self.client.aclose()


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Read Along - follow a document being read aloud",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  read-along notes.txt                        Read in the detected language
  read-along notes.txt --language hi          Translate to Hindi while reading
  read-along notes.txt --server http://pi:8000

Environment Variables:
  READALOUD_SERVER    Default server URL
""",
    )
    parser.add_argument("file", type=Path, help="UTF-8 text file to read")
    parser.add_argument(
        "--server",
        "-s",
        default=os.environ.get("READALOUD_SERVER", "http://localhost:8000"),
        help="Backend server URL (default: http://localhost:8000)",
    )
    parser.add_argument("--language", "-l", default="en", help="Target language code")
    parser.add_argument("--page", type=int, default=1, help="First page to read (1-based)")
    parser.add_argument("--speed", type=float, default=1.0, help="Speech speed 0.5-2.0")
    parser.add_argument("--voice", choices=("female", "male"), default="female")

    args = parser.parse_args()

    def signal_handler(sig, frame):
        print("\nExiting...")
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)

    reader = ReadAlong(args.server, args.language, speed=args.speed, voice_gender=args.voice)
    try:
        asyncio.run(reader.run(args.file, max(args.page - 1, 0)))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
