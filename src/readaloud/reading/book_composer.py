"""Whole-document audiobook composition."""

from __future__ import annotations

import asyncio
import logging
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path

from ..services.audio_merge import cleanup_chunks, merge_audio_files
from ..services.segment_pipeline import SegmentPipeline, TranslationPlan
from ..services.session_store import DocumentSession
from ..services.text_segmenter import BATCH, segment_text

logger = logging.getLogger(__name__)


class BookCompositionError(RuntimeError):
    """The audiobook could not be produced. No partial file is left behind."""


@dataclass
class ComposedBook:
    audio_path: Path
    segments: int
    size_bytes: int


class BookComposer:
    """
    Read a whole document into one MP3 file.

    Segments are processed sequentially in reading order at batch
    granularity. Unlike streaming reads this is all-or-nothing: the first
    terminal segment failure aborts the job and removes every artifact it
    produced.
    """

    def __init__(self, pipeline: SegmentPipeline) -> None:
        self._pipeline = pipeline

    async def compose(self, session: DocumentSession, plan: TranslationPlan) -> ComposedBook:
        token = uuid.uuid4().hex[:8]
        work_dir = session.audio_dir / f"book_{plan.target_language}_{token}"
        output_path = session.audio_dir / f"book_{plan.target_language}_{token}.mp3"
        work_dir.mkdir(parents=True, exist_ok=True)

        chunk_paths: list[Path] = []
        try:
            for page_index, page_text in enumerate(session.pages):
                segments = segment_text(page_text, 0, BATCH)
                logger.info(
                    "Audiobook page %d/%d: %d segment(s)",
                    page_index + 1,
                    session.total_pages,
                    len(segments),
                )
                for index, segment in enumerate(segments):
                    chunk_path = work_dir / f"p{page_index:04d}_{index:04d}.mp3"
                    await self._pipeline.process(
                        segment,
                        plan,
                        chunk_path,
                        cache_key=(
                            session.id,
                            "book",
                            page_index,
                            segment.char_start,
                            segment.char_end,
                            plan.target_language,
                        ),
                    )
                    chunk_paths.append(chunk_path)

            await asyncio.to_thread(merge_audio_files, chunk_paths, output_path)
        except Exception as exc:
            await asyncio.to_thread(_abandon, work_dir, output_path)
            logger.error("Audiobook generation failed for session %s: %s", session.id, exc)
            raise BookCompositionError(f"Audiobook generation failed: {exc}") from exc

        await asyncio.to_thread(_discard_work, chunk_paths, work_dir)

        size = output_path.stat().st_size
        logger.info(
            "Audiobook ready: %s (%d segment(s), %d bytes)",
            output_path.name,
            len(chunk_paths),
            size,
        )
        return ComposedBook(audio_path=output_path, segments=len(chunk_paths), size_bytes=size)


def _discard_work(chunk_paths: list[Path], work_dir: Path) -> None:
    cleanup_chunks(chunk_paths)
    shutil.rmtree(work_dir, ignore_errors=True)


def _abandon(work_dir: Path, output_path: Path) -> None:
    shutil.rmtree(work_dir, ignore_errors=True)
    try:
        output_path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove partial audiobook %s: %s", output_path, exc)


__all__ = ["BookComposer", "BookCompositionError", "ComposedBook"]
