"""Join MP3 segment files into a single file.

MP3 frames are self-contained, so ordered byte concatenation produces a
playable file without re-encoding. No resampling or cross-fading is done.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Sequence

logger = logging.getLogger(__name__)


class AudioMergeError(RuntimeError):
    pass


def merge_audio_files(chunk_paths: Sequence[Path], output_path: Path) -> Path:
    """Concatenate ``chunk_paths`` in order into ``output_path``."""

    if not chunk_paths:
        raise AudioMergeError("No audio chunks to merge")

    missing = [path for path in chunk_paths if not path.is_file()]
    if missing:
        raise AudioMergeError(f"Audio chunk not found: {missing[0].name}")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with output_path.open("wb") as merged:
            for path in chunk_paths:
                with path.open("rb") as chunk:
                    shutil.copyfileobj(chunk, merged)
    except OSError as exc:
        output_path.unlink(missing_ok=True)
        raise AudioMergeError(f"Audio merge failed: {exc}") from exc

    size_mb = output_path.stat().st_size / (1024 * 1024)
    logger.info(
        "Merged %d chunk(s) into %s (%.2f MB)", len(chunk_paths), output_path.name, size_mb
    )
    return output_path


def cleanup_chunks(chunk_paths: Sequence[Path]) -> int:
    """Delete temporary chunk files, ignoring the ones that cannot be removed."""

    cleaned = 0
    for path in chunk_paths:
        try:
            if path.exists():
                path.unlink()
                cleaned += 1
        except OSError:
            logger.warning("Could not delete chunk %s", path.name)
    if cleaned:
        logger.debug("Cleaned up %d temp chunk(s)", cleaned)
    return cleaned


__all__ = ["AudioMergeError", "cleanup_chunks", "merge_audio_files"]
