"""Application factory for the read-aloud service."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager, suppress
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .config import PROJECT_ROOT, get_settings
from .logging_handlers import DateStampedFileHandler, cleanup_old_logs
from .reading import ReadingService
from .routers.documents import router as documents_router
from .routers.reading import router as reading_router

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _configure_logging() -> Path | None:
    """Configure logging from LOG_LEVEL / LOG_FILE. Returns the log directory, if any."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    handlers: list[logging.Handler] = []
    log_dir: Path | None = None

    log_file = os.getenv("LOG_FILE")
    if log_file:
        log_path = Path(log_file)
        if log_path.suffix:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler: logging.Handler = logging.FileHandler(log_path, encoding="utf-8")
        else:
            # A directory: one date-stamped file per process start
            log_dir = log_path
            file_handler = DateStampedFileHandler(log_path)
        file_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATEFMT))
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATEFMT))
    handlers.append(console_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    logging.getLogger("readaloud").setLevel(log_level)
    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)

    # edge-tts and httpx are chatty at INFO
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        logging.getLogger("edge_tts").setLevel(logging.WARNING)

    return log_dir


def create_app() -> FastAPI:
    log_dir = _configure_logging()

    settings = get_settings()

    def _resolve_under(base: Path, p: Path) -> Path:
        # Absolute paths are used as-is (tests and external mounts)
        if p.is_absolute():
            return p.resolve()
        resolved = (base / p).resolve()
        if not resolved.is_relative_to(base):
            raise ValueError(f"Configured path {resolved} escapes project root {base}")
        return resolved

    audio_dir = _resolve_under(PROJECT_ROOT, settings.audio_dir)
    audio_dir.mkdir(parents=True, exist_ok=True)

    reading_service = ReadingService(settings, audio_dir=audio_dir)
    sweep_interval = settings.session_sweep_interval_seconds
    sweep_task: asyncio.Task | None = None

    def _housekeeping(service: ReadingService) -> None:
        service.sweep_idle()
        if log_dir is not None:
            cleanup_old_logs([log_dir], settings.log_retention_hours, logger)

    async def _sweep_loop(service: ReadingService) -> None:
        while True:
            await asyncio.sleep(sweep_interval)
            try:
                await asyncio.to_thread(_housekeeping, service)
            except Exception as exc:
                logger.warning("Session sweep failed: %s", exc)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        nonlocal sweep_task
        service: ReadingService = app.state.reading_service
        sweep_task = asyncio.create_task(_sweep_loop(service))
        try:
            yield
        finally:
            sweep_task.cancel()
            with suppress(asyncio.CancelledError):
                await sweep_task
            try:
                await asyncio.wait_for(service.shutdown(), timeout=10.0)
            except asyncio.TimeoutError:
                logger.warning("Reading service shutdown timed out after 10s")
            except Exception as exc:
                logger.warning("Error during reading service shutdown: %s", exc)

    app = FastAPI(
        title="Read-Aloud Backend",
        version="0.1.0",
        description="Streaming translate-and-read-aloud service for documents.",
        lifespan=lifespan,
    )

    app.state.reading_service = reading_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(documents_router)
    app.include_router(reading_router)
    app.mount(
        settings.public_audio_path.rstrip("/") or "/audio",
        StaticFiles(directory=audio_dir),
        name="audio",
    )

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, str | int]:
        service: ReadingService = app.state.reading_service
        return {
            "status": "ok",
            "sessions": len(service.store),
            "streams": len(service.registry),
        }

    return app


__all__ = ["create_app"]
