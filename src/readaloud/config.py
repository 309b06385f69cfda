"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    audio_dir: Path = Field(
        default_factory=lambda: Path("data/audio"),
        validation_alias=AliasChoices("AUDIO_DIR", "audio_dir"),
    )
    # URL prefix under which `audio_dir` is served
    public_audio_path: str = Field(
        default="/audio",
        validation_alias=AliasChoices("PUBLIC_AUDIO_PATH", "public_audio_path"),
    )
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:5174"],
        validation_alias=AliasChoices("CORS_ALLOW_ORIGINS", "cors_allow_origins"),
    )
    max_text_chars: int = Field(
        default=2_000_000,
        ge=1,
        validation_alias=AliasChoices("MAX_TEXT_CHARS", "max_text_chars"),
    )

    # Session lifecycle
    session_idle_timeout_seconds: float = Field(
        default=2 * 60 * 60,
        ge=1,
        validation_alias=AliasChoices(
            "SESSION_IDLE_TIMEOUT_SECONDS", "session_idle_timeout_seconds"
        ),
    )
    session_sweep_interval_seconds: float = Field(
        default=30 * 60,
        ge=1,
        validation_alias=AliasChoices(
            "SESSION_SWEEP_INTERVAL_SECONDS", "session_sweep_interval_seconds"
        ),
    )

    # Segment pipeline deadlines
    translate_timeout_seconds: float = Field(
        default=45.0,
        gt=0,
        validation_alias=AliasChoices(
            "TRANSLATE_TIMEOUT_SECONDS", "translate_timeout_seconds"
        ),
    )
    synthesize_timeout_seconds: float = Field(
        default=180.0,
        gt=0,
        validation_alias=AliasChoices(
            "SYNTHESIZE_TIMEOUT_SECONDS", "synthesize_timeout_seconds"
        ),
    )
    translation_rate_limit_delay_seconds: float = Field(
        default=2.0,
        ge=0,
        validation_alias=AliasChoices(
            "TRANSLATION_RATE_LIMIT_DELAY", "translation_rate_limit_delay_seconds"
        ),
    )

    # Translation collaborator
    translation_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl(
            "https://translate.googleapis.com/translate_a/single"
        ),
        validation_alias=AliasChoices("TRANSLATION_BASE_URL", "translation_base_url"),
    )
    translation_request_timeout: float = Field(
        default=30.0,
        ge=1,
        validation_alias=AliasChoices(
            "TRANSLATION_REQUEST_TIMEOUT", "translation_request_timeout"
        ),
    )
    translation_max_chars: int = Field(
        default=4500,
        ge=100,
        validation_alias=AliasChoices("TRANSLATION_MAX_CHARS", "translation_max_chars"),
    )

    # Speech synthesis collaborator
    tts_receive_timeout_seconds: int = Field(
        default=60,
        ge=1,
        validation_alias=AliasChoices(
            "TTS_RECEIVE_TIMEOUT_SECONDS", "tts_receive_timeout_seconds"
        ),
    )

    # Transport
    sse_send_timeout_seconds: float | None = Field(
        default=30.0,
        validation_alias=AliasChoices(
            "SSE_SEND_TIMEOUT_SECONDS", "sse_send_timeout_seconds"
        ),
    )
    sse_ping_seconds: int = Field(
        default=15,
        ge=1,
        validation_alias=AliasChoices("SSE_PING_SECONDS", "sse_ping_seconds"),
    )

    log_retention_hours: int = Field(
        default=48,
        ge=0,
        validation_alias=AliasChoices("LOG_RETENTION_HOURS", "log_retention_hours"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["PROJECT_ROOT", "Settings", "get_settings"]
