"""Runtime configuration for the Markdown fixing pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from dotenv import load_dotenv

ENV_FILE = ".env"
DEFAULT_GEMINI_API_URL = (
    "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent"
)
_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(slots=True)
class GeminiSettings:
    """Remote transform service settings."""

    api_key: str = ""
    api_url: str = DEFAULT_GEMINI_API_URL
    request_timeout_seconds: float = 30.0


@dataclass(slots=True)
class RetrySettings:
    """Backoff policy for transient transform failures."""

    max_attempts: int = 5
    initial_backoff_seconds: float = 1.0
    max_backoff_seconds: float = 30.0


@dataclass(slots=True)
class BatchSettings:
    """Scheduling and backup settings for one batch run."""

    max_concurrent: int = 3
    backup_dir: Path = Path("backup")
    backup_suffix: str = ".bak"


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    gemini: GeminiSettings = field(default_factory=GeminiSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    batch: BatchSettings = field(default_factory=BatchSettings)
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, env_file: str | Path | None = ENV_FILE) -> Settings:
        """Load settings from `.env` (if present) and the process environment."""

        if env_file is not None:
            load_dotenv(env_file, override=False)

        return cls(
            gemini=GeminiSettings(
                api_key=os.getenv("GEMINI_API_KEY", "").strip(),
                api_url=os.getenv("GEMINI_API_URL", "").strip() or DEFAULT_GEMINI_API_URL,
                request_timeout_seconds=_env_float("FIXMD_REQUEST_TIMEOUT_SECONDS", 30.0),
            ),
            retry=RetrySettings(
                max_attempts=_env_int("FIXMD_MAX_ATTEMPTS", 5),
                initial_backoff_seconds=_env_float("FIXMD_INITIAL_BACKOFF_SECONDS", 1.0),
                max_backoff_seconds=_env_float("FIXMD_MAX_BACKOFF_SECONDS", 30.0),
            ),
            batch=BatchSettings(
                max_concurrent=_env_int("FIXMD_MAX_CONCURRENT", 3),
                backup_dir=Path(os.getenv("FIXMD_BACKUP_DIR", "backup")),
            ),
            log_level=os.getenv("FIXMD_LOG_LEVEL", "WARNING").strip().upper() or "WARNING",
        )

    def validate(self) -> None:
        """Raise configuration error before any file I/O happens."""

        if not self.gemini.api_key:
            raise ValueError(
                "GEMINI_API_KEY not found in environment variables or .env file. "
                "Set it in .env or export it before running.",
            )
        _validate_api_url(self.gemini.api_url)
        if self.gemini.request_timeout_seconds <= 0:
            raise ValueError("FIXMD_REQUEST_TIMEOUT_SECONDS must be > 0.")
        if self.retry.max_attempts <= 0:
            raise ValueError("FIXMD_MAX_ATTEMPTS must be a positive integer.")
        if self.retry.initial_backoff_seconds <= 0:
            raise ValueError("FIXMD_INITIAL_BACKOFF_SECONDS must be > 0.")
        if self.retry.max_backoff_seconds < self.retry.initial_backoff_seconds:
            raise ValueError(
                "FIXMD_MAX_BACKOFF_SECONDS must be >= FIXMD_INITIAL_BACKOFF_SECONDS.",
            )
        if self.batch.max_concurrent <= 0:
            raise ValueError("FIXMD_MAX_CONCURRENT must be a positive integer.")
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"Invalid FIXMD_LOG_LEVEL: {self.log_level!r}")

    def backup_root(self, work_dir: Path) -> Path:
        """Resolve the backup root against the working directory."""

        if self.batch.backup_dir.is_absolute():
            return self.batch.backup_dir
        return work_dir / self.batch.backup_dir


def _validate_api_url(value: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(
            "Invalid GEMINI_API_URL: "
            f"{value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as error:
        raise ValueError(f"Invalid float value for {name}: {value!r}") from error
