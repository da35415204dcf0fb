"""Shared test fixtures."""

from __future__ import annotations

import pytest

_ENV_VARS = (
    "GEMINI_API_KEY",
    "GEMINI_API_URL",
    "FIXMD_REQUEST_TIMEOUT_SECONDS",
    "FIXMD_MAX_ATTEMPTS",
    "FIXMD_INITIAL_BACKOFF_SECONDS",
    "FIXMD_MAX_BACKOFF_SECONDS",
    "FIXMD_MAX_CONCURRENT",
    "FIXMD_BACKUP_DIR",
    "FIXMD_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test without fixmd settings; values set by dotenv are undone too."""
    for name in _ENV_VARS:
        monkeypatch.setenv(name, "placeholder")
        monkeypatch.delenv(name)
