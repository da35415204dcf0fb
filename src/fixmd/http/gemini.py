"""Gemini `generateContent` client used as the Markdown transform service."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from fixmd.config import GeminiSettings
from fixmd.http.base import TransientTransformError

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0
SYSTEM_PROMPT = (
    "You are an API for formatting and fixing spelling mistakes in a markdown file passed to "
    "you. Your two main focuses are DO NOT CHANGE the actual content or meaning of the file "
    "whatsoever, only rectify the grammar and make it beautifully well formatted in markdown, "
    "utilising all markdown tools. Nothing more. Ensure your response is PURELY the file, as "
    "it is being used directly in the program. Do not say here you go: or anything, and do not "
    "embed in code blocks."
)
_PREVIEW_CHARS = 300


class GeminiTransformClient:
    """Single-attempt Gemini call; every failure surfaces as a transient error."""

    def __init__(
        self,
        settings: GeminiSettings,
        *,
        prompt: str = SYSTEM_PROMPT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._url = settings.api_url
        self._api_key = settings.api_key
        self._prompt = prompt
        self._client = httpx.Client(
            timeout=httpx.Timeout(
                settings.request_timeout_seconds,
                connect=min(DEFAULT_CONNECT_TIMEOUT_SECONDS, settings.request_timeout_seconds),
            ),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    def transform(self, content: str) -> str:
        try:
            response = self._client.post(
                self._url,
                params={"key": self._api_key},
                json=build_request_body(self._prompt, content),
            )
        except httpx.TimeoutException as exc:
            raise TransientTransformError(
                message=f"Gemini request timed out: {exc}",
                code="timeout",
            ) from exc
        except httpx.HTTPError as exc:
            raise TransientTransformError(
                message=f"Gemini transport error: {exc}",
                code="transport",
            ) from exc

        if not response.is_success:
            raise TransientTransformError(
                message=(
                    f"API returned error status: {response.status_code}, "
                    f"body: {response.text[:_PREVIEW_CHARS]}"
                ),
                code=str(response.status_code),
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransientTransformError(
                message=f"Malformed Gemini response body: {exc}",
                code="malformed",
                status_code=response.status_code,
            ) from exc

        return extract_candidate_text(payload)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GeminiTransformClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def build_request_body(prompt: str, content: str) -> dict[str, Any]:
    """Build a role-tagged request with the instruction preamble and file content."""

    return {
        "contents": [
            {
                "role": "user",
                "parts": [{"text": prompt}, {"text": content}],
            },
        ],
    }


def extract_candidate_text(payload: object) -> str:
    """Return the first text part of the first candidate."""

    if not isinstance(payload, dict):
        raise TransientTransformError(message="Malformed Gemini response body", code="malformed")
    candidates = payload.get("candidates")
    if candidates is not None and not isinstance(candidates, list):
        raise TransientTransformError(message="Malformed Gemini candidates", code="malformed")
    if not candidates:
        raise TransientTransformError(message="no valid response from API", code="empty")

    first = candidates[0]
    content = first.get("content") if isinstance(first, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not parts:
        raise TransientTransformError(message="no valid response from API", code="empty")

    text = parts[0].get("text") if isinstance(parts[0], dict) else None
    if not isinstance(text, str):
        raise TransientTransformError(message="Malformed Gemini content part", code="malformed")
    logger.debug("Gemini returned %d chars across %d candidate(s)", len(text), len(candidates))
    return text
