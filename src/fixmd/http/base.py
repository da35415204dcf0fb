"""Common transform service contracts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(slots=True)
class TransformError(Exception):
    """Base transform call error."""

    message: str
    code: str = "transform_error"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class TransientTransformError(TransformError):
    """Retryable failure of a single remote transform attempt."""

    status_code: int | None = None


@dataclass(slots=True)
class RetriesExhaustedError(TransformError):
    """Terminal failure after the whole retry budget was spent."""

    attempts: int = 0
    last_error: TransformError | None = None


@runtime_checkable
class Transformer(Protocol):
    """Opaque text-to-text transformation."""

    def transform(self, content: str) -> str:
        """Return transformed content or raise `TransformError`."""
        raise NotImplementedError
