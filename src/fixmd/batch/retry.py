"""Bounded exponential backoff with jitter around an unreliable transform call."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass

from fixmd.batch.models import RetryState
from fixmd.config import RetrySettings
from fixmd.http.base import RetriesExhaustedError, TransformError, Transformer

logger = logging.getLogger(__name__)

JITTER_RATIO = 0.2


@dataclass(frozen=True, slots=True)
class RetryResult:
    """Successful transform output and the attempt that produced it."""

    text: str
    attempts: int


def base_backoff_delay(
    attempt: int,
    *,
    initial_delay_seconds: float,
    max_delay_seconds: float,
) -> float:
    """Delay after 0-indexed `attempt` before jitter: min(initial * 2**n, max)."""

    return min(initial_delay_seconds * (2**attempt), max_delay_seconds)


def compute_backoff_delay(
    attempt: int,
    *,
    initial_delay_seconds: float,
    max_delay_seconds: float,
    rng: random.Random,
    jitter_ratio: float = JITTER_RATIO,
) -> float:
    base = base_backoff_delay(
        attempt,
        initial_delay_seconds=initial_delay_seconds,
        max_delay_seconds=max_delay_seconds,
    )
    return base * (1 + rng.uniform(-jitter_ratio, jitter_ratio))


class RetryingTransformClient:
    """Retries transient transform failures up to a fixed attempt budget.

    Only `TransformError` is retried. Anything else is a programming error and
    propagates immediately.
    """

    def __init__(
        self,
        transformer: Transformer,
        *,
        max_attempts: int = 5,
        initial_delay_seconds: float = 1.0,
        max_delay_seconds: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        self.transformer = transformer
        self.max_attempts = max_attempts
        self.initial_delay_seconds = initial_delay_seconds
        self.max_delay_seconds = max_delay_seconds
        self._sleep = sleep
        self._random = rng or random.Random()  # noqa: S311

    @classmethod
    def from_settings(
        cls,
        transformer: Transformer,
        settings: RetrySettings,
    ) -> RetryingTransformClient:
        return cls(
            transformer,
            max_attempts=settings.max_attempts,
            initial_delay_seconds=settings.initial_backoff_seconds,
            max_delay_seconds=settings.max_backoff_seconds,
        )

    def transform(self, content: str) -> str:
        return self.execute(content).text

    def execute(self, content: str) -> RetryResult:
        """Run the attempt loop, raising `RetriesExhaustedError` on exhaustion."""

        state = RetryState()
        while state.attempt < self.max_attempts:
            try:
                text = self.transformer.transform(content)
            except TransformError as exc:
                state.last_error = exc
            else:
                return RetryResult(text=text, attempts=state.attempt + 1)

            if state.attempt + 1 >= self.max_attempts:
                state.attempt += 1
                break

            state.next_delay_seconds = compute_backoff_delay(
                state.attempt,
                initial_delay_seconds=self.initial_delay_seconds,
                max_delay_seconds=self.max_delay_seconds,
                rng=self._random,
            )
            logger.warning(
                "Transform attempt %d/%d failed (%s); retrying in %.2fs",
                state.attempt + 1,
                self.max_attempts,
                state.last_error,
                state.next_delay_seconds,
            )
            self._sleep(state.next_delay_seconds)
            state.attempt += 1

        last_error = state.last_error
        raise RetriesExhaustedError(
            message=f"max retries exceeded after {state.attempt} attempts: {last_error}",
            code="retries_exhausted",
            attempts=state.attempt,
            last_error=last_error if isinstance(last_error, TransformError) else None,
        ) from last_error
