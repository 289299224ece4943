"""Retry with exponential backoff for calls to external services."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

import httpx
import openai

from voice_logger.domain.errors import TransportError, VoiceLoggerError

T = TypeVar("T")

_logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    """Retries rate-limited and server-side failures with jittered backoff.

    The delay before retry ``n`` (starting at 0) is
    ``base_delay_seconds * 2**n`` scaled by a random factor drawn from
    ``jitter``. Client errors are not retried. Anything that still fails is
    raised as :class:`TransportError` with the original exception chained.
    """

    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    jitter: tuple[float, float] = (0.75, 1.25)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    random_factor: Callable[[float, float], float] = field(default=random.uniform)

    async def call(self, func: Callable[[], Awaitable[T]], *, action: str) -> T:
        """Await ``func()`` until it succeeds or the policy gives up."""
        attempt = 0
        while True:
            try:
                return await func()
            except VoiceLoggerError:
                raise
            except Exception as exc:
                status_code = status_code_from_exception(exc)
                attempt += 1
                retryable = is_retryable(exc)
                _logger.warning(
                    "%s failed (attempt %s/%s, status=%s): %s",
                    action,
                    attempt,
                    self.max_attempts,
                    status_code if status_code is not None else "n/a",
                    exc,
                )
                if not retryable or attempt >= self.max_attempts:
                    raise TransportError(
                        f"{action} failed: {exc}", status_code=status_code
                    ) from exc
                await self.sleep(self.delay_for(attempt - 1))

    def delay_for(self, retry_index: int) -> float:
        """Backoff delay in seconds before the given retry."""
        low, high = self.jitter
        return self.base_delay_seconds * (2**retry_index) * self.random_factor(
            low, high
        )


def is_retryable(exc: Exception) -> bool:
    """Rate limits, server errors and connection problems are retryable."""
    if isinstance(exc, openai.APIConnectionError | httpx.TransportError):
        return True
    status_code = status_code_from_exception(exc)
    if status_code is None:
        return False
    return status_code == 429 or status_code >= 500


def status_code_from_exception(exc: Exception) -> int | None:
    """Extract an HTTP status code from an exception, if available."""
    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        return status_code
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return status_code
    return None
