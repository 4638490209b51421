"""Retry with exponential backoff for booking API calls."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, TypeVar

from .errors import UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_HTTP_CODES = {429, 500, 502, 503, 504}


async def retry_async(
    fn: Callable[..., Any],
    *args,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    label: str = "api_call",
    **kwargs,
) -> Any:
    """Call fn with retries and exponential backoff.

    fn may be a plain callable or return an awaitable.
    Retries on transient errors (rate limits, server errors, network issues).
    Non-retryable errors (auth, bad request, not found) are raised immediately.
    """
    last_exc = None
    for attempt in range(max_retries + 1):
        try:
            result = fn(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as exc:
            last_exc = exc
            if not _is_retryable(exc) or attempt == max_retries:
                raise
            delay = min(base_delay * (2 ** attempt), max_delay)
            logger.warning(
                "%s failed (attempt %d/%d): %s. Retrying in %.1fs",
                label, attempt + 1, max_retries + 1, exc, delay,
            )
            await asyncio.sleep(delay)

    raise last_exc  # type: ignore[misc]


def _is_retryable(exc: Exception) -> bool:
    """Check if an exception is transient and worth retrying."""
    if isinstance(exc, UpstreamError):
        return exc.status is None or exc.status in TRANSIENT_HTTP_CODES

    if isinstance(exc, (ConnectionError, TimeoutError, OSError)):
        return True

    return False
