"""Bounded retry with linear backoff for venue reads."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from basisbot.errors import PriceUnavailableError, RetryExhaustedError, VenueRequestError


LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]

RETRYABLE_ERRORS: Tuple[Type[BaseException], ...] = (VenueRequestError, PriceUnavailableError)


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    base_delay: float,
    sleep: Sleep = asyncio.sleep,
    description: str = "operation",
    retry_on: Tuple[Type[BaseException], ...] = RETRYABLE_ERRORS,
) -> T:
    """Call ``fn`` up to ``attempts`` times, waiting ``base_delay * attempt`` between tries."""

    if attempts < 1:
        raise ValueError("attempts must be >= 1")
    last_error: BaseException | None = None
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except retry_on as exc:
            last_error = exc
            if attempt >= attempts:
                break
            delay = base_delay * attempt
            LOGGER.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                description,
                attempt,
                attempts,
                exc,
                delay,
            )
            await sleep(delay)
    assert last_error is not None
    raise RetryExhaustedError(
        f"{description} failed after {attempts} attempts: {last_error}",
        attempts=attempts,
        last_error=last_error,
    ) from last_error


__all__ = ["RETRYABLE_ERRORS", "Sleep", "retry_async"]
