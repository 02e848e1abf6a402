# recipe_match/application/retry.py
from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Tuple, Type, TypeVar

import anyio

from recipe_match.core.errors import IndexUnavailable, ServiceDegraded, StoreUnavailable

log = logging.getLogger("app.retry")

T = TypeVar("T")

RETRYABLE: Tuple[Type[BaseException], ...] = (IndexUnavailable, StoreUnavailable)


async def run_blocking(fn: Callable[..., T], *args: Any) -> T:
    # abandoned (not awaited) when the request deadline cancels us
    return await anyio.to_thread.run_sync(functools.partial(fn, *args), abandon_on_cancel=True)


async def with_retry(
    fn: Callable[..., T],
    *args: Any,
    attempts: int = 3,
    base_delay_s: float = 0.05,
    max_delay_s: float = 0.5,
    what: str = "index",
) -> T:
    """Run an idempotent blocking call, retrying infrastructure errors with
    exponential backoff. Raises ServiceDegraded once attempts run out."""
    delay = base_delay_s
    attempt = 1
    while True:
        try:
            return await run_blocking(fn, *args)
        except RETRYABLE as e:
            if attempt >= attempts:
                log.error("%s call failed after %d attempts: %s", what, attempt, e)
                raise ServiceDegraded(f"{what} temporarily unavailable, try again") from e
            log.warning("%s call failed (attempt %d/%d), retrying in %.3fs: %s", what, attempt, attempts, delay, e)
            await anyio.sleep(delay)
            delay = min(delay * 2, max_delay_s)
            attempt += 1
