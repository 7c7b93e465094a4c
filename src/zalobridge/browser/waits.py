"""Bounded waits for browser operations.

Playwright calls can hang on a stuck page; every protocol run is wrapped
in :func:`bounded` so expiry becomes an ``OperationTimeoutError`` instead
of a request that never returns.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TYPE_CHECKING, TypeVar

from zalobridge.browser.selectors import SelectorCascade, SelectorMatch, first_match
from zalobridge.exceptions import OperationTimeoutError

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def bounded(awaitable: Awaitable[T], timeout_seconds: float, operation: str) -> T:
    """Await *awaitable*, raising ``OperationTimeoutError`` after *timeout_seconds*.

    A non-positive timeout disables the bound.
    """
    if timeout_seconds <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError as exc:
        logger.error("%s timed out after %.1fs", operation, timeout_seconds)
        raise OperationTimeoutError(operation, timeout_seconds) from exc


async def settle(page: Page, ms: int) -> None:
    """Give the page *ms* milliseconds to finish an asynchronous UI update."""
    if ms > 0:
        await page.wait_for_timeout(ms)


async def poll_first_match(
    page: Page,
    cascade: SelectorCascade,
    *,
    timeout_ms: int,
    interval_ms: int = 100,
) -> SelectorMatch | None:
    """Poll *cascade* until one selector matches or *timeout_ms* elapses.

    Each poll tries the selectors in order, so priority is preserved even
    when several candidates render at once.  Returns ``None`` on expiry;
    callers decide whether absence is an error.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + max(timeout_ms, 0) / 1000
    while True:
        match = await first_match(page, cascade)
        if match is not None:
            return match
        remaining = deadline - loop.time()
        if remaining <= 0:
            return None
        await asyncio.sleep(min(interval_ms / 1000, remaining))
