"""Resilient page navigation with automatic wait-strategy fallback.

Zalo Web keeps a long-lived websocket open, so ``networkidle`` is
sometimes never reached.  This module wraps Playwright's ``page.goto`` /
``page.reload`` with a fallback strategy: try ``networkidle`` first, then
``load``, then ``domcontentloaded`` on timeout.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from playwright.async_api import TimeoutError as PlaywrightTimeout

from zalobridge.exceptions import OperationTimeoutError

if TYPE_CHECKING:
    from playwright.async_api import Page, Response

logger = logging.getLogger(__name__)

WaitUntil = Literal["commit", "domcontentloaded", "load", "networkidle"]

_FALLBACK_STRATEGY: list[WaitUntil] = ["networkidle", "load", "domcontentloaded"]


async def resilient_goto(
    page: Page,
    url: str,
    *,
    timeout_ms: int = 30_000,
    wait_until: WaitUntil = "networkidle",
) -> Response | None:
    """Navigate to *url* with automatic wait-strategy fallback.

    Tries *wait_until* first (default ``networkidle``).  If that times out,
    retries with progressively less strict strategies using the same
    timeout for each attempt.

    Args:
        page: Playwright page instance.
        url: Target URL to navigate to.
        timeout_ms: Timeout per attempt in milliseconds.
        wait_until: Preferred initial wait strategy.

    Returns:
        The Playwright ``Response`` for the main frame navigation,
        or ``None`` if the page did not produce a response.

    Raises:
        OperationTimeoutError: If all fallback strategies time out.
        PlaywrightError: For non-timeout navigation failures.
    """
    for strategy in _build_fallback_chain(wait_until):
        try:
            logger.debug("goto %s (wait_until=%s, timeout=%dms)", url, strategy, timeout_ms)
            return await page.goto(url, wait_until=strategy, timeout=timeout_ms)
        except PlaywrightTimeout:
            logger.warning(
                "Navigation to %s timed out with wait_until=%s; retrying with weaker strategy",
                url,
                strategy,
            )
    raise OperationTimeoutError(f"Navigation to {url}", timeout_ms / 1000)


async def resilient_reload(
    page: Page,
    *,
    timeout_ms: int = 30_000,
    wait_until: WaitUntil = "networkidle",
) -> Response | None:
    """Reload the current page with automatic wait-strategy fallback.

    Same fallback logic as :func:`resilient_goto` but for ``page.reload``.
    """
    for strategy in _build_fallback_chain(wait_until):
        try:
            logger.debug("reload (wait_until=%s, timeout=%dms)", strategy, timeout_ms)
            return await page.reload(wait_until=strategy, timeout=timeout_ms)
        except PlaywrightTimeout:
            logger.warning("Reload timed out with wait_until=%s; retrying with weaker strategy", strategy)

    raise OperationTimeoutError("Page reload", timeout_ms / 1000)


def _build_fallback_chain(preferred: WaitUntil) -> list[WaitUntil]:
    """Return the fallback chain starting from *preferred*.

    If *preferred* is in the default chain, returns from that point onward.
    Otherwise returns ``[preferred]`` followed by the full default chain.
    """
    if preferred in _FALLBACK_STRATEGY:
        idx = _FALLBACK_STRATEGY.index(preferred)
        return _FALLBACK_STRATEGY[idx:]
    return [preferred, *_FALLBACK_STRATEGY]
