"""Browser Session Manager: the single Playwright browser/page pair.

One ``BrowserSession`` exists per process (see :func:`get_browser_session`).
The browser is launched lazily on first use and reused afterwards.  All
page work goes through :meth:`BrowserSession.acquire`, which holds an
``asyncio.Lock`` so that only one QR or messaging run drives the page at
a time; concurrent requests queue on the lock.

Teardown happens in :meth:`BrowserSession.close`, called from the API
lifespan at process exit and, when ``browser.idle_shutdown_seconds`` is
set, after that many idle seconds.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from playwright.async_api import async_playwright

from zalobridge.browser.cookies import CookieStore
from zalobridge.browser.navigation import resilient_goto
from zalobridge.exceptions import BrowserLaunchError, NoSessionError

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Page, Playwright

    from zalobridge.settings.config import Settings

logger = logging.getLogger(__name__)


class BrowserSession:
    """Owns the process-wide browser, context and page.

    All configuration is read from ``zalobridge.settings.get_settings()``
    at construction time unless a ``Settings`` instance is passed in.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        if settings is None:
            from zalobridge.settings import get_settings

            settings = get_settings()

        self.settings = settings
        self.cookies = CookieStore(settings.zalo.cookie_path)

        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

        self._lock = asyncio.Lock()
        self._idle_task: asyncio.Task | None = None
        self._generation = 0  # bumped on every acquire; stale idle tasks compare against it

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._page is not None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise NoSessionError()
        return self._page

    @property
    def context(self) -> BrowserContext:
        if self._context is None:
            raise NoSessionError()
        return self._context

    def status(self) -> dict[str, Any]:
        """Describe the session without launching anything."""
        return {
            "browser_running": self.is_running,
            "cookie_file_present": self.cookies.exists(),
            "cookie_path": str(self.cookies.path),
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def ensure_session(self) -> Page:
        """Launch the browser and open a page unless one already exists."""
        if self._page is not None:
            return self._page

        browser_cfg = self.settings.browser
        launch_kwargs: dict[str, Any] = {
            "headless": browser_cfg.headless,
            "args": list(browser_cfg.launch_args),
        }
        if browser_cfg.executable_path:
            launch_kwargs["executable_path"] = browser_cfg.executable_path

        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(**launch_kwargs)
            self._context = await self._browser.new_context(
                viewport={"width": browser_cfg.viewport_width, "height": browser_cfg.viewport_height},
            )
            self._context.set_default_timeout(browser_cfg.action_timeout_ms)
            self._context.set_default_navigation_timeout(browser_cfg.navigation_timeout_ms)
            self._page = await self._context.new_page()
        except Exception as e:
            logger.error("Browser launch failed: %s", e)
            await self._teardown()
            raise BrowserLaunchError(str(e)) from e

        logger.info(
            "Browser started (headless=%s, executable=%s)",
            browser_cfg.headless,
            browser_cfg.executable_path or "bundled",
        )
        return self._page

    async def ensure_open_target(self) -> Page:
        """Launch if needed and navigate the page to the Zalo Web root."""
        page = await self.ensure_session()
        await resilient_goto(
            page,
            self.settings.zalo.app_url,
            timeout_ms=self.settings.browser.navigation_timeout_ms,
        )
        return page

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[BrowserSession]:
        """Hold exclusive use of the page for the duration of the block."""
        async with self._lock:
            self._generation += 1
            self._cancel_idle_shutdown()
            try:
                yield self
            finally:
                self._schedule_idle_shutdown()

    async def save_cookies(self) -> int:
        """Persist the live context's cookies to the cookie store.

        Raises:
            NoSessionError: If no browser is running; saving then would
                overwrite a good store with an empty cookie jar.
        """
        return await self.cookies.save(self.context)

    async def close(self) -> None:
        """Shut down the page, context, browser and Playwright driver."""
        async with self._lock:
            self._cancel_idle_shutdown()
            await self._teardown()

    async def _teardown(self) -> None:
        was_running = self._browser is not None
        try:
            if self._context is not None:
                await self._context.close()
            if self._browser is not None:
                await self._browser.close()
            if self._playwright is not None:
                await self._playwright.stop()
        except Exception as e:
            logger.warning("Browser stop error (non-fatal): %s", e)
        finally:
            self._page = None
            self._context = None
            self._browser = None
            self._playwright = None
        if was_running:
            logger.info("Browser stopped")

    # ------------------------------------------------------------------
    # Idle shutdown
    # ------------------------------------------------------------------

    # The helpers below run with the lock held, so an idle task is never
    # cancelled in the middle of its own teardown.

    def _schedule_idle_shutdown(self) -> None:
        idle_seconds = self.settings.browser.idle_shutdown_seconds
        if idle_seconds <= 0 or not self.is_running:
            return
        self._cancel_idle_shutdown()
        self._idle_task = asyncio.get_running_loop().create_task(
            self._idle_shutdown(idle_seconds, self._generation)
        )

    def _cancel_idle_shutdown(self) -> None:
        if self._idle_task is not None and not self._idle_task.done():
            self._idle_task.cancel()
        self._idle_task = None

    async def _idle_shutdown(self, idle_seconds: float, generation: int) -> None:
        await asyncio.sleep(idle_seconds)
        async with self._lock:
            if generation != self._generation:
                # Another run took the session after this task was scheduled.
                return
            logger.info("Closing browser after %gs idle", idle_seconds)
            await self._teardown()


@lru_cache(maxsize=1)
def get_browser_session() -> BrowserSession:
    """Return the process-wide ``BrowserSession`` (cached)."""
    return BrowserSession()
