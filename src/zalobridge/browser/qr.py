"""QR Acquisition Protocol.

Opens the Zalo Web login page and returns the login QR code as a
``data:image/...;base64,...`` URL.  Extraction strategies run in a fixed
order and the first one that yields a data URL wins:

    inline_image      a QR ``<img>`` whose ``src`` is already a data URL
    fetched_image     the same ``<img>`` with a remote ``src``, fetched
                        from inside the page and read as a data URL
    container_capture a PNG screenshot of the QR container element

When every strategy comes back empty, ``QRCodeNotFoundError`` tells the
operator the selectors in ``zalobridge.browser.selectors`` need updating.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from zalobridge.browser.selectors import QR_CONTAINER, QR_IMAGE, SelectorCascade, first_match
from zalobridge.browser.waits import poll_first_match
from zalobridge.exceptions import QRCodeNotFoundError

if TYPE_CHECKING:
    from playwright.async_api import Page

    from zalobridge.browser.session import BrowserSession

logger = logging.getLogger(__name__)

_QR_READY = SelectorCascade("QR code", QR_IMAGE.selectors + QR_CONTAINER.selectors)

_FIND_QR_SRC_JS = """(selectors) => {
    for (const s of selectors) {
        const el = document.querySelector(s);
        if (el && el.src) return el.src;
    }
    return null;
}"""

_FETCH_AS_DATA_URL_JS = """async (src) => {
    try {
        const res = await fetch(src);
        const blob = await res.blob();
        return await new Promise((resolve) => {
            const reader = new FileReader();
            reader.onload = () => resolve(reader.result);
            reader.onerror = () => resolve(null);
            reader.readAsDataURL(blob);
        });
    } catch (e) {
        return null;
    }
}"""


@dataclass
class QRContext:
    """State shared between strategies within one acquisition run."""

    image_src: str | None = None


@dataclass(frozen=True)
class QRStrategy:
    """A named QR extraction procedure; returns a data URL or ``None``."""

    name: str
    run: Callable[[Page, QRContext], Awaitable[str | None]]


async def _inline_image(page: Page, ctx: QRContext) -> str | None:
    ctx.image_src = await page.evaluate(_FIND_QR_SRC_JS, list(QR_IMAGE.selectors))
    if ctx.image_src and ctx.image_src.startswith("data:"):
        return ctx.image_src
    return None


async def _fetched_image(page: Page, ctx: QRContext) -> str | None:
    if not ctx.image_src or ctx.image_src.startswith("data:"):
        return None
    data = await page.evaluate(_FETCH_AS_DATA_URL_JS, ctx.image_src)
    if isinstance(data, str) and data.startswith("data:"):
        return data
    logger.debug("Fetching QR image %s from the page gave no data", ctx.image_src)
    return None


async def _container_capture(page: Page, ctx: QRContext) -> str | None:
    match = await first_match(page, QR_CONTAINER)
    if match is None:
        return None
    png = await match.handle.screenshot(type="png")
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


QR_STRATEGIES: tuple[QRStrategy, ...] = (
    QRStrategy("inline_image", _inline_image),
    QRStrategy("fetched_image", _fetched_image),
    QRStrategy("container_capture", _container_capture),
)


async def acquire_qr_data_url(
    session: BrowserSession,
    strategies: tuple[QRStrategy, ...] = QR_STRATEGIES,
) -> str:
    """Navigate to the login page and extract the QR code.

    Args:
        session: The browser session; the caller must hold ``acquire()``.
        strategies: Extraction strategies in priority order.

    Returns:
        The QR code as a data URL.

    Raises:
        QRCodeNotFoundError: If no strategy produced a data URL.
    """
    page = await session.ensure_open_target()
    timing = session.settings.timing

    # The QR renders asynchronously after load.
    await poll_first_match(page, _QR_READY, timeout_ms=timing.qr_settle_ms, interval_ms=timing.poll_interval_ms)

    ctx = QRContext()
    for strategy in strategies:
        try:
            data_url = await strategy.run(page, ctx)
        except Exception as e:
            logger.warning("QR strategy %s failed: %s", strategy.name, e)
            continue
        if data_url:
            logger.info("QR code extracted via %s", strategy.name)
            return data_url

    raise QRCodeNotFoundError()
