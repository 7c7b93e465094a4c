"""Login State Detector.

Absence of proof of login is treated as absence of login: any failure
while loading or inspecting the page yields ``False``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from zalobridge.browser.selectors import LOGIN_MARKERS, SelectorCascade

if TYPE_CHECKING:
    from zalobridge.browser.session import BrowserSession

logger = logging.getLogger(__name__)

_MARKER_PRESENT_JS = "(selector) => !!document.querySelector(selector)"


async def is_logged_in(session: BrowserSession, markers: SelectorCascade = LOGIN_MARKERS) -> bool:
    """Open Zalo Web and report whether any logged-in marker is rendered.

    Args:
        session: The browser session; the caller must hold ``acquire()``.
        markers: Marker selectors evaluated inside the page.

    Returns:
        ``True`` if a marker is present, ``False`` otherwise or on any error.
    """
    try:
        page = await session.ensure_open_target()
        present = await page.evaluate(_MARKER_PRESENT_JS, markers.as_union())
    except Exception as e:
        logger.error("Login check failed: %s", e)
        return False
    logger.info("Login check: %s", "logged in" if present else "not logged in")
    return bool(present)
