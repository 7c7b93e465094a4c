"""Ordered selector cascades for the Zalo Web UI.

Zalo's markup is not under our control and changes without notice, so
every lookup is an ordered tuple of independent CSS selectors tried
first-to-last; the first one present wins.  Update the tuples here when
the UI drifts; the protocols in ``qr`` and ``messenger`` only iterate
them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError

if TYPE_CHECKING:
    from playwright.async_api import ElementHandle, Page

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectorCascade:
    """A named, ordered list of selectors for one UI element."""

    element: str
    selectors: tuple[str, ...]

    def __iter__(self):
        return iter(self.selectors)

    def __len__(self) -> int:
        return len(self.selectors)

    def as_union(self) -> str:
        """Join the selectors into a single CSS selector list."""
        return ", ".join(self.selectors)


@dataclass(frozen=True)
class SelectorMatch:
    """The element found by a cascade and the selector that found it."""

    selector: str
    handle: ElementHandle


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

LOGIN_MARKERS = SelectorCascade(
    "logged-in marker",
    (".sidebar", ".chat-list", '[data-testid="sidebar"]'),
)

# ---------------------------------------------------------------------------
# QR code
# ---------------------------------------------------------------------------

QR_IMAGE = SelectorCascade(
    "QR image",
    (
        'img[src*="qrcode"]',
        'img[alt*="QR"]',
        'img[alt*="qrcode"]',
        'img[src*="login-qrcode"]',
    ),
)

QR_CONTAINER = SelectorCascade(
    "QR container",
    ("div.qr, .login-qr, .qr-code, .zalo-qr",),
)

# ---------------------------------------------------------------------------
# Search and result selection
# ---------------------------------------------------------------------------

SEARCH_BOX = SelectorCascade(
    "search box",
    (
        'input[placeholder*="Tìm kiếm"]',
        'input[placeholder*="Search"]',
        'input[type="search"]',
        'input[aria-label*="search"]',
    ),
)

SEARCH_TRIGGER = SelectorCascade(
    "search button",
    ('button[aria-label*="Search"], button[title*="Search"], .search-btn',),
)

SEARCH_RESULT = SelectorCascade(
    "search result",
    (
        ".conversation-item",
        ".chat-item",
        ".list-item",
        ".search-result-item",
        ".result-item",
    ),
)

CONTACTS_ENTRY = SelectorCascade(
    "contacts button",
    ('a[href*="contacts"], button[aria-label*="contacts"], .contact-button',),
)

CONTACT_ITEM = SelectorCascade(
    "contact item",
    (".contact-item, .list-item, .search-result-item",),
)

# Items scanned by visible text when every selector-based layer misses.
TEXT_SCAN_ITEMS = SelectorCascade(
    "conversation entry",
    (".conversation-item", ".list-item", ".chat-item", ".channel-item"),
)

# ---------------------------------------------------------------------------
# Message composition
# ---------------------------------------------------------------------------

MESSAGE_INPUT = SelectorCascade(
    "message input",
    (
        'div[contenteditable="true"]',
        "textarea",
        'input[aria-label*="message"]',
    ),
)


async def first_match(page: Page, cascade: SelectorCascade) -> SelectorMatch | None:
    """Return the first element matched by *cascade*, trying selectors in order.

    A selector that raises (detached frame, invalid syntax after a UI
    change) is logged and skipped so later selectors still get a chance.

    Args:
        page: Playwright page to query.
        cascade: Ordered selectors to try.

    Returns:
        The first ``SelectorMatch`` or ``None`` when nothing matched.
    """
    for selector in cascade:
        try:
            handle = await page.query_selector(selector)
        except PlaywrightError as e:
            logger.debug("Selector %r for %s raised: %s", selector, cascade.element, e)
            continue
        if handle is not None:
            logger.debug("Found %s via %r", cascade.element, selector)
            return SelectorMatch(selector=selector, handle=handle)
    return None
