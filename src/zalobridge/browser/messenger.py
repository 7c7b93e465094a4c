"""Target Resolution & Messaging Protocol.

Given a target (phone number, contact name or group name) and a text
message, restore the saved login, confirm the session is authenticated,
find the target conversation and type the message into it.

Result selection is a cascade of independent layers, tried in order
until one selects a conversation:

    search_result   first item in the search results list
    contacts_panel  open Contacts, search there, pick the first contact
    text_scan       click the first list entry whose visible text
                      contains the target (document order)

A layer that raises is logged and the next layer still runs.  Typing
goes through the keyboard rather than value assignment because Zalo only
reacts to real key events.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError

from zalobridge.browser.login import is_logged_in
from zalobridge.browser.navigation import resilient_reload
from zalobridge.browser.selectors import (
    CONTACT_ITEM,
    CONTACTS_ENTRY,
    MESSAGE_INPUT,
    SEARCH_BOX,
    SEARCH_RESULT,
    SEARCH_TRIGGER,
    TEXT_SCAN_ITEMS,
    SelectorMatch,
    first_match,
)
from zalobridge.browser.waits import settle
from zalobridge.exceptions import (
    InvalidRequestError,
    MessageSendError,
    SelectorNotFoundError,
    TargetNotFoundError,
)

if TYPE_CHECKING:
    from playwright.async_api import ElementHandle, Page

    from zalobridge.browser.session import BrowserSession
    from zalobridge.settings.config import TimingSettings

logger = logging.getLogger(__name__)

NOT_LOGGED_IN = "NOT_LOGGED_IN"

_TEXT_SCAN_JS = """([selector, target]) => {
    const hits = Array.from(document.querySelectorAll(selector))
        .filter((n) => (n.innerText || '').includes(target));
    if (hits.length === 0) return 0;
    hits[0].scrollIntoView();
    hits[0].click();
    return hits.length;
}"""


@dataclass
class SendResult:
    """Outcome of one messaging attempt.

    ``error`` is ``NOT_LOGGED_IN`` when the saved session is missing or
    expired; the operator has to scan a new QR code.
    """

    ok: bool
    target: str
    error: str | None = None
    strategy: str = ""

    @property
    def needs_login(self) -> bool:
        return self.error == NOT_LOGGED_IN


def validate_send_request(target: str | None, message: str | None) -> tuple[str, str]:
    """Return the stripped target and the message, or raise ``InvalidRequestError``."""
    target = (target or "").strip()
    if not target or not message:
        raise InvalidRequestError("target & message required")
    return target, message


# ---------------------------------------------------------------------------
# Search box
# ---------------------------------------------------------------------------


async def find_search_box(page: Page, timing: TimingSettings) -> SelectorMatch:
    """Locate the conversation search box, revealing it once if hidden.

    Raises:
        SelectorNotFoundError: If no search selector matches after the
            reveal attempt.
    """
    match = await first_match(page, SEARCH_BOX)
    if match is not None:
        return match

    trigger = await first_match(page, SEARCH_TRIGGER)
    if trigger is not None:
        logger.info("Search box hidden; clicking %s", trigger.selector)
        await trigger.handle.click()
        await settle(page, timing.search_reveal_ms)
        match = await first_match(page, SEARCH_BOX)
        if match is not None:
            return match

    raise SelectorNotFoundError(SEARCH_BOX.element, SEARCH_BOX.selectors)


async def type_query(page: Page, box: ElementHandle, text: str, delay_ms: int) -> None:
    """Clear *box* with the keyboard and type *text* one key at a time."""
    await box.click(click_count=3)
    await box.focus()
    await page.keyboard.press("Control+A")
    await page.keyboard.press("Backspace")
    await page.keyboard.type(text, delay=delay_ms)


# ---------------------------------------------------------------------------
# Result selection layers
# ---------------------------------------------------------------------------


async def _select_search_result(page: Page, target: str, timing: TimingSettings) -> bool:
    match = await first_match(page, SEARCH_RESULT)
    if match is None:
        return False
    await match.handle.click()
    return True


async def _select_from_contacts(page: Page, target: str, timing: TimingSettings) -> bool:
    entry = await first_match(page, CONTACTS_ENTRY)
    if entry is None:
        return False
    await entry.handle.click()
    await settle(page, timing.contacts_open_ms)

    for selector in SEARCH_BOX:
        box = await page.query_selector(selector)
        if box is None:
            continue
        await box.click(click_count=3)
        await page.keyboard.type(target, delay=timing.search_key_delay_ms)
        await settle(page, timing.contacts_settle_ms)
        contact = await first_match(page, CONTACT_ITEM)
        if contact is not None:
            await contact.handle.click()
            return True
    return False


async def _select_by_text_scan(page: Page, target: str, timing: TimingSettings) -> bool:
    hits = await page.evaluate(_TEXT_SCAN_JS, [TEXT_SCAN_ITEMS.as_union(), target])
    if hits > 1:
        logger.warning("%d conversation entries contain %r; picked the first in document order", hits, target)
    return hits > 0


@dataclass(frozen=True)
class ResultLayer:
    """A named result-selection procedure; returns True once it clicked a target."""

    name: str
    run: Callable[[Page, str, TimingSettings], Awaitable[bool]]


RESULT_LAYERS: tuple[ResultLayer, ...] = (
    ResultLayer("search_result", _select_search_result),
    ResultLayer("contacts_panel", _select_from_contacts),
    ResultLayer("text_scan", _select_by_text_scan),
)


async def select_target(
    page: Page,
    target: str,
    timing: TimingSettings,
    layers: tuple[ResultLayer, ...] = RESULT_LAYERS,
) -> str:
    """Run the result-selection cascade and return the name of the layer that matched.

    Raises:
        TargetNotFoundError: If no layer selected a conversation.
    """
    for layer in layers:
        try:
            selected = await layer.run(page, target, timing)
        except Exception as e:
            logger.warning("Result layer %s failed: %s", layer.name, e)
            continue
        if selected:
            logger.info("Selected %r via %s", target, layer.name)
            return layer.name
        logger.debug("Result layer %s found nothing for %r", layer.name, target)

    raise TargetNotFoundError(target)


# ---------------------------------------------------------------------------
# Message input
# ---------------------------------------------------------------------------


async def find_message_input(page: Page) -> SelectorMatch:
    """Locate the message composer.

    Raises:
        SelectorNotFoundError: If no input selector matches.
    """
    match = await first_match(page, MESSAGE_INPUT)
    if match is None:
        raise SelectorNotFoundError(MESSAGE_INPUT.element, MESSAGE_INPUT.selectors)
    return match


async def submit_message(page: Page, composer: ElementHandle, message: str, timing: TimingSettings) -> None:
    """Type *message* into *composer* via the keyboard and press Enter.

    Raises:
        MessageSendError: If focusing or typing fails.
    """
    try:
        await composer.focus()
        await page.keyboard.type(message, delay=timing.message_key_delay_ms)
        await page.keyboard.press("Enter")
        await settle(page, timing.send_settle_ms)
    except PlaywrightError as e:
        raise MessageSendError(str(e)) from e


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


async def send_message(session: BrowserSession, target: str, message: str) -> SendResult:
    """Deliver *message* to the conversation matching *target*.

    Args:
        session: The browser session; the caller must hold ``acquire()``.
        target: Phone number, contact name or group name.
        message: Plain-text message body.

    Returns:
        ``SendResult(ok=True)`` on success, or ``ok=False`` with
        ``error=NOT_LOGGED_IN`` when the session is not authenticated.

    Raises:
        InvalidRequestError: If *target* or *message* is empty.
        SelectorNotFoundError: If the search box or message input is missing.
        TargetNotFoundError: If no conversation matches *target*.
        MessageSendError: If typing the message fails.
    """
    target, message = validate_send_request(target, message)
    timing = session.settings.timing

    page = await session.ensure_open_target()

    # Cookies injected after the first load only take effect on reload.
    if session.cookies.exists() and await session.cookies.restore(session.context):
        await resilient_reload(page, timeout_ms=session.settings.browser.navigation_timeout_ms)
        await settle(page, timing.reload_grace_ms)

    if not await is_logged_in(session):
        return SendResult(ok=False, target=target, error=NOT_LOGGED_IN)

    search = await find_search_box(page, timing)
    await type_query(page, search.handle, target, timing.search_key_delay_ms)
    await settle(page, timing.search_settle_ms)

    strategy = await select_target(page, target, timing)
    await settle(page, timing.result_settle_ms)

    composer = await find_message_input(page)
    await submit_message(page, composer.handle, message, timing)

    logger.info("Message sent to %r (via %s)", target, strategy)
    return SendResult(ok=True, target=target, strategy=strategy)
