"""Entry points shared by the HTTP API and the CLI.

Each function takes exclusive use of the browser session and bounds the
whole run by ``browser.operation_timeout_seconds``.
"""

from __future__ import annotations

import logging
from typing import Any

from zalobridge.browser.messenger import SendResult, send_message, validate_send_request
from zalobridge.browser.qr import acquire_qr_data_url
from zalobridge.browser.session import BrowserSession, get_browser_session
from zalobridge.browser.waits import bounded

logger = logging.getLogger(__name__)


async def request_qr(session: BrowserSession | None = None) -> str:
    """Return the login QR code as a data URL."""
    session = session or get_browser_session()
    async with session.acquire():
        return await bounded(
            acquire_qr_data_url(session),
            session.settings.browser.operation_timeout_seconds,
            "QR acquisition",
        )


async def save_session(session: BrowserSession | None = None) -> int:
    """Persist the current login cookies; returns how many were written."""
    session = session or get_browser_session()
    async with session.acquire():
        return await session.save_cookies()


async def deliver_message(target: str | None, message: str | None, session: BrowserSession | None = None) -> SendResult:
    """Validate the request, then run the messaging protocol.

    Validation happens before the session lock is taken, so a bad request
    never waits behind another run or touches the browser.
    """
    target, message = validate_send_request(target, message)
    session = session or get_browser_session()
    async with session.acquire():
        result = await bounded(
            send_message(session, target, message),
            session.settings.browser.operation_timeout_seconds,
            "Sending message",
        )
    if not result.ok:
        logger.warning("Send to %r not attempted: %s", target, result.error)
    return result


def session_status(session: BrowserSession | None = None) -> dict[str, Any]:
    """Report whether a browser is running and a saved login exists."""
    return (session or get_browser_session()).status()
