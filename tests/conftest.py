"""Zalo Bridge test configuration: shared fixtures for unit and integration tests."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest


# ---------------------------------------------------------------------------
# Async backend
# ---------------------------------------------------------------------------


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_caches():
    """Clear the settings and browser-session caches between tests."""
    from zalobridge.browser.session import get_browser_session
    from zalobridge.settings.config import get_settings

    get_settings.cache_clear()
    get_browser_session.cache_clear()
    yield
    get_settings.cache_clear()
    get_browser_session.cache_clear()


_NO_DELAYS = {
    "qr_settle_ms": 0,
    "reload_grace_ms": 0,
    "search_reveal_ms": 0,
    "search_settle_ms": 0,
    "contacts_open_ms": 0,
    "contacts_settle_ms": 0,
    "result_settle_ms": 0,
    "send_settle_ms": 0,
    "search_key_delay_ms": 0,
    "message_key_delay_ms": 0,
    "poll_interval_ms": 1,
}


@pytest.fixture()
def settings(tmp_path: Path):
    """Settings with a temporary cookie file and every settle delay disabled."""
    from zalobridge.settings.config import Settings

    return Settings(
        zalo={"cookie_path": str(tmp_path / "zalo_session.json")},
        timing=dict(_NO_DELAYS),
        browser={"operation_timeout_seconds": 5.0},
    )


# ---------------------------------------------------------------------------
# Fake Playwright objects
# ---------------------------------------------------------------------------


def make_handle(name: str = "element") -> MagicMock:
    """A stand-in ``ElementHandle`` with awaitable actions."""
    handle = MagicMock(name=name)
    handle.click = AsyncMock()
    handle.focus = AsyncMock()
    handle.screenshot = AsyncMock(return_value=b"\x89PNG")
    return handle


def make_page(elements: dict[str, MagicMock] | None = None) -> MagicMock:
    """A stand-in ``Page`` whose ``query_selector`` resolves from *elements*.

    Every selector not present in *elements* resolves to ``None``.
    """
    dom = elements if elements is not None else {}
    page = MagicMock(name="page")
    page.url = "https://chat.zalo.me/"
    page.query_selector = AsyncMock(side_effect=lambda selector: dom.get(selector))
    page.evaluate = AsyncMock(return_value=None)
    page.goto = AsyncMock(return_value=MagicMock(name="response"))
    page.reload = AsyncMock(return_value=MagicMock(name="response"))
    page.wait_for_timeout = AsyncMock()
    page.keyboard = MagicMock(name="keyboard")
    page.keyboard.type = AsyncMock()
    page.keyboard.press = AsyncMock()
    page.dom = dom
    return page


def make_session(settings, page: MagicMock) -> MagicMock:
    """A stand-in ``BrowserSession`` that already has *page* open."""
    from zalobridge.browser.cookies import CookieStore

    session = MagicMock(name="session")
    session.settings = settings
    session.cookies = CookieStore(settings.zalo.cookie_path)
    session.page = page
    session.context = MagicMock(name="context")
    session.context.add_cookies = AsyncMock()
    session.context.cookies = AsyncMock(return_value=[])
    session.ensure_session = AsyncMock(return_value=page)
    session.ensure_open_target = AsyncMock(return_value=page)
    return session


@pytest.fixture()
def handle_factory():
    return make_handle


@pytest.fixture()
def page_factory():
    return make_page


@pytest.fixture()
def session_factory(settings):
    """Build a fake session bound to the test settings: ``session_factory(page)``."""
    return lambda page: make_session(settings, page)


# ---------------------------------------------------------------------------
# Pytest markers
# ---------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests that exercise the API or several components together")
