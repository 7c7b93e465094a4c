"""Cookie persistence for the Zalo Web login.

The store is a single JSON file holding the browser context's cookies.
It is written once the operator has scanned the QR code and read back at
the start of every messaging attempt.  A missing or unreadable file is
never an error: restore reports ``False`` and the caller carries on as if
no session had been saved, so a corrupt file can't block a fresh login.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext

logger = logging.getLogger(__name__)

_SAME_SITE_VALUES = {"strict": "Strict", "lax": "Lax", "none": "None", "no_restriction": "None"}


class CookieStore:
    """Load and save browser cookies at a fixed file path."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        """Return True if a cookie file has been saved."""
        return self._path.is_file()

    async def restore(self, context: BrowserContext) -> bool:
        """Inject the saved cookies into *context*.

        Returns:
            ``True`` if cookies were restored, ``False`` if there is no
            file or it could not be parsed or applied.
        """
        if not self.exists():
            return False
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            cookies = normalize_cookies(raw)
            await context.add_cookies(cookies)
        except Exception as e:
            logger.warning("Restoring cookies from %s failed: %s", self._path, e)
            return False
        logger.info("Restored %d cookies from %s", len(cookies), self._path)
        return True

    async def save(self, context: BrowserContext) -> int:
        """Overwrite the store with every cookie in *context*.

        Returns:
            The number of cookies written.
        """
        cookies = await context.cookies()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(cookies, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info("Saved %d cookies to %s", len(cookies), self._path)
        return len(cookies)


def normalize_cookies(raw: Any) -> list[dict[str, Any]]:
    """Coerce a stored cookie collection into Playwright's ``add_cookies`` shape.

    Accepts a bare list of cookie records or a storage-state document
    (``{"cookies": [...]}``).  Records written by Puppeteer or exported by
    browser extensions carry extra keys (``size``, ``session``,
    ``expirationDate``, lowercase ``sameSite``) that are mapped or dropped.

    Raises:
        ValueError: If *raw* is not a cookie collection or a record lacks
            a name, value or domain.
    """
    if isinstance(raw, dict) and "cookies" in raw:
        raw = raw["cookies"]
    if not isinstance(raw, list):
        raise ValueError(f"expected a list of cookies, got {type(raw).__name__}")

    cookies: list[dict[str, Any]] = []
    for record in raw:
        if not isinstance(record, dict) or "name" not in record or "value" not in record:
            raise ValueError(f"malformed cookie record: {record!r}")
        if not record.get("domain") and not record.get("url"):
            raise ValueError(f"cookie {record['name']!r} has neither domain nor url")

        cookie: dict[str, Any] = {"name": str(record["name"]), "value": str(record["value"])}
        if record.get("url"):
            cookie["url"] = record["url"]
        else:
            cookie["domain"] = record["domain"]
            cookie["path"] = record.get("path") or "/"

        expires = record.get("expires", record.get("expirationDate"))
        if record.get("session") or expires is None:
            cookie["expires"] = -1
        else:
            cookie["expires"] = float(expires) if float(expires) > 0 else -1

        cookie["httpOnly"] = bool(record.get("httpOnly", False))
        cookie["secure"] = bool(record.get("secure", False))
        same_site = _SAME_SITE_VALUES.get(str(record.get("sameSite", "")).lower())
        if same_site:
            cookie["sameSite"] = same_site
        cookies.append(cookie)
    return cookies
