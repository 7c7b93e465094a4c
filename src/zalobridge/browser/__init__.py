"""Browser automation for Zalo Web (Playwright, async API).

``session`` owns the single browser/page pair, ``cookies`` persists the
login, ``login`` and ``qr`` handle authentication, and ``messenger``
resolves a target conversation and sends text to it. Every DOM lookup
goes through the ordered selector lists in ``selectors``.
"""
