"""Zalo Bridge: headless Zalo Web automation behind a small HTTP API."""

from __future__ import annotations

try:
    from importlib.metadata import version

    __version__ = version("zalobridge")
except Exception:
    __version__ = "0.0.0"
