"""Configuration loader for Zalo Bridge using Pydantic settings.

Config precedence (highest wins):
  1. CLI flags (where applicable)
  2. Environment variables (ZB_* with __ for nesting)
  3. Legacy deployment variables (PORT, API_KEY, PUPPETEER_EXECUTABLE_PATH, CHROME_PATH)
  4. settings.local.toml
  5. settings.<env>.toml
  6. settings.default.toml

The TOML files live in `config/` under the project root, and a relative
cookie path resolves against it. The project root is ZB_PROJECT_ROOT when
set, else the working directory.
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

CONFIG_DIR_NAME = "config"

ENV_VAR_NAME = "ZB_ENV"
DEFAULT_ENV = "local"

# Plain variable names used by existing deployments, mapped onto (section, field).
_LEGACY_ENV_VARS: dict[str, tuple[str, str]] = {
    "PORT": ("api", "port"),
    "API_KEY": ("api", "api_key"),
    "CHROME_PATH": ("browser", "executable_path"),
    "PUPPETEER_EXECUTABLE_PATH": ("browser", "executable_path"),
}


def _resolve_env() -> str:
    return (os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()


def _resolve_project_root() -> Path:
    """ZB_PROJECT_ROOT when set, else the directory the process runs in."""
    return Path(os.getenv("ZB_PROJECT_ROOT") or Path.cwd())


def _load_toml(path: Path) -> dict[str, Any]:
    if path.is_file():
        with open(path, "rb") as f:
            return tomllib.load(f)
    return {}


def _legacy_env_overrides() -> dict[str, Any]:
    overrides: dict[str, dict[str, str]] = {}
    for var, (section, key) in _LEGACY_ENV_VARS.items():
        value = os.getenv(var)
        if value:
            overrides.setdefault(section, {})[key] = value
    return overrides


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class BrowserSettings(BaseSettings):
    """Playwright browser settings."""

    model_config = SettingsConfigDict(env_prefix="ZB_BROWSER__")

    headless: bool = True
    executable_path: str = ""
    viewport_width: int = 1200
    viewport_height: int = 900
    launch_args: list[str] = Field(
        default_factory=lambda: [
            "--no-sandbox",
            "--disable-setuid-sandbox",
            "--disable-dev-shm-usage",
            "--disable-gpu",
            "--disable-features=NetworkService",
            "--disable-features=VizDisplayCompositor",
        ]
    )
    navigation_timeout_ms: int = 30_000
    action_timeout_ms: int = 10_000
    operation_timeout_seconds: float = 120.0
    idle_shutdown_seconds: float = 0  # 0 disables idle shutdown


class ZaloSettings(BaseSettings):
    """Target web application and session persistence."""

    model_config = SettingsConfigDict(env_prefix="ZB_ZALO__")

    app_url: str = "https://chat.zalo.me"
    cookie_path: str = "zalo_session.json"


class TimingSettings(BaseSettings):
    """Settle delays and typing cadence, all in milliseconds."""

    model_config = SettingsConfigDict(env_prefix="ZB_TIMING__")

    qr_settle_ms: int = 1500
    reload_grace_ms: int = 1000
    search_reveal_ms: int = 500
    search_settle_ms: int = 1200
    contacts_open_ms: int = 800
    contacts_settle_ms: int = 800
    result_settle_ms: int = 700
    send_settle_ms: int = 600
    search_key_delay_ms: int = 60
    message_key_delay_ms: int = 25
    poll_interval_ms: int = 100


class APISettings(BaseSettings):
    """API server configuration."""

    model_config = SettingsConfigDict(env_prefix="ZB_API__")

    host: str = "0.0.0.0"
    port: int = 3000
    api_key: str = "CHANGE_THIS_SECRET"
    cors_origins: list[str] = ["*"]
    max_body_bytes: int = 10 * 1024 * 1024


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Root Zalo Bridge settings with nested sections."""

    model_config = SettingsConfigDict(
        env_prefix="ZB_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: str = Field(default_factory=_resolve_env)
    project_root: Path = Field(default_factory=_resolve_project_root)
    log_level: str = "INFO"

    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    zalo: ZaloSettings = Field(default_factory=ZaloSettings)
    timing: TimingSettings = Field(default_factory=TimingSettings)
    api: APISettings = Field(default_factory=APISettings)

    @model_validator(mode="before")
    @classmethod
    def _merge_toml_files(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Layer TOML config files and legacy env vars before ZB_* overrides."""
        config_dir = Path(values.get("project_root") or _resolve_project_root()) / CONFIG_DIR_NAME
        defaults = _load_toml(config_dir / "settings.default.toml")
        env_name = (values.get("env") or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()
        env_overrides = _load_toml(config_dir / f"settings.{env_name}.toml")
        local_overrides = _load_toml(config_dir / "settings.local.toml")

        # Merge: defaults < env-specific < local < legacy env < explicit values
        merged: dict[str, Any] = {}
        for layer in (defaults, env_overrides, local_overrides, _legacy_env_overrides(), values):
            for key, val in layer.items():
                if isinstance(val, dict) and isinstance(merged.get(key), dict):
                    merged[key] = {**merged[key], **val}
                else:
                    merged[key] = val
        return merged

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Normalize relative paths against project_root."""
        if not Path(self.zalo.cookie_path).is_absolute():
            self.zalo.cookie_path = str(self.project_root / self.zalo.cookie_path)
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton settings instance (cached)."""
    return Settings()
