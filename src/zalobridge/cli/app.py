"""Unified CLI entry point for Zalo Bridge.

Config precedence: settings.default.toml -> settings.local.toml -> env vars (ZB_* with double underscores) -> CLI flags.
"""

from __future__ import annotations

from typing import Optional

import typer

from zalobridge.cli.session_cmd import session_app
from zalobridge.cli.settings_cmd import settings_app

try:
    from importlib.metadata import version

    VERSION = version("zalobridge")
except Exception:
    VERSION = "unknown"

APP_HELP = (
    "zalobridge: send Zalo Web messages through a headless browser. "
    "Config precedence: settings.default.toml -> settings.local.toml -> env vars (ZB_* with __) -> CLI flags."
)

app = typer.Typer(add_completion=True, help=APP_HELP)

app.add_typer(session_app, name="session")
app.add_typer(settings_app, name="settings")


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (defaults to api.host)."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (defaults to api.port / PORT)."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level (defaults to ZB_LOG_LEVEL)."),
) -> None:
    """Run the HTTP API."""
    import uvicorn

    from zalobridge.logging_setup import configure_logging
    from zalobridge.settings import get_settings

    settings = get_settings()
    configure_logging(log_level or settings.log_level)
    uvicorn.run(
        "zalobridge.api.app:app",
        host=host or settings.api.host,
        port=port or settings.api.port,
        log_config=None,
    )


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context, version: bool = typer.Option(False, "--version", help="Show version and exit.")) -> None:
    """Show help when no subcommand is provided."""
    if version:
        typer.echo(f"zalobridge {VERSION}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


if __name__ == "__main__":
    app()
