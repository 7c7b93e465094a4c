"""CLI commands for inspecting and validating Zalo Bridge settings."""

from __future__ import annotations

import json

import typer
from rich.console import Console

settings_app = typer.Typer(help="Inspect and validate Zalo Bridge configuration.")
console = Console()


@settings_app.command("show")
def show_settings() -> None:
    """Display the currently resolved settings (API key masked)."""
    from zalobridge.settings import get_settings

    data = get_settings().model_dump(mode="json")
    if data["api"].get("api_key"):
        data["api"]["api_key"] = "***"
    console.print_json(json.dumps(data, indent=2, default=str))


@settings_app.command("validate")
def validate_settings() -> None:
    """Validate settings and report any issues."""
    from zalobridge.settings import get_settings

    try:
        settings = get_settings()
    except Exception as e:
        console.print(f"[red]✗[/red] Settings validation failed: {e}")
        raise typer.Exit(code=1)

    console.print("[green]✓[/green] Settings are valid.")
    console.print(f"  Environment: {settings.env}")
    console.print(f"  Zalo URL: {settings.zalo.app_url}")
    console.print(f"  Cookie file: {settings.zalo.cookie_path}")
    if settings.api.api_key == "CHANGE_THIS_SECRET":
        console.print("[yellow]![/yellow] api.api_key is still the default; set API_KEY or ZB_API__API_KEY.")
