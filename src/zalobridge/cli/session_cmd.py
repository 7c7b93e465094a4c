"""CLI commands that drive the browser session directly, without the API."""

from __future__ import annotations

import asyncio
import base64
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from zalobridge.exceptions import ZaloBridgeError

session_app = typer.Typer(help="Log in, send messages and inspect the saved session.")
console = Console()


def _write_data_url(data_url: str, path: Path) -> Path:
    """Decode a ``data:image/...;base64,...`` URL into *path*."""
    _, _, encoded = data_url.partition(",")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(base64.b64decode(encoded))
    return path


@session_app.command("login")
def login(
    output: Path = typer.Option(Path("zalo_qr.png"), "--output", "-o", help="Where to write the QR image."),
) -> None:
    """Fetch a login QR code, wait for the scan, then save the session cookies."""
    from zalobridge import orchestrator
    from zalobridge.browser.session import BrowserSession
    from zalobridge.logging_setup import configure_logging

    configure_logging()

    async def _run() -> int:
        session = BrowserSession()
        try:
            data_url = await orchestrator.request_qr(session)
            _write_data_url(data_url, output)
            console.print(Panel(f"Scan [bold]{output}[/bold] with the Zalo mobile app.", title="Zalo login"))
            await asyncio.to_thread(typer.confirm, "Scanned and logged in?", default=True, abort=True)
            return await orchestrator.save_session(session)
        finally:
            await session.close()

    try:
        count = asyncio.run(_run())
    except ZaloBridgeError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] Saved {count} cookies.")


@session_app.command("send")
def send(
    target: str = typer.Argument(..., help="Phone number, contact name or group name."),
    message: str = typer.Argument(..., help="Message text."),
) -> None:
    """Send one message using the saved session."""
    from zalobridge import orchestrator
    from zalobridge.browser.session import BrowserSession
    from zalobridge.logging_setup import configure_logging

    configure_logging()

    async def _run():
        session = BrowserSession()
        try:
            return await orchestrator.deliver_message(target, message, session)
        finally:
            await session.close()

    try:
        result = asyncio.run(_run())
    except ZaloBridgeError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    if result.needs_login:
        console.print("[yellow]![/yellow] Not logged in. Run [bold]zalobridge session login[/bold] first.")
        raise typer.Exit(code=2)
    console.print(f"[green]✓[/green] Sent to {result.target} (matched via {result.strategy}).")


@session_app.command("status")
def status() -> None:
    """Show where the session is saved and whether it exists."""
    from zalobridge.browser.session import BrowserSession

    info = BrowserSession().status()
    mark = "[green]✓[/green]" if info["cookie_file_present"] else "[red]✗[/red]"
    console.print(f"{mark} Cookie file: {info['cookie_path']}")
