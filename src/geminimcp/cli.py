"""geminimcp CLI - serve Gemini tools over MCP."""

from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from geminimcp import __version__
from geminimcp.config import load_settings, setup_logging
from geminimcp.errors import ConfigurationError

app = typer.Typer(
    name="geminimcp",
    help="Expose Gemini generation, chat sessions, files and caches as MCP tools.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"geminimcp {__version__}")
        raise typer.Exit()


def _mask(secret: str) -> str:
    if len(secret) <= 8:
        return "*" * len(secret)
    return f"{secret[:4]}…{secret[-4:]}"


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
) -> None:
    """geminimcp - Gemini tools for MCP clients."""


@app.command()
def serve(
    log_level: Annotated[
        Optional[str], typer.Option("--log-level", "-l", help="Override GEMINI_MCP_LOG_LEVEL")
    ] = None,
) -> None:
    """Start the MCP server (stdio transport)."""
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    setup_logging(log_level.upper() if log_level else settings.log_level)

    import geminimcp.mcp.server as server_mod
    from geminimcp.gemini.service import GeminiService

    server_mod.service = GeminiService.from_settings(settings)
    server_mod.mcp.run()


@app.command("config")
def show_config() -> None:
    """Show the resolved configuration."""
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    table = Table(title="geminimcp configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("API key", _mask(settings.api_key))
    table.add_row("Default model", settings.default_model or "[dim]not set[/dim]")
    table.add_row(
        "Session TTL",
        f"{settings.session_ttl_seconds}s" if settings.session_ttl_seconds else "disabled",
    )
    table.add_row("Max sessions", str(settings.max_sessions) if settings.max_sessions else "unbounded")
    table.add_row("Log level", settings.log_level)

    console.print(table)
