"""CLI commands for genba."""

import asyncio
import json

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from genba import __logo__, __version__

app = typer.Typer(
    name="genba",
    help=f"{__logo__} genba - chat intent routing and site paperwork",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} genba v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
    logs: bool = typer.Option(False, "--logs/--no-logs", help="Show genba runtime logs"),
):
    """genba - chat intent routing and site paperwork."""
    if logs:
        logger.enable("genba")
    else:
        logger.disable("genba")


# ============================================================================
# Parsers (no database)
# ============================================================================


@app.command()
def intent(text: str = typer.Argument(..., help="Chat message to classify")):
    """Classify a chat message."""
    from genba.chat.intents import parse_intent

    parsed = parse_intent(text)
    table = Table(title="Intent")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("intent", parsed.intent)
    table.add_row("confidence", f"{parsed.confidence:.1f}")
    table.add_row("matched", parsed.matched or "-")
    table.add_row("needs_confirmation", "yes" if parsed.needs_confirmation else "no")
    if parsed.reason:
        table.add_row("reason", parsed.reason)
    console.print(table)


@app.command()
def billing(text: str = typer.Argument(..., help="Billing command, e.g. 税抜にして")):
    """Show the settings patch a billing command would apply."""
    from genba.chat.handlers.billing import parse_billing_command

    changes = parse_billing_command(text).changes()
    if not changes:
        console.print("[yellow]No billing setting recognised.[/yellow]")
        raise typer.Exit(1)
    table = Table(title="Billing patch")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in changes.items():
        table.add_row(key, str(value))
    console.print(table)


@app.command()
def tool(
    action: str = typer.Argument(..., help="Allow-listed tool action"),
    params: str = typer.Option("{}", "--params", "-p", help="JSON object of parameters"),
):
    """Run one tool action (mock mode unless remote functions are configured)."""
    from genba.ai.tools import ToolDispatcher
    from genba.settings import get_settings

    try:
        parsed = json.loads(params)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Invalid --params JSON: {exc}[/red]")
        raise typer.Exit(2)
    if not isinstance(parsed, dict):
        console.print("[red]--params must be a JSON object[/red]")
        raise typer.Exit(2)

    dispatcher = ToolDispatcher.from_settings(get_settings())
    result = asyncio.run(dispatcher.run(action, parsed))
    console.print_json(data=result.to_dict())
    if result.kind == "error":
        raise typer.Exit(1)


# ============================================================================
# Chat / database
# ============================================================================


@app.command()
def chat(
    message: str = typer.Argument(..., help="Message to send"),
    project: str = typer.Option(None, "--project", "-p", help="Site / project id"),
):
    """Send one chat message and print the reply blocks."""
    from genba.chat.blocks import dump_blocks
    from genba.chat.service import ChatService
    from genba.settings import get_settings
    from genba.storage.database import dispose_engine

    async def run_once():
        svc = ChatService.from_settings(get_settings())
        try:
            reply = await svc.handle_message(message, project)
        finally:
            await dispose_engine()
        console.print(f"[cyan]{__logo__} {reply.intent}[/cyan] ({reply.confidence:.1f})")
        console.print_json(data=dump_blocks(reply.blocks))

    asyncio.run(run_once())


@app.command("init-db")
def init_db():
    """Create all tables in the configured database."""
    from genba.storage.database import create_all_tables, dispose_engine

    async def run():
        await create_all_tables()
        await dispose_engine()

    asyncio.run(run())
    console.print("[green]✓[/green] Database schema ready")


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind address"),
    port: int = typer.Option(None, "--port", help="HTTP port"),
):
    """Start the HTTP API."""
    import uvicorn

    from genba.api.app import create_app
    from genba.logging import setup_logging
    from genba.settings import get_settings

    settings = get_settings()
    setup_logging(settings.log_level)
    bind_host = host or settings.host
    bind_port = port or settings.port
    console.print(f"{__logo__} Starting genba API on {bind_host}:{bind_port}...")
    uvicorn.run(create_app(), host=bind_host, port=bind_port)


if __name__ == "__main__":
    app()
