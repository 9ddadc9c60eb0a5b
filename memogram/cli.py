"""Memogram CLI — command line interface."""

import asyncio
import logging

import click
from rich.console import Console
from rich.table import Table

from memogram import __version__

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="memogram")
def cli():
    """Memogram — save Telegram messages to Memos"""


@cli.command()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def start(debug):
    """Start the Telegram bot."""
    from .main import run, setup_logging

    setup_logging(debug=debug)
    console.print(f"[bold blue]Starting Memogram v{__version__}...[/bold blue]")
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")
    except ValueError as e:
        # pydantic's ValidationError is a ValueError too
        console.print(f"[red]Configuration error:[/red] {e}")
        raise SystemExit(1)


def _mask(token: str) -> str:
    if len(token) <= 8:
        return "****"
    return f"{token[:4]}…{token[-4:]}"


@cli.command()
@click.option("--data", "data_path", default=None, help="Credential file (default: $DATA or data.txt)")
def tokens(data_path):
    """List Telegram users with a linked access token."""
    import os

    from .store import CredentialStore

    logging.basicConfig(level=logging.WARNING)
    path = data_path or os.environ.get("DATA") or "data.txt"
    if not os.path.exists(path):
        console.print(f"[yellow]No credential file at {path}[/yellow]")
        return

    store = CredentialStore(path)
    store.load()
    records = store.records()
    if not records:
        console.print("[dim]No linked users.[/dim]")
        return

    table = Table(title=f"Linked users ({len(records)})")
    table.add_column("Telegram user ID", justify="right")
    table.add_column("Access token")
    for record in records:
        table.add_row(str(record.user_id), _mask(record.token))
    console.print(table)


def main():
    """CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
