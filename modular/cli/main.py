#!/usr/bin/env python3
"""
Modular CLI - Reducer Module Composition

Main entrypoint for the modular command-line tool.
"""

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .commands import graph
from ..logging_config import setup_logging
from ..metrics import metrics_settings_from_env, start_metrics_server

app = typer.Typer(
    name="modular",
    help="Modular reducer composition CLI",
    add_completion=False,
)

console = Console()

app.command(name="graph")(graph.graph_command)


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Enable engine logs at this level"),
):
    """Modular reducer composition CLI."""
    if log_level:
        setup_logging(level=log_level, log_format="text")

    enabled, port = metrics_settings_from_env()
    start_metrics_server(enabled=enabled, port=port)


@app.command()
def version():
    """Show version information."""
    from . import __version__

    table = Table(show_header=False, box=None)
    table.add_row("[bold]Modular CLI[/bold]", f"v{__version__}")
    table.add_row("Engine", "Module graph composition")

    console.print(table)


def main():
    """Main entrypoint."""
    app()


if __name__ == "__main__":
    main()
