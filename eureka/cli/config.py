"""
Eureka CLI - Configuration Commands

Commands:
    show - Display the effective settings
"""

from __future__ import annotations

from typing import Optional

import typer
from rich.table import Table

from eureka.cli import config_app, console
from eureka.config import Settings


@config_app.command("show")
def show_config(
    key: Optional[str] = typer.Argument(
        None,
        help="Single setting to show (e.g. 'allow_fetch').",
    ),
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format: table, json.",
    ),
) -> None:
    """
    Display current configuration.

    Values come from EUREKA_* environment variables and the .env file,
    falling back to the defaults.
    """
    from eureka.cli.output import print_error, print_json

    config = Settings().model_dump()

    if key:
        if key not in config:
            print_error(f"Unknown setting: {key}")
            raise typer.Exit(1)
        config = {key: config[key]}

    if format == "json":
        print_json(config)
        return

    table = Table(title="Eureka Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for name, value in config.items():
        table.add_row(name, str(value))
    console.print(table)
