"""
Eureka - Command Line Interface

Command line tools for trying extensions outside a live host. Built with
Typer for the command-line experience and Rich for output.

Usage:
    $ eureka --help
    $ eureka inspect ./my_extension.py
    $ eureka inspect https://example.com/ext.py --json
    $ eureka config show

Sub-command Groups:
    config   - Configuration commands

For detailed help on any command:
    $ eureka <command> --help
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from eureka import __version__
from eureka.config import settings

# Create main console for output
console = Console()
err_console = Console(stderr=True)

# Create main application
app = typer.Typer(
    name="eureka",
    help="Eureka - extension loader for block-based programming hosts",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)

config_app = typer.Typer(
    name="config",
    help="Configuration commands",
    no_args_is_help=True,
)

app.add_typer(config_app, name="config")


def configure_logging(level: str | int) -> None:
    """Route Eureka's loggers through Rich on stderr."""
    handler = RichHandler(console=err_console, show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("[eureka] %(message)s"))
    logging.basicConfig(level=level, handlers=[handler])


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"Eureka version {__version__}")
        raise typer.Exit()


def verbose_callback(value: bool) -> None:
    """Set verbose mode."""
    configure_logging(logging.DEBUG if value else settings.log_level)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        callback=verbose_callback,
        help="Enable verbose output.",
    ),
) -> None:
    """
    Eureka - extension loader for block-based programming hosts.

    Use --help on any subcommand for detailed information.
    """


# Imported at the end to register their commands on the apps above
from eureka.cli import config, extensions  # noqa: E402,F401

__all__ = [
    "app",
    "config_app",
    "console",
    "err_console",
    "configure_logging",
    "__version__",
]


def cli() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    cli()
