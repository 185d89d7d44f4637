"""CLI interface for Chatterm."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from chatterm import __version__
from chatterm.client import CompletionClient
from chatterm.config import ChatConfig, configure_logging
from chatterm.exceptions import ChattermError, ConfigError
from chatterm.tui import run_tui
from chatterm.ui import print_error, print_welcome

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="chatterm",
    help="Chat with Claude from the terminal, with streamed responses.",
    add_completion=False,
)
console = Console(stderr=True)


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"chatterm {__version__}")
        raise typer.Exit()


@app.command()
def main(
    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a TOML config file"),
    ] = None,
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = None,
) -> None:
    """Start an interactive chat session. Esc or Ctrl+C quits."""
    try:
        config = ChatConfig.load(config_file)
    except ConfigError as e:
        print_error(console, str(e))
        raise typer.Exit(1) from None

    configure_logging(config)

    with CompletionClient(config) as client:
        if config.check_on_startup:
            try:
                client.probe()
            except ChattermError as e:
                print_error(console, f"Service check failed: {e}")
                raise typer.Exit(1) from None

        print_welcome(console, config.model)
        unsent = asyncio.run(run_tui(config, client))

    # The unsent input goes to stdout so it can be recovered by the caller.
    sys.stdout.write(unsent + "\n")
    sys.stdout.flush()
    logger.debug("Exited cleanly")


if __name__ == "__main__":
    app()
