"""Ore CLI Main Entry Point

Usage:
    ore serve                          # serve the app found via ore.yaml
    ore render /test                   # run a route and print the document
    ore compile sample-counter         # print the client module of a component
    ore compile index -t server        # print the generated server template module
    ore --version
"""

from __future__ import annotations

import asyncio
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from ore._version import __version__
from ore.app import ore
from ore.compiler.spec import validate_component_id
from ore.exceptions import OreError

console = Console(stderr=True)

typer_app = typer.Typer(help="Server-rendered single-file components.")


class CompileTarget(str, Enum):
    client = "client"
    server = "server"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the ore CLI.

    Log levels:
    - Normal: Only warnings/errors shown
    - Verbose (-v): INFO level - shows renders and connections
    - Debug (ORE_DEBUG=1): DEBUG level - shows everything
    """
    debug = bool(os.environ.get("ORE_DEBUG"))
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler = RichHandler(
        console=console,
        show_time=verbose,
        show_path=debug,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    ore_logger = logging.getLogger("ore")
    ore_logger.setLevel(level)
    ore_logger.handlers = [handler]
    ore_logger.propagate = False


def _fail(exc: Exception) -> None:
    typer.secho(f"Error: {exc}", err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1)


@typer_app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging."),
    config: Optional[Path] = typer.Option(
        None, "-c", "--config", help="Path to ore.yaml."
    ),
) -> None:
    """Server-rendered single-file components with client hydration."""
    if version:
        typer.echo(f"ore {__version__}")
        raise typer.Exit()

    setup_logging(verbose)
    if config is not None:
        ore.configure(config)

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


@typer_app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address."),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port."),
) -> None:
    """Serve the application with uvicorn."""
    import uvicorn

    from ore.server import create_app

    settings = ore.config.server
    uvicorn.run(
        create_app(ore),
        host=host or settings.host,
        port=port or settings.port,
        log_level="info",
    )


@typer_app.command()
def render(route: str = typer.Argument("/", help="URL path to render.")) -> None:
    """Run a route's logic and print the rendered document."""
    try:
        html = asyncio.run(ore.router.dispatch(route))
    except OreError as exc:
        _fail(exc)
    typer.echo(html)


@typer_app.command("compile")
def compile_component(
    component_id: str = typer.Argument(..., help="Component id, e.g. sample-counter."),
    target: CompileTarget = typer.Option(
        CompileTarget.client, "-t", "--target", help="Compilation target."
    ),
) -> None:
    """Print the generated module of a component."""
    try:
        validate_component_id(component_id)
        if target == CompileTarget.client:
            source = ore.view.compile_for_client_id(component_id)
        else:
            compiler = ore.view.compiler
            source = compiler.generate_server_source(compiler.identity(component_id))
    except OreError as exc:
        _fail(exc)
    typer.echo(source)


def app() -> None:
    """Entry point for the CLI."""
    typer_app()


if __name__ == "__main__":
    app()
