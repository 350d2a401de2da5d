"""CLI entry point for doclens.

Commands:
  analyze  score the documents a pull request changes, post suggestions
           and refresh the rewrite branch
  sweep    delete rewrite branches older than the retention window
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from doclens_cli.commands.analyze import analyze_cmd
from doclens_cli.commands.sweep import sweep_cmd

console = Console()

_LOGGER_NAMES = ("doclens_core", "doclens_cli")


def configure_logging(verbose: bool = False) -> None:
    """Route doclens log records through a single RichHandler."""
    level = logging.DEBUG if verbose else logging.INFO
    handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
    handler.setLevel(level)
    for name in _LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.propagate = False
        for existing in list(logger.handlers):
            logger.removeHandler(existing)
        logger.addHandler(handler)


@click.group()
@click.version_option(
    version=importlib.metadata.version("doclens"),
    prog_name="doclens",
)
@click.option(
    "--config",
    "config_path",
    default=".doclens.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="DOCLENS_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Style-engine suggestions and rewrites for documentation pull requests."""
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(analyze_cmd)
main.add_command(sweep_cmd)
