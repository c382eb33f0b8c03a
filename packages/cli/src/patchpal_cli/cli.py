"""CLI entry point for patchpal.

Commands:
  review   review one pull request event and post the result
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.logging import RichHandler

from patchpal_cli.commands.review import review_cmd


def configure_logging(level: str) -> None:
    """Route log records through rich at ``level`` (e.g. "DEBUG", "info")."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise click.BadParameter(f"Unknown log level: {level!r}", param_hint="--log-level")
    logging.basicConfig(
        level=numeric,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("patchpal"),
    prog_name="patchpal",
)
@click.option(
    "--log-level",
    default=None,
    envvar="LOG_LEVEL",
    help="Logging level (DEBUG, INFO, WARNING, ERROR). Defaults to INFO.",
)
@click.pass_context
def main(ctx: click.Context, log_level: str | None):
    """Review GitHub pull requests with a language model."""
    ctx.ensure_object(dict)
    configure_logging(log_level or "INFO")


main.add_command(review_cmd)
