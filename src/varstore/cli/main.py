"""varstore CLI entry point."""

import logging

import click

from varstore.config import get_settings


@click.group()
@click.option(
    "--log-level",
    default=None,
    help="Logging level (overrides VARSTORE_LOG_LEVEL).",
)
def cli(log_level: str | None):
    """varstore: evaluate expressions against scoped variables."""
    level = (log_level or get_settings().log_level).upper()
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


# Register subcommands
from varstore.cli.expr_cmd import eval_cmd, parse_cmd  # noqa: E402

cli.add_command(eval_cmd)
cli.add_command(parse_cmd)
