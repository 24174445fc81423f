"""CLI entry point for caroushell. Uses Click for argument parsing."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from caroushell import __version__
from caroushell.app import App
from caroushell.config import does_config_exist, get_config_path
from caroushell.hello_new_user import run_hello_new_user_flow
from caroushell.logs import setup_logging

logger = logging.getLogger(__name__)

LOG_LEVELS = ["debug", "info", "warning", "error"]


def should_run_first_flow() -> bool:
    """The walkthrough needs a missing config and a terminal on both ends."""
    return not does_config_exist() and sys.stdin.isatty() and sys.stdout.isatty()


async def _main(first_run: bool) -> int:
    if first_run:
        await run_hello_new_user_flow(get_config_path())
    app = App()
    return await app.run()


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "-v", "--version", message="%(version)s")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="info",
    show_default=True,
    help="Verbosity of the log file in ~/.caroushell/logs",
)
def main(log_level: str) -> None:
    """A terminal shell with history and AI suggestions above and below the prompt."""
    if not sys.stdin.isatty():
        raise click.UsageError("caroushell needs an interactive terminal")

    log_path = setup_logging(log_level)
    logger.info("Caroushell %s started, logging to %s", __version__, log_path)

    code = asyncio.run(_main(first_run=should_run_first_flow()))
    logger.info("Caroushell exiting with %s", code)
    sys.exit(code)
