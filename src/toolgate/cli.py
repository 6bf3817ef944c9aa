"""toolgate CLI entrypoint."""

from __future__ import annotations

import logging

import click

from toolgate import __version__


@click.group()
@click.version_option(version=__version__, prog_name="toolgate")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity.",
)
def main(log_level: str) -> None:
    """toolgate — allowlist, rate-limit and approval gates for agent tools."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Register subcommands
from toolgate.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
