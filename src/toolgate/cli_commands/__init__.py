"""CLI subcommand registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all subcommands on the CLI group."""
    from toolgate.cli_commands.policy import policy
    from toolgate.cli_commands.simulate import simulate

    cli.add_command(policy)
    cli.add_command(simulate)
