"""``toolgate policy`` — inspect a gate configuration."""

from __future__ import annotations

import sys

import click

from toolgate.cli_commands._output import console, print_settings, print_verdict
from toolgate.config.errors import ConfigValidationError
from toolgate.config.loader import load_settings
from toolgate.runtime.gatekeeper.models import PolicyAction, SessionContext
from toolgate.runtime.gatekeeper.policy import PolicyEvaluator


@click.group()
def policy() -> None:
    """Inspect gate policies."""


@policy.command("show")
@click.argument("config_file", type=click.Path(exists=True))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def show(config_file: str, as_json: bool) -> None:
    """Show the policy in CONFIG_FILE."""
    try:
        settings = load_settings(config_file)
    except ConfigValidationError as exc:
        console.print(f"[red]Invalid configuration:[/red] {exc}")
        sys.exit(1)

    print_settings(settings, as_json=as_json)


@policy.command("check")
@click.argument("config_file", type=click.Path(exists=True))
@click.argument("tool_name")
@click.option(
    "--actions",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Actions already taken in the session.",
)
def check(config_file: str, tool_name: str, actions: int) -> None:
    """Evaluate TOOL_NAME against CONFIG_FILE without running anything.

    Exits with status 1 when the tool would be denied.
    """
    try:
        settings = load_settings(config_file)
    except ConfigValidationError as exc:
        console.print(f"[red]Invalid configuration:[/red] {exc}")
        sys.exit(1)

    session = SessionContext(
        session_id="policy-check",
        policy=settings.to_policy(),
        action_count=actions,
    )
    verdict = PolicyEvaluator().evaluate(tool_name, session)
    print_verdict(tool_name, verdict)

    if verdict.action == PolicyAction.DENIED:
        sys.exit(1)
