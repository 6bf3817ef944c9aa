"""``toolgate simulate`` — run tool names through the full gate with no-op operations."""

from __future__ import annotations

import asyncio
import sys
import uuid
from typing import Any

import click

from toolgate.cli_commands._output import console, print_outcomes_table
from toolgate.config.errors import ConfigValidationError
from toolgate.config.loader import load_settings
from toolgate.config.models import GateSettings  # noqa: TC001
from toolgate.runtime.errors import ApprovalProviderFailedError
from toolgate.runtime.executor import ExecutionOutcome, GatedExecutor
from toolgate.runtime.gatekeeper.coordinator import ApprovalCoordinator
from toolgate.runtime.gatekeeper.gatekeeper import (
    AutoApproveProvider,
    CLIApprovalProvider,
    DecisionProvider,
    PathPolicyProvider,
)
from toolgate.runtime.gatekeeper.models import SessionContext
from toolgate.utils.telemetry import configure_from_settings


def _parse_params(values: tuple[str, ...]) -> dict[str, Any]:
    params: dict[str, Any] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", param_hint="--param")
        params[key] = value
    return params


def _make_provider(kind: str, settings: GateSettings) -> DecisionProvider:
    if kind == "prompt":
        return CLIApprovalProvider()
    if kind == "path":
        return PathPolicyProvider(protected_paths=settings.approval.protected_paths)
    return AutoApproveProvider()


async def _simulate(
    settings: GateSettings,
    tool_names: tuple[str, ...],
    params: dict[str, Any],
    *,
    provider: DecisionProvider,
    agent_id: str,
    session_id: str,
    context: str,
) -> tuple[list[ExecutionOutcome], SessionContext]:
    coordinator = ApprovalCoordinator(provider, config=settings.to_approval_config())
    executor = GatedExecutor(coordinator)
    session = SessionContext(session_id=session_id, policy=settings.to_policy())

    outcomes: list[ExecutionOutcome] = []
    try:
        for name in tool_names:
            outcome = await executor.execute(
                name,
                params,
                lambda name=name: {"tool": name, "simulated": True},
                session=session,
                agent_id=agent_id,
                context=context,
            )
            outcomes.append(outcome)
    finally:
        await coordinator.aclose()
    return outcomes, session


@click.command("simulate")
@click.argument("config_file", type=click.Path(exists=True))
@click.argument("tool_names", nargs=-1, required=True)
@click.option("--param", "param_items", multiple=True, help="Tool parameter as KEY=VALUE.")
@click.option(
    "--decision",
    type=click.Choice(["auto", "path", "prompt"]),
    default="path",
    show_default=True,
    help="Decision provider used for tools that require approval.",
)
@click.option("--agent-id", default="cli-agent", show_default=True)
@click.option("--session-id", default=None, help="Session id (random by default).")
@click.option("--context", default="", help="Free-text context shown to approvers.")
def simulate(
    config_file: str,
    tool_names: tuple[str, ...],
    param_items: tuple[str, ...],
    decision: str,
    agent_id: str,
    session_id: str | None,
    context: str,
) -> None:
    """Run TOOL_NAMES in order through one session gated by CONFIG_FILE.

    Each tool that passes every gate runs a no-op operation.
    """
    try:
        settings = load_settings(config_file)
    except ConfigValidationError as exc:
        console.print(f"[red]Invalid configuration:[/red] {exc}")
        sys.exit(1)

    params = _parse_params(param_items)
    configure_from_settings(settings.telemetry)

    try:
        outcomes, session = asyncio.run(
            _simulate(
                settings,
                tool_names,
                params,
                provider=_make_provider(decision, settings),
                agent_id=agent_id,
                session_id=session_id or f"sim-{uuid.uuid4().hex[:8]}",
                context=context,
            )
        )
    except ApprovalProviderFailedError as exc:
        console.print(f"[red]Approval provider error:[/red] {exc}")
        sys.exit(1)

    print_outcomes_table(outcomes)
    console.print(
        f"\nActions used: {session.action_count}/{session.policy.max_actions_per_session}"
    )
