"""Shared CLI output formatters."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from toolgate.config.models import GateSettings  # noqa: TC001
from toolgate.runtime.executor import ExecutionOutcome, ExecutionStatus  # noqa: TC001
from toolgate.runtime.gatekeeper.models import PolicyAction, PolicyVerdict  # noqa: TC001

console = Console()

_STATUS_STYLES = {
    ExecutionStatus.EXECUTED: "green",
    ExecutionStatus.EXECUTION_FAILED: "red",
    ExecutionStatus.DENIED: "yellow",
    ExecutionStatus.DENIED_BY_APPROVAL: "yellow",
    ExecutionStatus.APPROVAL_TIMED_OUT: "magenta",
}

_VERDICT_STYLES = {
    PolicyAction.ALLOWED: "green",
    PolicyAction.REQUIRES_APPROVAL: "cyan",
    PolicyAction.DENIED: "red",
}


def print_settings(settings: GateSettings, *, as_json: bool = False) -> None:
    """Pretty-print a gate configuration."""
    if as_json:
        console.print_json(settings.model_dump_json())
        return

    policy = settings.policy
    approval = settings.approval
    console.print("\n[bold]Policy[/bold]")
    console.print(f"  Max actions per session: {policy.max_actions_per_session}")
    console.print(f"  Approval timeout: {approval.timeout}s ({approval.timeout_behavior})")
    if approval.protected_paths:
        console.print(f"  Protected paths: {', '.join(approval.protected_paths)}")

    table = Table(title="Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Gate")

    required = set(policy.approval_required)
    for name in sorted(set(policy.allowed_tools) | required):
        if name not in policy.allowed_tools:
            gate = "[red]denied (not on allowlist)[/red]"
        elif name in required:
            gate = "approval"
        else:
            gate = "allowed"
        table.add_row(name, gate)

    console.print(table)


def print_verdict(tool_name: str, verdict: PolicyVerdict) -> None:
    style = _VERDICT_STYLES[verdict.action]
    line = f"{tool_name}: [{style}]{verdict.action.value}[/{style}]"
    if verdict.reason:
        line += f" ({verdict.reason})"
    console.print(line)


def print_outcomes_table(outcomes: list[ExecutionOutcome]) -> None:
    """Pretty-print simulated outcomes as a table."""
    table = Table(title="Gated Invocations")
    table.add_column("#", justify="right")
    table.add_column("Tool", style="cyan")
    table.add_column("Status")
    table.add_column("Approver")
    table.add_column("Reason")

    for index, outcome in enumerate(outcomes, start=1):
        style = _STATUS_STYLES[outcome.status]
        table.add_row(
            str(index),
            outcome.tool_name,
            f"[{style}]{outcome.status.value}[/{style}]",
            outcome.decision.approver if outcome.decision else "-",
            _truncate(outcome.reason or ""),
        )

    console.print(table)


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
