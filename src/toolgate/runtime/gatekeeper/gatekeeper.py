"""Decision provider protocol and implementations.

- ``DecisionProvider`` — runtime-checkable protocol for approval sources.
- ``AutoApproveProvider`` — always approves (for testing/CI).
- ``CLIApprovalProvider`` — prompts a human operator via stdin/stdout.
- ``PathPolicyProvider`` — automated policy that refuses writes to protected paths.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from toolgate.runtime.gatekeeper.models import ApprovalDecision, ApprovalRequest

logger = logging.getLogger(__name__)

DEFAULT_PROTECTED_PATHS = ("/sensitive/", "/config/")
DEFAULT_WRITE_TOOLS = ("write_file", "delete_file")


@runtime_checkable
class DecisionProvider(Protocol):
    """Produces exactly one decision per approval request."""

    async def request_approval(self, request: ApprovalRequest) -> ApprovalDecision:
        """Decide on *request*; may take arbitrarily long."""
        ...


class AutoApproveProvider:
    """Always approves — suitable for tests and CI pipelines.

    Satisfies the :class:`DecisionProvider` protocol.
    """

    approver = "auto-approve"

    async def request_approval(self, request: ApprovalRequest) -> ApprovalDecision:
        logger.debug("AutoApproveProvider: auto-approving %s", request.tool_name)
        return ApprovalDecision(
            request_id=request.request_id,
            approved=True,
            approver=self.approver,
            reason="auto-approved",
        )


class CLIApprovalProvider:
    """Asks a human operator at the terminal.

    Satisfies the :class:`DecisionProvider` protocol.

    Uses ``loop.run_in_executor(None, input)`` to read from stdin without
    blocking the event loop.  The coordinator's timeout bounds the wait.

    The executor thread cannot be interrupted: after a timeout the pending
    ``input()`` keeps reading, so the operator's next line is consumed by the
    abandoned call and discarded, and ``asyncio.run`` blocks at shutdown
    until that line arrives.  Use a short-lived process or an automated
    provider where timeouts are expected.
    """

    approver = "human-operator"

    async def request_approval(self, request: ApprovalRequest) -> ApprovalDecision:
        self._print_summary(request)

        loop = asyncio.get_running_loop()
        answer: str = await loop.run_in_executor(None, self._read_input)

        approved = answer.strip().lower() in ("y", "yes")
        return ApprovalDecision(
            request_id=request.request_id,
            approved=approved,
            approver=self.approver,
            reason=None if approved else "denied by operator",
        )

    @staticmethod
    def _print_summary(request: ApprovalRequest) -> None:
        """Print a human-readable request summary to stdout."""
        sep = "=" * 60
        sys.stdout.write(f"\n{sep}\n  APPROVAL REQUIRED\n")
        sys.stdout.write(f"  Tool:    {request.tool_name}\n")
        sys.stdout.write(f"  Agent:   {request.agent_id}\n")
        sys.stdout.write(f"  Session: {request.session_id}\n")
        if request.context:
            sys.stdout.write(f"  Context: {request.context}\n")
        if request.params:
            sys.stdout.write(f"  Params:  {request.params}\n")
        sys.stdout.write(f"{sep}\n")
        sys.stdout.write("  Approve? [y/N]: ")
        sys.stdout.flush()

    @staticmethod
    def _read_input() -> str:
        """Blocking read from stdin (run in executor)."""
        return input()


class PathPolicyProvider:
    """Automated policy engine: deny write tools that touch protected paths.

    Every other request is approved.  The path is read from the ``path``
    parameter unless *path_params* names others.
    """

    approver = "policy-engine"

    def __init__(
        self,
        *,
        protected_paths: Iterable[str] = DEFAULT_PROTECTED_PATHS,
        write_tools: Iterable[str] = DEFAULT_WRITE_TOOLS,
        path_params: Iterable[str] = ("path",),
    ) -> None:
        self._protected_paths = tuple(protected_paths)
        self._write_tools = frozenset(write_tools)
        self._path_params = tuple(path_params)

    async def request_approval(self, request: ApprovalRequest) -> ApprovalDecision:
        offending = self._find_protected_path(request)
        if offending is not None:
            logger.info(
                "PathPolicyProvider: denying %s on protected path %s",
                request.tool_name,
                offending,
            )
            return ApprovalDecision(
                request_id=request.request_id,
                approved=False,
                approver=self.approver,
                reason=f"policy: write to protected path {offending} denied",
            )
        return ApprovalDecision(
            request_id=request.request_id,
            approved=True,
            approver=self.approver,
        )

    def _find_protected_path(self, request: ApprovalRequest) -> str | None:
        if request.tool_name not in self._write_tools:
            return None
        for key in self._path_params:
            value = request.params.get(key)
            if not isinstance(value, str):
                continue
            if any(fragment in value for fragment in self._protected_paths):
                return value
        return None
