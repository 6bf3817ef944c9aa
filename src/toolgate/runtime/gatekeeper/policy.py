"""PolicyEvaluator — decides the gate type for a tool call.

Pure logic, no I/O.  The evaluator checks the allowlist first, then the
session rate limit, then the approval-required set.  The order is fixed:
earlier checks are authoritative and cheaper than an approval round-trip.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from toolgate.runtime.gatekeeper.models import PolicyVerdict

if TYPE_CHECKING:
    from toolgate.runtime.gatekeeper.models import SessionContext

NOT_ON_ALLOWLIST = "not on allowlist"
RATE_LIMIT_EXCEEDED = "rate limit exceeded"


class PolicyEvaluator:
    """Evaluate a tool name against a :class:`SessionContext`."""

    def evaluate(self, tool_name: str, session: SessionContext) -> PolicyVerdict:
        """Return the verdict for *tool_name* in *session*.

        Resolution order:
        1. allowlist — unknown tools are denied.
        2. rate limit — denied once ``action_count`` reaches the maximum.
        3. ``approval_required`` — needs an approval decision.
        4. otherwise allowed.

        Never mutates *session*.
        """
        policy = session.policy

        if tool_name not in policy.allowed_tools:
            return PolicyVerdict.denied(NOT_ON_ALLOWLIST)

        if session.action_count >= policy.max_actions_per_session:
            return PolicyVerdict.denied(RATE_LIMIT_EXCEEDED)

        if tool_name in policy.approval_required:
            return PolicyVerdict.requires_approval()

        return PolicyVerdict.allowed()
