"""Data models for the gatekeeper subsystem."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

TIMEOUT_REQUEST_ID = "timeout"
SYSTEM_APPROVER = "system"
ESCALATION_APPROVER = "escalation-required"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PolicyAction(str, Enum):
    """Gate type the policy prescribes for a tool call."""

    ALLOWED = "allowed"
    DENIED = "denied"
    REQUIRES_APPROVAL = "requires_approval"


class TimeoutBehavior(str, Enum):
    """How an approval timeout is tagged. Both modes deny execution."""

    DENY = "deny"
    ESCALATE = "escalate"


class PolicyVerdict(BaseModel):
    """Result of evaluating a tool name against a session's policy."""

    model_config = ConfigDict(frozen=True)

    action: PolicyAction
    reason: str | None = None

    @classmethod
    def allowed(cls) -> PolicyVerdict:
        return cls(action=PolicyAction.ALLOWED)

    @classmethod
    def denied(cls, reason: str) -> PolicyVerdict:
        return cls(action=PolicyAction.DENIED, reason=reason)

    @classmethod
    def requires_approval(cls) -> PolicyVerdict:
        return cls(action=PolicyAction.REQUIRES_APPROVAL)


class Policy(BaseModel):
    """Per-session tool policy.

    A tool missing from ``allowed_tools`` is denied even when it is listed in
    ``approval_required``: approval is layered on top of the allowlist, never
    a substitute for it.
    """

    model_config = ConfigDict(frozen=True)

    allowed_tools: frozenset[str] = Field(
        default_factory=frozenset,
        description="Tool names permitted at all.",
    )
    approval_required: frozenset[str] = Field(
        default_factory=frozenset,
        description="Allowlisted tool names that additionally need an approval decision.",
    )
    max_actions_per_session: int = Field(
        default=50,
        ge=0,
        description="Maximum executions attempted per session.",
    )


class SessionContext(BaseModel):
    """Mutable state for one agent session: its policy and action counter."""

    session_id: str
    policy: Policy
    action_count: int = Field(default=0, ge=0)

    @property
    def remaining_actions(self) -> int:
        return max(self.policy.max_actions_per_session - self.action_count, 0)

    def try_consume(self) -> bool:
        """Increment the counter if the rate limit still allows it.

        Check and increment happen without a suspension point, so concurrent
        tasks sharing this session cannot both pass on a stale count.
        """
        if self.action_count >= self.policy.max_actions_per_session:
            return False
        self.action_count += 1
        return True


class ApprovalConfig(BaseModel):
    """Timeout settings for the approval coordinator."""

    timeout: float = Field(
        default=300.0,
        gt=0,
        description="Seconds to wait for a decision before the timeout decision wins.",
    )
    timeout_behavior: TimeoutBehavior = Field(
        default=TimeoutBehavior.DENY,
        description="Tag applied to timeout decisions.",
    )


class ApprovalRequest(BaseModel):
    """A pending request for a decision on one gated tool call."""

    request_id: str
    tool_name: str
    params: dict[str, Any] = Field(default_factory=dict)
    agent_id: str
    session_id: str
    context: str = Field(default="", description="Why the agent wants to run the tool.")
    created_at: datetime = Field(default_factory=_utcnow)


class ApprovalDecision(BaseModel):
    """The terminal decision for an approval request."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    approved: bool
    approver: str
    reason: str | None = None
    decided_at: datetime = Field(default_factory=_utcnow)

    @property
    def timed_out(self) -> bool:
        return self.request_id == TIMEOUT_REQUEST_ID

    @property
    def escalation_required(self) -> bool:
        return self.approver == ESCALATION_APPROVER

    @classmethod
    def for_timeout(cls, timeout: float, behavior: TimeoutBehavior) -> ApprovalDecision:
        """Manufacture the denial produced when no decision arrives in time."""
        if behavior == TimeoutBehavior.ESCALATE:
            return cls(
                request_id=TIMEOUT_REQUEST_ID,
                approved=False,
                approver=ESCALATION_APPROVER,
                reason=f"Approval timed out after {timeout}s - escalation required",
            )
        return cls(
            request_id=TIMEOUT_REQUEST_ID,
            approved=False,
            approver=SYSTEM_APPROVER,
            reason=f"Approval timed out after {timeout}s - denied by timeout policy",
        )
