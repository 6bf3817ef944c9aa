"""Pydantic models for the gate configuration YAML consumed by the CLI."""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field

from toolgate.runtime.gatekeeper.gatekeeper import DEFAULT_PROTECTED_PATHS
from toolgate.runtime.gatekeeper.models import ApprovalConfig, Policy, TimeoutBehavior

logger = logging.getLogger(__name__)


class TelemetrySettings(BaseModel):
    """Optional telemetry configuration."""

    enabled: bool = False
    otlp_endpoint: str | None = None


class PolicySettings(BaseModel):
    """Allowlist, approval set and rate limit."""

    allowed_tools: list[str] = []
    approval_required: list[str] = []
    max_actions_per_session: int = Field(default=50, ge=0)


class ApprovalSettings(BaseModel):
    """Approval timeout and the automated path policy."""

    timeout: float = Field(default=300.0, gt=0)
    timeout_behavior: Literal["deny", "escalate"] = "deny"
    protected_paths: list[str] = list(DEFAULT_PROTECTED_PATHS)


class GateSettings(BaseModel):
    """Top-level gate configuration parsed from YAML."""

    version: str = "1"
    policy: PolicySettings = Field(default_factory=PolicySettings)
    approval: ApprovalSettings = Field(default_factory=ApprovalSettings)
    telemetry: TelemetrySettings | None = None

    def to_policy(self) -> Policy:
        unreachable = sorted(set(self.policy.approval_required) - set(self.policy.allowed_tools))
        if unreachable:
            logger.warning(
                "approval_required tools not in allowed_tools are always denied: %s",
                ", ".join(unreachable),
            )
        return Policy(
            allowed_tools=frozenset(self.policy.allowed_tools),
            approval_required=frozenset(self.policy.approval_required),
            max_actions_per_session=self.policy.max_actions_per_session,
        )

    def to_approval_config(self) -> ApprovalConfig:
        return ApprovalConfig(
            timeout=self.approval.timeout,
            timeout_behavior=TimeoutBehavior(self.approval.timeout_behavior),
        )
