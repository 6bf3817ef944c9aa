"""Gatekeeper subsystem — policy evaluation and approval coordination."""

from toolgate.runtime.gatekeeper.coordinator import ApprovalCoordinator, generate_request_id
from toolgate.runtime.gatekeeper.gatekeeper import (
    AutoApproveProvider,
    CLIApprovalProvider,
    DecisionProvider,
    PathPolicyProvider,
)
from toolgate.runtime.gatekeeper.models import (
    ApprovalConfig,
    ApprovalDecision,
    ApprovalRequest,
    Policy,
    PolicyAction,
    PolicyVerdict,
    SessionContext,
    TimeoutBehavior,
)
from toolgate.runtime.gatekeeper.policy import PolicyEvaluator
from toolgate.runtime.gatekeeper.registry import PendingRequestRegistry

__all__ = [
    "ApprovalConfig",
    "ApprovalCoordinator",
    "ApprovalDecision",
    "ApprovalRequest",
    "AutoApproveProvider",
    "CLIApprovalProvider",
    "DecisionProvider",
    "PathPolicyProvider",
    "PendingRequestRegistry",
    "Policy",
    "PolicyAction",
    "PolicyEvaluator",
    "PolicyVerdict",
    "SessionContext",
    "TimeoutBehavior",
    "generate_request_id",
]
