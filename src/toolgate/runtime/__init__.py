"""Runtime layer — gated execution, approval coordination and auditing."""

from toolgate.runtime.audit import AuditLogger
from toolgate.runtime.errors import (
    ApprovalDeniedError,
    ApprovalProviderFailedError,
    ApprovalTimedOutError,
    DuplicateRequestIdError,
    ExecutionFailedError,
    GateError,
    PolicyDeniedError,
)
from toolgate.runtime.executor import ExecutionOutcome, ExecutionStatus, GatedExecutor

__all__ = [
    "ApprovalDeniedError",
    "ApprovalProviderFailedError",
    "ApprovalTimedOutError",
    "AuditLogger",
    "DuplicateRequestIdError",
    "ExecutionFailedError",
    "ExecutionOutcome",
    "ExecutionStatus",
    "GateError",
    "GatedExecutor",
    "PolicyDeniedError",
]
