"""GatedExecutor — runs a tool operation only after every gate passes.

Same wrapper pattern as a dispatcher guard: evaluate policy, optionally wait
for an approval decision, then invoke the caller's operation thunk.  Denials
come back as :class:`ExecutionOutcome` values rather than exceptions.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from pydantic import BaseModel, ConfigDict

from toolgate.runtime.errors import (
    ApprovalDeniedError,
    ApprovalTimedOutError,
    ExecutionFailedError,
    PolicyDeniedError,
)
from toolgate.runtime.gatekeeper.models import ApprovalDecision, PolicyAction, SessionContext
from toolgate.runtime.gatekeeper.policy import RATE_LIMIT_EXCEEDED, PolicyEvaluator
from toolgate.utils.telemetry import (
    ATTR_ACTION_COUNT,
    ATTR_AGENT_ID,
    ATTR_POLICY_ACTION,
    ATTR_SESSION_ID,
    ATTR_STATUS,
    ATTR_TOOL_NAME,
    get_tracer,
)

if TYPE_CHECKING:
    from toolgate.runtime.audit import AuditLogger
    from toolgate.runtime.gatekeeper.coordinator import ApprovalCoordinator

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

Operation = Callable[[], Any]


class ExecutionStatus(str, Enum):
    """Terminal state of one gated invocation."""

    DENIED = "denied"
    DENIED_BY_APPROVAL = "denied_by_approval"
    APPROVAL_TIMED_OUT = "approval_timed_out"
    EXECUTED = "executed"
    EXECUTION_FAILED = "execution_failed"


class ExecutionOutcome(BaseModel):
    """Uniform record of what happened to a gated tool call.

    ``approved`` is true whenever every gate passed, including when the
    operation itself then failed.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    tool_name: str
    status: ExecutionStatus
    approved: bool
    result: Any = None
    reason: str | None = None
    decision: ApprovalDecision | None = None
    error: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == ExecutionStatus.EXECUTED

    @property
    def escalation_required(self) -> bool:
        return self.decision is not None and self.decision.escalation_required

    def unwrap(self) -> Any:
        """Return the result, or raise the error matching this outcome."""
        if self.status == ExecutionStatus.EXECUTED:
            return self.result
        if self.status == ExecutionStatus.EXECUTION_FAILED:
            raise ExecutionFailedError(self.tool_name, str(self.error or "")) from self.error
        if self.status == ExecutionStatus.APPROVAL_TIMED_OUT:
            raise ApprovalTimedOutError(
                self.tool_name,
                reason=self.reason or "",
                escalate=self.escalation_required,
            )
        if self.status == ExecutionStatus.DENIED_BY_APPROVAL:
            raise ApprovalDeniedError(self.tool_name, reason=self.reason or "")
        raise PolicyDeniedError(self.tool_name, reason=self.reason or "")


class GatedExecutor:
    """Policy- and approval-aware runner for privileged tool operations.

    For every :meth:`execute` call:
    1. **Policy evaluation** — allowlist, rate limit, approval requirement.
    2. **Approval** — if required, delegate to the :class:`ApprovalCoordinator`.
    3. **Execution** — consume one action from the session and run the
       operation, recording success or failure.
    """

    def __init__(
        self,
        coordinator: ApprovalCoordinator,
        *,
        evaluator: PolicyEvaluator | None = None,
        audit: AuditLogger | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._evaluator = evaluator or PolicyEvaluator()
        self._audit = audit

    @property
    def coordinator(self) -> ApprovalCoordinator:
        return self._coordinator

    async def execute(
        self,
        tool_name: str,
        params: dict[str, Any],
        operation: Operation,
        *,
        session: SessionContext,
        agent_id: str,
        context: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> ExecutionOutcome:
        """Gate *operation* and run it if allowed.

        *metadata* is attached to the audit records for this call.

        Raises:
            ApprovalProviderFailedError: The decision provider errored.
        """
        with _tracer.start_as_current_span("gate.execute") as span:
            span.set_attribute(ATTR_TOOL_NAME, tool_name)
            span.set_attribute(ATTR_AGENT_ID, agent_id)
            span.set_attribute(ATTR_SESSION_ID, session.session_id)

            outcome = await self._execute(
                tool_name,
                params,
                operation,
                session=session,
                agent_id=agent_id,
                context=context,
                metadata=metadata,
            )

            span.set_attribute(ATTR_STATUS, outcome.status.value)
            span.set_attribute(ATTR_ACTION_COUNT, session.action_count)

        if not outcome.approved:
            self._record_blocked(
                tool_name, params, outcome, session=session, agent_id=agent_id, metadata=metadata
            )
        return outcome

    async def _execute(
        self,
        tool_name: str,
        params: dict[str, Any],
        operation: Operation,
        *,
        session: SessionContext,
        agent_id: str,
        context: str,
        metadata: dict[str, Any] | None,
    ) -> ExecutionOutcome:
        verdict = self._evaluator.evaluate(tool_name, session)
        trace.get_current_span().set_attribute(ATTR_POLICY_ACTION, verdict.action.value)

        if verdict.action == PolicyAction.DENIED:
            return ExecutionOutcome(
                tool_name=tool_name,
                status=ExecutionStatus.DENIED,
                approved=False,
                reason=verdict.reason,
            )

        decision: ApprovalDecision | None = None
        if verdict.action == PolicyAction.REQUIRES_APPROVAL:
            decision = await self._coordinator.decide(
                tool_name,
                params,
                agent_id=agent_id,
                session_id=session.session_id,
                context=context,
            )
            if not decision.approved:
                return ExecutionOutcome(
                    tool_name=tool_name,
                    status=(
                        ExecutionStatus.APPROVAL_TIMED_OUT
                        if decision.timed_out
                        else ExecutionStatus.DENIED_BY_APPROVAL
                    ),
                    approved=False,
                    reason=decision.reason,
                    decision=decision,
                )

        # The limit may have been used up by another task while this one
        # waited for approval.
        if not session.try_consume():
            return ExecutionOutcome(
                tool_name=tool_name,
                status=ExecutionStatus.DENIED,
                approved=False,
                reason=RATE_LIMIT_EXCEEDED,
                decision=decision,
            )

        try:
            result = await self._run(
                tool_name, params, operation, session=session, agent_id=agent_id, metadata=metadata
            )
        except Exception as exc:
            logger.warning("Tool %s failed after passing all gates: %s", tool_name, exc)
            return ExecutionOutcome(
                tool_name=tool_name,
                status=ExecutionStatus.EXECUTION_FAILED,
                approved=True,
                reason=str(exc) or type(exc).__name__,
                decision=decision,
                error=exc,
            )

        logger.debug("Tool %s executed (session %s)", tool_name, session.session_id)
        return ExecutionOutcome(
            tool_name=tool_name,
            status=ExecutionStatus.EXECUTED,
            approved=True,
            result=result,
            decision=decision,
        )

    async def _run(
        self,
        tool_name: str,
        params: dict[str, Any],
        operation: Operation,
        *,
        session: SessionContext,
        agent_id: str,
        metadata: dict[str, Any] | None,
    ) -> Any:
        if self._audit is not None:
            return await self._audit.wrap(
                tool_name,
                params,
                operation,
                agent_id=agent_id,
                session_id=session.session_id,
                metadata=metadata,
            )
        result = operation()
        if inspect.isawaitable(result):
            result = await result
        return result

    def _record_blocked(
        self,
        tool_name: str,
        params: dict[str, Any],
        outcome: ExecutionOutcome,
        *,
        session: SessionContext,
        agent_id: str,
        metadata: dict[str, Any] | None,
    ) -> None:
        logger.warning(
            "Tool %s blocked (%s): %s", tool_name, outcome.status.value, outcome.reason
        )
        if self._audit is not None:
            self._audit.blocked(
                tool_name,
                params,
                agent_id=agent_id,
                session_id=session.session_id,
                reason=outcome.reason or outcome.status.value,
                metadata=metadata,
            )
