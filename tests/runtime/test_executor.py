"""Tests for GatedExecutor."""

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from toolgate.runtime.audit import AuditLogger
from toolgate.runtime.errors import (
    ApprovalDeniedError,
    ApprovalProviderFailedError,
    ApprovalTimedOutError,
    ExecutionFailedError,
    PolicyDeniedError,
)
from toolgate.runtime.executor import ExecutionOutcome, ExecutionStatus, GatedExecutor
from toolgate.runtime.gatekeeper.coordinator import ApprovalCoordinator
from toolgate.runtime.gatekeeper.gatekeeper import AutoApproveProvider, PathPolicyProvider
from toolgate.runtime.gatekeeper.models import (
    ApprovalConfig,
    ApprovalDecision,
    ApprovalRequest,
    Policy,
    SessionContext,
)


class NeverProvider:
    async def request_approval(self, request: ApprovalRequest) -> ApprovalDecision:
        await asyncio.Event().wait()
        raise AssertionError("unreachable")


class CountingOperation:
    def __init__(self, result: Any = "done", error: Exception | None = None) -> None:
        self.calls = 0
        self._result = result
        self._error = error

    async def __call__(self) -> Any:
        self.calls += 1
        if self._error is not None:
            raise self._error
        return self._result


def _session(count: int = 0, **policy_kwargs) -> SessionContext:
    return SessionContext(session_id="session-abc", policy=Policy(**policy_kwargs), action_count=count)


def _executor(provider=None, **config) -> GatedExecutor:
    coordinator = ApprovalCoordinator(
        provider or AutoApproveProvider(), config=ApprovalConfig(**config) if config else None
    )
    return GatedExecutor(coordinator)


async def _run(executor: GatedExecutor, tool: str, operation, session, **params) -> ExecutionOutcome:
    return await executor.execute(
        tool, params, operation, session=session, agent_id="agent-001", context="test"
    )


class TestGatedExecutorPolicy:
    async def test_not_allowlisted_never_reaches_coordinator(self) -> None:
        coordinator = MagicMock()
        coordinator.decide = AsyncMock()
        executor = GatedExecutor(coordinator)
        op = CountingOperation()
        session = _session(allowed_tools=["read_file"], approval_required=["write_file"])

        outcome = await _run(executor, "write_file", op, session)

        assert outcome.status == ExecutionStatus.DENIED
        assert outcome.approved is False
        assert outcome.reason == "not on allowlist"
        assert outcome.result is None
        coordinator.decide.assert_not_awaited()
        assert op.calls == 0
        assert session.action_count == 0

    async def test_rate_limited_session_denied(self) -> None:
        executor = _executor()
        op = CountingOperation()
        session = _session(4, allowed_tools=["read_file"], max_actions_per_session=4)

        outcome = await _run(executor, "read_file", op, session)

        assert outcome.status == ExecutionStatus.DENIED
        assert outcome.reason == "rate limit exceeded"
        assert op.calls == 0
        assert session.action_count == 4

    async def test_read_file_scenario(self) -> None:
        executor = _executor()
        op = CountingOperation(result={"content": "hello"})
        session = _session(allowed_tools=["read_file"], max_actions_per_session=1)

        first = await _run(executor, "read_file", op, session, path="/example.txt")
        assert first.status == ExecutionStatus.EXECUTED
        assert first.approved is True
        assert first.result == {"content": "hello"}
        assert first.decision is None
        assert session.action_count == 1

        second = await _run(executor, "read_file", op, session, path="/example.txt")
        assert second.status == ExecutionStatus.DENIED
        assert second.reason == "rate limit exceeded"
        assert op.calls == 1
        assert session.action_count == 1

    async def test_sync_operation_supported(self) -> None:
        executor = _executor()
        session = _session(allowed_tools=["calculate"])
        outcome = await _run(executor, "calculate", lambda: 42, session)
        assert outcome.result == 42
        assert outcome.succeeded is True


class TestGatedExecutorApproval:
    async def test_approved_runs_once_and_counts_once(self) -> None:
        executor = _executor(AutoApproveProvider())
        op = CountingOperation(result={"written": True, "bytes": 5})
        session = _session(allowed_tools=["write_file"], approval_required=["write_file"])

        outcome = await _run(executor, "write_file", op, session, path="/data/output.txt")

        assert outcome.status == ExecutionStatus.EXECUTED
        assert outcome.result == {"written": True, "bytes": 5}
        assert outcome.decision is not None
        assert outcome.decision.approved is True
        assert op.calls == 1
        assert session.action_count == 1

    async def test_sensitive_path_scenario(self) -> None:
        executor = _executor(PathPolicyProvider(), timeout=30.0)
        op = CountingOperation()
        session = _session(allowed_tools=["write_file"], approval_required=["write_file"])

        outcome = await _run(executor, "write_file", op, session, path="/sensitive/x")

        assert outcome.status == ExecutionStatus.DENIED_BY_APPROVAL
        assert outcome.approved is False
        assert outcome.decision is not None
        assert outcome.decision.approver == "policy-engine"
        assert outcome.reason == outcome.decision.reason
        assert "/sensitive/x" in outcome.reason
        assert op.calls == 0
        assert session.action_count == 0

    async def test_explicit_denial_reason_carried(self) -> None:
        provider = MagicMock()
        provider.request_approval = AsyncMock(
            side_effect=lambda request: ApprovalDecision(
                request_id=request.request_id,
                approved=False,
                approver="policy-engine",
                reason="policy: sensitive path",
            )
        )
        executor = _executor(provider, timeout=30.0)
        session = _session(allowed_tools=["write_file"], approval_required=["write_file"])

        outcome = await _run(executor, "write_file", CountingOperation(), session, path="/sensitive/x")

        assert outcome.status == ExecutionStatus.DENIED_BY_APPROVAL
        assert outcome.reason == "policy: sensitive path"

    async def test_timeout_deny(self) -> None:
        executor = _executor(NeverProvider(), timeout=0.02, timeout_behavior="deny")
        op = CountingOperation()
        session = _session(allowed_tools=["send_email"], approval_required=["send_email"])

        outcome = await _run(executor, "send_email", op, session)

        assert outcome.status == ExecutionStatus.APPROVAL_TIMED_OUT
        assert outcome.approved is False
        assert outcome.decision is not None
        assert outcome.decision.approver == "system"
        assert outcome.escalation_required is False
        assert op.calls == 0
        assert session.action_count == 0
        await executor.coordinator.aclose()

    async def test_escalate_scenario(self) -> None:
        executor = _executor(NeverProvider(), timeout=0.05, timeout_behavior="escalate")
        op = CountingOperation()
        session = _session(allowed_tools=["execute_command"], approval_required=["execute_command"])
        loop = asyncio.get_running_loop()

        start = loop.time()
        outcome = await _run(executor, "execute_command", op, session, cmd="ls")
        elapsed = loop.time() - start

        assert elapsed >= 0.045
        assert outcome.approved is False
        assert outcome.decision is not None
        assert outcome.decision.approver == "escalation-required"
        assert outcome.escalation_required is True
        assert op.calls == 0
        await executor.coordinator.aclose()

    async def test_registry_empty_after_every_resolution(self) -> None:
        executor = _executor(PathPolicyProvider())
        session = _session(allowed_tools=["write_file"], approval_required=["write_file"])

        await _run(executor, "write_file", CountingOperation(), session, path="/data/a")
        assert executor.coordinator.pending.list() == []
        await _run(executor, "write_file", CountingOperation(), session, path="/sensitive/b")
        assert executor.coordinator.pending.list() == []

    async def test_provider_failure_propagates(self) -> None:
        provider = MagicMock()
        provider.request_approval = AsyncMock(side_effect=RuntimeError("boom"))
        executor = _executor(provider)
        op = CountingOperation()
        session = _session(allowed_tools=["write_file"], approval_required=["write_file"])

        with pytest.raises(ApprovalProviderFailedError):
            await _run(executor, "write_file", op, session)

        assert op.calls == 0
        assert session.action_count == 0
        assert len(executor.coordinator.pending) == 0

    async def test_decision_for_another_request_never_runs_operation(self) -> None:
        provider = MagicMock()
        provider.request_approval = AsyncMock(
            return_value=ApprovalDecision(request_id="req-someone-else", approved=True, approver="ops")
        )
        executor = _executor(provider)
        op = CountingOperation()
        session = _session(allowed_tools=["write_file"], approval_required=["write_file"])

        with pytest.raises(ApprovalProviderFailedError):
            await _run(executor, "write_file", op, session)

        assert op.calls == 0
        assert session.action_count == 0

    async def test_provider_denial_with_timeout_id_not_reported_as_timeout(self) -> None:
        provider = MagicMock()
        provider.request_approval = AsyncMock(
            return_value=ApprovalDecision(request_id="timeout", approved=False, approver="human")
        )
        executor = _executor(provider)
        op = CountingOperation()
        session = _session(allowed_tools=["write_file"], approval_required=["write_file"])

        with pytest.raises(ApprovalProviderFailedError):
            await _run(executor, "write_file", op, session)

        assert op.calls == 0


class TestGatedExecutorExecution:
    async def test_failure_recorded_and_counter_kept(self) -> None:
        executor = _executor()
        error = OSError("disk full")
        op = CountingOperation(error=error)
        session = _session(allowed_tools=["write_file"])

        outcome = await _run(executor, "write_file", op, session)

        assert outcome.status == ExecutionStatus.EXECUTION_FAILED
        assert outcome.approved is True
        assert outcome.error is error
        assert outcome.reason == "disk full"
        assert outcome.result is None
        assert session.action_count == 1

    async def test_failure_after_approval_keeps_decision(self) -> None:
        executor = _executor(AutoApproveProvider())
        session = _session(allowed_tools=["write_file"], approval_required=["write_file"])

        outcome = await _run(executor, "write_file", CountingOperation(error=ValueError()), session)

        assert outcome.status == ExecutionStatus.EXECUTION_FAILED
        assert outcome.decision is not None
        assert outcome.reason == "ValueError"


class TestGatedExecutorConcurrency:
    async def test_last_action_not_spent_twice(self) -> None:
        """Two tasks pass evaluation while waiting on approval; only one may run."""
        gate = asyncio.Event()

        class SlowApprove:
            async def request_approval(self, request: ApprovalRequest) -> ApprovalDecision:
                await gate.wait()
                return ApprovalDecision(request_id=request.request_id, approved=True, approver="ops")

        executor = _executor(SlowApprove(), timeout=5.0)
        op = CountingOperation()
        session = _session(
            allowed_tools=["write_file"], approval_required=["write_file"], max_actions_per_session=1
        )

        tasks = [asyncio.create_task(_run(executor, "write_file", op, session)) for _ in range(2)]
        await asyncio.sleep(0)
        assert len(executor.coordinator.pending) == 2
        gate.set()
        outcomes = await asyncio.gather(*tasks)

        statuses = sorted(o.status.value for o in outcomes)
        assert statuses == ["denied", "executed"]
        denied = next(o for o in outcomes if o.status == ExecutionStatus.DENIED)
        assert denied.reason == "rate limit exceeded"
        assert denied.decision is not None
        assert op.calls == 1
        assert session.action_count == 1
        assert len(executor.coordinator.pending) == 0


class TestExecutionOutcomeUnwrap:
    def test_executed_returns_result(self) -> None:
        outcome = ExecutionOutcome(
            tool_name="t", status=ExecutionStatus.EXECUTED, approved=True, result=7
        )
        assert outcome.unwrap() == 7

    def test_policy_denial_raises(self) -> None:
        outcome = ExecutionOutcome(
            tool_name="t", status=ExecutionStatus.DENIED, approved=False, reason="not on allowlist"
        )
        with pytest.raises(PolicyDeniedError, match="not on allowlist"):
            outcome.unwrap()

    def test_approval_denial_raises(self) -> None:
        outcome = ExecutionOutcome(
            tool_name="t", status=ExecutionStatus.DENIED_BY_APPROVAL, approved=False, reason="no"
        )
        with pytest.raises(ApprovalDeniedError) as exc_info:
            outcome.unwrap()
        assert not isinstance(exc_info.value, ApprovalTimedOutError)

    def test_timeout_raises_with_escalation_flag(self) -> None:
        decision = ApprovalDecision.for_timeout(1.0, "escalate")
        outcome = ExecutionOutcome(
            tool_name="t",
            status=ExecutionStatus.APPROVAL_TIMED_OUT,
            approved=False,
            reason=decision.reason,
            decision=decision,
        )
        with pytest.raises(ApprovalTimedOutError) as exc_info:
            outcome.unwrap()
        assert exc_info.value.escalate is True

    def test_execution_failure_raises_chained(self) -> None:
        cause = OSError("disk full")
        outcome = ExecutionOutcome(
            tool_name="t",
            status=ExecutionStatus.EXECUTION_FAILED,
            approved=True,
            error=cause,
        )
        with pytest.raises(ExecutionFailedError) as exc_info:
            outcome.unwrap()
        assert exc_info.value.__cause__ is cause


class TestGatedExecutorAudit:
    async def test_blocked_call_audited(self) -> None:
        audit = MagicMock(spec=AuditLogger)
        executor = GatedExecutor(ApprovalCoordinator(AutoApproveProvider()), audit=audit)
        session = _session(allowed_tools=["read_file"])

        await _run(executor, "rm_rf", CountingOperation(), session, path="/")

        audit.blocked.assert_called_once_with(
            "rm_rf",
            {"path": "/"},
            agent_id="agent-001",
            session_id="session-abc",
            reason="not on allowlist",
            metadata=None,
        )

    async def test_operation_runs_through_audit_wrap(self) -> None:
        audit = AuditLogger()
        executor = GatedExecutor(ApprovalCoordinator(AutoApproveProvider()), audit=audit)
        session = _session(allowed_tools=["read_file"])

        outcome = await _run(executor, "read_file", CountingOperation(result="ok"), session)

        assert outcome.result == "ok"

    async def test_metadata_reaches_audit_records(self) -> None:
        audit = MagicMock(spec=AuditLogger)
        executor = GatedExecutor(ApprovalCoordinator(AutoApproveProvider()), audit=audit)
        session = _session(allowed_tools=["read_file"])

        await executor.execute(
            "rm_rf",
            {},
            CountingOperation(),
            session=session,
            agent_id="agent-001",
            metadata={"trace": "t-1"},
        )

        assert audit.blocked.call_args.kwargs["metadata"] == {"trace": "t-1"}
