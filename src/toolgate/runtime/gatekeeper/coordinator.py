"""ApprovalCoordinator — races a decision provider against a timeout.

Each call to :meth:`ApprovalCoordinator.decide` registers one
:class:`ApprovalRequest`, starts the provider as a task and waits for it for
at most ``config.timeout`` seconds.  Whichever finishes first decides the
outcome.  A provider that loses the race is abandoned: it is never awaited
again, and whatever it eventually returns or raises is collected and thrown
away so a late answer cannot be applied to a request that no longer exists.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from typing import Any

from toolgate.runtime.errors import ApprovalProviderFailedError
from toolgate.runtime.gatekeeper.gatekeeper import DecisionProvider  # noqa: TC001
from toolgate.runtime.gatekeeper.models import ApprovalConfig, ApprovalDecision, ApprovalRequest
from toolgate.runtime.gatekeeper.registry import PendingRequestRegistry
from toolgate.utils.telemetry import (
    ATTR_AGENT_ID,
    ATTR_APPROVED,
    ATTR_APPROVER,
    ATTR_REQUEST_ID,
    ATTR_SESSION_ID,
    ATTR_TIMED_OUT,
    ATTR_TOOL_NAME,
    get_tracer,
)

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)


def generate_request_id() -> str:
    """Return ``req-<epoch ms>-<12 random hex chars>``."""
    return f"req-{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}"


class ApprovalCoordinator:
    """Obtain one terminal :class:`ApprovalDecision` per gated tool call.

    Usage::

        coordinator = ApprovalCoordinator(
            PathPolicyProvider(),
            config=ApprovalConfig(timeout=30.0, timeout_behavior="escalate"),
        )
        decision = await coordinator.decide(
            "write_file", {"path": "/tmp/x"}, agent_id="agent-001", session_id="s-1"
        )
    """

    def __init__(
        self,
        provider: DecisionProvider,
        *,
        config: ApprovalConfig | None = None,
        registry: PendingRequestRegistry | None = None,
        id_factory: Callable[[], str] = generate_request_id,
    ) -> None:
        self._provider = provider
        self._config = config or ApprovalConfig()
        self._registry = registry if registry is not None else PendingRequestRegistry()
        self._id_factory = id_factory
        self._abandoned: set[asyncio.Task[Any]] = set()

    @property
    def config(self) -> ApprovalConfig:
        return self._config

    @property
    def pending(self) -> PendingRequestRegistry:
        return self._registry

    @property
    def abandoned_count(self) -> int:
        """Provider calls that lost the race and have not settled yet."""
        return len(self._abandoned)

    async def decide(
        self,
        tool_name: str,
        params: dict[str, Any],
        *,
        agent_id: str,
        session_id: str,
        context: str = "",
    ) -> ApprovalDecision:
        """Request a decision for one tool call and wait for it, bounded by the timeout.

        Raises:
            ApprovalProviderFailedError: The provider raised, was not
                awaitable, or returned something other than an
                :class:`ApprovalDecision` for this request.
            DuplicateRequestIdError: The id factory produced an id that is
                still pending.
        """
        request = ApprovalRequest(
            request_id=self._id_factory(),
            tool_name=tool_name,
            params=params,
            agent_id=agent_id,
            session_id=session_id,
            context=context,
        )
        self._registry.insert(request)

        with _tracer.start_as_current_span("gate.approval") as span:
            span.set_attribute(ATTR_TOOL_NAME, tool_name)
            span.set_attribute(ATTR_AGENT_ID, agent_id)
            span.set_attribute(ATTR_SESSION_ID, session_id)
            span.set_attribute(ATTR_REQUEST_ID, request.request_id)
            try:
                decision = await self._race(request)
            finally:
                self._registry.remove(request.request_id)

            span.set_attribute(ATTR_APPROVED, decision.approved)
            span.set_attribute(ATTR_APPROVER, decision.approver)
            span.set_attribute(ATTR_TIMED_OUT, decision.timed_out)

        if decision.timed_out:
            logger.warning(
                "Approval for %s (request %s) timed out after %ss: %s",
                tool_name,
                request.request_id,
                self._config.timeout,
                decision.approver,
            )
        else:
            logger.info(
                "Approval for %s (request %s): approved=%s by %s",
                tool_name,
                request.request_id,
                decision.approved,
                decision.approver,
            )
        return decision

    async def aclose(self) -> None:
        """Cancel provider calls that were abandoned and are still running."""
        tasks = list(self._abandoned)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._abandoned.clear()

    async def _race(self, request: ApprovalRequest) -> ApprovalDecision:
        try:
            task = asyncio.ensure_future(self._provider.request_approval(request))
        except Exception as exc:
            # synchronous providers and providers that raise before awaiting
            self._log_failure(request, exc)
            raise ApprovalProviderFailedError(request.tool_name, request.request_id) from exc

        try:
            done, _ = await asyncio.wait({task}, timeout=self._config.timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task not in done:
            self._abandon(task, request.request_id)
            return ApprovalDecision.for_timeout(
                self._config.timeout, self._config.timeout_behavior
            )

        if task.cancelled():
            raise ApprovalProviderFailedError(request.tool_name, request.request_id)

        exc = task.exception()
        if exc is not None:
            self._log_failure(request, exc)
            raise ApprovalProviderFailedError(request.tool_name, request.request_id) from exc

        return self._check_decision(request, task.result())

    def _check_decision(self, request: ApprovalRequest, decision: Any) -> ApprovalDecision:
        """Accept only a decision made for *request* itself.

        The timeout sentinel id is reserved for decisions manufactured here.
        """
        if not isinstance(decision, ApprovalDecision):
            msg = f"expected ApprovalDecision, got {type(decision).__name__}"
        elif decision.timed_out:
            msg = f"provider returned the reserved request id {decision.request_id!r}"
        elif decision.request_id != request.request_id:
            msg = f"decision is for request {decision.request_id!r}"
        else:
            return decision
        logger.error(
            "Decision provider returned an invalid decision for %s (request %s): %s",
            request.tool_name,
            request.request_id,
            msg,
        )
        raise ApprovalProviderFailedError(request.tool_name, request.request_id) from ValueError(
            msg
        )

    @staticmethod
    def _log_failure(request: ApprovalRequest, exc: BaseException) -> None:
        logger.error(
            "Decision provider failed for %s (request %s): %s",
            request.tool_name,
            request.request_id,
            exc,
        )

    def _abandon(self, task: asyncio.Task[Any], request_id: str) -> None:
        self._abandoned.add(task)

        def _discard(finished: asyncio.Task[Any]) -> None:
            self._abandoned.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            if exc is not None:
                logger.debug("Discarded late provider error for request %s: %s", request_id, exc)
            else:
                logger.debug("Discarded late decision for request %s", request_id)

        task.add_done_callback(_discard)
