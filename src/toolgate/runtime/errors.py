"""Shared error types for the gated-execution engine."""


class GateError(Exception):
    """Base error for all gating failures."""


class PolicyDeniedError(GateError):
    """The tool call was rejected by the allowlist or the session rate limit."""

    def __init__(self, tool_name: str, reason: str = "") -> None:
        self.tool_name = tool_name
        self.reason = reason
        msg = f"Policy denied tool: {tool_name}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class ApprovalDeniedError(GateError):
    """The decision provider returned a negative decision."""

    def __init__(self, tool_name: str, reason: str = "") -> None:
        self.tool_name = tool_name
        self.reason = reason
        msg = f"Approval denied for tool: {tool_name}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class ApprovalTimedOutError(ApprovalDeniedError):
    """No decision arrived before the approval timeout elapsed."""

    def __init__(self, tool_name: str, reason: str = "", *, escalate: bool = False) -> None:
        self.escalate = escalate
        super().__init__(tool_name, reason=reason)


class ApprovalProviderFailedError(GateError):
    """The decision provider itself raised instead of returning a decision."""

    def __init__(self, tool_name: str, request_id: str) -> None:
        self.tool_name = tool_name
        self.request_id = request_id
        super().__init__(
            f"Decision provider failed for tool: {tool_name} (request {request_id})"
        )


class ExecutionFailedError(GateError):
    """The approved operation raised while executing."""

    def __init__(self, tool_name: str, detail: str = "") -> None:
        self.tool_name = tool_name
        self.detail = detail
        msg = f"Execution failed for tool: {tool_name}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class DuplicateRequestIdError(GateError):
    """A request id was inserted twice into the pending-request registry."""

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Duplicate approval request id: {request_id}")
