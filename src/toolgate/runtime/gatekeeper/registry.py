"""PendingRequestRegistry — in-flight approval requests keyed by request id."""

from __future__ import annotations

import logging

from toolgate.runtime.errors import DuplicateRequestIdError
from toolgate.runtime.gatekeeper.models import ApprovalRequest  # noqa: TC001

logger = logging.getLogger(__name__)


class PendingRequestRegistry:
    """Source of truth for what is currently awaiting a decision.

    Every method is synchronous, so tasks on one event loop can never observe
    a half-applied insert or remove.  ``list()`` is for observability only.
    """

    def __init__(self) -> None:
        self._pending: dict[str, ApprovalRequest] = {}

    def insert(self, request: ApprovalRequest) -> None:
        """Add *request*; refuse to overwrite an existing id."""
        if request.request_id in self._pending:
            raise DuplicateRequestIdError(request.request_id)
        self._pending[request.request_id] = request
        logger.debug("Registered pending request %s (%s)", request.request_id, request.tool_name)

    def get(self, request_id: str) -> ApprovalRequest | None:
        return self._pending.get(request_id)

    def remove(self, request_id: str) -> None:
        """Drop *request_id* if present; a no-op otherwise."""
        if self._pending.pop(request_id, None) is not None:
            logger.debug("Removed pending request %s", request_id)

    def list(self) -> list[ApprovalRequest]:
        """Snapshot of pending requests in insertion order."""
        return list(self._pending.values())

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending
