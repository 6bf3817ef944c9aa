"""AuditLogger — structured audit records for gated tool calls.

Records are :class:`AuditEntry` models emitted through standard ``logging``
under ``extra={"audit": {...}}`` so any handler or formatter can pick them
up; the payload is JSON-safe.  Sensitive parameter keys are redacted before
anything is logged.  A per-call ``metadata`` mapping is copied into every
record for that call.
"""

from __future__ import annotations

import inspect
import logging
import time
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_serializer
from pydantic_core import to_jsonable_python

REDACTED = "[REDACTED]"
DEFAULT_SENSITIVE_FIELDS = ("password", "api_key", "apiKey", "token", "secret")

_audit_logger = logging.getLogger("toolgate.audit")


class AuditEvent(str, Enum):
    INVOCATION = "tool_invocation"
    SUCCESS = "tool_success"
    FAILURE = "tool_failure"
    BLOCKED = "tool_blocked"


class AuditEntry(BaseModel):
    """One audit record."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    event: AuditEvent
    agent_id: str
    session_id: str
    tool_name: str
    params: dict[str, Any] | None = None
    result: Any = None
    error: str | None = None
    duration_ms: float | None = None
    metadata: dict[str, Any] | None = None

    @field_serializer("params", "result", "metadata", when_used="json")
    def serialize_payload(self, value: Any) -> Any:
        # tool payloads may hold objects pydantic cannot serialize
        return to_jsonable_python(value, fallback=repr)


_LEVELS = {
    AuditEvent.INVOCATION: logging.INFO,
    AuditEvent.SUCCESS: logging.INFO,
    AuditEvent.FAILURE: logging.ERROR,
    AuditEvent.BLOCKED: logging.WARNING,
}


class AuditLogger:
    """Wrap tool operations with invocation/success/failure records."""

    def __init__(
        self,
        *,
        log_params: bool = True,
        log_results: bool = False,
        sensitive_fields: Iterable[str] = DEFAULT_SENSITIVE_FIELDS,
        logger: logging.Logger | None = None,
    ) -> None:
        self._log_params = log_params
        self._log_results = log_results
        self._sensitive = frozenset(sensitive_fields)
        self._logger = logger or _audit_logger

    def redact(self, params: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of *params* with sensitive keys masked, recursively."""
        return {key: self._redact_value(key, value) for key, value in params.items()}

    def _redact_value(self, key: str, value: Any) -> Any:
        if key in self._sensitive:
            return REDACTED
        if isinstance(value, dict):
            return self.redact(value)
        if isinstance(value, list):
            return [self.redact(v) if isinstance(v, dict) else v for v in value]
        return value

    async def wrap(
        self,
        tool_name: str,
        params: dict[str, Any],
        operation: Callable[[], Any],
        *,
        agent_id: str,
        session_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> Any:
        """Run *operation*, recording its invocation and outcome. Re-raises failures."""
        self._emit(
            AuditEntry(
                event=AuditEvent.INVOCATION,
                agent_id=agent_id,
                session_id=session_id,
                tool_name=tool_name,
                params=self._safe_params(params),
                metadata=metadata,
            )
        )
        start = time.monotonic()
        try:
            result = operation()
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            self._emit(
                AuditEntry(
                    event=AuditEvent.FAILURE,
                    agent_id=agent_id,
                    session_id=session_id,
                    tool_name=tool_name,
                    error=str(exc) or type(exc).__name__,
                    duration_ms=_elapsed_ms(start),
                    metadata=metadata,
                )
            )
            raise

        self._emit(
            AuditEntry(
                event=AuditEvent.SUCCESS,
                agent_id=agent_id,
                session_id=session_id,
                tool_name=tool_name,
                result=result if self._log_results else None,
                duration_ms=_elapsed_ms(start),
                metadata=metadata,
            )
        )
        return result

    def blocked(
        self,
        tool_name: str,
        params: dict[str, Any],
        *,
        agent_id: str,
        session_id: str,
        reason: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record a tool call that never reached execution."""
        self._emit(
            AuditEntry(
                event=AuditEvent.BLOCKED,
                agent_id=agent_id,
                session_id=session_id,
                tool_name=tool_name,
                params=self._safe_params(params),
                error=reason,
                metadata=metadata,
            )
        )

    def _safe_params(self, params: dict[str, Any]) -> dict[str, Any] | None:
        return self.redact(params) if self._log_params else None

    def _emit(self, entry: AuditEntry) -> None:
        self._logger.log(
            _LEVELS[entry.event],
            "%s agent=%s session=%s tool=%s",
            entry.event.value,
            entry.agent_id,
            entry.session_id,
            entry.tool_name,
            extra={"audit": entry.model_dump(mode="json")},
        )


def _elapsed_ms(start: float) -> float:
    return round((time.monotonic() - start) * 1000, 3)
