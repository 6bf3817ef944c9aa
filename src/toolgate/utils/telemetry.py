"""OpenTelemetry tracing helpers for toolgate.

Only the OpenTelemetry *API* is a hard dependency.  Until an SDK tracer
provider is installed every span is a no-op, so gating code can always
open spans::

    _tracer = get_tracer(__name__)

    with _tracer.start_as_current_span("gate.execute") as span:
        span.set_attribute(ATTR_TOOL_NAME, "write_file")

:func:`configure_telemetry` installs a real provider and needs the ``otel``
extra (``pip install toolgate[otel]``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from opentelemetry import trace

if TYPE_CHECKING:
    from toolgate.config.models import TelemetrySettings

# Span attribute keys
ATTR_TOOL_NAME = "toolgate.tool.name"
ATTR_AGENT_ID = "toolgate.agent.id"
ATTR_SESSION_ID = "toolgate.session.id"
ATTR_ACTION_COUNT = "toolgate.session.action_count"
ATTR_POLICY_ACTION = "toolgate.policy.action"
ATTR_REQUEST_ID = "toolgate.approval.request_id"
ATTR_APPROVED = "toolgate.approval.approved"
ATTR_APPROVER = "toolgate.approval.approver"
ATTR_TIMED_OUT = "toolgate.approval.timed_out"
ATTR_STATUS = "toolgate.outcome.status"

_INSTRUMENTATION_NAME = "toolgate"


def get_tracer(name: str | None = None) -> trace.Tracer:
    """Return a tracer for *name*; a no-op tracer until telemetry is configured."""
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def configure_telemetry(
    *,
    service_name: str = "toolgate",
    export_to_console: bool = True,
    otlp_endpoint: str | None = None,
) -> None:
    """Install an SDK tracer provider with console and/or OTLP exporters.

    Raises
    ------
    ImportError
        If ``opentelemetry-sdk`` (or, with *otlp_endpoint*,
        ``opentelemetry-exporter-otlp``) is not installed.
    """
    try:
        from opentelemetry.sdk.resources import Resource  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace import TracerProvider  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace.export import (  # pyright: ignore[reportMissingImports]
            BatchSpanProcessor,
            ConsoleSpanExporter,
            SimpleSpanProcessor,
        )
    except ImportError as exc:
        msg = (
            "opentelemetry-sdk is required for configure_telemetry(). "
            "Install it with: pip install toolgate[otel]"
        )
        raise ImportError(msg) from exc

    processors = []
    if export_to_console:
        processors.append(SimpleSpanProcessor(ConsoleSpanExporter()))

    if otlp_endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (  # pyright: ignore[reportMissingImports]
                OTLPSpanExporter,
            )
        except ImportError as exc:
            msg = (
                "opentelemetry-exporter-otlp is required for OTLP export. "
                "Install it with: pip install toolgate[otel]"
            )
            raise ImportError(msg) from exc
        processors.append(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint)))

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    for processor in processors:
        provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)


def configure_from_settings(settings: TelemetrySettings | None) -> bool:
    """Configure tracing from the ``telemetry`` config section; return whether it ran."""
    if settings is None or not settings.enabled:
        return False
    configure_telemetry(
        export_to_console=settings.otlp_endpoint is None,
        otlp_endpoint=settings.otlp_endpoint,
    )
    return True
