"""Gate configuration — YAML schema and loader."""

from toolgate.config.errors import ConfigValidationError
from toolgate.config.loader import ConfigLoader, load_settings
from toolgate.config.models import (
    ApprovalSettings,
    GateSettings,
    PolicySettings,
    TelemetrySettings,
)

__all__ = [
    "ApprovalSettings",
    "ConfigLoader",
    "ConfigValidationError",
    "GateSettings",
    "PolicySettings",
    "TelemetrySettings",
    "load_settings",
]
