"""Configuration error types."""

from __future__ import annotations


class ConfigValidationError(Exception):
    """Raised when a gate configuration file fails parsing or validation."""
