"""Gate configuration loading."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from toolgate.config.errors import ConfigValidationError
from toolgate.config.models import GateSettings


class ConfigLoader:
    """Load and validate a gate configuration YAML file into :class:`GateSettings`."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self) -> GateSettings:
        """Read YAML, interpolate env vars, and validate.

        Environment variables in the form ``${VAR}`` or ``$VAR`` are expanded
        using :func:`os.path.expandvars` before YAML parsing.  An empty file
        yields the default settings.

        Raises:
            ConfigValidationError: On read errors, YAML parse errors or schema
                validation failures.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigValidationError(f"Cannot read {self._path}: {exc}") from exc

        expanded = os.path.expandvars(raw)

        try:
            data: Any = yaml.safe_load(expanded)
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error: {exc}") from exc

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigValidationError("Gate configuration must be a mapping")

        try:
            return GateSettings.model_validate(data)
        except ValidationError as exc:
            raise ConfigValidationError(str(exc)) from exc


def load_settings(path: str | Path) -> GateSettings:
    return ConfigLoader(Path(path)).load()
