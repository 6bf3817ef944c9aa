"""toolgate — gated execution of privileged agent tools."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from toolgate.runtime.executor import GatedExecutor as GatedExecutor
    from toolgate.runtime.gatekeeper.coordinator import (
        ApprovalCoordinator as ApprovalCoordinator,
    )

_RUNTIME_EXPORTS = {
    "GatedExecutor": "toolgate.runtime.executor",
    "ApprovalCoordinator": "toolgate.runtime.gatekeeper.coordinator",
}


def __getattr__(name: str) -> object:
    module_path = _RUNTIME_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'toolgate' has no attribute {name!r}")
