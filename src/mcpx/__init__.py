"""mcpx — discover MCP tools, synthesize wrapper code, vet it and run it in a sandbox."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from mcpx.engine.orchestrator import ExecutionEngine as ExecutionEngine
    from mcpx.engine.orchestrator import ExecuteOptions as ExecuteOptions
    from mcpx.engine.settings import SettingsLoader as SettingsLoader

_ENGINE_EXPORTS = {
    "ExecutionEngine": "mcpx.engine.orchestrator",
    "ExecuteOptions": "mcpx.engine.orchestrator",
    "SettingsLoader": "mcpx.engine.settings",
}


def __getattr__(name: str) -> object:
    module_path = _ENGINE_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'mcpx' has no attribute {name!r}")
