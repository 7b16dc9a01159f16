"""Execution engine: settings and the five-phase orchestrator."""

from mcpx.engine.orchestrator import ExecuteOptions, ExecutionEngine
from mcpx.engine.settings import CleanupSettings, EngineSettings, SettingsLoader, TelemetrySettings

__all__ = [
    "CleanupSettings",
    "EngineSettings",
    "ExecuteOptions",
    "ExecutionEngine",
    "SettingsLoader",
    "TelemetrySettings",
]
