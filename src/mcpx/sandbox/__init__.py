"""Sandbox runtime: process, VM and container backends plus cleanup."""

from mcpx.sandbox.docker_sandbox import DockerSandbox
from mcpx.sandbox.executor import SandboxExecutor
from mcpx.sandbox.limits import format_size, parse_size, validate_config
from mcpx.sandbox.manager import SandboxManager
from mcpx.sandbox.models import (
    Backend,
    BackendChoice,
    ConfigValidation,
    ExecutionMetrics,
    ExecutionResult,
    NetworkMode,
    NetworkPolicy,
    ResourceLimits,
    SandboxConfig,
)
from mcpx.sandbox.process_sandbox import ProcessSandbox
from mcpx.sandbox.registry import ACTIVE_CONTAINERS, ContainerMetrics, ContainerRegistry
from mcpx.sandbox.supervisor import CleanupSupervisor, SweepReport
from mcpx.sandbox.vm_sandbox import VMSandbox

__all__ = [
    "ACTIVE_CONTAINERS",
    "Backend",
    "BackendChoice",
    "CleanupSupervisor",
    "ConfigValidation",
    "ContainerMetrics",
    "ContainerRegistry",
    "DockerSandbox",
    "ExecutionMetrics",
    "ExecutionResult",
    "NetworkMode",
    "NetworkPolicy",
    "ProcessSandbox",
    "ResourceLimits",
    "SandboxConfig",
    "SandboxExecutor",
    "SandboxManager",
    "SweepReport",
    "VMSandbox",
    "format_size",
    "parse_size",
    "validate_config",
]
