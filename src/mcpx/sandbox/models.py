"""Data models for the sandbox subsystem."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from mcpx.errors import ErrorKind


class Backend(str, Enum):
    CONTAINER = "container"
    VM = "vm"
    PROCESS = "process"


class NetworkMode(str, Enum):
    NONE = "none"
    WHITELIST = "whitelist"
    BLACKLIST = "blacklist"


class ResourceLimits(BaseModel):
    """Limits applied to one execution. Checked by ``validate_config``, not here."""

    cpu_cores: float = Field(default=1.0, description="CPU cores, 0.1 to 8.")
    memory: str = Field(default="512M", description="Memory cap, '<n>[KMG]', 64M to 8G.")
    disk: str = Field(default="1G", description="Disk cap, '<n>[KMG]', 100M to 50G.")
    timeout_ms: int = Field(default=30_000, description="Wall-clock limit, 1000 to 300000 ms.")


class NetworkPolicy(BaseModel):
    mode: str = Field(default=NetworkMode.WHITELIST.value, description="none, whitelist or blacklist.")
    entries: list[str] = Field(default_factory=list, description="Hosts the mode applies to.")


class SandboxConfig(BaseModel):
    """Where and under which limits generated code runs."""

    backend: Backend = Backend.PROCESS
    resource_limits: ResourceLimits = Field(default_factory=ResourceLimits)
    network_policy: NetworkPolicy = Field(default_factory=NetworkPolicy)
    allowed_env_vars: list[str] = Field(
        default_factory=list,
        description="Extra host variables passed through; secret-looking names are rejected.",
    )

    def with_timeout(self, timeout_ms: int | None) -> SandboxConfig:
        if timeout_ms is None:
            return self
        limits = self.resource_limits.model_copy(update={"timeout_ms": timeout_ms})
        return self.model_copy(update={"resource_limits": limits})


class ConfigValidation(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


class ExecutionMetrics(BaseModel):
    execution_time_ms: int = 0
    memory_used: str = "0B"
    tokens_in_summary: int = 0


class ExecutionResult(BaseModel):
    """Outcome of one execution. Always present, including for failures."""

    success: bool
    output: str | None = None
    summary: str = ""
    error: str | None = None
    error_kind: ErrorKind | None = None
    metrics: ExecutionMetrics = Field(default_factory=ExecutionMetrics)
    pii_tokenized: bool = False
    backend: Backend | None = None
    approval_request_id: str | None = None
    data: dict[str, Any] | None = Field(default=None, description="Parsed __RESULT__ payload.")

    @classmethod
    def failure(
        cls,
        error: str,
        *,
        kind: ErrorKind | None = None,
        backend: Backend | None = None,
        execution_time_ms: int = 0,
        output: str | None = None,
    ) -> ExecutionResult:
        return cls(
            success=False,
            error=error,
            error_kind=kind,
            summary=error,
            backend=backend,
            output=output,
            metrics=ExecutionMetrics(execution_time_ms=execution_time_ms, memory_used="0B"),
        )


class BackendChoice(BaseModel):
    """Capability record returned by backend selection."""

    backend: Backend
    supported: bool = True
    reason: str = ""
