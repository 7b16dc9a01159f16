"""Shared error types for the execution engine.

Every error carries an :class:`ErrorKind` so the orchestrator can turn it
into a failed :class:`~mcpx.sandbox.models.ExecutionResult` without
inspecting the message text.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Coarse classification of engine failures."""

    CONFIG = "Config"
    DISCOVERY = "Discovery"
    EMPTY_QUERY = "EmptyQuery"
    DUPLICATE_NAME = "DuplicateName"
    SCHEMA = "Schema"
    SYNTHESIS = "Synthesis"
    SECURITY = "Security"
    APPROVAL = "Approval"
    SANDBOX = "Sandbox"
    TIMEOUT = "Timeout"
    CLEANUP = "Cleanup"


class EngineError(Exception):
    """Base error for all engine failures."""

    kind: ErrorKind = ErrorKind.SANDBOX


class ConfigError(EngineError):
    """Settings or sandbox limits are malformed."""

    kind = ErrorKind.CONFIG

    def __init__(self, detail: str, errors: list[str] | None = None) -> None:
        self.detail = detail
        self.errors = errors or []
        super().__init__(detail)


class DiscoveryError(EngineError):
    """Tool matching could not run or found nothing usable."""

    kind = ErrorKind.DISCOVERY

    def __init__(self, detail: str, kind: ErrorKind | None = None) -> None:
        self.detail = detail
        if kind is not None:
            self.kind = kind
        super().__init__(detail)


class SchemaError(EngineError):
    """A tool schema file could not be parsed or is invalid."""

    kind = ErrorKind.SCHEMA

    def __init__(self, detail: str, source: str = "") -> None:
        self.detail = detail
        self.source = source
        msg = f"{source}: {detail}" if source else detail
        super().__init__(msg)


class DuplicateToolError(EngineError):
    """Two schemas in one index build share a name."""

    kind = ErrorKind.DUPLICATE_NAME

    def __init__(self, name: str, first: str, second: str) -> None:
        self.name = name
        self.first = first
        self.second = second
        super().__init__(f"Duplicate tool name {name!r} in {second} (first seen in {first})")


class SynthesisError(EngineError):
    """Wrapper code could not be generated."""

    kind = ErrorKind.SYNTHESIS


class SecurityError(EngineError):
    """Generated code was blocked by the security policy."""

    kind = ErrorKind.SECURITY


class ApprovalError(EngineError):
    """An approval request is pending, rejected, or unknown."""

    kind = ErrorKind.APPROVAL

    def __init__(self, request_id: str, reason: str = "") -> None:
        self.request_id = request_id
        self.reason = reason
        msg = f"Approval not granted for request: {request_id}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class SandboxError(EngineError):
    """A sandbox operation failed (creation, execution, or cleanup)."""

    kind = ErrorKind.SANDBOX

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Sandbox error" + (f": {detail}" if detail else ""))


class SandboxTimeoutError(SandboxError):
    """Sandbox execution exceeded the configured timeout."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(f"Execution timed out after {timeout_ms}ms")


class CleanupError(EngineError):
    """Releasing a sandbox resource failed. Logged, never fatal."""

    kind = ErrorKind.CLEANUP

    def __init__(self, resource: str, detail: str = "") -> None:
        self.resource = resource
        self.detail = detail
        super().__init__(f"Cleanup failed for {resource}" + (f": {detail}" if detail else ""))
