"""Tests for the shared error hierarchy."""

from __future__ import annotations

import pytest

from mcpx.errors import (
    ApprovalError,
    CleanupError,
    ConfigError,
    DiscoveryError,
    DuplicateToolError,
    EngineError,
    ErrorKind,
    SandboxError,
    SandboxTimeoutError,
    SchemaError,
    SecurityError,
    SynthesisError,
)


class TestKinds:
    @pytest.mark.parametrize(
        ("error", "kind"),
        [
            (ConfigError("bad"), ErrorKind.CONFIG),
            (DiscoveryError("none"), ErrorKind.DISCOVERY),
            (SchemaError("broken"), ErrorKind.SCHEMA),
            (DuplicateToolError("x", "a.json", "b.json"), ErrorKind.DUPLICATE_NAME),
            (SynthesisError("rust"), ErrorKind.SYNTHESIS),
            (SecurityError("eval"), ErrorKind.SECURITY),
            (ApprovalError("approval-1"), ErrorKind.APPROVAL),
            (SandboxError("boom"), ErrorKind.SANDBOX),
            (SandboxTimeoutError(2000), ErrorKind.TIMEOUT),
            (CleanupError("container abc"), ErrorKind.CLEANUP),
        ],
    )
    def test_kind(self, error: EngineError, kind: ErrorKind) -> None:
        assert isinstance(error, EngineError)
        assert error.kind is kind

    def test_discovery_kind_override(self) -> None:
        error = DiscoveryError("Empty query", kind=ErrorKind.EMPTY_QUERY)

        assert error.kind is ErrorKind.EMPTY_QUERY
        assert DiscoveryError.kind is ErrorKind.DISCOVERY

    def test_kind_values_are_names(self) -> None:
        assert ErrorKind.TIMEOUT.value == "Timeout"
        assert ErrorKind("Approval") is ErrorKind.APPROVAL


class TestMessages:
    def test_config_errors_list(self) -> None:
        error = ConfigError("Invalid sandbox limits", ["Memory must be at least 64M"])

        assert str(error) == "Invalid sandbox limits"
        assert error.errors == ["Memory must be at least 64M"]
        assert ConfigError("x").errors == []

    def test_schema_source_prefix(self) -> None:
        assert str(SchemaError("not JSON", source="fs/tools.json")) == "fs/tools.json: not JSON"
        assert str(SchemaError("not JSON")) == "not JSON"

    def test_duplicate(self) -> None:
        message = str(DuplicateToolError("fs_read", "a.json", "b.json"))

        assert "'fs_read'" in message
        assert message.endswith("(first seen in a.json)")

    def test_approval_reason(self) -> None:
        assert str(ApprovalError("approval-abc")) == "Approval not granted for request: approval-abc"
        assert str(ApprovalError("approval-abc", "rejected")).endswith("(rejected)")

    def test_sandbox_and_timeout(self) -> None:
        assert str(SandboxError()) == "Sandbox error"
        timeout = SandboxTimeoutError(2000)
        assert isinstance(timeout, SandboxError)
        assert timeout.timeout_ms == 2000
        assert str(timeout) == "Sandbox error: Execution timed out after 2000ms"

    def test_cleanup(self) -> None:
        error = CleanupError("container abc", "busy")

        assert str(error) == "Cleanup failed for container abc: busy"
        assert error.resource == "container abc"
