"""Tests for ``mcpx execute`` CLI command."""

from __future__ import annotations

import json
import shutil
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from mcpx.cli import main
from mcpx.cli_commands.execute import exit_code_for
from mcpx.errors import ErrorKind
from mcpx.sandbox.models import Backend, ExecutionResult
from mcpx.security.gatekeeper import AutoApproveGatekeeper, CLIGatekeeper

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("MCPX_CONFIG", raising=False)


@pytest.fixture
def engine_cls() -> Iterator[MagicMock]:
    with patch("mcpx.engine.orchestrator.ExecutionEngine") as cls:
        cls.return_value.shutdown = AsyncMock()
        yield cls


def _returning(engine_cls: MagicMock, result: ExecutionResult) -> AsyncMock:
    execute = AsyncMock(return_value=result)
    engine_cls.return_value.execute = execute
    return execute


class TestExitCodes:
    @pytest.mark.parametrize(
        ("result", "code"),
        [
            (ExecutionResult(success=True), 0),
            (ExecutionResult.failure("x", kind=ErrorKind.SANDBOX), 1),
            (ExecutionResult.failure("x"), 1),
            (ExecutionResult.failure("x", kind=ErrorKind.SECURITY), 2),
            (ExecutionResult.failure("x", kind=ErrorKind.APPROVAL), 2),
            (ExecutionResult.failure("x", kind=ErrorKind.TIMEOUT), 3),
        ],
    )
    def test_mapping(self, result: ExecutionResult, code: int) -> None:
        assert exit_code_for(result) == code


class TestExecuteCommand:
    def test_success(self, engine_cls: MagicMock) -> None:
        _returning(engine_cls, ExecutionResult(success=True, summary="all done", backend=Backend.PROCESS))

        result = CliRunner().invoke(main, ["execute", "read file config.json"])

        assert result.exit_code == 0, result.output
        assert "SUCCESS" in result.output
        assert "all done" in result.output
        engine_cls.return_value.shutdown.assert_awaited_once()

    def test_blocked(self, engine_cls: MagicMock) -> None:
        blocked = ExecutionResult.failure("Security validation failed", kind=ErrorKind.APPROVAL)
        blocked.approval_request_id = "approval-123"
        _returning(engine_cls, blocked)

        result = CliRunner().invoke(main, ["execute", "Execute eval() with user input"])

        assert result.exit_code == 2
        assert "Security validation failed" in result.output
        assert "approval-123" in result.output

    def test_timeout(self, engine_cls: MagicMock) -> None:
        _returning(engine_cls, ExecutionResult.failure("Execution timeout", kind=ErrorKind.TIMEOUT))

        result = CliRunner().invoke(main, ["execute", "loop forever"])

        assert result.exit_code == 3

    def test_options_are_forwarded(self, engine_cls: MagicMock, tmp_path: Path) -> None:
        execute = _returning(engine_cls, ExecutionResult(success=True))

        result = CliRunner().invoke(
            main,
            [
                "execute",
                "read file",
                "-l",
                "python",
                "--timeout",
                "1500",
                "--max-tools",
                "2",
                "--sandbox",
                "container",
                "--tier",
                "HIGH",
                "--tools-dir",
                str(tmp_path / "schemas"),
                "--yes",
            ],
        )

        assert result.exit_code == 0, result.output
        settings = engine_cls.call_args.args[0]
        assert settings.security_tier == "high"
        assert settings.tools_dir == tmp_path / "schemas"
        assert isinstance(engine_cls.call_args.kwargs["gatekeeper"], AutoApproveGatekeeper)
        intent, language, options = execute.await_args.args
        assert intent == "read file"
        assert language == "python"
        assert options.timeout_ms == 1500
        assert options.max_tools == 2
        assert options.sandbox is Backend.CONTAINER

    def test_interactive_gatekeeper(self, engine_cls: MagicMock) -> None:
        _returning(engine_cls, ExecutionResult(success=True))

        CliRunner().invoke(main, ["execute", "read file", "-i"])

        assert isinstance(engine_cls.call_args.kwargs["gatekeeper"], CLIGatekeeper)

    def test_yes_and_interactive_conflict(self, engine_cls: MagicMock) -> None:
        result = CliRunner().invoke(main, ["execute", "read file", "--yes", "--interactive"])

        assert result.exit_code == 2
        assert "mutually exclusive" in result.output
        engine_cls.assert_not_called()

    def test_json_output(self, engine_cls: MagicMock) -> None:
        _returning(engine_cls, ExecutionResult(success=True, summary="ok", data={"n": 1}))

        result = CliRunner().invoke(main, ["execute", "read file", "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["success"] is True
        assert payload["data"] == {"n": 1}

    def test_bad_settings_file(self, tmp_path: Path, engine_cls: MagicMock) -> None:
        config = tmp_path / "mcpx.yaml"
        config.write_text("max_tools: 0\n")

        result = CliRunner().invoke(main, ["--config", str(config), "execute", "read file"])

        assert result.exit_code == 1
        assert "invalid settings" in result.output
        assert "max_tools" in result.output
        engine_cls.assert_not_called()


@pytest.mark.skipif(shutil.which("python3") is None, reason="python3 not on PATH")
def test_end_to_end_process_run(tmp_path: Path) -> None:
    tools = tmp_path / "tools"
    tools.mkdir()
    (tools / "fs.json").write_text(json.dumps([{"name": "fs_read", "description": "Read a file"}]))

    result = CliRunner().invoke(main, ["execute", "read file config.json", "-l", "py", "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["backend"] == "process"
    assert payload["data"]["calls"][0]["tool"] == "fs_read"
