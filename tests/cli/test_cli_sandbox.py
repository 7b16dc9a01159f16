"""Tests for ``mcpx sandbox`` CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner
from docker.errors import DockerException

from mcpx.cli import main
from mcpx.sandbox.supervisor import SweepReport

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("MCPX_CONFIG", raising=False)


class TestSandboxValidate:
    def test_defaults_valid(self) -> None:
        result = CliRunner().invoke(main, ["sandbox", "validate"])

        assert result.exit_code == 0
        assert "Sandbox configuration is valid." in result.output

    def test_memory_below_floor(self) -> None:
        result = CliRunner().invoke(main, ["sandbox", "validate", "--memory", "32M"])

        assert result.exit_code == 1
        assert "Memory must be at least 64M" in result.output

    def test_secret_env_var(self) -> None:
        result = CliRunner().invoke(main, ["sandbox", "validate", "--env", "EDITOR", "--env", "API_KEY"])

        assert result.exit_code == 1
        assert "Environment variable not allowed: API_KEY" in result.output
        assert "EDITOR" not in result.output

    def test_json(self) -> None:
        result = CliRunner().invoke(
            main, ["sandbox", "validate", "--backend", "container", "--timeout", "500", "--json"]
        )

        assert result.exit_code == 1
        payload = json.loads(result.stdout)
        assert payload["valid"] is False
        assert payload["errors"] == ["Timeout must be between 1s and 5 minutes"]
        assert payload["config"]["backend"] == "container"

    def test_reads_settings_file(self, tmp_path: Path) -> None:
        (tmp_path / "mcpx.yaml").write_text("sandbox:\n  resource_limits:\n    disk: 10M\n")

        result = CliRunner().invoke(main, ["sandbox", "validate"])

        assert result.exit_code == 1
        assert "Disk must be at least 100M" in result.output


class TestSandboxSweep:
    def test_report(self) -> None:
        with patch("mcpx.sandbox.supervisor.CleanupSupervisor") as cls:
            cls.return_value.run_once = AsyncMock(return_value=SweepReport(found=3, removed=2, skipped=1))

            result = CliRunner().invoke(main, ["sandbox", "sweep", "--max-age-hours", "2", "--max-per-run", "2"])

        assert result.exit_code == 0, result.output
        assert "Container Sweep" in result.output
        kwargs = cls.call_args.kwargs
        assert kwargs["max_age_hours"] == 2
        assert kwargs["max_cleanup_per_run"] == 2

    def test_defaults_from_settings(self, tmp_path: Path) -> None:
        (tmp_path / "mcpx.yaml").write_text("cleanup:\n  max_age_hours: 6\n")
        with patch("mcpx.sandbox.supervisor.CleanupSupervisor") as cls:
            cls.return_value.run_once = AsyncMock(return_value=SweepReport())

            CliRunner().invoke(main, ["sandbox", "sweep"])

        assert cls.call_args.kwargs["max_age_hours"] == 6
        assert cls.call_args.kwargs["max_cleanup_per_run"] == 100

    def test_failures_exit_nonzero(self) -> None:
        with patch("mcpx.sandbox.supervisor.CleanupSupervisor") as cls:
            cls.return_value.run_once = AsyncMock(return_value=SweepReport(found=1, failed=1))

            result = CliRunner().invoke(main, ["sandbox", "sweep"])

        assert result.exit_code == 1

    def test_docker_unavailable(self) -> None:
        with patch("mcpx.sandbox.supervisor.CleanupSupervisor") as cls:
            cls.return_value.run_once = AsyncMock(side_effect=DockerException("no socket"))

            result = CliRunner().invoke(main, ["sandbox", "sweep"])

        assert result.exit_code == 1
        assert "Docker unavailable: no socket" in result.output
