"""Tests for ``mcpx tools`` CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from mcpx.cli import main
from mcpx.cli_commands.tools import _server_name
from mcpx.discovery.models import ToolParameter, ToolSchema
from mcpx.protocols.errors import ConnectionError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("MCPX_CONFIG", raising=False)


@pytest.fixture
def tools_dir(tmp_path: Path) -> Path:
    root = tmp_path / "tools"
    root.mkdir()
    (root / "fs.json").write_text(
        json.dumps(
            [
                {"name": "fs_read", "description": "Read a file"},
                {"name": "fs_write", "description": "Write a file to disk"},
            ]
        )
    )
    (root / "git.yaml").write_text("name: git_log\ndescription: Show commit history\n")
    return root


class TestToolsList:
    def test_table(self, tools_dir: Path) -> None:
        result = CliRunner().invoke(main, ["tools", "list"])

        assert result.exit_code == 0, result.output
        assert "fs_read" in result.output
        assert "git_log" in result.output

    def test_json(self, tools_dir: Path) -> None:
        result = CliRunner().invoke(main, ["tools", "list", "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert {d["name"] for d in data} == {"fs_read", "fs_write", "git_log"}
        assert next(d for d in data if d["name"] == "git_log")["source"] == "git.yaml"

    def test_category_filter(self, tools_dir: Path) -> None:
        result = CliRunner().invoke(main, ["tools", "list", "--category", "git", "--format", "json"])

        assert [d["name"] for d in json.loads(result.stdout)] == ["git_log"]

    def test_explicit_directory(self, tmp_path: Path) -> None:
        other = tmp_path / "other"
        other.mkdir()
        (other / "t.json").write_text(json.dumps({"name": "echo", "description": "Print text"}))

        result = CliRunner().invoke(main, ["tools", "list", "--tools-dir", str(other)])

        assert "echo" in result.output

    def test_empty_directory(self, tmp_path: Path) -> None:
        (tmp_path / "tools").mkdir()

        result = CliRunner().invoke(main, ["tools", "list"])

        assert result.exit_code == 0
        assert "No tools found." in result.output

    def test_missing_directory(self) -> None:
        result = CliRunner().invoke(main, ["tools", "list"])

        assert result.exit_code == 1
        assert "Tools directory not found" in result.output

    def test_duplicate_names(self, tools_dir: Path) -> None:
        (tools_dir / "dup.json").write_text(json.dumps({"name": "fs_read", "description": "Again"}))

        result = CliRunner().invoke(main, ["tools", "list"])

        assert result.exit_code == 1
        assert "Duplicate tool name" in result.output


class TestToolsSearch:
    def test_ranked_results(self, tools_dir: Path) -> None:
        result = CliRunner().invoke(main, ["tools", "search", "read file config.json", "--format", "json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data[0]["name"] == "fs_read"
        assert data[0]["score"] >= 0.5

    def test_table(self, tools_dir: Path) -> None:
        result = CliRunner().invoke(main, ["tools", "search", "commit history"])

        assert result.exit_code == 0
        assert "git_log" in result.output

    def test_no_match(self, tools_dir: Path) -> None:
        result = CliRunner().invoke(main, ["tools", "search", "launch rockets"])

        assert result.exit_code == 0
        assert "No relevant tools." in result.output

    def test_empty_query(self, tools_dir: Path) -> None:
        result = CliRunner().invoke(main, ["tools", "search", "a"])

        assert result.exit_code == 1
        assert "no searchable terms" in result.output

    def test_threshold_and_limit(self, tools_dir: Path) -> None:
        result = CliRunner().invoke(
            main, ["tools", "search", "file", "--limit", "1", "--threshold", "0", "--format", "json"]
        )

        assert len(json.loads(result.stdout)) == 1


class TestToolsImport:
    @pytest.fixture
    def client_cls(self) -> Iterator[MagicMock]:
        schemas = [
            ToolSchema(
                name="read_file",
                description="Read a file",
                parameters=[ToolParameter(name="path", type="string")],
            )
        ]
        with patch("mcpx.protocols.mcp.client.MCPClient") as cls:
            client = cls.return_value
            client.__aenter__.return_value = client
            client.discover_tools = AsyncMock(return_value=schemas)
            yield cls

    def test_writes_schema_file(self, tmp_path: Path, client_cls: MagicMock) -> None:
        result = CliRunner().invoke(main, ["tools", "import", "npx @mcp/server-filesystem", "--name", "fs"])

        assert result.exit_code == 0, result.output
        assert "Imported 1 tool(s)" in result.output
        written = json.loads((tmp_path / "tools" / "fs.json").read_text())
        assert written[0]["name"] == "read_file"
        ref = client_cls.call_args.args[0]
        assert ref.transport == "stdio"
        assert ref.command == "npx @mcp/server-filesystem"

    def test_websocket(self, tmp_path: Path, client_cls: MagicMock) -> None:
        result = CliRunner().invoke(main, ["tools", "import", "ws://localhost:9000/mcp", "--transport", "websocket"])

        assert result.exit_code == 0, result.output
        ref = client_cls.call_args.args[0]
        assert ref.transport == "websocket"
        assert ref.url == "ws://localhost:9000/mcp"
        assert (tmp_path / "tools" / "mcp.json").exists()

    def test_refuses_to_overwrite(self, tmp_path: Path, client_cls: MagicMock) -> None:
        (tmp_path / "tools").mkdir()
        (tmp_path / "tools" / "fs.json").write_text("[]")

        result = CliRunner().invoke(main, ["tools", "import", "srv", "--name", "fs"])

        assert result.exit_code == 1
        assert "--force" in result.output
        client_cls.assert_not_called()

        forced = CliRunner().invoke(main, ["tools", "import", "srv", "--name", "fs", "--force"])
        assert forced.exit_code == 0

    def test_connection_failure(self, client_cls: MagicMock) -> None:
        client_cls.return_value.__aenter__.side_effect = ConnectionError("refused")

        result = CliRunner().invoke(main, ["tools", "import", "srv"])

        assert result.exit_code == 1
        assert "Import failed: refused" in result.output


class TestServerName:
    @pytest.mark.parametrize(
        ("server", "expected"),
        [
            ("npx @mcp/server-filesystem", "server-filesystem"),
            ("ws://localhost:9000/mcp/", "mcp"),
            ("python -m my_server", "my_server"),
            ("///", "mcp-server"),
        ],
    )
    def test_derivation(self, server: str, expected: str) -> None:
        assert _server_name(server) == expected
