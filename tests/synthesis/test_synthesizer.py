"""Tests for CodeSynthesizer."""

from __future__ import annotations

import ast
import sys

import pytest

from mcpx.discovery.models import ToolParameter, ToolSchema
from mcpx.errors import SynthesisError
from mcpx.sandbox.process_sandbox import ProcessSandbox
from mcpx.synthesis.synthesizer import RESULT_MARKER, CodeSynthesizer

_TOOLS = [
    ToolSchema(
        name="fs_read",
        description="Read a file",
        parameters=[
            ToolParameter(name="path", type="string", description="File to read"),
            ToolParameter(name="encoding", type="string", required=False),
        ],
    ),
    ToolSchema(name="git-log", description="Show commit history"),
]


class TestPython:
    def test_program_is_valid_python(self) -> None:
        program = CodeSynthesizer().synthesize(_TOOLS, "python", "read file config.json")

        ast.parse(program.code)
        assert program.language == "py"
        assert program.entry_filename == "script.py"

    def test_typed_wrappers(self) -> None:
        program = CodeSynthesizer().synthesize(_TOOLS, "py", "read file config.json")

        wrapper = program.wrappers["fs_read"]
        assert wrapper.startswith("def fs_read(path: str, encoding: str | None = None) -> Any:")
        assert "return call('fs_read', args)" in wrapper
        assert "def git_log() -> Any:" in program.wrappers["git-log"]

    def test_plan_and_result_line(self) -> None:
        program = CodeSynthesizer().synthesize(_TOOLS, "py", "read file config.json")

        assert "results.append(fs_read(path='config.json'))" in program.code
        assert f'print("{RESULT_MARKER} "' in program.code
        assert [c.tool for c in program.plan] == ["fs_read", "git-log"]

    def test_only_selected_tools_emitted(self) -> None:
        program = CodeSynthesizer().synthesize(_TOOLS[:1], "py", "read")

        assert set(program.wrappers) == {"fs_read"}
        assert "git" not in program.code

    def test_intent_is_quoted_safely(self) -> None:
        intent = "say \"hi\"\n'''; import os"
        program = CodeSynthesizer().synthesize(_TOOLS[:1], "py", intent)

        tree = ast.parse(program.code)
        assigns = [n for n in tree.body if isinstance(n, ast.Assign)]
        assert ast.literal_eval(assigns[0].value) == intent

    def test_names_do_not_shadow_program_globals(self) -> None:
        tools = [ToolSchema(name="main"), ToolSchema(name="call")]
        program = CodeSynthesizer().synthesize(tools, "py", "run")

        assert "def main_tool() -> Any:" in program.code
        assert "def call_tool() -> Any:" in program.code
        ast.parse(program.code)

    @pytest.mark.parametrize("name", ["print", "len", "open"])
    def test_names_do_not_shadow_builtins(self, name: str) -> None:
        program = CodeSynthesizer().synthesize([ToolSchema(name=name)], "py", "run")

        assert f"def {name}_tool() -> Any:" in program.code
        assert f"def {name}(" not in program.code

    async def test_builtin_named_tool_still_reports(self) -> None:
        tool = ToolSchema(
            name="print",
            description="Print a document",
            parameters=[ToolParameter(name="path", type="string")],
        )
        program = CodeSynthesizer().synthesize([tool], "py", "print document report.pdf")

        result = await ProcessSandbox(interpreters={"py": [sys.executable]}).execute(program.code, "py")

        assert result.success, result.error
        assert RESULT_MARKER in result.output

    def test_token_estimate(self) -> None:
        program = CodeSynthesizer().synthesize(_TOOLS, "py", "x")
        assert program.estimated_tokens == -(-len(program.code) // 4)


class TestTypeScript:
    def test_names_do_not_shadow_js_globals(self) -> None:
        program = CodeSynthesizer().synthesize([ToolSchema(name="undefined"), ToolSchema(name="console")], "ts", "run")

        assert "function undefinedTool() {" in program.code
        assert "function consoleTool() {" in program.code

    def test_jsdoc_wrapper(self) -> None:
        program = CodeSynthesizer().synthesize(_TOOLS, "ts", "read file config.json")

        wrapper = program.wrappers["fs_read"]
        assert " * @param {string} path - File to read" in wrapper
        assert " * @param {string} [encoding]" in wrapper
        assert "function fsRead(path, encoding) {" in wrapper
        assert 'if (encoding !== undefined) args["encoding"] = encoding;' in wrapper

    def test_program_shape(self) -> None:
        program = CodeSynthesizer().synthesize(_TOOLS, "typescript", "read file config.json")

        assert program.code.startswith("// @ts-check")
        assert program.entry_filename == "script.js"
        assert 'results.push(fsRead("config.json"));' in program.code
        assert "results.push(gitLog());" in program.code
        assert f'console.log("{RESULT_MARKER} "' in program.code
        assert program.code.rstrip().endswith("main();")

    def test_script_breakout_is_escaped(self) -> None:
        program = CodeSynthesizer().synthesize(_TOOLS[:1], "ts", "</script>")
        assert "</script>" not in program.code


class TestErrors:
    def test_unsupported_language(self) -> None:
        with pytest.raises(SynthesisError):
            CodeSynthesizer().synthesize(_TOOLS, "go", "x")
