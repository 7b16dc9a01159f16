"""CodeSynthesizer — emits a runnable wrapper program for the selected tools.

The program defines an MCP client stub ``call(name, args)``, one wrapper
function per selected tool, runs a small plan derived from the intent and
prints a single line ``__RESULT__: <json>``.

TypeScript output is emitted as JSDoc-typed JavaScript with ``// @ts-check``
so the same text runs under node and in a bare V8 isolate.
"""

from __future__ import annotations

import builtins
import json
import logging
import math
from typing import Any

from pydantic import BaseModel, Field

from mcpx.discovery.models import ToolParameter, ToolSchema
from mcpx.synthesis.plan import PlannedCall, plan_calls
from mcpx.synthesis.typemap import Language, camel_case, normalize_language, py_type, snake_case, ts_type
from mcpx.utils.telemetry import ATTR_LANGUAGE, ATTR_TOOL_COUNT, get_tracer

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

RESULT_MARKER = "__RESULT__:"

ENTRY_FILENAMES: dict[Language, str] = {"py": "script.py", "ts": "script.js"}


class GeneratedProgram(BaseModel):
    """Source text ready to hand to a sandbox."""

    language: Language
    code: str
    wrappers: dict[str, str] = Field(default_factory=dict, description="Tool name → wrapper source.")
    plan: list[PlannedCall] = Field(default_factory=list)
    entry_filename: str = "script.py"
    estimated_tokens: int = 0


class CodeSynthesizer:
    """Purely syntactic code generator. Only the tools passed in are emitted."""

    def synthesize(self, tools: list[ToolSchema], language: str, intent: str) -> GeneratedProgram:
        lang = normalize_language(language)
        with _tracer.start_as_current_span("mcpx.synthesize") as span:
            span.set_attribute(ATTR_LANGUAGE, lang)
            span.set_attribute(ATTR_TOOL_COUNT, len(tools))

            plan = plan_calls(tools, intent)
            if lang == "py":
                names = _function_names(tools, snake_case)
                wrappers = {t.name: self._py_wrapper(t, names[t.name]) for t in tools}
                code = self._py_program(tools, names, wrappers, plan, intent)
            else:
                names = _function_names(tools, camel_case)
                wrappers = {t.name: self._ts_wrapper(t, names[t.name]) for t in tools}
                code = self._ts_program(tools, names, wrappers, plan, intent)

        logger.debug("Synthesized %s program with %d wrappers (%d chars)", lang, len(wrappers), len(code))
        return GeneratedProgram(
            language=lang,
            code=code,
            wrappers=wrappers,
            plan=plan,
            entry_filename=ENTRY_FILENAMES[lang],
            estimated_tokens=math.ceil(len(code) / 4),
        )

    # ------------------------------------------------------------------
    # Python
    # ------------------------------------------------------------------

    @staticmethod
    def _py_wrapper(tool: ToolSchema, fname: str) -> str:
        params = tool.ordered_parameters()
        idents = _unique_idents(params, snake_case)
        signature: list[str] = []
        for param in params:
            hint = py_type(param.type)
            if param.required:
                signature.append(f"{idents[param.name]}: {hint}")
            else:
                signature.append(f"{idents[param.name]}: {hint} | None = None")

        lines = [f"def {fname}({', '.join(signature)}) -> Any:"]
        if tool.description:
            lines.append(f"    {_py_literal(tool.description)}")
        required = ", ".join(f"{_py_literal(p.name)}: {idents[p.name]}" for p in params if p.required)
        lines.append(f"    args: dict[str, Any] = {{{required}}}")
        for param in params:
            if not param.required:
                ident = idents[param.name]
                lines.append(f"    if {ident} is not None:")
                lines.append(f"        args[{_py_literal(param.name)}] = {ident}")
        lines.append(f"    return call({_py_literal(tool.name)}, args)")
        return "\n".join(lines)

    @staticmethod
    def _py_program(
        tools: list[ToolSchema],
        names: dict[str, str],
        wrappers: dict[str, str],
        plan: list[PlannedCall],
        intent: str,
    ) -> str:
        by_name = {t.name: t for t in tools}
        steps: list[str] = []
        for planned in plan:
            tool = by_name[planned.tool]
            idents = _unique_idents(tool.ordered_parameters(), snake_case)
            kwargs = ", ".join(f"{idents[k]}={_py_literal(v)}" for k, v in planned.arguments.items())
            steps.append(f"    results.append({names[tool.name]}({kwargs}))")

        body = "\n\n\n".join(wrappers[t.name] for t in tools)
        return "\n".join(
            [
                '"""Generated MCP tool wrappers."""',
                "",
                "import json",
                "from typing import Any",
                "",
                f"INTENT = {_py_literal(intent)}",
                "",
                "",
                "def call(name: str, args: dict[str, Any]) -> dict[str, Any]:",
                '    """MCP client stub: records one dispatched tool call."""',
                '    return {"tool": name, "arguments": args, "status": "dispatched"}',
                "",
                "",
                body,
                "",
                "",
                "def main() -> None:",
                "    results: list[Any] = []",
                *(steps or ["    pass"]),
                f'    print("{RESULT_MARKER} " + json.dumps({{"intent": INTENT, "calls": results}}))',
                "",
                "",
                'if __name__ == "__main__":',
                "    main()",
                "",
            ]
        )

    # ------------------------------------------------------------------
    # TypeScript (JSDoc-checked JavaScript)
    # ------------------------------------------------------------------

    @staticmethod
    def _ts_wrapper(tool: ToolSchema, fname: str) -> str:
        params = tool.ordered_parameters()
        idents = _unique_idents(params, camel_case)
        doc = ["/**"]
        if tool.description:
            doc.append(f" * {_jsdoc_text(tool.description)}")
        for param in params:
            ident = idents[param.name]
            name_part = ident if param.required else f"[{ident}]"
            suffix = f" - {_jsdoc_text(param.description)}" if param.description else ""
            doc.append(f" * @param {{{ts_type(param.type)}}} {name_part}{suffix}")
        doc.append(" */")

        lines = [*doc, f"function {fname}({', '.join(idents[p.name] for p in params)}) {{"]
        required = ", ".join(f"{_js_literal(p.name)}: {idents[p.name]}" for p in params if p.required)
        lines.append("  /** @type {Record<string, unknown>} */")
        lines.append(f"  const args = {{ {required} }};" if required else "  const args = {};")
        for param in params:
            if not param.required:
                ident = idents[param.name]
                lines.append(f"  if ({ident} !== undefined) args[{_js_literal(param.name)}] = {ident};")
        lines.append(f"  return call({_js_literal(tool.name)}, args);")
        lines.append("}")
        return "\n".join(lines)

    @staticmethod
    def _ts_program(
        tools: list[ToolSchema],
        names: dict[str, str],
        wrappers: dict[str, str],
        plan: list[PlannedCall],
        intent: str,
    ) -> str:
        by_name = {t.name: t for t in tools}
        steps: list[str] = []
        for planned in plan:
            tool = by_name[planned.tool]
            positional: list[str] = []
            for param in tool.ordered_parameters():
                if param.name in planned.arguments:
                    positional.append(_js_literal(planned.arguments[param.name]))
                else:
                    positional.append("undefined")
            while positional and positional[-1] == "undefined":
                positional.pop()
            steps.append(f"  results.push({names[tool.name]}({', '.join(positional)}));")

        body = "\n\n".join(wrappers[t.name] for t in tools)
        return "\n".join(
            [
                "// @ts-check",
                "// Generated MCP tool wrappers.",
                '"use strict";',
                "",
                f"const INTENT = {_js_literal(intent)};",
                "",
                "/**",
                " * MCP client stub: records one dispatched tool call.",
                " * @param {string} name",
                " * @param {Record<string, unknown>} args",
                " */",
                "function call(name, args) {",
                '  return { tool: name, arguments: args, status: "dispatched" };',
                "}",
                "",
                body,
                "",
                "function main() {",
                "  /** @type {unknown[]} */",
                "  const results = [];",
                *steps,
                f'  console.log("{RESULT_MARKER} " + JSON.stringify({{ intent: INTENT, calls: results }}));',
                "}",
                "",
                "main();",
                "",
            ]
        )


def _unique_idents(params: list[ToolParameter], convert: Any) -> dict[str, str]:
    """Map parameter names to distinct identifiers."""
    idents: dict[str, str] = {}
    taken: set[str] = {"args", "call"}
    for param in params:
        ident = convert(param.name)
        candidate = ident
        n = 2
        while candidate in taken:
            candidate = f"{ident}{n}"
            n += 1
        taken.add(candidate)
        idents[param.name] = candidate
    return idents


def _py_literal(value: Any) -> str:
    """Python source for a JSON-compatible value."""
    return repr(json.loads(json.dumps(value, default=str)))


def _js_literal(value: Any) -> str:
    # escape "</" and line separators so the literal is safe anywhere in a script
    text = json.dumps(value, default=str)
    return text.replace("</", "<\\/").replace("\u2028", "\\u2028").replace("\u2029", "\\u2029")


def _jsdoc_text(text: str) -> str:
    return " ".join(text.replace("*/", "* /").split())


_PROGRAM_NAMES = frozenset({"call", "main", "json", "Any", "INTENT", "JSON", "console", "results", "args"})
# globals a wrapper must not shadow in either runtime
_RUNTIME_GLOBALS = frozenset(dir(builtins)) | frozenset(
    {"undefined", "globalThis", "Object", "Array", "String", "Number", "Boolean", "Math", "Date", "Error", "Promise"}
)


def _function_names(tools: list[ToolSchema], convert: Any) -> dict[str, str]:
    """Distinct wrapper function names that avoid the program's own globals."""
    names: dict[str, str] = {}
    taken: set[str] = set(_PROGRAM_NAMES | _RUNTIME_GLOBALS)
    for tool in tools:
        base = convert(tool.name)
        if base in taken:
            base = f"{base}_tool" if convert is snake_case else f"{base}Tool"
        candidate = base
        n = 2
        while candidate in taken:
            candidate = f"{base}{n}"
            n += 1
        taken.add(candidate)
        names[tool.name] = candidate
    return names
