"""Schema type → target-language type and identifier mapping."""

from __future__ import annotations

import keyword
import re
from typing import Literal

from mcpx.errors import SynthesisError

Language = Literal["ts", "py"]

_LANGUAGE_ALIASES: dict[str, Language] = {
    "ts": "ts",
    "typescript": "ts",
    "js": "ts",
    "javascript": "ts",
    "py": "py",
    "python": "py",
}

_PY_TYPES = {
    "string": "str",
    "number": "float",
    "integer": "int",
    "boolean": "bool",
    "object": "dict[str, Any]",
    "array": "list[Any]",
    "null": "None",
}

_TS_TYPES = {
    "string": "string",
    "number": "number",
    "integer": "number",
    "boolean": "boolean",
    "object": "Record<string, unknown>",
    "array": "unknown[]",
    "null": "null",
}

_ARRAY_OF = re.compile(r"^array<(.+)>$")
_NON_IDENT = re.compile(r"\W+")

_JS_RESERVED = frozenset(
    "break case catch class const continue debugger default delete do else enum export extends "
    "false finally for function if import in instanceof new null return super switch this throw "
    "true try typeof var void while with yield let static implements interface package private "
    "protected public await arguments eval".split()
)


def normalize_language(language: str) -> Language:
    lang = _LANGUAGE_ALIASES.get(language.strip().lower())
    if lang is None:
        raise SynthesisError(f"Unsupported target language: {language!r} (expected 'ts' or 'py')")
    return lang


def py_type(schema_type: str) -> str:
    inner = _ARRAY_OF.match(schema_type.strip())
    if inner:
        return f"list[{py_type(inner.group(1))}]"
    return _PY_TYPES.get(schema_type.strip().lower(), "Any")


def ts_type(schema_type: str) -> str:
    inner = _ARRAY_OF.match(schema_type.strip())
    if inner:
        element = ts_type(inner.group(1))
        return f"Array<{element}>"
    return _TS_TYPES.get(schema_type.strip().lower(), "unknown")


def _words(name: str) -> list[str]:
    # split camelCase too, so "readFile" and "read_file" agree
    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", name)
    return [w for w in _NON_IDENT.split(spaced.replace("_", " ")) if w]


def snake_case(name: str) -> str:
    ident = "_".join(w.lower() for w in _words(name)) or "tool"
    if ident[0].isdigit():
        ident = f"_{ident}"
    if keyword.iskeyword(ident) or keyword.issoftkeyword(ident):
        ident += "_"
    return ident


def camel_case(name: str) -> str:
    words = _words(name)
    if not words:
        return "tool"
    ident = words[0].lower() + "".join(w[:1].upper() + w[1:].lower() for w in words[1:])
    if ident[0].isdigit():
        ident = f"_{ident}"
    if ident in _JS_RESERVED:
        ident += "_"
    return ident
