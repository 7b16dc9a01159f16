"""Derive concrete tool arguments from the words of an intent.

The planner only looks at the intent text and the tool schemas. It never
reads files or inspects user data.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field

from mcpx.discovery.models import ToolParameter, ToolSchema

_URL = re.compile(r"https?://[^\s'\"<>]+")
_QUOTED = re.compile(r"\"([^\"]*)\"|'([^']*)'")
_PATH = re.compile(r"(?:~|\.{1,2})?/?(?:[\w.-]+/)*[\w-]+\.[A-Za-z0-9]{1,8}\b|(?:~|\.{1,2})?/(?:[\w.-]+/?)+")
_NUMBER = re.compile(r"(?<![\w.])-?\d+(?:\.\d+)?(?![\w.])")

_PATH_HINTS = ("path", "file", "dir", "folder")
_URL_HINTS = ("url", "uri", "endpoint", "link")
_TEXT_HINTS = ("query", "text", "prompt", "message", "content", "input", "pattern", "search", "term", "intent")


class PlannedCall(BaseModel):
    """One tool invocation in the generated program."""

    tool: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class IntentFacts(BaseModel):
    """Literal values pulled out of an intent."""

    urls: list[str] = Field(default_factory=list)
    quoted: list[str] = Field(default_factory=list)
    paths: list[str] = Field(default_factory=list)
    numbers: list[str] = Field(default_factory=list)

    @classmethod
    def extract(cls, intent: str) -> IntentFacts:
        urls = _URL.findall(intent)
        rest = _URL.sub(" ", intent)
        quoted = [a or b for a, b in _QUOTED.findall(rest)]
        rest = _QUOTED.sub(" ", rest)
        paths = [p for p in _PATH.findall(rest) if not _NUMBER.fullmatch(p)]
        numbers = _NUMBER.findall(_PATH.sub(" ", rest))
        return cls(urls=urls, quoted=quoted, paths=paths, numbers=numbers)


def _pick(values: list[str], used: set[str]) -> str | None:
    for value in values:
        if value not in used:
            used.add(value)
            return value
    return None


def _argument_for(param: ToolParameter, intent: str, facts: IntentFacts, used: set[str]) -> Any:
    name = param.name.lower()
    ptype = param.type.lower()

    if any(h in name for h in _URL_HINTS):
        value = _pick(facts.urls, used)
        if value is not None:
            return value
    if any(h in name for h in _PATH_HINTS):
        value = _pick(facts.paths + facts.quoted, used)
        if value is not None:
            return value
    if ptype in ("number", "integer"):
        value = _pick(facts.numbers, used)
        if value is not None:
            return int(float(value)) if ptype == "integer" else float(value)
    if ptype == "string" and any(h in name for h in _TEXT_HINTS):
        return _pick(facts.quoted, used) or intent
    if param.default is not None:
        return param.default
    if ptype == "string" and param.required:
        return _pick(facts.quoted + facts.paths + facts.urls, used) or intent
    return None


def plan_calls(tools: list[ToolSchema], intent: str) -> list[PlannedCall]:
    """One call per selected tool, in selection order."""
    facts = IntentFacts.extract(intent)
    calls: list[PlannedCall] = []
    for tool in tools:
        used: set[str] = set()
        arguments: dict[str, Any] = {}
        for param in tool.ordered_parameters():
            value = _argument_for(param, intent, facts, used)
            if value is not None or param.required:
                arguments[param.name] = value
        calls.append(PlannedCall(tool=tool.name, arguments=arguments))
    return calls
