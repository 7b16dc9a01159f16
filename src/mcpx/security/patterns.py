"""Deny-list and watch-list regexes for generated code.

Defaults cover the JavaScript family and the Python equivalents. A JSON
file may replace either list::

    {"dangerous": ["eval\\\\(", ...], "suspicious": ["fetch\\\\(", ...]}

The legacy ``{"patterns": [...]}`` form replaces the dangerous list only.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

DEFAULT_DANGEROUS: tuple[str, ...] = (
    r"eval\(",
    r"Function\(",
    r"require\(['\"]child_process['\"]\)",
    r"exec\(",
    r"execSync\(",
    r"spawn\(",
    r"\$\{[^}]*\}",
    r"document\.cookie",
    r"localStorage",
    r"sessionStorage",
    r"\.innerHTML\s*=",
    r"on(click|load|error|mouseover)\s*=",
    r"\.outerHTML\s*=",
    r"dangerouslySetInnerHTML",
    r"__proto__",
    r"constructor\[",
    # python
    r"\bos\.system\(",
    r"\bos\.popen\(",
    r"\bsubprocess\b",
    r"__import__\(",
    r"\bpickle\.loads?\(",
    r"\bctypes\b",
)

DEFAULT_SUSPICIOUS: tuple[str, ...] = (
    r"require\(",
    r"import\(",
    r"fetch\(",
    r"XMLHttpRequest",
    r"WebSocket",
    r"setTimeout",
    r"setInterval",
    r"while\s*\(\s*true\s*\)",
    r"for\s*\([^)]*;;[^)]*\)",
    r"process\.env",
    r"fs\.",
    r"readFile",
    r"writeFile",
    r"\.exec\(",
    # python
    r"while\s+True\s*:",
    r"\bos\.environ\b",
    r"\bopen\(",
    r"\bsocket\.",
    r"\burllib\b",
    r"\brequests\.",
    r"\bshutil\.",
)


@dataclass(frozen=True)
class PatternSet:
    """Compiled dangerous and suspicious patterns.

    Compiled :class:`re.Pattern` objects carry no scan state, so one set is
    safely shared by concurrent validations.
    """

    dangerous: tuple[re.Pattern[str], ...] = field(default_factory=tuple)
    suspicious: tuple[re.Pattern[str], ...] = field(default_factory=tuple)

    @classmethod
    def from_sources(cls, dangerous: list[str] | tuple[str, ...], suspicious: list[str] | tuple[str, ...]) -> PatternSet:
        return cls(
            dangerous=tuple(re.compile(p) for p in dangerous),
            suspicious=tuple(re.compile(p) for p in suspicious),
        )

    @classmethod
    def defaults(cls) -> PatternSet:
        return cls.from_sources(DEFAULT_DANGEROUS, DEFAULT_SUSPICIOUS)


def load_pattern_file(path: str | Path) -> PatternSet:
    """Read and compile a pattern file. Raises on any read, parse or regex error."""
    data: Any = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        msg = f"Pattern file must hold an object: {path}"
        raise ValueError(msg)
    data = cast("dict[str, Any]", data)

    dangerous = data.get("dangerous", data.get("patterns"))
    suspicious = data.get("suspicious")
    return PatternSet.from_sources(
        _pattern_list(dangerous) if dangerous is not None else DEFAULT_DANGEROUS,
        _pattern_list(suspicious) if suspicious is not None else DEFAULT_SUSPICIOUS,
    )


def _pattern_list(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        msg = "Pattern lists must be arrays"
        raise ValueError(msg)
    sources: list[str] = []
    for item in cast("list[Any]", raw):
        # {"pattern": "...", "description": "..."} entries are accepted too
        if isinstance(item, dict):
            item = cast("dict[str, Any]", item).get("pattern")
        if not isinstance(item, str):
            msg = f"Invalid pattern entry: {item!r}"
            raise ValueError(msg)
        sources.append(item)
    return sources
