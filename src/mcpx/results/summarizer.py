"""Output size bounding and result extraction."""

from __future__ import annotations

import json
import math
from typing import Any, cast

from mcpx.synthesis.synthesizer import RESULT_MARKER

SUMMARY_LIMIT = 2_000
SUMMARY_HEAD = 1_800


def stringify(output: Any) -> str:
    if output is None:
        return ""
    if isinstance(output, str):
        return output
    return json.dumps(output, default=str)


def summarize(output: Any) -> str:
    """Return *output* verbatim when short, else its head plus a truncation notice."""
    text = stringify(output)
    if len(text) < SUMMARY_LIMIT:
        return text
    return f"{text[:SUMMARY_HEAD]}...\n\n[Output truncated. Total length: {len(text)} characters]"


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters."""
    return math.ceil(len(text) / 4)


def extract_result(output: str | None) -> dict[str, Any] | None:
    """Parse the last ``__RESULT__: {...}`` line, if any."""
    if not output:
        return None
    for line in reversed(output.splitlines()):
        stripped = line.strip()
        if not stripped.startswith(RESULT_MARKER):
            continue
        try:
            payload = json.loads(stripped[len(RESULT_MARKER):].strip())
        except json.JSONDecodeError:
            return None
        return cast("dict[str, Any]", payload) if isinstance(payload, dict) else {"value": payload}
    return None
