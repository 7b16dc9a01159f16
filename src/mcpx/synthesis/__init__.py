"""Wrapper code generation for selected tools."""

from mcpx.synthesis.plan import IntentFacts, PlannedCall, plan_calls
from mcpx.synthesis.synthesizer import RESULT_MARKER, CodeSynthesizer, GeneratedProgram
from mcpx.synthesis.typemap import camel_case, normalize_language, py_type, snake_case, ts_type

__all__ = [
    "RESULT_MARKER",
    "CodeSynthesizer",
    "GeneratedProgram",
    "IntentFacts",
    "PlannedCall",
    "camel_case",
    "normalize_language",
    "plan_calls",
    "py_type",
    "snake_case",
    "ts_type",
]
