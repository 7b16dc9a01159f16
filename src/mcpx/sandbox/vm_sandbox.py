"""VMSandbox — evaluates JavaScript in a fresh V8 isolate.

Requires the ``mini-racer`` package (optional dependency ``vm``). The
isolate exposes only the ECMAScript built-ins plus a capturing console;
timers are removed. Python programs are refused without running anything.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

from mcpx.errors import ErrorKind, SynthesisError
from mcpx.sandbox.limits import format_size, parse_size
from mcpx.sandbox.models import Backend, ExecutionMetrics, ExecutionResult, SandboxConfig
from mcpx.synthesis.typemap import normalize_language

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Execution timeout"
PYTHON_UNSUPPORTED = "VM sandbox does not support Python. Use Docker or Process sandbox instead."

_OUTPUT_GLOBAL = "__mcpxConsoleOutput"

# Installed before user code. Must itself stay clear of the validator's patterns.
_PRELUDE = """
var __mcpxConsoleOutput = { out: [], err: [] };
(function (g) {
  function render(values) {
    return Array.prototype.map.call(values, function (v) {
      return typeof v === "string" ? v : JSON.stringify(v);
    }).join(" ");
  }
  function sink(stream, tag) {
    return function () {
      var line = render(arguments);
      __mcpxConsoleOutput[stream].push(tag ? "[Sandbox] " + line : line);
    };
  }
  g.console = {
    log: sink("out", false),
    info: sink("out", false),
    debug: sink("out", false),
    warn: sink("err", true),
    error: sink("err", true)
  };
  g.setTimeout = undefined;
  g.setInterval = undefined;
  g.setImmediate = undefined;
  g.clearTimeout = undefined;
  g.clearInterval = undefined;
})(globalThis);
"""


class VMSandbox:
    """In-process V8 executor.

    Satisfies the :class:`~mcpx.sandbox.executor.SandboxExecutor` protocol.
    """

    def __init__(self, config: SandboxConfig | None = None) -> None:
        self._config = config or SandboxConfig(backend=Backend.VM)

    async def execute(self, code: str, language: str) -> ExecutionResult:
        try:
            lang = normalize_language(language)
        except SynthesisError as exc:
            return ExecutionResult.failure(str(exc), kind=ErrorKind.SYNTHESIS, backend=Backend.VM)
        if lang == "py":
            return ExecutionResult.failure(PYTHON_UNSUPPORTED, kind=ErrorKind.SANDBOX, backend=Backend.VM)

        started = time.monotonic()
        try:
            outcome = await asyncio.to_thread(self._evaluate, code)
        except ImportError as exc:
            return ExecutionResult.failure(str(exc), kind=ErrorKind.SANDBOX, backend=Backend.VM)

        elapsed = int((time.monotonic() - started) * 1000)
        error = outcome.get("error")
        if error is not None:
            kind = ErrorKind.TIMEOUT if error == TIMEOUT_MESSAGE else ErrorKind.SANDBOX
            return ExecutionResult.failure(
                error, kind=kind, backend=Backend.VM, execution_time_ms=elapsed, output=outcome.get("stdout")
            )
        return ExecutionResult(
            success=True,
            output=outcome["stdout"],
            backend=Backend.VM,
            metrics=ExecutionMetrics(execution_time_ms=elapsed, memory_used=outcome["memory"]),
        )

    async def cleanup(self) -> None:
        """No-op: each run uses a throwaway isolate."""

    def _evaluate(self, code: str) -> dict[str, Any]:
        """Blocking evaluation (run on a worker thread)."""
        try:
            from py_mini_racer import JSEvalException, JSTimeoutException, MiniRacer
        except ImportError as exc:
            msg = "mini-racer package required for the VM sandbox — install with: pip install mcpx[vm]"
            raise ImportError(msg) from exc

        limits = self._config.resource_limits
        ctx = MiniRacer()
        ctx.eval(_PRELUDE)
        try:
            ctx.eval(code, timeout=limits.timeout_ms, max_memory=parse_size(limits.memory))
        except JSTimeoutException:
            logger.info("VM sandbox timed out after %dms", limits.timeout_ms)
            return {"error": TIMEOUT_MESSAGE, "stdout": _drain(ctx, "out")}
        except JSEvalException as exc:
            stderr = _drain(ctx, "err")
            detail = str(exc).strip()
            return {"error": "\n".join(filter(None, [stderr, detail])) or "Evaluation failed", "stdout": _drain(ctx, "out")}

        return {"stdout": _drain(ctx, "out"), "memory": _heap_used(ctx)}


def _drain(ctx: Any, stream: str) -> str:
    lines = json.loads(ctx.eval(f"JSON.stringify({_OUTPUT_GLOBAL}.{stream})"))
    return "\n".join(lines) + ("\n" if lines else "")


def _heap_used(ctx: Any) -> str:
    stats = ctx.heap_stats()
    used = stats.get("used_heap_size", 0) if isinstance(stats, dict) else 0
    return format_size(used)
