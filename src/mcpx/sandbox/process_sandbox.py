"""ProcessSandbox — runs a program in a child interpreter process.

Each ``execute()`` call:
1. creates a fresh temporary directory and writes the program into it;
2. spawns the interpreter with a curated environment (see
   :mod:`mcpx.sandbox.environment`) and the directory as ``HOME``, under a
   small launcher that reaps it with ``os.wait4`` and records that child's
   own peak RSS;
3. waits for it under the configured timeout, killing it on expiry;
4. removes the directory in a ``finally`` block.

This backend relies on OS process isolation only.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shutil
import signal
import sys
import tempfile
import time
from pathlib import Path

from mcpx.errors import ConfigError, ErrorKind, SynthesisError
from mcpx.sandbox.environment import build_environment
from mcpx.sandbox.limits import format_size
from mcpx.sandbox.models import Backend, ExecutionMetrics, ExecutionResult, SandboxConfig
from mcpx.synthesis.synthesizer import ENTRY_FILENAMES
from mcpx.synthesis.typemap import normalize_language

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Execution timeout"

DEFAULT_INTERPRETERS: dict[str, list[str]] = {
    "py": ["python3"],
    "ts": ["node"],
}

RUSAGE_FILENAME = ".mcpx-rusage"

# argv: <rusage file> <interpreter> [args...]; re-raises the child's signal so
# the parent sees the same exit status
_LAUNCHER = """\
import os, signal, sys
out, argv = sys.argv[1], sys.argv[2:]
pid = os.fork()
if pid == 0:
    try:
        os.execvp(argv[0], argv)
    except OSError as exc:
        os.write(2, f"{exc}\\n".encode())
        os._exit(127)
_, status, usage = os.wait4(pid, 0)
with open(out, "w") as fh:
    fh.write(str(usage.ru_maxrss))
if os.WIFSIGNALED(status):
    sig = os.WTERMSIG(status)
    signal.signal(sig, signal.SIG_DFL)
    os.kill(os.getpid(), sig)
sys.exit(os.WEXITSTATUS(status))
"""


class ProcessSandbox:
    """Child-process executor.

    Satisfies the :class:`~mcpx.sandbox.executor.SandboxExecutor` protocol.
    """

    def __init__(
        self,
        config: SandboxConfig | None = None,
        *,
        interpreters: dict[str, list[str]] | None = None,
    ) -> None:
        self._config = config or SandboxConfig(backend=Backend.PROCESS)
        self._interpreters = {**DEFAULT_INTERPRETERS, **(interpreters or {})}

    async def execute(self, code: str, language: str) -> ExecutionResult:
        started = time.monotonic()
        try:
            lang = normalize_language(language)
        except SynthesisError as exc:
            return ExecutionResult.failure(str(exc), kind=ErrorKind.SYNTHESIS, backend=Backend.PROCESS)

        tmp_dir = tempfile.mkdtemp(prefix="mcpx-sandbox-")
        try:
            try:
                env = build_environment(tmp_dir, self._config.allowed_env_vars)
            except ConfigError as exc:
                logger.warning("Rejected sandbox environment: %s", exc)
                return ExecutionResult.failure(str(exc), kind=ErrorKind.CONFIG, backend=Backend.PROCESS)

            script = Path(tmp_dir) / ENTRY_FILENAMES[lang]
            script.write_text(code, encoding="utf-8")
            return await self._run(self._interpreters[lang] + [str(script)], tmp_dir, env, started)
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)

    async def cleanup(self) -> None:
        """No-op: every run removes its own directory."""

    async def _run(self, command: list[str], cwd: str, env: dict[str, str], started: float) -> ExecutionResult:
        timeout_ms = self._config.resource_limits.timeout_ms
        logger.debug("Spawning %s (timeout %dms)", command[0], timeout_ms)
        if shutil.which(command[0], path=env.get("PATH")) is None:
            return ExecutionResult.failure(
                f"Failed to start {command[0]}: interpreter not found",
                kind=ErrorKind.SANDBOX,
                backend=Backend.PROCESS,
                execution_time_ms=_elapsed_ms(started),
            )
        rusage_file = Path(cwd) / RUSAGE_FILENAME

        try:
            proc = await asyncio.create_subprocess_exec(
                sys.executable,
                "-I",
                "-c",
                _LAUNCHER,
                str(rusage_file),
                *command,
                cwd=cwd,
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as exc:
            return ExecutionResult.failure(
                f"Failed to start {command[0]}: {exc}",
                kind=ErrorKind.SANDBOX,
                backend=Backend.PROCESS,
                execution_time_ms=_elapsed_ms(started),
            )

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=timeout_ms / 1000)
        except TimeoutError:
            _kill(proc)
            await proc.wait()
            logger.info("Process sandbox timed out after %dms", timeout_ms)
            return ExecutionResult.failure(
                TIMEOUT_MESSAGE,
                kind=ErrorKind.TIMEOUT,
                backend=Backend.PROCESS,
                execution_time_ms=_elapsed_ms(started),
            )

        stdout = stdout_bytes.decode(errors="replace") if stdout_bytes else ""
        stderr = stderr_bytes.decode(errors="replace") if stderr_bytes else ""
        elapsed = _elapsed_ms(started)

        if proc.returncode is None or proc.returncode == -signal.SIGTERM:
            return ExecutionResult.failure(
                TIMEOUT_MESSAGE, kind=ErrorKind.TIMEOUT, backend=Backend.PROCESS, execution_time_ms=elapsed
            )
        if proc.returncode != 0:
            return ExecutionResult.failure(
                stderr.strip() or f"Process exited with code {proc.returncode}",
                kind=ErrorKind.SANDBOX,
                backend=Backend.PROCESS,
                execution_time_ms=elapsed,
                output=stdout,
            )

        peak = _peak_rss(rusage_file)
        return ExecutionResult(
            success=True,
            output=stdout,
            backend=Backend.PROCESS,
            metrics=ExecutionMetrics(execution_time_ms=elapsed, memory_used=format_size(peak)),
        )


def _kill(proc: asyncio.subprocess.Process) -> None:
    """Kill the child and anything it spawned in its session."""
    with contextlib.suppress(ProcessLookupError, PermissionError):
        os.killpg(proc.pid, signal.SIGKILL)
    with contextlib.suppress(ProcessLookupError):
        proc.kill()


def _peak_rss(rusage_file: Path) -> int:
    """Peak RSS of this run's interpreter in bytes, 0 when the launcher left no record."""
    try:
        usage = int(rusage_file.read_text())
    except (OSError, ValueError):
        return 0
    # macOS reports bytes, Linux kilobytes
    return usage if sys.platform == "darwin" else usage * 1024


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
