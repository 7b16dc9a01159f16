"""SandboxExecutor protocol — the common interface for sandbox backends."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from mcpx.sandbox.models import ExecutionResult


@runtime_checkable
class SandboxExecutor(Protocol):
    """Runs a program in an isolated environment.

    ``execute()`` never raises for failures inside the sandbox; it returns
    a failed :class:`~mcpx.sandbox.models.ExecutionResult` instead.
    ``cleanup()`` releases anything the backend still holds.
    """

    async def execute(self, code: str, language: str) -> ExecutionResult:
        """Run *code* written in *language* (``ts`` or ``py``)."""
        ...

    async def cleanup(self) -> None:
        """Release any resources held by this executor."""
        ...
