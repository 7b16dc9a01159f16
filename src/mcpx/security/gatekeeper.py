"""Gatekeeper protocol and implementations.

- ``Gatekeeper`` — runtime-checkable protocol for operator decisions.
- ``CLIGatekeeper`` — prompts the operator via stdin/stdout.
- ``AutoApproveGatekeeper`` / ``AutoRejectGatekeeper`` — fixed answers (tests, CI).
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Protocol, runtime_checkable

from mcpx.errors import ApprovalError
from mcpx.security.approval import ApprovalGate
from mcpx.security.models import ApprovalDecision, ApprovalRequest

logger = logging.getLogger(__name__)


@runtime_checkable
class Gatekeeper(Protocol):
    """Decides whether a flagged program may run."""

    async def decide(self, request: ApprovalRequest) -> ApprovalDecision:
        """Return the operator's decision for *request*."""
        ...


class AutoApproveGatekeeper:
    """Always approves. Satisfies the :class:`Gatekeeper` protocol."""

    async def decide(self, request: ApprovalRequest) -> ApprovalDecision:
        logger.debug("AutoApproveGatekeeper: auto-approving %s", request.id)
        return ApprovalDecision(approved=True, actor="auto", reason="auto-approved")


class AutoRejectGatekeeper:
    """Always rejects. Satisfies the :class:`Gatekeeper` protocol."""

    async def decide(self, request: ApprovalRequest) -> ApprovalDecision:
        logger.debug("AutoRejectGatekeeper: auto-rejecting %s", request.id)
        return ApprovalDecision(approved=False, actor="auto", reason="auto-rejected")


class CLIGatekeeper:
    """Prompts the operator at the terminal.

    Uses ``loop.run_in_executor(None, input)`` to read from stdin without
    blocking the event loop. Raises :class:`ApprovalError` if no answer
    arrives within *timeout* seconds.
    """

    def __init__(self, *, timeout: float = 300.0, actor: str = "cli") -> None:
        self._timeout = timeout
        self._actor = actor

    async def decide(self, request: ApprovalRequest) -> ApprovalDecision:
        sys.stdout.write("\n" + ApprovalGate.format_request(request) + "\n")
        sys.stdout.write("  Approve execution? [y/N]: ")
        sys.stdout.flush()

        loop = asyncio.get_running_loop()
        try:
            answer: str = await asyncio.wait_for(
                loop.run_in_executor(None, self._read_input),
                timeout=self._timeout,
            )
        except TimeoutError:
            raise ApprovalError(request.id, f"no answer after {self._timeout}s")

        approved = answer.strip().lower() in ("y", "yes")
        return ApprovalDecision(
            approved=approved,
            actor=self._actor,
            reason="" if approved else "denied by operator",
        )

    @staticmethod
    def _read_input() -> str:
        return input()
