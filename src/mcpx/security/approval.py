"""ApprovalGate — in-memory queue of high-risk programs awaiting a decision."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import UTC, datetime, timedelta

from mcpx.security.models import (
    ApprovalRequest,
    ApprovalStatus,
    RiskAssessment,
    SecurityValidation,
)

logger = logging.getLogger(__name__)

_MAX_LISTED_ISSUES = 5


class ApprovalGate:
    """Holds approval requests and enforces the pending → decided transition."""

    def __init__(self) -> None:
        self._requests: dict[str, ApprovalRequest] = {}
        self._decided: dict[str, asyncio.Event] = {}

    @staticmethod
    def requires_approval(assessment: RiskAssessment, validation: SecurityValidation) -> bool:
        return assessment.requires_approval or validation.requires_approval

    def request(self, code: str, assessment: RiskAssessment, validation: SecurityValidation) -> ApprovalRequest:
        request = ApprovalRequest(
            id=f"approval-{uuid.uuid4().hex[:12]}",
            code=code,
            assessment=assessment,
            validation=validation,
        )
        self._requests[request.id] = request
        logger.info(
            "Approval requested: %s (risk %s, score %d)",
            request.id,
            assessment.risk_level.value,
            assessment.risk_score,
        )
        return request

    def get(self, request_id: str) -> ApprovalRequest | None:
        return self._requests.get(request_id)

    def pending(self) -> list[ApprovalRequest]:
        return [r for r in self._requests.values() if r.status is ApprovalStatus.PENDING]

    def approve(self, request_id: str, actor: str, reason: str | None = None) -> bool:
        return self._decide(request_id, ApprovalStatus.APPROVED, actor, reason)

    def reject(self, request_id: str, actor: str, reason: str) -> bool:
        return self._decide(request_id, ApprovalStatus.REJECTED, actor, reason)

    async def wait_for_decision(self, request_id: str, timeout: float) -> ApprovalRequest | None:
        """Wait up to *timeout* seconds for a decision.

        Returns the request (decided or still pending), or ``None`` for an
        unknown id.
        """
        request = self._requests.get(request_id)
        if request is None:
            return None
        if request.is_decided or timeout <= 0:
            return request
        event = self._decided.setdefault(request_id, asyncio.Event())
        try:
            await asyncio.wait_for(event.wait(), timeout=timeout)
        except TimeoutError:
            logger.info("No decision for %s within %.1fs", request_id, timeout)
        return self._requests.get(request_id)

    def cleanup(self, older_than: timedelta) -> int:
        """Drop decided requests created more than *older_than* ago.

        Pending requests are always kept. Returns how many were removed.
        """
        cutoff = datetime.now(UTC) - older_than
        stale = [
            rid
            for rid, req in self._requests.items()
            if req.is_decided and req.created_at < cutoff
        ]
        for rid in stale:
            del self._requests[rid]
            self._decided.pop(rid, None)
        return len(stale)

    @staticmethod
    def format_request(request: ApprovalRequest) -> str:
        """Human-readable banner for an operator prompt."""
        assessment = request.assessment
        sep = "=" * 60
        lines = [
            sep,
            "CODE EXECUTION APPROVAL REQUIRED",
            sep,
            f"Request ID: {request.id}",
            f"Risk Level: {assessment.risk_level.value.upper()}",
            f"Risk Score: {assessment.risk_score}/100",
            "",
            "Risk Factors:",
        ]
        for factor in assessment.factors:
            if factor.score > 0:
                lines.append(f"  - {factor.name}: {factor.description} ({factor.score})")

        issues = request.validation.issues
        if issues:
            lines.append("")
            lines.append("Security Issues:")
            for issue in issues[:_MAX_LISTED_ISSUES]:
                lines.append(f"  - [{issue.severity.value.upper()}] line {issue.line}: {issue.description}")
            if len(issues) > _MAX_LISTED_ISSUES:
                lines.append(f"  ... and {len(issues) - _MAX_LISTED_ISSUES} more")

        lines.extend(["", f"Recommendation: {assessment.recommendation}", sep])
        return "\n".join(lines)

    def _decide(self, request_id: str, status: ApprovalStatus, actor: str, reason: str | None) -> bool:
        request = self._requests.get(request_id)
        if request is None or request.status is not ApprovalStatus.PENDING:
            return False
        request.status = status
        request.decided_by = actor
        request.decided_at = datetime.now(UTC)
        request.reason = reason
        logger.info("Approval %s %s by %s", request_id, status.value, actor)
        event = self._decided.get(request_id)
        if event is not None:
            event.set()
        return True
