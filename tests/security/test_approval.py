"""Tests for ApprovalGate."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

from mcpx.security.approval import ApprovalGate
from mcpx.security.models import (
    ApprovalStatus,
    IssueKind,
    RiskAssessment,
    RiskFactor,
    RiskLevel,
    SecurityIssue,
    SecurityValidation,
    Severity,
)


def _assessment(score: int = 85) -> RiskAssessment:
    return RiskAssessment(
        risk_level=RiskLevel.CRITICAL,
        risk_score=score,
        factors=[
            RiskFactor(name="System Access", score=60, description="System/process access detected"),
            RiskFactor(name="Network Access", score=0, description="No network access detected"),
        ],
        recommendation="DO NOT EXECUTE",
        requires_approval=True,
    )


def _validation(n_issues: int = 1) -> SecurityValidation:
    issues = [
        SecurityIssue(
            severity=Severity.CRITICAL,
            kind=IssueKind.DANGEROUS_PATTERN,
            description="Blocked pattern detected: eval\\(",
            line=i + 1,
        )
        for i in range(n_issues)
    ]
    return SecurityValidation(is_secure=False, risk_score=100, issues=issues, requires_approval=True)


class TestLifecycle:
    def test_request_is_pending(self) -> None:
        gate = ApprovalGate()
        request = gate.request("eval(x)", _assessment(), _validation())

        assert request.status is ApprovalStatus.PENDING
        assert request.id.startswith("approval-")
        assert gate.get(request.id) is request
        assert gate.pending() == [request]

    def test_approve_once(self) -> None:
        gate = ApprovalGate()
        request = gate.request("eval(x)", _assessment(), _validation())

        assert gate.approve(request.id, "alice")
        assert not gate.approve(request.id, "bob")
        assert not gate.reject(request.id, "bob", "too late")
        assert request.status is ApprovalStatus.APPROVED
        assert request.decided_by == "alice"
        assert request.decided_at is not None
        assert gate.pending() == []

    def test_reject(self) -> None:
        gate = ApprovalGate()
        request = gate.request("eval(x)", _assessment(), _validation())

        assert gate.reject(request.id, "alice", "unsafe")
        assert request.status is ApprovalStatus.REJECTED
        assert request.reason == "unsafe"

    def test_unknown_id(self) -> None:
        gate = ApprovalGate()
        assert gate.get("nope") is None
        assert not gate.approve("nope", "alice")


class TestWait:
    async def test_wakes_on_decision(self) -> None:
        gate = ApprovalGate()
        request = gate.request("eval(x)", _assessment(), _validation())

        async def _decide() -> None:
            await asyncio.sleep(0.01)
            gate.approve(request.id, "alice")

        waiter = asyncio.create_task(gate.wait_for_decision(request.id, timeout=2.0))
        await _decide()
        result = await waiter

        assert result is not None
        assert result.status is ApprovalStatus.APPROVED

    async def test_timeout_returns_pending(self) -> None:
        gate = ApprovalGate()
        request = gate.request("eval(x)", _assessment(), _validation())

        result = await gate.wait_for_decision(request.id, timeout=0.01)

        assert result is request
        assert result.status is ApprovalStatus.PENDING

    async def test_unknown_returns_none(self) -> None:
        assert await ApprovalGate().wait_for_decision("nope", timeout=0.01) is None


class TestCleanup:
    def test_drops_old_decided_only(self) -> None:
        gate = ApprovalGate()
        old_decided = gate.request("a", _assessment(), _validation())
        old_pending = gate.request("b", _assessment(), _validation())
        fresh_decided = gate.request("c", _assessment(), _validation())
        gate.approve(old_decided.id, "alice")
        gate.reject(fresh_decided.id, "alice", "no")
        two_hours_ago = datetime.now(UTC) - timedelta(hours=2)
        old_decided.created_at = two_hours_ago
        old_pending.created_at = two_hours_ago

        removed = gate.cleanup(timedelta(hours=1))

        assert removed == 1
        assert gate.get(old_decided.id) is None
        assert gate.get(old_pending.id) is old_pending
        assert gate.get(fresh_decided.id) is fresh_decided


class TestFormat:
    def test_banner(self) -> None:
        gate = ApprovalGate()
        request = gate.request("eval(x)", _assessment(), _validation(n_issues=7))

        text = ApprovalGate.format_request(request)

        assert "CODE EXECUTION APPROVAL REQUIRED" in text
        assert f"Request ID: {request.id}" in text
        assert "Risk Level: CRITICAL" in text
        assert "Risk Score: 85/100" in text
        assert "System Access" in text
        assert "Network Access" not in text
        assert "[CRITICAL] line 1:" in text
        assert "... and 2 more" in text
        assert text.splitlines()[-2] == "Recommendation: DO NOT EXECUTE"
