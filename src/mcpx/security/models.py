"""Data models for the security layer."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_WEIGHTS: dict[Severity, int] = {
    Severity.LOW: 10,
    Severity.MEDIUM: 25,
    Severity.HIGH: 50,
    Severity.CRITICAL: 100,
}

APPROVAL_THRESHOLD = 70


class IssueKind(str, Enum):
    DANGEROUS_PATTERN = "dangerous_pattern"
    SUSPICIOUS_PATTERN = "suspicious_pattern"
    CONFIG = "config"


class SecurityIssue(BaseModel):
    """One flagged construct in a piece of code."""

    severity: Severity
    kind: IssueKind
    description: str
    line: int = Field(default=0, description="1-based line of the match, 0 when unknown.")
    suggestion: str = ""
    match: str = Field(default="", description="The matched source text.")


class SecurityValidation(BaseModel):
    """Outcome of running the validator over a program."""

    is_secure: bool
    risk_score: int = Field(ge=0, le=100)
    issues: list[SecurityIssue] = Field(default_factory=list)
    requires_approval: bool = False


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskFactor(BaseModel):
    name: str
    score: int = Field(ge=0, le=100)
    description: str = ""
    details: str = ""


class RiskAssessment(BaseModel):
    """Graded risk of a program, with the factors behind it."""

    risk_level: RiskLevel
    risk_score: int = Field(ge=0, le=100)
    factors: list[RiskFactor] = Field(default_factory=list)
    recommendation: str = ""
    requires_approval: bool = False


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ApprovalRequest(BaseModel):
    """A high-risk program waiting for an operator decision.

    ``pending`` moves to ``approved`` or ``rejected`` exactly once.
    """

    id: str
    code: str
    assessment: RiskAssessment
    validation: SecurityValidation
    status: ApprovalStatus = ApprovalStatus.PENDING
    created_at: datetime = Field(default_factory=_utcnow)
    decided_by: str | None = None
    decided_at: datetime | None = None
    reason: str | None = None

    @property
    def is_decided(self) -> bool:
        return self.status is not ApprovalStatus.PENDING


class ApprovalDecision(BaseModel):
    """A gatekeeper's answer to an :class:`ApprovalRequest`."""

    approved: bool
    actor: str = "operator"
    reason: str = ""
