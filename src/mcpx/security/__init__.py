"""Security layer: validation, risk scoring, approvals and PII tokenization."""

from mcpx.security.approval import ApprovalGate
from mcpx.security.gatekeeper import AutoApproveGatekeeper, AutoRejectGatekeeper, CLIGatekeeper, Gatekeeper
from mcpx.security.models import (
    ApprovalDecision,
    ApprovalRequest,
    ApprovalStatus,
    IssueKind,
    RiskAssessment,
    RiskFactor,
    RiskLevel,
    SecurityIssue,
    SecurityValidation,
    Severity,
)
from mcpx.security.patterns import PatternSet, load_pattern_file
from mcpx.security.pii import PIIToken, PIITokenizer
from mcpx.security.risk import RiskAssessor
from mcpx.security.validator import CodeValidator

__all__ = [
    "ApprovalDecision",
    "ApprovalGate",
    "ApprovalRequest",
    "ApprovalStatus",
    "AutoApproveGatekeeper",
    "AutoRejectGatekeeper",
    "CLIGatekeeper",
    "CodeValidator",
    "Gatekeeper",
    "IssueKind",
    "PIIToken",
    "PIITokenizer",
    "PatternSet",
    "RiskAssessment",
    "RiskAssessor",
    "RiskFactor",
    "RiskLevel",
    "SecurityIssue",
    "SecurityValidation",
    "Severity",
    "load_pattern_file",
]
