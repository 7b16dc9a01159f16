"""RiskAssessor — graded, factor-based risk scoring for generated code."""

from __future__ import annotations

import math
import re

from mcpx.security.models import (
    APPROVAL_THRESHOLD,
    RiskAssessment,
    RiskFactor,
    RiskLevel,
    SecurityValidation,
    Severity,
)

FACTOR_WEIGHTS: dict[str, float] = {
    "Security Issues": 0.4,
    "System Access": 0.25,
    "File System Access": 0.15,
    "Network Access": 0.1,
    "Code Complexity": 0.1,
}

_DECISION_POINTS = tuple(
    re.compile(p)
    for p in (
        r"\bif\b",
        r"\belse\b",
        r"\belif\b",
        r"\bfor\b",
        r"\bwhile\b",
        r"\bcase\b",
        r"\bcatch\b",
        r"\bexcept\b",
        r"\?\s*[^?:\s][^:]*:",
        r"&&",
        r"\|\|",
        r"\band\b",
        r"\bor\b",
    )
)

_NETWORK = tuple(
    re.compile(p)
    for p in (r"fetch\(", r"XMLHttpRequest", r"WebSocket", r"axios\.", r"http\.", r"https\.", r"\burllib\b", r"\bsocket\.")
)
_FILESYSTEM = tuple(
    re.compile(p)
    for p in (r"fs\.", r"readFile", r"writeFile", r"unlink", r"mkdir", r"rmdir", r"\bopen\(", r"\bshutil\.")
)
_SYSTEM = tuple(
    re.compile(p)
    for p in (r"child_process", r"exec\(", r"spawn\(", r"process\.", r"\bos\.", r"\bsubprocess\b")
)

_RECOMMENDATIONS: dict[RiskLevel, str] = {
    RiskLevel.CRITICAL: "DO NOT EXECUTE - Critical risk detected. Manual review required.",
    RiskLevel.HIGH: "HIGH RISK - Requires approval before execution.",
    RiskLevel.MEDIUM: "MEDIUM RISK - Review recommended before execution.",
    RiskLevel.LOW: "LOW RISK - Safe to execute with standard safeguards.",
}


def _count(patterns: tuple[re.Pattern[str], ...], code: str) -> int:
    return sum(len(p.findall(code)) for p in patterns)


def cyclomatic_complexity(code: str) -> int:
    """1 + number of decision points (a rough, language-agnostic count)."""
    return 1 + _count(_DECISION_POINTS, code)


def risk_level(score: int) -> RiskLevel:
    if score >= 80:
        return RiskLevel.CRITICAL
    if score >= 60:
        return RiskLevel.HIGH
    if score >= 40:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


class RiskAssessor:
    """Combines heuristic access factors with the validator's score."""

    def assess(self, code: str, validation: SecurityValidation) -> RiskAssessment:
        factors = [
            self._complexity(code),
            self._network(code),
            self._filesystem(code),
            self._system(code),
            self._security(validation),
        ]
        score = self._overall(factors)
        level = risk_level(score)
        return RiskAssessment(
            risk_level=level,
            risk_score=score,
            factors=factors,
            recommendation=_RECOMMENDATIONS[level],
            requires_approval=score >= APPROVAL_THRESHOLD,
        )

    @staticmethod
    def _complexity(code: str) -> RiskFactor:
        lines = len(code.split("\n"))
        complexity = cyclomatic_complexity(code)
        if lines > 500 or complexity > 20:
            score, description = 30, "High complexity - difficult to review"
        elif lines > 200 or complexity > 10:
            score, description = 15, "Medium complexity"
        else:
            score, description = 5, "Low complexity"
        return RiskFactor(
            name="Code Complexity",
            score=score,
            description=description,
            details=f"{lines} lines, cyclomatic complexity: {complexity}",
        )

    @staticmethod
    def _network(code: str) -> RiskFactor:
        matches = _count(_NETWORK, code)
        if matches > 5:
            score, description = 40, "Extensive network access"
        elif matches > 0:
            score, description = 20, "Limited network access"
        else:
            score, description = 0, "No network access detected"
        return RiskFactor(
            name="Network Access",
            score=score,
            description=description,
            details=f"{matches} network operations detected",
        )

    @staticmethod
    def _filesystem(code: str) -> RiskFactor:
        matches = _count(_FILESYSTEM, code)
        if matches > 10:
            score, description = 50, "Extensive file system access"
        elif matches > 5:
            score, description = 30, "Moderate file system access"
        elif matches > 0:
            score, description = 15, "Limited file system access"
        else:
            score, description = 0, "No file system access"
        return RiskFactor(
            name="File System Access",
            score=score,
            description=description,
            details=f"{matches} file system operations detected",
        )

    @staticmethod
    def _system(code: str) -> RiskFactor:
        matches = _count(_SYSTEM, code)
        if matches > 0:
            score, description = 60, "System/process access detected - HIGH RISK"
        else:
            score, description = 0, "No system access"
        return RiskFactor(
            name="System Access",
            score=score,
            description=description,
            details=f"{matches} system operations detected",
        )

    @staticmethod
    def _security(validation: SecurityValidation) -> RiskFactor:
        critical = sum(1 for i in validation.issues if i.severity is Severity.CRITICAL)
        high = sum(1 for i in validation.issues if i.severity is Severity.HIGH)
        return RiskFactor(
            name="Security Issues",
            score=validation.risk_score,
            description=f"{len(validation.issues)} security issues found",
            details=f"{critical} critical, {high} high severity",
        )

    @staticmethod
    def _overall(factors: list[RiskFactor]) -> int:
        total = 0.0
        weight_sum = 0.0
        for factor in factors:
            weight = FACTOR_WEIGHTS.get(factor.name, 0.1)
            total += factor.score * weight
            weight_sum += weight
        if weight_sum == 0:
            return 0
        # half-up rounding
        return max(0, min(100, math.floor(total / weight_sum + 0.5)))
