"""CodeValidator — deny-list enforcement over generated code.

Patterns load lazily on first use. Concurrent first calls share one
initialization task; if that task fails the validator falls back to the
built-in defaults, logs a single warning, and clears the task so a later
call may retry.
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path

from mcpx.security.models import (
    APPROVAL_THRESHOLD,
    SEVERITY_WEIGHTS,
    IssueKind,
    SecurityIssue,
    SecurityValidation,
    Severity,
)
from mcpx.security.patterns import PatternSet, load_pattern_file

logger = logging.getLogger(__name__)

PATTERN_LOAD_TIMEOUT = 5.0


class CodeValidator:
    """Scans code for dangerous (critical) and suspicious (medium) constructs."""

    def __init__(
        self,
        *,
        patterns_file: str | Path | None = None,
        patterns: PatternSet | None = None,
        load_timeout: float = PATTERN_LOAD_TIMEOUT,
    ) -> None:
        self._patterns_file = Path(patterns_file) if patterns_file else None
        self._patterns = patterns
        self._load_timeout = load_timeout
        self._init_task: asyncio.Task[PatternSet] | None = None
        self._warned = False

    async def validate(self, code: str) -> SecurityValidation:
        """Validate *code*. Never raises on the content of *code*."""
        patterns = await self.ensure_patterns()
        return self.validate_with(patterns, code)

    async def ensure_patterns(self) -> PatternSet:
        if self._patterns is not None:
            return self._patterns
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._load_patterns())
        task = self._init_task
        try:
            patterns = await asyncio.shield(task)
        except Exception as exc:
            if self._init_task is task:
                self._init_task = None
            self._warn_once(exc)
            return PatternSet.defaults()
        self._patterns = patterns
        return patterns

    @staticmethod
    def validate_with(patterns: PatternSet, code: str) -> SecurityValidation:
        issues: list[SecurityIssue] = []
        issues.extend(
            _scan(
                code,
                patterns.dangerous,
                Severity.CRITICAL,
                IssueKind.DANGEROUS_PATTERN,
                "Blocked pattern detected: {}",
                "Remove or replace with safe alternative",
            )
        )
        issues.extend(
            _scan(
                code,
                patterns.suspicious,
                Severity.MEDIUM,
                IssueKind.SUSPICIOUS_PATTERN,
                "Suspicious pattern detected: {}",
                "Review for security implications",
            )
        )
        score = risk_score(issues)
        return SecurityValidation(
            is_secure=score < APPROVAL_THRESHOLD,
            risk_score=score,
            issues=issues,
            requires_approval=score >= APPROVAL_THRESHOLD,
        )

    async def _load_patterns(self) -> PatternSet:
        if self._patterns_file is None:
            return PatternSet.defaults()
        return await asyncio.wait_for(
            asyncio.to_thread(load_pattern_file, self._patterns_file),
            timeout=self._load_timeout,
        )

    def _warn_once(self, exc: BaseException) -> None:
        if self._warned:
            return
        self._warned = True
        detail = "timed out" if isinstance(exc, TimeoutError) else str(exc)
        logger.warning("Pattern loading failed (%s), using built-in patterns: %s", self._patterns_file, detail)


def risk_score(issues: list[SecurityIssue]) -> int:
    """Severity-weighted sum, clamped to 100."""
    return min(100, sum(SEVERITY_WEIGHTS[i.severity] for i in issues))


def _scan(
    code: str,
    patterns: tuple[re.Pattern[str], ...],
    severity: Severity,
    kind: IssueKind,
    description: str,
    suggestion: str,
) -> list[SecurityIssue]:
    issues: list[SecurityIssue] = []
    for pattern in patterns:
        for match in pattern.finditer(code):
            issues.append(
                SecurityIssue(
                    severity=severity,
                    kind=kind,
                    description=description.format(pattern.pattern),
                    line=code.count("\n", 0, match.start()) + 1,
                    suggestion=suggestion,
                    match=match.group(0),
                )
            )
    return issues
