"""Anomaly detection over recent executions and audit events.

Keeps a bounded history of execution time and peak memory, and flags
resource spikes, bursts of critical security or error events, repeated
failures, and implausibly fast or slow runs.
"""

from __future__ import annotations

import threading
from collections import deque
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from mcpx.results.audit import AuditEvent, AuditKind, AuditSeverity
from mcpx.security.models import RiskLevel

MAX_HISTORY = 1000
MIN_HISTORY_FOR_SPIKES = 10
SPIKE_FACTOR = 3
FAST_EXECUTION_MS = 10
SLOW_EXECUTION_MS = 60_000
MAX_ERROR_EVENTS = 5
MAX_FAILED_EXECUTIONS = 3

_ORDER = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]


class AnomalyKind(str, Enum):
    RESOURCE_SPIKE = "resource_spike"
    SUSPICIOUS_PATTERN = "suspicious_pattern"
    REPEATED_FAILURE = "repeated_failure"
    UNUSUAL_TIMING = "unusual_timing"


class Anomaly(BaseModel):
    kind: AnomalyKind
    description: str
    severity: RiskLevel
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class AnomalyDetection(BaseModel):
    detected: bool = False
    anomalies: list[Anomaly] = Field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.LOW


class _Sample(BaseModel):
    execution_time_ms: int
    memory_mb: float


class AnomalyDetector:
    """Compares each execution against the ones before it.

    :meth:`analyze` records the execution after checking it, so a run is
    never compared against itself.
    """

    def __init__(self, max_history: int = MAX_HISTORY) -> None:
        self._history: deque[_Sample] = deque(maxlen=max_history)
        self._lock = threading.Lock()

    def analyze(self, execution_time_ms: int, memory_mb: float, events: list[AuditEvent]) -> AnomalyDetection:
        with self._lock:
            history = list(self._history)
            self._history.append(_Sample(execution_time_ms=execution_time_ms, memory_mb=memory_mb))

        anomalies = [
            *_resource_spikes(execution_time_ms, memory_mb, history),
            *_suspicious_patterns(events),
            *_repeated_failures(events),
            *_unusual_timing(execution_time_ms),
        ]
        risk = max((a.severity for a in anomalies), key=_ORDER.index, default=RiskLevel.LOW)
        return AnomalyDetection(detected=bool(anomalies), anomalies=anomalies, risk_level=risk)

    def clear(self) -> None:
        with self._lock:
            self._history.clear()

    def stats(self) -> dict[str, Any]:
        with self._lock:
            history = list(self._history)
        return {
            "history_size": len(history),
            "avg_execution_ms": _mean([s.execution_time_ms for s in history]),
            "avg_memory_mb": _mean([s.memory_mb for s in history]),
        }


def _resource_spikes(execution_time_ms: int, memory_mb: float, history: list[_Sample]) -> list[Anomaly]:
    if len(history) < MIN_HISTORY_FOR_SPIKES:
        return []
    avg_time = _mean([s.execution_time_ms for s in history])
    avg_memory = _mean([s.memory_mb for s in history])
    found = []
    if execution_time_ms > avg_time * SPIKE_FACTOR:
        found.append(
            Anomaly(
                kind=AnomalyKind.RESOURCE_SPIKE,
                description=(
                    f"Execution time ({execution_time_ms}ms) is {SPIKE_FACTOR}x higher "
                    f"than average ({avg_time:.0f}ms)"
                ),
                severity=RiskLevel.HIGH,
            )
        )
    if memory_mb > avg_memory * SPIKE_FACTOR:
        found.append(
            Anomaly(
                kind=AnomalyKind.RESOURCE_SPIKE,
                description=(
                    f"Memory usage ({memory_mb:.2f}MB) is {SPIKE_FACTOR}x higher than average ({avg_memory:.0f}MB)"
                ),
                severity=RiskLevel.HIGH,
            )
        )
    return found


def _suspicious_patterns(events: list[AuditEvent]) -> list[Anomaly]:
    found = []
    critical = sum(1 for e in events if e.kind is AuditKind.SECURITY and e.severity is AuditSeverity.CRITICAL)
    if critical:
        found.append(
            Anomaly(
                kind=AnomalyKind.SUSPICIOUS_PATTERN,
                description=f"{critical} critical security events detected",
                severity=RiskLevel.CRITICAL,
            )
        )
    errors = sum(1 for e in events if e.kind is AuditKind.ERROR)
    if errors > MAX_ERROR_EVENTS:
        found.append(
            Anomaly(
                kind=AnomalyKind.SUSPICIOUS_PATTERN,
                description=f"High error rate: {errors} errors",
                severity=RiskLevel.MEDIUM,
            )
        )
    return found


def _repeated_failures(events: list[AuditEvent]) -> list[Anomaly]:
    failures = sum(1 for e in events if e.kind is AuditKind.EXECUTION and e.metadata.get("success") is False)
    if failures <= MAX_FAILED_EXECUTIONS:
        return []
    return [
        Anomaly(
            kind=AnomalyKind.REPEATED_FAILURE,
            description=f"{failures} recent execution failures",
            severity=RiskLevel.HIGH if failures > 5 else RiskLevel.MEDIUM,
        )
    ]


def _unusual_timing(execution_time_ms: int) -> list[Anomaly]:
    if execution_time_ms < FAST_EXECUTION_MS:
        return [
            Anomaly(
                kind=AnomalyKind.UNUSUAL_TIMING,
                description=f"Suspiciously fast execution: {execution_time_ms}ms",
                severity=RiskLevel.LOW,
            )
        ]
    if execution_time_ms > SLOW_EXECUTION_MS:
        return [
            Anomaly(
                kind=AnomalyKind.UNUSUAL_TIMING,
                description=f"Suspiciously slow execution: {execution_time_ms}ms",
                severity=RiskLevel.HIGH,
            )
        ]
    return []


def _mean(values: list[float] | list[int]) -> float:
    return sum(values) / len(values) if values else 0.0
