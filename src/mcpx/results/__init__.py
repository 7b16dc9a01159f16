"""Result summarization, audit trail and anomaly detection."""

from mcpx.results.anomaly import Anomaly, AnomalyDetection, AnomalyDetector, AnomalyKind
from mcpx.results.audit import AuditEvent, AuditKind, AuditLog, AuditSeverity
from mcpx.results.summarizer import estimate_tokens, extract_result, summarize

__all__ = [
    "Anomaly",
    "AnomalyDetection",
    "AnomalyDetector",
    "AnomalyKind",
    "AuditEvent",
    "AuditKind",
    "AuditLog",
    "AuditSeverity",
    "estimate_tokens",
    "extract_result",
    "summarize",
]
