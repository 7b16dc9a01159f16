"""Audit log for discovery, security and execution events.

Entries are kept in a bounded in-memory ring, mirrored to the
``mcpx.audit`` logger and, when a path is configured, appended to a JSONL
file. Code and tool arguments are never recorded, only their sizes.
"""

from __future__ import annotations

import contextlib
import json
import logging
import threading
from collections import Counter, deque
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, TextIO

from pydantic import BaseModel, Field

_log = logging.getLogger("mcpx.audit")

MAX_ENTRIES_IN_MEMORY = 1000


class AuditKind(str, Enum):
    DISCOVERY = "discovery"
    EXECUTION = "execution"
    SECURITY = "security"
    ERROR = "error"


class AuditSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


_LEVELS: dict[AuditSeverity, int] = {
    AuditSeverity.INFO: logging.INFO,
    AuditSeverity.WARNING: logging.WARNING,
    AuditSeverity.ERROR: logging.ERROR,
    AuditSeverity.CRITICAL: logging.CRITICAL,
}


class AuditEvent(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    kind: AuditKind
    severity: AuditSeverity = AuditSeverity.INFO
    message: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class AuditLog:
    """Bounded audit trail with an optional append-only JSONL file."""

    def __init__(self, path: str | Path | None = None, *, max_entries: int = MAX_ENTRIES_IN_MEMORY) -> None:
        self._path = Path(path) if path else None
        self._entries: deque[AuditEvent] = deque(maxlen=max_entries)
        self._lock = threading.Lock()
        self._file_failed = False
        self._handle: TextIO | None = None

    @property
    def path(self) -> Path | None:
        return self._path

    def record(
        self,
        kind: AuditKind | str,
        severity: AuditSeverity | str,
        message: str,
        **metadata: Any,
    ) -> AuditEvent:
        event = AuditEvent(
            kind=AuditKind(kind),
            severity=AuditSeverity(severity),
            message=message,
            metadata=metadata,
        )
        with self._lock:
            self._entries.append(event)
        _log.log(_LEVELS[event.severity], "%s: %s", event.kind.value, message, extra={"audit": metadata})
        self._append(event)
        return event

    def discovery(self, query: str, tools_found: int, **metadata: Any) -> AuditEvent:
        return self.record(
            AuditKind.DISCOVERY,
            AuditSeverity.INFO,
            "Tool discovery completed",
            query=query,
            tools_found=tools_found,
            **metadata,
        )

    def execution(self, code: str, success: bool, execution_time_ms: int, **metadata: Any) -> AuditEvent:
        return self.record(
            AuditKind.EXECUTION,
            AuditSeverity.INFO if success else AuditSeverity.WARNING,
            "Code execution completed",
            code_length=len(code),
            success=success,
            execution_time_ms=execution_time_ms,
            **metadata,
        )

    def security(self, severity: AuditSeverity | str, message: str, **metadata: Any) -> AuditEvent:
        return self.record(AuditKind.SECURITY, severity, message, **metadata)

    def error(self, exc: BaseException, context: str = "", **metadata: Any) -> AuditEvent:
        return self.record(
            AuditKind.ERROR,
            AuditSeverity.ERROR,
            str(exc) or type(exc).__name__,
            error_type=type(exc).__name__,
            context=context,
            **metadata,
        )

    # -- queries --------------------------------------------------------

    def recent(self, limit: int = 100) -> list[AuditEvent]:
        with self._lock:
            entries = list(self._entries)
        return entries[-limit:] if limit > 0 else []

    def by_kind(self, kind: AuditKind | str, limit: int | None = None) -> list[AuditEvent]:
        wanted = AuditKind(kind)
        with self._lock:
            matched = [e for e in self._entries if e.kind is wanted]
        return matched[-limit:] if limit else matched

    def by_severity(self, severity: AuditSeverity | str, limit: int | None = None) -> list[AuditEvent]:
        wanted = AuditSeverity(severity)
        with self._lock:
            matched = [e for e in self._entries if e.severity is wanted]
        return matched[-limit:] if limit else matched

    def stats(self) -> dict[str, Any]:
        with self._lock:
            entries = list(self._entries)
        return {
            "total": len(entries),
            "by_kind": dict(Counter(e.kind.value for e in entries)),
            "by_severity": dict(Counter(e.severity.value for e in entries)),
            "oldest": entries[0].timestamp.isoformat() if entries else None,
            "newest": entries[-1].timestamp.isoformat() if entries else None,
        }

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def close(self) -> None:
        """Close the JSONL file; the next event reopens it."""
        with self._lock:
            handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()

    def _append(self, event: AuditEvent) -> None:
        if self._path is None:
            return
        line = json.dumps(event.model_dump(mode="json"), default=str)
        with self._lock:
            try:
                if self._handle is None:
                    self._path.parent.mkdir(parents=True, exist_ok=True)
                    # line buffered, kept open until close()
                    self._handle = self._path.open("a", encoding="utf-8", buffering=1)
                self._handle.write(line + "\n")
            except OSError as exc:
                # warn once; the in-memory ring still has the entry
                if not self._file_failed:
                    logging.getLogger(__name__).warning("Failed to write audit log %s: %s", self._path, exc)
                self._file_failed = True
                self._drop_handle()
                return
            self._file_failed = False

    def _drop_handle(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            with contextlib.suppress(OSError):
                handle.close()
