"""Process-wide registry of live sandbox containers.

Docker calls run on worker threads, so every mutation goes through a lock.
"""

from __future__ import annotations

import threading

from pydantic import BaseModel


class ContainerRegistry:
    """Thread-safe set of container IDs created by this process."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids: set[str] = set()

    def add(self, container_id: str) -> None:
        with self._lock:
            self._ids.add(container_id)

    def discard(self, container_id: str) -> None:
        with self._lock:
            self._ids.discard(container_id)

    def snapshot(self) -> list[str]:
        with self._lock:
            return sorted(self._ids)

    def __contains__(self, container_id: object) -> bool:
        with self._lock:
            return container_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)


class ContainerMetrics(BaseModel):
    """Lifetime counters for container creation and cleanup."""

    containers_created: int = 0
    cleaned_success: int = 0
    cleaned_failed: int = 0
    cleanup_time_ms: int = 0
    zombies_found: int = 0

    def record_cleanup(self, *, ok: bool, elapsed_ms: int) -> None:
        if ok:
            self.cleaned_success += 1
        else:
            self.cleaned_failed += 1
        self.cleanup_time_ms += elapsed_ms

    def cleanup_success_rate(self) -> float:
        total = self.cleaned_success + self.cleaned_failed
        return 1.0 if total == 0 else self.cleaned_success / total


ACTIVE_CONTAINERS = ContainerRegistry()
CONTAINER_METRICS = ContainerMetrics()
