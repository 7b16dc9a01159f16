"""CleanupSupervisor — periodic sweep of orphaned sandbox containers.

Candidates are found by label (``mcp.sandbox=true``) rather than by
trusting the in-process registry, so containers left behind by a crashed
process are collected too. Sweep counts and durations are logged as
``metric name=value`` lines.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from datetime import UTC, datetime, timedelta
from typing import Any

import docker
from docker.errors import DockerException
from pydantic import BaseModel

from mcpx.errors import CleanupError
from mcpx.sandbox.docker_sandbox import LABEL_CREATED, LABEL_SANDBOX, remove_container
from mcpx.sandbox.registry import ACTIVE_CONTAINERS, CONTAINER_METRICS, ContainerMetrics, ContainerRegistry

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60.0
DEFAULT_MAX_AGE_HOURS = 1.0
DEFAULT_MAX_CLEANUP_PER_RUN = 100


class SweepReport(BaseModel):
    found: int = 0
    removed: int = 0
    failed: int = 0
    skipped: int = 0
    duration_ms: int = 0


class SupervisorStatus(BaseModel):
    running: bool
    sweep_in_progress: bool
    interval_seconds: float
    max_age_hours: float
    max_cleanup_per_run: int
    last_report: SweepReport | None = None


class CleanupSupervisor:
    """Background loop that removes sandbox containers older than *max_age_hours*."""

    def __init__(
        self,
        *,
        client: Any = None,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        max_age_hours: float = DEFAULT_MAX_AGE_HOURS,
        max_cleanup_per_run: int = DEFAULT_MAX_CLEANUP_PER_RUN,
        registry: ContainerRegistry | None = None,
        metrics: ContainerMetrics | None = None,
    ) -> None:
        self._client = client
        self._interval = interval_seconds
        self._max_age = timedelta(hours=max_age_hours)
        self._max_age_hours = max_age_hours
        self._max_per_run = max_cleanup_per_run
        self._registry = registry if registry is not None else ACTIVE_CONTAINERS
        self._metrics = metrics if metrics is not None else CONTAINER_METRICS
        self._task: asyncio.Task[None] | None = None
        self._in_flight = False
        self._last_report: SweepReport | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the loop; the first sweep runs immediately."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name="mcpx-cleanup-supervisor")
        logger.info(
            "Cleanup supervisor started (interval %.0fs, max age %.2fh, batch %d)",
            self._interval,
            self._max_age_hours,
            self._max_per_run,
        )

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Cleanup supervisor stopped")

    def status(self) -> SupervisorStatus:
        return SupervisorStatus(
            running=self.running,
            sweep_in_progress=self._in_flight,
            interval_seconds=self._interval,
            max_age_hours=self._max_age_hours,
            max_cleanup_per_run=self._max_per_run,
            last_report=self._last_report,
        )

    async def run_once(self) -> SweepReport:
        """Sweep now. Returns an empty report if a sweep is already running."""
        if self._in_flight:
            logger.debug("Sweep already in progress, skipping")
            return SweepReport()
        self._in_flight = True
        try:
            report = await self._sweep()
        finally:
            self._in_flight = False
        self._last_report = report
        return report

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except DockerException as exc:
                logger.error("Cleanup sweep failed: %s", exc)
            except Exception:
                logger.exception("Cleanup sweep failed")
            await asyncio.sleep(self._interval)

    async def _sweep(self) -> SweepReport:
        started = time.monotonic()
        client = await self._get_client()
        tracked_before = self._registry.snapshot()
        containers = await asyncio.to_thread(
            client.containers.list, all=True, filters={"label": f"{LABEL_SANDBOX}=true"}
        )

        # registry entries whose container is already gone
        live_ids = {c.id for c in containers}
        for tracked in tracked_before:
            if tracked not in live_ids:
                self._registry.discard(tracked)

        now = datetime.now(UTC)
        zombies = [c for c in containers if now - _created_at(c, now) > self._max_age]
        batch = zombies[: self._max_per_run]
        report = SweepReport(found=len(zombies), skipped=len(zombies) - len(batch))
        self._metrics.zombies_found += len(zombies)

        for container in batch:
            t0 = time.monotonic()
            try:
                await asyncio.to_thread(remove_container, container)
            except CleanupError as exc:
                report.failed += 1
                self._metrics.record_cleanup(ok=False, elapsed_ms=_elapsed_ms(t0))
                logger.warning("Zombie sweep: %s", exc)
                continue
            report.removed += 1
            self._registry.discard(container.id)
            self._metrics.record_cleanup(ok=True, elapsed_ms=_elapsed_ms(t0))

        report.duration_ms = _elapsed_ms(started)
        logger.info("metric containers.zombies_found=%d", report.found)
        logger.info("metric containers.cleaned=%d", report.removed)
        logger.info("metric cleanup.duration_ms=%d", report.duration_ms)
        if report.skipped:
            logger.warning("%d zombie container(s) left for the next sweep", report.skipped)
        return report

    async def _get_client(self) -> Any:
        if self._client is None:
            self._client = await asyncio.to_thread(docker.from_env)
        return self._client


def _created_at(container: Any, default: datetime) -> datetime:
    """Creation time from our label, else from Docker's own ``Created`` field."""
    labels = getattr(container, "labels", None) or {}
    raw = labels.get(LABEL_CREATED) if isinstance(labels, dict) else None
    if raw is None:
        attrs = getattr(container, "attrs", None) or {}
        raw = attrs.get("Created") if isinstance(attrs, dict) else None
    parsed = _parse_timestamp(raw)
    return parsed if parsed is not None else default


def _parse_timestamp(raw: Any) -> datetime | None:
    if isinstance(raw, (int, float)):
        return datetime.fromtimestamp(raw, UTC)
    if not isinstance(raw, str) or not raw:
        return None
    text = raw.strip().replace("Z", "+00:00")
    # Docker reports nanoseconds; fromisoformat takes at most microseconds
    if "." in text:
        head, _, tail = text.partition(".")
        digits = len(tail) - len(tail.lstrip("0123456789"))
        zone = tail[digits:]
        tail = tail[:digits]
        text = f"{head}.{tail[:6]}{zone}"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
