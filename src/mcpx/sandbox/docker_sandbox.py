"""DockerSandbox — executes programs in ephemeral Docker containers.

Uses the Docker SDK (``docker``); every blocking SDK call runs on a worker
thread via :func:`asyncio.to_thread`.

Each ``execute()`` call:
1. pulls the language image if it is not present;
2. creates a labelled container with memory, CPU and disk limits;
3. copies the program into ``/workspace`` as a tar archive and starts it;
4. execs the interpreter with stdout and stderr attached, under a
   watchdog that kills the container when the timeout fires;
5. stops and removes the container in a ``finally`` block.

Containers are tracked in the process-wide
:data:`~mcpx.sandbox.registry.ACTIVE_CONTAINERS` registry until removed.
"""

from __future__ import annotations

import asyncio
import io
import logging
import tarfile
import time
from datetime import UTC, datetime
from typing import Any

import docker
from docker.errors import DockerException, ImageNotFound, NotFound

from mcpx.errors import (
    CleanupError,
    ConfigError,
    ErrorKind,
    SandboxError,
    SandboxTimeoutError,
    SynthesisError,
)
from mcpx.sandbox.environment import DEFAULT_PATH, build_environment
from mcpx.sandbox.limits import format_size, parse_size_or_default
from mcpx.sandbox.models import Backend, ExecutionMetrics, ExecutionResult, NetworkMode, SandboxConfig
from mcpx.sandbox.registry import ACTIVE_CONTAINERS, CONTAINER_METRICS, ContainerMetrics, ContainerRegistry
from mcpx.synthesis.synthesizer import ENTRY_FILENAMES
from mcpx.synthesis.typemap import normalize_language

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Execution timeout"
WORKDIR = "/workspace"

LABEL_SANDBOX = "mcp.sandbox"
LABEL_LANGUAGE = "mcp.sandbox.language"
LABEL_CREATED = "mcp.sandbox.created"

DEFAULT_IMAGES: dict[str, str] = {
    "py": "python:3.11-alpine",
    "ts": "node:18-alpine",
}

_INTERPRETERS: dict[str, str] = {"py": "python3", "ts": "node"}


class DockerSandbox:
    """Ephemeral Docker container sandbox.

    Satisfies the :class:`~mcpx.sandbox.executor.SandboxExecutor` protocol.
    """

    def __init__(
        self,
        config: SandboxConfig | None = None,
        *,
        client: Any = None,
        images: dict[str, str] | None = None,
        disk_quota: bool = True,
        registry: ContainerRegistry | None = None,
        metrics: ContainerMetrics | None = None,
    ) -> None:
        self._config = config or SandboxConfig(backend=Backend.CONTAINER)
        self._client = client
        self._images = {**DEFAULT_IMAGES, **(images or {})}
        self._disk_quota = disk_quota
        self._registry = registry if registry is not None else ACTIVE_CONTAINERS
        self._metrics = metrics if metrics is not None else CONTAINER_METRICS
        self._owned = ContainerRegistry()

    @property
    def metrics(self) -> ContainerMetrics:
        return self._metrics

    async def execute(self, code: str, language: str) -> ExecutionResult:
        """Run *code* inside a fresh container."""
        started = time.monotonic()
        try:
            lang = normalize_language(language)
            env = build_environment(WORKDIR, self._config.allowed_env_vars, path=DEFAULT_PATH)
        except (SynthesisError, ConfigError) as exc:
            return ExecutionResult.failure(str(exc), kind=exc.kind, backend=Backend.CONTAINER)

        container: Any = None
        try:
            client = await self._get_client()
            image = self._images[lang]
            await asyncio.to_thread(self._ensure_image, client, image)

            container = await asyncio.to_thread(self._create_container, client, image, lang)
            self._registry.add(container.id)
            self._owned.add(container.id)
            self._metrics.containers_created += 1
            logger.debug("Created sandbox container %s", container.id[:12])

            archive = _tar_program(ENTRY_FILENAMES[lang], code)
            await asyncio.to_thread(container.put_archive, "/", archive)
            await asyncio.to_thread(container.start)

            command = [_INTERPRETERS[lang], f"{WORKDIR}/{ENTRY_FILENAMES[lang]}"]
            exit_code, stdout, stderr = await self._exec_with_watchdog(container, command, env)
            memory = await asyncio.to_thread(_memory_usage, container)
        except SandboxTimeoutError:
            return ExecutionResult.failure(
                TIMEOUT_MESSAGE,
                kind=ErrorKind.TIMEOUT,
                backend=Backend.CONTAINER,
                execution_time_ms=_elapsed_ms(started),
            )
        except (DockerException, SandboxError) as exc:
            logger.error("Container execution failed: %s", exc)
            return ExecutionResult.failure(
                f"Container execution failed: {exc}",
                kind=ErrorKind.SANDBOX,
                backend=Backend.CONTAINER,
                execution_time_ms=_elapsed_ms(started),
            )
        finally:
            if container is not None:
                await self._release(container)

        elapsed = _elapsed_ms(started)
        if exit_code != 0:
            return ExecutionResult.failure(
                stderr.strip() or f"Process exited with code {exit_code}",
                kind=ErrorKind.SANDBOX,
                backend=Backend.CONTAINER,
                execution_time_ms=elapsed,
                output=stdout,
            )
        return ExecutionResult(
            success=True,
            output=stdout,
            backend=Backend.CONTAINER,
            metrics=ExecutionMetrics(execution_time_ms=elapsed, memory_used=memory),
        )

    async def cleanup(self) -> None:
        """Force-remove containers from this executor that outlived their run."""
        leftovers = self._owned.snapshot()
        if not leftovers:
            return
        client = await self._get_client()
        for container_id in leftovers:
            try:
                await asyncio.to_thread(_force_remove, client, container_id)
            except CleanupError as exc:
                logger.error("%s", exc)
                continue
            self._owned.discard(container_id)
            self._registry.discard(container_id)

    @staticmethod
    async def emergency_cleanup(
        *,
        client: Any = None,
        registry: ContainerRegistry | None = None,
        metrics: ContainerMetrics | None = None,
    ) -> int:
        """Remove all tracked containers. Returns how many were removed.

        Intended for shutdown: failures are logged and the sweep continues.
        """
        registry = registry if registry is not None else ACTIVE_CONTAINERS
        metrics = metrics if metrics is not None else CONTAINER_METRICS
        tracked = registry.snapshot()
        if not tracked:
            return 0
        logger.warning("Emergency cleanup of %d sandbox container(s)", len(tracked))

        if client is None:
            try:
                client = await asyncio.to_thread(docker.from_env)
            except DockerException as exc:
                logger.error("Emergency cleanup could not reach Docker: %s", exc)
                return 0

        removed = 0
        for container_id in tracked:
            t0 = time.monotonic()
            try:
                await asyncio.to_thread(_force_remove, client, container_id)
            except CleanupError as exc:
                metrics.record_cleanup(ok=False, elapsed_ms=_elapsed_ms(t0))
                logger.error("Emergency cleanup: %s", exc)
                continue
            registry.discard(container_id)
            metrics.record_cleanup(ok=True, elapsed_ms=_elapsed_ms(t0))
            removed += 1
        return removed

    # ------------------------------------------------------------------

    async def _get_client(self) -> Any:
        if self._client is None:
            self._client = await asyncio.to_thread(docker.from_env)
        return self._client

    @staticmethod
    def _ensure_image(client: Any, image: str) -> None:
        try:
            client.images.get(image)
        except ImageNotFound:
            logger.info("Pulling sandbox image %s", image)
            client.images.pull(image)

    def _create_container(self, client: Any, image: str, language: str) -> Any:
        limits = self._config.resource_limits
        options: dict[str, Any] = {
            "command": ["tail", "-f", "/dev/null"],
            "detach": True,
            "labels": {
                LABEL_SANDBOX: "true",
                LABEL_LANGUAGE: language,
                LABEL_CREATED: datetime.now(UTC).isoformat(),
            },
            "working_dir": WORKDIR,
            "mem_limit": parse_size_or_default(limits.memory),
            "nano_cpus": int(limits.cpu_cores * 1e9),
        }
        if self._disk_quota:
            options["storage_opt"] = {"size": limits.disk}
        if _network_disabled(self._config):
            options["network_disabled"] = True
        return client.containers.create(image, **options)

    async def _exec_with_watchdog(
        self,
        container: Any,
        command: list[str],
        env: dict[str, str],
    ) -> tuple[int, str, str]:
        """Run *command* in *container*; kill the container if the timeout fires.

        Killing the container ends the attached stream, which unblocks the
        worker thread. :func:`asyncio.wait_for` settles the call exactly once.
        """
        timeout_ms = self._config.resource_limits.timeout_ms
        exec_call = asyncio.to_thread(
            container.exec_run,
            command,
            stdout=True,
            stderr=True,
            demux=True,
            workdir=WORKDIR,
            environment=env,
        )
        try:
            result = await asyncio.wait_for(exec_call, timeout=timeout_ms / 1000)
        except TimeoutError:
            logger.info("Container %s timed out after %dms", container.id[:12], timeout_ms)
            try:
                await asyncio.to_thread(container.kill)
            except DockerException as exc:
                logger.warning("Failed to kill timed-out container %s: %s", container.id[:12], exc)
            raise SandboxTimeoutError(timeout_ms) from None

        exit_code, output = result
        stdout_bytes, stderr_bytes = output if output else (None, None)
        return (
            exit_code if exit_code is not None else 1,
            stdout_bytes.decode(errors="replace") if stdout_bytes else "",
            stderr_bytes.decode(errors="replace") if stderr_bytes else "",
        )

    async def _release(self, container: Any) -> None:
        """Stop and remove *container*. Never raises."""
        t0 = time.monotonic()
        ok = True
        try:
            await asyncio.to_thread(container.stop, timeout=0)
        except NotFound:
            pass
        except DockerException as exc:
            logger.warning("Failed to stop container %s: %s", container.id[:12], exc)
        try:
            await asyncio.to_thread(remove_container, container)
        except CleanupError as exc:
            ok = False
            logger.error("%s", exc)

        self._metrics.record_cleanup(ok=ok, elapsed_ms=_elapsed_ms(t0))
        if ok:
            self._registry.discard(container.id)
            self._owned.discard(container.id)
        # on failure the id stays tracked for the supervisor or emergency cleanup


def _network_disabled(config: SandboxConfig) -> bool:
    policy = config.network_policy
    if policy.mode == NetworkMode.NONE.value:
        return True
    # an empty whitelist allows nothing
    return policy.mode == NetworkMode.WHITELIST.value and not policy.entries


def _tar_program(filename: str, code: str) -> bytes:
    """Tar archive holding ``workspace/<filename>``, for extraction at ``/``."""
    data = code.encode("utf-8")
    stream = io.BytesIO()
    with tarfile.open(fileobj=stream, mode="w") as tar:
        folder = tarfile.TarInfo(WORKDIR.lstrip("/"))
        folder.type = tarfile.DIRTYPE
        folder.mode = 0o755
        folder.mtime = int(time.time())
        tar.addfile(folder)

        info = tarfile.TarInfo(f"{WORKDIR.lstrip('/')}/{filename}")
        info.size = len(data)
        info.mode = 0o644
        info.mtime = int(time.time())
        tar.addfile(info, io.BytesIO(data))
    return stream.getvalue()


def _memory_usage(container: Any) -> str:
    try:
        stats = container.stats(stream=False, one_shot=True)
    except DockerException:
        return "0B"
    memory = stats.get("memory_stats") if isinstance(stats, dict) else None
    if not isinstance(memory, dict):
        return "0B"
    used = memory.get("max_usage") or memory.get("usage") or 0
    return format_size(used) if isinstance(used, int) else "0B"


def remove_container(container: Any) -> None:
    """Force-remove *container* and its volumes. A missing container counts as removed."""
    try:
        container.remove(force=True, v=True)
    except NotFound:
        pass
    except DockerException as exc:
        raise CleanupError(f"container {container.id[:12]}", str(exc)) from exc


def _force_remove(client: Any, container_id: str) -> None:
    try:
        container = client.containers.get(container_id)
    except NotFound:
        return
    except DockerException as exc:
        raise CleanupError(f"container {container_id[:12]}", str(exc)) from exc
    remove_container(container)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
