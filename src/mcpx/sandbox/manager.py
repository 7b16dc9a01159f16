"""SandboxManager — validates limits, picks a backend and runs the program.

Backend selection lives here and nowhere else:

- a ``high`` security tier always runs in a container;
- Python never runs in the VM (asking for it yields an unsupported choice);
- otherwise the caller's preference wins, then the configured backend.
"""

from __future__ import annotations

import logging
from typing import Any

from mcpx.errors import ErrorKind, SynthesisError
from mcpx.sandbox.docker_sandbox import DockerSandbox
from mcpx.sandbox.executor import SandboxExecutor
from mcpx.sandbox.limits import validate_config
from mcpx.sandbox.models import Backend, BackendChoice, ConfigValidation, ExecutionResult, SandboxConfig
from mcpx.sandbox.process_sandbox import ProcessSandbox
from mcpx.sandbox.vm_sandbox import PYTHON_UNSUPPORTED, VMSandbox
from mcpx.synthesis.typemap import normalize_language

logger = logging.getLogger(__name__)

HIGH_TIER = "high"


class SandboxManager:
    """Routes programs to the process, VM or container backend."""

    def __init__(
        self,
        config: SandboxConfig | None = None,
        *,
        interpreters: dict[str, list[str]] | None = None,
        images: dict[str, str] | None = None,
        disk_quota: bool = True,
        docker_client: Any = None,
    ) -> None:
        self._config = config or SandboxConfig()
        self._interpreters = interpreters
        self._images = images
        self._disk_quota = disk_quota
        self._docker_client = docker_client

    @property
    def config(self) -> SandboxConfig:
        return self._config

    def validate_config(self, config: SandboxConfig | None = None) -> ConfigValidation:
        return validate_config(config or self._config)

    def select_backend(
        self,
        language: str,
        tier: str = "standard",
        preference: Backend | str | None = None,
        config: SandboxConfig | None = None,
    ) -> BackendChoice:
        try:
            lang = normalize_language(language)
        except SynthesisError as exc:
            return BackendChoice(backend=(config or self._config).backend, supported=False, reason=str(exc))

        if tier.lower() == HIGH_TIER:
            return BackendChoice(backend=Backend.CONTAINER, reason="high security tier")

        chosen = Backend(preference) if preference is not None else (config or self._config).backend
        if lang == "py" and chosen is Backend.VM:
            return BackendChoice(backend=Backend.VM, supported=False, reason=PYTHON_UNSUPPORTED)
        return BackendChoice(backend=chosen, reason="preference" if preference is not None else "configured")

    def create_executor(self, backend: Backend, config: SandboxConfig | None = None) -> SandboxExecutor:
        cfg = (config or self._config).model_copy(update={"backend": backend})
        if backend is Backend.PROCESS:
            return ProcessSandbox(cfg, interpreters=self._interpreters)
        if backend is Backend.VM:
            return VMSandbox(cfg)
        return DockerSandbox(cfg, client=self._docker_client, images=self._images, disk_quota=self._disk_quota)

    async def execute(
        self,
        code: str,
        language: str,
        config: SandboxConfig | None = None,
        *,
        tier: str = "standard",
        preference: Backend | str | None = None,
    ) -> ExecutionResult:
        """Validate, route and run. Always returns a result."""
        cfg = config or self._config
        validation = validate_config(cfg)
        if not validation.valid:
            return ExecutionResult.failure(
                "Invalid sandbox configuration: " + "; ".join(validation.errors),
                kind=ErrorKind.CONFIG,
            )

        choice = self.select_backend(language, tier, preference, cfg)
        if not choice.supported:
            return ExecutionResult.failure(choice.reason, kind=ErrorKind.SANDBOX, backend=choice.backend)

        logger.info("Executing %s program on %s backend (%s)", language, choice.backend.value, choice.reason)
        executor = self.create_executor(choice.backend, cfg)
        try:
            return await executor.execute(code, language)
        finally:
            await executor.cleanup()
