"""Engine settings — pydantic models loaded from ``mcpx.yaml``.

Typical usage::

    settings = SettingsLoader(Path("mcpx.yaml")).load()
    engine = ExecutionEngine(settings)

String values may reference environment variables as ``$VAR`` or
``${VAR}``; unknown variables are left as written.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from mcpx.errors import ConfigError, SynthesisError
from mcpx.sandbox.models import SandboxConfig
from mcpx.synthesis.typemap import normalize_language

DEFAULT_FILENAMES = ("mcpx.yaml", "mcpx.yml", "mcpx.json")
ENV_CONFIG_PATH = "MCPX_CONFIG"


class CleanupSettings(BaseModel):
    """Zombie-container sweep settings."""

    enabled: bool = False
    interval_seconds: float = Field(default=60.0, gt=0)
    max_age_hours: float = Field(default=1.0, gt=0)
    max_cleanup_per_run: int = Field(default=100, ge=1)


class TelemetrySettings(BaseModel):
    enabled: bool = False
    otlp_endpoint: str | None = None


class EngineSettings(BaseModel):
    """Everything :class:`~mcpx.engine.orchestrator.ExecutionEngine` needs.

    Example YAML::

        tools_dir: ./tools
        language: py
        security_tier: standard
        sandbox:
          backend: process
          resource_limits:
            memory: 256M
            timeout_ms: 10000
        audit_log: ${HOME}/.mcpx/audit.jsonl
        cleanup:
          enabled: true
    """

    tools_dir: Path = Path("tools")
    language: str = "ts"
    max_tools: int = Field(default=5, ge=1)
    match_threshold: float = Field(default=0.2, ge=0.0, le=1.0)
    security_tier: str = "standard"
    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    patterns_file: Path | None = None
    audit_log: Path | None = None
    cleanup: CleanupSettings = Field(default_factory=CleanupSettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)

    @field_validator("language")
    @classmethod
    def _known_language(cls, value: str) -> str:
        try:
            return normalize_language(value)
        except SynthesisError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("security_tier")
    @classmethod
    def _lower_tier(cls, value: str) -> str:
        return value.strip().lower()


def expand_env(value: Any) -> Any:
    """Recursively apply :func:`os.path.expandvars` to every string."""
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, dict):
        return {k: expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env(v) for v in value]
    return value


def parse_settings(raw: str, *, format: str = "yaml", source: str = "<string>") -> EngineSettings:
    """Parse *raw* into validated :class:`EngineSettings`.

    Raises:
        ConfigError: The text is not valid YAML/JSON or fails validation.
    """
    try:
        data = json.loads(raw) if format == "json" else yaml.safe_load(raw)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"{source}: cannot parse settings: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{source}: settings must be a mapping, got {type(data).__name__}")

    try:
        return EngineSettings.model_validate(expand_env(data))
    except ValidationError as exc:
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
        raise ConfigError(f"{source}: invalid settings", errors=errors) from exc


class SettingsLoader:
    """Locate and load the settings file.

    Lookup order: the explicit *path*, then ``$MCPX_CONFIG``, then
    ``mcpx.yaml`` / ``mcpx.yml`` / ``mcpx.json`` in *search_dir*. When none
    exists the defaults are returned.
    """

    def __init__(self, path: Path | None = None, *, search_dir: Path | None = None) -> None:
        self.path = path
        self.search_dir = search_dir or Path.cwd()

    def resolve(self) -> Path | None:
        if self.path is not None:
            return self.path
        env_path = os.environ.get(ENV_CONFIG_PATH)
        if env_path:
            return Path(env_path)
        for name in DEFAULT_FILENAMES:
            candidate = self.search_dir / name
            if candidate.is_file():
                return candidate
        return None

    def load(self) -> EngineSettings:
        path = self.resolve()
        if path is None:
            return EngineSettings()
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot read settings file {path}: {exc}") from exc
        fmt = "json" if path.suffix == ".json" else "yaml"
        settings = parse_settings(raw, format=fmt, source=str(path))
        return _relative_to(settings, path.parent)


def _relative_to(settings: EngineSettings, base: Path) -> EngineSettings:
    """Resolve relative paths in *settings* against the settings file's folder."""
    updates: dict[str, Path] = {}
    for field in ("tools_dir", "patterns_file", "audit_log"):
        value = getattr(settings, field)
        if value is not None and not value.is_absolute():
            updates[field] = base / value
    return settings.model_copy(update=updates) if updates else settings
