"""Parsing and validation of sandbox resource limits."""

from __future__ import annotations

import re

from mcpx.sandbox.models import ConfigValidation, NetworkMode, SandboxConfig

_SIZE = re.compile(r"^(\d+)([KMG])$")
_REPORTED = re.compile(r"^(\d+(?:\.\d+)?)([BKMG])$")
_MULTIPLIERS = {"K": 1024, "M": 1024**2, "G": 1024**3}

DEFAULT_MEMORY_BYTES = 512 * 1024**2

MIN_MEMORY = 64 * 1024**2
MAX_MEMORY = 8 * 1024**3
MIN_DISK = 100 * 1024**2
MAX_DISK = 50 * 1024**3
MIN_CPU, MAX_CPU = 0.1, 8.0
MIN_TIMEOUT_MS, MAX_TIMEOUT_MS = 1_000, 300_000

DANGEROUS_ENV_NAME = re.compile(r"KEY|SECRET|TOKEN|PASSWORD|CREDENTIAL|AUTH", re.IGNORECASE)


def parse_size(value: str) -> int | None:
    """``"512M"`` → bytes, or ``None`` when malformed."""
    match = _SIZE.match(value.strip())
    if match is None:
        return None
    return int(match.group(1)) * _MULTIPLIERS[match.group(2)]


def parse_size_or_default(value: str, default: int = DEFAULT_MEMORY_BYTES) -> int:
    parsed = parse_size(value)
    return default if parsed is None else parsed


def format_size(num_bytes: float) -> str:
    """Bytes → ``"1.50M"`` style string."""
    if num_bytes < 1024:
        return f"{int(num_bytes)}B"
    if num_bytes < 1024**2:
        return f"{num_bytes / 1024:.2f}K"
    if num_bytes < 1024**3:
        return f"{num_bytes / 1024**2:.2f}M"
    return f"{num_bytes / 1024**3:.2f}G"


def parse_reported_size(value: str) -> int | None:
    """Reverse of :func:`format_size`: ``"1.50M"`` → bytes, ``None`` when malformed."""
    match = _REPORTED.match(value.strip())
    if match is None:
        return None
    scale = 1 if match.group(2) == "B" else _MULTIPLIERS[match.group(2)]
    return int(float(match.group(1)) * scale)


def rejected_env_vars(names: list[str]) -> list[str]:
    """Names that look like secrets and must never reach a sandbox."""
    return [n for n in names if DANGEROUS_ENV_NAME.search(n)]


def validate_config(config: SandboxConfig) -> ConfigValidation:
    """Check every limit; collect all problems rather than stopping at the first."""
    errors: list[str] = []
    limits = config.resource_limits

    if not MIN_CPU <= limits.cpu_cores <= MAX_CPU:
        errors.append("CPU cores must be between 0.1 and 8")

    memory = parse_size(limits.memory)
    if memory is None:
        errors.append("Memory must be in format: 512M, 1G, etc.")
    elif memory < MIN_MEMORY:
        errors.append("Memory must be at least 64M")
    elif memory > MAX_MEMORY:
        errors.append("Memory must be at most 8G")

    disk = parse_size(limits.disk)
    if disk is None:
        errors.append("Disk must be in format: 1G, 2G, etc.")
    elif disk < MIN_DISK:
        errors.append("Disk must be at least 100M")
    elif disk > MAX_DISK:
        errors.append("Disk must be at most 50G")

    if not MIN_TIMEOUT_MS <= limits.timeout_ms <= MAX_TIMEOUT_MS:
        errors.append("Timeout must be between 1s and 5 minutes")

    if config.network_policy.mode not in {m.value for m in NetworkMode}:
        errors.append("Network mode must be: none, whitelist, or blacklist")

    for name in rejected_env_vars(config.allowed_env_vars):
        errors.append(f"Environment variable not allowed: {name}")

    return ConfigValidation(valid=not errors, errors=errors)
