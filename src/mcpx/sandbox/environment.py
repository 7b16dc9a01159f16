"""Curated environment for sandboxed programs.

Nothing from the host environment reaches a sandbox except ``PATH``, a
small locale whitelist and explicitly allowed, non-secret names.
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from mcpx.errors import ConfigError
from mcpx.sandbox.limits import rejected_env_vars

DEFAULT_PATH = "/usr/local/bin:/usr/bin:/bin"
WHITELISTED_VARS = ("USER", "LANG", "LC_ALL", "TZ")


def build_environment(
    home: str,
    allowed_env_vars: list[str] | None = None,
    *,
    host_env: Mapping[str, str] | None = None,
    path: str | None = None,
) -> dict[str, str]:
    """Return the environment for one sandboxed run.

    Raises :class:`ConfigError` if any allowed name looks like a secret.
    """
    allowed = list(allowed_env_vars or [])
    rejected = rejected_env_vars(allowed)
    if rejected:
        raise ConfigError(
            f"Environment variable not allowed: {', '.join(rejected)}",
            [f"Environment variable not allowed: {name}" for name in rejected],
        )

    source = os.environ if host_env is None else host_env
    env = {
        "NODE_ENV": "sandbox",
        "HOME": home,
        "TMPDIR": home,
        "PATH": path or source.get("PATH") or DEFAULT_PATH,
    }
    for name in (*WHITELISTED_VARS, *allowed):
        value = source.get(name)
        if value is not None:
            env[name] = value
    return env
