"""Settings lookup shared by the CLI commands."""

from __future__ import annotations

from pathlib import Path

import click

from mcpx.engine.settings import EngineSettings, SettingsLoader
from mcpx.errors import ConfigError


def load_settings(ctx: click.Context, *, tools_dir: str | None = None) -> EngineSettings:
    """Load settings for the current invocation, applying ``--tools-dir``."""
    obj = ctx.find_root().obj or {}
    config_path = obj.get("config_path")
    try:
        settings = SettingsLoader(Path(config_path) if config_path else None).load()
    except ConfigError as exc:
        message = str(exc)
        if exc.errors:
            message += "\n  " + "\n  ".join(exc.errors)
        raise click.ClickException(message) from exc
    if tools_dir:
        settings = settings.model_copy(update={"tools_dir": Path(tools_dir)})
    return settings
