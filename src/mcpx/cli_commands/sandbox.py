"""``mcpx sandbox`` — validate limits and sweep orphaned containers."""

from __future__ import annotations

import asyncio
import json
import sys

import click

from mcpx.cli_commands._output import console, print_sweep_report, print_validation
from mcpx.cli_commands._settings import load_settings
from mcpx.sandbox.models import Backend


@click.group()
def sandbox() -> None:
    """Manage sandbox configuration and containers."""


@sandbox.command("validate")
@click.option("--backend", type=click.Choice([b.value for b in Backend]), default=None)
@click.option("--cpu", "cpu_cores", type=float, default=None, help="CPU cores.")
@click.option("--memory", default=None, help="Memory limit, e.g. 512M.")
@click.option("--disk", default=None, help="Disk limit, e.g. 1G.")
@click.option("--timeout", "timeout_ms", type=int, default=None, help="Timeout in milliseconds.")
@click.option("--env", "env_vars", multiple=True, help="Allowed environment variable (repeatable).")
@click.option("--json", "as_json", is_flag=True, help="Print the validation as JSON.")
@click.pass_context
def validate(
    ctx: click.Context,
    backend: str | None,
    cpu_cores: float | None,
    memory: str | None,
    disk: str | None,
    timeout_ms: int | None,
    env_vars: tuple[str, ...],
    as_json: bool,
) -> None:
    """Check the configured sandbox limits, with optional overrides.

    Exits with status 1 when the configuration is invalid.
    """
    from mcpx.sandbox.limits import validate_config

    config = load_settings(ctx).sandbox
    limit_updates = {
        key: value
        for key, value in (
            ("cpu_cores", cpu_cores),
            ("memory", memory),
            ("disk", disk),
            ("timeout_ms", timeout_ms),
        )
        if value is not None
    }
    updates: dict[str, object] = {}
    if limit_updates:
        updates["resource_limits"] = config.resource_limits.model_copy(update=limit_updates)
    if backend:
        updates["backend"] = Backend(backend)
    if env_vars:
        updates["allowed_env_vars"] = list(env_vars)
    if updates:
        config = config.model_copy(update=updates)

    validation = validate_config(config)
    if as_json:
        console.print_json(json.dumps({**validation.model_dump(), "config": config.model_dump(mode="json")}))
    else:
        print_validation(validation)
    if not validation.valid:
        sys.exit(1)


@sandbox.command("sweep")
@click.option("--max-age-hours", type=click.FloatRange(min=0.0, min_open=True), default=None)
@click.option("--max-per-run", type=click.IntRange(min=1), default=None)
@click.pass_context
def sweep(ctx: click.Context, max_age_hours: float | None, max_per_run: int | None) -> None:
    """Remove sandbox containers older than the configured age."""
    from docker.errors import DockerException

    from mcpx.sandbox.supervisor import CleanupSupervisor

    cleanup = load_settings(ctx).cleanup
    supervisor = CleanupSupervisor(
        interval_seconds=cleanup.interval_seconds,
        max_age_hours=max_age_hours if max_age_hours is not None else cleanup.max_age_hours,
        max_cleanup_per_run=max_per_run if max_per_run is not None else cleanup.max_cleanup_per_run,
    )
    try:
        report = asyncio.run(supervisor.run_once())
    except DockerException as exc:
        raise click.ClickException(f"Docker unavailable: {exc}") from exc

    print_sweep_report(report)
    if report.failed:
        sys.exit(1)
