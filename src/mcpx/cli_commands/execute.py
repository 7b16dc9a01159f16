"""``mcpx execute`` — run an intent through the full pipeline.

Exit codes: 0 success, 1 execution error, 2 security block, 3 timeout.
"""

from __future__ import annotations

import asyncio
import sys

import click

from mcpx.cli_commands._output import err_console, print_result
from mcpx.cli_commands._settings import load_settings
from mcpx.errors import ErrorKind
from mcpx.sandbox.models import Backend, ExecutionResult

EXIT_OK = 0
EXIT_EXECUTION_ERROR = 1
EXIT_SECURITY_BLOCK = 2
EXIT_TIMEOUT = 3


def exit_code_for(result: ExecutionResult) -> int:
    if result.success:
        return EXIT_OK
    if result.error_kind in (ErrorKind.SECURITY, ErrorKind.APPROVAL):
        return EXIT_SECURITY_BLOCK
    if result.error_kind is ErrorKind.TIMEOUT:
        return EXIT_TIMEOUT
    return EXIT_EXECUTION_ERROR


@click.command()
@click.argument("intent")
@click.option(
    "--language",
    "-l",
    type=click.Choice(["ts", "py", "typescript", "python", "js", "javascript"]),
    default=None,
    help="Target language (default from settings).",
)
@click.option("--timeout", "timeout_ms", type=click.IntRange(min=1), default=None, help="Timeout in milliseconds.")
@click.option("--max-tools", type=click.IntRange(min=1), default=None, help="Maximum tools to match.")
@click.option("--tools-dir", type=click.Path(file_okay=False), default=None, help="Directory of tool schemas.")
@click.option(
    "--sandbox",
    type=click.Choice([b.value for b in Backend]),
    default=None,
    help="Preferred sandbox backend.",
)
@click.option("--tier", default=None, help="Security tier ('high' forces the container backend).")
@click.option("--yes", "-y", "auto_approve", is_flag=True, help="Approve high-risk programs without asking.")
@click.option("--interactive", "-i", is_flag=True, help="Ask on the terminal before running high-risk programs.")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
@click.pass_context
def execute(
    ctx: click.Context,
    intent: str,
    language: str | None,
    timeout_ms: int | None,
    max_tools: int | None,
    tools_dir: str | None,
    sandbox: str | None,
    tier: str | None,
    auto_approve: bool,
    interactive: bool,
    as_json: bool,
) -> None:
    """Discover tools for INTENT, generate a program, vet it and run it."""
    from mcpx.engine.orchestrator import ExecuteOptions, ExecutionEngine
    from mcpx.security.gatekeeper import AutoApproveGatekeeper, CLIGatekeeper, Gatekeeper

    if auto_approve and interactive:
        raise click.UsageError("--yes and --interactive are mutually exclusive")

    settings = load_settings(ctx, tools_dir=tools_dir)
    if tier:
        settings = settings.model_copy(update={"security_tier": tier.lower()})
    if settings.telemetry.enabled:
        _enable_telemetry(settings.telemetry.otlp_endpoint)

    gatekeeper: Gatekeeper | None = None
    if auto_approve:
        gatekeeper = AutoApproveGatekeeper()
    elif interactive:
        gatekeeper = CLIGatekeeper()

    options = ExecuteOptions(
        timeout_ms=timeout_ms,
        sandbox=Backend(sandbox) if sandbox else None,
        max_tools=max_tools,
    )

    async def _execute() -> ExecutionResult:
        engine = ExecutionEngine(settings, gatekeeper=gatekeeper)
        try:
            return await engine.execute(intent, language, options)
        finally:
            await engine.shutdown()

    result = asyncio.run(_execute())
    print_result(result, as_json=as_json)
    sys.exit(exit_code_for(result))


def _enable_telemetry(otlp_endpoint: str | None) -> None:
    from mcpx.utils.telemetry import configure_telemetry

    try:
        configure_telemetry(export_to_console=otlp_endpoint is None, otlp_endpoint=otlp_endpoint)
    except ImportError as exc:
        err_console.print(f"[yellow]Telemetry disabled:[/yellow] {exc}")
