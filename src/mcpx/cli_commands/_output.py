"""Shared CLI output formatters."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from mcpx.discovery.models import SearchResult, ToolIndexEntry  # noqa: TC001
from mcpx.sandbox.models import ConfigValidation, ExecutionResult  # noqa: TC001
from mcpx.sandbox.supervisor import SweepReport  # noqa: TC001

console = Console()
err_console = Console(stderr=True)

_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def setup_logging(verbosity: int) -> None:
    """Route log records to stderr through rich. WARNING by default."""
    level = _LEVELS.get(verbosity, logging.DEBUG)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=verbosity > 1, rich_tracebacks=True)],
        force=True,
    )


def print_tools_table(entries: list[ToolIndexEntry]) -> None:
    """Pretty-print indexed tools as a table."""
    table = Table(title="Indexed Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Category")
    table.add_column("Parameters")
    table.add_column("Description")

    for entry in entries:
        params = ", ".join(
            p.name if p.required else f"{p.name}?" for p in entry.tool.ordered_parameters()
        )
        table.add_row(entry.name, entry.category, params or "-", _truncate(entry.description))

    console.print(table)


def print_search_results(query: str, results: list[SearchResult]) -> None:
    table = Table(title=f"Matches for {query!r}")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Name", style="cyan")
    table.add_column("Matched")
    table.add_column("Description")

    for result in results:
        matched = ", ".join(sorted({m.field for m in result.matches})) or "-"
        table.add_row(f"{result.score:.2f}", result.name, matched, _truncate(result.entry.description))

    console.print(table)


def print_result(result: ExecutionResult, *, as_json: bool = False) -> None:
    """Pretty-print an execution result."""
    if as_json:
        console.print_json(result.model_dump_json())
        return

    status = "[green]SUCCESS[/green]" if result.success else "[red]FAILED[/red]"
    console.print(f"\n[bold]Execution[/bold] {status}")
    if result.backend is not None:
        console.print(f"  Backend: {result.backend.value}")
    if result.error:
        kind = f" ({result.error_kind.value})" if result.error_kind else ""
        console.print(f"  Error{kind}: {result.error}")
    if result.approval_request_id:
        console.print(f"  Approval request: {result.approval_request_id}")
    metrics = result.metrics
    console.print(f"  Time: {metrics.execution_time_ms}ms  Memory: {metrics.memory_used}")
    console.print(f"  Summary tokens: ~{metrics.tokens_in_summary}")
    if result.pii_tokenized:
        console.print("  [yellow]PII tokenized in output[/yellow]")

    if result.success and result.summary:
        console.print("\n[bold]Output:[/bold]")
        console.print(result.summary, markup=False, highlight=False)


def print_sweep_report(report: SweepReport) -> None:
    table = Table(title="Container Sweep")
    table.add_column("Found", justify="right")
    table.add_column("Removed", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Deferred", justify="right", style="yellow")
    table.add_column("Duration", justify="right")
    table.add_row(
        str(report.found),
        str(report.removed),
        str(report.failed),
        str(report.skipped),
        f"{report.duration_ms}ms",
    )
    console.print(table)


def print_validation(validation: ConfigValidation) -> None:
    if validation.valid:
        console.print("[green]Sandbox configuration is valid.[/green]")
        return
    console.print("[red]Sandbox configuration is invalid:[/red]")
    for error in validation.errors:
        console.print(f"  - {error}")


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
