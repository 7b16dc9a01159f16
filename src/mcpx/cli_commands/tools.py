"""``mcpx tools`` — list, search and import tool schemas."""

from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path

import click

from mcpx.cli_commands._output import console, print_search_results, print_tools_table
from mcpx.cli_commands._settings import load_settings
from mcpx.discovery.index import ToolIndex
from mcpx.engine.settings import EngineSettings  # noqa: TC001
from mcpx.errors import EngineError

_tools_dir_option = click.option(
    "--tools-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory of tool schemas (default from settings).",
)
_format_option = click.option(
    "--format",
    "fmt",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format.",
)


@click.group()
def tools() -> None:
    """Inspect and import tool schemas."""


def _build_index(settings: EngineSettings) -> ToolIndex:
    index = ToolIndex()
    try:
        index.build(settings.tools_dir)
    except EngineError as exc:
        raise click.ClickException(str(exc)) from exc
    return index


@tools.command("list")
@_tools_dir_option
@click.option("--category", default=None, help="Only tools in this category.")
@_format_option
@click.pass_context
def list_tools(ctx: click.Context, tools_dir: str | None, category: str | None, fmt: str) -> None:
    """List every indexed tool."""
    index = _build_index(load_settings(ctx, tools_dir=tools_dir))
    entries = index.by_category(category) if category else index.all()

    if not entries:
        console.print("[yellow]No tools found.[/yellow]")
        return

    if fmt == "json":
        data = [{**e.tool.model_dump(), "category": e.category, "source": e.source} for e in entries]
        console.print_json(json.dumps(data, default=str))
    else:
        print_tools_table(entries)


@tools.command("search")
@click.argument("query")
@click.option("--limit", type=click.IntRange(min=1), default=5, show_default=True, help="Maximum results.")
@click.option("--threshold", type=click.FloatRange(0.0, 1.0), default=None, help="Minimum score.")
@_tools_dir_option
@_format_option
@click.pass_context
def search_tools(
    ctx: click.Context,
    query: str,
    limit: int,
    threshold: float | None,
    tools_dir: str | None,
    fmt: str,
) -> None:
    """Rank indexed tools against QUERY."""
    from mcpx.discovery.matcher import SemanticMatcher

    settings = load_settings(ctx, tools_dir=tools_dir)
    index = _build_index(settings)
    matcher = SemanticMatcher(index, threshold=settings.match_threshold if threshold is None else threshold)
    try:
        results = matcher.search(query, limit=limit)
    except EngineError as exc:
        raise click.ClickException(str(exc)) from exc

    if not results:
        console.print("[yellow]No relevant tools.[/yellow]")
        return

    if fmt == "json":
        data = [
            {"name": r.name, "score": r.score, "matches": [m.model_dump() for m in r.matches]}
            for r in results
        ]
        console.print_json(json.dumps(data))
    else:
        print_search_results(query, results)


@tools.command("import")
@click.argument("server")
@click.option(
    "--transport",
    type=click.Choice(["stdio", "websocket"]),
    default="stdio",
    help="MCP server transport type.",
)
@click.option("--name", default=None, help="Server name; also the output file stem.")
@_tools_dir_option
@click.option("--force", is_flag=True, help="Overwrite an existing schema file.")
@click.pass_context
def import_tools(
    ctx: click.Context,
    server: str,
    transport: str,
    name: str | None,
    tools_dir: str | None,
    force: bool,
) -> None:
    """Import tool schemas from an MCP server into the tools directory.

    SERVER is the command (for stdio) or URL (for websocket) of the MCP server.
    """
    from mcpx.protocols.errors import ProtocolError
    from mcpx.protocols.mcp.client import MCPClient
    from mcpx.protocols.mcp.models import MCPServerRef

    settings = load_settings(ctx, tools_dir=tools_dir)
    server_name = name or _server_name(server)
    if transport == "stdio":
        ref = MCPServerRef(name=server_name, transport="stdio", command=server)
    else:
        ref = MCPServerRef(name=server_name, transport="websocket", url=server)

    target = Path(settings.tools_dir) / f"{server_name}.json"
    if target.exists() and not force:
        raise click.ClickException(f"{target} already exists (use --force to overwrite)")

    async def _import() -> list[dict[str, object]]:
        async with MCPClient(ref) as client:
            schemas = await client.discover_tools()
        return [s.model_dump(exclude_none=True) for s in schemas]

    try:
        documents = asyncio.run(_import())
    except (ProtocolError, EngineError, OSError, ValueError) as exc:
        raise click.ClickException(f"Import failed: {exc}") from exc

    if not documents:
        console.print("[yellow]No tools discovered.[/yellow]")
        return

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(documents, indent=2) + "\n", encoding="utf-8")
    console.print(f"[green]Imported {len(documents)} tool(s) into {target}[/green]")


def _server_name(server: str) -> str:
    """Derive a file-safe name from a server command or URL."""
    head = server.split()[-1] if server.split() else server
    head = head.rstrip("/").rsplit("/", 1)[-1]
    slug = re.sub(r"[^A-Za-z0-9_-]+", "-", head).strip("-")
    return slug or "mcp-server"
