"""CLI subcommand registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all subcommands on the CLI group."""
    from mcpx.cli_commands.execute import execute
    from mcpx.cli_commands.sandbox import sandbox
    from mcpx.cli_commands.tools import tools

    cli.add_command(execute)
    cli.add_command(tools)
    cli.add_command(sandbox)
