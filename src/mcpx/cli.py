"""mcpx CLI entrypoint."""

from __future__ import annotations

import click

from mcpx import __version__
from mcpx.cli_commands._output import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="mcpx")
@click.option(
    "--config",
    "-c",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="Settings file (default: $MCPX_CONFIG or ./mcpx.yaml).",
)
@click.option("--verbose", "-v", count=True, help="Log more (-v info, -vv debug).")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: int) -> None:
    """mcpx — discover MCP tools, generate code, and run it in a sandbox."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# Register subcommands
from mcpx.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
