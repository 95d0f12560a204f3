"""taupo CLI entrypoint."""

from __future__ import annotations

import logging

import click

from taupo import __version__
from taupo.cli_commands._output import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="taupo")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """taupo — serve and run hierarchical agents."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if verbose:
        configure_logging(logging.DEBUG)


# Register subcommands
from taupo.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
