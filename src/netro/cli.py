"""
Netro command-line entry point.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import click
from rich.console import Console

from netro import __version__
from netro.config import get_config
from netro.logging_config import setup_logging
from netro.netcat.cli import nc

console = Console()

WELCOME = "Welcome to Netro! Use 'netro --help' to see available commands."


@click.group(invoke_without_command=True)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, debug: bool):
    """Netro - networking and troubleshooting CLI.

    \b
    Examples:
        # Check a TCP port
        netro nc example.com 80

        # Listen on a port
        netro nc -l 8080
    """
    config = get_config()
    setup_logging(
        level="DEBUG" if debug else config.log_level,
        log_file=config.log_file,
        enable_file=config.log_file is not None,
    )

    if ctx.invoked_subcommand is None:
        console.print(WELCOME)


@main.command()
def version():
    """Print the version number of Netro."""
    console.print(f"Netro version: {__version__} (built on {get_config().build_date})", highlight=False)


main.add_command(nc)


if __name__ == "__main__":
    main()
