"""
CLI for netcat operations.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import asyncio
import sys

import click
from rich.console import Console
from rich.markup import escape

from netro.config import get_config
from netro.logging_config import configure_logging, track_error
from netro.netcat.core import Listener, initiate
from netro.netcat.models import (
    ConnectionRequest,
    ListenRequest,
    NetcatError,
    Protocol,
    parse_duration,
)
from netro.netcat.relay import StdioStreams

console = Console()
err_console = Console(stderr=True)


class DurationParamType(click.ParamType):
    """Click parameter accepting durations like 500ms, 5s or 1m."""
    name = "duration"

    def convert(self, value, param, ctx):
        if isinstance(value, (int, float)):
            return float(value)
        try:
            seconds = parse_duration(value)
        except ValueError as e:
            self.fail(str(e), param, ctx)
        if seconds <= 0:
            self.fail(f"Duration must be positive: {value}", param, ctx)
        return seconds


DURATION = DurationParamType()


def _split_args(args: tuple[str, ...], listen: bool) -> tuple[str, int]:
    """Split [HOST] PORT positional arguments."""
    if not 1 <= len(args) <= 2:
        raise click.UsageError(f"Expected [HOST] PORT, got {len(args)} argument(s)")

    if len(args) == 1:
        host, port_str = "", args[0]
    else:
        host, port_str = args

    if listen and host:
        raise click.UsageError("HOST must be omitted in listen mode")
    if not listen and not host:
        raise click.UsageError("HOST is required unless --listen is given")

    try:
        port = int(port_str)
    except ValueError:
        raise click.BadParameter(f"{port_str!r} is not a valid port", param_hint="PORT") from None
    if not 0 <= port <= 65535:
        raise click.BadParameter(f"{port} is out of range (0-65535)", param_hint="PORT")

    return host, port


def _fail(error: NetcatError):
    track_error(type(error).__name__, str(error), error)
    err_console.print(f"[red]Error:[/red] {escape(str(error))}")
    raise SystemExit(1)


@click.command()
@click.argument("args", nargs=-1, metavar="[HOST] PORT")
@click.option("--protocol", "-p", default="tcp", show_default=True,
              help="Protocol to use (tcp or udp)")
@click.option("--timeout", "-t", type=DURATION, default=lambda: get_config().default_timeout,
              show_default="5s", help="Connection timeout (e.g. 500ms, 5s, 1m)")
@click.option("--proxy", "-x", default="",
              help="HTTP proxy URL for TCP connections (e.g. http://proxy.example.com:8080)")
@click.option("--listen", "-l", is_flag=True, help="Listen for incoming connections on PORT")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def nc(
    args: tuple[str, ...],
    protocol: str,
    timeout: float,
    proxy: str,
    listen: bool,
    verbose: bool,
):
    """Netcat - TCP and UDP connections.

    Without --listen, connects to HOST:PORT, reports success and closes the
    connection again. With --listen, accepts connections on PORT: TCP
    connections are relayed to stdin/stdout, UDP datagrams are printed and
    acknowledged.

    \b
    Examples:
        # Check that a TCP port is reachable
        netro nc example.com 80

        # Through an HTTP proxy
        netro nc example.com 443 -x http://proxy.example.com:8080

        # UDP
        netro nc -p udp 8.8.8.8 53

        # Listen on port 8080
        netro nc -l 8080
    """
    if verbose:
        configure_logging(debug=True, log_file=get_config().log_file)

    host, port = _split_args(args, listen)

    try:
        proto = Protocol.parse(protocol)
    except NetcatError as e:
        _fail(e)

    if listen:
        if proxy:
            raise click.UsageError("--proxy cannot be used with --listen")
        run_listener(ListenRequest(port=port, protocol=proto))
        return

    request = ConnectionRequest(
        host=host,
        port=port,
        protocol=proto,
        timeout=timeout,
        proxy=proxy or None,
    )

    try:
        result = asyncio.run(initiate(request))
    except NetcatError as e:
        _fail(e)

    console.print(f"[green]{escape(result.message)}[/green]")


def run_listener(request: ListenRequest):
    """Serve a listen request. Never returns normally."""
    listener = Listener(
        request,
        local=StdioStreams(sys.stdin.buffer, sys.stdout.buffer),
        console=console,
        status_console=err_console,
    )

    try:
        asyncio.run(listener.serve())
    except NetcatError as e:
        _fail(e)
    except KeyboardInterrupt:
        err_console.print("[dim]Interrupted[/dim]")
        raise SystemExit(130)

    err_console.print("[red]Error:[/red] listener stopped")
    raise SystemExit(1)


if __name__ == "__main__":
    nc()
