"""
Netcat core implementation.

Provides netcat-like functionality with:
- TCP/UDP connection probes (connect, report, close)
- TCP connections through an HTTP CONNECT proxy
- Listen mode relaying each TCP connection to stdin/stdout
- Listen mode answering UDP datagrams

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import asyncio
import logging
import socket

from rich.console import Console
from rich.markup import escape

from netro.netcat.models import (
    AcceptError,
    BindError,
    ConfigurationError,
    ConnectionRequest,
    ConnectionResult,
    DialError,
    ListenRequest,
    Protocol,
    join_host_port,
)
from netro.netcat.relay import (
    DatagramEchoHandler,
    LocalStreams,
    await_socket,
    handle_tcp_connection,
)
from netro.netcat.tunnel import negotiate_tunnel

logger = logging.getLogger(__name__)

LISTEN_BACKLOG = 128


async def initiate(request: ConnectionRequest) -> ConnectionResult:
    """
    Check that an endpoint is reachable.

    Opens a single connection within the request timeout, then closes it
    again without exchanging any payload. TCP requests with a proxy are
    tunneled with HTTP CONNECT and the tunnel is closed the same way.

    Args:
        request: Connection parameters

    Returns:
        ConnectionResult describing the connection

    Raises:
        ConfigurationError: Unsupported protocol or proxy combination
        DialError: Connection failed or timed out
        TunnelError: Proxy refused the tunnel
    """
    protocol = Protocol.parse(request.protocol)
    address = request.address

    if protocol == Protocol.TCP:
        if request.proxy:
            session = await negotiate_tunnel(
                request.proxy, request.host, request.port, request.timeout
            )
            await session.close()
            return ConnectionResult(address=address, protocol=protocol, proxy=request.proxy)
        await _dial_tcp(request)
    else:
        if request.proxy:
            raise ConfigurationError("proxy is only supported for TCP connections")
        await _dial_udp(request)

    return ConnectionResult(address=address, protocol=protocol)


async def _dial_tcp(request: ConnectionRequest) -> None:
    logger.debug(f"Connecting to {request.address} (TCP)")
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(request.host, request.port),
            request.timeout,
        )
    except TimeoutError as e:
        raise DialError(
            f"failed to establish TCP connection: timed out after {request.timeout:g}s"
        ) from e
    except OSError as e:
        raise DialError(f"failed to establish TCP connection: {e}") from e

    writer.close()
    try:
        await writer.wait_closed()
    except (OSError, ConnectionError):
        pass


async def _dial_udp(request: ConnectionRequest) -> None:
    # A connected UDP socket sends nothing; this only resolves and routes
    logger.debug(f"Connecting to {request.address} (UDP)")
    loop = asyncio.get_running_loop()
    try:
        transport, _ = await asyncio.wait_for(
            loop.create_datagram_endpoint(
                asyncio.DatagramProtocol,
                remote_addr=(request.host, request.port),
            ),
            request.timeout,
        )
    except TimeoutError as e:
        raise DialError(
            f"failed to establish UDP connection: timed out after {request.timeout:g}s"
        ) from e
    except OSError as e:
        raise DialError(f"failed to establish UDP connection: {e}") from e

    transport.close()


class Listener:
    """
    Netcat listener for inbound connections.

    TCP connections are accepted without limit, each relayed to the local
    streams by its own task. UDP datagrams are answered by a single
    DatagramEchoHandler.

    Usage:
        listener = Listener(ListenRequest(port=8080), local, console)
        await listener.serve()
    """

    def __init__(
        self,
        request: ListenRequest,
        local: LocalStreams,
        console: Console,
        status_console: Console | None = None,
    ):
        self.request = request
        self.protocol = Protocol.parse(request.protocol)
        self.local = local
        self.console = console
        self.status_console = status_console or console
        self.connections_accepted = 0
        self._socket: socket.socket | None = None
        self._closing = asyncio.Event()
        self._tasks: dict[asyncio.Task, socket.socket] = {}

    @property
    def bound_address(self) -> tuple[str, int] | None:
        """Local (host, port) once bound."""
        if self._socket is None or self._socket.fileno() == -1:
            return None
        return self._socket.getsockname()[:2]

    def bind(self) -> tuple[str, int]:
        """
        Bind the listening socket.

        Returns:
            Bound (host, port)

        Raises:
            BindError: If the socket cannot be bound
        """
        host = self.request.host
        # All interfaces means IPv4 and IPv6 where the platform allows it
        dualstack = not host and socket.has_dualstack_ipv6()
        if dualstack:
            family, bind_host = socket.AF_INET6, "::"
        else:
            bind_host = host or "0.0.0.0"
            family = socket.AF_INET6 if ":" in bind_host else socket.AF_INET
        label = self.protocol.label

        try:
            if self.protocol == Protocol.TCP:
                sock = socket.socket(family, socket.SOCK_STREAM)
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            else:
                sock = socket.socket(family, socket.SOCK_DGRAM)
        except OSError as e:
            raise BindError(f"failed to start {label} listener: {e}") from e

        try:
            if dualstack:
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
            sock.bind((bind_host, self.request.port))
            if self.protocol == Protocol.TCP:
                sock.listen(LISTEN_BACKLOG)
            sock.setblocking(False)
        except OSError as e:
            sock.close()
            raise BindError(f"failed to start {label} listener: {e}") from e

        self._socket = sock
        self._closing.clear()
        bound = self.bound_address
        shown = join_host_port(host, bound[1])
        self.status_console.print(f"[dim]Listening on {escape(shown)} ({label})[/dim]")
        return bound

    async def serve(self) -> None:
        """
        Run the listener until it fails.

        Raises:
            BindError: If binding fails
            AcceptError: If accepting a TCP connection fails
            DatagramError: If the UDP socket fails
        """
        if self._socket is None:
            self.bind()

        try:
            if self.protocol == Protocol.TCP:
                await self._accept_loop()
            else:
                await DatagramEchoHandler(self._socket, self.console, closing=self._closing).run()
        finally:
            await self.close()

    async def _accept_loop(self) -> None:
        loop = asyncio.get_running_loop()
        sock = self._socket

        while True:
            try:
                client, addr = await await_socket(sock, loop.sock_accept(sock), self._closing)
            except OSError as e:
                raise AcceptError(f"failed to accept connection: {e}") from e

            self.connections_accepted += 1
            logger.debug(f"Accepted {addr[0]}:{addr[1]} (#{self.connections_accepted})")

            task = asyncio.create_task(
                handle_tcp_connection(client, self.local, self.status_console)
            )
            self._tasks[task] = client
            task.add_done_callback(self._connection_done)

    def _connection_done(self, task: asyncio.Task) -> None:
        client = self._tasks.pop(task, None)
        if task.cancelled():
            # A handler cancelled before it ran never took ownership
            if client is not None:
                client.close()
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Connection handler failed: {error}", exc_info=error)

    @property
    def active_connections(self) -> int:
        return len(self._tasks)

    async def close(self) -> None:
        """Stop the listener and any relays still running."""
        self._closing.set()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

        if self._socket is not None:
            self._socket.close()
            self._socket = None
            logger.debug("Listener stopped")
