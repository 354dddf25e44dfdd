"""
Byte relays for listen mode.

- Bidirectional relay between an accepted TCP connection and the local
  standard input/output streams
- Datagram echo handler for UDP listen mode

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import asyncio
import errno
import logging
import os
import socket
import threading
from typing import Awaitable, BinaryIO, Protocol as TypingProtocol, TypeVar

from rich.console import Console
from rich.markup import escape

from netro.netcat.models import DatagramError, join_host_port

logger = logging.getLogger(__name__)

CHUNK_SIZE = 32 * 1024
DATAGRAM_BUFFER_SIZE = 1024
DATAGRAM_ACK = b"Message received"
SOCKET_POLL_INTERVAL = 0.5

T = TypeVar("T")


def format_address(addr) -> str:
    """Format a socket address for display."""
    if isinstance(addr, tuple):
        host = addr[0]
        # IPv4 peers of a dual-stack socket arrive as ::ffff:a.b.c.d
        if host.startswith("::ffff:") and "." in host:
            host = host[len("::ffff:"):]
        return join_host_port(host, addr[1])
    return str(addr) or "unknown peer"


async def await_socket(sock: socket.socket, operation: Awaitable[T], closing: asyncio.Event) -> T:
    """
    Await a socket operation that may never complete on its own.

    A socket closed while the event loop waits on it drops out of the
    selector and its pending operation is never resolved. This wakes as
    soon as `closing` is set, and polls the descriptor for closes made
    behind the owner's back.

    Raises:
        OSError: If the operation fails or the socket is closed first
    """
    pending = asyncio.ensure_future(operation)
    closed = asyncio.ensure_future(closing.wait())
    try:
        while True:
            done, _ = await asyncio.wait(
                {pending, closed},
                timeout=SOCKET_POLL_INTERVAL,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if pending in done:
                return pending.result()
            if closing.is_set() or sock.fileno() == -1:
                raise OSError(errno.EBADF, "socket closed")
    finally:
        closed.cancel()
        pending.cancel()


class LocalStreams(TypingProtocol):
    """Local end of a relay: something to read input from and write output to."""

    async def read(self, size: int) -> bytes:
        ...

    async def write(self, data: bytes) -> None:
        ...


class StdioStreams:
    """
    Process standard input/output as relay streams.

    Every read runs on its own daemon thread so a read blocked on the
    terminal never holds up the event loop or interpreter exit. A read
    abandoned by a cancelled caller still consumes its chunk, which is
    then dropped. Writes run in the default executor, so a stalled
    consumer of stdout only stalls the relays writing to it.
    """

    def __init__(self, stdin: BinaryIO, stdout: BinaryIO):
        self._stdin = stdin
        self._stdout = stdout

    async def read(self, size: int) -> bytes:
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def deliver(data: bytes | None, error: BaseException | None):
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(data)

        def worker():
            data, error = None, None
            try:
                data = os.read(self._stdin.fileno(), size)
            except OSError as e:
                error = e
            try:
                loop.call_soon_threadsafe(deliver, data, error)
            except RuntimeError:
                # Event loop already closed
                pass

        threading.Thread(target=worker, name="netro-stdin", daemon=True).start()
        return await future

    async def write(self, data: bytes) -> None:
        await asyncio.to_thread(self._write_blocking, data)

    def _write_blocking(self, data: bytes) -> None:
        self._stdout.write(data)
        self._stdout.flush()


async def copy_local_to_socket(local: LocalStreams, writer: asyncio.StreamWriter) -> None:
    """Direction A: local input -> socket. Ends on EOF or any I/O error."""
    try:
        while True:
            data = await local.read(CHUNK_SIZE)
            if not data:
                logger.debug("Local input reached EOF")
                break
            writer.write(data)
            await writer.drain()
    except (OSError, ConnectionError) as e:
        logger.debug(f"Local -> socket copy stopped: {e}")


async def copy_socket_to_local(reader: asyncio.StreamReader, local: LocalStreams) -> None:
    """Direction B: socket -> local output. Ends on peer close or any I/O error."""
    try:
        while True:
            data = await reader.read(CHUNK_SIZE)
            if not data:
                logger.debug("Peer closed the connection")
                break
            await local.write(data)
    except (OSError, ConnectionError, ValueError) as e:
        logger.debug(f"Socket -> local copy stopped: {e}")


async def relay(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    local: LocalStreams,
) -> None:
    """
    Pump bytes both ways between a connection and the local streams.

    Direction A runs as a separate task, Direction B inline. The relay
    ends when Direction B ends; Direction A is then cancelled.
    """
    outbound = asyncio.create_task(copy_local_to_socket(local, writer))
    try:
        await copy_socket_to_local(reader, local)
    finally:
        outbound.cancel()
        try:
            await outbound
        except asyncio.CancelledError:
            pass


async def handle_tcp_connection(
    sock: socket.socket,
    local: LocalStreams,
    console: Console,
) -> None:
    """
    Relay one accepted TCP connection until the peer goes away.

    Args:
        sock: Accepted client socket (ownership is taken)
        local: Local input/output streams
        console: Console for status messages
    """
    try:
        peer_str = format_address(sock.getpeername())
    except OSError:
        peer_str = "unknown peer"

    console.print(f"[green]Accepted connection from {escape(peer_str)}[/green]")

    try:
        reader, writer = await asyncio.open_connection(sock=sock)
    except OSError as e:
        logger.debug(f"Could not set up streams for {peer_str}: {e}")
        sock.close()
        return

    try:
        await relay(reader, writer, local)
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except (OSError, ConnectionError):
            pass
        logger.debug(f"Connection from {peer_str} closed")


class DatagramEchoHandler:
    """
    Request/reply loop for UDP listen mode.

    Each datagram is printed with its sender and answered with a fixed
    acknowledgment. Datagrams larger than the buffer are truncated.

    Usage:
        handler = DatagramEchoHandler(sock, console)
        await handler.run()
    """

    def __init__(
        self,
        sock: socket.socket,
        console: Console,
        buffer_size: int = DATAGRAM_BUFFER_SIZE,
        ack: bytes = DATAGRAM_ACK,
        closing: asyncio.Event | None = None,
    ):
        self._socket = sock
        self._closing = closing or asyncio.Event()
        self._console = console
        self.buffer_size = buffer_size
        self.ack = ack
        self.datagrams_received = 0

    async def run(self) -> None:
        """
        Serve datagrams until a socket error occurs or the socket is closed.

        Raises:
            DatagramError: On any read or reply failure
        """
        loop = asyncio.get_running_loop()
        self._socket.setblocking(False)

        while True:
            try:
                data, addr = await await_socket(
                    self._socket,
                    loop.sock_recvfrom(self._socket, self.buffer_size),
                    self._closing,
                )
            except OSError as e:
                raise DatagramError(f"error reading from UDP connection: {e}") from e

            self.datagrams_received += 1
            sender = format_address(addr)
            if len(data) >= self.buffer_size:
                logger.debug(f"Datagram from {sender} filled the buffer and may be truncated")

            text = data.decode("utf-8", errors="replace").strip()
            self._console.print(
                f"Received {len(data)} bytes from {escape(sender)}: {escape(text)}",
                highlight=False,
            )

            try:
                await loop.sock_sendto(self._socket, self.ack, addr)
            except OSError as e:
                raise DatagramError(f"error sending response: {e}") from e
