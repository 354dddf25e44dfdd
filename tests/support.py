"""
Test helpers shared across the Netro test suite.
"""

import asyncio
import socket
import threading
from typing import Callable


class QueueStreams:
    """Local streams backed by a queue (input) and a bytearray (output)."""

    def __init__(self):
        self.input: asyncio.Queue[bytes] = asyncio.Queue()
        self.output = bytearray()
        self.readers_waiting = 0
        self._written = asyncio.Event()

    async def read(self, size: int) -> bytes:
        self.readers_waiting += 1
        try:
            return await self.input.get()
        finally:
            self.readers_waiting -= 1

    async def write(self, data: bytes) -> None:
        self.output.extend(data)
        self._written.set()

    def feed(self, data: bytes) -> None:
        self.input.put_nowait(data)

    def feed_eof(self) -> None:
        self.input.put_nowait(b"")

    async def wait_for_output(self, expected: bytes, timeout: float = 2.0) -> None:
        async def _wait():
            while expected not in self.output:
                self._written.clear()
                await self._written.wait()

        await asyncio.wait_for(_wait(), timeout)


class BrokenOutputStreams(QueueStreams):
    """Local streams whose output side is a closed pipe."""

    async def write(self, data: bytes) -> None:
        raise BrokenPipeError("stdout closed")


class StalledOutput:
    """Binary stdout stand-in whose writes block until released."""

    def __init__(self, limit: float = 5.0):
        self.limit = limit
        self.entered = threading.Event()
        self.released = threading.Event()
        self.timed_out = False
        self.data = bytearray()

    def write(self, data: bytes) -> int:
        self.entered.set()
        if not self.released.wait(self.limit):
            self.timed_out = True
        self.data.extend(data)
        return len(data)

    def flush(self) -> None:
        pass


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until predicate() is true."""
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)


def unused_tcp_port() -> int:
    """Return a loopback port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class FakeProxy:
    """Scripted HTTP proxy answering every CONNECT with a fixed response."""

    def __init__(self, response: bytes):
        self.response = response
        self.requests: list[bytes] = []
        self.server: asyncio.AbstractServer | None = None
        self.tunnels_closed = 0
        self._port: int | None = None

    @property
    def port(self) -> int:
        return self._port

    @property
    def url(self) -> str:
        return f"http://127.0.0.1:{self.port}"

    async def start(self) -> "FakeProxy":
        self.server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self._port = self.server.sockets[0].getsockname()[1]
        return self

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        try:
            head = await reader.readuntil(b"\r\n\r\n")
            self.requests.append(head)
            writer.write(self.response)
            await writer.drain()
            # Hold the tunnel open until the client hangs up
            await reader.read()
            self.tunnels_closed += 1
        except (asyncio.IncompleteReadError, ConnectionError):
            pass
        finally:
            writer.close()

    async def stop(self) -> None:
        self.server.close()
        await self.server.wait_closed()


class DatagramClient(asyncio.DatagramProtocol):
    """UDP client collecting replies into a queue."""

    def __init__(self):
        self.replies: asyncio.Queue[tuple[bytes, tuple]] = asyncio.Queue()
        self.transport: asyncio.DatagramTransport | None = None

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        self.replies.put_nowait((data, addr))

    @classmethod
    async def open(cls, host: str, port: int) -> "DatagramClient":
        loop = asyncio.get_running_loop()
        _, protocol = await loop.create_datagram_endpoint(cls, remote_addr=(host, port))
        return protocol

    @property
    def local_address(self) -> tuple[str, int]:
        return self.transport.get_extra_info("sockname")[:2]

    def send(self, data: bytes) -> None:
        self.transport.sendto(data)

    async def receive(self, timeout: float = 2.0) -> bytes:
        data, _ = await asyncio.wait_for(self.replies.get(), timeout)
        return data

    def close(self) -> None:
        self.transport.close()
