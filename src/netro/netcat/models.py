"""
Data model and errors for the netcat command.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import re
from dataclasses import dataclass
from enum import Enum


class NetcatError(Exception):
    """Base exception for netcat errors."""
    pass


class ConfigurationError(NetcatError):
    """Invalid request, rejected before any network I/O."""
    pass


class DialError(NetcatError):
    """Outbound connection could not be established."""
    pass


class TunnelError(NetcatError):
    """HTTP CONNECT handshake rejected or unparseable."""
    pass


class ListenerError(NetcatError):
    """Listening session terminated."""
    pass


class BindError(ListenerError):
    """Listening socket could not be bound."""
    pass


class AcceptError(ListenerError):
    """Accepting a connection failed; fatal to the listener."""
    pass


class DatagramError(ListenerError):
    """UDP listen socket failed to read or reply."""
    pass


class Protocol(str, Enum):
    """Network protocol."""
    TCP = "tcp"
    UDP = "udp"

    @classmethod
    def parse(cls, value: "str | Protocol") -> "Protocol":
        """Convert a user supplied protocol name, rejecting unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigurationError(f"unsupported protocol: {value}") from None

    @property
    def label(self) -> str:
        return self.value.upper()


def join_host_port(host: str, port: int | str) -> str:
    """Build a dial address string, bracketing IPv6 literals."""
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def parse_duration(duration_str: str) -> float:
    """Parse duration string like '500ms', '5s', '1m', '1.5' to seconds."""
    duration_str = duration_str.strip().lower()

    match = re.match(r'^(\d+(?:\.\d+)?)\s*(ms|s|sec|m|min|h|hr|hour)?$', duration_str)
    if not match:
        raise ValueError(f"Invalid duration format: {duration_str}")

    value = float(match.group(1))
    unit = match.group(2) or 's'

    if unit == 'ms':
        return value / 1000
    elif unit in ('m', 'min'):
        return value * 60
    elif unit in ('h', 'hr', 'hour'):
        return value * 3600
    else:
        return value


@dataclass(frozen=True)
class ConnectionRequest:
    """Outbound connection to probe."""
    host: str
    port: int
    protocol: Protocol = Protocol.TCP
    timeout: float = 5.0
    proxy: str | None = None  # HTTP proxy URL, TCP only

    @property
    def address(self) -> str:
        return join_host_port(self.host, self.port)


@dataclass(frozen=True)
class ListenRequest:
    """Local port to listen on."""
    port: int
    protocol: Protocol = Protocol.TCP
    host: str = ""  # Empty binds all interfaces

    @property
    def address(self) -> str:
        return join_host_port(self.host, self.port)


@dataclass
class ConnectionResult:
    """Outcome of a successful connection probe."""
    address: str
    protocol: Protocol
    proxy: str | None = None

    @property
    def message(self) -> str:
        if self.proxy:
            return f"Connected to {self.address} through HTTP proxy {self.proxy}"
        return f"Connected to {self.address} ({self.protocol.label})"
