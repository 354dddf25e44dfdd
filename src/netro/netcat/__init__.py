"""
Netcat module for TCP/UDP connection probes and listen-mode relays.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

from netro.netcat.core import Listener, initiate
from netro.netcat.models import (
    AcceptError,
    BindError,
    ConfigurationError,
    ConnectionRequest,
    ConnectionResult,
    DatagramError,
    DialError,
    ListenerError,
    ListenRequest,
    NetcatError,
    Protocol,
    TunnelError,
)
from netro.netcat.relay import DatagramEchoHandler, StdioStreams, relay
from netro.netcat.tunnel import TunnelSession, negotiate_tunnel

__all__ = [
    "AcceptError",
    "BindError",
    "ConfigurationError",
    "ConnectionRequest",
    "ConnectionResult",
    "DatagramEchoHandler",
    "DatagramError",
    "DialError",
    "Listener",
    "ListenerError",
    "ListenRequest",
    "NetcatError",
    "Protocol",
    "StdioStreams",
    "TunnelError",
    "TunnelSession",
    "initiate",
    "negotiate_tunnel",
    "relay",
]
