"""
HTTP CONNECT tunnel negotiation.

Asks an HTTP proxy, with the CONNECT method, to splice a TCP connection
through to a target address. Once the proxy answers 200 the stream is a
raw byte pipe to the target.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import python_socks
from python_socks.async_.asyncio.v2 import Proxy

from netro.netcat.models import ConfigurationError, DialError, TunnelError, join_host_port

logger = logging.getLogger(__name__)

DEFAULT_PROXY_PORT = 80


@dataclass
class TunnelSession:
    """An established CONNECT tunnel.

    The caller owns the stream and is responsible for closing it.
    """
    stream: Any
    proxy_url: str
    target: str

    @property
    def reader(self) -> asyncio.StreamReader:
        return self.stream.reader

    @property
    def writer(self) -> asyncio.StreamWriter:
        return self.stream.writer

    async def close(self) -> None:
        """Close the tunnel."""
        await self.stream.close()


def parse_proxy_url(proxy_url: str) -> tuple[str, int]:
    """
    Split a proxy URL into host and port.

    Args:
        proxy_url: URL of the form http://host[:port]

    Returns:
        Tuple of (host, port)

    Raises:
        ConfigurationError: If the URL is malformed or not plain HTTP
    """
    parsed = urlparse(proxy_url)

    if parsed.scheme.lower() != "http":
        scheme = parsed.scheme or "missing"
        raise ConfigurationError(f"invalid proxy URL: {proxy_url} (unsupported scheme: {scheme})")
    if not parsed.hostname:
        raise ConfigurationError(f"invalid proxy URL: {proxy_url} (missing host)")

    try:
        port = parsed.port
    except ValueError as e:
        raise ConfigurationError(f"invalid proxy URL: {proxy_url} ({e})") from None
    if port is None:
        port = DEFAULT_PROXY_PORT
    elif port == 0:
        raise ConfigurationError(f"invalid proxy URL: {proxy_url} (port 0)")

    return parsed.hostname, port


def encode_target_host(host: str) -> str:
    """
    Return the ASCII form of a target host for the CONNECT request line.

    Internationalized names are converted with IDNA, the same encoding
    the resolver applies to a direct connection.

    Raises:
        ConfigurationError: If the name cannot be IDNA-encoded
    """
    if host.isascii():
        return host
    try:
        return host.encode("idna").decode("ascii")
    except UnicodeError as e:
        raise ConfigurationError(f"invalid target host: {host!r} ({e})") from None


async def negotiate_tunnel(proxy_url: str, host: str, port: int, timeout: float) -> TunnelSession:
    """
    Open a CONNECT tunnel to host:port through an HTTP proxy.

    The timeout bounds the whole negotiation: proxy dial, request and reply.

    Args:
        proxy_url: Proxy URL (http://host:port)
        host: Target host
        port: Target port
        timeout: Timeout in seconds

    Returns:
        TunnelSession with the open stream

    Raises:
        ConfigurationError: Malformed proxy URL or target host
        DialError: Proxy unreachable or negotiation timed out
        TunnelError: Proxy refused the tunnel or sent garbage
    """
    proxy_host, proxy_port = parse_proxy_url(proxy_url)
    dest_host = encode_target_host(host)
    target = join_host_port(host, port)

    http_proxy = Proxy(
        proxy_type=python_socks.ProxyType.HTTP,
        host=proxy_host,
        port=proxy_port,
    )

    logger.debug(f"Sending CONNECT {target} to proxy {proxy_host}:{proxy_port}")
    try:
        stream = await http_proxy.connect(dest_host=dest_host, dest_port=port, timeout=timeout)
    except python_socks.ProxyConnectionError as e:
        raise DialError(f"failed to connect to proxy: {e}") from e
    except python_socks.ProxyTimeoutError as e:
        raise DialError(f"failed to connect to proxy: timed out after {timeout:g}s") from e
    except python_socks.ProxyError as e:
        if e.error_code is not None:
            raise TunnelError(f"proxy connection failed: {e}") from e
        raise TunnelError(f"failed to read proxy response: {e}") from e
    except OSError as e:
        raise TunnelError(f"failed to read proxy response: {e}") from e

    logger.debug(f"Proxy {proxy_host}:{proxy_port} opened a tunnel to {target}")
    return TunnelSession(stream=stream, proxy_url=proxy_url, target=target)
