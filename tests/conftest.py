"""
Pytest configuration and shared fixtures for Netro tests.

Provides:
- In-memory local streams standing in for stdin/stdout
- Capturing rich consoles
- Config and logging isolation between tests
"""

import io
import logging

import pytest
from rich.console import Console

from netro.config import NetroConfig, set_config
from netro.logging_config import reset_error_stats
from support import QueueStreams


@pytest.fixture(autouse=True)
def isolated_config():
    """Use default configuration, ignoring any .env file or environment."""
    set_config(NetroConfig())
    reset_error_stats()
    yield
    set_config(None)
    netro_logger = logging.getLogger("netro")
    for handler in list(netro_logger.handlers):
        netro_logger.removeHandler(handler)
        handler.close()
    netro_logger.propagate = True
    netro_logger.setLevel(logging.NOTSET)


@pytest.fixture
def local_streams() -> QueueStreams:
    """In-memory stand-in for stdin/stdout."""
    return QueueStreams()


@pytest.fixture
def output() -> io.StringIO:
    """Buffer capturing console output."""
    return io.StringIO()


@pytest.fixture
def console(output: io.StringIO) -> Console:
    """Console writing plain text to the output buffer."""
    return Console(file=output, width=200, highlight=False, color_system=None)
