"""
Configuration management for Netro.

Loads defaults from environment variables or a .env file.
"""

import os
from pathlib import Path
from dataclasses import dataclass

from dotenv import load_dotenv

# Check common locations for .env
ENV_LOCATIONS = [
    Path.home() / ".netro" / ".env",
    Path.home() / ".config" / "netro" / ".env",
    Path.cwd() / ".env",
]


def load_env_file() -> Path | None:
    """Load the first .env file found, returning its path."""
    for env_path in ENV_LOCATIONS:
        if env_path.exists():
            load_dotenv(env_path)
            return env_path
    return None


@dataclass
class NetroConfig:
    """Process-wide settings."""

    # nc
    default_timeout: str = "5s"

    # Logging
    log_level: str = "WARNING"
    log_file: str | None = None

    # Version metadata, normally stamped at build time
    build_date: str = "undefined"

    @classmethod
    def from_env(cls) -> "NetroConfig":
        """Load configuration from environment variables."""
        load_env_file()
        return cls(
            default_timeout=os.getenv("NETRO_TIMEOUT") or "5s",
            log_level=os.getenv("NETRO_LOG_LEVEL", "WARNING"),
            log_file=os.getenv("NETRO_LOG_FILE") or None,
            build_date=os.getenv("NETRO_BUILD_DATE", "undefined"),
        )


# Global config instance
_config: NetroConfig | None = None


def get_config() -> NetroConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = NetroConfig.from_env()
    return _config


def set_config(config: NetroConfig | None) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
