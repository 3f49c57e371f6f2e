"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields.  A value
that is missing, empty or cannot be parsed falls back to its default
with a warning rather than aborting startup, so a typo in a port never
takes the process down.
"""

import logging
import math
import os
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_HTTP_HOST = "127.0.0.1"
DEFAULT_HTTP_PORT = 8087
DEFAULT_GRPC_HOST = "127.0.0.1"
DEFAULT_GRPC_PORT = 50055
DEFAULT_SHUTDOWN_GRACE_SECONDS = 5.0


def env_str(key: str, default: str) -> str:
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    return value.strip()


def env_int(key: str, default: int, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
    """Read an integer from the environment, falling back to ``default``.

    Values that are not integers or that fall outside
    ``[minimum, maximum]`` are ignored with a warning.
    """
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer, using %s", key, raw, default)
        return default
    if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
        logger.warning("Ignoring %s=%r: out of range, using %s", key, raw, default)
        return default
    return value


def env_float(key: str, default: float, minimum: Optional[float] = None) -> float:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number, using %s", key, raw, default)
        return default
    if not math.isfinite(value) or (minimum is not None and value < minimum):
        logger.warning("Ignoring %s=%r: out of range, using %s", key, raw, default)
        return default
    return value


def _port(key: str, default: int) -> int:
    return env_int(key, default, minimum=0, maximum=65535)


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Values are read when the instance is created, so tests can adjust
    the environment and build a fresh ``Settings()``.
    """

    project_name: str = field(default_factory=lambda: env_str("PROJECT_NAME", "User Directory"))
    api_version: str = field(default_factory=lambda: env_str("API_VERSION", "1.0.0"))
    log_level: str = field(default_factory=lambda: env_str("LOG_LEVEL", "INFO"))
    # Optional log file in addition to the console.
    log_file: str = field(default_factory=lambda: env_str("LOG_FILE", ""))

    # Listen addresses, one per protocol.
    http_host: str = field(default_factory=lambda: env_str("HTTP_HOST", DEFAULT_HTTP_HOST))
    http_port: int = field(default_factory=lambda: _port("HTTP_PORT", DEFAULT_HTTP_PORT))
    grpc_host: str = field(default_factory=lambda: env_str("GRPC_HOST", DEFAULT_GRPC_HOST))
    grpc_port: int = field(default_factory=lambda: _port("GRPC_PORT", DEFAULT_GRPC_PORT))

    # Single budget shared by both listeners during shutdown.
    shutdown_grace_seconds: float = field(
        default_factory=lambda: env_float("SHUTDOWN_GRACE_SECONDS", DEFAULT_SHUTDOWN_GRACE_SECONDS, minimum=0.0)
    )

    @property
    def http_address(self) -> str:
        return f"{self.http_host}:{self.http_port}"

    @property
    def grpc_address(self) -> str:
        return f"{self.grpc_host}:{self.grpc_port}"


def load_settings() -> Settings:
    """Read a fresh ``Settings`` from the current environment."""
    return Settings()
