"""
Configuration management for PingScope.

Loads probe timeouts and service endpoints from environment variables
or a .env file.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Check common locations for .env
env_locations = [
    Path.home() / ".pingscope" / ".env",
    Path.home() / ".config" / "pingscope" / ".env",
    Path.cwd() / ".env",
]
for env_path in env_locations:
    if env_path.exists():
        load_dotenv(env_path)
        break


# Fixed probe timing (milliseconds)
SCAN_TIMEOUT_MS = 500
WARMUP_TIMEOUT_MS = 100
TRACE_TIMEOUT_MS = 1000
DEFAULT_MAX_HOPS = 30

WARMUP_ADDRESS = "127.0.0.1"

# ip-api.com free endpoint (no key, HTTP only)
GEO_API_URL = "http://ip-api.com/json"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class DiagConfig:
    """Diagnostics configuration."""

    # Geolocation service
    geo_api_url: str = GEO_API_URL
    geo_timeout: float = 5.0

    # Raw sockets need root/CAP_NET_RAW; datagram ICMP sockets do not
    privileged: bool = False

    scan_timeout_ms: int = SCAN_TIMEOUT_MS
    trace_timeout_ms: int = TRACE_TIMEOUT_MS
    max_hops: int = DEFAULT_MAX_HOPS

    @classmethod
    def from_env(cls) -> "DiagConfig":
        """Load configuration from environment variables."""
        return cls(
            geo_api_url=os.getenv("PINGSCOPE_GEO_API_URL", GEO_API_URL),
            geo_timeout=float(os.getenv("PINGSCOPE_GEO_TIMEOUT", "5.0")),
            privileged=_env_bool("PINGSCOPE_PRIVILEGED"),
            scan_timeout_ms=int(os.getenv("PINGSCOPE_SCAN_TIMEOUT_MS", str(SCAN_TIMEOUT_MS))),
            trace_timeout_ms=int(os.getenv("PINGSCOPE_TRACE_TIMEOUT_MS", str(TRACE_TIMEOUT_MS))),
            max_hops=int(os.getenv("PINGSCOPE_MAX_HOPS", str(DEFAULT_MAX_HOPS))),
        )


# Global config instance
_config: DiagConfig | None = None


def get_config() -> DiagConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = DiagConfig.from_env()
    return _config


def set_config(config: DiagConfig | None) -> None:
    """Set the global configuration instance (None resets to env defaults)."""
    global _config
    _config = config
