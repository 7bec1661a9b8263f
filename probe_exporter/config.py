"""
Exporter configuration.

The configuration is built once at startup (see ``probe_exporter.cli``) and
handed to the orchestrator, the garbage collector and the HTTP app. It is
immutable; nothing in the package keeps module level settings.
"""

import re
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from .errors import ConfigurationError

DEFAULT_TIMEOUT = 59.0
DEFAULT_MAX_TIMEOUT = 300.0
DEFAULT_GC_INTERVAL = 60.0
DEFAULT_GC_MAX_AGE = 600.0

_DURATION_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: str) -> float:
    """
    Parse a duration string such as ``30s``, ``1m30s`` or ``500ms``.

    As with Go durations, a bare number is only accepted for zero.

    Args:
        value: Duration string

    Returns:
        Duration in seconds

    Raises:
        ValueError: If the string is not a valid duration
    """
    if value is None:
        raise ValueError("Empty duration")

    text = value.strip()
    if not text:
        raise ValueError("Empty duration")

    if text == "0":
        return 0.0

    total = 0.0
    position = 0
    for match in _DURATION_RE.finditer(text):
        if match.start() != position:
            raise ValueError(f"Invalid duration: {value}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()

    if position == 0 or position != len(text):
        raise ValueError(f"Invalid duration: {value}")

    return total


def split_listen_address(address: str) -> Tuple[str, int]:
    """
    Split ``host:port`` into its parts.

    Raises:
        ConfigurationError: If the address has no valid port
    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ConfigurationError(f"Invalid listen address: {address}. Expected 'host:port'")
    return host or "0.0.0.0", int(port)


@dataclass(frozen=True)
class ExporterConfig:
    """Immutable exporter settings."""
    request_timeout: float = DEFAULT_TIMEOUT
    max_request_timeout: float = DEFAULT_MAX_TIMEOUT
    region: Optional[str] = None
    flavor: str = "t3.small"
    image: Optional[str] = None
    internal_network: Optional[str] = None     # subnet id
    external_network: str = "amazon"           # public IPv4 pool
    security_group: Optional[str] = None
    user: str = "ubuntu"
    command: str = "uname -a"
    payload_size: int = 64 * 1024
    enable_instance: bool = True
    enable_objectstore: bool = True
    gc_enabled: bool = True
    gc_interval: float = DEFAULT_GC_INTERVAL
    gc_max_age: float = DEFAULT_GC_MAX_AGE
    listen_address: str = "127.0.0.1:9539"

    def validate(self) -> "ExporterConfig":
        """
        Check settings that would make the exporter misbehave.

        Returns:
            The configuration itself, for chaining

        Raises:
            ConfigurationError: If a setting is invalid
        """
        if self.request_timeout <= 0:
            raise ConfigurationError("Request timeout must be positive")

        if self.max_request_timeout < self.request_timeout:
            raise ConfigurationError(
                f"Maximum timeout ({self.max_request_timeout}s) is lower than "
                f"the default timeout ({self.request_timeout}s)"
            )

        # Resources of a probe still within its deadline must never be swept
        if self.gc_max_age <= self.max_request_timeout:
            raise ConfigurationError(
                f"Garbage collector max age ({self.gc_max_age}s) must exceed "
                f"the maximum request timeout ({self.max_request_timeout}s)"
            )

        if self.gc_interval <= 0:
            raise ConfigurationError("Garbage collector interval must be positive")

        if self.payload_size <= 0:
            raise ConfigurationError("Payload size must be positive")

        split_listen_address(self.listen_address)

        return self

    def resolve_timeout(self, override: Optional[str]) -> float:
        """
        Pick the timeout for one scrape.

        Invalid, empty or non-positive overrides fall back to the default;
        overrides above the maximum are clamped.
        """
        if not override:
            return self.request_timeout

        try:
            timeout = parse_duration(override)
        except ValueError:
            return self.request_timeout

        if timeout <= 0:
            return self.request_timeout

        return min(timeout, self.max_request_timeout)

    def with_overrides(self, **changes) -> "ExporterConfig":
        """Return a validated copy with some settings changed."""
        return replace(self, **changes).validate()
