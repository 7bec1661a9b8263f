"""
Exception hierarchy shared by probes, providers and the garbage collector.
"""

from typing import Optional


class ProbeExporterError(Exception):
    """Base class for every error raised by the exporter."""


class ConfigurationError(ProbeExporterError):
    """Invalid configuration or missing provider credentials."""


class ProviderError(ProbeExporterError):
    """A call to the cloud provider was rejected or failed."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class DeadlineExceeded(ProbeExporterError):
    """The shared scrape deadline fired before the probe finished."""


class VerificationError(ProbeExporterError):
    """Downloaded payload differs from the uploaded one."""


class ShellError(ProbeExporterError):
    """Remote shell session could not be opened or the command failed."""
