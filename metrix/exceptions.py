"""
Exception hierarchy for metrix.

Only configuration errors are fatal; everything raised below the scheduler is
caught and logged at the collector or cycle boundary.
"""

from typing import Optional


class MetrixError(Exception):
    """Base class for all metrix errors."""


class ConfigurationError(MetrixError):
    """Raised when the configuration file or CLI values are invalid."""


class InvalidConfigurationError(ConfigurationError, ValueError):
    """Raised when a component is constructed with invalid arguments."""


class SchedulerError(MetrixError, RuntimeError):
    """Raised on scheduler lifecycle misuse (e.g. restarting a stopped scheduler)."""


class EncodingError(MetrixError):
    """Raised when a metric cannot be encoded into the OTLP envelope."""


class CommandError(MetrixError):
    """Raised when an external command fails, is missing, or times out."""

    def __init__(self, command: str, message: str, exit_code: Optional[int] = None):
        self.command = command
        self.exit_code = exit_code
        super().__init__(f"{command}: {message}")
