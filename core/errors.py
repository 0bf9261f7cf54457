"""dashctl error types."""

from __future__ import annotations


class DashctlError(RuntimeError):
    """Base dashctl error."""


class ConfigError(DashctlError):
    """Configuration could not be resolved."""


class StoreInitError(DashctlError):
    """The SQL store could not be opened or bootstrapped."""


class PluginError(DashctlError):
    """Plugin repository or plugin directory operation failed."""


class ValidationError(DashctlError):
    """Command arguments are missing or invalid."""


class CommandTreeError(DashctlError):
    """The static command tree violates a structural invariant."""
