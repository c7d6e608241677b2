"""Custom exception types for the proxyspeed application."""


class ProxySpeedError(Exception):
    """Base exception class for all application-specific errors."""

    pass


class ConfigError(ProxySpeedError):
    """Raised when a test request or settings value is out of range."""

    pass


class LoadError(ProxySpeedError):
    """Raised when a proxy catalog cannot be loaded.

    Covers malformed YAML, a provider using the reserved name, an invalid
    proxy entry and a duplicate proxy name inside one source.
    """

    pass


class RegistrationError(ProxySpeedError):
    """Raised for duplicate or invalid unlock detector registrations."""

    pass


class TunnelError(ProxySpeedError):
    """Raised when a proxy tunnel cannot be opened."""

    pass
