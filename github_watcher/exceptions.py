"""Error types raised by the watcher."""


class WatcherError(Exception):
    """Base class for all watcher errors."""


class ConfigError(WatcherError, ValueError):
    """Missing or invalid settings."""


class InvalidConfig(ConfigError):
    """Raised when a settings payload fails validation."""


class ActivitySourceError(WatcherError):
    """A single read against GitHub failed."""

    def __init__(self, message, resource=None):
        super().__init__(message)
        self.resource = resource


class TransportError(ActivitySourceError):
    """Network failure, timeout or non-success status."""

    def __init__(self, message, resource=None, status_code=None):
        super().__init__(message, resource)
        self.status_code = status_code


class DecodeError(ActivitySourceError):
    """The response body was not the payload we expected."""


class DispatchError(WatcherError):
    """The alert sink rejected an alert."""


class LifecycleError(WatcherError):
    """An Enable/Disable transition was attempted out of order."""
