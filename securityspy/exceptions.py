"""
Exceptions raised by the securityspy client.

Nothing raised here escapes the event watcher: transport failures turn into
DISCONNECTED events and refresh failures into REFRESHFAIL events.
"""


class SecuritySpyError(Exception):
    """Base class for every error raised by this package."""


class RequestError(SecuritySpyError):
    """A request to the server failed or returned something unusable."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class CommandNotOKError(RequestError):
    """The server answered a command, but the reply did not end with OK."""


class WatcherError(SecuritySpyError):
    """The event watcher was used out of order (e.g. watch() while running)."""
