"""
securityspy - asyncio client for the SecuritySpy video surveillance server.
"""

from .server import Server, ServerInfo
from .cameras import Camera, Cameras
from .events import EventWatcher, WatcherState
from .models import Event, EventType, ParseError
from .exceptions import SecuritySpyError, RequestError, CommandNotOKError, WatcherError
from .version import VERSION as __version__, FULL_VERSION as __version_full__

__all__ = [
    "Server",
    "ServerInfo",
    "Camera",
    "Cameras",
    "EventWatcher",
    "WatcherState",
    "Event",
    "EventType",
    "ParseError",
    "SecuritySpyError",
    "RequestError",
    "CommandNotOKError",
    "WatcherError",
    "__version__",
    "__version_full__",
]
