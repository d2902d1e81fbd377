"""
securityspy utilities

Configuration loading and the reader/writer lock used by the event registry.
"""

from .config import (
    Config,
    ServerConfig,
    EventsConfig,
    LoggingConfig,
    load_config,
    save_config,
)
from .locking import ReadWriteLock

__all__ = [
    'Config',
    'ServerConfig',
    'EventsConfig',
    'LoggingConfig',
    'load_config',
    'save_config',
    'ReadWriteLock',
]
