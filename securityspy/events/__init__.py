"""Event stream: framing, parsing, subscriptions, dispatch and the watcher."""

from .framer import iter_records
from .parser import parse_event
from .subscribers import Subscriber, CallbackSubscriber, ChannelSubscriber
from .registry import SubscriptionRegistry
from .dispatcher import Dispatcher
from .watcher import EventWatcher, WatcherState, EVENT_BUFFER

__all__ = [
    "iter_records",
    "parse_event",
    "Subscriber",
    "CallbackSubscriber",
    "ChannelSubscriber",
    "SubscriptionRegistry",
    "Dispatcher",
    "EventWatcher",
    "WatcherState",
    "EVENT_BUFFER",
]
