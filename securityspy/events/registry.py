import asyncio
import logging
from typing import Dict, List, Optional

from securityspy.events.subscribers import (
    CallbackSubscriber,
    ChannelSubscriber,
    EventCallback,
    Subscriber,
)
from securityspy.models.event import EventType
from securityspy.utils.locking import ReadWriteLock

logger = logging.getLogger(__name__)


class SubscriptionRegistry:
    """
    Maps event kinds to the subscribers bound to them.

    Subscribers of one kind are kept in the order they were bound, which is
    the order they are handed events. Lookups take a read lock and return a
    copy, so the dispatcher never iterates a list that bind/unbind is changing.
    """

    def __init__(self):
        self._lock = ReadWriteLock()
        self._subscribers: Dict[EventType, List[Subscriber]] = {}

    def bind_callback(self, kind: EventType, callback: Optional[EventCallback]) -> None:
        """Bind a function (or coroutine function) to an event kind. None is ignored."""
        if callback is None:
            return
        self._bind(EventType(kind), CallbackSubscriber(callback))

    def bind_channel(self, kind: EventType, channel: Optional[asyncio.Queue]) -> None:
        """
        Bind an asyncio.Queue to an event kind. None is ignored.

        Give the queue room (or no maxsize); a full queue makes deliveries
        wait in background tasks.
        """
        if channel is None:
            return
        self._bind(EventType(kind), ChannelSubscriber(channel))

    def _bind(self, kind: EventType, subscriber: Subscriber) -> None:
        with self._lock.write_locked():
            self._subscribers.setdefault(kind, []).append(subscriber)
        logger.debug(f"Bound {subscriber!r} to {kind}")

    def unbind(self, kind: EventType) -> None:
        """Remove every callback and channel bound to a kind."""
        with self._lock.write_locked():
            self._subscribers.pop(EventType(kind), None)

    def unbind_callbacks(self, kind: EventType) -> None:
        """Remove the callbacks bound to a kind, keeping its channels."""
        self._remove_type(EventType(kind), CallbackSubscriber)

    def unbind_channels(self, kind: EventType) -> None:
        """Remove the channels bound to a kind, keeping its callbacks."""
        self._remove_type(EventType(kind), ChannelSubscriber)

    def _remove_type(self, kind, subscriber_type) -> None:
        with self._lock.write_locked():
            remaining = [
                s
                for s in self._subscribers.get(kind, [])
                if not isinstance(s, subscriber_type)
            ]
            if remaining:
                self._subscribers[kind] = remaining
            else:
                self._subscribers.pop(kind, None)

    def unbind_all(self) -> None:
        """Remove every binding for every kind."""
        with self._lock.write_locked():
            self._subscribers = {}

    def subscribers(self, kind: EventType) -> List[Subscriber]:
        """Snapshot of the subscribers bound to a kind, in bind order."""
        with self._lock.read_locked():
            return list(self._subscribers.get(kind, ()))

    def count(self, kind: EventType) -> int:
        with self._lock.read_locked():
            return len(self._subscribers.get(kind, ()))

    def kinds(self) -> List[EventType]:
        with self._lock.read_locked():
            return list(self._subscribers)
