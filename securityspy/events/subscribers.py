"""
Delivery targets that can be bound to an event kind.

There are exactly two: a callback (plain function or coroutine function) and
a channel (an asyncio.Queue). The dispatcher only talks to them through
``deliver()``.
"""

import asyncio
import functools
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Union

from securityspy.models.event import Event

logger = logging.getLogger(__name__)

EventCallback = Callable[[Event], Union[None, Awaitable[None]]]


class Subscriber(ABC):
    """Base class for delivery targets."""

    @abstractmethod
    def deliver(self, event: Event, loop: asyncio.AbstractEventLoop) -> Optional[Any]:
        """
        Start delivering the event without waiting for the subscriber.

        Args:
            event: The event to deliver
            loop: The running event loop

        Returns:
            The task or future doing the delivery, or None if it already finished
        """
        pass


class CallbackSubscriber(Subscriber):
    """
    A function called with each matching event.

    Coroutine functions run as their own task. Plain functions run in the
    loop's default executor so a slow one cannot stall the event loop.
    """

    def __init__(self, callback: EventCallback):
        self.callback = callback
        self.is_coroutine = inspect.iscoroutinefunction(callback)

    def __repr__(self):
        name = getattr(self.callback, "__qualname__", repr(self.callback))
        return f"CallbackSubscriber({name})"

    def __eq__(self, other):
        return isinstance(other, CallbackSubscriber) and other.callback == self.callback

    def __hash__(self):
        return hash(self.callback)

    def deliver(self, event, loop):
        if self.is_coroutine:
            return loop.create_task(self.callback(event))
        return loop.run_in_executor(None, functools.partial(self.callback, event))


class ChannelSubscriber(Subscriber):
    """
    An asyncio.Queue that receives each matching event.

    Delivery never blocks the dispatcher and never drops: if the queue is
    full, a background task waits for room. Events that had to wait can reach
    the queue after later ones.
    """

    def __init__(self, channel: asyncio.Queue):
        self.channel = channel

    def __repr__(self):
        return f"ChannelSubscriber(maxsize={self.channel.maxsize})"

    def __eq__(self, other):
        return isinstance(other, ChannelSubscriber) and other.channel is self.channel

    def __hash__(self):
        return id(self.channel)

    def deliver(self, event, loop):
        try:
            self.channel.put_nowait(event)
            return None
        except asyncio.QueueFull:
            logger.warning(
                f"Channel full ({self.channel.qsize()} events), "
                f"delivering {event.kind} in the background"
            )
            return loop.create_task(self.channel.put(event))
