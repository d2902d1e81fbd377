import asyncio
import logging
from typing import List, Set

from securityspy.events.registry import SubscriptionRegistry
from securityspy.events.subscribers import Subscriber
from securityspy.models.event import Event, EventType

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Hands events to the subscribers bound in a registry.

    Every delivery is started and left running: the dispatcher does not wait
    for subscribers, and an exception in one is logged and goes no further.
    Each subscriber gets its own copy of the event.
    """

    def __init__(self, registry: SubscriptionRegistry):
        self.registry = registry
        self._pending: Set[asyncio.Future] = set()

    def targets(self, event: Event) -> List[Subscriber]:
        """
        Subscribers that should receive an event, in delivery order.

        The event's own kind first (for unknown events that is the UNKNOWN
        bucket), then everything bound to ALL.
        """
        targets = self.registry.subscribers(event.kind)
        if event.kind != EventType.ALL:
            targets += self.registry.subscribers(EventType.ALL)
        return targets

    def dispatch(self, event: Event) -> int:
        """
        Start delivering an event to every matching subscriber.

        Must be called from the event loop thread.

        Returns:
            Number of deliveries started
        """
        loop = asyncio.get_running_loop()
        targets = self.targets(event)
        for subscriber in targets:
            try:
                pending = subscriber.deliver(event.copy(), loop)
            except Exception as e:
                logger.error(f"Failed to deliver {event.kind} to {subscriber!r}: {e}")
                continue
            if pending is not None:
                self._pending.add(pending)
                pending.add_done_callback(self._delivery_done(subscriber, event))

        logger.debug(f"Dispatched {event.kind} #{event.sequence_id} to {len(targets)} subscribers")
        return len(targets)

    def _delivery_done(self, subscriber: Subscriber, event: Event):
        def done(future: asyncio.Future):
            self._pending.discard(future)
            if future.cancelled():
                return
            error = future.exception()
            if error is not None:
                logger.error(
                    f"Subscriber {subscriber!r} raised on {event.kind} event: {error!r}",
                    exc_info=error,
                )

        return done

    @property
    def pending(self) -> int:
        """Deliveries that have been started and not finished."""
        return len(self._pending)

    async def drain(self, timeout: float = None, exclude=None) -> None:
        """Wait for the deliveries started so far to finish, except ``exclude``."""
        waiting = [f for f in self._pending if f is not exclude]
        if not waiting:
            return
        _, not_done = await asyncio.wait(waiting, timeout=timeout)
        if not_done:
            logger.warning(f"{len(not_done)} subscriber deliveries still running")
