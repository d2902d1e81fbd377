"""
Event stream watcher.

Keeps a streaming GET open against ++eventStream, turns every record into an
Event and hands it to the subscribers bound for its kind. The connection is
re-opened after any failure until stop() is called. Link health and refresh
results are reported to subscribers as events of their own (CONNECTED,
DISCONNECTED, REFRESH, REFRESHFAIL).

Three tasks run while watch() is active:

* the reader opens the stream, frames and parses records and queues events;
* the control task fires the periodic refresh;
* watch() itself takes events off the queue and dispatches them.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from securityspy.events.dispatcher import Dispatcher
from securityspy.events.framer import iter_records
from securityspy.events.parser import parse_event
from securityspy.events.registry import SubscriptionRegistry
from securityspy.exceptions import WatcherError
from securityspy.models.event import (
    CONNECTED_ID,
    CUSTOM_ID,
    DISCONNECTED_ID,
    REFRESH_FAILED_ID,
    REFRESHED_ID,
    Event,
    EventType,
)

logger = logging.getLogger(__name__)

EVENT_STREAM_PATH = "++eventStream"
EVENT_STREAM_VERSION = "3"
# Events queued between the reader and the dispatcher. A full queue makes the
# reader wait; nothing is dropped.
EVENT_BUFFER = 10000
REFRESH_TIMEOUT = 10.0
# How long stop() lets in-flight subscriber deliveries finish.
DRAIN_TIMEOUT = 5.0
CONNECTION_CLOSED = "Connection Closed"

_STOP = object()


class WatcherState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    STOPPING = "stopping"

    def __str__(self) -> str:
        return self.value


class EventWatcher:
    """
    Watches the server's event stream and fires bound callbacks and channels.

    Args:
        server: Object providing ``stream(path, params)`` (async context
            manager yielding a response with ``aiter_bytes()``), an async
            ``refresh()`` and a ``cameras`` registry with ``by_num()``.
            Normally a securityspy.Server.

    Example:
        >>> watcher = server.events
        >>> watcher.bind_callback(EventType.MOTION, on_motion)
        >>> task = asyncio.create_task(watcher.watch(retry_interval=10))
        >>> # ... later ...
        >>> await watcher.stop()
    """

    def __init__(self, server: Any):
        self.server = server
        self.registry = SubscriptionRegistry()
        self.dispatcher = Dispatcher(self.registry)

        self.retry_interval = 10.0
        self.refresh_interval = 0.0
        self.refresh_on_config_change = False

        self._state = WatcherState.IDLE
        self._running = False
        self._queue: Optional[asyncio.Queue] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._idle_event: Optional[asyncio.Event] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._control_task: Optional[asyncio.Task] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._stopper: Optional[asyncio.Task] = None
        self._response = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._response is not None

    # Binding, delegated to the registry so callers only need the watcher.

    def bind_callback(self, kind: EventType, callback) -> None:
        """Call ``callback(event)`` for every event of this kind. None is ignored."""
        self.registry.bind_callback(kind, callback)

    def bind_channel(self, kind: EventType, channel: asyncio.Queue) -> None:
        """Put every event of this kind on ``channel``. None is ignored."""
        self.registry.bind_channel(kind, channel)

    def unbind(self, kind: EventType) -> None:
        self.registry.unbind(kind)

    def unbind_callbacks(self, kind: EventType) -> None:
        self.registry.unbind_callbacks(kind)

    def unbind_channels(self, kind: EventType) -> None:
        self.registry.unbind_channels(kind)

    def unbind_all(self) -> None:
        self.registry.unbind_all()

    async def watch(
        self,
        retry_interval: float = 10.0,
        refresh_interval: float = 0.0,
        refresh_on_config_change: bool = False,
    ) -> None:
        """
        Connect to the event stream and dispatch events until stop() is called.

        If a previous watch() is still shutting down, this waits for it to
        finish before connecting.

        Args:
            retry_interval: Seconds to wait before reconnecting after a failure
            refresh_interval: Seconds between server refreshes, 0 to disable
            refresh_on_config_change: Also refresh when a CONFIGCHANGE arrives

        Raises:
            WatcherError: If this watcher is already running
        """
        while True:
            if self._running:
                raise WatcherError("Event watcher is already running")
            previous = self._idle_event
            if previous is None or previous.is_set():
                break
            logger.info("Waiting for the previous watch to finish stopping")
            await previous.wait()

        self.retry_interval = retry_interval
        self.refresh_interval = refresh_interval
        self.refresh_on_config_change = refresh_on_config_change

        self._running = True
        self._queue = asyncio.Queue(maxsize=EVENT_BUFFER)
        stop_event = self._stop_event = asyncio.Event()
        idle_event = self._idle_event = asyncio.Event()
        self._state = WatcherState.CONNECTING

        logger.info(
            f"Starting event watcher (retry every {retry_interval}s, "
            f"refresh every {refresh_interval or 'never'}s)"
        )

        reader_task = self._reader_task = asyncio.create_task(self._read_loop())
        control_task = self._control_task = asyncio.create_task(self._control_loop())

        try:
            await self._dispatch_loop()
        finally:
            self._running = False
            self._state = WatcherState.STOPPING
            stop_event.set()
            try:
                tasks = [
                    t
                    for t in (reader_task, control_task, self._refresh_task)
                    if t is not None and not t.done()
                ]
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                # A subscriber that called stop() is still running; do not wait on it.
                await self.dispatcher.drain(timeout=DRAIN_TIMEOUT, exclude=self._stopper)
            finally:
                if self._idle_event is idle_event:
                    self._stopper = None
                    self._reader_task = None
                    self._control_task = None
                    self._refresh_task = None
                    self._response = None
                    self._state = WatcherState.IDLE
                idle_event.set()
                logger.info("Event watcher stopped")

    async def stop(self) -> None:
        """
        Disconnect from the event stream and end watch().

        Events already read are still dispatched; nothing fires after this
        returns. A second caller waits for the same shutdown. Does nothing if
        the watcher is idle.
        """
        idle_event = self._idle_event
        if not self._running:
            if idle_event is not None and not idle_event.is_set():
                await idle_event.wait()
            return

        logger.info("Stopping event watcher")
        self._state = WatcherState.STOPPING
        self._stopper = asyncio.current_task()
        self._running = False
        self._stop_event.set()

        # Cancelling the reader exits its `async with` and closes the response.
        if self._reader_task is not None:
            self._reader_task.cancel()

        await self._queue.put(_STOP)
        await idle_event.wait()

    async def inject_custom_event(self, camera_num: int, message: str) -> None:
        """
        Fire a CUSTOM event into the running watcher.

        Subscribers bound to CUSTOM (and ALL) receive it like any other event.
        Ignored when the watcher is not running.
        """
        await self._emit(EventType.CUSTOM, CUSTOM_ID, message, camera_num)

    async def _emit(self, kind: EventType, sequence_id: int, message: str, camera_num: int = -1):
        if not self._running:
            return
        await self._queue.put(self._make_event(kind, sequence_id, message, camera_num))

    def _make_event(self, kind, sequence_id, message, camera_num) -> Event:
        now = datetime.now().astimezone().replace(microsecond=0)
        camera = self._lookup_camera(camera_num) if camera_num >= 0 else None
        return Event(
            timestamp=now,
            received=now,
            sequence_id=sequence_id,
            kind=kind,
            message=f"{kind.value} {message}".rstrip(),
            camera=camera,
        )

    def _lookup_camera(self, number: int):
        cameras = getattr(self.server, "cameras", None)
        if cameras is None:
            return None
        return cameras.by_num(number)

    async def _dispatch_loop(self) -> None:
        """Take events off the queue and dispatch them until the stop marker."""
        while True:
            event = await self._queue.get()
            if event is _STOP:
                break

            if event.kind == EventType.CONFIG_CHANGE and self.refresh_on_config_change:
                self._start_refresh()

            try:
                self.dispatcher.dispatch(event)
            except Exception as e:
                logger.error(f"Error dispatching {event.kind} event: {e}", exc_info=True)

    async def _read_loop(self) -> None:
        """Connect, read until the stream breaks, wait, repeat."""
        while self._running:
            self._state = WatcherState.CONNECTING
            reason = CONNECTION_CLOSED
            try:
                async with self.server.stream(
                    EVENT_STREAM_PATH, {"version": EVENT_STREAM_VERSION}
                ) as response:
                    self._response = response
                    self._state = WatcherState.STREAMING
                    logger.info("Connected to event stream")
                    await self._emit(
                        EventType.STREAM_CONNECTED,
                        CONNECTED_ID,
                        EventType.STREAM_CONNECTED.description,
                    )
                    async for record in iter_records(response.aiter_bytes()):
                        event = parse_event(record, self._lookup_camera)
                        await self._queue.put(event)
                logger.info("Event stream closed by server")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                reason = str(e) or type(e).__name__
                logger.error(f"Event stream connection failed: {reason}")
            finally:
                self._response = None

            if not self._running:
                break

            self._state = WatcherState.CONNECTING
            await self._emit(EventType.STREAM_DISCONNECTED, DISCONNECTED_ID, reason)
            if await self._wait_for_stop(self.retry_interval):
                break
            logger.info("Reconnecting to event stream")

    async def _control_loop(self) -> None:
        """Fire a refresh every refresh_interval seconds until stopped."""
        if not self.refresh_interval or self.refresh_interval <= 0:
            await self._stop_event.wait()
            return

        while not await self._wait_for_stop(self.refresh_interval):
            self._start_refresh()

    async def _wait_for_stop(self, timeout: float) -> bool:
        """Sleep up to timeout seconds. True if stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    def _start_refresh(self) -> None:
        if self._refresh_task is not None and not self._refresh_task.done():
            logger.debug("Refresh already running, skipping")
            return
        self._refresh_task = asyncio.create_task(self._refresh())

    async def _refresh(self) -> None:
        """Refresh the server state and report the outcome as an event."""
        try:
            await asyncio.wait_for(self.server.refresh(), timeout=REFRESH_TIMEOUT)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            reason = str(e) or type(e).__name__
            logger.warning(f"Server refresh failed: {reason}")
            await self._emit(EventType.REFRESH_FAILED, REFRESH_FAILED_ID, reason)
            return

        logger.debug("Server refresh succeeded")
        await self._emit(
            EventType.REFRESHED, REFRESHED_ID, EventType.REFRESHED.description
        )
