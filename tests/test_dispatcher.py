"""Tests for handing events to subscribers."""

import asyncio
import threading
from datetime import datetime

import pytest

from securityspy.events.dispatcher import Dispatcher
from securityspy.events.registry import SubscriptionRegistry
from securityspy.models import Event, EventType, ParseError


def make_event(kind=EventType.MOTION, sequence_id=1):
    return Event(
        timestamp=datetime.now().astimezone(),
        sequence_id=sequence_id,
        kind=kind,
        message=kind.value,
    )


@pytest.fixture
def registry():
    return SubscriptionRegistry()


@pytest.fixture
def dispatcher(registry):
    return Dispatcher(registry)


class TestDispatcher:
    """Test fan-out rules and isolation."""

    @pytest.mark.asyncio
    async def test_fan_out_counts(self, registry, dispatcher):
        calls = []

        def make_callback(name):
            def callback(event):
                calls.append((name, event.kind))
            return callback

        for i in range(3):
            registry.bind_callback(EventType.MOTION, make_callback(f"motion{i}"))
        for i in range(2):
            registry.bind_callback(EventType.ALL, make_callback(f"all{i}"))
        registry.bind_callback(EventType.ONLINE, make_callback("online"))

        started = dispatcher.dispatch(make_event(EventType.MOTION))
        await dispatcher.drain(timeout=1)

        assert started == 5
        assert len(calls) == 5
        assert not any(name == "online" for name, _ in calls)

    @pytest.mark.asyncio
    async def test_coroutine_callbacks(self, registry, dispatcher):
        received = []

        async def callback(event):
            received.append(event.sequence_id)

        registry.bind_callback(EventType.OFFLINE, callback)
        dispatcher.dispatch(make_event(EventType.OFFLINE, 42))
        await dispatcher.drain(timeout=1)

        assert received == [42]

    @pytest.mark.asyncio
    async def test_unknown_bucket_only_for_unknown_events(self, registry, dispatcher):
        unknown = asyncio.Queue()
        registry.bind_channel(EventType.UNKNOWN, unknown)

        assert dispatcher.dispatch(make_event(EventType.MOTION)) == 0
        assert unknown.empty()

        dispatcher.dispatch(make_event(EventType.UNKNOWN, 7))
        event = unknown.get_nowait()
        assert event.sequence_id == 7

    @pytest.mark.asyncio
    async def test_all_channel_gets_every_kind_once(self, registry, dispatcher):
        channel = asyncio.Queue()
        registry.bind_channel(EventType.ALL, channel)

        dispatcher.dispatch(make_event(EventType.MOTION, 1))
        dispatcher.dispatch(make_event(EventType.STREAM_DISCONNECTED, 2))
        dispatcher.dispatch(make_event(EventType.ALL, 3))

        assert [channel.get_nowait().sequence_id for _ in range(3)] == [1, 2, 3]
        assert channel.empty()

    @pytest.mark.asyncio
    async def test_slow_subscriber_does_not_block(self, registry, dispatcher):
        release = threading.Event()
        fast = asyncio.Queue()

        def slow(event):
            release.wait(timeout=2)

        registry.bind_callback(EventType.MOTION, slow)
        registry.bind_channel(EventType.MOTION, fast)

        for i in range(3):
            dispatcher.dispatch(make_event(EventType.MOTION, i))

        assert fast.qsize() == 3
        assert dispatcher.pending >= 1

        release.set()
        await dispatcher.drain(timeout=2)
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_failing_subscriber_is_contained(self, registry, dispatcher):
        received = []

        async def broken(event):
            raise ValueError("subscriber bug")

        def sync_broken(event):
            raise RuntimeError("another bug")

        async def healthy(event):
            received.append(event.sequence_id)

        registry.bind_callback(EventType.ONLINE, broken)
        registry.bind_callback(EventType.ONLINE, sync_broken)
        registry.bind_callback(EventType.ONLINE, healthy)

        dispatcher.dispatch(make_event(EventType.ONLINE, 1))
        dispatcher.dispatch(make_event(EventType.ONLINE, 2))
        await dispatcher.drain(timeout=1)

        assert received == [1, 2]
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_full_channel_is_not_dropped(self, registry, dispatcher):
        channel = asyncio.Queue(maxsize=1)
        channel.put_nowait("placeholder")
        registry.bind_channel(EventType.MOTION, channel)

        dispatcher.dispatch(make_event(EventType.MOTION, 9))
        assert dispatcher.pending == 1

        assert channel.get_nowait() == "placeholder"
        await dispatcher.drain(timeout=1)
        assert channel.get_nowait().sequence_id == 9

    @pytest.mark.asyncio
    async def test_each_subscriber_gets_its_own_copy(self, registry, dispatcher):
        seen = []

        async def meddler(event):
            event.message = "changed"
            event.parse_errors.append(ParseError.UNKNOWN_EVENT)

        async def observer(event):
            seen.append((event.message, list(event.parse_errors)))

        channel = asyncio.Queue()
        registry.bind_callback(EventType.MOTION, meddler)
        registry.bind_callback(EventType.MOTION, observer)
        registry.bind_channel(EventType.ALL, channel)

        event = make_event(EventType.MOTION, 3)
        dispatcher.dispatch(event)
        await dispatcher.drain(timeout=1)

        assert seen == [("MOTION", [])]
        assert event.message == "MOTION"
        assert event.parse_errors == []
        delivered = channel.get_nowait()
        assert delivered is not event
        assert delivered == event
