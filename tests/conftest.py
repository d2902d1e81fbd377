import pytest
import pytest_asyncio
import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

from securityspy.cameras import Camera, Cameras


class FakeResponse:
    """Stands in for a streaming httpx.Response."""

    def __init__(self, chunks, hang=False, error=None):
        self.chunks = list(chunks)
        self.hang = hang
        self.error = error
        self.closed = False

    async def aiter_bytes(self):
        for chunk in self.chunks:
            yield chunk
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        if self.hang:
            # Like a live stream with nothing to say: blocks until cancelled.
            await asyncio.Event().wait()


class FakeServer:
    """
    Minimal server for the event watcher.

    Each connection attempt consumes the next entry of ``connections``: an
    exception is raised from the connect, a FakeResponse is streamed. When the
    list runs out, connections hang with no data.
    """

    def __init__(self, connections=None, cameras=None):
        self.connections = list(connections or [])
        self.cameras = cameras if cameras is not None else Cameras(
            [Camera(number=0, name="Porch"), Camera(number=1, name="Door")]
        )
        self.refresh = AsyncMock()
        self.attempts = 0
        self.requests = []
        self.responses = []

    @asynccontextmanager
    async def stream(self, path, params=None):
        self.attempts += 1
        self.requests.append((path, params))
        if self.connections:
            connection = self.connections.pop(0)
        else:
            connection = FakeResponse([], hang=True)
        if isinstance(connection, Exception):
            raise connection
        self.responses.append(connection)
        try:
            yield connection
        finally:
            connection.closed = True


@pytest.fixture
def cameras():
    return Cameras([Camera(number=0, name="Porch"), Camera(number=1, name="Door")])


@pytest.fixture
def fake_server():
    return FakeServer()


async def wait_until(predicate, timeout=2.0, interval=0.005):
    """Poll until predicate() is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)


@pytest_asyncio.fixture(scope="function", autouse=True)
async def cleanup_asyncio_tasks():
    """Automatically cancel all pending asyncio tasks at the end of each test."""
    yield

    try:
        current_task = asyncio.current_task()
        pending_tasks = [
            task
            for task in asyncio.all_tasks()
            if task != current_task and not task.done()
        ]

        if pending_tasks:
            for task in pending_tasks:
                task.cancel()
            await asyncio.gather(*pending_tasks, return_exceptions=True)

    except RuntimeError:
        # Event loop might already be closed
        pass


@pytest.fixture
def until():
    return wait_until


@pytest.fixture
def make_server():
    """Factory for FakeServer, for tests that script the connections."""
    return FakeServer


@pytest.fixture
def make_response():
    return FakeResponse
