"""
Shared test fixtures for the live session service.

Provides:
- Fake clock for time accounting and guard expiry
- Fake control api (start/stop with scripted failures)
- Fake websocket connector driven from the test
- Settings with short timers
"""

import asyncio
import json

import pytest

from arlo.config import Settings
from arlo.services.control import ControlAPI, ControlError, StartOptions
from arlo.services.guard import ExpiringKeyStore, start_guards
from arlo.services.notify import Notifier


class FakeClock:
    def __init__(self, now: int = 1_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int):
        self.now += ms


class FakeControl(ControlAPI):
    def __init__(self):
        self.start_calls: list[StartOptions] = []
        self.stop_calls = 0
        self.start_error: ControlError | None = None
        self.stop_error: ControlError | None = None
        self.start_gate: asyncio.Event | None = None

    async def start(self, options: StartOptions) -> dict:
        self.start_calls.append(options)
        if self.start_gate is not None:
            await self.start_gate.wait()
        if self.start_error is not None:
            raise self.start_error
        return {}

    async def stop(self) -> dict:
        self.stop_calls += 1
        if self.stop_error is not None:
            raise self.stop_error
        return {}


class FakeSocket:
    """stands in for a websockets connection: the test pushes frames into
    `incoming`, pushing None closes the connection from the server side."""

    def __init__(self, url: str):
        self.url = url
        self.sent: list[dict] = []
        self.closed = False
        self.incoming: asyncio.Queue = asyncio.Queue()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.closed = True
        return False

    async def send(self, data: str):
        self.sent.append(json.loads(data))

    async def close(self):
        self.closed = True
        self.incoming.put_nowait(None)

    def push(self, message):
        if message is not None and not isinstance(message, (str, BaseException)):
            message = json.dumps(message)
        self.incoming.put_nowait(message)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self.incoming.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class FakeConnector:
    def __init__(self):
        self.sockets: list[FakeSocket] = []

    def __call__(self, url: str) -> FakeSocket:
        sock = FakeSocket(url)
        self.sockets.append(sock)
        return sock

    @property
    def latest(self) -> FakeSocket:
        return self.sockets[-1]

    @property
    def open_sockets(self) -> list[FakeSocket]:
        return [s for s in self.sockets if not s.closed]


async def wait_until(predicate, timeout: float = 1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


def segment_message(seg_id: str, t_start_ms: int, text: str = "hello", speaker: str = "Alice") -> dict:
    return {
        "type": "transcript.segment",
        "data": {"segment": {"id": seg_id, "tStartMs": t_start_ms, "speakerLabel": speaker, "text": text}},
    }


@pytest.fixture(autouse=True)
def clear_start_guards():
    start_guards.clear()
    yield
    start_guards.clear()


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(
        page_url="https://arlo.example.com",
        reconnect_delay_ms=50,
        verification_window_ms=50,
        auto_start_delay_ms=20,
        start_guard_ttl_ms=3000,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def guards(clock) -> ExpiringKeyStore:
    return ExpiringKeyStore(clock=clock)


@pytest.fixture
def control() -> FakeControl:
    return FakeControl()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def notifier(fast_settings) -> Notifier:
    return Notifier(fast_settings)
