"""Shared fixtures: an in-memory host that hands out fake transports."""

import asyncio
import json
from typing import Any, Callable, Optional

import pytest
import pytest_asyncio

from teams_local.client import MeetingClient
from teams_local.config import Settings
from teams_local.errors import ProtocolError, TransportError
from teams_local.events import Event
from teams_local.protocol.constants import CLOSE_ABNORMAL, CLOSE_NORMAL, TransportState
from teams_local.protocol.messages import ClientMessage, decode_command
from teams_local.protocol.transport import Frame


class FakeTransport:
    """Transport double. Inbound frames are queued with push()/remote_close()."""

    def __init__(self, fail_open: bool = False, open_gate: Optional[asyncio.Event] = None):
        self.state = TransportState.NONE
        self.closed_locally = False
        self.fail_open = fail_open
        self.url: Optional[str] = None
        self.sent: list[str] = []
        self.close_codes: list[int] = []
        self.disposed = False
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.open_gate = open_gate
        self.send_gate: Optional[asyncio.Event] = None
        self.sends_in_flight = 0
        self.max_sends_in_flight = 0

    async def open(self, url: str) -> None:
        self.url = url
        self.state = TransportState.CONNECTING
        if self.open_gate is not None:
            await self.open_gate.wait()
        await asyncio.sleep(0)
        if self.closed_locally:
            raise TransportError("closed while connecting")
        if self.fail_open:
            self.state = TransportState.ABORTED
            raise TransportError("connection refused")
        self.state = TransportState.OPEN

    async def send(self, text: str) -> None:
        if self.state is not TransportState.OPEN:
            raise TransportError(f"send on {self.state.value} socket")
        self.sends_in_flight += 1
        self.max_sends_in_flight = max(self.max_sends_in_flight, self.sends_in_flight)
        try:
            if self.send_gate is not None:
                await self.send_gate.wait()
            self.sent.append(text)
        finally:
            self.sends_in_flight -= 1

    async def receive(self) -> Frame:
        frame = await self.inbox.get()
        if frame.is_close:
            if not self.closed_locally:
                if frame.close_code == CLOSE_ABNORMAL:
                    self.state = TransportState.ABORTED
                else:
                    self.state = TransportState.CLOSED
            return frame
        if not frame.text:
            raise ProtocolError("Empty frame")
        return frame

    async def close(self, code: int = CLOSE_NORMAL) -> None:
        self.closed_locally = True
        self.close_codes.append(code)
        if self.state in (TransportState.OPEN, TransportState.CONNECTING):
            self.state = TransportState.CLOSED
        self.inbox.put_nowait(Frame(close_code=code))

    async def wait_closed(self) -> None:
        return None

    async def dispose(self) -> None:
        self.disposed = True
        # Wakes a reader still blocked on this socket
        self.inbox.put_nowait(Frame(close_code=CLOSE_ABNORMAL))

    # ---- test helpers ----

    def push(self, message: Any) -> None:
        text = message if isinstance(message, str) else json.dumps(message)
        self.inbox.put_nowait(Frame(text=text))

    def remote_close(self, code: int = CLOSE_NORMAL) -> None:
        self.inbox.put_nowait(Frame(close_code=code))

    @property
    def commands(self) -> list[ClientMessage]:
        return [decode_command(text) for text in self.sent]


class FakeHost:
    """Stands in for the host application: presence flag plus socket factory."""

    def __init__(self) -> None:
        self.present = True
        self.fail_open = False
        self.open_gate: Optional[asyncio.Event] = None
        self.probes = 0
        self.transports: list[FakeTransport] = []

    def factory(self) -> FakeTransport:
        transport = FakeTransport(fail_open=self.fail_open, open_gate=self.open_gate)
        self.transports.append(transport)
        return transport

    async def probe(self) -> bool:
        self.probes += 1
        return self.present

    @property
    def current(self) -> FakeTransport:
        return self.transports[-1]

    @property
    def commands(self) -> list[ClientMessage]:
        return [cmd for transport in self.transports for cmd in transport.commands]


async def eventually(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        token=None,
        host_poll_interval=0.005,
        reply_timeout=0.5,
    )


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def make_client(host: FakeHost, test_settings: Settings):
    clients: list[MeetingClient] = []

    def _make(token: Optional[str] = "stored-token", **kwargs: Any) -> MeetingClient:
        kwargs.setdefault("settings", test_settings)
        client = MeetingClient(
            token,
            transport_factory=host.factory,
            host_probe=host.probe,
            **kwargs,
        )
        clients.append(client)
        return client

    yield _make


@pytest_asyncio.fixture
async def client(make_client) -> MeetingClient:
    c = make_client()
    yield c
    await c.close()


@pytest.fixture
def recorded():
    """Attach to a client and collect every event it emits."""

    def _attach(c: MeetingClient) -> list[Event]:
        events: list[Event] = []
        c.events.on_all(events.append)
        return events

    return _attach
