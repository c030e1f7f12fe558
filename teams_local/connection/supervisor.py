"""Connection supervisor: owns the one socket and drives its lifecycle.

The transport handle is replaced, never mutated, on every (re)connect, so
any reader of ``transport`` sees either the old or the new socket. Only one
connect sequence runs at a time.
"""

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Coroutine, Optional

from ..events import EventBus, EventType
from ..errors import ProtocolError, TeamsLocalError
from ..protocol.client_info import ClientInfo
from ..protocol.constants import (
    CLOSE_NORMAL,
    DEFAULT_HOST,
    DEFAULT_PORT,
    MeetingAction,
    TransportState,
)
from ..protocol.host import HostProbe
from ..protocol.transport import Transport, TransportFactory

if TYPE_CHECKING:
    from .dispatcher import CommandDispatcher
    from .receiver import InboundStreamProcessor

logger = logging.getLogger(__name__)

# Poll interval while a socket finishes its opening handshake
OPEN_POLL_INTERVAL = 0.025


class ConnectionSupervisor:
    """Connect, disconnect and recover the control socket."""

    def __init__(
        self,
        client_info: ClientInfo,
        events: EventBus,
        transport_factory: TransportFactory,
        host_probe: HostProbe,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        host_poll_interval: float = 1.0,
    ):
        self.client_info = client_info
        self.events = events
        self.transport_factory = transport_factory
        self.host_probe = host_probe
        self.host = host
        self.port = port
        self.host_poll_interval = host_poll_interval
        self.receiver: Optional["InboundStreamProcessor"] = None
        self.dispatcher: Optional["CommandDispatcher"] = None

        self._transport: Optional[Transport] = None
        self._connected_transport: Optional[Transport] = None
        self._connect_lock = asyncio.Lock()
        self._token_lock = threading.Lock()
        self._tasks: set[asyncio.Task] = set()

    def bind(self, receiver: "InboundStreamProcessor", dispatcher: "CommandDispatcher") -> None:
        """Attach the collaborators started and used right after a socket opens."""
        self.receiver = receiver
        self.dispatcher = dispatcher

    # ---- queries ----

    @property
    def transport(self) -> Optional[Transport]:
        return self._transport

    @property
    def state(self) -> TransportState:
        transport = self._transport
        return transport.state if transport is not None else TransportState.NONE

    @property
    def is_connected(self) -> bool:
        return self.state is TransportState.OPEN

    @property
    def token(self) -> Optional[str]:
        with self._token_lock:
            return self.client_info.token

    @token.setter
    def token(self, value: Optional[str]) -> None:
        with self._token_lock:
            self.client_info.token = value

    # ---- lifecycle ----

    async def connect(self, wait_for_host: bool = True) -> bool:
        """Open the socket if needed.

        Returns False without error when the host is absent and
        ``wait_for_host`` is False, True once a socket is open.
        Raises TransportError if the socket cannot be opened.
        """
        async with self._connect_lock:
            return await self._connect_locked(wait_for_host)

    async def disconnect(self) -> None:
        """Close the socket with a normal-closure handshake and release it.

        DISCONNECTED is only emitted for a socket that was announced as
        CONNECTED, so a socket dropped mid-handshake produces neither event.
        """
        transport = self._transport
        if transport is None:
            return

        initial = transport.state
        try:
            if initial in (TransportState.OPEN, TransportState.CONNECTING):
                logger.info("Closing control socket")
                await transport.close(CLOSE_NORMAL)
            elif initial is TransportState.CLOSE_SENT:
                await transport.wait_closed()
        finally:
            await transport.dispose()
            if self._transport is transport:
                self._transport = None

        if initial is not TransportState.CLOSED:
            self.announce_disconnected(transport)

    async def reconnect(self, wait_for_host: bool = True) -> bool:
        """Disconnect, then connect again."""
        async with self._connect_lock:
            await self.disconnect()
            return await self._connect_locked(wait_for_host)

    async def recover(self, failed: Transport) -> bool:
        """Reconnect after ``failed`` broke, unless it was already replaced."""
        async with self._connect_lock:
            if self._transport is not failed:
                logger.debug("Socket already replaced; skipping recovery")
                return self.is_connected
            logger.info("Recovering control socket (state=%s)", failed.state.value)
            await self.disconnect()
            return await self._connect_locked(True)

    async def wait_open(self, transport: Transport) -> None:
        while transport.state is TransportState.CONNECTING:
            await asyncio.sleep(OPEN_POLL_INTERVAL)

    def announce_disconnected(self, transport: Transport) -> None:
        """Emit DISCONNECTED once for a socket that was announced as connected."""
        if self._connected_transport is not transport:
            return
        self._connected_transport = None
        logger.info("Disconnected from host")
        self.events.emit(EventType.DISCONNECTED)

    def spawn(self, coro: Coroutine) -> asyncio.Task:
        """Run a background coroutine owned by this supervisor."""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def schedule_recovery(self, failed: Transport) -> asyncio.Task:
        return self.spawn(self._recover_in_background(failed))

    async def shutdown(self) -> None:
        """Cancel background work and close the socket."""
        current = asyncio.current_task()
        tasks = [t for t in self._tasks if t is not current]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self.receiver is not None:
            await self.receiver.stop()
        await self.disconnect()

    # ---- internals ----

    async def _connect_locked(self, wait_for_host: bool) -> bool:
        transport = self._transport
        if transport is not None and transport.state is TransportState.OPEN:
            return True

        if not await self._wait_for_host(wait_for_host):
            logger.info("Host application not running; not connecting")
            return False

        if transport is not None:
            state = transport.state
            if state is TransportState.CONNECTING:
                await self.wait_open(transport)
                return transport.state is TransportState.OPEN
            if state in (TransportState.CLOSE_SENT, TransportState.CLOSE_RECEIVED):
                await transport.wait_closed()
            await self.disconnect()

        transport = self.transport_factory()
        self._transport = transport

        logger.info("Connecting to %s:%d", self.host, self.port)
        try:
            await transport.open(self.client_info.server_url(self.host, self.port))
            await self.wait_open(transport)
        except BaseException:
            # Failed or cancelled handshake leaves no handle behind
            await transport.dispose()
            if self._transport is transport:
                self._transport = None
            raise

        if transport.state is not TransportState.OPEN:
            raise ProtocolError(f"Invalid state after connect: {transport.state.value}")

        logger.info("Connected to host")
        self._connected_transport = transport
        self.events.emit(EventType.CONNECTED)

        if self.receiver is not None:
            self.receiver.start(transport)
        if self.dispatcher is not None:
            if self.token is None:
                await self.dispatcher.send_command(MeetingAction.PAIR, ensure_connected=False)
            await self.dispatcher.send_command(MeetingAction.QUERY_STATE, ensure_connected=False)
        return True

    async def _wait_for_host(self, wait_for_host: bool) -> bool:
        if await self.host_probe():
            return True
        if not wait_for_host:
            return False

        logger.info("Waiting for host application...")
        while not await self.host_probe():
            await asyncio.sleep(self.host_poll_interval)
        return True

    async def _recover_in_background(self, failed: Transport) -> None:
        try:
            await self.recover(failed)
        except TeamsLocalError as exc:
            logger.error("Automatic reconnect failed: %s", exc)
