"""Socket transport for the control endpoint.

Provides a thin abstraction over the ``websockets`` asyncio client that
reports the RFC 6455 lifecycle as a TransportState and hands inbound
traffic back as complete Frames. The engine only talks to the Transport
protocol, so tests substitute an in-memory implementation.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.protocol import State

from ..errors import ProtocolError, TransportError
from .constants import CLOSE_ABNORMAL, CLOSE_NORMAL, TransportState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Frame:
    """One complete inbound message, or the close frame that ended the stream."""
    text: Optional[str] = None
    close_code: Optional[int] = None

    @property
    def is_close(self) -> bool:
        return self.close_code is not None


class Transport(Protocol):
    closed_locally: bool

    @property
    def state(self) -> TransportState: ...

    async def open(self, url: str) -> None: ...

    async def send(self, text: str) -> None: ...

    async def receive(self) -> Frame: ...

    async def close(self, code: int = CLOSE_NORMAL) -> None: ...

    async def wait_closed(self) -> None: ...

    async def dispose(self) -> None: ...


TransportFactory = Callable[[], Transport]


class WebSocketTransport:
    """Single text-message WebSocket connection."""

    def __init__(self, open_timeout: float = 10.0, close_timeout: float = 5.0):
        self.open_timeout = open_timeout
        self.close_timeout = close_timeout
        self.closed_locally = False
        self._ws: Optional[ClientConnection] = None
        self._state = TransportState.NONE

    @property
    def state(self) -> TransportState:
        if self._ws is None:
            return self._state

        protocol = self._ws.protocol
        ws_state = protocol.state
        if ws_state is State.OPEN:
            return TransportState.OPEN
        if ws_state is State.CONNECTING:
            return TransportState.CONNECTING
        if ws_state is State.CLOSING:
            if protocol.close_sent is not None and protocol.close_rcvd is None:
                return TransportState.CLOSE_SENT
            return TransportState.CLOSE_RECEIVED
        # Closed without a completed handshake means the link dropped
        if protocol.close_sent is not None and protocol.close_rcvd is not None:
            return TransportState.CLOSED
        return TransportState.ABORTED

    async def open(self, url: str) -> None:
        """Open the socket and complete the opening handshake."""
        if self._ws is not None or self._state is not TransportState.NONE:
            raise ProtocolError(f"Transport already used (state={self.state.value})")

        self._state = TransportState.CONNECTING
        try:
            self._ws = await connect(
                url,
                open_timeout=self.open_timeout,
                close_timeout=self.close_timeout,
                compression=None,
            )
        except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
            self._state = TransportState.ABORTED
            raise TransportError(f"Failed to open control socket: {exc}") from exc
        except BaseException:
            self._state = TransportState.ABORTED
            raise

        if self.closed_locally or self._state is TransportState.ABORTED:
            # Closed or disposed while the handshake was in flight
            await self._ws.close(CLOSE_NORMAL)
            raise TransportError("Control socket closed while connecting")

        logger.debug("Control socket open")

    async def send(self, text: str) -> None:
        """Write one complete text frame."""
        ws = self._require_socket()
        try:
            await ws.send(text)
        except (ConnectionClosed, OSError) as exc:
            raise TransportError(f"Send failed: {exc}") from exc

    async def receive(self) -> Frame:
        """Read the next message; a close yields a Frame carrying the close code."""
        ws = self._require_socket()
        try:
            message = await ws.recv()
        except ConnectionClosed as exc:
            code = exc.rcvd.code if exc.rcvd is not None else CLOSE_ABNORMAL
            return Frame(close_code=code)
        except OSError as exc:
            raise TransportError(f"Receive failed: {exc}") from exc

        if isinstance(message, bytes):
            raise ProtocolError(f"Unexpected binary frame ({len(message)} bytes)")
        if not message:
            raise ProtocolError("Empty frame")
        return Frame(text=message)

    async def close(self, code: int = CLOSE_NORMAL) -> None:
        """Start the closing handshake and wait for it to finish."""
        self.closed_locally = True
        if self._ws is None:
            return
        await self._ws.close(code)

    async def wait_closed(self) -> None:
        if self._ws is not None:
            await self._ws.wait_closed()

    async def dispose(self) -> None:
        """Release the socket, dropping the TCP connection if still up."""
        if self._ws is None:
            if self._state is TransportState.CONNECTING:
                self._state = TransportState.ABORTED
            return
        final = self.state
        if self._ws.protocol.state is not State.CLOSED:
            self._ws.transport.abort()
            final = TransportState.ABORTED
        self._ws = None
        self._state = final

    def _require_socket(self) -> ClientConnection:
        if self._ws is None:
            raise TransportError(f"Socket not open (state={self._state.value})")
        return self._ws
