"""Inbound stream processor: the single read loop of a socket.

Reads complete frames, decodes them and routes each field of a server
message: replies go to the dispatcher, refreshed tokens to the supervisor,
snapshots to the state synchronizer. When the loop ends because the socket
broke, it schedules a reconnect.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from ..events import EventBus, EventType
from ..errors import DecodeError, ProtocolError, RemoteError
from ..protocol.constants import (
    CLOSE_NORMAL,
    CLOSE_PROTOCOL_ERROR,
    NO_ACTIVE_CALL_SUFFIX,
    TransportState,
)
from ..protocol.messages import ServerMessage, decode_server_message
from ..protocol.transport import Transport
from ..state import StateSynchronizer

if TYPE_CHECKING:
    from .dispatcher import CommandDispatcher
    from .supervisor import ConnectionSupervisor

logger = logging.getLogger(__name__)


def is_no_active_call(error_msg: str) -> bool:
    """The host's "no active call" rejection, which is not worth surfacing."""
    return error_msg.rstrip().endswith(NO_ACTIVE_CALL_SUFFIX)


class InboundStreamProcessor:
    """Runs at most one read loop at a time."""

    def __init__(
        self,
        supervisor: "ConnectionSupervisor",
        dispatcher: "CommandDispatcher",
        synchronizer: StateSynchronizer,
        events: EventBus,
    ):
        self.supervisor = supervisor
        self.dispatcher = dispatcher
        self.synchronizer = synchronizer
        self.events = events
        self._receive_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    def start(self, transport: Transport) -> asyncio.Task:
        """Start the read loop for a freshly opened socket."""
        self._task = asyncio.create_task(self.run(transport))
        return self._task

    async def stop(self) -> None:
        task = self._task
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def run(self, transport: Transport) -> None:
        """Read until the socket closes or fails; cancellation exits quietly."""
        async with self._receive_lock:
            close_code: Optional[int] = None
            try:
                close_code = await self._read_loop(transport)
            except asyncio.CancelledError:
                logger.debug("Read loop cancelled")
                raise
            except ProtocolError as exc:
                if transport.closed_locally:
                    return
                logger.error("Protocol violation, closing socket: %s", exc)
                await transport.close(CLOSE_PROTOCOL_ERROR)
                self.supervisor.announce_disconnected(transport)
                self.supervisor.schedule_recovery(transport)
                return
            except Exception as exc:
                logger.error("Read loop failed: %s", exc, exc_info=True)

            self._after_loop(transport, close_code)

    def handle_frame(self, text: str) -> None:
        """Decode one text frame and route it; undecodable frames are dropped."""
        try:
            message = decode_server_message(text)
        except DecodeError as exc:
            logger.warning("Dropping undecodable frame: %s", exc)
            return
        self.dispatch(message)

    def dispatch(self, message: ServerMessage) -> None:
        request_id = message.request_id

        if message.is_success:
            self.dispatcher.complete(request_id, result=True)
            if request_id is not None:
                self.events.emit(EventType.SUCCESS_RECEIVED, request_id=request_id)

        if message.error_msg:
            if is_no_active_call(message.error_msg):
                logger.debug("Ignoring host error: %s", message.error_msg)
                self.dispatcher.complete(request_id, result=False)
            else:
                logger.warning("Host reported error: %s", message.error_msg)
                self.dispatcher.complete(
                    request_id, error=RemoteError(message.error_msg, request_id),
                )
                self.events.emit(
                    EventType.ERROR_RECEIVED,
                    message=message.error_msg,
                    request_id=request_id,
                )

        if message.token_refresh:
            self.supervisor.token = message.token_refresh
            logger.info("Received refreshed token")
            self.events.emit(EventType.TOKEN_RECEIVED, token=message.token_refresh)

        if message.meeting_update is not None:
            self.synchronizer.apply(message.meeting_update)

    # ---- internals ----

    async def _read_loop(self, transport: Transport) -> int:
        """Return the close code that ended the stream."""
        while True:
            frame = await transport.receive()
            if frame.is_close:
                return frame.close_code
            logger.debug("RX: %s", frame.text)
            self.handle_frame(frame.text)

    def _after_loop(self, transport: Transport, close_code: Optional[int]) -> None:
        if transport.closed_locally:
            return

        if close_code is not None:
            logger.info("Host closed the socket (code %d)", close_code)
            self.supervisor.announce_disconnected(transport)
            if close_code != CLOSE_NORMAL:
                self.supervisor.schedule_recovery(transport)
            return

        if transport.state not in (TransportState.OPEN, TransportState.CONNECTING):
            self.supervisor.announce_disconnected(transport)
            self.supervisor.schedule_recovery(transport)
