"""Command dispatcher: one outbound frame at a time, with request correlation."""

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Optional

from ..events import Event, EventBus, EventType
from ..errors import NotConnectedError, TransportError
from ..protocol.constants import MeetingAction, TransportState, WireEnum
from ..protocol.messages import build_command, encode_command
from ..protocol.transport import Transport

if TYPE_CHECKING:
    from .supervisor import ConnectionSupervisor

logger = logging.getLogger(__name__)


class CommandDispatcher:
    """Serializes commands onto the supervisor's current socket.

    Request ids come from a counter that only ever increases for the life
    of the dispatcher, across reconnects. Every call consumes one id, even
    if the send then fails.
    """

    def __init__(
        self,
        supervisor: "ConnectionSupervisor",
        events: EventBus,
        auto_connect: bool = True,
        reply_timeout: float = 10.0,
    ):
        self.supervisor = supervisor
        self.auto_connect = auto_connect
        self.reply_timeout = reply_timeout
        self._next_request_id = 1
        self._id_lock = threading.Lock()
        self._send_lock = asyncio.Lock()
        self._pending: dict[int, asyncio.Future] = {}
        events.on(EventType.DISCONNECTED, self._fail_pending)

    def next_request_id(self) -> int:
        with self._id_lock:
            request_id = self._next_request_id
            self._next_request_id += 1
            return request_id

    async def send_command(
        self,
        action: MeetingAction,
        parameter: Optional[WireEnum] = None,
        *,
        wait: bool = False,
        timeout: Optional[float] = None,
        ensure_connected: bool = True,
    ) -> Optional[bool]:
        """Send one command.

        With ``wait=True`` the call returns once the host replied to this
        request id: True on success, False for the benign "no active call"
        error. Other host errors raise RemoteError; no reply in time raises
        TransportError. With ``ensure_connected=False`` a missing or
        defunct socket raises NotConnectedError instead of reconnecting.
        """
        request_id = self.next_request_id()
        message = build_command(action, parameter, request_id)
        transport = await self._ready_transport(ensure_connected)
        text = encode_command(message)

        future: Optional[asyncio.Future] = None
        if wait:
            future = asyncio.get_running_loop().create_future()
            self._pending[request_id] = future

        try:
            async with self._send_lock:
                logger.debug("TX: %s", text)
                await transport.send(text)
        except BaseException:
            self._pending.pop(request_id, None)
            raise

        if future is None:
            return None

        timeout = timeout if timeout is not None else self.reply_timeout
        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError as exc:
            raise TransportError(
                f"No reply to {action.value} (request {request_id}) within {timeout}s"
            ) from exc
        finally:
            self._pending.pop(request_id, None)

    def complete(
        self,
        request_id: Optional[int],
        result: Optional[bool] = None,
        error: Optional[Exception] = None,
    ) -> None:
        """Resolve a request awaiting its reply; unknown ids are ignored."""
        if request_id is None:
            return
        future = self._pending.get(request_id)
        if future is None or future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    async def _ready_transport(self, ensure_connected: bool) -> Transport:
        supervisor = self.supervisor
        transport = supervisor.transport

        if transport is None:
            if not (ensure_connected and self.auto_connect):
                raise NotConnectedError("Not connected")
            await supervisor.connect(wait_for_host=True)
            transport = supervisor.transport
            if transport is None:
                raise NotConnectedError("Not connected")

        state = transport.state
        if state in (TransportState.ABORTED, TransportState.CLOSE_RECEIVED):
            if not ensure_connected:
                raise NotConnectedError(f"Connection {state.value}")
            await supervisor.recover(transport)
        elif state is TransportState.CONNECTING:
            if not ensure_connected:
                await supervisor.wait_open(transport)
            else:
                # Waits for the in-flight connect, including its initial commands
                await supervisor.connect(wait_for_host=True)
        elif state in (TransportState.CLOSE_SENT, TransportState.CLOSED, TransportState.NONE):
            raise NotConnectedError(f"Connection {state.value}")

        transport = supervisor.transport
        if transport is None or transport.state is not TransportState.OPEN:
            raise NotConnectedError("Not connected")
        return transport

    def _fail_pending(self, event: Event) -> None:
        pending = list(self._pending.values())
        for future in pending:
            if not future.done():
                future.set_exception(NotConnectedError("Connection closed before reply"))
