"""Tests for the websockets transport against a loopback server."""

import asyncio
import socket

import pytest
from websockets.asyncio.server import serve

from teams_local.errors import ProtocolError, TransportError
from teams_local.protocol.constants import CLOSE_GOING_AWAY, CLOSE_NORMAL, TransportState
from teams_local.protocol.host import is_port_open, port_probe
from teams_local.protocol.transport import Frame, WebSocketTransport


def _free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def _echo(ws):
    async for message in ws:
        await ws.send(message)


async def _say_goodbye(ws):
    await ws.close(CLOSE_GOING_AWAY, "shutting down")


async def _send_binary(ws):
    await ws.send(b"\x00\x01")
    await ws.wait_closed()


async def _never_upgrade(reader, writer):
    await reader.read()
    writer.close()


def _url(server) -> str:
    port = server.sockets[0].getsockname()[1]
    return f"ws://127.0.0.1:{port}?protocol-version=2.0.0"


class TestWebSocketTransport:
    @pytest.mark.asyncio
    async def test_round_trip_and_close(self):
        async with serve(_echo, "127.0.0.1", 0) as server:
            transport = WebSocketTransport(open_timeout=2, close_timeout=2)
            assert transport.state is TransportState.NONE

            await transport.open(_url(server))
            assert transport.state is TransportState.OPEN

            await transport.send('{"action":"mute","requestId":1}')
            assert await transport.receive() == Frame(text='{"action":"mute","requestId":1}')

            await transport.close(CLOSE_NORMAL)
            assert transport.closed_locally
            assert transport.state is TransportState.CLOSED

            await transport.dispose()
            assert transport.state is TransportState.CLOSED

    @pytest.mark.asyncio
    async def test_remote_close_code(self):
        async with serve(_say_goodbye, "127.0.0.1", 0) as server:
            transport = WebSocketTransport(open_timeout=2, close_timeout=2)
            await transport.open(_url(server))

            frame = await transport.receive()
            assert frame.is_close
            assert frame.close_code == CLOSE_GOING_AWAY
            assert not transport.closed_locally
            await transport.dispose()

    @pytest.mark.asyncio
    async def test_binary_frame_is_protocol_error(self):
        async with serve(_send_binary, "127.0.0.1", 0) as server:
            transport = WebSocketTransport(open_timeout=2, close_timeout=2)
            await transport.open(_url(server))
            with pytest.raises(ProtocolError):
                await transport.receive()
            await transport.close()
            await transport.dispose()

    @pytest.mark.asyncio
    async def test_cancelled_handshake_aborts(self):
        server = await asyncio.start_server(_never_upgrade, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        try:
            transport = WebSocketTransport(open_timeout=5, close_timeout=1)
            task = asyncio.create_task(transport.open(f"ws://127.0.0.1:{port}"))
            await asyncio.sleep(0.1)
            assert transport.state is TransportState.CONNECTING

            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            assert transport.state is TransportState.ABORTED
            await transport.dispose()
            assert transport.state is TransportState.ABORTED
        finally:
            server.close()

    @pytest.mark.asyncio
    async def test_refused(self):
        transport = WebSocketTransport(open_timeout=2, close_timeout=2)
        with pytest.raises(TransportError):
            await transport.open(f"ws://127.0.0.1:{_free_port()}")
        assert transport.state is TransportState.ABORTED

    @pytest.mark.asyncio
    async def test_single_use(self):
        async with serve(_echo, "127.0.0.1", 0) as server:
            transport = WebSocketTransport(open_timeout=2, close_timeout=2)
            await transport.open(_url(server))
            with pytest.raises(ProtocolError):
                await transport.open(_url(server))
            await transport.close()

    @pytest.mark.asyncio
    async def test_send_before_open(self):
        with pytest.raises(TransportError):
            await WebSocketTransport().send("{}")

    @pytest.mark.asyncio
    async def test_dispose_drops_open_socket(self):
        async with serve(_echo, "127.0.0.1", 0) as server:
            transport = WebSocketTransport(open_timeout=2, close_timeout=2)
            await transport.open(_url(server))
            await transport.dispose()
            assert transport.state is TransportState.ABORTED


class TestHostProbe:
    @pytest.mark.asyncio
    async def test_listening_port(self):
        async with serve(_echo, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            assert await is_port_open("127.0.0.1", port)
            assert await port_probe("127.0.0.1", port)()

    @pytest.mark.asyncio
    async def test_closed_port(self):
        assert not await is_port_open("127.0.0.1", _free_port(), timeout=0.5)
