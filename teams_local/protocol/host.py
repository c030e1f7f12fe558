"""Host presence probe.

The host is considered present when its loopback control port accepts a
TCP connection. Callers may supply any other async probe instead.
"""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

HostProbe = Callable[[], Awaitable[bool]]


async def is_port_open(host: str, port: int, timeout: float = 1.0) -> bool:
    """Check whether something is listening on host:port."""
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port), timeout=timeout,
        )
    except (ConnectionRefusedError, OSError, asyncio.TimeoutError):
        return False

    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


def port_probe(host: str, port: int, timeout: float = 1.0) -> HostProbe:
    """Build a HostProbe bound to one endpoint."""

    async def probe() -> bool:
        present = await is_port_open(host, port, timeout)
        logger.debug("Host probe %s:%d -> %s", host, port, present)
        return present

    return probe
