"""Client identity presented to the host when the socket is opened."""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

from .constants import DEFAULT_HOST, DEFAULT_PORT, PROTOCOL_VERSION


@dataclass
class ClientInfo:
    """Identity and credential used to build the endpoint URL.

    ``token`` is the only mutable part: it is replaced when the host pushes
    a refreshed credential and read again on every connect.
    """
    manufacturer: str
    device: str
    app: str
    app_version: str
    token: Optional[str] = None
    protocol_version: str = PROTOCOL_VERSION

    def server_url(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> str:
        """Build ``ws://host:port?protocol-version=...&...[&token=...]``."""
        query = {
            "protocol-version": self.protocol_version,
            "manufacturer": self.manufacturer,
            "device": self.device,
            "app": self.app,
            "app-version": self.app_version,
        }
        if self.token is not None:
            query["token"] = self.token
        return f"ws://{host}:{port}?{urlencode(query)}"
