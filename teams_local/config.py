"""Client configuration using Pydantic Settings."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from . import __version__
from .protocol.client_info import ClientInfo
from .protocol.constants import DEFAULT_HOST, DEFAULT_PORT, PROTOCOL_VERSION


class Settings(BaseSettings):
    """Client settings loaded from environment variables and .env file."""

    # Endpoint
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    protocol_version: str = PROTOCOL_VERSION

    # Identity shown in the host's paired devices list
    manufacturer: str = "Elgato"
    device: str = "Stream Deck"
    app: str = "teams-local-api"
    app_version: str = __version__

    # Credential issued by the host after pairing (None = pair on connect)
    token: Optional[str] = None

    # Timing (seconds)
    host_poll_interval: float = 1.0
    open_timeout: float = 10.0
    close_timeout: float = 5.0
    reply_timeout: float = 10.0

    # CLI
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="TEAMS_LOCAL_", env_file=".env", extra="ignore")

    def client_info(self, token: Optional[str] = None) -> ClientInfo:
        return ClientInfo(
            manufacturer=self.manufacturer,
            device=self.device,
            app=self.app,
            app_version=self.app_version,
            token=token if token is not None else self.token,
            protocol_version=self.protocol_version,
        )


settings = Settings()
