"""Client for the local control endpoint of the desktop meeting application."""

__version__ = "0.1.0"

from .client import MeetingClient
from .config import Settings, settings
from .errors import (
    DecodeError,
    HostUnavailable,
    NotConnectedError,
    ProtocolError,
    RemoteError,
    TeamsLocalError,
    TransportError,
)
from .events import Event, EventBus, EventType
from .protocol.constants import MeetingAction, ReactionType, TransportState, UiPanel

__all__ = [
    "DecodeError",
    "Event",
    "EventBus",
    "EventType",
    "HostUnavailable",
    "MeetingAction",
    "MeetingClient",
    "NotConnectedError",
    "ProtocolError",
    "ReactionType",
    "RemoteError",
    "Settings",
    "TeamsLocalError",
    "TransportError",
    "TransportState",
    "UiPanel",
    "settings",
]
