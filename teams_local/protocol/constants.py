"""Protocol constants for the meeting application's local control API.

Every action and parameter has a stable wire token. Code refers to the
enum members; only the token values ever appear on the socket.
"""

from enum import Enum

from ..errors import DecodeError

# Endpoint defaults
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8124
PROTOCOL_VERSION = "2.0.0"

# Close status codes (RFC 6455 section 7.4.1)
CLOSE_NORMAL = 1000
CLOSE_GOING_AWAY = 1001
CLOSE_PROTOCOL_ERROR = 1002
CLOSE_ABNORMAL = 1006

# Reply markers
RESPONSE_SUCCESS = "Success"

# Error text the host sends when a meeting command arrives outside a call.
# Matched by suffix; the wording is tied to the host's protocol version.
NO_ACTIVE_CALL_SUFFIX = "no active call"


class WireEnum(str, Enum):
    """String enum whose values are wire tokens."""

    @classmethod
    def from_wire(cls, token: str) -> "WireEnum":
        """Look up a member by its wire token, raising DecodeError if unknown."""
        try:
            return cls(token)
        except ValueError:
            raise DecodeError(f"Unknown {cls.__name__} token: {token!r}") from None

    def __str__(self) -> str:
        return self.value


class MeetingAction(WireEnum):
    """Actions accepted by the host."""
    PAIR = "pair"
    QUERY_STATE = "query-state"

    MUTE = "mute"
    UNMUTE = "unmute"
    TOGGLE_MUTE = "toggle-mute"

    HIDE_VIDEO = "hide-video"
    SHOW_VIDEO = "show-video"
    TOGGLE_VIDEO = "toggle-video"

    UNBLUR_BACKGROUND = "unblur-background"
    BLUR_BACKGROUND = "blur-background"
    TOGGLE_BLUR_BACKGROUND = "toggle-background-blur"

    LOWER_HAND = "lower-hand"
    RAISE_HAND = "raise-hand"
    TOGGLE_HAND = "toggle-hand"

    STOP_RECORDING = "stop-recording"
    START_RECORDING = "start-recording"
    TOGGLE_RECORDING = "toggle-recording"

    LEAVE_CALL = "leave-call"
    SEND_REACTION = "send-reaction"
    TOGGLE_UI = "toggle-ui"
    STOP_SHARING = "stop-sharing"


class ReactionType(WireEnum):
    """Parameter of SEND_REACTION."""
    APPLAUSE = "applause"
    LAUGH = "laugh"
    LIKE = "like"
    LOVE = "love"
    WOW = "wow"


class UiPanel(WireEnum):
    """Parameter of TOGGLE_UI."""
    CHAT = "chat"
    SHARING_TRAY = "sharing-tray"


# Parameter type each action requires (actions not listed take none)
ACTION_PARAMETERS: dict[MeetingAction, type[WireEnum]] = {
    MeetingAction.SEND_REACTION: ReactionType,
    MeetingAction.TOGGLE_UI: UiPanel,
}


class TransportState(Enum):
    """Lifecycle of a single socket, mirroring the WebSocket close handshake."""
    NONE = "none"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSE_SENT = "close_sent"
    CLOSE_RECEIVED = "close_received"
    CLOSED = "closed"
    ABORTED = "aborted"


# States in which a transport can never carry traffic again
DEFUNCT_STATES = {
    TransportState.NONE,
    TransportState.CLOSED,
    TransportState.ABORTED,
}
