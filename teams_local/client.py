"""Meeting control client.

Wires the connection engine together and exposes the command surface used
by controllers: connection management, boolean state setters that only
send when the value changes, toggles, reactions and UI panels.
"""

import logging
from typing import Optional

from .config import Settings, settings as default_settings
from .connection import CommandDispatcher, ConnectionSupervisor, InboundStreamProcessor
from .events import EventBus, EventType, Listener
from .protocol.constants import MeetingAction, ReactionType, TransportState, UiPanel, WireEnum
from .protocol.host import HostProbe, port_probe
from .protocol.transport import TransportFactory, WebSocketTransport
from .state import StateSynchronizer

logger = logging.getLogger(__name__)


class MeetingClient:
    """Client for the meeting application's local control endpoint.

    Args:
        token: Stored credential; overrides ``settings.token``. When no
            token is known the client pairs on connect and reports the
            issued credential through TOKEN_RECEIVED.
        settings: Configuration (defaults to the module settings).
        auto_connect: Connect on demand when a command is issued with no
            socket. When False such commands raise NotConnectedError.
        transport_factory: Builds a fresh Transport per connect.
        host_probe: Async callable reporting whether the host is running.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        auto_connect: bool = True,
        transport_factory: Optional[TransportFactory] = None,
        host_probe: Optional[HostProbe] = None,
    ):
        self.settings = settings or default_settings
        cfg = self.settings

        if transport_factory is None:
            def transport_factory() -> WebSocketTransport:
                return WebSocketTransport(cfg.open_timeout, cfg.close_timeout)

        self.events = EventBus()
        self.state = StateSynchronizer(self.events)
        self.supervisor = ConnectionSupervisor(
            cfg.client_info(token),
            self.events,
            transport_factory,
            host_probe or port_probe(cfg.host, cfg.port),
            host=cfg.host,
            port=cfg.port,
            host_poll_interval=cfg.host_poll_interval,
        )
        self.dispatcher = CommandDispatcher(
            self.supervisor,
            self.events,
            auto_connect=auto_connect,
            reply_timeout=cfg.reply_timeout,
        )
        self.receiver = InboundStreamProcessor(
            self.supervisor, self.dispatcher, self.state, self.events,
        )
        self.supervisor.bind(self.receiver, self.dispatcher)

    async def __aenter__(self) -> "MeetingClient":
        await self.connect(wait_for_host=True)
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ---- events ----

    def on(self, event_type: EventType, listener: Listener) -> None:
        self.events.on(event_type, listener)

    def off(self, event_type: EventType, listener: Listener) -> None:
        self.events.off(event_type, listener)

    # ---- connection ----

    @property
    def token(self) -> Optional[str]:
        return self.supervisor.token

    @property
    def connection_state(self) -> TransportState:
        return self.supervisor.state

    @property
    def is_connected(self) -> bool:
        return self.supervisor.is_connected

    async def connect(self, wait_for_host: bool = True) -> bool:
        return await self.supervisor.connect(wait_for_host)

    async def disconnect(self) -> None:
        await self.supervisor.disconnect()

    async def reconnect(self, wait_for_host: bool = True) -> bool:
        return await self.supervisor.reconnect(wait_for_host)

    async def close(self) -> None:
        """Stop background tasks and disconnect."""
        await self.supervisor.shutdown()

    async def send_command(
        self,
        action: MeetingAction,
        parameter: Optional[WireEnum] = None,
        *,
        wait: bool = False,
        timeout: Optional[float] = None,
    ) -> Optional[bool]:
        return await self.dispatcher.send_command(action, parameter, wait=wait, timeout=timeout)

    # ---- meeting state ----

    @property
    def is_muted(self) -> bool:
        return self.state.get("is_muted")

    @property
    def is_video_on(self) -> bool:
        return self.state.get("is_video_on")

    @property
    def is_hand_raised(self) -> bool:
        return self.state.get("is_hand_raised")

    @property
    def is_in_meeting(self) -> bool:
        return self.state.get("is_in_meeting")

    @property
    def is_recording_on(self) -> bool:
        return self.state.get("is_recording_on")

    @property
    def is_background_blurred(self) -> bool:
        return self.state.get("is_background_blurred")

    @property
    def is_sharing(self) -> bool:
        return self.state.get("is_sharing")

    @property
    def has_unread_messages(self) -> bool:
        return self.state.get("has_unread_messages")

    # ---- permissions ----

    @property
    def can_toggle_mute(self) -> bool:
        return self.state.get("can_toggle_mute")

    @property
    def can_toggle_video(self) -> bool:
        return self.state.get("can_toggle_video")

    @property
    def can_toggle_hand(self) -> bool:
        return self.state.get("can_toggle_hand")

    @property
    def can_toggle_blur(self) -> bool:
        return self.state.get("can_toggle_blur")

    @property
    def can_leave(self) -> bool:
        return self.state.get("can_leave")

    @property
    def can_react(self) -> bool:
        return self.state.get("can_react")

    @property
    def can_toggle_share_tray(self) -> bool:
        return self.state.get("can_toggle_share_tray")

    @property
    def can_toggle_chat(self) -> bool:
        return self.state.get("can_toggle_chat")

    @property
    def can_stop_sharing(self) -> bool:
        return self.state.get("can_stop_sharing")

    @property
    def can_pair(self) -> bool:
        return self.state.get("can_pair")

    # ---- setters ----

    async def set_muted(self, value: bool) -> bool:
        return await self._set_flag("is_muted", value, MeetingAction.MUTE, MeetingAction.UNMUTE)

    async def set_video(self, value: bool) -> bool:
        return await self._set_flag(
            "is_video_on", value, MeetingAction.SHOW_VIDEO, MeetingAction.HIDE_VIDEO,
        )

    async def set_hand_raised(self, value: bool) -> bool:
        return await self._set_flag(
            "is_hand_raised", value, MeetingAction.RAISE_HAND, MeetingAction.LOWER_HAND,
        )

    async def set_background_blurred(self, value: bool) -> bool:
        return await self._set_flag(
            "is_background_blurred", value,
            MeetingAction.BLUR_BACKGROUND, MeetingAction.UNBLUR_BACKGROUND,
        )

    async def set_recording(self, value: bool) -> bool:
        return await self._set_flag(
            "is_recording_on", value,
            MeetingAction.START_RECORDING, MeetingAction.STOP_RECORDING,
        )

    async def set_sharing(self, value: bool) -> bool:
        """Open the sharing tray (True) or stop the current share (False)."""
        if self.is_sharing == value:
            return False
        if value:
            await self.toggle_sharing_tray()
        else:
            await self.stop_sharing()
        return True

    # ---- commands ----

    async def pair(self) -> None:
        await self.send_command(MeetingAction.PAIR)

    async def query_state(self) -> None:
        await self.send_command(MeetingAction.QUERY_STATE)

    update_state = query_state

    async def leave_call(self) -> None:
        await self.send_command(MeetingAction.LEAVE_CALL)

    async def toggle_mute(self) -> None:
        await self.send_command(MeetingAction.TOGGLE_MUTE)

    async def toggle_video(self) -> None:
        await self.send_command(MeetingAction.TOGGLE_VIDEO)

    async def toggle_hand(self) -> None:
        await self.send_command(MeetingAction.TOGGLE_HAND)

    async def toggle_background_blur(self) -> None:
        await self.send_command(MeetingAction.TOGGLE_BLUR_BACKGROUND)

    async def toggle_recording(self) -> None:
        await self.send_command(MeetingAction.TOGGLE_RECORDING)

    async def toggle_chat(self) -> None:
        await self.send_command(MeetingAction.TOGGLE_UI, UiPanel.CHAT)

    async def toggle_sharing_tray(self) -> None:
        await self.send_command(MeetingAction.TOGGLE_UI, UiPanel.SHARING_TRAY)

    async def stop_sharing(self) -> None:
        await self.send_command(MeetingAction.STOP_SHARING)

    async def send_reaction(self, reaction: ReactionType) -> None:
        await self.send_command(MeetingAction.SEND_REACTION, reaction)

    async def react_applause(self) -> None:
        await self.send_reaction(ReactionType.APPLAUSE)

    async def react_laugh(self) -> None:
        await self.send_reaction(ReactionType.LAUGH)

    async def react_like(self) -> None:
        await self.send_reaction(ReactionType.LIKE)

    async def react_love(self) -> None:
        await self.send_reaction(ReactionType.LOVE)

    async def react_wow(self) -> None:
        await self.send_reaction(ReactionType.WOW)

    async def _set_flag(
        self,
        name: str,
        value: bool,
        on_action: MeetingAction,
        off_action: MeetingAction,
    ) -> bool:
        """Send on/off only if the cached value differs. Returns whether a command went out."""
        if self.state.get(name) == value:
            logger.debug("%s already %s; nothing to send", name, value)
            return False
        await self.send_command(on_action if value else off_action)
        return True
