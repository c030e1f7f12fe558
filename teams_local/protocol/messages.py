"""JSON wire messages exchanged with the host.

Outbound: ``{"action": ..., "parameters": {"type": ...}, "requestId": n}``
Inbound:  ``{"requestId", "response", "errorMsg", "tokenRefresh",
            "meetingUpdate": {"meetingState": {...}, "meetingPermissions": {...}}}``

All inbound fields are optional and independent of each other. Snapshot
booleans that are absent stay ``None`` so they never overwrite known state.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_serializer, field_validator
from pydantic.alias_generators import to_camel

from ..errors import DecodeError
from .constants import (
    ACTION_PARAMETERS,
    RESPONSE_SUCCESS,
    MeetingAction,
    ReactionType,
    UiPanel,
    WireEnum,
)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    """Milliseconds elapsed since the Unix epoch. Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(value: Union[int, float]) -> datetime:
    """Inverse of to_epoch_ms; returns an aware UTC datetime."""
    return EPOCH + timedelta(milliseconds=value)


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# --- Outbound ---


class ActionParameters(_WireModel):
    type: Union[ReactionType, UiPanel]


class ClientMessage(_WireModel):
    """A single command. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    action: MeetingAction
    parameters: Optional[ActionParameters] = None
    request_id: int
    timestamp: Optional[datetime] = None

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: Optional[datetime]) -> Optional[int]:
        return to_epoch_ms(value) if value is not None else None


def build_command(
    action: MeetingAction,
    parameter: Optional[WireEnum],
    request_id: int,
    timestamp: Optional[datetime] = None,
) -> ClientMessage:
    """Build a ClientMessage, checking the parameter matches the action."""
    expected = ACTION_PARAMETERS.get(action)
    if expected is None and parameter is not None:
        raise ValueError(f"{action.value} takes no parameter, got {parameter!r}")
    if expected is not None and not isinstance(parameter, expected):
        raise ValueError(f"{action.value} requires a {expected.__name__} parameter")

    return ClientMessage(
        action=action,
        parameters=ActionParameters(type=parameter) if parameter is not None else None,
        request_id=request_id,
        timestamp=timestamp,
    )


def encode_command(message: ClientMessage) -> str:
    """Serialize a command to a compact JSON text frame."""
    return message.model_dump_json(by_alias=True, exclude_none=True)


def decode_command(text: Union[str, bytes]) -> ClientMessage:
    """Parse an outbound frame back into a ClientMessage.

    Unknown action or parameter tokens raise DecodeError.
    """
    data = _load_object(text)
    try:
        action = MeetingAction.from_wire(data["action"])
        request_id = int(data["requestId"])
    except (KeyError, TypeError, ValueError) as exc:
        raise DecodeError(f"Malformed command frame: {exc}") from exc

    parameter = None
    raw_params = data.get("parameters")
    if raw_params is not None:
        param_type = ACTION_PARAMETERS.get(action)
        if param_type is None or not isinstance(raw_params, dict):
            raise DecodeError(f"Unexpected parameters for {action.value}: {raw_params!r}")
        parameter = param_type.from_wire(raw_params.get("type"))
    elif action in ACTION_PARAMETERS:
        raise DecodeError(f"{action.value} frame is missing its parameters")

    timestamp = data.get("timestamp")
    return build_command(
        action,
        parameter,
        request_id,
        from_epoch_ms(timestamp) if timestamp is not None else None,
    )


# --- Inbound ---


class MeetingState(_WireModel):
    is_muted: Optional[bool] = None
    is_video_on: Optional[bool] = None
    is_hand_raised: Optional[bool] = None
    is_in_meeting: Optional[bool] = None
    is_recording_on: Optional[bool] = None
    is_background_blurred: Optional[bool] = None
    is_sharing: Optional[bool] = None
    has_unread_messages: Optional[bool] = None


class MeetingPermissions(_WireModel):
    can_toggle_mute: Optional[bool] = None
    can_toggle_video: Optional[bool] = None
    can_toggle_hand: Optional[bool] = None
    can_toggle_blur: Optional[bool] = None
    can_leave: Optional[bool] = None
    can_react: Optional[bool] = None
    can_toggle_share_tray: Optional[bool] = None
    can_toggle_chat: Optional[bool] = None
    can_stop_sharing: Optional[bool] = None
    can_pair: Optional[bool] = None


class MeetingUpdate(_WireModel):
    meeting_state: Optional[MeetingState] = None
    meeting_permissions: Optional[MeetingPermissions] = None


class ServerMessage(_WireModel):
    request_id: Optional[int] = None
    response: Optional[str] = None
    error_msg: Optional[str] = None
    token_refresh: Optional[str] = None
    meeting_update: Optional[MeetingUpdate] = None
    timestamp: Optional[datetime] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return from_epoch_ms(value)
        return value

    @property
    def is_success(self) -> bool:
        return self.response == RESPONSE_SUCCESS


def decode_server_message(text: Union[str, bytes]) -> ServerMessage:
    """Parse an inbound frame, raising DecodeError if it is not a valid message."""
    try:
        return ServerMessage.model_validate(_load_object(text))
    except ValidationError as exc:
        raise DecodeError(f"Invalid server message: {exc}") from exc


def _load_object(text: Union[str, bytes]) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise DecodeError(f"Frame is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise DecodeError(f"Expected a JSON object, got {type(data).__name__}")
    return data
