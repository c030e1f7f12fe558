"""Command-line entry point.

Usage:
    teams-local watch                 Print connection, state and token events
    teams-local send mute             Send one command and print the reply
    teams-local commands              List the commands accepted by ``send``

Connection settings come from TEAMS_LOCAL_* environment variables or .env.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional

from .client import MeetingClient
from .config import settings
from .errors import HostUnavailable, TeamsLocalError
from .events import Event, EventType
from .protocol.constants import MeetingAction, ReactionType, UiPanel, WireEnum

# Fixed command table for ``send``: name -> (action, parameter)
COMMANDS: dict[str, tuple[MeetingAction, Optional[WireEnum]]] = {
    "pair": (MeetingAction.PAIR, None),
    "query": (MeetingAction.QUERY_STATE, None),
    "mute": (MeetingAction.MUTE, None),
    "unmute": (MeetingAction.UNMUTE, None),
    "toggle-mute": (MeetingAction.TOGGLE_MUTE, None),
    "video-on": (MeetingAction.SHOW_VIDEO, None),
    "video-off": (MeetingAction.HIDE_VIDEO, None),
    "toggle-video": (MeetingAction.TOGGLE_VIDEO, None),
    "raise-hand": (MeetingAction.RAISE_HAND, None),
    "lower-hand": (MeetingAction.LOWER_HAND, None),
    "toggle-hand": (MeetingAction.TOGGLE_HAND, None),
    "blur": (MeetingAction.BLUR_BACKGROUND, None),
    "unblur": (MeetingAction.UNBLUR_BACKGROUND, None),
    "toggle-blur": (MeetingAction.TOGGLE_BLUR_BACKGROUND, None),
    "start-recording": (MeetingAction.START_RECORDING, None),
    "stop-recording": (MeetingAction.STOP_RECORDING, None),
    "toggle-recording": (MeetingAction.TOGGLE_RECORDING, None),
    "leave": (MeetingAction.LEAVE_CALL, None),
    "chat": (MeetingAction.TOGGLE_UI, UiPanel.CHAT),
    "sharing-tray": (MeetingAction.TOGGLE_UI, UiPanel.SHARING_TRAY),
    "stop-sharing": (MeetingAction.STOP_SHARING, None),
}
COMMANDS.update({
    f"react-{reaction.value}": (MeetingAction.SEND_REACTION, reaction)
    for reaction in ReactionType
})


def format_event(event: Event) -> str:
    if event.type is EventType.STATE_CHANGED:
        return f"{event.data['field']} = {event.data['value']}"
    if event.type is EventType.TOKEN_RECEIVED:
        return f"token: {event.data['token']}"
    if event.type is EventType.ERROR_RECEIVED:
        return f"error: {event.data['message']}"
    if event.type is EventType.SUCCESS_RECEIVED:
        return f"ok: request {event.data['request_id']}"
    return event.type.value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="teams-local",
        description="Control a running meeting through its local control endpoint.",
    )
    parser.add_argument("--token", default=None, help="Stored credential (default: TEAMS_LOCAL_TOKEN)")
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("watch", help="Print events until interrupted")

    send = sub.add_parser("send", help="Send one command")
    send.add_argument("name", choices=sorted(COMMANDS), metavar="COMMAND")
    send.add_argument("--no-wait", action="store_true", help="Do not wait for the reply")
    send.add_argument(
        "--wait-for-host", action="store_true",
        help="Block until the host application is running",
    )

    sub.add_parser("commands", help="List commands accepted by send")
    return parser


async def watch(client: MeetingClient) -> None:
    """Print every event until SIGINT / SIGTERM."""
    client.events.on_all(lambda event: print(format_event(event), flush=True))

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    if sys.platform != "win32":
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)
    else:
        signal.signal(signal.SIGINT, lambda *_: loop.call_soon_threadsafe(stop_event.set))

    try:
        await client.connect(wait_for_host=True)
        await stop_event.wait()
    finally:
        await client.close()


async def send(client: MeetingClient, name: str, wait: bool, wait_for_host: bool) -> Optional[bool]:
    """Connect, send one command from COMMANDS, and disconnect."""
    action, parameter = COMMANDS[name]
    client.on(EventType.TOKEN_RECEIVED, lambda event: print(format_event(event), flush=True))
    try:
        if not await client.connect(wait_for_host=wait_for_host):
            raise HostUnavailable("Host application is not running")
        return await client.send_command(action, parameter, wait=wait)
    finally:
        await client.close()


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "commands":
        for name, (action, parameter) in sorted(COMMANDS.items()):
            suffix = f" ({parameter.value})" if parameter is not None else ""
            print(f"  {name:<18} {action.value}{suffix}")
        return 0

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(levelname)s:     %(name)s - %(message)s",
    )

    client = MeetingClient(token=args.token, auto_connect=False)
    try:
        if args.command == "watch":
            asyncio.run(watch(client))
            return 0

        result = asyncio.run(send(client, args.name, not args.no_wait, args.wait_for_host))
        if result is False:
            print("not in a call")
        elif result:
            print("ok")
        return 0
    except KeyboardInterrupt:
        return 130
    except TeamsLocalError as exc:
        print(f"[FAIL] {exc}", file=sys.stderr)
        return 1
