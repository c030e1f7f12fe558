"""Tests for the command-line entry point."""

import pytest

from teams_local.cli import COMMANDS, build_parser, format_event, main
from teams_local.events import Event, EventType
from teams_local.protocol.constants import MeetingAction, ReactionType


class TestCommandTable:
    def test_every_reaction(self):
        for reaction in ReactionType:
            assert COMMANDS[f"react-{reaction.value}"] == (MeetingAction.SEND_REACTION, reaction)

    def test_parameters_match_actions(self):
        for name, (action, parameter) in COMMANDS.items():
            if action in (MeetingAction.SEND_REACTION, MeetingAction.TOGGLE_UI):
                assert parameter is not None, name
            else:
                assert parameter is None, name

    def test_list_commands(self, capsys):
        assert main(["commands"]) == 0
        out = capsys.readouterr().out
        assert "toggle-blur" in out
        assert "toggle-background-blur" in out
        assert "react-wow" in out


class TestParser:
    def test_send(self):
        args = build_parser().parse_args(["--token", "abc", "send", "mute", "--no-wait"])
        assert args.token == "abc"
        assert args.command == "send"
        assert args.name == "mute"
        assert args.no_wait
        assert not args.wait_for_host

    def test_unknown_command_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["send", "dance"])

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestFormatEvent:
    def test_state_changed(self):
        event = Event(EventType.STATE_CHANGED, {"field": "is_muted", "value": True})
        assert format_event(event) == "is_muted = True"

    def test_error(self):
        assert format_event(Event(EventType.ERROR_RECEIVED, {"message": "bad"})) == "error: bad"

    def test_connected(self):
        assert format_event(Event(EventType.CONNECTED)) == "connected"
