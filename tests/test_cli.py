"""Typed command handling in the terminal front end."""
from __future__ import annotations

import asyncio

from repcounter.common.types import ExerciseKind
from repcounter.runtime import cli

from conftest import make_session


def test_commands_drive_the_session(capsys) -> None:
    s = make_session()

    async def body():
        assert await cli.handle_command(s, "exercise jumping jacks")
        assert s.exercise is ExerciseKind.JUMPING_JACKS
        assert await cli.handle_command(s, "start")
        assert s.is_running
        assert await cli.handle_command(s, "pause")
        assert not s.is_running
        assert await cli.handle_command(s, "status")
        assert await cli.handle_command(s, "reset")
        assert await cli.handle_command(s, "   ")
        assert await cli.handle_command(s, "quit") is False

    asyncio.run(body())
    out = capsys.readouterr().out
    assert "exercise=jumping_jacks state=ready reps=0" in out


def test_bad_exercise_name_is_reported(capsys) -> None:
    s = make_session()
    assert asyncio.run(cli.handle_command(s, "exercise burpees"))
    assert s.exercise is None
    assert "unknown exercise 'burpees'" in capsys.readouterr().out


def test_free_text_is_routed(monkeypatch, capsys) -> None:
    seen = []

    async def fake_route(text):
        seen.append(text)
        return {"action": "noop", "llm_text": "", "steps": ["router: no tool selected (noop)"]}

    monkeypatch.setattr(cli, "route_and_execute", fake_route)
    assert asyncio.run(cli.handle_command(make_session(), "play some music"))
    assert seen == ["play some music"]
    assert "assistant: Not a workout command." in capsys.readouterr().out


def test_print_event_formats_reps(capsys) -> None:
    cli.print_event({"type": "rep", "count": 3})
    cli.print_event({"type": "session_paused", "state": "ready", "feedback": "Paused. Press start to continue."})
    out = capsys.readouterr().out
    assert "REP 3" in out
    assert "[ready] Paused." in out


def test_parser_defaults() -> None:
    args = cli.build_parser().parse_args(["-e", "squats", "--interval", "0.5"])
    assert args.exercise == "squats"
    assert args.interval == 0.5
    assert args.paused is False
