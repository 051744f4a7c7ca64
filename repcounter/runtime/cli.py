# repcounter/runtime/cli.py
from __future__ import annotations
import argparse
import asyncio
import sys
from dataclasses import replace
from repcounter.agent.classifier import PositionClassifier
from repcounter.agent.llm import get_llm
from repcounter.agent.router import route_and_execute
from repcounter.common.config import CounterConfig
from repcounter.common.logs import configure_logging
from repcounter.common.types import ExerciseKind
from repcounter.counter.frames import CameraFrameSource
from repcounter.counter.session import RepSession, set_active_session

HELP = "commands: start | stop | reset | status | exercise <name> | quit  (anything else goes to the assistant)"


def print_event(ev: dict):
    kind = ev.get("type")
    if kind == "rep":
        print(f"REP {ev['count']}", flush=True)
    elif kind == "position":
        print(f"  position={ev['position']} reps={ev['count']}{' (cooldown)' if ev['cooldown'] else ''}", flush=True)
    elif kind in ("exercise_selected", "session_started", "session_paused", "session_reset"):
        print(f"[{ev['state']}] {ev['feedback']}", flush=True)
    elif kind == "feedback" and ev.get("state") != "running":
        print(ev["feedback"], flush=True)


async def handle_command(session: RepSession, line: str) -> bool:
    """Run one typed command. Returns False when the user asked to quit."""
    text = line.strip()
    if not text:
        return True
    word, _, rest = text.partition(" ")
    word = word.lower()
    if word in ("quit", "exit", "q"):
        return False
    if word == "start":
        session.start()
    elif word in ("stop", "pause"):
        if not session.stop():
            print("not running", flush=True)
    elif word == "reset":
        session.reset()
    elif word == "status":
        st = session.status()
        print(f"exercise={st.exercise} state={st.state} reps={st.count} last={st.last_position} "
              f"failures={st.classifier_failures} | {st.feedback}", flush=True)
    elif word == "exercise":
        try:
            session.select_exercise(ExerciseKind.parse(rest))
        except ValueError as e:
            print(f"Error: {e}", flush=True)
    elif word == "help":
        print(HELP, flush=True)
    else:
        trace = await route_and_execute(text)
        for s in trace["steps"]:
            print(s, flush=True)
        if trace["action"] == "noop":
            print(f"assistant: {trace['llm_text'] or 'Not a workout command.'}", flush=True)
    return True


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="repcounter", description="Count exercise reps from the webcam.")
    p.add_argument("--exercise", "-e", help="exercise to select at startup: " + ", ".join(k.value for k in ExerciseKind))
    p.add_argument("--interval", type=float, default=None, help="seconds between sampled frames")
    p.add_argument("--camera", type=int, default=None, help="OpenCV camera index")
    p.add_argument("--paused", action="store_true", help="select the exercise but do not start counting")
    p.add_argument("--log-level", default=None)
    return p


async def run(args: argparse.Namespace):
    cfg = CounterConfig.from_env()
    if args.interval is not None:
        cfg = replace(cfg, sample_interval_s=args.interval)
    if args.camera is not None:
        cfg = replace(cfg, camera_index=args.camera)

    camera = CameraFrameSource(cfg.camera_index, cfg.jpeg_quality)
    session = RepSession(PositionClassifier(lambda: get_llm(cfg.model)), camera, cfg)
    set_active_session(session)
    session.set_event_sink(print_event)

    if args.exercise:
        session.select_exercise(ExerciseKind.parse(args.exercise))
        if not args.paused:
            session.start()
    print(HELP, flush=True)

    try:
        while True:
            line = await asyncio.to_thread(input, "> ")
            if not await handle_command(session, line):
                break
    except EOFError:
        pass
    finally:
        session.stop()
        camera.release()
        print(f"\nExiting… total reps: {session.count}", flush=True)


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        pass
    except ValueError as e:
        print("Error:", e, file=sys.stderr)
        sys.exit(2)

if __name__ == "__main__":
    main()
