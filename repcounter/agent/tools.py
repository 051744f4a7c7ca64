from __future__ import annotations
from typing import Literal
from pydantic import BaseModel, Field
from langchain_core.tools import tool
from repcounter.common.types import ExerciseKind
from repcounter.counter.session import RepSession, ACTIVE_SESSION

# Shared enums
Exercise = Literal["pushups", "squats", "jumping_jacks"]


class SelectArgs(BaseModel):
    exercise: Exercise = Field(..., description="Exercise to count")


class NoArgs(BaseModel):
    pass


def _summary(session: RepSession) -> str:
    st = session.status()
    return f"exercise={st.exercise}; state={st.state}; reps={st.count}; feedback={st.feedback}"


@tool("select_exercise", args_schema=SelectArgs)
def select_exercise(exercise: Exercise) -> str:
    """Select the exercise to count. Stops any running count and resets it to zero."""
    session: RepSession = ACTIVE_SESSION()
    session.select_exercise(ExerciseKind.parse(exercise))
    return _summary(session)


@tool("start_rep_counter", args_schema=NoArgs)
def start_rep_counter() -> str:
    """Start (or resume) counting reps for the selected exercise."""
    session: RepSession = ACTIVE_SESSION()
    started = session.start()
    return f"started={started}; " + _summary(session)


@tool("pause_rep_counter", args_schema=NoArgs)
def pause_rep_counter() -> str:
    """Pause counting. The rep count is kept."""
    session: RepSession = ACTIVE_SESSION()
    paused = session.stop()
    return f"paused={paused}; " + _summary(session)


@tool("reset_rep_counter", args_schema=NoArgs)
def reset_rep_counter() -> str:
    """Stop counting and set the rep count back to zero, keeping the exercise."""
    session: RepSession = ACTIVE_SESSION()
    session.reset()
    return _summary(session)


@tool("status_rep_counter", args_schema=NoArgs)
def status_rep_counter() -> str:
    """Return the current exercise, state and rep count."""
    return _summary(ACTIVE_SESSION())


TOOLS = [select_exercise, start_rep_counter, pause_rep_counter, reset_rep_counter, status_rep_counter]
