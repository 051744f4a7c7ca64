from __future__ import annotations
import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional

class EventType(str, Enum):
    EXERCISE_SELECTED = "exercise_selected"
    SESSION_STARTED = "session_started"
    SESSION_PAUSED = "session_paused"
    SESSION_RESET = "session_reset"
    POSITION = "position"
    REP = "rep"
    FEEDBACK = "feedback"

@dataclass
class SessionEvent:
    type: EventType
    exercise: Optional[str]
    state: str
    count: int
    feedback: str
    ts: float = field(default_factory=time.time)

@dataclass
class PositionEvent:
    type: EventType
    exercise: Optional[str]
    position: str
    count: int
    cooldown: bool
    ts: float = field(default_factory=time.time)

@dataclass
class RepEvent:
    type: EventType
    exercise: Optional[str]
    count: int
    ts: float = field(default_factory=time.time)


def to_payload(ev) -> dict:
    """Flatten an event into the JSON-able dict handed to sinks (enum -> value)."""
    out = asdict(ev)
    out["type"] = ev.type.value
    return out
