from __future__ import annotations
from enum import Enum


class PositionLabel(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    NEUTRAL = "NEUTRAL"


class SessionState(str, Enum):
    IDLE = "idle"        # no exercise selected
    READY = "ready"      # exercise selected, not sampling
    RUNNING = "running"  # sampling loop active


class ExerciseKind(str, Enum):
    PUSHUPS = "pushups"
    SQUATS = "squats"
    JUMPING_JACKS = "jumping_jacks"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @classmethod
    def parse(cls, name: str) -> "ExerciseKind":
        """Accept 'squats', 'Jumping Jacks', 'jumping-jacks', ..."""
        key = (name or "").strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(key)
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise ValueError(f"unknown exercise {name!r} (expected one of: {valid})") from None


_DISPLAY_NAMES = {
    ExerciseKind.PUSHUPS: "Push-ups",
    ExerciseKind.SQUATS: "Squats",
    ExerciseKind.JUMPING_JACKS: "Jumping jacks",
}
