# tests/conftest.py
"""Shared fakes: a scripted classifier, a gated classifier and in-memory frame sources."""
from __future__ import annotations

import asyncio
from typing import Iterable, Optional

import pytest

from repcounter.common.config import CounterConfig
from repcounter.common.types import ExerciseKind, PositionLabel
from repcounter.counter.session import RepSession, set_active_session


class FakeClassifier:
    """Returns the scripted labels in order, then NEUTRAL forever."""

    def __init__(self, labels: Iterable[str] = ()):
        self.labels = [PositionLabel(l) for l in labels]
        self.calls: list[tuple[bytes, ExerciseKind]] = []
        self.failures = 0

    async def classify(self, frame: bytes, exercise: ExerciseKind) -> PositionLabel:
        self.calls.append((frame, exercise))
        return self.labels.pop(0) if self.labels else PositionLabel.NEUTRAL


class GatedClassifier:
    """Blocks inside classify() until release() is called."""

    def __init__(self, label: str = "UP"):
        self.label = PositionLabel(label)
        self.entered: Optional[asyncio.Event] = None
        self.gate: Optional[asyncio.Event] = None
        self.failures = 0
        self.calls = 0
        self.completed = 0

    def _events(self):
        if self.entered is None:
            self.entered = asyncio.Event()
            self.gate = asyncio.Event()
        return self.entered, self.gate

    async def classify(self, frame: bytes, exercise: ExerciseKind) -> PositionLabel:
        entered, gate = self._events()
        self.calls += 1
        entered.set()
        await gate.wait()
        self.completed += 1
        return self.label

    async def wait_entered(self, timeout: float = 2.0):
        entered, _ = self._events()
        await asyncio.wait_for(entered.wait(), timeout)

    def release(self):
        self._events()[1].set()


class StaticFrames:
    def __init__(self, frame: Optional[bytes] = b"jpeg-bytes"):
        self.frame = frame
        self.grabs = 0

    def grab(self) -> Optional[bytes]:
        self.grabs += 1
        return self.frame


def make_session(labels: Iterable[str] = (), interval: float = 60.0, cooldown: float = 0.5,
                 classifier=None, frames=None) -> RepSession:
    return RepSession(
        classifier if classifier is not None else FakeClassifier(labels),
        frames if frames is not None else StaticFrames(),
        CounterConfig(sample_interval_s=interval, cooldown_s=cooldown),
    )


async def wait_until(predicate, timeout: float = 2.0, step: float = 0.005):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(step)


@pytest.fixture
def active_session():
    session = make_session()
    set_active_session(session)
    yield session
    set_active_session(None)
