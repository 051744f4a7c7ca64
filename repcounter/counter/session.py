from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Set

from repcounter.agent.classifier import PositionClassifier
from repcounter.agent.llm import get_llm
from repcounter.common.config import CounterConfig
from repcounter.common.events import (
    EventType, SessionEvent, PositionEvent, RepEvent, to_payload,
)
from repcounter.common.types import ExerciseKind, PositionLabel, SessionState
from repcounter.counter.frames import CameraFrameSource, FrameSource, FrameSourceError

log = logging.getLogger(__name__)

MSG_SELECT = "Select an exercise"
MSG_SELECT_FIRST = "Please select an exercise first!"
MSG_SELECTED = "{name} selected. Ready to start?"
MSG_READY = "Ready!"
MSG_ANALYZING = "Analyzing..."
MSG_GREAT = "Great!"
MSG_PAUSED = "Paused. Press start to continue."
MSG_RESET = "Counter reset"


class Classifier(Protocol):
    async def classify(self, frame: bytes, exercise: ExerciseKind) -> PositionLabel:
        ...


@dataclass
class SessionStatus:
    exercise: Optional[str]
    state: str
    count: int
    last_position: str
    cooldown: bool
    running: bool
    feedback: str
    classifier_failures: int = 0


class RepSession:
    """
    Turns a once-per-interval position label into a debounced rep count.

    Single writer: every method runs on the event loop that called start().
    A rep is counted only on a DOWN -> UP edge, and not while the cooldown
    after the previous rep is active. Each start/stop/reset/select bumps the
    generation, so a classification that resolves for an older generation is
    dropped instead of touching the count.
    """
    def __init__(self, classifier: Classifier, frame_source: FrameSource, cfg: Optional[CounterConfig] = None):
        self.classifier = classifier
        self.frame_source = frame_source
        self.cfg = cfg or CounterConfig()
        self.exercise: Optional[ExerciseKind] = None
        self.count = 0
        self.last_position = PositionLabel.NEUTRAL
        self.cooldown_active = False
        self.is_running = False
        self.feedback = MSG_SELECT
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._busy: Set[asyncio.Task] = set()  # loop tasks currently inside tick()
        self._cooldown_token = 0
        self._cooldown_handle: Optional[asyncio.TimerHandle] = None
        self._event_sink: Optional[Callable[[dict], None]] = None

    @property
    def state(self) -> SessionState:
        if self.exercise is None:
            return SessionState.IDLE
        return SessionState.RUNNING if self.is_running else SessionState.READY

    @property
    def generation(self) -> int:
        return self._generation

    def set_event_sink(self, sink: Optional[Callable[[dict], None]]):
        self._event_sink = sink

    def _emit(self, ev):
        if self._event_sink is None:
            return
        try:
            self._event_sink(to_payload(ev))
        except Exception:
            log.exception("event sink failed on %s", ev.type.value)

    def _session_event(self, type: EventType):
        self._emit(SessionEvent(
            type=type,
            exercise=self.exercise.value if self.exercise else None,
            state=self.state.value,
            count=self.count,
            feedback=self.feedback,
        ))

    # ---- user operations ----

    def select_exercise(self, kind: ExerciseKind):
        self._halt()
        self._reset_counters()
        self.exercise = kind
        self.feedback = MSG_SELECTED.format(name=kind.display_name)
        log.info("exercise selected: %s", kind.value)
        self._session_event(EventType.EXERCISE_SELECTED)

    def start(self) -> bool:
        if self.exercise is None:
            self.feedback = MSG_SELECT_FIRST
            log.info("start rejected: no exercise selected")
            self._session_event(EventType.FEEDBACK)
            return False
        if self.is_running:
            return False
        loop = asyncio.get_running_loop()
        self._generation += 1
        self.is_running = True
        self._task = loop.create_task(self._run(self._generation))
        self.feedback = MSG_READY
        log.info("counting started: %s every %.2fs", self.exercise.value, self.cfg.sample_interval_s)
        self._session_event(EventType.SESSION_STARTED)
        return True

    def stop(self) -> bool:
        if not self.is_running:
            return False
        self._halt()
        self.feedback = MSG_PAUSED
        log.info("counting paused at %d", self.count)
        self._session_event(EventType.SESSION_PAUSED)
        return True

    def reset(self):
        self._halt()
        self._reset_counters()
        self.feedback = MSG_RESET if self.exercise else MSG_SELECT
        log.info("counter reset")
        self._session_event(EventType.SESSION_RESET)

    def status(self) -> SessionStatus:
        return SessionStatus(
            exercise=self.exercise.value if self.exercise else None,
            state=self.state.value,
            count=self.count,
            last_position=self.last_position.value,
            cooldown=self.cooldown_active,
            running=self.is_running,
            feedback=self.feedback,
            classifier_failures=getattr(self.classifier, "failures", 0),
        )

    def _halt(self):
        # in-flight classification now belongs to an old generation
        self._generation += 1
        self.is_running = False
        if self._task is not None:
            # a sleeping loop is cancelled; one inside tick() finishes its sample,
            # which the generation check then drops, and exits on its own
            if self._task not in self._busy:
                self._task.cancel()
            self._task = None

    def _reset_counters(self):
        self.count = 0
        self.last_position = PositionLabel.NEUTRAL
        self._cooldown_token += 1
        if self._cooldown_handle is not None:
            self._cooldown_handle.cancel()
            self._cooldown_handle = None
        self.cooldown_active = False

    # ---- transition rule ----

    def apply_label(self, label: PositionLabel, generation: Optional[int] = None) -> bool:
        """Feed one classified label. Returns True when it completed a rep."""
        if not self.is_running or (generation is not None and generation != self._generation):
            log.debug("dropping %s: session not running this generation", label.value)
            return False

        self.feedback = label.value
        counted = False
        if self.cooldown_active:
            if self.last_position is PositionLabel.DOWN and label is PositionLabel.UP:
                log.debug("DOWN->UP inside cooldown, not counted")
        elif self.last_position is PositionLabel.DOWN and label is PositionLabel.UP:
            self.count += 1
            counted = True
            self.feedback = MSG_GREAT
            self._arm_cooldown()
            log.info("rep %d (%s)", self.count, self.exercise.value if self.exercise else "?")
        self.last_position = label

        exercise = self.exercise.value if self.exercise else None
        self._emit(PositionEvent(EventType.POSITION, exercise, label.value, self.count, self.cooldown_active))
        if counted:
            self._emit(RepEvent(EventType.REP, exercise, self.count))
        self._session_event(EventType.FEEDBACK)
        return counted

    def _arm_cooldown(self):
        self.cooldown_active = True
        self._cooldown_token += 1
        if self._cooldown_handle is not None:
            self._cooldown_handle.cancel()
        loop = asyncio.get_running_loop()
        self._cooldown_handle = loop.call_later(self.cfg.cooldown_s, self._end_cooldown, self._cooldown_token)

    def _end_cooldown(self, token: int):
        if token != self._cooldown_token:
            return  # superseded by a reset or a newer rep
        self.cooldown_active = False
        self._cooldown_handle = None

    # ---- sampling ----

    async def tick(self, generation: int) -> Optional[PositionLabel]:
        """One sample: grab a frame, classify it, apply the label. None when the tick was skipped."""
        exercise = self.exercise
        if exercise is None or generation != self._generation:
            return None
        try:
            frame = await asyncio.to_thread(self.frame_source.grab)
        except FrameSourceError as e:
            log.warning("no frame this tick: %s", e)
            return None
        if frame is None:
            log.debug("no frame available, skipping tick")
            return None
        if generation != self._generation:
            return None

        self.feedback = MSG_ANALYZING
        label = await self.classifier.classify(frame, exercise)
        if generation != self._generation:
            log.info("discarding %s from a stopped run", label.value)
            return None
        self.apply_label(label, generation)
        return label

    async def _run(self, generation: int):
        loop = asyncio.get_running_loop()
        period = self.cfg.sample_interval_s
        next_at = loop.time() + period
        while generation == self._generation:
            delay = next_at - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
            if generation != self._generation:
                break
            me = asyncio.current_task()
            self._busy.add(me)
            try:
                await self.tick(generation)
            except Exception:
                log.exception("sample tick failed, continuing")
            finally:
                self._busy.discard(me)
            next_at += period
            now = loop.time()
            if now > next_at:
                # skip-if-busy: ticks that fell due during a slow classification are dropped
                skipped = int((now - next_at) // period) + 1
                next_at += skipped * period
                log.debug("classification overran the interval, skipped %d tick(s)", skipped)


# Global session factory (so tools and servers share one session)
_ACTIVE: Optional[RepSession] = None

def ACTIVE_SESSION() -> RepSession:
    global _ACTIVE
    if _ACTIVE is None:
        cfg = CounterConfig.from_env()
        _ACTIVE = RepSession(
            PositionClassifier(lambda: get_llm(cfg.model)),
            CameraFrameSource(cfg.camera_index, cfg.jpeg_quality),
            cfg,
        )
    return _ACTIVE

def set_active_session(session: Optional[RepSession]):
    global _ACTIVE
    _ACTIVE = session
