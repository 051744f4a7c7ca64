from __future__ import annotations
import base64
import logging
from typing import Any, Callable, Optional

from langchain_core.messages import HumanMessage

from repcounter.agent.llm import get_llm
from repcounter.common.types import ExerciseKind, PositionLabel

log = logging.getLogger(__name__)

BASE_PROMPT = (
    "You are a fitness AI assistant. Analyze the user's position in this image. "
    "The user is doing {exercise}. "
    "Determine if their body is in the 'UP' position or the 'DOWN' position for one repetition. "
    "Respond with ONLY one of the following words: 'UP', 'DOWN', or 'NEUTRAL'."
)

POSITION_HINTS = {
    ExerciseKind.PUSHUPS: (
        "For push-ups, 'DOWN' is when the chest is close to the floor. "
        "'UP' is when the arms are fully extended."
    ),
    ExerciseKind.SQUATS: (
        "For squats, 'DOWN' is when the hips are at or below the knees. "
        "'UP' is when the person is standing straight."
    ),
    ExerciseKind.JUMPING_JACKS: (
        "For jumping jacks, 'DOWN' is when the feet are together and arms are at the sides. "
        "'UP' is when the feet are apart and arms are overhead."
    ),
}


def prompt_for(exercise: ExerciseKind) -> str:
    prompt = BASE_PROMPT.format(exercise=exercise.display_name.lower())
    hint = POSITION_HINTS.get(exercise)
    return f"{prompt} {hint}" if hint else prompt


def build_message(frame: bytes, exercise: ExerciseKind) -> HumanMessage:
    b64 = base64.b64encode(frame).decode("ascii")
    return HumanMessage(content=[
        {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{b64}"}},
        {"type": "text", "text": prompt_for(exercise)},
    ])


def _reply_text(res: Any) -> str:
    content = getattr(res, "content", "")
    if isinstance(content, list):
        # some providers return a list of content parts
        content = "".join(p.get("text", "") if isinstance(p, dict) else str(p) for p in content)
    return (content or "").strip().upper()


class PositionClassifier:
    """
    Maps one JPEG still + exercise to UP / DOWN / NEUTRAL with a vision chat model.
    Never raises: anything that goes wrong comes back as NEUTRAL and bumps `failures`.
    """
    def __init__(self, llm_factory: Optional[Callable[[], Any]] = None):
        self._llm_factory = llm_factory or get_llm
        self._llm = None
        self.failures = 0

    def _get_llm(self):
        # lazy: a missing OPENAI_API_KEY should degrade to NEUTRAL, not fail at startup
        if self._llm is None:
            self._llm = self._llm_factory()
        return self._llm

    async def classify(self, frame: bytes, exercise: ExerciseKind) -> PositionLabel:
        try:
            res = await self._get_llm().ainvoke([build_message(frame, exercise)])
            text = _reply_text(res)
        except Exception as e:
            self.failures += 1
            log.error("classifier call failed for %s: %r", exercise.value, e)
            return PositionLabel.NEUTRAL

        try:
            return PositionLabel(text)
        except ValueError:
            self.failures += 1
            log.warning("unexpected classifier reply %r", text)
            return PositionLabel.NEUTRAL
