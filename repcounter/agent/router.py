from __future__ import annotations
import logging
from typing import Any, Callable, Dict, List, Optional
from langchain_core.messages import HumanMessage, SystemMessage
from repcounter.agent.llm import get_llm
from repcounter.agent.tools import TOOLS

log = logging.getLogger(__name__)

SYSTEM = (
    "You are a workout assistant that ONLY controls a camera rep counter. "
    "Use tools ONLY when the user clearly asks to select an exercise or to start/pause/reset/check the counter. "
    "Supported exercises: pushups, squats, jumping_jacks. "
    "If the user says anything unrelated (e.g., 'record my run', 'open music'), "
    "DO NOT call tools and respond concisely that it's not a workout command."
)

FEWSHOTS = [
    ("let's do squats", "select_exercise"),
    ("go", "start_rep_counter"),
    ("pause", "pause_rep_counter"),
    ("start over from zero", "reset_rep_counter"),
    ("how many have I done?", "status_rep_counter"),
    ("record my run", "noop"),
]

_TOOL_MAP: Dict[str, Any] = {t.name: t for t in TOOLS}

def _blank_result(user_text: str) -> dict:
    return {
        "transcript": user_text,
        "action": "noop",
        "args": {},
        "tool_output": "",
        "llm_text": "",
        "steps": [],
    }

def _build_messages(user_text: str) -> list:
    messages = [SystemMessage(content=SYSTEM)]
    for u, label in FEWSHOTS:
        messages.append(HumanMessage(content=u))
        if label == "noop":
            messages.append(SystemMessage(content="Not a workout command. Do not call tools."))
        else:
            messages.append(SystemMessage(content=f"Call tool: {label}"))
    messages.append(HumanMessage(content=user_text))
    return messages

def _tool_calls(res: Any) -> list:
    # Newer LC puts tool calls on res.tool_calls (list of dicts)
    tcalls = getattr(res, "tool_calls", None)
    if not tcalls:
        ak = getattr(res, "additional_kwargs", None)
        if isinstance(ak, dict):
            tcalls = ak.get("tool_calls") or []
    return list(tcalls or [])

async def route_and_execute(user_text: str, llm_factory: Optional[Callable[[], Any]] = None) -> dict:
    """Route one free-text command to a counter tool. Errors end up in the trace, never raised."""
    steps: List[str] = []
    result = _blank_result(user_text)
    steps.append(f"router: received text → {user_text!r}")

    try:
        llm = (llm_factory or get_llm)().bind_tools(TOOLS)
    except Exception as e:
        log.warning("router LLM init failed: %r", e)
        steps.append(f"router: LLM init error → {e!r}")
        result["llm_text"] = "LLM unavailable (check OPENAI_API_KEY)."
        result["steps"] = steps
        return result

    try:
        res = await llm.ainvoke(_build_messages(user_text))
    except Exception as e:
        log.warning("router LLM call failed: %r", e)
        steps.append(f"router: LLM call error → {e!r}")
        result["llm_text"] = "LLM call failed (auth/network)."
        result["steps"] = steps
        return result

    result["llm_text"] = str(getattr(res, "content", "") or "").strip()
    tcalls = _tool_calls(res)
    if not tcalls:
        steps.append("router: no tool selected (noop)")
        result["steps"] = steps
        return result

    # Execute first tool call
    tc = tcalls[0]
    name = tc.get("name")
    args = tc.get("args") or {}
    steps.append(f"router: selected tool → {name} with args {args}")
    tool = _TOOL_MAP.get(name)
    if tool is None:
        steps.append(f"router: unknown tool {name} (noop)")
        result["steps"] = steps
        return result
    try:
        out = tool.invoke(args)
    except Exception as e:
        log.warning("tool %s failed: %r", name, e)
        steps.append(f"tool: ERROR during execution → {e!r}")
        result["steps"] = steps
        return result
    result["action"] = name
    result["args"] = args
    result["tool_output"] = out
    steps.append(f"tool: executed {name} → {out}")
    result["steps"] = steps
    return result
