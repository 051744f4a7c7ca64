from __future__ import annotations
import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Optional, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from repcounter.agent.router import route_and_execute
from repcounter.common.types import ExerciseKind
from repcounter.counter.frames import BrowserFrameSource, CameraFrameSource, FrameSource
from repcounter.counter.session import RepSession, ACTIVE_SESSION

log = logging.getLogger(__name__)

WS_CLIENTS: Set[WebSocket] = set()
_BROADCASTS: Set[asyncio.Task] = set()  # strong refs until each send finishes
BROWSER_FRAMES = BrowserFrameSource()
_fallback_source: Optional[FrameSource] = None
_wired: Optional[RepSession] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    s = _session()
    s.stop()
    for src in (s.frame_source, _fallback_source):
        if isinstance(src, CameraFrameSource):
            src.release()

app = FastAPI(title="repcounter", lifespan=lifespan)


# let the session emit events to all WS clients
def _sink(ev: dict):
    try:
        task = asyncio.get_running_loop().create_task(broadcast(ev))
        _BROADCASTS.add(task)
        task.add_done_callback(_BROADCASTS.discard)
    except RuntimeError:
        log.debug("no running loop, event %s not broadcast", ev.get("type"))

def _session() -> RepSession:
    global _wired
    s = ACTIVE_SESSION()
    if s is not _wired:
        s.set_event_sink(_sink)
        _wired = s
    return s

def set_web_mode(active: bool):
    """While a browser is connected the session samples its pushed frames instead of the camera."""
    global _fallback_source
    s = _session()
    if active:
        if s.frame_source is not BROWSER_FRAMES:
            _fallback_source = s.frame_source
            s.frame_source = BROWSER_FRAMES
    elif _fallback_source is not None:
        s.frame_source = _fallback_source
        _fallback_source = None

def _status() -> JSONResponse:
    return JSONResponse(asdict(_session().status()))


class CommandIn(BaseModel):
    text: str


@app.get("/favicon.ico")
async def favicon():
    return Response(status_code=204)

@app.get("/exercises")
async def exercises():
    return JSONResponse([{"kind": k.value, "name": k.display_name} for k in ExerciseKind])

@app.get("/session")
async def current():
    return _status()

@app.post("/session/exercise/{kind}")
async def select(kind: ExerciseKind):
    _session().select_exercise(kind)
    return _status()

@app.post("/counter/start")
async def start():
    _session().start()
    return _status()

@app.post("/counter/stop")
async def stop():
    _session().stop()
    return _status()

@app.post("/counter/reset")
async def reset():
    _session().reset()
    return _status()

@app.post("/command")
async def command(body: CommandIn):
    _session()
    trace = await route_and_execute(body.text)
    await broadcast({"type": "trace", "msg": " | ".join(trace["steps"])})
    return JSONResponse(trace)

@app.websocket("/ws/frames")
async def ws_frames(ws: WebSocket):
    await ws.accept()
    WS_CLIENTS.add(ws)
    set_web_mode(True)
    await broadcast({"type": "trace", "msg": "ws: client connected"})
    try:
        while True:
            raw = await ws.receive_text()
            try:
                data = json.loads(raw)
            except ValueError:
                log.debug("ignoring non-JSON ws message")
                continue
            if not isinstance(data, dict):
                continue
            if data.get("type") != "frame" or not data.get("data"):
                continue
            try:
                BROWSER_FRAMES.push_base64(str(data["data"]))
            except ValueError as e:
                log.warning("bad frame payload: %s", e)
    except WebSocketDisconnect:
        pass
    finally:
        WS_CLIENTS.discard(ws)
        if not WS_CLIENTS:
            set_web_mode(False)
        await broadcast({"type": "trace", "msg": "ws closed"})

async def broadcast(obj: dict):
    dead = []
    for ws in list(WS_CLIENTS):
        try:
            await ws.send_text(json.dumps(obj))
        except Exception:
            dead.append(ws)
    for d in dead:
        WS_CLIENTS.discard(d)


def main():
    import uvicorn
    from repcounter.common.logs import configure_logging

    configure_logging()
    uvicorn.run(app, host=os.getenv("REPCOUNTER_HOST", "127.0.0.1"), port=int(os.getenv("REPCOUNTER_PORT", "8000")))


if __name__ == "__main__":
    main()
