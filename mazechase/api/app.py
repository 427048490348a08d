from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Dict, List

from fastapi import FastAPI, Header, HTTPException, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from mazechase.api.models import (
    InputRequest,
    LeaderboardEntry,
    MatchStateResponse,
    ReplayMatchSummary,
    ReplayResponse,
    ReplayTickEntry,
)
from mazechase.common.config import settings
from mazechase.common.errors import MazeError
from mazechase.common.types import Direction, GameEvent
from mazechase.engine.engine import MatchEngine, render_snapshot
from mazechase.engine.state import MatchConfig
from mazechase.persist.sqlite import SqlitePersistence


@asynccontextmanager
async def lifespan(_app: FastAPI):
    await _startup()
    try:
        yield
    finally:
        await _shutdown()


app = FastAPI(title="MAZECHASE", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = logging.getLogger(__name__)

SEND_TIMEOUT = 1.0

persistence: SqlitePersistence | None = None
engine: MatchEngine | None = None
tick_task: asyncio.Task | None = None
broadcast_task: asyncio.Task | None = None

engine_lock = asyncio.Lock()
clients: set[WebSocket] = set()
clients_lock = asyncio.Lock()
frame_queue: asyncio.Queue[Dict[str, object]] | None = None
pending_events: List[GameEvent] = []


def _get_engine() -> MatchEngine:
    assert engine is not None
    return engine


def _get_persistence() -> SqlitePersistence:
    assert persistence is not None
    return persistence


def _check_api_key(provided: str | None) -> None:
    if settings.api_key and provided != settings.api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


def _state_response(game_engine: MatchEngine) -> MatchStateResponse:
    state = game_engine.state
    return MatchStateResponse(
        phase=game_engine.phase.value,
        best_score=game_engine.best_score,
        snapshot=render_snapshot(state) if state is not None else None,
    )


async def _startup() -> None:
    global persistence, engine, frame_queue, tick_task, broadcast_task
    persistence = SqlitePersistence(
        settings.db_path,
        replay_compress=settings.replay_compress,
        replay_max_ticks=settings.replay_max_ticks,
        replay_max_matches=settings.replay_max_matches,
    )
    engine = MatchEngine(
        persistence,
        config=MatchConfig.from_settings(settings),
        seed=settings.random_seed,
        enable_replay_logging=settings.enable_replay_logging,
    )
    frame_queue = asyncio.Queue(maxsize=1)
    broadcast_task = asyncio.create_task(_broadcast_frames(frame_queue))
    if settings.enable_tick_loop:
        engine.subscribe(pending_events.append)
        tick_task = asyncio.create_task(tick_loop())
    else:
        logger.warning("Tick loop disabled via MAZECHASE_ENABLE_TICK_LOOP")


async def _shutdown() -> None:
    for task in (tick_task, broadcast_task):
        if task is not None:
            task.cancel()
    if persistence is not None:
        persistence.close()


async def tick_loop() -> None:
    game_engine = _get_engine()
    while True:
        async with engine_lock:
            changed = game_engine.step(time.monotonic())
            frame = None
            if changed:
                frame = {
                    "snapshot": render_snapshot(game_engine.state),
                    "events": [e.to_dict() for e in pending_events],
                    "best_score": game_engine.best_score,
                }
            pending_events.clear()
        if frame is not None and frame_queue is not None:
            _queue_latest(frame_queue, frame)
        await asyncio.sleep(settings.frame_seconds)


def _queue_latest(queue: asyncio.Queue[Dict[str, object]], frame: Dict[str, object]) -> None:
    try:
        queue.put_nowait(frame)
    except asyncio.QueueFull:
        try:
            queue.get_nowait()
        except asyncio.QueueEmpty:
            pass
        try:
            queue.put_nowait(frame)
        except asyncio.QueueFull:
            pass


async def _send_frame(ws: WebSocket, frame: Dict[str, object]) -> bool:
    try:
        await asyncio.wait_for(ws.send_json(frame), timeout=SEND_TIMEOUT)
        return True
    except Exception:
        logger.exception("Failed to send match frame")
        return False


async def _broadcast_frames(queue: asyncio.Queue[Dict[str, object]]) -> None:
    while True:
        try:
            frame = await queue.get()
        except asyncio.CancelledError:
            break
        async with clients_lock:
            targets = list(clients)
        if not targets:
            continue
        results = await asyncio.gather(
            *(_send_frame(ws, frame) for ws in targets),
            return_exceptions=True,
        )
        stale = [ws for ws, ok in zip(targets, results) if ok is not True]
        if stale:
            async with clients_lock:
                for ws in stale:
                    clients.discard(ws)


@app.post("/match/start", response_model=MatchStateResponse)
async def start_match(x_api_key: str | None = Header(default=None)) -> MatchStateResponse:
    _check_api_key(x_api_key)
    game_engine = _get_engine()
    async with engine_lock:
        try:
            game_engine.start()
        except MazeError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return _state_response(game_engine)


@app.post("/match/restart", response_model=MatchStateResponse)
async def restart_match(x_api_key: str | None = Header(default=None)) -> MatchStateResponse:
    _check_api_key(x_api_key)
    game_engine = _get_engine()
    async with engine_lock:
        try:
            game_engine.restart()
        except MazeError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return _state_response(game_engine)


@app.post("/match/input")
async def match_input(
    req: InputRequest, x_api_key: str | None = Header(default=None)
) -> Dict[str, str]:
    _check_api_key(x_api_key)
    try:
        direction = Direction(req.direction.upper())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid direction"
        ) from None
    game_engine = _get_engine()
    async with engine_lock:
        game_engine.set_intended_direction(direction)
    return {"status": "ok"}


@app.get("/match/state", response_model=MatchStateResponse)
async def match_state(x_api_key: str | None = Header(default=None)) -> MatchStateResponse:
    _check_api_key(x_api_key)
    game_engine = _get_engine()
    async with engine_lock:
        return _state_response(game_engine)


@app.get("/leaderboard", response_model=None)
async def leaderboard(
    limit: int = 10, x_api_key: str | None = Header(default=None)
) -> Response | Dict[str, object]:
    _check_api_key(x_api_key)
    entries = _get_persistence().leaderboard(limit=max(1, min(limit, 100)))
    if not entries:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return {"entries": [LeaderboardEntry(**e) for e in entries]}


@app.get("/replay/matches", response_model=List[ReplayMatchSummary])
async def replay_matches(
    limit: int = 50, x_api_key: str | None = Header(default=None)
) -> List[ReplayMatchSummary]:
    _check_api_key(x_api_key)
    rows = _get_persistence().list_matches(limit=max(1, min(limit, 200)))
    return [ReplayMatchSummary(**row) for row in rows]


@app.get("/replay/{match_id}", response_model=ReplayResponse)
async def replay_match(
    match_id: str,
    start_tick: int = 0,
    limit: int = 100,
    x_api_key: str | None = Header(default=None),
) -> ReplayResponse:
    _check_api_key(x_api_key)
    limit = max(1, min(limit, 500))
    rows = _get_persistence().get_replay_ticks(match_id, start_tick=start_tick, limit=limit + 1)
    has_more = len(rows) > limit
    return ReplayResponse(
        match_id=match_id,
        ticks=[ReplayTickEntry(**row) for row in rows[:limit]],
        has_more=has_more,
    )


@app.websocket("/match/ws")
async def match_ws(ws: WebSocket, key: str | None = None) -> None:
    _check_api_key(key)
    await ws.accept()
    async with clients_lock:
        clients.add(ws)
    try:
        while True:
            try:
                message = await ws.receive_json()
            except WebSocketDisconnect:
                break
            except Exception:
                logger.exception("Match websocket receive failed")
                break
            raw = message.get("direction") if isinstance(message, dict) else None
            if not raw:
                continue
            try:
                direction = Direction(str(raw).upper())
            except ValueError:
                continue
            async with engine_lock:
                _get_engine().set_intended_direction(direction)
    finally:
        async with clients_lock:
            clients.discard(ws)
