"""FastAPI service for playing NONAGA over HTTP."""

from __future__ import annotations

import logging
import random
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from fastapi import BackgroundTasks, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .ai import HeuristicAI
from .board import (
    PieceMove,
    slide_destinations,
    tile_destinations,
    tile_selection_allowed,
)
from .config import settings
from .errors import (
    EngineInvariantError,
    NoSuchPiece,
    NoSuchTile,
    RuleViolation,
    ViolationKind,
)
from .game import (
    GameState,
    MoveKind,
    Status,
    abandon,
    apply_piece_move,
    apply_tile_move,
    join,
    player_color,
    rematch,
    require_legal_moves,
    start,
)
from .hexgrid import is_connected
from .store import GameNotFound, GameStore, StaleStateError, StoredGame

logger = logging.getLogger(__name__)


@dataclass
class GameSession:
    """Server-side extras for a stored game: the AI opponent, if any."""

    ai: Optional[HeuristicAI] = None
    ai_player_id: Optional[str] = None
    ai_pending: bool = False
    unrecoverable: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


SESSIONS: Dict[str, GameSession] = {}


def _forget_session(game_id: str) -> None:
    SESSIONS.pop(game_id, None)


STORE = GameStore(on_drop=_forget_session)
app = FastAPI(title="NONAGA", description="Two-player hex tile strategy game")

AI_THINK_DELAY: Tuple[float, float] = (
    settings.ai_think_delay_min,
    settings.ai_think_delay_max,
)

_STATUS_BY_KIND: Dict[ViolationKind, int] = {
    ViolationKind.CONFLICT: 409,
    ViolationKind.NOT_YOUR_TURN: 409,
    ViolationKind.WRONG_PHASE: 409,
    ViolationKind.UNKNOWN_ACTOR: 403,
    ViolationKind.INVALID_SELECTION: 400,
    ViolationKind.ILLEGAL_MOVE: 400,
}


# ---------- Request payloads ----------


class PlayerRequest(BaseModel):
    """Body for commands that only identify the caller."""

    model_config = ConfigDict(populate_by_name=True)

    player_id: str = Field(alias="playerId", min_length=1)


class CreateGameRequest(PlayerRequest):
    vs_ai: bool = Field(
        default=False,
        alias="vsAi",
        description="Seat a server-side AI as the second player",
    )


class MoveRequest(PlayerRequest):
    """A slide (``type="piece"``) or a relocation (``type="tile"``)."""

    type: MoveKind
    piece_id: Optional[str] = Field(default=None, alias="pieceId")
    tile_index: Optional[int] = Field(default=None, alias="tileIndex", ge=0)
    to_q: int = Field(alias="toQ")
    to_r: int = Field(alias="toR")
    version: Optional[int] = Field(
        default=None,
        description="Version the client last saw; stale versions are rejected",
    )

    @model_validator(mode="after")
    def ensure_selector(self) -> "MoveRequest":
        if self.type == MoveKind.PIECE and not self.piece_id:
            raise ValueError("pieceId is required for piece move")
        if self.type == MoveKind.TILE and self.tile_index is None:
            raise ValueError("tileIndex is required for tile move")
        return self


# ---------- Error translation ----------


@app.exception_handler(RuleViolation)
async def _rule_violation(request: Request, exc: RuleViolation) -> JSONResponse:
    return JSONResponse(
        status_code=_STATUS_BY_KIND.get(exc.kind, 400),
        content={"detail": exc.message, "error": exc.kind.value},
    )


@app.exception_handler(StaleStateError)
async def _stale_state(request: Request, exc: StaleStateError) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={"detail": str(exc), "error": "stale_state", "version": exc.actual},
    )


@app.exception_handler(GameNotFound)
async def _game_not_found(request: Request, exc: GameNotFound) -> JSONResponse:
    return JSONResponse(
        status_code=404, content={"detail": "Game not found", "error": "not_found"}
    )


# ---------- Session plumbing ----------


def _get_session(game_id: str) -> GameSession:
    try:
        STORE.get(game_id)
    except GameNotFound:
        SESSIONS.pop(game_id, None)
        raise
    return SESSIONS.setdefault(game_id, GameSession())


def _update(
    game_id: str,
    change: Callable[[GameState], GameState],
    expected_version: Optional[int] = None,
) -> StoredGame:
    """Read, apply an engine operation, and commit with compare-and-swap."""
    record = STORE.get(game_id)
    if expected_version is not None and expected_version != record.version:
        raise StaleStateError(game_id, expected_version, record.version)
    return STORE.compare_and_swap(game_id, record.version, change(record.state))


def _ai_should_move(state: GameState, session: GameSession) -> bool:
    return (
        session.ai is not None
        and not session.unrecoverable
        and state.status == Status.PLAYING
        and state.turn == session.ai.player
    )


def _mark_unrecoverable(
    game_id: str, session: GameSession, exc: EngineInvariantError
) -> None:
    logger.error(f"Game {game_id} cannot continue: {exc}")
    session.unrecoverable = True


def _after_commit(
    game_id: str,
    record: StoredGame,
    session: GameSession,
    background_tasks: Optional[BackgroundTasks],
) -> None:
    """Flag dead positions and hand the turn to the AI when it is due."""
    state = record.state
    if state.status == Status.FINISHED:
        logger.info(f"Game {game_id} won by {state.winner.value}")
        return
    try:
        require_legal_moves(state)
    except EngineInvariantError as exc:
        _mark_unrecoverable(game_id, session, exc)
        return
    if (
        background_tasks is not None
        and _ai_should_move(state, session)
        and not session.ai_pending
    ):
        session.ai_pending = True
        background_tasks.add_task(_run_ai_turn, game_id)


def _run_ai_turn(game_id: str) -> None:
    session = SESSIONS.get(game_id)
    if not session or not session.ai:
        return

    try:
        # Slide then relocate; the loop ends once the turn passes back.
        while True:
            time.sleep(max(0.0, random.uniform(*AI_THINK_DELAY)))
            with session.lock:
                record = STORE.get(game_id)
                state = record.state
                if not _ai_should_move(state, session):
                    return
                move = session.ai.choose(state)
                if move is None:
                    require_legal_moves(state)
                    raise EngineInvariantError(
                        f"AI found no move for {state.turn.value}"
                    )
                if isinstance(move, PieceMove):
                    next_state = apply_piece_move(
                        state, session.ai_player_id, move.piece_id, move.target
                    )
                else:
                    next_state = apply_tile_move(
                        state, session.ai_player_id, move.tile_index, move.target
                    )
                record = STORE.compare_and_swap(game_id, record.version, next_state)
                _after_commit(game_id, record, session, None)
    except EngineInvariantError as exc:
        _mark_unrecoverable(game_id, session, exc)
    except (GameNotFound, StaleStateError, RuleViolation) as exc:
        logger.warning(f"AI turn in game {game_id} stopped: {exc}")
    finally:
        session.ai_pending = False


def _serialize_session(record: StoredGame, session: GameSession) -> Dict[str, object]:
    state = record.state
    payload: Dict[str, object] = state.model_dump(mode="json", by_alias=True)
    payload.update(
        {
            "gameId": record.game_id,
            "roomCode": record.room_code,
            "version": record.version,
            "createdAt": record.created_at.isoformat(),
            "updatedAt": record.updated_at.isoformat(),
            "vsAi": session.ai is not None,
            "aiPending": session.ai_pending,
            "unrecoverable": session.unrecoverable,
        }
    )
    return payload


# ---------- Routes ----------


@app.get("/api/health")
def health() -> Dict[str, object]:
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "games": len(STORE),
    }


@app.post("/api/game")
def create_game(
    request: CreateGameRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    state = start(request.player_id)
    session = GameSession()
    if request.vs_ai:
        ai_id = f"ai-{uuid.uuid4().hex[:8]}"
        state = join(state, ai_id)
        session.ai = HeuristicAI(player=state.guest_color, jitter=settings.ai_jitter)
        session.ai_player_id = ai_id

    record = STORE.create(state)
    SESSIONS[record.game_id] = session
    with session.lock:
        _after_commit(record.game_id, record, session, background_tasks)
    return _serialize_session(record, session)


@app.get("/api/game/room/{room_code}")
def get_game_by_room_code(room_code: str) -> Dict[str, object]:
    record = STORE.get_by_room_code(room_code)
    return _serialize_session(record, _get_session(record.game_id))


@app.get("/api/game/{game_id}")
def get_game(game_id: str) -> Dict[str, object]:
    session = _get_session(game_id)
    return _serialize_session(STORE.get(game_id), session)


@app.post("/api/game/{game_id}/join")
def join_game(game_id: str, request: PlayerRequest) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        record = _update(game_id, lambda s: join(s, request.player_id))
    logger.info(f"Player joined game {game_id}")
    return _serialize_session(record, session)


@app.post("/api/game/{game_id}/move")
def make_move(
    game_id: str, request: MoveRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    session = _get_session(game_id)
    target = (request.to_q, request.to_r)

    if request.type == MoveKind.PIECE:

        def change(state: GameState) -> GameState:
            return apply_piece_move(state, request.player_id, request.piece_id, target)

    else:

        def change(state: GameState) -> GameState:
            return apply_tile_move(state, request.player_id, request.tile_index, target)

    with session.lock:
        record = _update(game_id, change, request.version)
        _after_commit(game_id, record, session, background_tasks)
    return _serialize_session(record, session)


@app.get("/api/game/{game_id}/destinations")
def get_destinations(
    game_id: str,
    piece_id: Optional[str] = Query(default=None, alias="pieceId"),
    tile_index: Optional[int] = Query(default=None, alias="tileIndex", ge=0),
) -> Dict[str, object]:
    """Legal targets for one selection, for highlighting; never mutates."""
    state = STORE.get(game_id).state
    coords = state.tile_coords()
    reason: Optional[str] = None

    if piece_id is not None:
        piece = state.piece(piece_id)
        if piece is None:
            raise NoSuchPiece(f"No piece with id {piece_id!r}")
        targets = slide_destinations(piece, coords, state.pieces)
    elif tile_index is not None:
        if tile_index >= len(coords):
            raise NoSuchTile(f"No tile at index {tile_index}")
        if not tile_selection_allowed(tile_index, coords, state.pieces):
            reason = "A tile carrying a piece cannot be moved"
        elif not is_connected(coords, excluding=tile_index):
            reason = "Removing this tile would split the board"
        targets = [] if reason else tile_destinations(tile_index, coords)
    else:
        raise HTTPException(status_code=400, detail="pieceId or tileIndex is required")

    destinations: List[Dict[str, int]] = [{"q": q, "r": r} for q, r in targets]
    return {"destinations": destinations, "reason": reason}


@app.delete("/api/game/{game_id}")
def abandon_game(game_id: str, request: PlayerRequest) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        record = _update(game_id, lambda s: abandon(s, request.player_id))
    logger.info(f"Game {game_id} abandoned")
    return _serialize_session(record, session)


@app.post("/api/game/{game_id}/rematch")
def rematch_game(
    game_id: str, request: PlayerRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        record = _update(game_id, lambda s: rematch(s, request.player_id))
        state = record.state
        session.unrecoverable = False
        if session.ai is not None:
            # Colors are drawn again, so the AI may have switched sides.
            session.ai.player = player_color(state, session.ai_player_id)
        _after_commit(game_id, record, session, background_tasks)
    logger.info(f"Rematch started in game {game_id}")
    return _serialize_session(record, session)
