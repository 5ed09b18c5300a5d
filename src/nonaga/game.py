"""Game state and turn sequencing for NONAGA.

A turn is two half-moves by the same player: slide one of their pieces
(``move_token``), then relocate an empty tile (``move_tile``). Every operation
here takes a ``GameState`` and returns a new one; a rejected command raises a
``RuleViolation`` and leaves the input untouched.
"""

from __future__ import annotations

import random
from collections import Counter
from enum import Enum
from typing import List, Optional, Tuple, Union

from .board import (
    Color,
    EngineModel,
    Piece,
    PieceMove,
    Tile,
    TileMove,
    initial_pieces,
    initial_tiles,
    is_valid_piece_move,
    piece_moves,
    tile_move_violation,
    tile_moves,
    tile_selection_allowed,
    victory_cells,
)
from .errors import (
    Conflict,
    EngineInvariantError,
    IllegalMove,
    NoSuchPiece,
    NoSuchTile,
    NotPlaying,
    NotYourTurn,
    TileNotMovable,
    UnknownActor,
    WrongOwner,
    WrongPhase,
)
from .hexgrid import Coord, is_connected

STARTING_COLOR = Color.RED


class Phase(str, Enum):
    AWAITING_OPPONENT = "waiting"
    SLIDE_PIECE = "move_token"
    RELOCATE_TILE = "move_tile"
    ENDED = "ended"


class Status(str, Enum):
    WAITING = "WAITING"
    PLAYING = "PLAYING"
    FINISHED = "FINISHED"
    ABANDONED = "ABANDONED"


class MoveKind(str, Enum):
    PIECE = "piece"
    TILE = "tile"


class LastMove(EngineModel):
    """The most recent successful half-move, for animating ``source -> target``."""

    kind: MoveKind
    player: Color
    source: Coord
    target: Coord
    piece_id: Optional[str] = None
    tile_index: Optional[int] = None
    tile_handle: Optional[int] = None


class GameState(EngineModel):
    host_player_id: str
    guest_player_id: Optional[str] = None
    host_color: Color
    tiles: Tuple[Tile, ...]
    pieces: Tuple[Piece, ...]
    turn: Color = STARTING_COLOR
    phase: Phase = Phase.AWAITING_OPPONENT
    status: Status = Status.WAITING
    winner: Optional[Color] = None
    victory_line: Optional[Tuple[Coord, Coord, Coord]] = None
    last_move: Optional[LastMove] = None

    @property
    def guest_color(self) -> Color:
        return self.host_color.other

    @property
    def is_terminal(self) -> bool:
        return self.status in (Status.FINISHED, Status.ABANDONED)

    def tile_coords(self) -> List[Coord]:
        return [t.coord for t in self.tiles]

    def piece(self, piece_id: str) -> Optional[Piece]:
        for p in self.pieces:
            if p.id == piece_id:
                return p
        return None

    def tile_by_handle(self, handle: int) -> Optional[Tuple[int, Tile]]:
        for index, tile in enumerate(self.tiles):
            if tile.handle == handle:
                return index, tile
        return None


# ---------- Lifecycle ----------


def start(host_id: str, rng: Optional[random.Random] = None) -> GameState:
    """New game waiting for a second player; the host's color is a coin flip."""
    host_color = (rng or random).choice((Color.RED, Color.BLUE))
    return GameState(
        host_player_id=host_id,
        host_color=host_color,
        tiles=initial_tiles(),
        pieces=initial_pieces(),
    )


def join(state: GameState, guest_id: str) -> GameState:
    if state.status != Status.WAITING:
        raise Conflict("This game has already started")
    if guest_id == state.host_player_id:
        raise Conflict("The host is already seated in this game")
    return state.model_copy(
        update={
            "guest_player_id": guest_id,
            "status": Status.PLAYING,
            "phase": Phase.SLIDE_PIECE,
        }
    )


def abandon(state: GameState, actor_id: str) -> GameState:
    """The leaver forfeits; the other color is recorded as winner."""
    color = _participant_color(state, actor_id)
    if state.is_terminal:
        raise Conflict("Game is already over")
    return state.model_copy(
        update={
            "status": Status.ABANDONED,
            "winner": color.other,
            "phase": Phase.ENDED,
        }
    )


def rematch(
    state: GameState, actor_id: str, rng: Optional[random.Random] = None
) -> GameState:
    """Fresh board for the same two players, colors drawn again."""
    _participant_color(state, actor_id)
    if not state.is_terminal:
        raise Conflict("Rematch is only possible once the game is over")

    fresh = start(state.host_player_id, rng)
    if state.guest_player_id is None:
        return fresh
    return join(fresh, state.guest_player_id)


# ---------- Moves ----------


def apply_piece_move(
    state: GameState, actor_id: str, piece_id: str, dest: Coord
) -> GameState:
    color = _authorize(state, actor_id, Phase.SLIDE_PIECE)

    piece = state.piece(piece_id)
    if piece is None:
        raise NoSuchPiece(f"No piece with id {piece_id!r}")
    if piece.player != color:
        raise WrongOwner("Cannot move an opponent's piece")

    target = (int(dest[0]), int(dest[1]))
    if not is_valid_piece_move(piece, target, state.tile_coords(), state.pieces):
        raise IllegalMove(f"Piece {piece_id} cannot slide to {target}")

    pieces = tuple(
        p.moved_to(target) if p.id == piece_id else p for p in state.pieces
    )
    last_move = LastMove(
        kind=MoveKind.PIECE,
        player=color,
        piece_id=piece_id,
        source=piece.coord,
        target=target,
    )

    # Only the mover can win on their own slide.
    line = victory_cells(pieces, color)
    if line is not None:
        return state.model_copy(
            update={
                "pieces": pieces,
                "last_move": last_move,
                "status": Status.FINISHED,
                "phase": Phase.ENDED,
                "winner": color,
                "victory_line": line,
            }
        )

    return state.model_copy(
        update={
            "pieces": pieces,
            "last_move": last_move,
            "phase": Phase.RELOCATE_TILE,
        }
    )


def apply_tile_move(
    state: GameState, actor_id: str, tile_index: int, dest: Coord
) -> GameState:
    color = _authorize(state, actor_id, Phase.RELOCATE_TILE)

    coords = state.tile_coords()
    if not 0 <= tile_index < len(coords):
        raise NoSuchTile(f"No tile at index {tile_index}")
    if not tile_selection_allowed(tile_index, coords, state.pieces):
        raise TileNotMovable("A tile carrying a piece cannot be moved")

    target = (int(dest[0]), int(dest[1]))
    reason = tile_move_violation(tile_index, target, coords, state.pieces)
    if reason is not None:
        raise IllegalMove(reason)

    tile = state.tiles[tile_index]
    tiles = tuple(
        t.moved_to(target) if i == tile_index else t
        for i, t in enumerate(state.tiles)
    )
    return state.model_copy(
        update={
            "tiles": tiles,
            "last_move": LastMove(
                kind=MoveKind.TILE,
                player=color,
                tile_index=tile_index,
                tile_handle=tile.handle,
                source=tile.coord,
                target=target,
            ),
            "phase": Phase.SLIDE_PIECE,
            "turn": color.other,
        }
    )


def legal_moves(state: GameState) -> Union[List[PieceMove], List[TileMove]]:
    """Every legal half-move for the side to move."""
    if state.status != Status.PLAYING:
        return []
    coords = state.tile_coords()
    if state.phase == Phase.SLIDE_PIECE:
        return piece_moves(coords, state.pieces, state.turn)
    if state.phase == Phase.RELOCATE_TILE:
        return tile_moves(coords, state.pieces)
    return []


def require_legal_moves(state: GameState) -> Union[List[PieceMove], List[TileMove]]:
    """Like ``legal_moves``, but a game in play with nothing to do is fatal."""
    moves = legal_moves(state)
    if state.status == Status.PLAYING and not moves:
        problems = check_invariants(state)
        raise EngineInvariantError(
            f"No legal move for {state.turn.value} in phase {state.phase.value}; "
            f"invariant problems: {problems or 'none'}"
        )
    return moves


# ---------- Queries ----------


def player_color(state: GameState, player_id: str) -> Optional[Color]:
    if player_id == state.host_player_id:
        return state.host_color
    if state.guest_player_id is not None and player_id == state.guest_player_id:
        return state.guest_color
    return None


def check_invariants(state: GameState) -> List[str]:
    """Structural problems with ``state``; an empty list means it is sound."""
    problems: List[str] = []
    coords = state.tile_coords()

    dupes = [c for c, n in Counter(coords).items() if n > 1]
    if dupes:
        problems.append(f"Duplicate tile coordinates: {sorted(dupes)}")
    if len({t.handle for t in state.tiles}) != len(state.tiles):
        problems.append("Duplicate tile handles")
    if not is_connected(coords):
        problems.append("Tiles are not connected")

    tile_set = set(coords)
    for color in Color:
        count = sum(1 for p in state.pieces if p.player == color)
        if count != 3:
            problems.append(f"{color.value} has {count} pieces, expected 3")
    for p in state.pieces:
        if p.coord not in tile_set:
            problems.append(f"Piece {p.id} at {p.coord} is off the board")
    positions = [p.coord for p in state.pieces]
    if len(set(positions)) != len(positions):
        problems.append("Two pieces share a coordinate")

    if state.status == Status.PLAYING and state.phase not in (
        Phase.SLIDE_PIECE,
        Phase.RELOCATE_TILE,
    ):
        problems.append(f"Playing game in phase {state.phase.value}")
    if state.status == Status.FINISHED and (
        state.winner is None or state.victory_line is None
    ):
        problems.append("Finished game without a winner and victory line")
    return problems


# ---------- helpers ----------


def _participant_color(state: GameState, actor_id: str) -> Color:
    color = player_color(state, actor_id)
    if color is None:
        raise UnknownActor("Player not in this game")
    return color


def _authorize(state: GameState, actor_id: str, phase: Phase) -> Color:
    if state.status != Status.PLAYING:
        raise NotPlaying("Game is not in progress")
    if state.phase != phase:
        raise WrongPhase(
            "Not in piece movement phase"
            if phase == Phase.SLIDE_PIECE
            else "Not in tile movement phase"
        )
    color = _participant_color(state, actor_id)
    if color != state.turn:
        raise NotYourTurn("Not your turn")
    return color
