"""Board values, legal-move generation, and victory detection for NONAGA.

Everything here is a pure function of a tile sequence and a piece sequence.
Tiles are passed as plain axial coordinates, in board order, so that an index
into the sequence is the tile selector used by the move protocol.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from itertools import combinations
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .hexgrid import DIRECTIONS, Coord, are_adjacent, is_connected, neighbors, step


class EngineModel(BaseModel):
    """Immutable value with camelCase wire names."""

    model_config = ConfigDict(
        frozen=True, populate_by_name=True, alias_generator=to_camel
    )


class Color(str, Enum):
    RED = "red"
    BLUE = "blue"

    @property
    def other(self) -> "Color":
        return Color.BLUE if self is Color.RED else Color.RED


class Tile(EngineModel):
    # Stable identity; survives relocation, unlike the coordinate.
    handle: int
    q: int
    r: int

    @property
    def coord(self) -> Coord:
        return (self.q, self.r)

    def moved_to(self, coord: Coord) -> "Tile":
        return self.model_copy(update={"q": coord[0], "r": coord[1]})


class Piece(EngineModel):
    id: str
    player: Color
    q: int
    r: int

    @property
    def coord(self) -> Coord:
        return (self.q, self.r)

    def moved_to(self, coord: Coord) -> "Piece":
        return self.model_copy(update={"q": coord[0], "r": coord[1]})


@dataclass(frozen=True)
class PieceMove:
    piece_id: str
    source: Coord
    target: Coord


@dataclass(frozen=True)
class TileMove:
    tile_index: int
    source: Coord
    target: Coord


# ---------- Canonical layout ----------

# Existing clients depend on this exact order.
INITIAL_TILES: Tuple[Coord, ...] = (
    (0, 0),
    (1, 0),
    (1, -1),
    (0, -1),
    (-1, 0),
    (-1, 1),
    (0, 1),
    (2, 0),
    (2, -1),
    (2, -2),
    (1, -2),
    (0, -2),
    (-1, -1),
    (-2, 0),
    (-2, 1),
    (-2, 2),
    (-1, 2),
    (0, 2),
    (1, 1),
)

INITIAL_PIECES: Tuple[Tuple[str, Color, Coord], ...] = (
    ("r1", Color.RED, (2, -2)),
    ("b1", Color.BLUE, (2, 0)),
    ("r2", Color.RED, (0, 2)),
    ("b2", Color.BLUE, (-2, 2)),
    ("r3", Color.RED, (-2, 0)),
    ("b3", Color.BLUE, (0, -2)),
)


def initial_tiles() -> Tuple[Tile, ...]:
    return tuple(
        Tile(handle=i, q=q, r=r) for i, (q, r) in enumerate(INITIAL_TILES)
    )


def initial_pieces() -> Tuple[Piece, ...]:
    return tuple(
        Piece(id=piece_id, player=color, q=q, r=r)
        for piece_id, color, (q, r) in INITIAL_PIECES
    )


# ---------- Piece slides ----------


def slide_destinations(
    piece: Piece, tiles: Sequence[Coord], pieces: Sequence[Piece]
) -> List[Coord]:
    """Farthest reachable cell in each direction, in ``DIRECTIONS`` order.

    A piece slides until the next cell has no tile or holds another piece; it
    never stops short. Directions blocked on the first step yield nothing.
    """
    tile_set = set(tiles)
    occupied = {p.coord for p in pieces}

    destinations: List[Coord] = []
    for direction in DIRECTIONS:
        current = piece.coord
        while True:
            nxt = step(current, direction)
            if nxt not in tile_set or nxt in occupied:
                break
            current = nxt
        if current != piece.coord:
            destinations.append(current)
    return destinations


def is_valid_piece_move(
    piece: Piece, dest: Coord, tiles: Sequence[Coord], pieces: Sequence[Piece]
) -> bool:
    return tuple(dest) in slide_destinations(piece, tiles, pieces)


def piece_moves(
    tiles: Sequence[Coord], pieces: Sequence[Piece], color: Color
) -> List[PieceMove]:
    """All legal slides for ``color``: piece order, then direction order."""
    moves: List[PieceMove] = []
    for piece in pieces:
        if piece.player != color:
            continue
        for target in slide_destinations(piece, tiles, pieces):
            moves.append(PieceMove(piece.id, piece.coord, target))
    return moves


# ---------- Tile relocation ----------


def _adjacent_count(coord: Coord, tile_set: set) -> int:
    return sum(1 for n in neighbors(coord) if n in tile_set)


def tile_destinations(selected_index: int, tiles: Sequence[Coord]) -> List[Coord]:
    """Free cells touching at least two of the tiles left after the pick-up."""
    if not 0 <= selected_index < len(tiles):
        return []

    selected = tiles[selected_index]
    remaining = [t for i, t in enumerate(tiles) if i != selected_index]
    remaining_set = set(remaining)

    counts: Dict[Coord, int] = {}
    for tile in remaining:
        for n in neighbors(tile):
            if n in remaining_set or n == selected:
                continue
            counts[n] = counts.get(n, 0) + 1

    return [c for c, hits in counts.items() if hits >= 2]


def tile_selection_allowed(
    selected_index: int, tiles: Sequence[Coord], pieces: Sequence[Piece]
) -> bool:
    """The tile exists and nothing stands on it."""
    if not 0 <= selected_index < len(tiles):
        return False
    return tiles[selected_index] not in {p.coord for p in pieces}


def tile_move_violation(
    selected_index: int,
    dest: Coord,
    tiles: Sequence[Coord],
    pieces: Sequence[Piece],
) -> Optional[str]:
    """Return why a relocation is illegal, or None if it is allowed."""
    if not 0 <= selected_index < len(tiles):
        return f"No tile at index {selected_index}"
    if not tile_selection_allowed(selected_index, tiles, pieces):
        return "A tile carrying a piece cannot be moved"

    dest = tuple(dest)
    if dest in set(tiles):
        return "Destination already has a tile"

    # Removal alone must not split the board, wherever the tile lands.
    if not is_connected(tiles, excluding=selected_index):
        return "Removing this tile would split the board"

    remaining = {t for i, t in enumerate(tiles) if i != selected_index}
    if _adjacent_count(dest, remaining) < 2:
        return "Destination must touch at least two tiles"

    return None


def is_valid_tile_move(
    selected_index: int,
    dest: Coord,
    tiles: Sequence[Coord],
    pieces: Sequence[Piece],
) -> bool:
    return tile_move_violation(selected_index, dest, tiles, pieces) is None


def tile_moves(tiles: Sequence[Coord], pieces: Sequence[Piece]) -> List[TileMove]:
    """All legal relocations: tile index order, then destination order."""
    occupied = {p.coord for p in pieces}
    moves: List[TileMove] = []
    for index, tile in enumerate(tiles):
        if tile in occupied:
            continue
        # Cut vertices are rejected before the destination scan.
        if not is_connected(tiles, excluding=index):
            continue
        for target in tile_destinations(index, tiles):
            moves.append(TileMove(index, tile, target))
    return moves


# ---------- Victory ----------


def count_adjacent_pairs(coords: Sequence[Coord]) -> int:
    return sum(1 for a, b in combinations(coords, 2) if are_adjacent(a, b))


def victory_cells(
    pieces: Sequence[Piece], color: Color
) -> Optional[Tuple[Coord, Coord, Coord]]:
    """The three coordinates of ``color`` if they form one connected group.

    Two adjacent pairs out of three is enough: a line, a V, or a triangle.
    """
    own = [p.coord for p in pieces if p.player == color]
    if len(own) != 3:
        return None
    if count_adjacent_pairs(own) >= 2:
        return (own[0], own[1], own[2])
    return None
