"""Greedy one-ply heuristic AI for NONAGA.

Each half-move is chosen on its own: every legal slide (or relocation) is
scored and the best one is played. The slide scorer recognises an immediate
win; the relocation scorer looks one ply ahead for an opponent slide that
would win and steers away from it.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from itertools import combinations
from typing import List, Optional, Sequence, Union

from .board import (
    Color,
    Piece,
    PieceMove,
    TileMove,
    count_adjacent_pairs,
    piece_moves,
    slide_destinations,
    tile_moves,
    victory_cells,
)
from .game import GameState, Phase, Status
from .hexgrid import Coord, axial_manhattan

logger = logging.getLogger(__name__)

# Slide weights
WIN_SCORE = 10_000.0
OWN_PAIR_WEIGHT = 500.0
MIN_GAP_WEIGHT = 30.0
SPREAD_WEIGHT = 20.0
ENEMY_PAIR_WEIGHT = 200.0
ORIGIN_WEIGHT = 5.0

# Relocation weights
KIDNAP_BONUS = 15_000.0
THREAT_PENALTY = 5_000.0
DISPLACE_WEIGHT = 100.0
DISPLACE_RACE_WEIGHT = 200.0
OWN_REACH_WEIGHT = 50.0
COMPACTNESS_WEIGHT = 10.0

ORIGIN: Coord = (0, 0)


@dataclass
class HeuristicAI:
    """AI player for one color.

    ``rng`` drives the tie-break jitter on relocations; pass a seeded
    ``random.Random`` for reproducible play.
    """

    player: Color
    rng: random.Random = field(default_factory=random.Random, repr=False)
    jitter: float = 3.0

    # ---- public API ----

    def choose(self, state: GameState) -> Optional[Union[PieceMove, TileMove]]:
        """Move for the current half-move, or None if nothing is legal."""
        if state.status != Status.PLAYING:
            raise ValueError("Game is not in progress")
        if state.turn != self.player:
            raise ValueError("It is not this AI player's turn")
        if state.phase == Phase.SLIDE_PIECE:
            return self.choose_piece_move(state)
        return self.choose_tile_move(state)

    def choose_piece_move(self, state: GameState) -> Optional[PieceMove]:
        tiles = state.tile_coords()
        best: Optional[PieceMove] = None
        best_score = float("-inf")

        for move in piece_moves(tiles, state.pieces, self.player):
            after = _with_piece_at(state.pieces, move.piece_id, move.target)
            score = self.score_piece_move(after, move.target)
            # Strictly greater: ties keep the first move enumerated.
            if score > best_score:
                best, best_score = move, score

        if best is not None:
            logger.debug(f"{self.player.value} slides {best} (score {best_score:.1f})")
        return best

    def choose_tile_move(self, state: GameState) -> Optional[TileMove]:
        tiles = state.tile_coords()
        best: Optional[TileMove] = None
        best_score = float("-inf")

        for move in tile_moves(tiles, state.pieces):
            score = self.score_tile_move(
                tiles, state.pieces, move.tile_index, move.target
            )
            if score > best_score:
                best, best_score = move, score

        if best is not None:
            logger.debug(f"{self.player.value} moves tile {best} (score {best_score:.1f})")
        return best

    # ---- scoring ----

    def score_piece_move(self, pieces: Sequence[Piece], moved_to: Coord) -> float:
        """Score the position after a slide that ended on ``moved_to``."""
        mine = [p.coord for p in pieces if p.player == self.player]
        theirs = [p.coord for p in pieces if p.player != self.player]

        own_pairs = count_adjacent_pairs(mine)
        if own_pairs >= 2:
            return WIN_SCORE

        gaps = [axial_manhattan(a, b) for a, b in combinations(mine, 2)]
        min_gap = min(gaps) if gaps else 0

        cq = sum(q for q, _ in mine) / len(mine)
        cr = sum(r for _, r in mine) / len(mine)
        spread = sum(abs(q - cq) + abs(r - cr) for q, r in mine)

        score = OWN_PAIR_WEIGHT * own_pairs
        score -= MIN_GAP_WEIGHT * min_gap
        score -= SPREAD_WEIGHT * spread
        score -= ENEMY_PAIR_WEIGHT * count_adjacent_pairs(theirs)
        score -= ORIGIN_WEIGHT * axial_manhattan(moved_to, ORIGIN)
        return score

    def score_tile_move(
        self,
        tiles: Sequence[Coord],
        pieces: Sequence[Piece],
        tile_index: int,
        target: Coord,
    ) -> float:
        """Score relocating ``tiles[tile_index]`` to ``target``.

        Does not check legality; callers pass moves from ``tile_moves``.
        """
        selected = tiles[tile_index]
        after = [t for i, t in enumerate(tiles) if i != tile_index] + [target]

        mine = [p for p in pieces if p.player == self.player]
        theirs = [p for p in pieces if p.player != self.player]
        their_piece = next((p for p in theirs if p.coord == selected), None)
        my_piece = next((p for p in mine if p.coord == selected), None)

        score = 0.0
        if self._opponent_can_win(after, pieces):
            if their_piece is not None:
                score += KIDNAP_BONUS
            else:
                score -= THREAT_PENALTY

        if their_piece is not None:
            others = [p.coord for p in theirs if p.id != their_piece.id]
            if others:
                before = _mean_distance(selected, others)
                gain = _mean_distance(target, others) - before
                score += DISPLACE_WEIGHT * gain
                if count_adjacent_pairs([p.coord for p in theirs]) >= 1:
                    score += DISPLACE_RACE_WEIGHT * gain

        if my_piece is not None:
            others = [p.coord for p in mine if p.id != my_piece.id]
            if others:
                score -= OWN_REACH_WEIGHT * _mean_distance(target, others)
        else:
            total = sum(
                axial_manhattan(a.coord, b.coord) for a, b in combinations(mine, 2)
            )
            score -= COMPACTNESS_WEIGHT * total

        score += self.rng.uniform(0.0, self.jitter)
        return score

    # ---- helpers ----

    def _opponent_can_win(
        self, tiles: Sequence[Coord], pieces: Sequence[Piece]
    ) -> bool:
        """Whether any opponent slide on ``tiles`` would complete their group."""
        opponent = self.player.other
        for piece in pieces:
            if piece.player != opponent:
                continue
            for target in slide_destinations(piece, tiles, pieces):
                after = _with_piece_at(pieces, piece.id, target)
                if victory_cells(after, opponent) is not None:
                    return True
        return False


def _with_piece_at(
    pieces: Sequence[Piece], piece_id: str, target: Coord
) -> List[Piece]:
    return [p.moved_to(target) if p.id == piece_id else p for p in pieces]


def _mean_distance(origin: Coord, others: Sequence[Coord]) -> float:
    return sum(axial_manhattan(origin, o) for o in others) / len(others)
