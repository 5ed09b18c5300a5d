"""Tests for the greedy heuristic AI."""

import random

import pytest

from nonaga.ai import HeuristicAI
from nonaga.board import (
    Color,
    Piece,
    PieceMove,
    Tile,
    TileMove,
    initial_tiles,
    is_valid_tile_move,
    victory_cells,
)
from nonaga.game import GameState, Phase, Status, apply_piece_move, start


def _pieces(red, blue):
    pieces = []
    for prefix, color, coords in (("r", Color.RED, red), ("b", Color.BLUE, blue)):
        for i, (q, r) in enumerate(coords, 1):
            pieces.append(Piece(id=f"{prefix}{i}", player=color, q=q, r=r))
    return tuple(pieces)


def _state(red, blue, tiles=None, phase=Phase.SLIDE_PIECE):
    if tiles is None:
        board = initial_tiles()
    else:
        board = tuple(Tile(handle=i, q=q, r=r) for i, (q, r) in enumerate(tiles))
    return GameState(
        host_player_id="human",
        guest_player_id="ai",
        host_color=Color.BLUE,
        tiles=board,
        pieces=_pieces(red, blue),
        status=Status.PLAYING,
        phase=phase,
    )


# Blue holds (0,0)-(1,0); b3 can slide down the (1,-3)..(1,-1) column to win.
THREAT_TILES = [
    (0, 0), (1, 0), (1, -1), (1, -2), (1, -3), (2, -3), (2, -2), (2, -1),
    (-1, 0), (0, 1), (-1, 1), (-2, 2),
]
THREAT_RED = [(-1, 0), (0, 1), (-2, 2)]
THREAT_BLUE = [(0, 0), (1, 0), (1, -3)]


def test_ai_takes_immediate_win():
    state = _state(red=[(0, 0), (1, 0), (1, -2)], blue=[(-2, 2), (0, 2), (-2, 0)])
    ai = HeuristicAI(player=Color.RED, rng=random.Random(0))

    move = ai.choose(state)
    assert isinstance(move, PieceMove)

    after = apply_piece_move(state, "ai", move.piece_id, move.target)
    assert after.status == Status.FINISHED
    assert after.winner == Color.RED
    assert victory_cells(after.pieces, Color.RED) is not None


def test_slide_score_terms():
    ai = HeuristicAI(player=Color.RED)
    pieces = _pieces(red=[(0, 0), (2, 0), (4, 0)], blue=[(0, 2), (-2, 2), (2, -2)])
    # min gap 2, spread 4, no pairs, (4, 0) is 4 from the origin.
    assert ai.score_piece_move(pieces, (4, 0)) == pytest.approx(-60 - 80 - 20)

    winning = _pieces(red=[(0, 0), (1, 0), (2, 0)], blue=[(0, 2), (-2, 2), (2, -2)])
    assert ai.score_piece_move(winning, (2, 0)) == 10_000


def test_relocation_blocks_opponent_win():
    state = _state(THREAT_RED, THREAT_BLUE, THREAT_TILES, phase=Phase.RELOCATE_TILE)
    ai = HeuristicAI(player=Color.RED, rng=random.Random(7))
    tiles = state.tile_coords()
    assert ai._opponent_can_win(tiles, state.pieces)

    move = ai.choose(state)
    assert isinstance(move, TileMove)
    assert is_valid_tile_move(move.tile_index, move.target, tiles, state.pieces)

    after = list(tiles)
    after[move.tile_index] = move.target
    assert not ai._opponent_can_win(after, state.pieces)


def test_pulling_a_tile_from_under_an_opponent_scores_highest():
    ai = HeuristicAI(player=Color.RED, jitter=0.0)
    pieces = _pieces(THREAT_RED, THREAT_BLUE)

    under_b1 = THREAT_TILES.index((0, 0))
    kidnap = ai.score_tile_move(THREAT_TILES, pieces, under_b1, (3, 3))
    # 15000 bonus, +4 mean distance (x100, and x200 more for blue's pair),
    # minus 10 per unit of red's total spread of 8.
    assert kidnap == pytest.approx(15_000 + 400 + 800 - 80)

    empty = THREAT_TILES.index((-1, 1))
    careless = ai.score_tile_move(THREAT_TILES, pieces, empty, (3, 3))
    assert careless == pytest.approx(-5_000 - 80)


def test_seeded_ai_is_deterministic():
    state = _state(
        red=[(1, -2), (0, 2), (-2, 0)],
        blue=[(2, 0), (-2, 2), (0, -2)],
        phase=Phase.RELOCATE_TILE,
    )
    first = HeuristicAI(player=Color.RED, rng=random.Random(11)).choose(state)
    second = HeuristicAI(player=Color.RED, rng=random.Random(11)).choose(state)
    assert first == second


def test_ai_refuses_to_move_out_of_turn():
    state = _state(red=[(2, -2), (0, 2), (-2, 0)], blue=[(2, 0), (-2, 2), (0, -2)])
    with pytest.raises(ValueError):
        HeuristicAI(player=Color.BLUE).choose(state)
    with pytest.raises(ValueError):
        HeuristicAI(player=Color.RED).choose(start("human"))


def test_ai_reports_no_move_when_boxed_in():
    state = _state(
        red=[(0, 0), (2, 0), (4, 0)],
        blue=[(1, 0), (3, 0), (5, 0)],
        tiles=[(0, 0), (1, 0), (2, 0), (3, 0), (4, 0), (5, 0), (6, 0), (7, 0), (6, -1)],
    )
    assert HeuristicAI(player=Color.RED).choose(state) is None
