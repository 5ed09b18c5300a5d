"""Tests for slide and relocation legality and victory detection."""

from nonaga.board import (
    INITIAL_TILES,
    Color,
    Piece,
    count_adjacent_pairs,
    initial_pieces,
    initial_tiles,
    is_valid_piece_move,
    is_valid_tile_move,
    piece_moves,
    slide_destinations,
    tile_destinations,
    tile_move_violation,
    tile_moves,
    victory_cells,
)
from nonaga.hexgrid import is_connected, neighbors


def _pieces(red, blue):
    pieces = []
    for prefix, color, coords in (("r", Color.RED, red), ("b", Color.BLUE, blue)):
        for i, (q, r) in enumerate(coords, 1):
            pieces.append(Piece(id=f"{prefix}{i}", player=color, q=q, r=r))
    return pieces


def _piece(pieces, piece_id):
    return next(p for p in pieces if p.id == piece_id)


def test_initial_layout():
    tiles = initial_tiles()
    assert [t.coord for t in tiles] == list(INITIAL_TILES)
    assert [t.handle for t in tiles] == list(range(19))
    assert len(set(INITIAL_TILES)) == 19

    pieces = initial_pieces()
    assert sum(1 for p in pieces if p.player == Color.RED) == 3
    assert sum(1 for p in pieces if p.player == Color.BLUE) == 3
    assert all(p.coord in set(INITIAL_TILES) for p in pieces)


def test_slide_stops_before_blocking_piece():
    pieces = initial_pieces()
    r1 = _piece(pieces, "r1")
    # West of (2,-2): (1,-2) is free, (0,-2) holds b3.
    assert slide_destinations(r1, INITIAL_TILES, pieces) == [(1, -2), (-1, 1), (2, -1)]


def test_slide_goes_to_the_farthest_cell():
    tiles = [(0, 0), (1, 0), (2, 0), (3, 0), (4, 0)]
    pieces = _pieces([(0, 0)], [])
    piece = pieces[0]

    assert slide_destinations(piece, tiles, pieces) == [(4, 0)]
    assert is_valid_piece_move(piece, (4, 0), tiles, pieces)
    assert not is_valid_piece_move(piece, (2, 0), tiles, pieces)
    assert not is_valid_piece_move(piece, (1, 0), tiles, pieces)


def test_boxed_in_piece_has_no_slides():
    tiles = [(0, 0), (1, 0), (-1, 0)]
    pieces = _pieces([(0, 0)], [(1, 0), (-1, 0)])
    assert slide_destinations(pieces[0], tiles, pieces) == []


def test_piece_moves_are_piece_major():
    pieces = initial_pieces()
    moves = piece_moves(INITIAL_TILES, pieces, Color.RED)

    assert {m.piece_id for m in moves} == {"r1", "r2", "r3"}
    assert [m.target for m in moves[:3]] == [(1, -2), (-1, 1), (2, -1)]
    assert all(m.piece_id == "r1" for m in moves[:3])
    assert all(m.source == _piece(pieces, m.piece_id).coord for m in moves)


def test_tile_destinations_need_two_neighbours():
    index = INITIAL_TILES.index((2, -1))
    dests = tile_destinations(index, INITIAL_TILES)

    assert (1, 2) in dests
    assert (3, -1) not in dests
    assert (2, -1) not in dests
    remaining = set(INITIAL_TILES) - {(2, -1)}
    for dest in dests:
        assert dest not in remaining
        assert sum(1 for n in neighbors(dest) if n in remaining) >= 2


def test_tile_destinations_for_unknown_index():
    assert tile_destinations(19, INITIAL_TILES) == []
    assert tile_destinations(-1, INITIAL_TILES) == []


def test_valid_relocation():
    index = INITIAL_TILES.index((2, -1))
    assert is_valid_tile_move(index, (1, 2), INITIAL_TILES, initial_pieces())


def test_tile_under_a_piece_cannot_move():
    pieces = initial_pieces()
    index = INITIAL_TILES.index((2, -2))  # r1 stands here

    assert tile_move_violation(index, (1, 2), INITIAL_TILES, pieces) == (
        "A tile carrying a piece cannot be moved"
    )
    for dest in tile_destinations(index, INITIAL_TILES):
        assert not is_valid_tile_move(index, dest, INITIAL_TILES, pieces)


def test_destination_must_be_free():
    index = INITIAL_TILES.index((2, -1))
    assert tile_move_violation(index, (0, 0), INITIAL_TILES, initial_pieces()) == (
        "Destination already has a tile"
    )


def test_destination_must_touch_two_tiles():
    index = INITIAL_TILES.index((2, -1))
    assert tile_move_violation(index, (3, -1), INITIAL_TILES, initial_pieces()) == (
        "Destination must touch at least two tiles"
    )
    assert not is_valid_tile_move(index, (9, 9), INITIAL_TILES, initial_pieces())


def test_bridge_tile_cannot_move_anywhere():
    # Two clusters joined only through (2, 0).
    tiles = [(0, 0), (0, 1), (1, 0), (2, 0), (3, 0), (3, 1), (4, 0)]
    bridge = tiles.index((2, 0))
    assert is_connected(tiles)
    assert not is_connected(tiles, excluding=bridge)

    assert tile_move_violation(bridge, (1, 1), tiles, []) == (
        "Removing this tile would split the board"
    )
    for q in range(-3, 8):
        for r in range(-4, 5):
            assert not is_valid_tile_move(bridge, (q, r), tiles, [])


def test_no_tile_at_index():
    assert tile_move_violation(42, (1, 2), INITIAL_TILES, []) == "No tile at index 42"


def test_tile_moves_are_all_legal():
    pieces = initial_pieces()
    moves = tile_moves(INITIAL_TILES, pieces)
    occupied = {p.coord for p in pieces}

    assert moves
    for move in moves:
        assert move.source == INITIAL_TILES[move.tile_index]
        assert move.source not in occupied
        assert is_valid_tile_move(move.tile_index, move.target, INITIAL_TILES, pieces)


def test_victory_shapes():
    line = _pieces([(0, 0), (1, 0), (2, 0)], [])
    triangle = _pieces([(0, 0), (1, 0), (1, -1)], [])
    vee = _pieces([(0, 0), (1, 0), (1, 1)], [])

    assert victory_cells(line, Color.RED) == ((0, 0), (1, 0), (2, 0))
    assert victory_cells(triangle, Color.RED) is not None
    assert victory_cells(vee, Color.RED) is not None
    assert count_adjacent_pairs([p.coord for p in triangle]) == 3


def test_no_victory_without_two_pairs():
    apart = _pieces([(0, 0), (2, 0), (4, 0)], [])
    one_pair = _pieces([(0, 0), (1, 0), (3, 0)], [])

    assert victory_cells(apart, Color.RED) is None
    assert victory_cells(one_pair, Color.RED) is None


def test_victory_is_per_color():
    pieces = _pieces([(0, 0), (2, 0), (4, 0)], [(0, 1), (1, 1), (2, 1)])
    assert victory_cells(pieces, Color.RED) is None
    assert victory_cells(pieces, Color.BLUE) == ((0, 1), (1, 1), (2, 1))


def test_victory_needs_three_pieces():
    assert victory_cells(_pieces([(0, 0), (1, 0)], []), Color.RED) is None
