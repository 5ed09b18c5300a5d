"""Axial hex coordinates, adjacency, and board connectivity for NONAGA."""

from __future__ import annotations

from collections import deque
from typing import List, Optional, Sequence, Set, Tuple

Coord = Tuple[int, int]  # axial (q, r)

# Fixed enumeration order; slide and tie-break ordering depend on it.
DIRECTIONS: Tuple[Coord, ...] = (
    (1, 0),
    (1, -1),
    (0, -1),
    (-1, 0),
    (-1, 1),
    (0, 1),
)


def step(c: Coord, direction: Coord) -> Coord:
    return (c[0] + direction[0], c[1] + direction[1])


def neighbors(c: Coord) -> List[Coord]:
    """The six cells around ``c``, in ``DIRECTIONS`` order."""
    return [step(c, d) for d in DIRECTIONS]


def are_adjacent(a: Coord, b: Coord) -> bool:
    return (b[0] - a[0], b[1] - a[1]) in DIRECTIONS


def axial_manhattan(a: Coord, b: Coord) -> int:
    """|dq| + |dr|; the distance the AI heuristics are tuned against."""
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def is_connected(tiles: Sequence[Coord], excluding: Optional[int] = None) -> bool:
    """True if ``tiles`` (minus the one at index ``excluding``) form one region.

    Breadth-first search from the first remaining tile. An empty set counts as
    connected.
    """
    remaining = [t for i, t in enumerate(tiles) if i != excluding]
    if not remaining:
        return True

    tile_set: Set[Coord] = set(remaining)
    start = remaining[0]
    visited: Set[Coord] = {start}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for n in neighbors(current):
            if n in tile_set and n not in visited:
                visited.add(n)
                queue.append(n)

    # A duplicated coordinate can never be visited twice, so it reads as split.
    return len(visited) == len(remaining)
