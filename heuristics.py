"""Distance-field precomputation and heuristic evaluation for informed search."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np

from sokoban import Coord, GridModel, StateNode

# Finite sentinel so sums over unreachable pairs stay finite integers.
INFINITY = 100_000_000


class DistanceField:
    """All-pairs shortest path lengths between the cells of one grid.

    The table is a single ``(rows, cols, rows, cols)`` buffer; every entry
    starts at ``INFINITY`` and only reachable non-wall pairs are overwritten,
    so wall sources keep an all-``INFINITY`` slice of their own.
    """

    def __init__(self, grid: GridModel, table: np.ndarray) -> None:
        self.grid = grid
        self._table = table
        self._table.setflags(write=False)

    @classmethod
    def build(cls, grid: GridModel) -> "DistanceField":
        size = grid.rows * grid.cols
        adjacency: List[List[int]] = [[] for _ in range(size)]
        for row in range(grid.rows):
            for col in range(grid.cols):
                if not grid.walls[row][col]:
                    adjacency[row * grid.cols + col] = [r * grid.cols + c for r, c in grid.neighbours((row, col))]

        table = np.full((grid.rows, grid.cols, grid.rows, grid.cols), INFINITY, dtype=np.int32)
        for row in range(grid.rows):
            for col in range(grid.cols):
                if not grid.walls[row][col]:
                    dist = cls._bfs(adjacency, row * grid.cols + col)
                    table[row, col] = np.array(dist, dtype=np.int32).reshape(grid.rows, grid.cols)
        return cls(grid, table)

    @staticmethod
    def _bfs(adjacency: List[List[int]], source: int) -> List[int]:
        """Step counts from ``source`` over flat cell indices."""
        dist = [INFINITY] * len(adjacency)
        dist[source] = 0
        frontier = deque([source])
        while frontier:
            current = frontier.popleft()
            step = dist[current] + 1
            for nxt in adjacency[current]:
                if dist[nxt] == INFINITY:
                    dist[nxt] = step
                    frontier.append(nxt)
        return dist

    def distance(self, p: Coord, q: Coord) -> int:
        return int(self._table[p[0], p[1], q[0], q[1]])

    def min_distance(self, p: Coord, rows: np.ndarray, cols: np.ndarray) -> int:
        """Smallest distance from ``p`` to any of the cells ``zip(rows, cols)``."""
        if len(rows) == 0:
            return INFINITY
        return int(self._table[p[0], p[1], rows, cols].min())

    def row(self, source: Coord) -> np.ndarray:
        return self._table[source[0], source[1]]


class GoalIndex:
    """Goal letter -> goal cells in row-major order."""

    def __init__(self, grid: GridModel) -> None:
        locations: Dict[str, List[Coord]] = {}
        for coord, letter in grid.goal_cells():
            locations.setdefault(letter, []).append(coord)
        self._locations = {letter: tuple(cells) for letter, cells in locations.items()}
        self._arrays = {
            letter: (np.array([r for r, _ in cells]), np.array([c for _, c in cells]))
            for letter, cells in self._locations.items()
        }

    def __contains__(self, letter: str) -> bool:
        return letter in self._locations

    def __len__(self) -> int:
        return len(self._locations)

    def locations(self, letter: str) -> Tuple[Coord, ...]:
        return self._locations.get(letter, ())

    def arrays(self, letter: str) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        return self._arrays.get(letter)


class Policy(Enum):
    ASTAR = "astar"
    WASTAR = "wastar"
    GREEDY = "greedy"


@dataclass(frozen=True)
class Evaluation:
    """How path cost ``g`` and estimate ``h`` combine into ``f``."""

    policy: Policy
    weight: int = 1

    def __post_init__(self) -> None:
        if self.weight < 1:
            raise ValueError(f"Weight must be a positive integer, got {self.weight}")

    @classmethod
    def astar(cls) -> "Evaluation":
        return cls(Policy.ASTAR)

    @classmethod
    def weighted(cls, weight: int) -> "Evaluation":
        return cls(Policy.WASTAR, weight)

    @classmethod
    def greedy(cls) -> "Evaluation":
        return cls(Policy.GREEDY)

    def combine(self, g: int, h: int) -> int:
        if self.policy is Policy.ASTAR:
            return g + h
        if self.policy is Policy.WASTAR:
            return g + self.weight * h
        return h

    def __str__(self) -> str:
        if self.policy is Policy.ASTAR:
            return "A* evaluation"
        if self.policy is Policy.WASTAR:
            return f"WA*({self.weight}) evaluation"
        return "Greedy evaluation"


class Heuristic:
    """Goal-distance estimate over a precomputed distance field.

    ``distances`` and ``goals`` can be passed in to share one precomputation
    between several heuristics built for the same level.
    """

    def __init__(self, grid: GridModel, evaluation: Evaluation,
                 distances: Optional[DistanceField] = None,
                 goals: Optional[GoalIndex] = None) -> None:
        self.grid = grid
        self.evaluation = evaluation
        self.distances = distances if distances is not None else DistanceField.build(grid)
        self.goals = goals if goals is not None else GoalIndex(grid)

    def h(self, node: StateNode) -> int:
        if not node.boxes:
            return 0
        box_sum = 0
        for coord, letter in node.boxes:
            arrays = self.goals.arrays(letter.lower())
            # Letters without a goal add nothing.
            if arrays is not None:
                box_sum += self.distances.min_distance(coord, *arrays)
        if box_sum == 0:
            return 0
        box_rows = np.array([r for (r, _), _ in node.boxes])
        box_cols = np.array([c for (_, c), _ in node.boxes])
        return box_sum + self.distances.min_distance(node.agent, box_rows, box_cols)

    def f(self, node: StateNode) -> int:
        return self.evaluation.combine(node.g(), self.h(node))

    def compare(self, n1: StateNode, n2: StateNode) -> int:
        return self.f(n1) - self.f(n2)

    def __str__(self) -> str:
        return str(self.evaluation)


__all__ = [
    "INFINITY",
    "DistanceField",
    "GoalIndex",
    "Policy",
    "Evaluation",
    "Heuristic",
]
