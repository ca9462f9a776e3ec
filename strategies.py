"""Frontier/explored bookkeeping for the graph search."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, List, Optional, Set, Tuple
import heapq
import itertools
import time
import tracemalloc

from heuristics import DistanceField, Evaluation, GoalIndex, Heuristic
from sokoban import GridModel, StateNode

STRATEGY_NAMES = ("bfs", "dfs", "astar", "wastar", "greedy")


class ComplexityTracker:
    def __init__(self, trace_memory: bool = True) -> None:
        self.nodes_generated = 0
        self.nodes_expanded = 0
        self.max_frontier = 0
        self.peak_memory = 0
        self._trace_memory = trace_memory
        self._owns_tracemalloc = False
        self._start_time = time.perf_counter()

    def start(self) -> None:
        self._start_time = time.perf_counter()
        if self._trace_memory and not tracemalloc.is_tracing():
            tracemalloc.start()
            self._owns_tracemalloc = True

    def stop(self) -> float:
        elapsed = self.elapsed()
        if tracemalloc.is_tracing():
            _, peak = tracemalloc.get_traced_memory()
            self.peak_memory = peak
        if self._owns_tracemalloc:
            tracemalloc.stop()
            self._owns_tracemalloc = False
        return elapsed

    def elapsed(self) -> float:
        return time.perf_counter() - self._start_time

    def record_generated(self) -> None:
        self.nodes_generated += 1

    def record_node(self) -> None:
        self.nodes_expanded += 1

    def track_frontier(self, size: int) -> None:
        if size > self.max_frontier:
            self.max_frontier = size

    def memory_status(self) -> str:
        if not tracemalloc.is_tracing():
            return "[Memory not traced]"
        used, peak = tracemalloc.get_traced_memory()
        self.peak_memory = max(self.peak_memory, peak)
        return f"[Used: {used / 2**20:.2f} MB, Peak: {peak / 2**20:.2f} MB]"


class Strategy(ABC):
    """A frontier discipline plus the explored set.

    Membership tests go through ``StateNode`` equality, which only compares
    agent position and box layout.
    """

    name: str = "base"

    def __init__(self) -> None:
        self.explored: Set[StateNode] = set()
        self.tracker = ComplexityTracker()

    def reset(self) -> None:
        """Forget every state from a previous search."""
        self.explored.clear()
        self._clear_frontier()

    def add_to_explored(self, node: StateNode) -> None:
        self.explored.add(node)
        self.tracker.record_node()

    def is_explored(self, node: StateNode) -> bool:
        return node in self.explored

    def explored_count(self) -> int:
        return len(self.explored)

    def search_status(self) -> str:
        return (
            f"#Explored: {self.explored_count():6d}, "
            f"#Frontier: {self.frontier_count():6d}, "
            f"#Generated: {self.explored_count() + self.frontier_count():6d}, "
            f"Time: {self.tracker.elapsed():3.2f} s \t{self.tracker.memory_status()}"
        )

    def add_to_frontier(self, node: StateNode) -> None:
        self._push(node)
        self.tracker.record_generated()
        self.tracker.track_frontier(self.frontier_count())

    @abstractmethod
    def _push(self, node: StateNode) -> None:
        raise NotImplementedError

    @abstractmethod
    def _clear_frontier(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_and_remove_leaf(self) -> StateNode:
        raise NotImplementedError

    @abstractmethod
    def in_frontier(self, node: StateNode) -> bool:
        raise NotImplementedError

    @abstractmethod
    def frontier_count(self) -> int:
        raise NotImplementedError

    def frontier_is_empty(self) -> bool:
        return self.frontier_count() == 0

    def __str__(self) -> str:
        return self.name


class BFSStrategy(Strategy):
    name = "Breadth-first Search"

    def __init__(self) -> None:
        super().__init__()
        self.frontier: Deque[StateNode] = deque()
        self.frontier_set: Set[StateNode] = set()

    def _clear_frontier(self) -> None:
        self.frontier.clear()
        self.frontier_set.clear()

    def _push(self, node: StateNode) -> None:
        self.frontier.append(node)
        self.frontier_set.add(node)

    def get_and_remove_leaf(self) -> StateNode:
        if not self.frontier:
            raise IndexError("get_and_remove_leaf from an empty frontier")
        node = self.frontier.popleft()
        self.frontier_set.remove(node)
        return node

    def in_frontier(self, node: StateNode) -> bool:
        return node in self.frontier_set

    def frontier_count(self) -> int:
        return len(self.frontier)


class DFSStrategy(BFSStrategy):
    name = "Depth-first Search"

    def get_and_remove_leaf(self) -> StateNode:
        if not self.frontier:
            raise IndexError("get_and_remove_leaf from an empty frontier")
        node = self.frontier.pop()
        self.frontier_set.remove(node)
        return node


class BestFirstStrategy(Strategy):
    """Priority frontier ordered by ``f``; equal ``f`` pops in insertion order."""

    def __init__(self, heuristic: Heuristic) -> None:
        super().__init__()
        self.heuristic = heuristic
        self.frontier: List[Tuple[int, int, StateNode]] = []
        self.frontier_set: Set[StateNode] = set()
        self._counter = itertools.count()

    def _clear_frontier(self) -> None:
        self.frontier.clear()
        self.frontier_set.clear()
        self._counter = itertools.count()

    @property
    def name(self) -> str:
        return f"Best-first Search using {self.heuristic}"

    def _push(self, node: StateNode) -> None:
        heapq.heappush(self.frontier, (self.heuristic.f(node), next(self._counter), node))
        self.frontier_set.add(node)

    def get_and_remove_leaf(self) -> StateNode:
        if not self.frontier:
            raise IndexError("get_and_remove_leaf from an empty frontier")
        _, _, node = heapq.heappop(self.frontier)
        self.frontier_set.remove(node)
        return node

    def in_frontier(self, node: StateNode) -> bool:
        return node in self.frontier_set

    def frontier_count(self) -> int:
        return len(self.frontier)


def make_strategy(name: str, grid: GridModel, weight: int = 5,
                  distances: Optional[DistanceField] = None,
                  goals: Optional[GoalIndex] = None) -> Strategy:
    """Build a strategy from its command-line name."""
    if name == "bfs":
        return BFSStrategy()
    if name == "dfs":
        return DFSStrategy()
    if name == "astar":
        evaluation = Evaluation.astar()
    elif name == "wastar":
        evaluation = Evaluation.weighted(weight)
    elif name == "greedy":
        evaluation = Evaluation.greedy()
    else:
        raise ValueError(f"Unknown strategy: {name!r} (choose from {', '.join(STRATEGY_NAMES)})")
    return BestFirstStrategy(Heuristic(grid, evaluation, distances, goals))


__all__ = [
    "STRATEGY_NAMES",
    "ComplexityTracker",
    "Strategy",
    "BFSStrategy",
    "DFSStrategy",
    "BestFirstStrategy",
    "make_strategy",
]
