"""Graph-search driver: arena of states, limits and the main loop."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, TextIO
import sys
import threading

import numpy as np
from tqdm import tqdm

from sokoban import Command, GridModel, StateNode
from strategies import ComplexityTracker, Strategy


class CancellationToken:
    """Flag another thread can raise to stop a running search."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class SolverLimits:
    time_limit_s: Optional[float] = None
    node_limit: Optional[int] = None
    report_every: int = 1000
    seed: Optional[int] = None
    trace_memory: bool = True
    cancel_token: Optional[CancellationToken] = None


class Outcome(Enum):
    SOLVED = "solved"
    EXHAUSTED = "exhausted"
    OUT_OF_MEMORY = "out of memory"
    TIME_LIMIT = "time limit"
    NODE_LIMIT = "node limit"
    CANCELLED = "cancelled"


@dataclass
class SolverResult:
    outcome: Outcome
    plan: List[StateNode] = field(default_factory=list)
    elapsed_time_s: float = 0.0
    nodes_expanded: int = 0
    nodes_generated: int = 0
    max_frontier: int = 0
    peak_memory_bytes: int = 0
    status: str = ""

    @property
    def solved(self) -> bool:
        return self.outcome is Outcome.SOLVED

    @property
    def move_sequence(self) -> List[Command]:
        return [node.action for node in self.plan]


class SearchArena:
    """Owns every admitted node; parents are referenced by index."""

    def __init__(self) -> None:
        self.nodes: List[StateNode] = []

    def __len__(self) -> int:
        return len(self.nodes)

    def admit(self, node: StateNode) -> StateNode:
        node = node.with_index(len(self.nodes))
        self.nodes.append(node)
        return node

    def plan(self, goal: StateNode) -> List[StateNode]:
        """Nodes from the first action up to ``goal``; the root is left out."""
        path = []
        current = goal
        while current.parent is not None:
            path.append(current)
            current = self.nodes[current.parent]
        path.reverse()
        return path


class SearchEngine:
    def __init__(self, grid: GridModel, log_file: Optional[TextIO] = None, quiet: bool = False) -> None:
        self.grid = grid
        self.log_file = log_file
        self.quiet = quiet

    def _log(self, message: str) -> None:
        if not self.quiet:
            tqdm.write(message, file=self.log_file if self.log_file is not None else sys.stderr)

    def solve(self, initial: StateNode, strategy: Strategy,
              limits: Optional[SolverLimits] = None) -> SolverResult:
        limits = limits or SolverLimits()
        strategy.reset()
        strategy.tracker = ComplexityTracker(trace_memory=limits.trace_memory)
        strategy.tracker.start()
        self._log(f"[INFO] Search starting with strategy {strategy}.")
        try:
            outcome, plan = self._search(initial, strategy, limits)
        except MemoryError:
            outcome, plan = Outcome.OUT_OF_MEMORY, []
            self._log("[WARN] Maximum memory usage exceeded.")
        finally:
            status = strategy.search_status()
            elapsed = strategy.tracker.stop()
        if outcome is Outcome.SOLVED:
            self._log(f"\n[INFO] Summary for {strategy}")
            self._log(f"[INFO] Found solution of length {len(plan)}")
        else:
            self._log(f"[INFO] Unable to solve level ({outcome.value}).")
        self._log(f"[INFO] {status}")
        return SolverResult(
            outcome=outcome,
            plan=plan,
            elapsed_time_s=elapsed,
            nodes_expanded=strategy.explored_count(),
            nodes_generated=strategy.tracker.nodes_generated,
            max_frontier=strategy.tracker.max_frontier,
            peak_memory_bytes=strategy.tracker.peak_memory,
            status=status,
        )

    def _stop_reason(self, strategy: Strategy, limits: SolverLimits) -> Optional[Outcome]:
        if limits.cancel_token is not None and limits.cancel_token.cancelled:
            return Outcome.CANCELLED
        if limits.time_limit_s is not None and strategy.tracker.elapsed() > limits.time_limit_s:
            return Outcome.TIME_LIMIT
        if limits.node_limit is not None and strategy.explored_count() >= limits.node_limit:
            return Outcome.NODE_LIMIT
        return None

    def _search(self, initial: StateNode, strategy: Strategy,
                limits: SolverLimits) -> tuple[Outcome, List[StateNode]]:
        arena = SearchArena()
        rng = np.random.default_rng(limits.seed) if limits.seed is not None else None
        strategy.add_to_frontier(arena.admit(initial))

        iterations = 0
        while True:
            if limits.report_every and iterations == limits.report_every:
                self._log(strategy.search_status())
                iterations = 0

            reason = self._stop_reason(strategy, limits)
            if reason is not None:
                self._log(f"[WARN] Search stopped: {reason.value}")
                return reason, []

            if strategy.frontier_is_empty():
                return Outcome.EXHAUSTED, []

            leaf = strategy.get_and_remove_leaf()

            if leaf.is_goal_state(self.grid):
                return Outcome.SOLVED, arena.plan(leaf)

            strategy.add_to_explored(leaf)
            children = leaf.get_expanded_nodes(self.grid)
            if rng is not None:
                rng.shuffle(children)
            for child in children:
                if not strategy.is_explored(child) and not strategy.in_frontier(child):
                    strategy.add_to_frontier(arena.admit(child))
            iterations += 1


__all__ = [
    "CancellationToken",
    "SolverLimits",
    "Outcome",
    "SolverResult",
    "SearchArena",
    "SearchEngine",
]
