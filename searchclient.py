"""Search client: reads a level, searches for a plan and plays it against the server."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, TextIO
import argparse
import sys

from tqdm import tqdm

from search import SearchEngine, SolverLimits, SolverResult
from sokoban import GridModel, LevelFormatError, StateNode, load_level_from_path, parse_level
from strategies import STRATEGY_NAMES, make_strategy


def _log(message: str) -> None:
    tqdm.write(message, file=sys.stderr)


class ServerConnection:
    """Line-based action channel: one action out, one acknowledgment back."""

    def __init__(self, messages: Optional[TextIO] = None, out: Optional[TextIO] = None) -> None:
        self.messages = messages if messages is not None else sys.stdin
        self.out = out if out is not None else sys.stdout

    def read_level(self) -> tuple[GridModel, StateNode]:
        return parse_level(iter(self.messages.readline, ""))

    def submit(self, action: str) -> tuple[bool, str]:
        print(action, file=self.out, flush=True)
        response = self.messages.readline()
        if not response:
            return False, "<no response>"
        response = response.strip()
        return "false" not in response, response


@dataclass
class ExecutionResult:
    accepted: int
    total: int
    rejected_action: Optional[str] = None
    response: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.rejected_action is None and self.accepted == self.total


def execute_plan(connection: ServerConnection, grid: GridModel,
                 plan: Sequence[StateNode], initial: StateNode) -> ExecutionResult:
    """Send the plan one action at a time; stop at the first rejection."""
    previous = initial
    for count, node in enumerate(plan):
        action = node.action.to_action_string()
        ok, response = connection.submit(action)
        if not ok:
            _log(f"[ERROR] Server responded with {response} to the inapplicable action: {action}")
            _log(f"[ERROR] {action} was attempted in \n{previous.render(grid)}")
            return ExecutionResult(accepted=count, total=len(plan),
                                   rejected_action=action, response=response)
        previous = node
    return ExecutionResult(accepted=len(plan), total=len(plan))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Single-agent box-pushing search client")
    parser.add_argument("-s", "--strategy", choices=STRATEGY_NAMES, default=None,
                        help="Search strategy (default: bfs)")
    parser.add_argument("-w", "--weight", type=int, default=5,
                        help="Weight W used by the wastar strategy")
    parser.add_argument("-l", "--level", default=None,
                        help="Solve a level file and print the plan instead of talking to a server")
    parser.add_argument("--time-limit", type=float, default=None, help="Give up after this many seconds")
    parser.add_argument("--node-limit", type=int, default=None, help="Give up after exploring this many states")
    parser.add_argument("--seed", type=int, default=None,
                        help="Shuffle successors with this seed (default: fixed order)")
    parser.add_argument("--report-every", type=int, default=1000,
                        help="Iterations between progress lines on stderr (0 disables)")
    parser.add_argument("--no-memory-trace", action="store_true",
                        help="Skip tracemalloc bookkeeping for faster runs")
    return parser


def solve(grid: GridModel, initial: StateNode, strategy_name: str = "bfs", weight: int = 5,
          limits: Optional[SolverLimits] = None) -> SolverResult:
    strategy = make_strategy(strategy_name, grid, weight=weight)
    return SearchEngine(grid).solve(initial, strategy, limits)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _log("[INFO] SearchClient initializing.")

    connection = None if args.level else ServerConnection()
    try:
        if args.level:
            grid, initial = load_level_from_path(args.level)
        else:
            grid, initial = connection.read_level()
    except (LevelFormatError, OSError) as exc:
        _log(f"[ERROR] {exc}")
        return 1

    strategy_name = args.strategy
    if strategy_name is None:
        strategy_name = "bfs"
        _log("[INFO] Defaulting to BFS search. Use -s {bfs,dfs,astar,wastar,greedy} to set the search strategy.")

    limits = SolverLimits(time_limit_s=args.time_limit,
                          node_limit=args.node_limit,
                          report_every=args.report_every,
                          seed=args.seed,
                          trace_memory=not args.no_memory_trace)
    try:
        result = solve(grid, initial, strategy_name, args.weight, limits)
    except ValueError as exc:
        _log(f"[ERROR] {exc}")
        return 1

    if not result.solved:
        return 0

    if connection is None:
        for action in result.move_sequence:
            print(action)
        return 0

    execution = execute_plan(connection, grid, result.plan, initial)
    return 0 if execution.completed else 2


if __name__ == "__main__":
    sys.exit(main())
