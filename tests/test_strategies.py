import pytest

from heuristics import Evaluation, Heuristic
from sokoban import GridModel, StateNode
from strategies import BestFirstStrategy, BFSStrategy, DFSStrategy, make_strategy

GRID = GridModel.from_rows([[False] * 5], [[None] * 5])


def _node(col, depth=0):
    return StateNode(agent=(0, col), boxes=frozenset(), depth=depth)


def _drain(strategy):
    order = []
    while not strategy.frontier_is_empty():
        order.append(strategy.get_and_remove_leaf().agent_col)
    return order


def test_bfs_pops_in_insertion_order():
    strategy = BFSStrategy()
    for col in (2, 0, 4):
        strategy.add_to_frontier(_node(col))
    assert _drain(strategy) == [2, 0, 4]


def test_dfs_pops_newest_first():
    strategy = DFSStrategy()
    for col in (2, 0, 4):
        strategy.add_to_frontier(_node(col))
    assert _drain(strategy) == [4, 0, 2]


def test_best_first_orders_by_f_and_breaks_ties_by_insertion():
    strategy = BestFirstStrategy(Heuristic(GRID, Evaluation.astar()))
    strategy.add_to_frontier(_node(0, depth=3))
    strategy.add_to_frontier(_node(1, depth=1))
    strategy.add_to_frontier(_node(2, depth=3))
    strategy.add_to_frontier(_node(3, depth=2))
    strategy.add_to_frontier(_node(4, depth=1))
    assert _drain(strategy) == [1, 4, 3, 0, 2]


@pytest.mark.parametrize("strategy", [
    BFSStrategy(),
    DFSStrategy(),
    BestFirstStrategy(Heuristic(GRID, Evaluation.greedy())),
])
def test_membership_is_by_state_content(strategy):
    strategy.add_to_frontier(_node(1, depth=4))
    assert strategy.in_frontier(_node(1))
    assert not strategy.in_frontier(_node(2))

    leaf = strategy.get_and_remove_leaf()
    assert not strategy.in_frontier(leaf)
    strategy.add_to_explored(leaf)
    assert strategy.is_explored(_node(1, depth=9))
    assert strategy.explored_count() == 1


@pytest.mark.parametrize("strategy", [BFSStrategy(), DFSStrategy(),
                                      BestFirstStrategy(Heuristic(GRID, Evaluation.astar()))])
def test_empty_frontier_cannot_be_popped(strategy):
    assert strategy.frontier_is_empty()
    with pytest.raises(IndexError):
        strategy.get_and_remove_leaf()


def test_status_line_reports_counts():
    strategy = BFSStrategy()
    strategy.add_to_frontier(_node(0))
    strategy.add_to_frontier(_node(1))
    strategy.add_to_explored(strategy.get_and_remove_leaf())
    status = strategy.search_status()
    assert "#Explored:      1" in status
    assert "#Frontier:      1" in status
    assert "#Generated:      2" in status
    assert strategy.tracker.max_frontier == 2


@pytest.mark.parametrize("name, expected", [
    ("bfs", "Breadth-first Search"),
    ("dfs", "Depth-first Search"),
    ("astar", "Best-first Search using A* evaluation"),
    ("wastar", "Best-first Search using WA*(5) evaluation"),
    ("greedy", "Best-first Search using Greedy evaluation"),
])
def test_make_strategy_by_name(name, expected):
    assert str(make_strategy(name, GRID)) == expected


def test_make_strategy_rejects_unknown_name():
    with pytest.raises(ValueError):
        make_strategy("ida", GRID)


@pytest.mark.parametrize("strategy", [BFSStrategy(), DFSStrategy(),
                                      BestFirstStrategy(Heuristic(GRID, Evaluation.astar()))])
def test_reset_forgets_frontier_and_explored(strategy):
    strategy.add_to_frontier(_node(0))
    strategy.add_to_frontier(_node(1))
    strategy.add_to_explored(strategy.get_and_remove_leaf())
    strategy.reset()
    assert strategy.frontier_is_empty()
    assert strategy.explored_count() == 0
    assert not strategy.in_frontier(_node(1))
    strategy.add_to_frontier(_node(3))
    assert strategy.get_and_remove_leaf().agent_col == 3
