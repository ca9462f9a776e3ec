import io
from pathlib import Path

import pytest

from search import SearchEngine, SolverLimits
from searchclient import ServerConnection, execute_plan, main
from sokoban import Command, load_level_from_path
from strategies import make_strategy

LEVELS = Path(__file__).resolve().parent.parent / "levels"

CORRIDOR_PLAN = ["Move(E)", "Push(E,E)", "Push(E,E)", "Push(E,E)", "Push(E,E)"]


def _plan(level):
    grid, root = level
    limits = SolverLimits(report_every=0, trace_memory=False)
    return SearchEngine(grid, quiet=True).solve(root, make_strategy("astar", grid), limits).plan


def test_execute_plan_sends_every_action(corridor):
    grid, root = corridor
    out = io.StringIO()
    connection = ServerConnection(io.StringIO("[true]\n" * 5), out)
    execution = execute_plan(connection, grid, _plan(corridor), root)
    assert execution.completed
    assert execution.accepted == 5
    assert out.getvalue().splitlines() == [f"[{action}]" for action in CORRIDOR_PLAN]


def test_execute_plan_halts_on_rejection(corridor, capsys):
    grid, root = corridor
    out = io.StringIO()
    connection = ServerConnection(io.StringIO("[true]\n[false]\n[true]\n"), out)
    execution = execute_plan(connection, grid, _plan(corridor), root)
    assert not execution.completed
    assert execution.accepted == 1
    assert execution.rejected_action == "[Push(E,E)]"
    assert execution.response == "[false]"
    assert len(out.getvalue().splitlines()) == 2
    err = capsys.readouterr().err
    assert "inapplicable action: [Push(E,E)]" in err
    assert " 0A   a" in err


def test_missing_acknowledgment_counts_as_rejection(corridor):
    grid, root = corridor
    connection = ServerConnection(io.StringIO(""), io.StringIO())
    execution = execute_plan(connection, grid, _plan(corridor), root)
    assert execution.accepted == 0
    assert execution.response == "<no response>"


def test_main_solves_a_level_file(tmp_path, capsys):
    level = tmp_path / "corridor.lvl"
    level.write_text("0 A   a\n", encoding="utf-8")
    code = main(["-l", str(level), "-s", "greedy", "--report-every", "0", "--no-memory-trace"])
    captured = capsys.readouterr()
    assert code == 0
    assert captured.out.splitlines() == CORRIDOR_PLAN
    assert "Found solution of length 5" in captured.err


def test_main_defaults_to_bfs_and_talks_to_the_server(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("0 A   a\n\n" + "[true]\n" * 5))
    code = main(["--report-every", "0", "--no-memory-trace"])
    captured = capsys.readouterr()
    assert code == 0
    assert captured.out.splitlines() == [f"[{action}]" for action in CORRIDOR_PLAN]
    assert "Defaulting to BFS search" in captured.err
    assert "Breadth-first Search" in captured.err


def test_main_reports_rejected_plan(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("0 A   a\n\n[false]\n"))
    assert main(["-s", "astar", "--report-every", "0", "--no-memory-trace"]) == 2


def test_main_rejects_colored_levels(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("blue: 0, A\n0 A a\n\n"))
    assert main([]) == 1
    assert "does not support colors" in capsys.readouterr().err


def test_main_reports_unsolvable_level(tmp_path, capsys):
    level = tmp_path / "blocked.lvl"
    level.write_text("+++++++\n+0A+ a+\n+++++++\n", encoding="utf-8")
    assert main(["-l", str(level), "-s", "wastar", "-w", "2", "--no-memory-trace"]) == 0
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "Unable to solve level" in captured.err


def test_main_rejects_bad_weight(tmp_path):
    level = tmp_path / "corridor.lvl"
    level.write_text("0 A   a\n", encoding="utf-8")
    assert main(["-l", str(level), "-s", "wastar", "-w", "0"]) == 1


@pytest.mark.parametrize("name", ["corridor.lvl", "two_boxes.lvl"])
def test_sample_levels_are_solvable(name, capsys):
    path = LEVELS / name
    assert main(["-l", str(path), "-s", "astar", "--report-every", "0", "--no-memory-trace"]) == 0
    actions = capsys.readouterr().out.splitlines()
    grid, root = load_level_from_path(path)
    state = root
    for text in actions:
        state = state.apply(grid, Command.parse(text))
        assert state is not None
    assert state.is_goal_state(grid)


def test_main_reports_missing_level_file(tmp_path, capsys):
    assert main(["-l", str(tmp_path / "missing.lvl")]) == 1
    err = capsys.readouterr().err
    assert "[ERROR]" in err
    assert "missing.lvl" in err
