"""Level model, commands and search states for the single-agent box-pushing client."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from functools import cached_property
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple
import re

Coord = Tuple[int, int]
Box = Tuple[Coord, str]

# ===== LEVEL ALPHABET =====
# WALL:     +
# AGENT:    0-9
# BOX:      A-Z
# GOAL:     a-z
# FREE:     (space)

COLOR_LINE = re.compile(r"^[a-z]+:\s*[0-9A-Z](\s*,\s*[0-9A-Z])*\s*$")


class LevelFormatError(ValueError):
    """Raised when a level description cannot be parsed."""


class Direction(Enum):
    N = (-1, 0)
    S = (1, 0)
    E = (0, 1)
    W = (0, -1)

    @property
    def drow(self) -> int:
        return self.value[0]

    @property
    def dcol(self) -> int:
        return self.value[1]

    def opposite(self) -> "Direction":
        return _OPPOSITE[self]


_OPPOSITE = {
    Direction.N: Direction.S,
    Direction.S: Direction.N,
    Direction.E: Direction.W,
    Direction.W: Direction.E,
}


class ActionType(Enum):
    MOVE = "Move"
    PUSH = "Push"
    PULL = "Pull"


@dataclass(frozen=True)
class Command:
    kind: ActionType
    agent_dir: Direction
    box_dir: Optional[Direction] = None

    def __str__(self) -> str:
        if self.box_dir is None:
            return f"{self.kind.value}({self.agent_dir.name})"
        return f"{self.kind.value}({self.agent_dir.name},{self.box_dir.name})"

    def to_action_string(self) -> str:
        return f"[{self}]"

    @classmethod
    def parse(cls, text: str) -> "Command":
        match = re.fullmatch(r"\[?(Move|Push|Pull)\(([NSEW])(?:,([NSEW]))?\)\]?", text.strip())
        if match is None:
            raise ValueError(f"Unknown command: {text!r}")
        kind = ActionType(match.group(1))
        box_dir = Direction[match.group(3)] if match.group(3) else None
        if (kind is ActionType.MOVE) != (box_dir is None):
            raise ValueError(f"Malformed command: {text!r}")
        command = cls(kind, Direction[match.group(2)], box_dir)
        if command not in Command.EVERY:
            raise ValueError(f"Inapplicable command: {text!r}")
        return command


def _every_command() -> Tuple[Command, ...]:
    commands: List[Command] = [Command(ActionType.MOVE, d) for d in Direction]
    for d1 in Direction:
        for d2 in Direction:
            if d2 is not d1.opposite():
                commands.append(Command(ActionType.PUSH, d1, d2))
    for d1 in Direction:
        for d2 in Direction:
            if d2 is not d1:
                commands.append(Command(ActionType.PULL, d1, d2))
    return tuple(commands)


Command.EVERY = _every_command()


@dataclass(frozen=True)
class GridModel:
    """Static part of a level: dimensions, walls and goal letters.

    ``walls`` holds one tuple of booleans per row, ``goals`` one tuple of
    optional lowercase letters per row.
    """

    rows: int
    cols: int
    walls: Tuple[Tuple[bool, ...], ...]
    goals: Tuple[Tuple[Optional[str], ...], ...]

    def __post_init__(self) -> None:
        if self.rows <= 0 or self.cols <= 0:
            raise ValueError("Grid dimensions must be positive")
        if len(self.walls) != self.rows or len(self.goals) != self.rows:
            raise ValueError("Row count does not match grid dimensions")
        for row in range(self.rows):
            if len(self.walls[row]) != self.cols or len(self.goals[row]) != self.cols:
                raise ValueError(f"Row {row} does not match grid width {self.cols}")
            for col in range(self.cols):
                if self.walls[row][col] and self.goals[row][col] is not None:
                    raise ValueError(f"Cell {(row, col)} is both a wall and a goal")

    @classmethod
    def from_rows(cls, walls: Sequence[Sequence[bool]],
                  goals: Sequence[Sequence[Optional[str]]]) -> "GridModel":
        rows = len(walls)
        cols = len(walls[0]) if rows else 0
        return cls(
            rows=rows,
            cols=cols,
            walls=tuple(tuple(bool(cell) for cell in row) for row in walls),
            goals=tuple(tuple(cell or None for cell in row) for row in goals),
        )

    def in_bounds(self, coord: Coord) -> bool:
        row, col = coord
        return 0 <= row < self.rows and 0 <= col < self.cols

    def is_wall(self, coord: Coord) -> bool:
        # Outside the board counts as wall.
        if not self.in_bounds(coord):
            return True
        row, col = coord
        return self.walls[row][col]

    def goal_at(self, coord: Coord) -> Optional[str]:
        row, col = coord
        return self.goals[row][col]

    @cached_property
    def _goal_list(self) -> Tuple[Tuple[Coord, str], ...]:
        return tuple(
            ((row, col), letter)
            for row, line in enumerate(self.goals)
            for col, letter in enumerate(line)
            if letter is not None
        )

    def goal_cells(self) -> Iterator[Tuple[Coord, str]]:
        return iter(self._goal_list)

    def neighbours(self, coord: Coord) -> Iterator[Coord]:
        """Orthogonal non-wall neighbours, clipped to the board."""
        row, col = coord
        for direction in Direction:
            nxt = (row + direction.drow, col + direction.dcol)
            if not self.is_wall(nxt):
                yield nxt


@dataclass(frozen=True)
class StateNode:
    """One search-graph vertex.

    Equality and hashing only look at the agent position and the box layout,
    so structurally identical states collapse regardless of how they were
    reached. ``parent`` and ``index`` point into a ``SearchArena``.
    """

    agent: Coord
    boxes: frozenset[Box]
    parent: Optional[int] = field(default=None, compare=False)
    action: Optional[Command] = field(default=None, compare=False)
    depth: int = field(default=0, compare=False)
    index: int = field(default=-1, compare=False)

    @property
    def agent_row(self) -> int:
        return self.agent[0]

    @property
    def agent_col(self) -> int:
        return self.agent[1]

    @cached_property
    def box_at(self) -> Dict[Coord, str]:
        return dict(self.boxes)

    def g(self) -> int:
        return self.depth

    def is_goal_state(self, grid: GridModel) -> bool:
        for coord, letter in grid.goal_cells():
            box = self.box_at.get(coord)
            if box is None or box.lower() != letter:
                return False
        return True

    def _cell_is_free(self, grid: GridModel, coord: Coord) -> bool:
        return not grid.is_wall(coord) and coord not in self.box_at

    def apply(self, grid: GridModel, command: Command) -> Optional["StateNode"]:
        """Return the child produced by ``command`` or None if it is illegal here."""
        row, col = self.agent
        d1 = command.agent_dir
        target = (row + d1.drow, col + d1.dcol)

        if command.kind is ActionType.MOVE:
            if not self._cell_is_free(grid, target):
                return None
            return self._child(target, self.boxes, command)

        if command.kind is ActionType.PUSH:
            letter = self.box_at.get(target)
            if letter is None:
                return None
            d2 = command.box_dir
            box_target = (target[0] + d2.drow, target[1] + d2.dcol)
            if not self._cell_is_free(grid, box_target):
                return None
            boxes = (self.boxes - {(target, letter)}) | {(box_target, letter)}
            return self._child(target, boxes, command)

        if not self._cell_is_free(grid, target):
            return None
        d2 = command.box_dir
        box_source = (row + d2.drow, col + d2.dcol)
        letter = self.box_at.get(box_source)
        if letter is None:
            return None
        boxes = (self.boxes - {(box_source, letter)}) | {(self.agent, letter)}
        return self._child(target, boxes, command)

    def _child(self, agent: Coord, boxes: frozenset[Box], command: Command) -> "StateNode":
        return StateNode(
            agent=agent,
            boxes=boxes,
            parent=self.index,
            action=command,
            depth=self.depth + 1,
        )

    def get_expanded_nodes(self, grid: GridModel) -> List["StateNode"]:
        children = []
        for command in Command.EVERY:
            child = self.apply(grid, command)
            if child is not None:
                children.append(child)
        return children

    def with_index(self, index: int) -> "StateNode":
        return replace(self, index=index)

    def render(self, grid: GridModel) -> str:
        lines = []
        for row in range(grid.rows):
            chars = []
            for col in range(grid.cols):
                coord = (row, col)
                if grid.walls[row][col]:
                    chars.append("+")
                elif coord in self.box_at:
                    chars.append(self.box_at[coord])
                elif coord == self.agent:
                    chars.append("0")
                elif grid.goals[row][col] is not None:
                    chars.append(grid.goals[row][col])
                else:
                    chars.append(" ")
            lines.append("".join(chars))
        return "\n".join(lines)


def parse_level(lines: Iterable[str]) -> Tuple[GridModel, StateNode]:
    """Build the grid and the root state from level text.

    Reading stops at the first empty line so the same function works on a
    server stream and on a level file.
    """
    raw: List[str] = []
    for line in lines:
        line = line.rstrip("\r\n")
        if not raw and COLOR_LINE.match(line):
            raise LevelFormatError("Client does not support colors")
        if line == "":
            break
        raw.append(line)
    if not raw:
        raise LevelFormatError("Level description is empty")

    rows = len(raw)
    cols = max(len(line) for line in raw)
    walls = [[False] * cols for _ in range(rows)]
    goals: List[List[Optional[str]]] = [[None] * cols for _ in range(rows)]
    boxes = set()
    agent: Optional[Coord] = None

    for row, line in enumerate(raw):
        for col, char in enumerate(line):
            if char == "+":
                walls[row][col] = True
            elif "0" <= char <= "9":
                if agent is not None:
                    raise LevelFormatError("Not a single agent level")
                agent = (row, col)
            elif "A" <= char <= "Z":
                boxes.add(((row, col), char))
            elif "a" <= char <= "z":
                goals[row][col] = char
            elif char == " ":
                pass
            else:
                raise LevelFormatError(f"Read invalid level character: {ord(char)}")

    if agent is None:
        raise LevelFormatError("Level has no agent")
    grid = GridModel.from_rows(walls, goals)
    return grid, StateNode(agent=agent, boxes=frozenset(boxes))


def load_level_from_path(path: str | Path) -> Tuple[GridModel, StateNode]:
    with open(path, "r", encoding="utf-8") as f:
        return parse_level(f)


__all__ = [
    "Coord",
    "Box",
    "LevelFormatError",
    "Direction",
    "ActionType",
    "Command",
    "GridModel",
    "StateNode",
    "parse_level",
    "load_level_from_path",
]
