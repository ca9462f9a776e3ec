import pytest

from sokoban import parse_level

OPEN_ROOM = [
    "   ",
    "0Aa",
    "   ",
]

CORRIDOR = ["0 A   a"]

WALLED_OFF = [
    "+++++++",
    "+0A+ a+",
    "+++++++",
]

PILLAR_ROOM = [
    "+++++",
    "+0  +",
    "+ + +",
    "+   +",
    "+++++",
]


@pytest.fixture
def open_room():
    return parse_level(OPEN_ROOM)


@pytest.fixture
def corridor():
    return parse_level(CORRIDOR)


@pytest.fixture
def walled_off():
    return parse_level(WALLED_OFF)


@pytest.fixture
def pillar_room():
    return parse_level(PILLAR_ROOM)
