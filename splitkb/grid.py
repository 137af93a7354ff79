#!/usr/bin/env python3
"""
Grid topology for the split 3x10 keyboard.

Rows are numbered 0 (top) to 2 (bottom), columns 0 to 9 from left to right.
Columns 0-4 form the left half, columns 5-9 the right half. Each column is
pressed by a fixed finger; the index fingers cover two columns each
(columns 3-4 and 5-6), so eight fingers cover ten columns.

Finger ids are 0-based in code (0 = left pinky ... 7 = right pinky) and
shown 1-based in reports.
"""

from typing import Iterator, NamedTuple, Tuple

ROWS = 3
COLS = 10
NUM_POSITIONS = ROWS * COLS
NUM_FINGERS = 8

FINGER_BY_COL: Tuple[int, ...] = (0, 1, 2, 3, 3, 4, 4, 5, 6, 7)
CENTER_COLS = frozenset({4, 5})

LEFT = 0
RIGHT = 1

FINGER_NAMES = (
    'L pinky', 'L ring', 'L middle', 'L index',
    'R index', 'R middle', 'R ring', 'R pinky',
)
ROW_NAMES = ('top', 'home', 'bottom')
HALF_NAMES = ('left', 'right')

# Finger pairs mirrored across the center line: (1,8), (2,7), (3,6), (4,5) 1-based
MIRROR_FINGER_PAIRS: Tuple[Tuple[int, int], ...] = ((0, 7), (1, 6), (2, 5), (3, 4))

INDEX_FINGERS = frozenset({3, 4})
MIDDLE_FINGERS = frozenset({2, 5})


def finger_of(col: int) -> int:
    """Return the 0-based finger id that presses a column."""
    return FINGER_BY_COL[col]


def half_of(col: int) -> int:
    """Return LEFT for columns 0-4 and RIGHT for columns 5-9."""
    return LEFT if col < 5 else RIGHT


class Position(NamedTuple):
    """A (row, col) cell of the grid."""

    row: int
    col: int

    @property
    def index(self) -> int:
        """Row-major position number, 0-29."""
        return self.row * COLS + self.col

    @property
    def finger(self) -> int:
        return FINGER_BY_COL[self.col]

    @property
    def half(self) -> int:
        return half_of(self.col)

    @property
    def is_center(self) -> bool:
        return self.col in CENTER_COLS

    def mirrored(self) -> 'Position':
        return Position(self.row, COLS - 1 - self.col)

    @classmethod
    def from_index(cls, index: int) -> 'Position':
        if not 0 <= index < NUM_POSITIONS:
            raise ValueError(f"Position index out of range 0-{NUM_POSITIONS - 1}: {index}")
        return cls(index // COLS, index % COLS)


def all_positions() -> Iterator[Position]:
    """Iterate over every grid cell in row-major order."""
    for row in range(ROWS):
        for col in range(COLS):
            yield Position(row, col)
