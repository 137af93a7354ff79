#!/usr/bin/env python3
"""
Layout utilities for the split 3x10 grid.

A layout assigns single characters to the 30 grid cells; cells may be empty.
This module holds the Layout value type plus helpers for creating,
validating, manipulating and (de)serializing layouts in the plain-text
layouts file format:

    # optional header comments

    qwerty
    q w e r t  y u i o p
    a s d f g  h j k l ;
    z x c v b  n m , . /

A name line is followed by three rows of ten whitespace-separated keys and
layouts are separated by blank lines. An underscore marks an empty cell.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple, Union
import logging

from splitkb.grid import COLS, ROWS, Position, all_positions

logger = logging.getLogger(__name__)

EMPTY = ''
EMPTY_TOKEN = '_'


class LayoutError(ValueError):
    """Raised when a layout or layouts file is malformed."""


def _normalize_cell(value: Optional[str], row: int, col: int) -> str:
    if value is None or value == ' ' or value == EMPTY_TOKEN:
        return EMPTY
    if len(value) > 1:
        raise LayoutError(f"Cell [{row}][{col}] holds more than one character: '{value}'")
    return value


@dataclass
class Layout:
    """
    A named assignment of characters to the 3x10 grid.

    Equality compares the name and all 30 cells; surrounding comments from
    a layouts file are carried along but ignored for equality.
    """

    name: str
    keys: List[List[str]]
    pre_comments: List[str] = field(default_factory=list, compare=False, repr=False)
    post_comments: List[str] = field(default_factory=list, compare=False, repr=False)

    def __post_init__(self):
        if len(self.keys) != ROWS or any(len(row) != COLS for row in self.keys):
            shape = [len(row) for row in self.keys]
            raise LayoutError(f"Layout '{self.name}' must be {ROWS}x{COLS}, got rows of {shape}")
        self.keys = [
            [_normalize_cell(value, r, c) for c, value in enumerate(row)]
            for r, row in enumerate(self.keys)
        ]

    @classmethod
    def empty(cls, name: str = "empty") -> 'Layout':
        return cls(name, [[EMPTY] * COLS for _ in range(ROWS)])

    @classmethod
    def from_rows(cls, name: str, rows: Sequence[Union[str, Sequence[str]]]) -> 'Layout':
        """
        Build a layout from three rows.

        A row given as a string is split on whitespace when it contains any,
        otherwise read one character per cell ('_' or ' ' for empty).
        Short rows are padded with empty cells.

        Raises:
            LayoutError: If there are not exactly three rows or a row is too long
        """
        if len(rows) != ROWS:
            raise LayoutError(f"Expected {ROWS} rows for layout '{name}', got {len(rows)}")

        keys = []
        for r, row in enumerate(rows):
            if isinstance(row, str):
                cells = row.split() if any(ch.isspace() for ch in row.strip()) else list(row.strip())
            else:
                cells = list(row)
            if len(cells) > COLS:
                raise LayoutError(f"Row {r + 1} of layout '{name}' has {len(cells)} keys (max {COLS})")
            keys.append(cells + [EMPTY] * (COLS - len(cells)))
        return cls(name, keys)

    @classmethod
    def from_string(cls, name: str, chars: str) -> 'Layout':
        """Build a layout from a 30-character row-major string."""
        if len(chars) != ROWS * COLS:
            raise LayoutError(f"Layout string must have {ROWS * COLS} characters, got {len(chars)}")
        return cls(name, [list(chars[r * COLS:(r + 1) * COLS]) for r in range(ROWS)])

    def copy(self, name: Optional[str] = None) -> 'Layout':
        return Layout(
            self.name if name is None else name,
            [row[:] for row in self.keys],
            list(self.pre_comments),
            list(self.post_comments),
        )

    def __getitem__(self, pos: Tuple[int, int]) -> str:
        row, col = pos
        return self.keys[row][col]

    def __setitem__(self, pos: Tuple[int, int], value: str) -> None:
        row, col = pos
        self.keys[row][col] = _normalize_cell(value, row, col)

    def cells(self) -> Iterator[Tuple[Position, str]]:
        """Iterate over (position, character) for every cell in row-major order."""
        for pos in all_positions():
            yield pos, self.keys[pos.row][pos.col]

    def as_string(self) -> str:
        """Row-major 30-character string with '_' for empty cells."""
        return ''.join(ch or EMPTY_TOKEN for _, ch in self.cells())

    def position_index(self) -> Dict[str, Position]:
        """
        Build the character -> position inverse index.

        Empty cells are skipped. If a character occurs more than once, the
        last occurrence in row-major order wins.
        """
        index = {}
        for pos, ch in self.cells():
            if ch:
                index[ch] = pos
        return index

    def find_duplicates(self) -> Dict[str, List[Position]]:
        seen: Dict[str, List[Position]] = {}
        for pos, ch in self.cells():
            if ch:
                seen.setdefault(ch, []).append(pos)
        return {ch: positions for ch, positions in seen.items() if len(positions) > 1}

    def validate(self) -> None:
        """
        Check that no character is placed twice.

        Raises:
            LayoutError: If duplicate characters are found
        """
        duplicates = self.find_duplicates()
        if duplicates:
            details = ', '.join(
                f"'{ch}' at {[tuple(p) for p in positions]}" for ch, positions in sorted(duplicates.items())
            )
            raise LayoutError(f"Duplicate characters in layout '{self.name}': {details}")

    def alphabet(self) -> Set[str]:
        """Lowercased set of placed characters."""
        return {ch.lower() for _, ch in self.cells() if ch}

    def has_uppercase(self) -> bool:
        return any(ch.isupper() for _, ch in self.cells())

    def uppercase_positions(self) -> Set[Position]:
        return {pos for pos, ch in self.cells() if ch.isupper()}

    def lowercased(self) -> 'Layout':
        result = self.copy()
        result.keys = [[ch.lower() for ch in row] for row in self.keys]
        return result

    def swap_positions(self, first: Position, second: Position) -> None:
        """Swap the contents of two cells in place."""
        a, b = self.keys[first.row][first.col], self.keys[second.row][second.col]
        self.keys[first.row][first.col], self.keys[second.row][second.col] = b, a

    def swapped(self, first: Position, second: Position) -> 'Layout':
        result = self.copy()
        result.swap_positions(first, second)
        return result

    def swap_characters(self, first: str, second: str, name: Optional[str] = None) -> 'Layout':
        """
        Return a copy with two characters exchanged.

        Raises:
            LayoutError: If either character is not on the layout
        """
        index = self.position_index()
        missing = [ch for ch in (first, second) if ch not in index]
        if missing:
            raise LayoutError(f"Characters not found in layout '{self.name}': {missing}")
        result = self.swapped(index[first], index[second])
        if name is not None:
            result.name = name
        return result

    def mirrored(self) -> 'Layout':
        """Left-right mirror image (column c moves to 9 - c)."""
        result = self.copy(name=f"{self.name} (inv)")
        result.keys = [list(reversed(row)) for row in self.keys]
        return result


@dataclass
class LayoutCollection:
    """The contents of a layouts file."""

    layouts: List[Layout] = field(default_factory=list)
    header_comments: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.layouts)

    def __iter__(self) -> Iterator[Layout]:
        return iter(self.layouts)

    def names(self) -> List[str]:
        return [layout.name for layout in self.layouts]

    def find(self, key: Union[str, int]) -> Layout:
        """
        Look up a layout by 1-based index or by name (case-insensitive).

        Raises:
            KeyError: If no layout matches
        """
        if isinstance(key, int) or (isinstance(key, str) and key.isdigit()):
            number = int(key)
            if 1 <= number <= len(self.layouts):
                return self.layouts[number - 1]
            raise KeyError(f"Layout number {number} out of range 1-{len(self.layouts)}")

        for layout in self.layouts:
            if layout.name.lower() == key.lower():
                return layout
        raise KeyError(f"Layout '{key}' not found. Available: {self.names()}")

    def upsert(self, layout: Layout) -> bool:
        """
        Replace the layout with the same name, keeping its comments, or append.

        Returns:
            True if an existing layout was replaced
        """
        for i, existing in enumerate(self.layouts):
            if existing.name == layout.name:
                replacement = layout.copy()
                replacement.pre_comments = list(existing.pre_comments)
                replacement.post_comments = list(existing.post_comments)
                self.layouts[i] = replacement
                return True
        self.layouts.append(layout.copy())
        return False


def _strip_comment(line: str) -> str:
    idx = line.find('#')
    return line if idx == -1 else line[:idx]


def parse_layouts(text: str) -> LayoutCollection:
    """
    Parse the layouts file format.

    Raises:
        LayoutError: If no complete layout is found or a row is malformed
    """
    collection = LayoutCollection()
    pending_comments: List[str] = []
    current_name: Optional[str] = None
    current_rows: List[str] = []
    current: Optional[Layout] = None
    in_header = True

    def finish():
        nonlocal current, current_name, current_rows
        if current is not None:
            collection.layouts.append(current)
        current, current_name, current_rows = None, None, []

    for raw_line in text.splitlines():
        stripped = raw_line.strip()

        if stripped.startswith('#'):
            if current is not None:
                current.post_comments.append(raw_line)
            elif current_name is None and in_header:
                collection.header_comments.append(raw_line)
            else:
                pending_comments.append(raw_line)
            continue

        if not stripped:
            if current is not None:
                finish()
            elif current_rows:
                raise LayoutError(
                    f"Layout '{current_name}' is incomplete: {len(current_rows)} of {ROWS} rows"
                )
            if collection.layouts:
                in_header = False
            continue

        if current is not None:
            # A non-blank line right after a complete layout starts the next one
            finish()

        if current_name is None:
            in_header = False
            current_name = _strip_comment(raw_line).strip()
            continue

        current_rows.append(_strip_comment(raw_line).strip())
        if len(current_rows) == ROWS:
            rows = [row.split() for row in current_rows]
            current = Layout.from_rows(current_name, rows)
            current.pre_comments = pending_comments
            pending_comments = []

    if current is not None:
        finish()
    elif current_name is not None:
        raise LayoutError(f"Layout '{current_name}' is incomplete: {len(current_rows)} of {ROWS} rows")

    if not collection.layouts:
        raise LayoutError("No layouts found")

    logger.debug(f"Parsed {len(collection)} layouts")
    return collection


def format_layout_block(layout: Layout) -> str:
    """Format one layout (without comments) in the layouts file format."""
    lines = [layout.name]
    for row in layout.keys:
        left = ' '.join(ch or EMPTY_TOKEN for ch in row[:5])
        right = ' '.join(ch or EMPTY_TOKEN for ch in row[5:])
        lines.append(f"{left}  {right}")
    return '\n'.join(lines)


def format_layouts(collection: LayoutCollection) -> str:
    parts = []
    if collection.header_comments:
        parts.append('\n'.join(collection.header_comments))
    for layout in collection.layouts:
        block = layout.pre_comments + [format_layout_block(layout)] + layout.post_comments
        parts.append('\n'.join(block))
    return '\n\n'.join(parts) + '\n'


def load_layouts(filepath: Union[str, Path]) -> LayoutCollection:
    """
    Load a layouts file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        LayoutError: If the file is malformed
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Layouts file not found: {filepath}")

    collection = parse_layouts(path.read_text(encoding='utf-8'))
    logger.info(f"Loaded {len(collection)} layouts from {filepath}")
    return collection


def save_layouts(filepath: Union[str, Path], collection: LayoutCollection) -> None:
    Path(filepath).write_text(format_layouts(collection), encoding='utf-8')
    logger.info(f"Saved {len(collection)} layouts to {filepath}")


def save_layout(filepath: Union[str, Path], layout: Layout) -> None:
    """Upsert one layout into a layouts file, creating the file if needed."""
    path = Path(filepath)
    if path.exists() and path.read_text(encoding='utf-8').strip():
        collection = load_layouts(path)
    else:
        collection = LayoutCollection()
    collection.upsert(layout)
    save_layouts(path, collection)
