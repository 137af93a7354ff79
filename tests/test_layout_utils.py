"""Tests for the Layout type and the layouts file format."""

from __future__ import annotations

from pathlib import Path

import pytest

from splitkb.grid import Position
from splitkb.layout_utils import (
    EMPTY, Layout, LayoutCollection, LayoutError, format_layouts, load_layouts,
    parse_layouts, save_layout,
)


class TestLayout:
    def test_from_rows_strings(self, qwerty: Layout) -> None:
        assert qwerty[0, 0] == "q"
        assert qwerty[1, 9] == ";"
        assert qwerty.as_string() == "qwertyuiopasdfghjkl;zxcvbnm,./"

    def test_underscore_is_empty(self) -> None:
        layout = Layout.from_rows("gaps", ["a_b", "", "c d"])
        assert layout[0, 1] == EMPTY
        assert layout[1, 0] == EMPTY
        assert layout[2, 1] == "d"
        assert layout.as_string().startswith("a_b")

    def test_multi_character_cell_raises(self) -> None:
        with pytest.raises(LayoutError, match="more than one character"):
            Layout.from_rows("bad", [["ab"] + [""] * 9, [""] * 10, [""] * 10])

    def test_wrong_shape_raises(self) -> None:
        with pytest.raises(LayoutError):
            Layout("bad", [["a"] * 10, ["b"] * 10])

    def test_row_too_long_raises(self) -> None:
        with pytest.raises(LayoutError, match="max 10"):
            Layout.from_rows("bad", ["abcdefghijk", "", ""])

    def test_position_index_last_occurrence_wins(self) -> None:
        layout = Layout.from_rows("dup", ["a", "a", ""])
        assert layout.position_index()["a"] == Position(1, 0)
        assert layout.find_duplicates() == {"a": [Position(0, 0), Position(1, 0)]}

    def test_validate_rejects_duplicates(self) -> None:
        with pytest.raises(LayoutError, match="Duplicate"):
            Layout.from_rows("dup", ["ab", "b", ""]).validate()

    def test_swap_characters(self, qwerty: Layout) -> None:
        swapped = qwerty.swap_characters("q", "a", name="swapped")
        assert swapped[0, 0] == "a"
        assert swapped[1, 0] == "q"
        assert swapped.name == "swapped"
        assert qwerty[0, 0] == "q"

    def test_swap_missing_character_raises(self, qwerty: Layout) -> None:
        with pytest.raises(LayoutError, match="not found"):
            qwerty.swap_characters("q", "!")

    def test_mirrored(self, qwerty: Layout) -> None:
        mirrored = qwerty.mirrored()
        assert mirrored.name == "qwerty (inv)"
        assert mirrored.keys[0] == list("poiuytrewq")

    def test_uppercase_locks(self) -> None:
        layout = Layout.from_rows("locks", ["Ab", "C", ""])
        assert layout.has_uppercase()
        assert layout.uppercase_positions() == {Position(0, 0), Position(1, 0)}
        assert layout.lowercased().as_string()[:2] == "ab"
        assert layout.alphabet() == {"a", "b", "c"}

    def test_equality_uses_name_and_cells(self, qwerty: Layout) -> None:
        same = qwerty.copy()
        same.pre_comments = ["# different comment"]
        assert same == qwerty
        assert qwerty.copy(name="other") != qwerty
        assert qwerty.swapped(Position(0, 0), Position(0, 1)) != qwerty


class TestParseLayouts:
    def test_parse_names_cells_and_comments(self, layouts_text: str) -> None:
        collection = parse_layouts(layouts_text)
        assert collection.names() == ["qwerty", "sparse"]
        assert collection.header_comments == ["# sample layouts"]
        sparse = collection.find("sparse")
        assert sparse.pre_comments == ["# vowels on the right"]
        assert sparse[1, 0] == "t"
        assert sparse[1, 4] == EMPTY

    def test_format_then_parse_keeps_layouts(self, layouts_text: str) -> None:
        collection = parse_layouts(layouts_text)
        reparsed = parse_layouts(format_layouts(collection))
        assert reparsed.layouts == collection.layouts
        assert reparsed.header_comments == collection.header_comments

    def test_incomplete_layout_raises(self) -> None:
        with pytest.raises(LayoutError, match="incomplete"):
            parse_layouts("broken\nq w e r t y u i o p\n")

    def test_no_layouts_raises(self) -> None:
        with pytest.raises(LayoutError, match="No layouts"):
            parse_layouts("# nothing here\n")


class TestLayoutCollection:
    def test_find_by_number_and_name(self, layouts_text: str) -> None:
        collection = parse_layouts(layouts_text)
        assert collection.find(2).name == "sparse"
        assert collection.find("2").name == "sparse"
        assert collection.find("QWERTY").name == "qwerty"

    def test_find_missing_raises(self, layouts_text: str) -> None:
        collection = parse_layouts(layouts_text)
        with pytest.raises(KeyError):
            collection.find("colemak")
        with pytest.raises(KeyError):
            collection.find(3)

    def test_upsert_replaces_and_keeps_comments(self, layouts_text: str, qwerty: Layout) -> None:
        collection = parse_layouts(layouts_text)
        replacement = qwerty.copy(name="sparse")
        assert collection.upsert(replacement) is True
        assert collection.find("sparse").as_string() == qwerty.as_string()
        assert collection.find("sparse").pre_comments == ["# vowels on the right"]

    def test_upsert_appends(self, qwerty: Layout) -> None:
        collection = LayoutCollection()
        assert collection.upsert(qwerty) is False
        assert len(collection) == 1


class TestLayoutFiles:
    def test_load_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_layouts(tmp_path / "missing.txt")

    def test_save_layout_creates_and_upserts(self, tmp_path: Path, qwerty: Layout) -> None:
        path = tmp_path / "found.txt"
        save_layout(path, qwerty)
        save_layout(path, qwerty.swap_characters("q", "w"))
        save_layout(path, qwerty.copy(name="second"))

        collection = load_layouts(path)
        assert collection.names() == ["qwerty", "second"]
        assert collection.find("qwerty")[0, 0] == "w"
