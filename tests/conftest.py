"""Shared pytest fixtures for splitkb tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from splitkb.cost_model import CostModel
from splitkb.data_utils import Corpus
from splitkb.layout_utils import Layout

QWERTY_ROWS = ["qwertyuiop", "asdfghjkl;", "zxcvbnm,./"]

GRADED_EFFORT = [
    [4.0, 2.0, 2.0, 3.0, 4.0, 4.0, 3.0, 2.0, 2.0, 4.0],
    [1.5, 1.0, 1.0, 1.0, 3.0, 3.0, 1.0, 1.0, 1.0, 1.5],
    [4.0, 4.0, 3.0, 2.0, 5.0, 5.0, 2.0, 3.0, 4.0, 4.0],
]


# ============================================================================
# Cost Model Fixtures
# ============================================================================


@pytest.fixture
def uniform_model() -> CostModel:
    """Every position costs 100, default weights, no limits."""
    return CostModel.uniform(100.0)


@pytest.fixture
def graded_model() -> CostModel:
    """Home row cheap, center columns and corners expensive."""
    return CostModel(effort=GRADED_EFFORT)


# ============================================================================
# Corpus Fixtures
# ============================================================================


@pytest.fixture
def small_corpus() -> Corpus:
    """A handful of English-like letter and bigram frequencies."""
    return Corpus(
        characters={
            "e": 12.0, "t": 9.0, "a": 8.0, "o": 7.5, "i": 7.0, "n": 7.0,
            "s": 6.5, "r": 6.0, "h": 5.0, "l": 4.0, "d": 3.8, "c": 3.3,
        },
        bigrams={
            "th": 3.5, "he": 3.0, "in": 2.4, "er": 2.0, "an": 2.0, "re": 1.8,
            "on": 1.7, "at": 1.5, "en": 1.4, "nd": 1.3, "es": 1.3, "st": 1.0,
            "ed": 1.1, "ha": 0.9, "le": 0.8, "co": 0.8, "ll": 0.6, "ee": 0.4,
        },
        language="test",
    )


@pytest.fixture
def empty_corpus() -> Corpus:
    return Corpus()


# ============================================================================
# Layout Fixtures
# ============================================================================


@pytest.fixture
def qwerty() -> Layout:
    return Layout.from_rows("qwerty", QWERTY_ROWS)


@pytest.fixture
def layouts_text() -> str:
    return (
        "# sample layouts\n"
        "\n"
        "qwerty\n"
        "q w e r t  y u i o p\n"
        "a s d f g  h j k l ;\n"
        "z x c v b  n m , . /\n"
        "\n"
        "# vowels on the right\n"
        "sparse\n"
        "_ _ _ _ _  _ _ _ _ _\n"
        "t h s n _  _ a e i o\n"
        "_ _ _ _ _  _ _ _ _ _\n"
    )


# ============================================================================
# File Fixtures
# ============================================================================


@pytest.fixture
def config_file(tmp_path: Path, qwerty: Layout) -> Path:
    """A complete config.yaml with corpus and layouts files next to it."""
    corpus_path = tmp_path / "corpus.json"
    corpus_path.write_text(
        '{"language": "test",'
        ' "characters": {"e": 12, "t": 9, "a": 8, "o": 7.5, "i": 7, "n": 7, "s": 6.5, "r": 6, "h": 5},'
        ' "bigrams": {"th": 3.5, "he": 3.0, "in": 2.4, "er": 2.0, "an": 2.0, "re": 1.8, "on": 1.7}}',
        encoding="utf-8",
    )

    layouts_path = tmp_path / "layouts.txt"
    layouts_path.write_text(
        "qwerty\n"
        "q w e r t  y u i o p\n"
        "a s d f g  h j k l ;\n"
        "z x c v b  n m , . /\n"
        "\n"
        "dvorak\n"
        "' , . p y  f g c r l\n"
        "a o e u i  d h t n s\n"
        "; q j k x  b m w v z\n",
        encoding="utf-8",
    )

    config_path = tmp_path / "config.yaml"
    effort_rows = "\n".join(f"    - {row}" for row in GRADED_EFFORT)
    config_path.write_text(
        "common:\n"
        "  data_files:\n"
        "    corpus: corpus.json\n"
        "    layouts: layouts.txt\n"
        "cost_model:\n"
        "  effort:\n"
        f"{effort_rows}\n"
        "  weights:\n"
        "    SFB: 0.5\n"
        "search:\n"
        "  initial_temp: 10.0\n"
        "  cooling_rate: 0.99\n"
        "  iterations: 50\n"
        "  restarts: 2\n"
        "  num_best: 2\n",
        encoding="utf-8",
    )
    return config_path
