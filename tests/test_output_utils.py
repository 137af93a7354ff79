"""Tests for report formatting."""

from __future__ import annotations

import io
from typing import List, Tuple

import pytest

from splitkb.annealing import SearchResult
from splitkb.cost_model import CostModel
from splitkb.data_utils import Corpus
from splitkb.ergo_scorer import Analysis, LayoutScorer
from splitkb.layout_utils import Layout
from splitkb.output_utils import (
    bigram_dataframe, effort_dataframe, format_bigrams_by_category, format_csv_output,
    format_detailed_output, format_layout_grid, format_letter_bigrams, format_search_results,
    print_results, summarize_ranking,
)


@pytest.fixture
def ranked(graded_model: CostModel, small_corpus: Corpus, qwerty: Layout) -> List[Tuple[Layout, Analysis]]:
    mirrored = qwerty.mirrored()
    return LayoutScorer(graded_model, small_corpus).rank([qwerty, mirrored])


class TestGrid:
    def test_halves_are_separated(self, qwerty: Layout) -> None:
        lines = format_layout_grid(qwerty).splitlines()
        assert lines[0] == "  q w e r t   y u i o p"
        assert len(lines) == 3

    def test_empty_cells_use_underscore(self) -> None:
        grid = format_layout_grid(Layout.from_rows("few", ["a", "", ""]), indent="")
        assert grid.splitlines()[0] == "a _ _ _ _   _ _ _ _ _"


class TestDataFrames:
    def test_effort_dataframe_columns(self, ranked: List[Tuple[Layout, Analysis]]) -> None:
        df = effort_dataframe([analysis for _, analysis in ranked])
        assert list(df.columns[:3]) == ["layout", "F1", "F2"]
        assert {"top", "home", "bottom", "left", "right", "HDI", "FDI", "MEP", "effort", "score"} <= set(df.columns)
        assert len(df) == 2

    def test_bigram_dataframe_columns(self, ranked: List[Tuple[Layout, Analysis]]) -> None:
        df = bigram_dataframe([analysis for _, analysis in ranked])
        assert {"SFB", "AFO", "TIB", "bigrams", "score"} <= set(df.columns)


class TestCsvOutput:
    def test_header_and_rows(self, ranked: List[Tuple[Layout, Analysis]]) -> None:
        lines = format_csv_output([analysis for _, analysis in ranked]).splitlines()
        assert len(lines) == 3
        assert lines[0].startswith("layout,finger_1,")
        assert lines[0].endswith(",bigram_score,score")

    def test_config_options(self, ranked: List[Tuple[Layout, Analysis]]) -> None:
        output = format_csv_output([analysis for _, analysis in ranked],
                                   {"delimiter": ";", "include_headers": False, "precision": 1})
        lines = output.splitlines()
        assert len(lines) == 2
        assert lines[0].startswith("qwerty")
        assert ";" in lines[0]


class TestReports:
    def test_detailed_output(self, ranked: List[Tuple[Layout, Analysis]]) -> None:
        layout, analysis = ranked[0]
        text = format_detailed_output(layout, analysis)
        assert f"Layout: {layout.name}" in text
        assert "SFB" in text and "TIB" in text and "L pinky" in text

    def test_print_results_formats(self, ranked: List[Tuple[Layout, Analysis]]) -> None:
        for output_format in ("table", "csv", "detailed"):
            buffer = io.StringIO()
            print_results(ranked, output_format, file=buffer)
            assert "qwerty" in buffer.getvalue()

    def test_print_results_unknown_format(self, ranked: List[Tuple[Layout, Analysis]]) -> None:
        with pytest.raises(ValueError, match="Unknown output format"):
            print_results(ranked, "xml", file=io.StringIO())

    def test_summarize_ranking(self, ranked: List[Tuple[Layout, Analysis]]) -> None:
        lines = summarize_ranking(ranked)
        assert len(lines) == 2
        assert lines[0].startswith("# 1 ")


class TestBigramReports:
    def test_bigrams_by_category(self, graded_model: CostModel, small_corpus: Corpus, qwerty: Layout) -> None:
        table = LayoutScorer(graded_model, small_corpus).bigram_table(qwerty)
        text = format_bigrams_by_category(table, top_n=3, categories=("sfb", "lsb2"))
        assert text.splitlines()[0].startswith("SFB (")
        assert "ed" in text
        assert "LSB2 (0.00%):\n  -" in text

    def test_letter_bigrams(self, graded_model: CostModel, small_corpus: Corpus, qwerty: Layout) -> None:
        table = LayoutScorer(graded_model, small_corpus).bigram_table(qwerty)
        text = format_letter_bigrams(table, "H")
        assert "Bigrams starting with 'h':" in text
        assert "  th " in text
        assert "  he " in text


class TestSearchResults:
    def test_no_results(self) -> None:
        assert format_search_results([]) == "No results"

    def test_numbered_results(self, ranked: List[Tuple[Layout, Analysis]]) -> None:
        results = [SearchResult(layout, analysis) for layout, analysis in ranked]
        text = format_search_results(results)
        assert text.startswith(f"#1 {ranked[0][0].name}  score")
        assert "#2 " in text
