#!/usr/bin/env python3
"""
Output utilities for layout analysis.

Common functions for formatting and displaying analyses and search results
in various formats (table, csv, detailed).
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple
import sys

import pandas as pd

from splitkb.annealing import SearchResult
from splitkb.cost_model import BIGRAM_TERMS
from splitkb.ergo_scorer import CATEGORY_NAMES, Analysis
from splitkb.grid import FINGER_NAMES, HALF_NAMES, NUM_FINGERS, ROW_NAMES
from splitkb.layout_utils import EMPTY_TOKEN, Layout

OUTPUT_FORMATS = ('table', 'csv', 'detailed')


def format_layout_grid(layout: Layout, indent: str = "  ") -> str:
    """
    Format a layout as three rows with a gap between the halves.

    Example:
        q w e r t   y u i o p
    """
    lines = []
    for row in layout.keys:
        left = ' '.join(ch or EMPTY_TOKEN for ch in row[:5])
        right = ' '.join(ch or EMPTY_TOKEN for ch in row[5:])
        lines.append(f"{indent}{left}   {right}")
    return '\n'.join(lines)


def effort_dataframe(analyses: Sequence[Analysis]) -> pd.DataFrame:
    """Load distribution, balance indices, effort and score, one row per layout."""
    records = []
    for analysis in analyses:
        record: Dict[str, Any] = {'layout': analysis.layout_name}
        for i in range(NUM_FINGERS):
            record[f'F{i + 1}'] = analysis.effort_by_finger[i]
        for name, value in zip(ROW_NAMES, analysis.effort_by_row):
            record[name] = value
        for name, value in zip(HALF_NAMES, analysis.effort_by_half):
            record[name] = value
        record.update({
            'HDI': analysis.hdi,
            'FDI': analysis.fdi,
            'MEP': analysis.mep,
            'effort': analysis.total_effort,
            'score': analysis.weighted_score,
        })
        records.append(record)
    return pd.DataFrame(records)


def bigram_dataframe(analyses: Sequence[Analysis]) -> pd.DataFrame:
    """Weighted bigram classes, TIB and scores, one row per layout."""
    records = []
    for analysis in analyses:
        record: Dict[str, Any] = {'layout': analysis.layout_name}
        for term in BIGRAM_TERMS:
            record[term.upper()] = getattr(analysis.bigrams, term)
        record['TIB'] = analysis.bigrams.tib
        record['bigrams'] = analysis.bigram_score
        record['score'] = analysis.weighted_score
        records.append(record)
    return pd.DataFrame(records)


def format_dataframe(df: pd.DataFrame, precision: int = 2) -> str:
    if df.empty:
        return "No results"
    return df.to_string(index=False, float_format=lambda v: f"{v:.{precision}f}")


def format_table_output(analyses: Sequence[Analysis],
                        config: Optional[Dict[str, Any]] = None) -> str:
    """
    Format the effort table and the bigram table for several layouts.

    Args:
        analyses: Analyses in display order
        config: Output format configuration (precision)
    """
    if config is None:
        config = {}
    precision = config.get('precision', 2)

    lines = [
        "Effort and load distribution (%):",
        format_dataframe(effort_dataframe(analyses), precision),
        "",
        "Bigram classes (% of matched bigram frequency):",
        format_dataframe(bigram_dataframe(analyses), precision),
    ]
    return '\n'.join(lines)


def format_csv_output(analyses: Sequence[Analysis],
                      config: Optional[Dict[str, Any]] = None) -> str:
    """
    Format analyses as CSV, one row per layout with every metric.

    Args:
        analyses: Analyses to export
        config: Output format configuration (delimiter, precision, include_headers)
    """
    if config is None:
        config = {}

    delimiter = config.get('delimiter', ',')
    precision = config.get('precision', 6)
    include_headers = config.get('include_headers', True)

    df = pd.DataFrame([analysis.to_dict() for analysis in analyses])
    return df.to_csv(index=False, sep=delimiter, header=include_headers,
                     float_format=f"%.{precision}f").rstrip('\n')


def format_detailed_output(layout: Layout, analysis: Analysis,
                           config: Optional[Dict[str, Any]] = None) -> str:
    """
    Format one layout and all of its metrics as human-readable text.

    Args:
        layout: The analyzed layout
        analysis: Its analysis
        config: Output format configuration (precision)
    """
    if config is None:
        config = {}
    precision = config.get('precision', 4)

    def line(label: str, value: float, suffix: str = "") -> str:
        return f"  {label:<28}: {value:10.{precision}f}{suffix}"

    lines = [f"Layout: {layout.name}", format_layout_grid(layout), ""]

    lines.append("Scores:")
    lines.append(line("Weighted score", analysis.weighted_score))
    lines.append(line("Effort", analysis.total_effort, " %"))
    lines.append(line("Bigram score", analysis.bigram_score))
    lines.append(line("Hand disbalance (HDI)", analysis.hdi))
    lines.append(line("Finger disbalance (FDI)", analysis.fdi))
    lines.append(line("Max effort penalty (MEP)", analysis.mep))

    lines.append("\nFinger load:")
    for name, value in zip(FINGER_NAMES, analysis.effort_by_finger):
        lines.append(line(name, value, " %"))

    lines.append("\nRow load:")
    for name, value in zip(ROW_NAMES, analysis.effort_by_row):
        lines.append(line(name.capitalize(), value, " %"))

    lines.append("\nHand load:")
    for name, value in zip(HALF_NAMES, analysis.effort_by_half):
        lines.append(line(name.capitalize(), value, " %"))

    lines.append("\nBigram classes:")
    for name in CATEGORY_NAMES + ('tib',):
        lines.append(line(name.upper(), getattr(analysis.bigrams, name), " %"))

    return '\n'.join(lines)


def format_bigrams_by_category(table: pd.DataFrame, top_n: int = 10,
                               categories: Sequence[str] = CATEGORY_NAMES) -> str:
    """
    List the most frequent bigrams falling into each class.

    Args:
        table: Per-bigram table from LayoutScorer.bigram_table()
        top_n: Bigrams shown per class
        categories: Classes to list
    """
    lines = []
    for name in categories:
        members = table[table[name].astype(bool)]
        total = members['frequency'].sum()
        lines.append(f"{name.upper()} ({total:.2f}%):")
        if members.empty:
            lines.append("  -")
            continue
        shown = members.head(top_n)
        lines.append("  " + "  ".join(f"{row.bigram} {row.frequency:.2f}" for row in shown.itertuples()))
    return '\n'.join(lines)


def _classes_label(row: pd.Series) -> str:
    return ' '.join(name.upper() for name in CATEGORY_NAMES if row[name])


def format_letter_bigrams(table: pd.DataFrame, letter: str, top_n: int = 20) -> str:
    """Bigrams starting and ending with one character, with frequency and classes."""
    letter = letter.lower()
    lines = []
    for title, mask in (
        (f"Bigrams starting with '{letter}':", table['bigram'].str[0] == letter),
        (f"Bigrams ending with '{letter}':", table['bigram'].str[1] == letter),
    ):
        lines.append(title)
        rows = table[mask].head(top_n)
        if rows.empty:
            lines.append("  -")
        for _, row in rows.iterrows():
            lines.append(f"  {row['bigram']}  {row['frequency']:6.3f}%  {_classes_label(row)}")
        lines.append("")
    return '\n'.join(lines).rstrip()


def format_search_results(results: Sequence[SearchResult], precision: int = 4) -> str:
    """Format ranked search results as numbered grids with scores."""
    if not results:
        return "No results"

    lines = []
    for rank, result in enumerate(results, 1):
        analysis = result.analysis
        lines.append(
            f"#{rank} {result.layout.name}  score {result.score:.{precision}f}  "
            f"(effort {analysis.total_effort:.2f}%, SFB {analysis.bigrams.sfb:.2f}%, "
            f"HDI {analysis.hdi:.2f})"
        )
        lines.append(format_layout_grid(result.layout))
        lines.append("")
    return '\n'.join(lines).rstrip()


def print_results(ranked: Sequence[Tuple[Layout, Analysis]],
                  output_format: str = "table",
                  config: Optional[Dict[str, Any]] = None,
                  file=None) -> None:
    """
    Print analyses in the specified format.

    Args:
        ranked: (layout, analysis) pairs in display order
        output_format: Format type ('table', 'csv', 'detailed')
        config: Output format configuration
        file: File object to write to (defaults to stdout)
    """
    if file is None:
        file = sys.stdout

    analyses = [analysis for _, analysis in ranked]
    if output_format == "csv":
        output = format_csv_output(analyses, config)
    elif output_format == "table":
        output = format_table_output(analyses, config)
    elif output_format == "detailed":
        output = '\n\n'.join(format_detailed_output(layout, analysis, config) for layout, analysis in ranked)
    else:
        raise ValueError(f"Unknown output format: {output_format}")

    print(output, file=file)


def summarize_ranking(ranked: Sequence[Tuple[Layout, Analysis]]) -> List[str]:
    """One line per layout: rank, name and score."""
    return [
        f"#{i:2d} {layout.name:<24}: {analysis.weighted_score:10.4f}"
        for i, (layout, analysis) in enumerate(ranked, 1)
    ]
