#!/usr/bin/env python3
"""
Split keyboard layout scorer.

Scores layouts from a layouts file (or given on the command line) against
a cost model and a frequency corpus, and prints ranked effort and bigram
tables. Lower scores are better.

Layout sources:
- layouts file: name line plus three rows of ten keys (see data/layouts.txt)
- --layout NAME:CHARS with 30 characters in row-major order ('_' for empty)

Reports:
- table (default): effort/load table and bigram class table, ranked by score
- detailed: key grid and every metric per layout
- csv: one row per layout with every metric (--csv FILE saves it)
- --bigrams N: top N bigrams of every class for each layout
- --letter C: bigrams starting and ending with one character
- --swap AB / --invert: score variants without editing the layouts file

Usage:
    python score_layouts.py
    python score_layouts.py --select 1,3-5 --format detailed
    python score_layouts.py --select qwerty --swap ek --invert
    python score_layouts.py --layout test:qwfpbjluy_arstgmneiozxcdvkh___ --csv scores.csv
"""

import argparse
import logging
import sys
from typing import List, Optional

from splitkb.cli_utils import (
    add_common_arguments, epilog, handle_common_errors, load_inputs,
    load_layout_collection, output_config, parse_layout_selection, setup_logging,
    validate_file_access,
)
from splitkb.ergo_scorer import LayoutScorer
from splitkb.layout_utils import Layout, LayoutError
from splitkb.output_utils import (
    OUTPUT_FORMATS, format_bigrams_by_category, format_csv_output, format_letter_bigrams,
    print_results, summarize_ranking,
)

logger = logging.getLogger(__name__)


def parse_layout_argument(text: str) -> Layout:
    """
    Parse NAME:CHARS where CHARS holds 30 characters in row-major order.

    Raises:
        LayoutError: If the argument is malformed
    """
    if ':' not in text:
        raise LayoutError(f"Layout must look like NAME:CHARS, got '{text}'")
    name, chars = text.split(':', 1)
    return Layout.from_string(name.strip(), chars)


def build_variants(layouts: List[Layout], swap: Optional[str], invert: bool) -> List[Layout]:
    """Add swapped and mirrored variants of each layout."""
    result = list(layouts)
    for layout in layouts:
        if swap:
            if len(swap) != 2:
                raise LayoutError(f"--swap takes exactly two characters, got '{swap}'")
            first, second = swap[0], swap[1]
            result.append(layout.swap_characters(first, second, name=f"{layout.name} ({first}<->{second})"))
        if invert:
            result.append(layout.mirrored())
    return result


def create_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Score split 3x10 keyboard layouts (lower is better)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=epilog([
            ("Rank every layout in the configured layouts file", "python score_layouts.py"),
            ("Detailed view of layouts 1 and 3 to 5", "python score_layouts.py --select 1,3-5 --format detailed"),
            ("Effect of swapping e and k, and of mirroring", "python score_layouts.py --select qwerty --swap ek --invert"),
            ("Save every metric as CSV (input for compare_layouts.py)", "python score_layouts.py --csv scores.csv"),
            ("Try a heavier same-finger weight", "python score_layouts.py --set SFB=1.0"),
        ]),
    )
    add_common_arguments(parser)

    layout_group = parser.add_argument_group('Layout Definition')
    layout_group.add_argument(
        '--select',
        help="Layouts to score from the layouts file: numbers, ranges or names (e.g. '1,3-5,qwerty')"
    )
    layout_group.add_argument(
        '--layout',
        action='append',
        default=[],
        metavar='NAME:CHARS',
        help="Extra layout as 30 row-major characters ('_' for empty), repeatable"
    )
    layout_group.add_argument('--swap', metavar='AB', help="Also score each layout with characters A and B swapped")
    layout_group.add_argument('--invert', action='store_true', help="Also score the mirror image of each layout")

    output_group = parser.add_argument_group('Output Options')
    output_group.add_argument(
        '--format',
        choices=OUTPUT_FORMATS,
        default='table',
        help="Output format (default: table)"
    )
    output_group.add_argument('--csv', metavar='FILE', help="Save every metric to a CSV file")
    output_group.add_argument('--no-sort', action='store_true', help="Keep input order instead of ranking by score")
    output_group.add_argument('--bigrams', type=int, metavar='N', help="List the top N bigrams of each class")
    output_group.add_argument('--letter', metavar='C', help="List the bigrams of one character")

    return parser


@handle_common_errors
def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_cli_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.quiet)

    cost_model, corpus = load_inputs(args)

    layouts: List[Layout] = []
    if args.select or not args.layout:
        collection = load_layout_collection(args)
        layouts.extend(parse_layout_selection(args.select, collection))
    layouts.extend(parse_layout_argument(text) for text in args.layout)
    layouts = build_variants(layouts, args.swap, args.invert)

    duplicates = [layout.name for layout in layouts if layout.find_duplicates()]
    if duplicates:
        logger.warning(f"Layouts with duplicate characters (last occurrence is scored): {duplicates}")

    scorer = LayoutScorer(cost_model, corpus)
    if args.no_sort:
        ranked = [(layout, scorer.analyze(layout)) for layout in layouts]
    else:
        ranked = scorer.rank(layouts)

    print_results(ranked, args.format, output_config(args, args.format))

    if args.format == 'table' and not args.quiet:
        print("\nRanking:")
        print('\n'.join(summarize_ranking(ranked)))

    if args.bigrams:
        for layout, _ in ranked:
            print(f"\nBigrams by class: {layout.name}")
            print(format_bigrams_by_category(scorer.bigram_table(layout), args.bigrams))

    if args.letter:
        for layout, _ in ranked:
            print(f"\n{layout.name}")
            print(format_letter_bigrams(scorer.bigram_table(layout), args.letter))

    if args.csv:
        if not validate_file_access(args.csv, 'w'):
            raise ValueError(f"Cannot write CSV file: {args.csv}")
        csv_text = format_csv_output([analysis for _, analysis in ranked], output_config(args, 'csv'))
        with open(args.csv, 'w', encoding='utf-8') as f:
            f.write(csv_text + '\n')
        logger.info(f"CSV saved to: {args.csv}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
