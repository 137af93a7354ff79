#!/usr/bin/env python3
"""
Split keyboard layout optimizer (simulated annealing).

Searches for low-scoring layouts starting from an existing layout or from
random layouts, and prints the best results. Search parameters default to
the `search` section of the configuration file.

Start modes:
- --seed NAME|NUMBER: anneal an existing layout; uppercase letters in it lock
  their cells, otherwise the cost model's fixed positions apply
  ('--seed best' picks the best-scoring layout of the layouts file)
- --mode random: the corpus's most frequent characters in random order
- --mode known: the first layout's characters shuffled into its free cells
- --mode unconstrained: characters of all layouts anywhere, no locks

With --continuous, search rounds repeat until Ctrl-C; every new best layout
is printed and, with --save, written to a layouts file as it is found.

Usage:
    python optimize_layouts.py --mode random --restarts 10 --num-best 3
    python optimize_layouts.py --seed qwerty --iterations 50000 --save data/found.txt
    python optimize_layouts.py --seed best --continuous --save data/found.txt
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from splitkb.annealing import SearchParams, SearchResult, continuous_search, search
from splitkb.cli_utils import (
    add_common_arguments, epilog, handle_common_errors, load_inputs,
    load_layout_collection, setup_logging, validate_file_access,
)
from splitkb.config_loader import get_config_loader
from splitkb.ergo_scorer import LayoutScorer
from splitkb.layout_utils import Layout, LayoutCollection, save_layout
from splitkb.output_utils import format_detailed_output, format_search_results

logger = logging.getLogger(__name__)

MODES = ('random', 'known', 'unconstrained')


def create_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Optimize split 3x10 keyboard layouts with simulated annealing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=epilog([
            ("Random starts from the corpus alphabet", "python optimize_layouts.py --mode random --restarts 10"),
            ("Improve an existing layout and save the result",
             "python optimize_layouts.py --seed qwerty --save data/found.txt"),
            ("Search until Ctrl-C, saving every new best layout",
             "python optimize_layouts.py --seed best --continuous --save data/found.txt"),
            ("Reproducible run on four processes",
             "python optimize_layouts.py --mode known --random-seed 42 --workers 4"),
        ]),
    )
    add_common_arguments(parser)

    start_group = parser.add_argument_group('Start Layout')
    start_group.add_argument('--seed', help="Layout name or number to start from ('best' for the best-scoring one)")
    start_group.add_argument(
        '--mode',
        choices=MODES,
        default='random',
        help="Random start mode when no --seed is given (default: random)"
    )

    search_group = parser.add_argument_group('Search Parameters (defaults from config)')
    search_group.add_argument('--initial-temp', type=float, help="Initial temperature")
    search_group.add_argument('--cooling-rate', type=float, help="Temperature multiplier per iteration")
    search_group.add_argument('--iterations', type=int, help="Iterations per restart")
    search_group.add_argument('--restarts', type=int, help="Number of restarts")
    search_group.add_argument('--random-seed', type=int, help="Seed for reproducible searches")
    search_group.add_argument('--num-best', type=int, help="Number of results to keep")
    search_group.add_argument('--workers', type=int, default=1, help="Processes for independent restarts")
    resume = search_group.add_mutually_exclusive_group()
    resume.add_argument('--resume', dest='resume_from_best', action='store_const', const=True,
                        help="Start each restart from the best layout so far")
    resume.add_argument('--no-resume', dest='resume_from_best', action='store_const', const=False,
                        help="Start each restart fresh")

    output_group = parser.add_argument_group('Output Options')
    output_group.add_argument('--continuous', action='store_true', help="Repeat search rounds until Ctrl-C")
    output_group.add_argument('--max-rounds', type=int, help="Stop continuous search after this many rounds")
    output_group.add_argument('--save', metavar='FILE', help="Upsert the best layout into a layouts file")
    output_group.add_argument('--name', help="Name for the saved layout")
    output_group.add_argument('--detailed', action='store_true', help="Show every metric of the best layout")

    return parser


def build_search_params(args: argparse.Namespace) -> SearchParams:
    """Merge the config's search section with command-line overrides."""
    config = {}
    if Path(args.config).exists():
        config = get_config_loader(args.config).get_section('search', required=False)

    for key in ('initial_temp', 'cooling_rate', 'iterations', 'restarts', 'random_seed', 'resume_from_best'):
        value = getattr(args, key, None)
        if value is not None:
            config[key] = value
    return SearchParams.from_config(config)


def num_best_setting(args: argparse.Namespace) -> int:
    if args.num_best is not None:
        return args.num_best
    if Path(args.config).exists():
        return int(get_config_loader(args.config).get_section('search', required=False).get('num_best', 1))
    return 1


def pick_seed(spec: str, collection: LayoutCollection, scorer: LayoutScorer) -> Layout:
    """Resolve --seed: a layout name, a 1-based number or 'best'."""
    if spec.lower() == 'best':
        if not collection.layouts:
            raise ValueError("'--seed best' needs a layouts file with at least one layout")
        layout, analysis = scorer.rank(collection.layouts)[0]
        logger.info(f"Starting from best known layout '{layout.name}' ({analysis.weighted_score:.4f})")
        return layout
    return collection.find(spec)


def saved_name(result: SearchResult, args: argparse.Namespace, known: List[Layout]) -> Layout:
    """Copy of the result layout named for saving, never clobbering a known layout's name."""
    name = args.name or result.layout.name
    if not args.name and any(layout.name == name for layout in known):
        name = f"{name}_opt"
    return result.layout.copy(name=name)


@handle_common_errors
def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_cli_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.quiet)

    if args.save and not validate_file_access(args.save, 'w'):
        raise ValueError(f"Cannot write layouts file: {args.save}")

    cost_model, corpus = load_inputs(args)
    params = build_search_params(args)
    num_best = num_best_setting(args)
    scorer = LayoutScorer(cost_model, corpus)

    needs_layouts = args.seed is not None or args.mode == 'known'
    collection = load_layout_collection(args, required=needs_layouts)
    known = list(collection.layouts)

    seed = pick_seed(args.seed, collection, scorer) if args.seed else None
    unconstrained = seed is None and args.mode == 'unconstrained'
    # Random corpus mode ignores the alphabet of existing layouts
    start_layouts = known if (seed is not None or args.mode != 'random') else []

    if args.continuous:
        cancel = threading.Event()

        def request_stop(signum, frame):
            print("\nStop requested, finishing the current iteration...", file=sys.stderr)
            cancel.set()

        def report_round(round_number: int, best: List[SearchResult]):
            if best:
                logger.info(f"Round {round_number}: best {best[0].layout.name} {best[0].score:.4f}")

        def report_new_best(result: SearchResult):
            print(f"\nNew best layout:\n{format_search_results([result])}")
            if args.save:
                save_layout(args.save, saved_name(result, args, known))

        previous_handler = signal.signal(signal.SIGINT, request_stop)
        try:
            results = continuous_search(
                cost_model, corpus, cancel, seed=seed, params=params, num_best=num_best,
                known_layouts=start_layouts, unconstrained=unconstrained,
                on_round=report_round, on_new_best=report_new_best, max_rounds=args.max_rounds,
            )
        finally:
            signal.signal(signal.SIGINT, previous_handler)
    else:
        results = search(
            cost_model, corpus, seed=seed, params=params, num_best=num_best,
            known_layouts=start_layouts, unconstrained=unconstrained,
            workers=args.workers, scorer=scorer,
        )

    print(format_search_results(results))

    if results and args.detailed:
        print()
        print(format_detailed_output(results[0].layout, results[0].analysis))

    if results and args.save:
        save_layout(args.save, saved_name(results[0], args, known))
        logger.info(f"Saved best layout to {args.save}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
