#!/usr/bin/env python3
"""
CLI utilities for the layout analyzer scripts.

Common functions for command-line argument parsing, logging setup,
loading of the configured inputs and standardized error handling across
the score, optimize and compare scripts.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from splitkb.config_loader import get_config_loader
from splitkb.cost_model import CostModel, parse_weight_override
from splitkb.data_utils import Corpus, load_corpus
from splitkb.layout_utils import Layout, LayoutCollection, load_layouts

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure root logging once for a script run."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the input and verbosity arguments shared by all scripts."""
    input_group = parser.add_argument_group('Input Options')

    input_group.add_argument(
        '--config',
        dest='config',
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)"
    )
    input_group.add_argument(
        '--corpus',
        dest='corpus',
        help="Frequency corpus: JSON file, or character CSV with --bigrams-file (overrides config)"
    )
    input_group.add_argument(
        '--bigrams-file',
        dest='bigrams_file',
        help="Bigram frequency CSV to pair with a character CSV corpus"
    )
    input_group.add_argument(
        '--layouts',
        dest='layouts',
        help="Layouts file (overrides config)"
    )
    input_group.add_argument(
        '--set',
        dest='weight_overrides',
        action='append',
        default=[],
        metavar='NAME=VALUE',
        help="Override a cost model weight for this run, e.g. --set SFB=0.5 (repeatable)"
    )

    verbosity = parser.add_argument_group('Logging')
    verbosity.add_argument('--verbose', '-v', action='store_true', help="Show debug output")
    verbosity.add_argument('--quiet', '-q', action='store_true', help="Only show warnings and errors")


def resolve_data_file(args: argparse.Namespace, attr: str, key: str) -> Optional[str]:
    """
    Pick a data file path from the command line or the config's data_files.

    Args:
        args: Parsed arguments
        attr: Argument attribute name
        key: Key under common.data_files
    """
    value = getattr(args, attr, None)
    if value:
        return value
    config_path = Path(args.config)
    if not config_path.exists():
        return None
    return get_config_loader(args.config).get_data_files().get(key)


def load_inputs(args: argparse.Namespace) -> Tuple[CostModel, Corpus]:
    """
    Load the cost model (with --set overrides applied) and the corpus.

    Raises:
        FileNotFoundError: If the config or corpus file is missing
        ValueError: If the corpus path is not configured or an input is malformed
    """
    config = get_config_loader(args.config)
    cost_model = CostModel.from_config(config.get_section('cost_model'))

    overrides = dict(parse_weight_override(text) for text in args.weight_overrides)
    if overrides:
        cost_model = cost_model.with_weights(**overrides)
        logging.info(f"Weight overrides: {overrides}")

    corpus_path = resolve_data_file(args, 'corpus', 'corpus')
    if not corpus_path:
        raise ValueError("No corpus given: use --corpus or set common.data_files.corpus in the config")
    corpus = load_corpus(corpus_path, getattr(args, 'bigrams_file', None))
    return cost_model, corpus


def load_layout_collection(args: argparse.Namespace, required: bool = True) -> LayoutCollection:
    """Load the layouts file named on the command line or in the config."""
    path = resolve_data_file(args, 'layouts', 'layouts')
    if not path:
        if required:
            raise ValueError("No layouts file given: use --layouts or set common.data_files.layouts in the config")
        return LayoutCollection()
    if not required and not Path(path).exists():
        return LayoutCollection()
    return load_layouts(path)


def parse_layout_selection(spec: Optional[str], collection: LayoutCollection) -> List[Layout]:
    """
    Select layouts by comma-separated 1-based numbers, ranges or names.

    Examples: "1,3-5", "qwerty,colemak", "" (all layouts)

    Raises:
        KeyError: If a number or name matches no layout
        ValueError: If a range is malformed
    """
    if not spec or not spec.strip():
        return list(collection.layouts)

    selected: List[Layout] = []
    for part in spec.split(','):
        part = part.strip()
        if not part:
            continue
        bounds = part.split('-')
        if len(bounds) == 2 and all(b.strip().isdigit() for b in bounds):
            start, end = int(bounds[0]), int(bounds[1])
            if start > end:
                raise ValueError(f"Invalid range: {part}")
            for number in range(start, end + 1):
                selected.append(collection.find(number))
        else:
            selected.append(collection.find(part))
    return selected


def handle_common_errors(func):
    """
    Decorator to handle common CLI errors gracefully.

    Args:
        func: Function to wrap (typically main())

    Returns:
        Wrapped function with error handling
    """
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            print("\nOperation cancelled by user.", file=sys.stderr)
            return 130
        except FileNotFoundError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except KeyError as e:
            print(f"Error: {e.args[0] if e.args else e}", file=sys.stderr)
            return 1
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except PermissionError as e:
            print(f"Permission error: {e}", file=sys.stderr)
            return 1
        except Exception as e:
            print(f"Unexpected error: {e}", file=sys.stderr)
            import traceback
            traceback.print_exc()
            return 1

    return wrapper


def validate_file_access(filepath: str, mode: str = 'r') -> bool:
    """
    Validate that a file can be accessed with the specified mode.

    Args:
        filepath: Path to file to check
        mode: Access mode ('r', 'w', 'a')

    Returns:
        True if file can be accessed, False otherwise
    """
    try:
        if mode == 'r':
            return Path(filepath).exists() and Path(filepath).is_file()
        elif mode in ['w', 'a']:
            parent = Path(filepath).parent
            return parent.exists() and parent.is_dir()
        else:
            return False
    except (OSError, PermissionError):
        return False


def output_config(args: argparse.Namespace, format_name: str) -> Dict:
    """Output format settings from the config, empty when no config is present."""
    if not Path(args.config).exists():
        return {}
    return get_config_loader(args.config).get_output_format_config(format_name)


def epilog(examples: Sequence[Tuple[str, str]]) -> str:
    """Build an 'Examples:' epilog from (comment, command) pairs."""
    lines = ["Examples:"]
    for comment, command in examples:
        lines.append(f"  # {comment}")
        lines.append(f"  {command}")
        lines.append("")
    return "\n".join(lines)
