#!/usr/bin/env python3
"""
Build a frequency corpus from raw text.

Reads one or more text files, keeps the characters of an alphabet, counts
characters and within-word bigrams, normalizes both tables to sum to 1 and
writes the JSON corpus format used by score_layouts.py and
optimize_layouts.py.

Alphabet specification:
    abc...      every character stands for itself
    [eё]        equivalent characters, counted as the first one
    _           the space character
    \\[ \\] \\\\    literal brackets and backslash

Input:
    one or more UTF-8 text files

Output:
    JSON corpus: {"language": ..., "characters": {...}, "bigrams": {...}}

Usage:
    python prep_corpus.py books/*.txt --alphabet "abcdefghijklmnopqrstuvwxyz" --language english -o data/english.json
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from splitkb.cli_utils import handle_common_errors, setup_logging
from splitkb.data_utils import save_corpus
from splitkb.text_utils import corpus_from_text

logger = logging.getLogger(__name__)

DEFAULT_ALPHABET = "abcdefghijklmnopqrstuvwxyz"


def read_texts(paths: List[str]) -> str:
    """Concatenate text files, one newline between them."""
    texts = []
    for path in paths:
        if not Path(path).exists():
            raise FileNotFoundError(f"Text file not found: {path}")
        texts.append(Path(path).read_text(encoding='utf-8', errors='replace'))
        logger.info(f"Read {path} ({len(texts[-1]):,} characters)")
    return '\n'.join(texts)


@handle_common_errors
def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Build a character and bigram frequency corpus from text files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('texts', nargs='+', help="Input text files (UTF-8)")
    parser.add_argument('--alphabet', default=DEFAULT_ALPHABET,
                        help=f"Alphabet specification (default: {DEFAULT_ALPHABET})")
    parser.add_argument('--language', default="", help="Language label stored in the corpus")
    parser.add_argument('--output', '-o', required=True, help="Output JSON file")
    parser.add_argument('--verbose', '-v', action='store_true', help="Show debug output")
    parser.add_argument('--quiet', '-q', action='store_true', help="Only show warnings and errors")
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.quiet)

    text = read_texts(args.texts)
    corpus = corpus_from_text(text, args.alphabet, language=args.language or Path(args.output).stem)

    if corpus.is_empty:
        logger.warning("No alphabet characters found in the input text")

    top = ', '.join(f"{ch}={corpus.characters[ch]:.4f}" for ch in corpus.alphabet()[:10])
    logger.info(f"Most frequent characters: {top}")

    save_corpus(corpus, args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
