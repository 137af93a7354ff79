#!/usr/bin/env python3
"""
Text utilities for building frequency corpora.

Converts raw text into character and bigram frequencies restricted to an
alphabet. Bigrams are only counted within words.

Alphabet specification:
- every character stands for itself ('abc')
- '[...]' groups equivalent characters; all map to the first one ('[eё]')
- '_' stands for the space character
- a backslash escapes '[', ']' and '\\'
"""

import re
from collections import Counter
from typing import Dict, List, Set, Tuple

from splitkb.data_utils import Corpus

PUNCTUATION_RE = re.compile(r'[^\w ]+')


def parse_alphabet(spec: str) -> Tuple[Set[str], Dict[str, str]]:
    """
    Parse an alphabet specification.

    Args:
        spec: Alphabet string, e.g. 'abc[eё]_'

    Returns:
        Tuple of (alphabet characters, equivalence map char -> group leader)
    """
    alphabet: Set[str] = set()
    groups: Dict[str, str] = {}

    i = 0
    while i < len(spec):
        char = spec[i]

        if char == '_':
            alphabet.add(' ')
            i += 1
            continue

        if char == '[':
            end = spec.find(']', i + 1)
            if end != -1:
                members = spec[i + 1:end]
                if members:
                    leader = members[0]
                    alphabet.add(leader)
                    for member in members:
                        groups[member] = leader
                i = end + 1
                continue

        if char == '\\' and i + 1 < len(spec) and spec[i + 1] in '[]\\':
            alphabet.add(spec[i + 1])
            i += 2
            continue

        if char != ' ':
            alphabet.add(char)
        i += 1

    return alphabet, groups


def canonical_char(char: str, alphabet: Set[str], groups: Dict[str, str]) -> str:
    """Map a character to its alphabet representative, or '' if it is not in the alphabet."""
    if char in alphabet:
        return char
    leader = groups.get(char)
    if leader is not None and leader in alphabet:
        return leader
    return ''


def clean_words(text: str, alphabet: Set[str], groups: Dict[str, str]) -> List[str]:
    """
    Lowercase text, split on punctuation and whitespace, keep alphabet characters.

    Returns:
        List of non-empty words made of canonical alphabet characters
    """
    words = []
    for word in PUNCTUATION_RE.sub(' ', text.lower()).split():
        cleaned = ''.join(canonical_char(ch, alphabet, groups) for ch in word)
        if cleaned:
            words.append(cleaned)
    return words


def get_character_counts(words: List[str]) -> Counter:
    counts: Counter = Counter()
    for word in words:
        counts.update(word)
    return counts


def get_bigram_counts(words: List[str]) -> Counter:
    counts: Counter = Counter()
    for word in words:
        counts.update(word[i:i + 2] for i in range(len(word) - 1))
    return counts


def _normalize(counts: Counter, keys: List[str]) -> Dict[str, float]:
    total = sum(counts.values())
    return {key: (counts[key] / total if total else 0.0) for key in keys}


def corpus_from_text(text: str, alphabet_spec: str, language: str = "") -> Corpus:
    """
    Build a corpus from raw text.

    Every alphabet character and every ordered alphabet pair is present in the
    result, with frequency 0 when unseen. Frequencies sum to 1 per table
    whenever anything was counted.

    Args:
        text: Source text
        alphabet_spec: Alphabet specification (see module docstring)
        language: Label stored in the corpus
    """
    alphabet, groups = parse_alphabet(alphabet_spec)
    words = clean_words(text, alphabet, groups)

    chars = sorted(alphabet)
    pairs = [a + b for a in chars for b in chars]

    return Corpus(
        characters=_normalize(get_character_counts(words), chars),
        bigrams=_normalize(get_bigram_counts(words), pairs),
        language=language,
    )
