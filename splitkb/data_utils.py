#!/usr/bin/env python3
"""
Data utilities for loading frequency corpora.

A corpus holds character and bigram occurrence frequencies for a language.
Frequencies are non-negative reals that need not sum to 1; the scoring
engine normalizes internally.

Supported formats:
- JSON: {"language": ..., "characters": {"a": 0.08, ...}, "bigrams": {"th": 0.03, ...}}
- CSV: a character table and a bigram table, columns auto-detected
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd

logger = logging.getLogger(__name__)

CHARACTER_COLUMNS = ['character', 'char', 'letter', 'item', 'key']
BIGRAM_COLUMNS = ['bigram', 'letter_pair', 'pair', 'sequence', 'letters']
FREQUENCY_COLUMNS = ['frequency', 'freq', 'probability', 'prob', 'weight', 'count']


class CorpusError(ValueError):
    """Raised when a frequency corpus can't be loaded."""


@dataclass
class Corpus:
    """Character and bigram frequencies for one language."""

    characters: Dict[str, float] = field(default_factory=dict)
    bigrams: Dict[str, float] = field(default_factory=dict)
    language: str = ""

    @property
    def is_empty(self) -> bool:
        return not any(self.characters.values())

    def character_frequency(self, char: str) -> float:
        return self.characters.get(char, 0.0)

    def alphabet(self) -> List[str]:
        """Single, non-whitespace characters ordered by descending frequency, then by character."""
        chars = [ch for ch in self.characters if len(ch) == 1 and not ch.isspace()]
        return sorted(chars, key=lambda ch: (-self.characters[ch], ch))

    def top_characters(self, count: int, exclude: Iterable[str] = ()) -> List[str]:
        excluded = set(exclude)
        return [ch for ch in self.alphabet() if ch not in excluded][:max(count, 0)]


def _validated_frequencies(raw: Dict, label: str, key_length: Optional[int], source: str) -> Dict[str, float]:
    if not isinstance(raw, dict):
        raise CorpusError(f"'{label}' in {source} must be a mapping")

    result = {}
    for key, value in raw.items():
        if key_length is not None and len(key) != key_length:
            logger.warning(f"Skipping {label} entry '{key}' in {source}: expected {key_length} characters")
            continue
        try:
            frequency = float(value)
        except (TypeError, ValueError):
            raise CorpusError(f"Invalid frequency for {label} '{key}' in {source}: {value}")
        if frequency < 0:
            raise CorpusError(f"Negative frequency for {label} '{key}' in {source}: {value}")
        result[key] = frequency
    return result


def load_corpus_json(filepath: Union[str, Path]) -> Corpus:
    """
    Load a corpus from the JSON format.

    Raises:
        FileNotFoundError: If the file doesn't exist
        CorpusError: If the JSON is malformed
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Corpus file not found: {filepath}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise CorpusError(f"Error parsing corpus JSON {filepath}: {e}")

    if not isinstance(data, dict):
        raise CorpusError(f"Corpus JSON root must be an object: {filepath}")

    return Corpus(
        characters=_validated_frequencies(data.get('characters', {}), 'characters', 1, str(filepath)),
        bigrams=_validated_frequencies(data.get('bigrams', {}), 'bigrams', 2, str(filepath)),
        language=str(data.get('language', '')),
    )


def _detect_column(columns: List[str], candidates: List[str], requested: Optional[str],
                   filepath: str, label: str) -> str:
    if requested is not None:
        if requested not in columns:
            raise CorpusError(f"{label} column '{requested}' not found in {filepath}. Available: {columns}")
        return requested
    for candidate in candidates:
        if candidate in columns:
            return candidate
    raise CorpusError(
        f"Could not find {label} column in {filepath}. "
        f"Available columns: {columns}. "
        f"Expected one of: {candidates}"
    )


def load_frequency_csv(filepath: Union[str, Path],
                       key_length: int,
                       key_col: Optional[str] = None,
                       frequency_col: Optional[str] = None) -> Dict[str, float]:
    """
    Load a character or bigram frequency table from CSV with automatic column detection.

    Args:
        filepath: Path to CSV (or TSV) file
        key_length: 1 for characters, 2 for bigrams
        key_col: Name of key column (auto-detected if None)
        frequency_col: Name of frequency column (auto-detected if None)

    Returns:
        Dict mapping lowercased keys to frequencies (duplicates are summed)

    Raises:
        FileNotFoundError: If file doesn't exist
        CorpusError: If required columns can't be found or data is invalid
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Frequency file not found: {filepath}")

    delimiter = '\t' if path.suffix.lower() == '.tsv' else ','
    try:
        df = pd.read_csv(path, delimiter=delimiter, dtype=str, keep_default_na=False)
    except Exception as e:
        raise CorpusError(f"Error reading CSV file {filepath}: {e}")

    if df.empty:
        raise CorpusError(f"Empty CSV file: {filepath}")

    columns = list(df.columns)
    key_candidates = CHARACTER_COLUMNS if key_length == 1 else BIGRAM_COLUMNS
    key_col = _detect_column(columns, key_candidates, key_col, str(filepath), "key")
    frequency_col = _detect_column(columns, FREQUENCY_COLUMNS, frequency_col, str(filepath), "frequency")

    keys = df[key_col].str.lower()
    values = pd.to_numeric(df[frequency_col].str.strip(), errors='coerce')

    valid = (keys.str.len() == key_length) & values.notna() & (values >= 0)
    skipped = int((~valid).sum())
    if skipped:
        logger.warning(f"Skipped {skipped} invalid rows in {filepath}")

    frequencies = values[valid].groupby(keys[valid], sort=False).sum()
    if frequencies.empty:
        raise CorpusError(f"No valid frequency rows found in {filepath}")

    logger.debug(f"Loaded {len(frequencies)} entries from {filepath} (columns: {key_col}, {frequency_col})")
    return {str(k): float(v) for k, v in frequencies.items()}


def load_corpus_csv(characters_file: Union[str, Path], bigrams_file: Union[str, Path],
                    language: str = "") -> Corpus:
    return Corpus(
        characters=load_frequency_csv(characters_file, 1),
        bigrams=load_frequency_csv(bigrams_file, 2),
        language=language,
    )


def load_corpus(filepath: Union[str, Path], bigrams_file: Optional[Union[str, Path]] = None) -> Corpus:
    """
    Load a corpus from JSON, or from a pair of CSV files.

    Args:
        filepath: JSON corpus, or character CSV when bigrams_file is given
        bigrams_file: Bigram CSV file (CSV input only)
    """
    path = Path(filepath)
    if bigrams_file is not None or path.suffix.lower() in ('.csv', '.tsv'):
        if bigrams_file is None:
            raise CorpusError(f"CSV corpus {filepath} needs a matching bigram frequency file")
        corpus = load_corpus_csv(path, bigrams_file, language=path.stem)
    else:
        corpus = load_corpus_json(path)

    logger.info(
        f"Loaded corpus '{corpus.language or path.stem}': "
        f"{len(corpus.characters)} characters, {len(corpus.bigrams)} bigrams"
    )
    return corpus


def _sorted_items(frequencies: Dict[str, float]) -> List[Tuple[str, float]]:
    return sorted(frequencies.items(), key=lambda item: (-item[1], item[0]))


def save_corpus(corpus: Corpus, filepath: Union[str, Path]) -> None:
    """Write a corpus as JSON, entries sorted by descending frequency."""
    data = {
        'language': corpus.language,
        'characters': dict(_sorted_items(corpus.characters)),
        'bigrams': dict(_sorted_items(corpus.bigrams)),
    }
    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
        f.write('\n')
    logger.info(f"Saved corpus to {filepath}")
