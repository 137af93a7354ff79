#!/usr/bin/env python3
"""
Scoring engine for split 3x10 layouts.

Converts a layout, a frequency corpus and a weighted cost model into an
Analysis: overall effort, load distribution by row/finger/half, bigram class
percentages, balance indices, threshold penalty and one weighted score.
Lower scores are better.

Bigram classes (percent of matched bigram frequency):

    SHB  same half
    SFB  same finger
    HVB  same finger and column, adjacent rows (center columns excluded)
    FVB  same finger and column, top to bottom row (center columns excluded)
    HDB  same finger, adjacent rows, adjacent columns
    FDB  same finger, row distance 2, adjacent columns
    HFB  same finger, same row, adjacent columns
    HSB  half scissors: same hand, different fingers, adjacent rows, lower key on a stretch finger
    FSB  full scissors: as HSB across top and bottom rows, bottom key on a stretch finger
    LSB  lateral stretch: index and middle finger across the center-side gap
    SRB  same row, same half (center columns excluded)
    AFI  same row, adjacent columns, moving toward the center
    AFO  same row, adjacent columns, moving away from the center
    HSB2/FSB2/LSB2  geometric near-misses routed aside in strict mode (not weighted)
    SKB  same key twice
    TIB  frequency times per-position-pair override coefficient

All classes except SHB/SFB/SKB/TIB only apply when both keys are on the
same half.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple
import logging

import numpy as np
import pandas as pd

from splitkb.cost_model import BIGRAM_TERMS, DEFAULT_STRETCH_FINGERS, CostModel, Weights
from splitkb.data_utils import Corpus
from splitkb.grid import (
    CENTER_COLS, FINGER_BY_COL, INDEX_FINGERS, MIDDLE_FINGERS, MIRROR_FINGER_PAIRS,
    NUM_FINGERS, NUM_POSITIONS, ROWS, Position, all_positions,
)
from splitkb.layout_utils import Layout

logger = logging.getLogger(__name__)

SECONDARY_TERMS = ('hsb2', 'fsb2', 'lsb2')
CATEGORY_NAMES: Tuple[str, ...] = BIGRAM_TERMS + SECONDARY_TERMS + ('skb',)

LATERAL_STRETCH_COLUMNS = frozenset({(2, 4), (4, 2), (5, 7), (7, 5)})

_POSITIONS = list(all_positions())
_ROW_OF_POS = np.array([p.row for p in _POSITIONS])
_FINGER_OF_POS = np.array([p.finger for p in _POSITIONS])
_HALF_OF_POS = np.array([p.half for p in _POSITIONS])


@dataclass(frozen=True)
class BigramStats:
    """Bigram class percentages of one layout."""

    shb: float = 0.0
    sfb: float = 0.0
    hvb: float = 0.0
    fvb: float = 0.0
    hdb: float = 0.0
    fdb: float = 0.0
    hfb: float = 0.0
    hsb: float = 0.0
    fsb: float = 0.0
    lsb: float = 0.0
    srb: float = 0.0
    afi: float = 0.0
    afo: float = 0.0
    hsb2: float = 0.0
    fsb2: float = 0.0
    lsb2: float = 0.0
    skb: float = 0.0
    tib: float = 0.0

    def weighted_sum(self, weights: Weights) -> float:
        """Sum of weighted bigram classes plus TIB."""
        return sum(weights.bigram_weight(term) * getattr(self, term) for term in BIGRAM_TERMS) + self.tib

    def to_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class Analysis:
    """
    Result of analyzing one layout.

    Percentages are of total matched frequency. Effort is relative to
    frequency-blind placement (100 = as costly as uniform placement).
    """

    layout_name: str
    total_effort: float = 0.0
    effort_by_row: Tuple[float, ...] = (0.0,) * ROWS
    effort_by_finger: Tuple[float, ...] = (0.0,) * NUM_FINGERS
    effort_by_half: Tuple[float, float] = (0.0, 0.0)
    bigrams: BigramStats = BigramStats()
    hdi: float = 0.0
    fdi: float = 0.0
    mep: float = 0.0
    bigram_score: float = 0.0
    weighted_score: float = 0.0

    @property
    def score(self) -> float:
        return self.weighted_score

    def get_score(self, component_name: Optional[str] = None) -> float:
        """
        Get a named metric or the weighted score.

        Args:
            component_name: Key of to_dict() (e.g. 'sfb', 'finger_3'), or None for the score

        Raises:
            KeyError: If component_name is unknown
        """
        if component_name is None:
            return self.weighted_score

        metrics = self.to_dict()
        key = component_name.lower()
        if key not in metrics or key == 'layout':
            available = [k for k in metrics if k != 'layout']
            raise KeyError(f"Component '{component_name}' not found. Available: {available}")
        return metrics[key]

    def to_dict(self) -> Dict[str, Any]:
        """Flat dictionary suitable for CSV/DataFrame export."""
        result: Dict[str, Any] = {'layout': self.layout_name}
        for i, value in enumerate(self.effort_by_finger):
            result[f'finger_{i + 1}'] = value
        for i, value in enumerate(self.effort_by_row):
            result[f'row_{i + 1}'] = value
        result['left'], result['right'] = self.effort_by_half
        result['hdi'] = self.hdi
        result['fdi'] = self.fdi
        result['mep'] = self.mep
        result['effort'] = self.total_effort
        result.update(self.bigrams.to_dict())
        result['bigram_score'] = self.bigram_score
        result['score'] = self.weighted_score
        return result

    def summary(self) -> str:
        lines = [
            f"Layout: {self.layout_name}",
            f"Weighted score: {self.weighted_score:.4f}",
            f"Effort: {self.total_effort:.2f}%",
            f"Hands L/R: {self.effort_by_half[0]:.1f} / {self.effort_by_half[1]:.1f}",
            f"SFB: {self.bigrams.sfb:.2f}%  HDI: {self.hdi:.2f}  FDI: {self.fdi:.2f}  MEP: {self.mep:.2f}",
        ]
        return "\n".join(lines)


def classify_pair(first: Position, second: Position,
                  weights: Weights = Weights(),
                  stretch_fingers: FrozenSet[int] = DEFAULT_STRETCH_FINGERS) -> FrozenSet[str]:
    """
    Classify the transition between two positions.

    Args:
        first: Position of the first character
        second: Position of the second character
        weights: Supplies the HSB/FSB/LSB strict-mode flags
        stretch_fingers: 0-based fingers that make a scissor valid in strict mode

    Every lateral stretch on this grid joins a middle finger and an index
    finger, so LSB never moves to LSB2 under the fixed finger map, even in
    strict mode. LSB2 stays in the score vector as an always-empty bucket.

    Returns:
        Set of lowercase category names from CATEGORY_NAMES
    """
    row1, col1 = first
    row2, col2 = second
    finger1, finger2 = FINGER_BY_COL[col1], FINGER_BY_COL[col2]
    row_diff = abs(row1 - row2)
    col_diff = abs(col1 - col2)
    same_finger = finger1 == finger2
    no_center = col1 not in CENTER_COLS and col2 not in CENTER_COLS

    classes = set()
    if first == second:
        classes.add('skb')
    if same_finger:
        classes.add('sfb')
    if first.half != second.half:
        return frozenset(classes)

    classes.add('shb')

    if same_finger and col1 == col2 and col1 not in CENTER_COLS:
        if row_diff == 1:
            classes.add('hvb')
        elif row_diff == 2:
            classes.add('fvb')

    if same_finger and col_diff == 1:
        if row_diff == 1:
            classes.add('hdb')
        elif row_diff == 2:
            classes.add('fdb')
        elif row_diff == 0:
            classes.add('hfb')

    if row_diff == 0 and no_center:
        classes.add('srb')

    # Hand proper: outer four columns of each half
    same_hand = (col1 <= 3 and col2 <= 3) or (col1 >= 6 and col2 >= 6)
    if same_hand and not same_finger:
        if row_diff == 1:
            lower_finger = finger1 if row1 > row2 else finger2
            valid = lower_finger in stretch_fingers
            if valid or not weights.hsb_strict:
                classes.add('hsb')
            else:
                classes.add('hsb2')
        elif row_diff == 2:
            bottom_finger = finger1 if row1 == 2 else finger2
            valid = bottom_finger in stretch_fingers
            if valid or not weights.fsb_strict:
                classes.add('fsb')
            else:
                classes.add('fsb2')

    if (col1, col2) in LATERAL_STRETCH_COLUMNS:
        valid = ((finger1 in INDEX_FINGERS and finger2 in MIDDLE_FINGERS)
                 or (finger2 in INDEX_FINGERS and finger1 in MIDDLE_FINGERS))
        if valid or not weights.lsb_strict:
            classes.add('lsb')
        else:
            classes.add('lsb2')

    if row_diff == 0 and col_diff == 1:
        dist1, dist2 = abs(col1 - 4.5), abs(col2 - 4.5)
        if dist1 > dist2:
            classes.add('afi')
        elif dist1 < dist2:
            classes.add('afo')

    return frozenset(classes)


def compute_fdi(effort_by_finger: Sequence[float], weights: Weights) -> float:
    """Weighted sum of load differences between mirrored fingers."""
    return sum(
        coeff * abs(effort_by_finger[left] - effort_by_finger[right])
        for coeff, (left, right) in zip(weights.finger_pair_weights(), MIRROR_FINGER_PAIRS)
    )


def compute_mep(effort_by_finger: Sequence[float], effort_by_row: Sequence[float],
                cost_model: CostModel) -> float:
    """Linear penalty for every finger or row whose load exceeds a positive maximum."""
    penalty = 0.0
    for load, maximum, rate in zip(effort_by_finger, cost_model.finger_max, cost_model.finger_penalty):
        if maximum > 0 and load > maximum:
            penalty += (load - maximum) * rate
    for load, maximum, rate in zip(effort_by_row, cost_model.row_max, cost_model.row_penalty):
        if maximum > 0 and load > maximum:
            penalty += (load - maximum) * rate
    return penalty


class LayoutScorer:
    """
    Scores layouts against one cost model and corpus.

    Pair classification and corpus lookups are precomputed once, so
    analyze() stays cheap enough to serve as the optimizer's objective.
    Layout characters are matched case-insensitively against the corpus.
    """

    def __init__(self, cost_model: CostModel, corpus: Corpus):
        self.cost_model = cost_model
        self.corpus = corpus
        self.weights = cost_model.weights

        self._effort = cost_model.effort.reshape(-1)
        self._uniform_effort = cost_model.uniform_effort

        # Category membership of every ordered position pair
        self._pair_classes: List[FrozenSet[str]] = []
        matrix = np.zeros((NUM_POSITIONS * NUM_POSITIONS, len(CATEGORY_NAMES)))
        for p1 in _POSITIONS:
            for p2 in _POSITIONS:
                classes = classify_pair(p1, p2, self.weights, cost_model.stretch_fingers)
                self._pair_classes.append(classes)
                row = p1.index * NUM_POSITIONS + p2.index
                for k, name in enumerate(CATEGORY_NAMES):
                    if name in classes:
                        matrix[row, k] = 1.0
        self._category_matrix = matrix
        self._override_vector = cost_model.override_matrix().reshape(-1)

        # Symbol table covering single characters and bigram members
        symbols: Dict[str, int] = {}
        for char in corpus.characters:
            if len(char) == 1:
                symbols.setdefault(char, len(symbols))
        bigram_first, bigram_second, bigram_freq = [], [], []
        for bigram, freq in corpus.bigrams.items():
            if len(bigram) != 2:
                continue
            bigram_first.append(symbols.setdefault(bigram[0], len(symbols)))
            bigram_second.append(symbols.setdefault(bigram[1], len(symbols)))
            bigram_freq.append(freq)

        self._symbols = list(symbols)
        self._char_freq = np.array([corpus.characters.get(s, 0.0) for s in self._symbols], dtype=float)
        self._bigram_first = np.array(bigram_first, dtype=int)
        self._bigram_second = np.array(bigram_second, dtype=int)
        self._bigram_freq = np.array(bigram_freq, dtype=float)

    def _symbol_positions(self, layout: Layout) -> np.ndarray:
        # Last occurrence in row-major order wins
        index: Dict[str, int] = {}
        for pos, ch in layout.cells():
            if ch:
                index[ch.lower()] = pos.index
        return np.array([index.get(s, -1) for s in self._symbols], dtype=int)

    def analyze(self, layout: Layout) -> Analysis:
        """Analyze a layout. Never raises on missing data; an empty corpus yields zeros."""
        sym_pos = self._symbol_positions(layout)

        effort_by_row = np.zeros(ROWS)
        effort_by_finger = np.zeros(NUM_FINGERS)
        effort_by_half = np.zeros(2)
        total_effort = 0.0

        placed = sym_pos >= 0
        pos_mass = np.bincount(sym_pos[placed], weights=self._char_freq[placed], minlength=NUM_POSITIONS)
        total_freq = pos_mass.sum()
        if total_freq > 0:
            if self._uniform_effort > 0:
                avg_effort = float(pos_mass @ self._effort) / total_freq
                total_effort = avg_effort / self._uniform_effort * 100.0
            effort_by_row = np.bincount(_ROW_OF_POS, weights=pos_mass, minlength=ROWS) / total_freq * 100.0
            effort_by_finger = np.bincount(_FINGER_OF_POS, weights=pos_mass, minlength=NUM_FINGERS) / total_freq * 100.0
            effort_by_half = np.bincount(_HALF_OF_POS, weights=pos_mass, minlength=2) / total_freq * 100.0

        bigrams = BigramStats()
        if len(self._bigram_freq):
            p1 = sym_pos[self._bigram_first]
            p2 = sym_pos[self._bigram_second]
            matched = (p1 >= 0) & (p2 >= 0)
            pair_mass = np.bincount(
                p1[matched] * NUM_POSITIONS + p2[matched],
                weights=self._bigram_freq[matched],
                minlength=NUM_POSITIONS * NUM_POSITIONS,
            )
            total_bigram = pair_mass.sum()
            if total_bigram > 0:
                percents = (pair_mass @ self._category_matrix) / total_bigram * 100.0
                values = {name: float(v) for name, v in zip(CATEGORY_NAMES, percents)}
                values['tib'] = float(pair_mass @ self._override_vector) / total_bigram * 100.0
                bigrams = BigramStats(**values)

        hdi = float(abs(effort_by_half[0] - effort_by_half[1]))
        fdi = compute_fdi(effort_by_finger, self.weights)
        mep = compute_mep(effort_by_finger, effort_by_row, self.cost_model)
        bigram_score = bigrams.weighted_sum(self.weights)
        weighted_score = (
            self.weights.effort_norm * total_effort
            + bigram_score
            + self.weights.hdi * hdi
            + self.weights.fdi * fdi
            + mep
        )

        return Analysis(
            layout_name=layout.name,
            total_effort=float(total_effort),
            effort_by_row=tuple(float(v) for v in effort_by_row),
            effort_by_finger=tuple(float(v) for v in effort_by_finger),
            effort_by_half=(float(effort_by_half[0]), float(effort_by_half[1])),
            bigrams=bigrams,
            hdi=hdi,
            fdi=float(fdi),
            mep=float(mep),
            bigram_score=float(bigram_score),
            weighted_score=float(weighted_score),
        )

    def score(self, layout: Layout) -> float:
        return self.analyze(layout).weighted_score

    def pair_classes(self, first: Position, second: Position) -> FrozenSet[str]:
        return self._pair_classes[first.index * NUM_POSITIONS + second.index]

    def rank(self, layouts: Iterable[Layout]) -> List[Tuple[Layout, Analysis]]:
        """Analyze layouts and sort ascending by weighted score (stable on ties)."""
        analyzed = [(layout, self.analyze(layout)) for layout in layouts]
        return sorted(analyzed, key=lambda item: item[1].weighted_score)

    def bigram_table(self, layout: Layout) -> pd.DataFrame:
        """
        Per-bigram breakdown for one layout.

        Returns:
            DataFrame with columns bigram, frequency (percent of matched bigram
            frequency), first, second (1-based position numbers), override and
            one boolean column per category, sorted by descending frequency
        """
        index = {}
        for pos, ch in layout.cells():
            if ch:
                index[ch.lower()] = pos

        override = self.cost_model.override_matrix()
        records = []
        for bigram, freq in self.corpus.bigrams.items():
            if len(bigram) != 2 or bigram[0] not in index or bigram[1] not in index:
                continue
            p1, p2 = index[bigram[0]], index[bigram[1]]
            classes = self.pair_classes(p1, p2)
            record = {
                'bigram': bigram,
                'frequency': freq,
                'first': p1.index + 1,
                'second': p2.index + 1,
                'override': float(override[p1.index, p2.index]),
            }
            record.update({name: name in classes for name in CATEGORY_NAMES})
            records.append(record)

        columns = ['bigram', 'frequency', 'first', 'second', 'override'] + list(CATEGORY_NAMES)
        table = pd.DataFrame(records, columns=columns)
        total = table['frequency'].sum()
        if total > 0:
            table['frequency'] = table['frequency'] / total * 100.0
        return table.sort_values(['frequency', 'bigram'], ascending=[False, True], kind='mergesort').reset_index(drop=True)

    def letter_bigrams(self, layout: Layout, letter: str) -> pd.DataFrame:
        """Bigrams of the table that start or end with one character."""
        letter = letter.lower()
        table = self.bigram_table(layout)
        mask = (table['bigram'].str[0] == letter) | (table['bigram'].str[1] == letter)
        return table[mask].reset_index(drop=True)


def analyze(layout: Layout, cost_model: CostModel, corpus: Corpus) -> Analysis:
    """Analyze one layout (convenience wrapper around LayoutScorer)."""
    return LayoutScorer(cost_model, corpus).analyze(layout)


def rank_layouts(layouts: Iterable[Layout], cost_model: CostModel,
                 corpus: Corpus) -> List[Tuple[Layout, Analysis]]:
    """Analyze and rank layouts by weighted score, best first."""
    return LayoutScorer(cost_model, corpus).rank(layouts)
