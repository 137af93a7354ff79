#!/usr/bin/env python3
"""
Biomechanical cost model for the split 3x10 grid.

The cost model bundles everything the scoring engine needs besides the
layout and the frequency corpus:

- effort matrix: cost of pressing each of the 30 positions
- fixed-position mask: '.' free, 'x' locked (keeps its current content),
  any other character locks the cell to that character
- per-finger and per-row maximum loads (percent) with linear penalty rates
- term weights for the weighted score
- optional per-position-pair coefficients for singling out transitions

A CostModel is validated once at construction; a malformed model raises
CostModelError so that problems surface before any search starts.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging
import math

import numpy as np

from splitkb.config_loader import load_section
from splitkb.grid import COLS, NUM_FINGERS, NUM_POSITIONS, ROWS, Position, all_positions

logger = logging.getLogger(__name__)

FREE = '.'
LOCKED = 'x'

# Ring and middle fingers (0-based) on both hands
DEFAULT_STRETCH_FINGERS = frozenset({1, 2, 5, 6})

BIGRAM_TERMS: Tuple[str, ...] = (
    'shb', 'sfb', 'hvb', 'fvb', 'hdb', 'fdb', 'hfb',
    'hsb', 'fsb', 'lsb', 'srb', 'afi', 'afo',
)
STRICT_FLAGS = ('hsb_strict', 'fsb_strict', 'lsb_strict')

WEIGHT_ALIASES = {
    'total_effort_norm': 'effort_norm',
    'hsb_strict_mode': 'hsb_strict',
    'fsb_strict_mode': 'fsb_strict',
    'lsb_strict_mode': 'lsb_strict',
}


class CostModelError(ValueError):
    """Raised when a cost model is malformed."""


@dataclass(frozen=True)
class Weights:
    """Scalar weights of the weighted score, one per term."""

    effort_norm: float = 0.01

    shb: float = 0.1
    sfb: float = 0.1
    hvb: float = 0.1
    fvb: float = 0.1
    hdb: float = 0.1
    fdb: float = 0.1
    hfb: float = 0.1
    hsb: float = 0.1
    fsb: float = 0.1
    lsb: float = 0.1
    srb: float = 0.1
    afi: float = 0.1
    afo: float = 0.1

    hdi: float = 0.1
    fdi: float = 0.1
    d18: float = 0.1
    d27: float = 0.1
    d36: float = 0.1
    d45: float = 0.1

    hsb_strict: bool = True
    fsb_strict: bool = True
    lsb_strict: bool = False

    def bigram_weight(self, term: str) -> float:
        return getattr(self, term)

    def finger_pair_weights(self) -> Tuple[float, float, float, float]:
        return (self.d18, self.d27, self.d36, self.d45)

    def updated(self, **overrides: Any) -> 'Weights':
        """Return a copy with overrides applied (names are normalized)."""
        normalized = {}
        for name, value in overrides.items():
            field_name = normalize_weight_name(name)
            normalized[field_name] = _coerce_weight(field_name, value)
        return replace(self, **normalized)

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]]) -> 'Weights':
        """
        Build weights from a config mapping, defaults for missing keys.

        Raises:
            CostModelError: If a key names no known weight or a value is not numeric
        """
        return cls().updated(**dict(mapping or {}))

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


_WEIGHT_FIELDS = {f.name for f in fields(Weights)}


def normalize_weight_name(name: str) -> str:
    """
    Map a user-facing weight name ('SFB', 'total_effort_norm', ...) to its field.

    Raises:
        CostModelError: If the name is unknown
    """
    key = name.strip().lower()
    key = WEIGHT_ALIASES.get(key, key)
    if key not in _WEIGHT_FIELDS:
        raise CostModelError(f"Unknown weight '{name}'. Known weights: {sorted(_WEIGHT_FIELDS)}")
    return key


def _coerce_weight(field_name: str, value: Any) -> Any:
    if field_name in STRICT_FLAGS:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in ('1', 'true', 'yes', 'on'):
                return True
            if lowered in ('0', 'false', 'no', 'off'):
                return False
            raise CostModelError(f"Invalid value for {field_name}: '{value}'")
        return bool(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise CostModelError(f"Weight {field_name} must be numeric, got '{value}'")
    if not math.isfinite(number):
        raise CostModelError(f"Weight {field_name} must be finite, got {value}")
    return number


def parse_weight_override(text: str) -> Tuple[str, Any]:
    """
    Parse a 'NAME=value' override.

    Raises:
        CostModelError: If the text is malformed or the name unknown
    """
    if '=' not in text:
        raise CostModelError(f"Weight override must look like NAME=value, got '{text}'")
    name, value = text.split('=', 1)
    field_name = normalize_weight_name(name)
    return field_name, _coerce_weight(field_name, value.strip())


@dataclass(frozen=True)
class BigramOverride:
    """Extra coefficient for the ordered transition first -> second (0-based positions)."""

    first: int
    second: int
    coeff: float


def _float_vector(values: Optional[Sequence[float]], length: int, label: str) -> Tuple[float, ...]:
    if values is None:
        return (0.0,) * length
    if len(values) != length:
        raise CostModelError(f"{label} must have {length} values, got {len(values)}")
    try:
        return tuple(float(v) for v in values)
    except (TypeError, ValueError) as e:
        raise CostModelError(f"{label} must be numeric: {e}")


def _parse_mask(mask: Optional[Sequence[Any]]) -> Tuple[Tuple[str, ...], ...]:
    if mask is None:
        return tuple((FREE,) * COLS for _ in range(ROWS))
    if len(mask) != ROWS:
        raise CostModelError(f"Fixed-position mask must have {ROWS} rows, got {len(mask)}")

    rows = []
    for r, row in enumerate(mask):
        tokens = row.split() if isinstance(row, str) else [str(t) for t in row]
        if len(tokens) != COLS:
            raise CostModelError(f"Fixed-position row {r + 1} must have {COLS} entries, got {len(tokens)}")
        for c, token in enumerate(tokens):
            if len(token) != 1:
                raise CostModelError(f"Fixed-position [{r}][{c}] must be '.', 'x' or one character, got '{token}'")
        rows.append(tuple(tokens))
    return tuple(rows)


@dataclass(eq=False)
class CostModel:
    """
    Validated cost model.

    The effort matrix is stored as a read-only float numpy array of shape (3, 10).
    """

    effort: Any
    fixed_positions: Any = None
    finger_max: Any = None
    finger_penalty: Any = None
    row_max: Any = None
    row_penalty: Any = None
    weights: Weights = field(default_factory=Weights)
    overrides: Tuple[BigramOverride, ...] = ()
    stretch_fingers: FrozenSet[int] = DEFAULT_STRETCH_FINGERS

    def __post_init__(self):
        try:
            effort = np.array(self.effort, dtype=float)
        except (TypeError, ValueError) as e:
            raise CostModelError(f"Effort matrix must be numeric: {e}")
        if effort.shape != (ROWS, COLS):
            raise CostModelError(f"Effort matrix must be {ROWS}x{COLS}, got shape {effort.shape}")
        if not np.all(np.isfinite(effort)) or np.any(effort < 0):
            raise CostModelError("Effort matrix values must be finite and non-negative")
        effort.setflags(write=False)
        self.effort = effort

        self.fixed_positions = _parse_mask(self.fixed_positions)
        self.finger_max = _float_vector(self.finger_max, NUM_FINGERS, "finger_max")
        self.finger_penalty = _float_vector(self.finger_penalty, NUM_FINGERS, "finger_penalty")
        self.row_max = _float_vector(self.row_max, ROWS, "row_max")
        self.row_penalty = _float_vector(self.row_penalty, ROWS, "row_penalty")

        if not isinstance(self.weights, Weights):
            raise CostModelError(f"weights must be a Weights instance, got {type(self.weights).__name__}")

        overrides = tuple(self.overrides)
        for override in overrides:
            for pos in (override.first, override.second):
                if not 0 <= pos < NUM_POSITIONS:
                    raise CostModelError(f"Bigram override position out of range 0-{NUM_POSITIONS - 1}: {pos}")
        self.overrides = overrides

        stretch = frozenset(int(f) for f in self.stretch_fingers)
        if any(not 0 <= f < NUM_FINGERS for f in stretch):
            raise CostModelError(f"Stretch fingers must be in 0-{NUM_FINGERS - 1}: {sorted(stretch)}")
        self.stretch_fingers = stretch

        free = len(self.free_positions())
        if free < 2:
            raise CostModelError(f"Fixed-position mask leaves {free} unlocked positions, need at least 2")

    @property
    def uniform_effort(self) -> float:
        """Mean cost over all 30 positions (effort of frequency-blind placement)."""
        return float(self.effort.mean())

    def mask_at(self, pos: Position) -> str:
        return self.fixed_positions[pos.row][pos.col]

    def free_positions(self) -> List[Position]:
        return [pos for pos in all_positions() if self.mask_at(pos) == FREE]

    def locked_positions(self) -> FrozenSet[Position]:
        return frozenset(pos for pos in all_positions() if self.mask_at(pos) != FREE)

    def fixed_character(self, pos: Position) -> Optional[str]:
        """Lowercased character a cell is locked to, or None."""
        token = self.mask_at(pos)
        if token in (FREE, LOCKED):
            return None
        return token.lower()

    def override_matrix(self) -> np.ndarray:
        """30x30 matrix of summed override coefficients indexed by (first, second)."""
        matrix = np.zeros((NUM_POSITIONS, NUM_POSITIONS))
        for override in self.overrides:
            matrix[override.first, override.second] += override.coeff
        return matrix

    def with_weights(self, **overrides: Any) -> 'CostModel':
        """Return a copy of the model with some weights replaced."""
        return replace(self, weights=self.weights.updated(**overrides))

    @classmethod
    def uniform(cls, value: float = 1.0, **kwargs: Any) -> 'CostModel':
        """Model where every position costs the same."""
        return cls(effort=np.full((ROWS, COLS), value), **kwargs)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'CostModel':
        """
        Build a cost model from a `cost_model` configuration section.

        Raises:
            CostModelError: If the section is incomplete or malformed
        """
        if 'effort' not in config:
            raise CostModelError("Cost model configuration is missing 'effort'")

        return cls(
            effort=config['effort'],
            fixed_positions=config.get('fixed_positions'),
            finger_max=config.get('finger_max'),
            finger_penalty=config.get('finger_penalty'),
            row_max=config.get('row_max'),
            row_penalty=config.get('row_penalty'),
            weights=Weights.from_mapping(config.get('weights')),
            overrides=parse_bigram_overrides(config.get('bigram_overrides')),
            stretch_fingers=config.get('stretch_fingers', DEFAULT_STRETCH_FINGERS),
        )


def parse_bigram_overrides(entries: Optional[Iterable[Mapping[str, Any]]]) -> Tuple[BigramOverride, ...]:
    """
    Parse override entries of the form {coeff: 0.5, pairs: ["1-2", "12-13"]}.

    Pair positions are 1-based (1..30, row-major).

    Raises:
        CostModelError: If an entry is malformed
    """
    overrides = []
    for entry in entries or ():
        if 'coeff' not in entry or 'pairs' not in entry:
            raise CostModelError(f"Bigram override needs 'coeff' and 'pairs': {entry}")
        try:
            coeff = float(entry['coeff'])
        except (TypeError, ValueError):
            raise CostModelError(f"Bigram override coefficient must be numeric: {entry['coeff']}")

        for pair in entry['pairs']:
            parts = pair.split('-') if isinstance(pair, str) else list(pair)
            if len(parts) != 2:
                raise CostModelError(f"Bigram override pair must be 'p1-p2': {pair}")
            try:
                first, second = (int(p) for p in parts)
            except (TypeError, ValueError):
                raise CostModelError(f"Bigram override positions must be integers: {pair}")
            if not (1 <= first <= NUM_POSITIONS and 1 <= second <= NUM_POSITIONS):
                raise CostModelError(f"Bigram override positions must be 1-{NUM_POSITIONS}: {pair}")
            overrides.append(BigramOverride(first - 1, second - 1, coeff))
    return tuple(overrides)


def load_cost_model(config_path: str = "config.yaml") -> CostModel:
    """Load the `cost_model` section of a YAML configuration file."""
    model = CostModel.from_config(load_section('cost_model', config_path))
    logger.info(
        f"Loaded cost model from {config_path}: {len(model.free_positions())} free positions, "
        f"{len(model.overrides)} bigram overrides"
    )
    return model
