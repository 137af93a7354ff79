#!/usr/bin/env python3
"""
Simulated annealing search over split 3x10 layouts.

Each restart anneals a working layout by swapping characters between two
eligible positions (not locked and not empty), scoring the neighbor with a
LayoutScorer and applying the Metropolis acceptance rule. The temperature is
multiplied by the cooling rate every iteration. Restarts are independent
apart from the optional resume-from-best policy; their results are merged
into one ranked list.

Starting layouts come from one of four modes:

- SEEDED: a caller-provided layout; uppercase letters mark seed-specific locks
- RANDOM: the corpus's most frequent characters shuffled into the free cells
- KNOWN: the first known layout's alphabet shuffled into its unlocked cells
- UNCONSTRAINED: the known alphabet shuffled over the whole grid, no locks
"""

from dataclasses import dataclass
from enum import Enum
from multiprocessing import Pool
from typing import Callable, FrozenSet, List, Optional, Sequence, Set
import logging
import math
import random
import threading

from splitkb.cost_model import FREE, LOCKED, CostModel
from splitkb.data_utils import Corpus
from splitkb.ergo_scorer import Analysis, LayoutScorer
from splitkb.grid import NUM_POSITIONS, Position, all_positions
from splitkb.layout_utils import EMPTY, Layout, LayoutError

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 1000


class SearchMode(Enum):
    SEEDED = 'seeded'
    RANDOM = 'random'
    KNOWN = 'known'
    UNCONSTRAINED = 'unconstrained'


@dataclass(frozen=True)
class SearchParams:
    """
    Annealing schedule and restart policy.

    resume_from_best=None lets the search mode decide: seeded searches resume
    from the best layout so far, random modes start each restart fresh.
    """

    initial_temp: float = 1000.0
    cooling_rate: float = 0.995
    iterations: int = 10000
    restarts: int = 5
    random_seed: Optional[int] = None
    resume_from_best: Optional[bool] = None

    def __post_init__(self):
        if not math.isfinite(self.initial_temp) or self.initial_temp < 0:
            raise ValueError(f"initial_temp must be finite and >= 0, got {self.initial_temp}")
        if not 0 < self.cooling_rate <= 1:
            raise ValueError(f"cooling_rate must be in (0, 1], got {self.cooling_rate}")
        if self.iterations < 0:
            raise ValueError(f"iterations must be >= 0, got {self.iterations}")
        if self.restarts < 1:
            raise ValueError(f"restarts must be >= 1, got {self.restarts}")

    @classmethod
    def from_config(cls, config: dict) -> 'SearchParams':
        known = ('initial_temp', 'cooling_rate', 'iterations', 'restarts', 'random_seed', 'resume_from_best')
        return cls(**{key: config[key] for key in known if config.get(key) is not None})


@dataclass(frozen=True)
class SearchResult:
    layout: Layout
    analysis: Analysis

    @property
    def score(self) -> float:
        return self.analysis.weighted_score


def resolve_locks(cost_model: CostModel, seed: Optional[Layout] = None,
                  unconstrained: bool = False) -> FrozenSet[Position]:
    """
    Decide which positions the search may not touch.

    Uppercase letters in the seed replace the cost model's mask entirely;
    without any, every non-'.' mask cell is locked.
    """
    if unconstrained:
        return frozenset()
    if seed is not None and seed.has_uppercase():
        return frozenset(seed.uppercase_positions())
    return cost_model.locked_positions()


def eligible_positions(layout: Layout, locked: FrozenSet[Position]) -> List[Position]:
    return [pos for pos, ch in layout.cells() if ch and pos not in locked]


def random_neighbor(layout: Layout, eligible: Sequence[Position],
                    rng: random.Random) -> Optional[tuple]:
    """
    Pick two distinct eligible positions to swap.

    Returns:
        (first, second) positions, or None when fewer than two are eligible
    """
    if len(eligible) < 2:
        return None
    first, second = rng.sample(range(len(eligible)), 2)
    return eligible[first], eligible[second]


def accept_move(delta: float, temperature: float, rng: random.Random) -> bool:
    """Metropolis rule: always take improvements, worse moves with probability exp(-delta/T)."""
    if delta < 0:
        return True
    if temperature <= 0:
        return False
    return rng.random() < math.exp(-delta / temperature)


def random_corpus_layout(cost_model: CostModel, corpus: Corpus, rng: random.Random,
                         name: str = "random") -> Layout:
    """
    Fill free cells with the corpus's most frequent characters in random order.

    Cells locked to a character get that character; cells marked 'x' stay empty.
    """
    layout = Layout.empty(name)
    fixed = set()
    free = []
    for pos in all_positions():
        token = cost_model.mask_at(pos)
        if token == FREE:
            free.append(pos)
        elif token != LOCKED:
            layout[pos] = token.lower()
            fixed.add(token.lower())

    pool = corpus.top_characters(len(free), exclude=fixed)
    rng.shuffle(pool)
    for pos, char in zip(free, pool):
        layout[pos] = char
    return layout


def random_known_layout(cost_model: CostModel, known_layouts: Sequence[Layout],
                        rng: random.Random, name: str = "random") -> Layout:
    """
    Shuffle the first known layout's characters into its unlocked cells.

    Uppercase letters of the base layout lock their cells; otherwise the cost
    model's mask applies ('x' keeps the base character, a mask character
    replaces it).
    """
    if not known_layouts:
        raise LayoutError("Known-layout mode needs at least one existing layout")
    base = known_layouts[0]

    layout = base.lowercased()
    layout.name = name
    if base.has_uppercase():
        locked = base.uppercase_positions()
    else:
        locked = cost_model.locked_positions()
        for pos in locked:
            char = cost_model.fixed_character(pos)
            if char is not None:
                layout[pos] = char

    fixed = {layout[pos] for pos in locked if layout[pos]}
    open_cells = [pos for pos in all_positions() if pos not in locked]
    pool = sorted(base.alphabet() - fixed)
    rng.shuffle(pool)

    for pos in open_cells:
        layout[pos] = EMPTY
    for pos, char in zip(open_cells, pool):
        layout[pos] = char
    return layout


def random_unconstrained_layout(corpus: Corpus, known_layouts: Sequence[Layout],
                                rng: random.Random, name: str = "random") -> Layout:
    """
    Shuffle up to 30 characters over the whole grid, ignoring every lock.

    The alphabet is the union of the known layouts' characters, or the corpus
    alphabet when no layouts are known. When more than 30 are available the
    most frequent ones are used; when fewer, trailing cells stay empty.
    """
    if known_layouts:
        alphabet: Set[str] = set()
        for known in known_layouts:
            alphabet |= known.alphabet()
        chars = sorted(alphabet, key=lambda ch: (-corpus.character_frequency(ch), ch))
    else:
        chars = corpus.alphabet()

    pool = chars[:NUM_POSITIONS]
    rng.shuffle(pool)
    layout = Layout.empty(name)
    for pos, char in zip(all_positions(), pool):
        layout[pos] = char
    return layout


def anneal(scorer: LayoutScorer, start: Layout, locked: FrozenSet[Position],
           params: SearchParams, rng: random.Random,
           cancel: Optional[threading.Event] = None) -> SearchResult:
    """
    Run one annealing restart from a starting layout.

    The starting layout is not modified. Cancellation is checked between
    iterations, so the returned result is always fully scored.
    """
    current = start.copy()
    current_score = scorer.score(current)
    best = current.copy()
    best_score = current_score

    eligible = eligible_positions(current, locked)
    temperature = params.initial_temp

    for iteration in range(params.iterations):
        if cancel is not None and cancel.is_set():
            logger.debug(f"Cancelled after {iteration} iterations")
            break

        move = random_neighbor(current, eligible, rng)
        if move is not None:
            current.swap_positions(*move)
            candidate_score = scorer.score(current)
            if accept_move(candidate_score - current_score, temperature, rng):
                current_score = candidate_score
                if current_score < best_score:
                    best = current.copy()
                    best_score = current_score
            else:
                current.swap_positions(*move)

        temperature *= params.cooling_rate

        if (iteration + 1) % PROGRESS_INTERVAL == 0:
            logger.debug(
                f"Iteration {iteration + 1}/{params.iterations}: "
                f"T={temperature:.4f} current={current_score:.4f} best={best_score:.4f}"
            )

    return SearchResult(best, scorer.analyze(best))


def _prepare_seed(seed: Layout) -> Layout:
    seed.validate()
    prepared = seed.lowercased()
    prepared.validate()
    return prepared


def _starting_layout(mode: SearchMode, cost_model: CostModel, corpus: Corpus,
                     seed: Optional[Layout], known_layouts: Sequence[Layout],
                     rng: random.Random, restart: int) -> Layout:
    name = f"random_{restart}"
    if mode is SearchMode.SEEDED:
        return _prepare_seed(seed)
    if mode is SearchMode.KNOWN:
        return random_known_layout(cost_model, known_layouts, rng, name)
    if mode is SearchMode.UNCONSTRAINED:
        return random_unconstrained_layout(corpus, known_layouts, rng, name)
    return random_corpus_layout(cost_model, corpus, rng, name)


def _search_mode(seed: Optional[Layout], known_layouts: Sequence[Layout], unconstrained: bool) -> SearchMode:
    if unconstrained:
        return SearchMode.UNCONSTRAINED
    if seed is not None:
        return SearchMode.SEEDED
    if known_layouts:
        return SearchMode.KNOWN
    return SearchMode.RANDOM


def _restart_locks(mode: SearchMode, cost_model: CostModel, seed: Optional[Layout],
                   known_layouts: Sequence[Layout]) -> FrozenSet[Position]:
    if mode is SearchMode.UNCONSTRAINED:
        return frozenset()
    if mode is SearchMode.SEEDED:
        return resolve_locks(cost_model, seed)
    if mode is SearchMode.KNOWN:
        return resolve_locks(cost_model, known_layouts[0])
    return cost_model.locked_positions()


def _run_restart(args) -> SearchResult:
    """Worker entry point for parallel restarts (must stay importable at module level)."""
    cost_model, corpus, start, locked, params, restart_seed = args
    scorer = LayoutScorer(cost_model, corpus)
    return anneal(scorer, start, locked, params, random.Random(restart_seed))


def rank_results(results: Sequence[SearchResult], num_best: int) -> List[SearchResult]:
    """Sort ascending by score (stable on ties) and keep num_best (all when <= 0)."""
    ranked = sorted(results, key=lambda result: result.score)
    return ranked if num_best <= 0 else ranked[:num_best]


def search(cost_model: CostModel, corpus: Corpus, seed: Optional[Layout] = None,
           params: SearchParams = SearchParams(), num_best: int = 1,
           known_layouts: Sequence[Layout] = (), unconstrained: bool = False,
           workers: int = 1, cancel: Optional[threading.Event] = None,
           scorer: Optional[LayoutScorer] = None) -> List[SearchResult]:
    """
    Anneal from a seed or from random layouts and return the best results.

    Args:
        cost_model: Validated cost model
        corpus: Frequency corpus
        seed: Starting layout; uppercase letters lock their cells
        params: Annealing schedule and restart policy
        num_best: Number of results to return (<= 0 for all restarts)
        known_layouts: Existing layouts; the first one seeds random restarts
        unconstrained: Ignore all locks and shuffle over the whole grid
        workers: Processes for independent restarts (only without resume-from-best)
        cancel: Event checked between iterations; a set event ends the search early
        scorer: Prebuilt scorer for cost_model and corpus

    Returns:
        SearchResults ranked ascending by score

    Raises:
        LayoutError: If the seed places a character twice or no start layout can be built
    """
    mode = _search_mode(seed, known_layouts, unconstrained)
    resume = params.resume_from_best
    if resume is None:
        resume = mode is SearchMode.SEEDED

    if mode is SearchMode.SEEDED:
        _prepare_seed(seed)
    locks = _restart_locks(mode, cost_model, seed, known_layouts)

    master = random.Random(params.random_seed)
    restart_seeds = [master.randrange(2 ** 32) for _ in range(params.restarts)]

    logger.info(
        f"Starting {mode.value} search: {params.restarts} restarts x {params.iterations} iterations "
        f"(T0={params.initial_temp}, cooling={params.cooling_rate}, resume_from_best={resume})"
    )

    if workers > 1 and not resume and cancel is None:
        starts = []
        for restart, restart_seed in enumerate(restart_seeds):
            rng = random.Random(restart_seed)
            starts.append(_starting_layout(mode, cost_model, corpus, seed, known_layouts, rng, restart))
        jobs = [
            (cost_model, corpus, start, locks, params, restart_seed + 1)
            for start, restart_seed in zip(starts, restart_seeds)
        ]
        with Pool(processes=workers) as pool:
            results = pool.map(_run_restart, jobs)
        for restart, result in enumerate(results):
            logger.info(f"Restart {restart + 1}/{params.restarts}: score {result.score:.4f}")
        return rank_results(results, num_best)

    if workers > 1:
        logger.warning("Parallel restarts need independent restarts without cancellation; running sequentially")

    if scorer is None:
        scorer = LayoutScorer(cost_model, corpus)

    results: List[SearchResult] = []
    best: Optional[SearchResult] = None
    for restart, restart_seed in enumerate(restart_seeds):
        if cancel is not None and cancel.is_set():
            break

        rng = random.Random(restart_seed)
        if resume and best is not None:
            start = best.layout
        else:
            start = _starting_layout(mode, cost_model, corpus, seed, known_layouts, rng, restart)

        result = anneal(scorer, start, locks, params, random.Random(restart_seed + 1), cancel)
        results.append(result)
        if best is None or result.score < best.score:
            best = result
        logger.info(f"Restart {restart + 1}/{params.restarts}: score {result.score:.4f} (best {best.score:.4f})")

    return rank_results(results, num_best)


def is_known_layout(layout: Layout, known_layouts: Sequence[Layout]) -> bool:
    """True when an existing layout has the same name and the same 30 cells."""
    return any(layout == known for known in known_layouts)


def continuous_search(cost_model: CostModel, corpus: Corpus, cancel: threading.Event,
                      seed: Optional[Layout] = None, params: SearchParams = SearchParams(),
                      num_best: int = 1, known_layouts: Sequence[Layout] = (),
                      unconstrained: bool = False,
                      on_round: Optional[Callable[[int, List[SearchResult]], None]] = None,
                      on_new_best: Optional[Callable[[SearchResult], None]] = None,
                      max_rounds: Optional[int] = None) -> List[SearchResult]:
    """
    Repeat search rounds until cancelled and return the best-so-far results.

    Each round is a full search() with a fresh random seed. The best list is
    replaced whenever a round finds a layout that is not one of the known
    layouts and beats the current best. on_new_best receives the new best
    result (callers persist it there); on_round receives the round number
    and the current best list after every round.
    """
    scorer = LayoutScorer(cost_model, corpus)
    master = random.Random(params.random_seed)
    best: List[SearchResult] = []
    rounds = 0

    while not cancel.is_set() and (max_rounds is None or rounds < max_rounds):
        rounds += 1
        round_params = SearchParams(
            initial_temp=params.initial_temp,
            cooling_rate=params.cooling_rate,
            iterations=params.iterations,
            restarts=params.restarts,
            random_seed=master.randrange(2 ** 32),
            resume_from_best=params.resume_from_best,
        )
        results = search(cost_model, corpus, seed=seed, params=round_params, num_best=num_best,
                         known_layouts=known_layouts, unconstrained=unconstrained,
                         cancel=cancel, scorer=scorer)

        fresh = [result for result in results if not is_known_layout(result.layout, known_layouts)]
        if fresh and (not best or fresh[0].score < best[0].score):
            best = results
            logger.info(f"Round {rounds}: new best score {fresh[0].score:.4f}")
            if on_new_best is not None:
                on_new_best(fresh[0])

        if on_round is not None:
            on_round(rounds, best)

    logger.info(f"Continuous search stopped after {rounds} rounds")
    return best
