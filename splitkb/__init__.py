# splitkb/__init__.py
"""
Split Keyboard Layout Analyzer

Scoring engine and simulated-annealing optimizer for split 3x10 layouts.
"""

__version__ = "2.0.0"

# Import main classes for easy access
from .layout_utils import Layout, LayoutCollection, LayoutError, load_layouts, save_layout
from .cost_model import CostModel, CostModelError, Weights, load_cost_model
from .data_utils import Corpus, CorpusError, load_corpus
from .ergo_scorer import Analysis, BigramStats, LayoutScorer, analyze, rank_layouts
from .annealing import SearchMode, SearchParams, SearchResult, continuous_search, search

__all__ = [
    'Layout',
    'LayoutCollection',
    'LayoutError',
    'load_layouts',
    'save_layout',
    'CostModel',
    'CostModelError',
    'Weights',
    'load_cost_model',
    'Corpus',
    'CorpusError',
    'load_corpus',
    'Analysis',
    'BigramStats',
    'LayoutScorer',
    'analyze',
    'rank_layouts',
    'SearchMode',
    'SearchParams',
    'SearchResult',
    'continuous_search',
    'search',
]
