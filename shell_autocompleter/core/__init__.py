"""
shell_autocompleter.core

The suggestion engine.
Contains:
 - the Suggestion record and the Predictor protocol every strategy implements
 - weighted-sum fusion of strategies (Ensemble, EnsembleBuilder)
 - the interactive orchestrator: debounce, heavy dispatch/cancel, merge (SuggestSession)
 - the fuzzy subsequence matcher and the lazy backend cell
"""

from .suggestion import Suggestion
from .errors import (
    AutocompleterError,
    BackendUnavailableError,
    EnsembleError,
    HistoryLoadError,
    MissingTableError,
    PredictionError,
)
from .protocols import Predictor, StoreProtocol
from .ensemble import Ensemble, EnsembleBuilder
from .lazy import LazyBackend
from .session import SuggestSession

__all__ = [
    "Suggestion",
    "AutocompleterError",
    "BackendUnavailableError",
    "EnsembleError",
    "HistoryLoadError",
    "MissingTableError",
    "PredictionError",
    "Predictor",
    "StoreProtocol",
    "Ensemble",
    "EnsembleBuilder",
    "LazyBackend",
    "SuggestSession",
]
