# shell_autocompleter/core/errors.py
"""
Exception hierarchy.

Strategy-level errors are contained where they are raised (ensemble, session,
heavy task wrapper). Only HistoryLoadError is allowed to reach the CLI exit path.
"""


class AutocompleterError(Exception):
    """Base class for every error raised by this package."""


class PredictionError(AutocompleterError):
    """A strategy could not produce predictions for this call."""


class BackendUnavailableError(PredictionError):
    """An inference backend is missing, failed to start or returned garbage."""


class MissingTableError(AutocompleterError):
    """The backing table/index for a lookup does not exist (treated as empty)."""


class EnsembleError(AutocompleterError):
    """The light ensemble could not produce a ranking; callers fall back to fuzzy."""


class HistoryLoadError(AutocompleterError):
    """A history file passed at startup could not be read."""
