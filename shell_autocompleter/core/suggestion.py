# shell_autocompleter/core/suggestion.py
# Suggestion record shared by every strategy, the ensemble and the session.

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class Suggestion:
    """
    A single candidate command.
     - text: the full command line being suggested
     - score: strategy-local before aggregation, weighted sum after
     - source: which strategy produced it (display/diagnostics only)
    """
    text: str
    score: float
    source: Optional[str] = None

    @classmethod
    def with_source(cls, text: str, score: float, source: str) -> "Suggestion":
        return cls(text=text, score=float(score), source=source)

    def rescored(self, score: float) -> "Suggestion":
        """Return a copy carrying a new score; suggestions are never mutated."""
        return replace(self, score=float(score))
