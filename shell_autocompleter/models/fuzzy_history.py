# shell_autocompleter/models/fuzzy_history.py
# Baseline strategy: fuzzy subsequence match against the in-memory history corpus.
# Also the session's fallback when the light ensemble fails.

from typing import List, Optional, Sequence

from shell_autocompleter.core.fuzzy import rank_corpus
from shell_autocompleter.core.suggestion import Suggestion

SOURCE = "history"


class FuzzyHistoryModel:
    """
    Scores every corpus line against the typed text; non-matching lines are left out.
    A list corpus is kept by reference, so lines the session adds are matched too.
    """

    def __init__(self, corpus: Sequence[str], weight: float = 1.0, limit: Optional[int] = None):
        self.corpus = corpus if isinstance(corpus, list) else list(corpus)
        self._weight = float(weight)
        self.limit = limit

    def predict(self, text: str) -> List[Suggestion]:
        if not text or not text.strip():
            return []
        return [Suggestion.with_source(line, score, SOURCE)
                for score, line in rank_corpus(self.corpus, text, self.limit)]

    def weight(self) -> float:
        return self._weight

    def __repr__(self):
        return f"FuzzyHistoryModel(lines={len(self.corpus)}, weight={self._weight})"
