# shell_autocompleter/models/freq.py
# Frequency strategy: full-text match over history, ranked by how often a command ran.

import logging
import sqlite3
from typing import List

from shell_autocompleter.core.errors import MissingTableError, PredictionError
from shell_autocompleter.core.protocols import StoreProtocol
from shell_autocompleter.core.suggestion import Suggestion

logger = logging.getLogger(__name__)

FREQ_LIMIT = 20

_SQL = """
    SELECT h.command, h.count
    FROM history_fts f
    JOIN history h ON f.rowid = h.id
    WHERE history_fts MATCH ?
    ORDER BY h.count DESC
    LIMIT ?
"""


def fts_query(text: str) -> str:
    """
    Turn typed text into an FTS5 query: each token quoted, last token as a prefix.
    `git st` -> `"git" "st"*`
    """
    tokens = [t.replace('"', '""') for t in text.split()]
    if not tokens:
        return ""
    quoted = [f'"{t}"' for t in tokens]
    quoted[-1] += "*"
    return " ".join(quoted)


class FreqModel:
    """Light strategy backed by the `history_fts` full-text index."""

    def __init__(self, store: StoreProtocol, weight: float = 0.5, limit: int = FREQ_LIMIT):
        self.store = store
        self._weight = float(weight)
        self.limit = limit

    def predict(self, text: str) -> List[Suggestion]:
        if not text or not text.strip():
            return []
        try:
            rows = self.store.query(_SQL, [fts_query(text), self.limit])
        except MissingTableError:
            return []
        except sqlite3.Error as e:
            raise PredictionError(f"frequency lookup failed: {e}") from e
        return [Suggestion.with_source(cmd, count, "freq") for cmd, count in rows]

    def weight(self) -> float:
        return self._weight

    def __repr__(self):
        return f"FreqModel(weight={self._weight})"
