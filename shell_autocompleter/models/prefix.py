# shell_autocompleter/models/prefix.py
# Prefix strategy: history commands starting with the typed text, most used first.

import logging
import sqlite3
from typing import List

from shell_autocompleter.core.errors import MissingTableError, PredictionError
from shell_autocompleter.core.protocols import StoreProtocol
from shell_autocompleter.core.suggestion import Suggestion

logger = logging.getLogger(__name__)

PREFIX_LIMIT = 20

_SQL = """
    SELECT command, count
    FROM history
    WHERE command LIKE ? ESCAPE '\\'
    ORDER BY count DESC
    LIMIT ?
"""


def like_prefix(text: str) -> str:
    """LIKE pattern matching `text` literally at the start."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return escaped + "%"


class PrefixModel:
    """Light strategy backed by the `history` table."""

    def __init__(self, store: StoreProtocol, weight: float = 0.8, limit: int = PREFIX_LIMIT):
        self.store = store
        self._weight = float(weight)
        self.limit = limit

    def predict(self, text: str) -> List[Suggestion]:
        if not text or not text.strip():
            return []
        try:
            rows = self.store.query(_SQL, [like_prefix(text), self.limit])
        except MissingTableError:
            return []
        except sqlite3.Error as e:
            raise PredictionError(f"prefix lookup failed: {e}") from e
        logger.debug("prefix %r -> %d rows", text, len(rows))
        return [Suggestion.with_source(cmd, count, "prefix") for cmd, count in rows]

    def weight(self) -> float:
        return self._weight

    def __repr__(self):
        return f"PrefixModel(weight={self._weight})"
