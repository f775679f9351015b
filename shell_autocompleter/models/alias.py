# shell_autocompleter/models/alias.py
# Alias strategy: alias names whose name or expansion starts with the typed text.

import logging
import sqlite3
from typing import List

from shell_autocompleter.core.errors import MissingTableError, PredictionError
from shell_autocompleter.core.protocols import AliasEntry, AliasStoreProtocol, StoreProtocol
from shell_autocompleter.core.suggestion import Suggestion
from shell_autocompleter.models.prefix import like_prefix

logger = logging.getLogger(__name__)

ALIAS_LIMIT = 10


class SqlAliasStore:
    """Alias lookups against the `aliases` table, newest definitions first."""

    def __init__(self, store: StoreProtocol, limit: int = ALIAS_LIMIT):
        self.store = store
        self.limit = limit

    def query_aliases(self, text: str) -> List[AliasEntry]:
        like = like_prefix(text)
        try:
            rows = self.store.query(
                """
                SELECT name, cmd
                FROM aliases
                WHERE name LIKE ? ESCAPE '\\' OR cmd LIKE ? ESCAPE '\\'
                ORDER BY updated_at DESC
                LIMIT ?
                """,
                [like, like, self.limit],
            )
        except MissingTableError:
            return []
        except sqlite3.Error as e:
            raise PredictionError(f"alias lookup failed: {e}") from e
        return [AliasEntry(name=name, cmd=cmd) for name, cmd in rows]


class AliasModel:
    """Light strategy: every matching alias scores 1.0."""

    def __init__(self, alias_store: AliasStoreProtocol, weight: float = 0.8):
        self.alias_store = alias_store
        self._weight = float(weight)

    @classmethod
    def with_sql_store(cls, store: StoreProtocol) -> "AliasModel":
        return cls(SqlAliasStore(store))

    def predict(self, text: str) -> List[Suggestion]:
        if not text or not text.strip():
            return []
        entries = self.alias_store.query_aliases(text)
        return [Suggestion.with_source(e["name"], 1.0, "alias") for e in entries]

    def weight(self) -> float:
        return self._weight

    def __repr__(self):
        return f"AliasModel(weight={self._weight})"
