# shell_autocompleter/core/protocols.py
"""
Protocol interfaces for the core components of the shell autocompleter.

These Protocols are intentionally small: they describe only the methods the Ensemble,
SuggestSession and the strategies rely on. Depending on Protocols rather than concrete
classes keeps every strategy swappable with a stub in tests.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence

from typing_extensions import Protocol, TypedDict, runtime_checkable

from shell_autocompleter.core.suggestion import Suggestion


# Typed structures used across components ------------------------------------

class AliasEntry(TypedDict):
    """One `alias name='cmd'` definition, as stored in the `aliases` table."""
    name: str
    cmd: str


Row = Sequence[Any]


# Protocols ------------------------------------------------------------------

@runtime_checkable
class Predictor(Protocol):
    """
    Prediction capability implemented by every strategy.

    predict() returns an empty list for empty/whitespace input without side effects.
    It may raise PredictionError; callers never treat that as fatal.
    weight() is constant for the lifetime of the instance.
    """

    def predict(self, text: str) -> List[Suggestion]:
        ...

    def weight(self) -> float:
        ...


@runtime_checkable
class StoreProtocol(Protocol):
    """Query/execute contract of the persistent store collaborator."""

    def query(self, sql: str, params: Iterable[Any] = ()) -> List[Row]:
        ...

    def execute(self, sql: str, params: Iterable[Any] = ()) -> None:
        ...

    def executemany(self, sql: str, rows: Iterable[Iterable[Any]]) -> None:
        ...


class AliasStoreProtocol(Protocol):
    """Lookup of alias definitions by name-or-expansion prefix."""

    def query_aliases(self, text: str) -> List[AliasEntry]:
        ...


class EmbedderProtocol(Protocol):
    """External embedding generator: text in, fixed-length vector out."""

    def embed(self, text: str) -> List[float]:
        ...


class GeneratorProtocol(Protocol):
    """External text generator: one short completion per (prompt, seed)."""

    def generate(self, prompt: str, seed: int) -> str:
        ...


def weight_of(model: Any) -> float:
    """Weight of a strategy, falling back to 1.0 when it has no opinion."""
    fn = getattr(model, "weight", None)
    if not callable(fn):
        return 1.0
    value: Optional[float] = fn()
    return 1.0 if value is None else float(value)
