# shell_autocompleter/core/ensemble.py
"""
Ensemble - weighted-sum fusion of independent prediction strategies.

Design goals:
 - Two strategy sets: light (safe on every keystroke) and heavy (run out of band).
 - One aggregation rule for both: per-text weighted sum, first source wins.
 - A failing light strategy never hides the others; only a failure of the fuzzy
   baseline is escalated so the session can fall back to direct corpus matching.
 - Deterministic ordering: score desc, then text asc.

Includes:
 - predict_light(): hot path used by the interactive session
 - predict_all(): blocking path over light + heavy, used by batch search
 - heavy_models(): shared handles the session hands to background tasks
 - EnsembleBuilder: fluent construction used by the CLI/TUI wiring
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from shell_autocompleter.core.errors import EnsembleError, PredictionError
from shell_autocompleter.core.protocols import Predictor, weight_of
from shell_autocompleter.core.suggestion import Suggestion
from shell_autocompleter.utils.threaded_runner import run_parallel

logger = logging.getLogger(__name__)

# text -> (accumulated score, first source)
ScoreMap = Dict[str, Tuple[float, Optional[str]]]


def accumulate(score_map: ScoreMap, suggestions: Iterable[Suggestion], weight: float) -> None:
    """Add one strategy's weighted contribution into `score_map` in place."""
    for s in suggestions:
        total, source = score_map.get(s.text, (0.0, None))
        total += float(s.score) * weight
        if source is None:
            source = s.source
        score_map[s.text] = (total, source)


def rank_score_map(score_map: ScoreMap) -> List[Suggestion]:
    """Turn an accumulated score map into a ranked list (score desc, text asc)."""
    ranked = [Suggestion(text=t, score=sc, source=src) for t, (sc, src) in score_map.items()]
    ranked.sort(key=lambda s: (-s.score, s.text))
    return ranked


def _predict_or_empty(model: Predictor, text: str) -> List[Suggestion]:
    try:
        return model.predict(text)
    except PredictionError as e:
        logger.debug("strategy %s failed: %s", type(model).__name__, e)
        return []


class Ensemble:
    """
    Owns the light and heavy strategy sets.

    Strategy handles are read-only after construction; the ensemble only calls
    predict() and weight() on them and never looks at concrete types. The optional
    `baseline` is the fuzzy history model whose failure is escalated as EnsembleError.
    """

    def __init__(self,
                 light_models: Sequence[Predictor] = (),
                 heavy_models: Sequence[Predictor] = (),
                 baseline: Optional[Predictor] = None):
        self._light: Tuple[Predictor, ...] = tuple(light_models)
        self._heavy: Tuple[Predictor, ...] = tuple(heavy_models)
        self.baseline = baseline

    @property
    def light_models(self) -> Tuple[Predictor, ...]:
        return self._light

    def heavy_models(self) -> Tuple[Predictor, ...]:
        """Shared handles of the heavy strategies, for out-of-band execution."""
        return self._heavy

    # ---------------------------------
    # Hot path: light strategies only
    # ---------------------------------
    def predict_light(self, text: str) -> List[Suggestion]:
        """
        Aggregate light strategies. Never blocks on heavy ones.
        Raises EnsembleError only when the fuzzy baseline itself fails.
        """
        if not text or not text.strip():
            return []

        score_map: ScoreMap = {}
        for model in self._light:
            try:
                suggestions = model.predict(text)
            except PredictionError as e:
                if model is self.baseline:
                    raise EnsembleError(f"baseline strategy failed: {e}") from e
                logger.debug("light strategy %s failed: %s", type(model).__name__, e)
                continue
            accumulate(score_map, suggestions, weight_of(model))
        return rank_score_map(score_map)

    # ---------------------------------
    # Blocking path: light + heavy
    # ---------------------------------
    def predict_all(self, text: str) -> List[Suggestion]:
        """
        Aggregate every strategy. Strategies run concurrently, so this blocks for as
        long as the slowest one; contributions are still summed in iteration order.
        """
        if not text or not text.strip():
            return []
        models = self._light + self._heavy
        results = run_parallel([partial(_predict_or_empty, m, text) for m in models],
                               max_workers=len(models))
        score_map: ScoreMap = {}
        for model, suggestions in zip(models, results):
            accumulate(score_map, suggestions, weight_of(model))
        return rank_score_map(score_map)

    def __repr__(self) -> str:
        return f"Ensemble(light={len(self._light)}, heavy={len(self._heavy)})"


class EnsembleBuilder:
    """Fluent builder: EnsembleBuilder().with_light_model(m).with_heavy_model(h).build()"""

    def __init__(self):
        self._light: List[Predictor] = []
        self._heavy: List[Predictor] = []
        self._baseline: Optional[Predictor] = None

    def with_baseline(self, model: Predictor) -> "EnsembleBuilder":
        """Register the fuzzy baseline; it is also a light model."""
        self._baseline = model
        self._light.append(model)
        return self

    def with_light_model(self, model: Predictor) -> "EnsembleBuilder":
        self._light.append(model)
        return self

    def with_heavy_model(self, model: Predictor) -> "EnsembleBuilder":
        self._heavy.append(model)
        return self

    def build(self) -> Ensemble:
        return Ensemble(self._light, self._heavy, baseline=self._baseline)
