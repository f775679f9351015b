# tests/test_ensemble.py
# weighted-sum fusion in Ensemble

import pytest

from conftest import StubModel
from shell_autocompleter.core.ensemble import Ensemble, EnsembleBuilder, accumulate, rank_score_map
from shell_autocompleter.core.errors import EnsembleError
from shell_autocompleter.core.protocols import Predictor, weight_of
from shell_autocompleter.core.suggestion import Suggestion


def test_single_contributor_is_raw_times_weight():
    a = StubModel({"ls -la": 2.0}, weight=0.5, source="a")
    b = StubModel({"pwd": 3.0}, weight=0.8, source="b")
    out = Ensemble([a, b]).predict_light("x")

    scores = {s.text: s.score for s in out}
    assert scores["ls -la"] == pytest.approx(1.0)
    assert scores["pwd"] == pytest.approx(2.4)


def test_prefix_and_freq_sum_to_eight():
    prefix = StubModel({"git status": 5}, weight=0.8, source="prefix")
    freq = StubModel({"git status": 8}, weight=0.5, source="freq")
    out = Ensemble([prefix, freq]).predict_light("git st")

    assert len(out) == 1
    assert out[0].text == "git status"
    assert out[0].score == pytest.approx(8.0)
    # first contributor in iteration order keeps its source
    assert out[0].source == "prefix"


def test_source_follows_iteration_order():
    first = StubModel({"make": 1.0}, source="freq")
    second = StubModel({"make": 1.0}, source="prefix")
    out = Ensemble([first, second]).predict_light("ma")
    assert out[0].source == "freq"


def test_ranking_is_non_increasing():
    a = StubModel({"a": 1.0, "b": 7.0, "c": 3.0}, weight=1.0)
    b = StubModel({"c": 5.0, "d": 0.5}, weight=0.5)
    out = Ensemble([a, b]).predict_light("q")
    scores = [s.score for s in out]
    assert scores == sorted(scores, reverse=True)


def test_ties_broken_lexically():
    m = StubModel({"zeta": 1.0, "alpha": 1.0, "mid": 1.0})
    out = Ensemble([m]).predict_light("q")
    assert [s.text for s in out] == ["alpha", "mid", "zeta"]


@pytest.mark.parametrize("text", ["", "   ", "\t\n"])
def test_empty_input_calls_nothing(text):
    a = StubModel({"x": 1.0})
    heavy = StubModel({"y": 1.0})
    ens = Ensemble([a], [heavy])
    assert ens.predict_light(text) == []
    assert ens.predict_all(text) == []
    assert a.calls == []
    assert heavy.calls == []


def test_failing_light_strategy_is_skipped():
    ok = StubModel({"git push": 1.0}, source="prefix")
    broken = StubModel(fail=True)
    out = Ensemble([broken, ok]).predict_light("git")
    assert [s.text for s in out] == ["git push"]
    assert broken.calls == ["git"]


def test_failing_baseline_raises_ensemble_error():
    baseline = StubModel(fail=True)
    other = StubModel({"ls": 1.0})
    ens = EnsembleBuilder().with_baseline(baseline).with_light_model(other).build()
    with pytest.raises(EnsembleError):
        ens.predict_light("ls")


def test_light_path_never_calls_heavy():
    light = StubModel({"a": 1.0})
    heavy = StubModel({"b": 1.0})
    ens = Ensemble([light], [heavy])
    ens.predict_light("a")
    assert heavy.calls == []
    assert ens.heavy_models() == (heavy,)


def test_predict_all_includes_heavy_and_skips_failures():
    light = StubModel({"git status": 1.0}, weight=1.0, source="history")
    heavy = StubModel({"git status": 2.0, "git stash": 4.0}, weight=0.5, source="llm")
    broken = StubModel(fail=True)
    out = Ensemble([light], [heavy, broken]).predict_all("git st")

    scores = {s.text: s for s in out}
    assert scores["git status"].score == pytest.approx(2.0)
    assert scores["git status"].source == "history"
    assert scores["git stash"].score == pytest.approx(2.0)
    # equal scores: lexical order
    assert [s.text for s in out] == ["git stash", "git status"]


def test_builder_registers_baseline_as_light():
    base = StubModel({"a": 1.0})
    ens = EnsembleBuilder().with_baseline(base).with_heavy_model(StubModel()).build()
    assert ens.baseline is base
    assert base in ens.light_models
    assert len(ens.heavy_models()) == 1


def test_accumulate_and_rank_helpers():
    score_map = {}
    accumulate(score_map, [Suggestion("x", 2.0, "p")], 0.5)
    accumulate(score_map, [Suggestion("x", 1.0, "q"), Suggestion("y", 3.0, None)], 1.0)
    ranked = rank_score_map(score_map)
    assert ranked == [Suggestion("y", 3.0, None), Suggestion("x", 2.0, "p")]


def test_stub_satisfies_predictor_protocol():
    assert isinstance(StubModel(), Predictor)


def test_weight_of_defaults_to_one():
    class NoWeight:
        def predict(self, text):
            return []

    assert weight_of(NoWeight()) == 1.0
    assert weight_of(StubModel(weight=0.3)) == 0.3
