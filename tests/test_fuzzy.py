# tests/test_fuzzy.py
# fuzzy subsequence matcher + the history baseline strategy

from shell_autocompleter.core.fuzzy import fuzzy_score, rank_corpus
from shell_autocompleter.models.fuzzy_history import FuzzyHistoryModel

CORPUS = ["git status", "git commit", "ls -la"]


def test_gst_ranks_git_status_first_and_drops_non_matches():
    ranked = [line for _, line in rank_corpus(CORPUS, "gst")]
    assert ranked[0] == "git status"
    assert "ls -la" not in ranked


def test_non_subsequence_is_none():
    assert fuzzy_score("ls -la", "gst") is None
    assert fuzzy_score("", "a") is None
    assert fuzzy_score("abc", "") is None
    assert fuzzy_score("ab", "abc") is None


def test_word_boundary_beats_inner_match():
    assert fuzzy_score("git status", "gs") > fuzzy_score("gxs", "gs")


def test_consecutive_beats_scattered():
    assert fuzzy_score("status", "sta") > fuzzy_score("sxtxa", "sta")


def test_smart_case():
    assert fuzzy_score("Git Status", "gs") is not None
    assert fuzzy_score("git status", "GS") is None
    assert fuzzy_score("Git Status", "GS") is not None


def test_rank_corpus_limit_and_blank_query():
    assert rank_corpus(CORPUS, "   ") == []
    assert len(rank_corpus(CORPUS, "g", limit=1)) == 1


def test_equal_scores_keep_corpus_order():
    ranked = rank_corpus(["make a", "make b"], "make")
    assert [line for _, line in ranked] == ["make a", "make b"]


def test_fuzzy_history_model():
    m = FuzzyHistoryModel(CORPUS)
    out = m.predict("gst")
    assert out[0].text == "git status"
    assert out[0].source == "history"
    assert m.weight() == 1.0
    assert m.predict("") == []
    assert m.predict("  ") == []
