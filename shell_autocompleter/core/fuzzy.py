# fuzzy.py
# Subsequence fuzzy matcher for command lines (typo-tolerant "gst" -> "git status").
# Every query character must appear in the candidate in order; the best alignment wins.
# - matches at word boundaries (start, after space, '/', '-', ...) earn a bonus
# - consecutive matches earn a bonus, gaps cost a start + per-char penalty
# - smart case: lowercase queries match case-insensitively
# Single DP pass, O(len(text) * len(query)), no allocations beyond two rows.

from typing import Iterable, List, Optional, Tuple

SCORE_MATCH = 16
BONUS_BOUNDARY = 8
BONUS_FIRST_CHAR = 4
BONUS_CONSECUTIVE = 6
PENALTY_GAP_START = 3
PENALTY_GAP_EXTEND = 1

_BOUNDARY_CHARS = frozenset(" \t-_/.:=;|&")


def _boundary_bonus(text: str, j: int) -> int:
    if j == 0:
        return BONUS_BOUNDARY + BONUS_FIRST_CHAR
    if text[j - 1] in _BOUNDARY_CHARS:
        return BONUS_BOUNDARY
    return 0


def fuzzy_score(text: str, query: str) -> Optional[int]:
    """
    Score `text` against `query`.
    Returns None when `query` is not a subsequence of `text`, otherwise an int
    where larger is a better match.
    """
    if not query or not text:
        return None

    case_sensitive = any(c.isupper() for c in query)
    t = text if case_sensitive else text.lower()
    q = query if case_sensitive else query.lower()

    n, m = len(t), len(q)
    if m > n:
        return None

    # prev[j]: best score with q[i-1] matched exactly at t[j]
    prev: List[Optional[int]] = [None] * n
    for j in range(n):
        if t[j] == q[0]:
            prev[j] = SCORE_MATCH + _boundary_bonus(text, j)

    for i in range(1, m):
        qc = q[i]
        cur: List[Optional[int]] = [None] * n
        carry: Optional[int] = None  # best gapped predecessor for position j
        for j in range(1, n):
            # extend the gap by one char, or open a new gap from prev[j-2]
            if carry is not None:
                carry -= PENALTY_GAP_EXTEND
            if j >= 2 and prev[j - 2] is not None:
                opened = prev[j - 2] - PENALTY_GAP_START
                if carry is None or opened > carry:
                    carry = opened
            if t[j] != qc:
                continue
            best = carry
            if prev[j - 1] is not None:
                consecutive = prev[j - 1] + BONUS_CONSECUTIVE
                if best is None or consecutive > best:
                    best = consecutive
            if best is not None:
                cur[j] = best + SCORE_MATCH + _boundary_bonus(text, j)
        prev = cur

    scores = [s for s in prev if s is not None]
    if not scores:
        return None
    return max(scores)


def rank_corpus(corpus: Iterable[str], query: str, limit: Optional[int] = None) -> List[Tuple[int, str]]:
    """
    Return list of (score, line) for every corpus line matching `query`,
    sorted by score descending; equal scores keep corpus order.
    """
    if not query or not query.strip():
        return []
    scored: List[Tuple[int, str]] = []
    for line in corpus:
        s = fuzzy_score(line, query)
        if s is not None:
            scored.append((s, line))
    scored.sort(key=lambda item: -item[0])
    if limit is not None:
        return scored[:limit]
    return scored
