from __future__ import annotations

import re
from typing import Iterable, List

STOP_WORDS = frozenset(
    {
        "a", "an", "the", "in", "on", "at", "to", "for", "of", "with", "by", "and", "or",
        "is", "are", "was", "were", "be", "tell", "me", "about", "show", "list", "what",
        "where", "when", "who", "how",
    }
)

_QUERY_PUNCT_RE = re.compile(r"[?.,!]")


def levenshtein(a: str, b: str, max_dist: int | None = None) -> int:
    """Edit distance; with ``max_dist`` it stops early and returns ``max_dist + 1``."""
    a = a or ""
    b = b or ""
    if a == b:
        return 0
    if max_dist is not None and abs(len(a) - len(b)) > max_dist:
        return max_dist + 1
    if not a or not b:
        return len(a) or len(b)

    if len(a) > len(b):
        a, b = b, a

    prev = list(range(len(a) + 1))
    for i, ch_b in enumerate(b, start=1):
        cur = [i]
        min_row = i
        for j, ch_a in enumerate(a, start=1):
            cost = 0 if ch_a == ch_b else 1
            val = min(prev[j] + 1, cur[j - 1] + 1, prev[j - 1] + cost)
            cur.append(val)
            min_row = min(min_row, val)
        prev = cur
        if max_dist is not None and min_row > max_dist:
            return max_dist + 1
    return prev[-1]


def within_one_edit(a: str, b: str) -> bool:
    return levenshtein(a, b, max_dist=1) <= 1


def normalize_words(text: str) -> List[str]:
    return _QUERY_PUNCT_RE.sub("", (text or "").lower()).split()


def query_terms(queries: Iterable[str]) -> List[str]:
    """Distinct significant terms across all query variants, in first-seen order."""
    terms: dict[str, None] = {}
    for query in queries:
        for word in normalize_words(query):
            if len(word) > 2 and word not in STOP_WORDS:
                terms.setdefault(word, None)
    return list(terms)


__all__ = ["STOP_WORDS", "levenshtein", "normalize_words", "query_terms", "within_one_edit"]
