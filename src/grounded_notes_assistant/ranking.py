"""Hybrid note ranking: vector, lexical, tag and recency signals.

The embedding is coarse, so the vector score is multiplied by
``RankingWeights.vector_weight`` to keep it from being drowned by lexical
bonuses on frequent terms.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Set

from .config import AppConfig, RankingWeights
from .index import NoteIndex
from .models import Note, TagTaxonomy
from .text import normalize_words, query_terms, within_one_edit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreBreakdown:
    vector: float = 0.0
    lexical: float = 0.0
    tag: float = 0.0
    recency: float = 0.0


@dataclass
class RankedNote:
    note: Note
    score: float
    breakdown: ScoreBreakdown


def composite_score(breakdown: ScoreBreakdown, weights: RankingWeights) -> float:
    return breakdown.vector * weights.vector_weight + breakdown.lexical + breakdown.tag + breakdown.recency


def relevant_tags(terms: Sequence[str], known_tags: Set[str]) -> Set[str]:
    matched: Set[str] = set()
    for term in terms:
        for tag in known_tags:
            t = tag.lower()
            if t == term or t == term + "s" or t + "s" == term or within_one_edit(term, t):
                matched.add(tag)
    return matched


def recency_score(updated_at: datetime, now: datetime, weights: RankingWeights) -> float:
    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    hours = (now - updated_at).total_seconds() / 3600
    if hours < 24:
        return weights.recency_day
    if hours < 24 * 7:
        return weights.recency_week
    if hours < 24 * 30:
        return weights.recency_month
    return 0.0


def lexical_score(note: Note, terms: Sequence[str], queries: Sequence[str], weights: RankingWeights) -> float:
    score = 0.0
    title_tokens = normalize_words(note.title)
    content_lower = (note.content or "").lower()

    for term in terms:
        if any(t == term or within_one_edit(t, term) for t in title_tokens):
            score += weights.title_term
        count = len(re.findall(rf"\b{re.escape(term)}\b", content_lower))
        score += min(count, weights.body_term_cap) * weights.body_term

    # Title overlap: most of the title's words are query terms.
    significant = [t for t in title_tokens if len(t) > 2]
    if significant:
        matches = sum(
            1 for tt in significant if any(qt == tt or within_one_edit(qt, tt) for qt in terms)
        )
        if matches / len(significant) >= weights.title_overlap_ratio:
            score += weights.title_overlap_major
        elif matches >= 1:
            score += weights.title_overlap_minor

    if any(q.strip() and q.lower() in content_lower for q in queries):
        score += weights.exact_phrase

    return score


def rank_notes(
    notes: Sequence[Note],
    queries: Sequence[str],
    cfg: AppConfig,
    taxonomy: Optional[TagTaxonomy] = None,
    index: Optional[NoteIndex] = None,
    now: Optional[datetime] = None,
) -> List[RankedNote]:
    weights = cfg.ranking
    now = now or datetime.now(timezone.utc)
    taxonomy = taxonomy or TagTaxonomy.from_notes(notes)
    index = index or NoteIndex(notes, cfg.embedding_dim)

    terms = query_terms(queries)
    tags = relevant_tags(terms, taxonomy.known_tags)
    vector_scores = index.max_similarity(queries)

    ranked: List[RankedNote] = []
    for note, vector in zip(index.notes, vector_scores):
        tag = weights.tag_boost if tags and any(t in tags for t in note.display_tags()) else 0.0
        breakdown = ScoreBreakdown(
            vector=vector,
            lexical=lexical_score(note, terms, queries, weights),
            tag=tag,
            recency=recency_score(note.updated_at, now, weights),
        )
        ranked.append(RankedNote(note, composite_score(breakdown, weights), breakdown))

    ranked.sort(key=lambda r: (-r.score, r.note.id))
    if ranked:
        top = ranked[0]
        logger.debug("Top ranked note %r score=%.3f %s", top.note.title, top.score, top.breakdown)
    return ranked


__all__ = [
    "RankedNote",
    "ScoreBreakdown",
    "composite_score",
    "lexical_score",
    "rank_notes",
    "recency_score",
    "relevant_tags",
]
