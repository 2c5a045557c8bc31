from __future__ import annotations

import logging
from typing import List, Sequence

from pydantic import BaseModel, Field

from .config import AppConfig
from .errors import AssistantError
from .llm import CompletionClient
from .models import Note
from .ranking import RankedNote

logger = logging.getLogger(__name__)

RERANK_PROMPT = """You are the ORACLE reranker.
Goal: Select the notes that are MOST relevant to the user's query.
Input: A list of numbered notes.
Output: JSON { "relevant_ids": number[] } (indices of the best notes, in order of relevance).

CRITICAL:
- IGNORE bad titles. The "Content Snippet" is what matters.
- If a note looks like a messy thought but matches the topic, SELECT IT.
- Be strict: only select a note if it actually seems related."""


class RerankSelection(BaseModel):
    relevant_ids: List[int] = Field(default_factory=list)


def _candidate_listing(candidates: Sequence[Note], snippet_chars: int) -> str:
    return "\n\n".join(
        f"ID: {i}\nTitle: {n.title or 'NO_TITLE'}\nContent Snippet: {(n.content or '')[:snippet_chars]}..."
        for i, n in enumerate(candidates)
    )


def rerank_notes(
    query: str,
    candidates: Sequence[Note],
    client: CompletionClient,
    cfg: AppConfig,
) -> List[Note]:
    """Relevant subset of ``candidates`` in the judge's order; input unchanged on failure."""
    candidates = list(candidates)
    if not candidates:
        return candidates

    listing = _candidate_listing(candidates, cfg.retrieval.rerank_snippet_chars)
    messages = [
        {"role": "system", "content": RERANK_PROMPT},
        {"role": "user", "content": f"Query: {query}\n\nCandidates:\n{listing}"},
    ]
    try:
        selection = client.complete_structured(messages, RerankSelection, purpose="reranker")
    except AssistantError as e:
        logger.warning("Reranker failed, keeping ranker order: %s", e)
        return candidates

    chosen: List[Note] = []
    seen: set[int] = set()
    for idx in selection.relevant_ids:
        if 0 <= idx < len(candidates) and idx not in seen:
            seen.add(idx)
            chosen.append(candidates[idx])
    logger.debug("Reranker kept %d of %d candidates", len(chosen), len(candidates))
    return chosen


def promote_reranked(ranked: Sequence[RankedNote], selected: Sequence[Note]) -> List[RankedNote]:
    """Selected notes first in the judge's order, then everything else in ranker order."""
    by_id = {r.note.id: r for r in ranked}
    leaders = [by_id[n.id] for n in selected if n.id in by_id]
    leader_ids = {r.note.id for r in leaders}
    followers = [r for r in ranked if r.note.id not in leader_ids]
    return leaders + followers


__all__ = ["RerankSelection", "promote_reranked", "rerank_notes"]
