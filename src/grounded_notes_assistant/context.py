from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Sequence

from .config import AppConfig
from .models import Note, TagTaxonomy

TRUNCATION_MARKER = "\n... (truncated)"


class Tier(str, Enum):
    DIRECT = "Direct Match"
    LINKED = "Linked Context"


@dataclass
class ContextItem:
    note: Note
    tier: Tier


@dataclass
class AssembledContext:
    text: str
    items: List[ContextItem] = field(default_factory=list)
    truncated: bool = False

    @property
    def notes(self) -> List[Note]:
        return [item.note for item in self.items]


def chain_linked_notes(tier1: Sequence[Note], notes: Sequence[Note], min_title_chars: int = 3) -> List[Note]:
    """Notes whose title is mentioned in a tier-1 body, excluding tier 1 itself. One hop only."""
    tier1_ids = {n.id for n in tier1}
    titles: Dict[str, Note] = {}
    for note in notes:
        if note.title and len(note.title) >= min_title_chars:
            titles[note.title.lower()] = note

    linked: Dict[str, Note] = {}
    for source in tier1:
        body = (source.content or "").lower()
        for title, target in titles.items():
            if target.id == source.id or target.id in tier1_ids:
                continue
            if title in body:
                linked.setdefault(target.id, target)
    return list(linked.values())


def build_context_items(ordered: Sequence[Note], notes: Sequence[Note], cfg: AppConfig) -> List[ContextItem]:
    tier1 = list(ordered[: cfg.retrieval.tier1_size])
    linked = chain_linked_notes(tier1, notes, cfg.retrieval.min_linked_title_chars)
    return [ContextItem(n, Tier.DIRECT) for n in tier1] + [ContextItem(n, Tier.LINKED) for n in linked]


def estimate_tokens(text: str, chars_per_token: int = 4) -> int:
    return math.ceil(len(text) / chars_per_token)


def format_entry(item: ContextItem, taxonomy: TagTaxonomy) -> str:
    note = item.note
    updated = note.updated_at.strftime("%Y-%m-%d %H:%M")
    return (
        f"[{item.tier.value}]\n"
        f"Title: {note.title or 'Untitled'}\n"
        f"Last Updated: {updated}\n"
        f"Tags: {taxonomy.annotate(note.tags)}\n"
        f"Content: {note.content}"
    )


def assemble_context(items: Sequence[ContextItem], taxonomy: TagTaxonomy, cfg: AppConfig) -> AssembledContext:
    budget = cfg.context.max_context_tokens
    ratio = cfg.context.chars_per_token

    entries: List[str] = []
    included: List[ContextItem] = []
    used = 0
    truncated = False

    for item in items:
        entry = format_entry(item, taxonomy)
        tokens = estimate_tokens(entry, ratio)
        if used + tokens > budget:
            if not entries:
                entries.append(entry[: budget * ratio] + TRUNCATION_MARKER)
                included.append(item)
                truncated = True
            break
        entries.append(entry)
        included.append(item)
        used += tokens
        if len(entries) >= cfg.context.max_context_notes:
            break

    return AssembledContext(text="\n\n".join(entries), items=included, truncated=truncated)


__all__ = [
    "AssembledContext",
    "ContextItem",
    "TRUNCATION_MARKER",
    "Tier",
    "assemble_context",
    "build_context_items",
    "chain_linked_notes",
    "estimate_tokens",
    "format_entry",
]
