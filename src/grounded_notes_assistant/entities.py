"""
Entity registry mined from the notes.

A single pass over the notes extracts URLs, acronyms, hashtags and proper
nouns. The registry is a point-in-time snapshot: it is rebuilt for every
question and never updated incrementally.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Sequence

from .models import Note
from .text import levenshtein

URL_RE = re.compile(r"https?://[^\s]+")
ACRONYM_RE = re.compile(r"\b([A-Z]{2,6}[\d.]*)\b")
HASHTAG_RE = re.compile(r"#[a-zA-Z0-9_-]+")
PROPER_NOUN_RE = re.compile(r"^[A-Z][a-z]+")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")

# Trailing punctuation that belongs to the sentence, not the URL.
_URL_TRAILING = ".,;:!?)]}>\"'"

CONTEXT_WINDOW = 30


class EntityType(str, Enum):
    ACRONYM = "acronym"
    URL = "url"
    PROPER_NOUN = "proper_noun"
    TAG = "tag"
    TECHNICAL_TERM = "technical_term"


class MatchType(str, Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    FUZZY = "fuzzy"
    PHONETIC = "phonetic"


@dataclass
class Entity:
    value: str
    type: EntityType
    source_note_id: str
    source_note_title: str
    last_mentioned: datetime
    frequency: int = 1
    context: str = ""


@dataclass
class EntityMatch:
    entity: Entity
    confidence: float
    match_type: MatchType
    distance: Optional[int] = None


@dataclass
class EntityRegistry:
    entities: Dict[str, List[Entity]] = field(default_factory=dict)
    acronyms: Dict[str, List[Entity]] = field(default_factory=dict)
    urls: Dict[str, Entity] = field(default_factory=dict)
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __len__(self) -> int:
        return len(self.entities)


def clean_url(url: str) -> str:
    return url.strip().rstrip(_URL_TRAILING)


def find_urls(text: str) -> List[str]:
    return [u for u in (clean_url(m) for m in URL_RE.findall(text or "")) if u]


def find_acronyms(text: str) -> List[str]:
    # "LFM2.5" keeps its version, "ACME." loses the full stop.
    return [a.rstrip(".") for a in ACRONYM_RE.findall(text or "")]


def surrounding_context(content: str, value: str, window: int = CONTEXT_WINDOW) -> str:
    index = content.find(value)
    if index == -1:
        return ""
    start = max(0, index - window)
    end = min(len(content), index + len(value) + window)
    return content[start:end].strip()


def phonetic_code(value: str) -> str:
    """Soundex-style code; first letter kept, vowels dropped, four characters."""
    mapping = {
        **dict.fromkeys("BFPV", "1"),
        **dict.fromkeys("CGJKQSXZ", "2"),
        **dict.fromkeys("DT", "3"),
        "L": "4",
        **dict.fromkeys("MN", "5"),
        "R": "6",
    }
    s = value.upper()
    code = s[:1]
    for ch in s[1:]:
        mapped = mapping.get(ch)
        if mapped and mapped != code[-1:]:
            code += mapped
    return code[:4].ljust(4, "0")


def extract_entities(note: Note) -> List[Entity]:
    content = f"{note.title} {note.content}"
    found: List[Entity] = []

    def add(value: str, kind: EntityType) -> None:
        found.append(
            Entity(
                value=value,
                type=kind,
                source_note_id=note.id,
                source_note_title=note.title,
                last_mentioned=note.updated_at,
                context=surrounding_context(content, value),
            )
        )

    for url in find_urls(content):
        add(url, EntityType.URL)
    for acronym in find_acronyms(content):
        add(acronym, EntityType.ACRONYM)
    for tag in HASHTAG_RE.findall(content):
        add(tag, EntityType.TAG)
    for sentence in _SENTENCE_SPLIT_RE.split(content):
        words = sentence.strip().split()
        # The first word of a sentence is capitalised anyway.
        for word in words[1:]:
            if len(word) > 3 and PROPER_NOUN_RE.match(word):
                add(word, EntityType.PROPER_NOUN)
    return found


def build_entity_registry(notes: Sequence[Note]) -> EntityRegistry:
    registry = EntityRegistry()
    for note in notes:
        for entity in extract_entities(note):
            key = entity.value.lower()
            bucket = registry.entities.setdefault(key, [])
            existing = next(
                (e for e in bucket if e.value == entity.value and e.source_note_id == entity.source_note_id),
                None,
            )
            if existing is not None:
                existing.frequency += 1
                existing.last_mentioned = max(existing.last_mentioned, entity.last_mentioned)
                continue

            bucket.append(entity)
            if entity.type is EntityType.ACRONYM:
                registry.acronyms.setdefault(key, []).append(entity)
            elif entity.type is EntityType.URL:
                registry.urls[entity.value] = entity
    return registry


def find_entity(
    query: str,
    registry: EntityRegistry,
    max_distance: int = 2,
    min_confidence: float = 0.5,
    prefer_recent: bool = True,
    entity_type: Optional[EntityType] = None,
    now: Optional[datetime] = None,
) -> List[EntityMatch]:
    """Exact, substring, edit-distance and phonetic matches, best first."""
    normalized = query.lower().strip()
    if not normalized:
        return []

    matches: List[EntityMatch] = []
    seen: set[tuple[str, str]] = set()

    def consider(entity: Entity, confidence: float, kind: MatchType, distance: Optional[int]) -> None:
        if entity_type is not None and entity.type is not entity_type:
            return
        key = (entity.value, entity.source_note_id)
        if key in seen:
            return
        seen.add(key)
        matches.append(EntityMatch(entity, confidence, kind, distance))

    for entity in registry.entities.get(normalized, []):
        consider(entity, 1.0, MatchType.EXACT, 0)

    for key, bucket in registry.entities.items():
        if key in normalized or normalized in key:
            ratio = min(len(normalized), len(key)) / max(len(normalized), len(key))
            for entity in bucket:
                consider(entity, ratio * 0.9, MatchType.PARTIAL, abs(len(normalized) - len(key)))

    for key, bucket in registry.entities.items():
        distance = levenshtein(normalized, key, max_dist=max_distance)
        if 0 < distance <= max_distance:
            confidence = 1 - distance / max(len(normalized), len(key))
            for entity in bucket:
                consider(entity, confidence * 0.7, MatchType.FUZZY, distance)

    # Short tokens collide too easily (LFM vs LLM), so phonetics need > 4 chars.
    if len(normalized) > 4:
        code = phonetic_code(normalized)
        for key, bucket in registry.entities.items():
            if phonetic_code(key) == code:
                for entity in bucket:
                    consider(entity, 0.5, MatchType.PHONETIC, None)

    if prefer_recent:
        now = now or datetime.now(timezone.utc)
        for match in matches:
            mentioned = match.entity.last_mentioned
            if mentioned.tzinfo is None:
                mentioned = mentioned.replace(tzinfo=timezone.utc)
            days = max(0.0, (now - mentioned).total_seconds() / 86400)
            boost = max(0.0, 1 - days / 30)
            match.confidence = min(1.0, match.confidence * (1 + boost * 0.2))

    for match in matches:
        match.confidence = min(1.0, match.confidence + min(0.2, match.entity.frequency * 0.05))

    kept = [m for m in matches if m.confidence >= min_confidence]
    kept.sort(key=lambda m: m.confidence, reverse=True)
    return kept


def disambiguate_entity(
    matches: Sequence[EntityMatch],
    context_hints: Optional[Sequence[str]] = None,
) -> Optional[EntityMatch]:
    """Best match, or None when the candidates stay too close to call."""
    if not matches:
        return None
    if len(matches) == 1:
        return matches[0]

    top, second = matches[0], matches[1]
    if top.confidence - second.confidence > 0.3:
        return top

    if context_hints:
        hints = [h.lower() for h in context_hints if h]
        scored = []
        for match in matches:
            entity_context = match.entity.context.lower()
            score = match.confidence + 0.2 * sum(1 for h in hints if h in entity_context)
            scored.append((score, match))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        if scored[0][0] - scored[1][0] > 0.2:
            return scored[0][1]

    return None


__all__ = [
    "Entity",
    "EntityMatch",
    "EntityRegistry",
    "EntityType",
    "MatchType",
    "build_entity_registry",
    "clean_url",
    "disambiguate_entity",
    "extract_entities",
    "find_acronyms",
    "find_entity",
    "find_urls",
    "phonetic_code",
]
