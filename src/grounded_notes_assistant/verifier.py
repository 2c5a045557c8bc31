from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Sequence

from .embedding import DEFAULT_DIM, cosine_similarity, embed_text, note_embedding
from .models import Note

_SENTENCE_RE = re.compile(r"[.!?]+")
_WORD_RE = re.compile(r"[a-z0-9]+")

COMMON_WORDS = frozenset({"the", "and", "for", "with", "you", "your", "have", "this", "that", "will", "can"})

SUPPORTING_MATCH = 0.6
ACCURACY_THRESHOLD = 0.65
SUPPORT_OVERLAP = 0.5


@dataclass
class MatchedNote:
    note_id: str
    note_title: str
    similarity: float
    snippet: str


@dataclass
class LightweightVerification:
    is_accurate: bool
    confidence: float
    matched_notes: List[MatchedNote] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
    hallucinated_sentences: List[str] = field(default_factory=list)


def key_sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_RE.split(text or "") if len(s.strip()) > 10]


def _snippet(note: Note) -> str:
    sentences = key_sentences(note.content)
    return sentences[0] if sentences else (note.content or "")[:100]


def significant_words(text: str) -> List[str]:
    """Distinct lowercase words longer than three letters, minus filler words."""
    words: dict[str, None] = {}
    for word in _WORD_RE.findall((text or "").lower()):
        if len(word) > 3 and word not in COMMON_WORDS:
            words.setdefault(word, None)
    return list(words)


def supporting_notes(
    response: str,
    context: Sequence[Note],
    min_overlap: float = SUPPORT_OVERLAP,
    min_words: int = 2,
) -> List[MatchedNote]:
    """Context notes sharing enough of the response's significant words, best first.

    ``similarity`` is the share of the response's words found in the note.
    """
    words = significant_words(response)
    if not words:
        return []

    matched = []
    for note in context:
        note_words = set(significant_words(f"{note.title} {note.content}"))
        shared = sum(1 for w in words if w in note_words)
        ratio = shared / len(words)
        if shared >= min_words and ratio >= min_overlap:
            matched.append(MatchedNote(note.id, note.title, ratio, _snippet(note)))
    matched.sort(key=lambda m: m.similarity, reverse=True)
    return matched


def detect_hallucinations(response: str, notes: Sequence[Note]) -> List[str]:
    """Sentences with no 3-word phrase in the notes and under half their words present."""
    corpus = " ".join(f"{n.title} {n.content}" for n in notes).lower()
    flagged = []

    for sentence in key_sentences(response):
        words = [w for w in sentence.lower().split() if len(w) > 3]
        if len(words) < 3:
            continue

        if any(" ".join(words[i:i + 3]) in corpus for i in range(len(words) - 2)):
            continue
        if len(words) < 5:
            continue

        important = [w for w in words if w not in COMMON_WORDS]
        if not important:
            continue
        ratio = sum(1 for w in important if w in corpus) / len(important)
        if ratio < 0.5:
            flagged.append(sentence)
    return flagged


def verify_content_lightweight(
    response: str,
    context: Sequence[Note],
    dim: int = DEFAULT_DIM,
) -> LightweightVerification:
    response_embedding = embed_text(response, dim)
    similarities = sorted(
        ((note, cosine_similarity(response_embedding, note_embedding(note, dim))) for note in context),
        key=lambda pair: pair[1],
        reverse=True,
    )

    matched: List[MatchedNote] = []
    top_similarity = similarities[0][1] if similarities else 0.0
    for note, similarity in similarities:
        if similarity >= SUPPORTING_MATCH:
            matched.append(MatchedNote(note.id, note.title, similarity, _snippet(note)))

    hallucinations = detect_hallucinations(response, context)
    issues = []
    confidence = max(0.0, top_similarity)
    if hallucinations:
        issues.append(
            f"Potential hallucinations detected: {len(hallucinations)} sentences "
            "may not be supported by your notes"
        )
        confidence = max(0.0, confidence - min(0.3, 0.1 * len(hallucinations)))

    if len(matched) > 1:
        average = sum(m.similarity for m in matched) / len(matched)
        confidence = min(1.0, (confidence + average) / 2)

    return LightweightVerification(
        is_accurate=confidence >= ACCURACY_THRESHOLD and not hallucinations,
        confidence=confidence,
        matched_notes=matched,
        issues=issues,
        hallucinated_sentences=hallucinations,
    )


def generate_lightweight_feedback(result: LightweightVerification) -> str:
    if result.is_accurate:
        return ""

    feedback = "I'm not fully confident in my answer. "
    if result.confidence < 0.5:
        feedback += "The response doesn't closely match your notes. "
    elif result.confidence < ACCURACY_THRESHOLD:
        feedback += "The response partially matches your notes but may have some inaccuracies. "
    if result.issues:
        feedback += "\n\n" + "\n".join(result.issues)
    feedback += f"\n\nConfidence: {result.confidence * 100:.0f}%"
    feedback += "\n\nCould you rephrase your question or provide more details?"
    return feedback


def format_lightweight_sources(matches: Sequence[MatchedNote], limit: int = 3) -> str:
    if not matches:
        return ""
    top = sorted(matches, key=lambda m: m.similarity, reverse=True)[:limit]
    lines = [f"- **{m.note_title}** ({m.similarity * 100:.0f}% match)" for m in top]
    return "\n\n**Sources:**\n" + "\n".join(lines)


__all__ = [
    "LightweightVerification",
    "MatchedNote",
    "detect_hallucinations",
    "format_lightweight_sources",
    "generate_lightweight_feedback",
    "key_sentences",
    "significant_words",
    "supporting_notes",
    "verify_content_lightweight",
]
