"""
Local, deterministic text embeddings.

The vectors come from signed feature hashing of word unigrams, word bigrams and
character trigrams. They are coarse on purpose: no model is downloaded and the
same text always produces the same vector, so note embeddings can be cached on
the notes themselves and compared with freshly embedded queries.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence

import numpy as np

from .models import Note

DEFAULT_DIM = 256

_WORD_RE = re.compile(r"[a-z0-9]+")

# Relative weights of the three feature families.
_UNIGRAM_WEIGHT = 1.0
_BIGRAM_WEIGHT = 0.5
_TRIGRAM_WEIGHT = 0.25


def _bucket(feature: str, dim: int) -> tuple[int, float]:
    digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
    value = int.from_bytes(digest, "little")
    sign = 1.0 if (value >> 63) & 1 == 0 else -1.0
    return value % dim, sign


def _features(text: str) -> Iterable[tuple[str, float]]:
    words = _WORD_RE.findall(text.lower())
    for word in words:
        yield f"w:{word}", _UNIGRAM_WEIGHT
        padded = f"#{word}#"
        for i in range(len(padded) - 2):
            yield f"c:{padded[i:i + 3]}", _TRIGRAM_WEIGHT
    for first, second in zip(words, words[1:]):
        yield f"b:{first}_{second}", _BIGRAM_WEIGHT


def embed_text(text: str, dim: int = DEFAULT_DIM) -> np.ndarray:
    vector = np.zeros(dim, dtype="float32")
    for feature, weight in _features(text or ""):
        index, sign = _bucket(feature, dim)
        vector[index] += sign * weight
    norm = float(np.linalg.norm(vector))
    if norm > 0:
        vector /= norm
    return vector


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    # Called inside scoring loops: bad input yields -1.0 instead of raising.
    if a is None or b is None:
        return -1.0
    va = np.asarray(a, dtype="float64").ravel()
    vb = np.asarray(b, dtype="float64").ravel()
    if va.size == 0 or vb.size == 0 or va.size != vb.size:
        return -1.0
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb)) or 1.0
    return float(np.clip(np.dot(va, vb) / denom, -1.0, 1.0))


def note_embedding(note: Note, dim: int = DEFAULT_DIM) -> np.ndarray:
    """Cached embedding when it has the right shape, otherwise a fresh one."""
    if note.embedding is not None and len(note.embedding) == dim:
        return np.asarray(note.embedding, dtype="float32")
    return embed_text(note.embedding_text(), dim)


def initialize_embeddings(notes: Sequence[Note], dim: int = DEFAULT_DIM) -> List[Note]:
    """Return copies of ``notes`` with embeddings recomputed from title, body and tags."""
    return [replace(n, embedding=embed_text(n.embedding_text(), dim)) for n in notes]


__all__ = [
    "DEFAULT_DIM",
    "cosine_similarity",
    "embed_text",
    "initialize_embeddings",
    "note_embedding",
]
