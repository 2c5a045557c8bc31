from __future__ import annotations

import logging
from typing import List, Sequence

import faiss
import numpy as np

from .embedding import DEFAULT_DIM, embed_text, note_embedding
from .models import Note

logger = logging.getLogger(__name__)


class NoteIndex:
    """Per-request inner-product index over L2-normalised note embeddings."""

    def __init__(self, notes: Sequence[Note], dim: int = DEFAULT_DIM) -> None:
        self.notes = list(notes)
        self.dim = dim
        self._index = faiss.IndexFlatIP(dim)
        if self.notes:
            matrix = np.vstack([note_embedding(n, dim) for n in self.notes]).astype("float32")
            faiss.normalize_L2(matrix)
            self._index.add(matrix)

    def __len__(self) -> int:
        return self._index.ntotal

    def max_similarity(self, queries: Sequence[str]) -> List[float]:
        """Best cosine score of each note against any of ``queries``, in note order."""
        n = len(self.notes)
        if n == 0:
            return []
        if not queries:
            return [0.0] * n

        q_emb = np.vstack([embed_text(q, self.dim) for q in queries]).astype("float32")
        faiss.normalize_L2(q_emb)
        scores, indices = self._index.search(q_emb, n)

        best = np.full(n, -1.0, dtype="float64")
        for row_scores, row_indices in zip(scores, indices):
            for score, idx in zip(row_scores, row_indices):
                if idx < 0 or idx >= n:
                    continue
                if score > best[idx]:
                    best[idx] = float(score)

        logger.debug("Vector scores computed for %d notes x %d queries", n, len(queries))
        return [float(min(1.0, max(-1.0, s))) for s in best]


def build_index(notes: Sequence[Note], dim: int = DEFAULT_DIM) -> NoteIndex:
    return NoteIndex(notes, dim)


__all__ = ["NoteIndex", "build_index"]
