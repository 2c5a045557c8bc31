"""
Grounded Notes Assistant.

Question answering over a personal set of notes: hybrid retrieval, LLM
planning and reranking, and a grounding layer that checks answers against
entities mined from the notes.
"""

__all__ = [
    "config",
    "context",
    "correction",
    "embedding",
    "entities",
    "generation",
    "index",
    "ingest",
    "llm",
    "personalized",
    "planning",
    "positional",
    "query",
    "ranking",
    "rerank",
    "validation",
    "verifier",
]
