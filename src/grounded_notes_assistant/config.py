from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError


class LLMSettings(BaseModel):
    model: str = Field(default="llama-3.3-70b-versatile")
    base_url: Optional[str] = Field(default="https://api.groq.com/openai/v1")
    # First variable that is set wins.
    api_key_env: List[str] = Field(default_factory=lambda: ["GROQ_API_KEY", "OPENAI_API_KEY"])
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=2, ge=0)

    def resolve_api_key(self) -> Optional[str]:
        for name in self.api_key_env:
            value = os.getenv(name)
            if value:
                return value
        return None


class RetrievalSettings(BaseModel):
    use_planner: bool = True
    use_expander: bool = True
    use_reranker: bool = True
    planner_min_chars: int = Field(default=10, ge=0)
    planner_history_turns: int = Field(default=3, ge=0)
    answer_history_turns: int = Field(default=6, ge=0)
    rerank_candidates: int = Field(default=15, ge=1)
    rerank_snippet_chars: int = Field(default=150, ge=20)
    tier1_size: int = Field(default=10, ge=1)
    min_linked_title_chars: int = Field(default=3, ge=1)


class RankingWeights(BaseModel):
    vector_weight: float = Field(default=10.0, ge=0)
    title_term: float = Field(default=2.0, ge=0)
    body_term: float = Field(default=0.2, ge=0)
    body_term_cap: int = Field(default=5, ge=0)
    title_overlap_major: float = Field(default=10.0, ge=0)
    title_overlap_minor: float = Field(default=3.0, ge=0)
    title_overlap_ratio: float = Field(default=0.5, gt=0, le=1)
    exact_phrase: float = Field(default=4.0, ge=0)
    tag_boost: float = Field(default=3.0, ge=0)
    recency_day: float = Field(default=1.0, ge=0)
    recency_week: float = Field(default=0.5, ge=0)
    recency_month: float = Field(default=0.2, ge=0)


class ContextSettings(BaseModel):
    max_context_tokens: int = Field(default=4000, ge=1)
    chars_per_token: int = Field(default=4, ge=1)
    max_context_notes: int = Field(default=15, ge=1)


class ReflectionSettings(BaseModel):
    enabled: bool = True
    min_question_chars: int = Field(default=20, ge=0)
    score_threshold: int = Field(default=85, ge=0, le=100)


class GroundingSettings(BaseModel):
    enabled: bool = True
    min_confidence: float = Field(default=0.5, ge=0, le=1)
    append_citations: bool = True
    # Quote the best note when an invalid answer cannot be repaired locally.
    fallback_to_quote: bool = True


class AppConfig(BaseModel):
    notes_dir: Path = Field(default=Path("notes"))
    include_private: bool = False
    embedding_dim: int = Field(default=256, ge=16)
    assistant_name: str = Field(default="Pownin")
    llm: LLMSettings = Field(default_factory=LLMSettings)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    ranking: RankingWeights = Field(default_factory=RankingWeights)
    context: ContextSettings = Field(default_factory=ContextSettings)
    reflection: ReflectionSettings = Field(default_factory=ReflectionSettings)
    grounding: GroundingSettings = Field(default_factory=GroundingSettings)

    @property
    def notes_dir_resolved(self) -> Path:
        return self.notes_dir.resolve()


def load_config(path: Optional[Path] = None) -> AppConfig:
    """
    Load configuration from a YAML file.

    If `path` is None, looks for `config.yaml` in the current working directory.
    Also loads environment variables (API keys) from a `.env` file if present.
    """
    load_dotenv()

    if path is None:
        path = Path("config.yaml")

    if not path.exists():
        # Fall back to defaults if no config file is present.
        return AppConfig()

    with path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    try:
        cfg = AppConfig(**raw)
    except ValidationError as e:
        raise SystemExit(f"Invalid configuration in {path}:\n{e}") from e

    return cfg


__all__ = [
    "AppConfig",
    "ContextSettings",
    "GroundingSettings",
    "LLMSettings",
    "RankingWeights",
    "ReflectionSettings",
    "RetrievalSettings",
    "load_config",
]
