from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from pydantic import BaseModel, Field, field_validator, model_validator

from .config import AppConfig
from .errors import AssistantError
from .llm import CompletionClient, history_messages
from .models import ChatTurn

logger = logging.getLogger(__name__)

MAX_PLANNED_QUERIES = 3

PLANNER_PROMPT = """You are the reasoning engine of a personal notes assistant.
Goal: Analyze the user's request.
Output: JSON object with:
- "queries": string[] (1-3 atomic search queries)
- "hypothetical_answer": string (a short, ideal paragraph that WOULD answer the question; invent plausible facts if needed to produce good keywords)

Rules:
1. Resolve pronouns ("it", "he") using the conversation history.
2. If complex (e.g. "Compare X and Y"), output ["X", "Y"] in queries.
3. If simple, just output ["query"]."""

EXPANDER_PROMPT = """You are a search query expander.
Goal: Generate 3 variations of the user's query to catch "messy" notes.
Rules:
1. Fix typos (e.g. "mtg" -> "meeting").
2. Add synonyms (e.g. "car" -> "vehicle", "auto").
3. Output specific keywords.
Output: JSON { "queries": string[] }"""


def _clean_strings(values: Sequence[Any]) -> List[str]:
    cleaned = []
    for value in values:
        if isinstance(value, str) and value.strip():
            cleaned.append(value.strip())
    return cleaned


class QueryPlan(BaseModel):
    queries: List[str] = Field(min_length=1)
    hypothetical_answer: str = ""

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_list(cls, data: Any) -> Any:
        if isinstance(data, list):
            return {"queries": data}
        return data

    @field_validator("queries", mode="before")
    @classmethod
    def _normalize_queries(cls, value: Any) -> Any:
        if isinstance(value, list):
            return _clean_strings(value)[:MAX_PLANNED_QUERIES]
        return value

    @field_validator("hypothetical_answer", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return value or ""


class QueryExpansion(BaseModel):
    queries: List[str] = Field(default_factory=list)

    @field_validator("queries", mode="before")
    @classmethod
    def _normalize_queries(cls, value: Any) -> Any:
        if isinstance(value, list):
            return _clean_strings(value)
        return value


def should_plan(question: str, history: Sequence[ChatTurn], cfg: AppConfig) -> bool:
    return bool(history) or len(question) > cfg.retrieval.planner_min_chars


def plan_queries(
    question: str,
    history: Sequence[ChatTurn],
    client: CompletionClient,
    cfg: AppConfig,
) -> List[str]:
    """Sub-queries followed by the hypothetical answer, or [] on any failure."""
    messages = [
        {"role": "system", "content": PLANNER_PROMPT},
        *history_messages(history, cfg.retrieval.planner_history_turns),
        {"role": "user", "content": question},
    ]
    try:
        plan = client.complete_structured(messages, QueryPlan, purpose="planner")
    except AssistantError as e:
        logger.warning("Planner failed, using the raw question only: %s", e)
        return []

    queries = list(plan.queries)
    if plan.hypothetical_answer.strip():
        queries.append(plan.hypothetical_answer.strip())
    return queries


def expand_query(question: str, client: CompletionClient, cfg: AppConfig) -> List[str]:
    messages = [
        {"role": "system", "content": EXPANDER_PROMPT},
        {"role": "user", "content": question},
    ]
    try:
        expansion = client.complete_structured(messages, QueryExpansion, purpose="expander")
    except AssistantError as e:
        logger.debug("Query expansion failed: %s", e)
        return []
    return expansion.queries


@dataclass
class SearchQueries:
    question: str
    planned: List[str] = field(default_factory=list)
    expanded: List[str] = field(default_factory=list)

    @property
    def all(self) -> List[str]:
        """Raw question first, then planned and expanded variants, de-duplicated."""
        seen: dict[str, None] = {}
        for q in [self.question, *self.planned, *self.expanded]:
            seen.setdefault(q, None)
        return list(seen)

    @property
    def first_rewrite(self) -> Optional[str]:
        """The first planner-derived query when it differs from the raw question."""
        if self.planned and self.planned[0] != self.question:
            return self.planned[0]
        return None

    @property
    def combined(self) -> str:
        return " / ".join(self.all)


def gather_search_queries(
    question: str,
    history: Sequence[ChatTurn],
    client: CompletionClient,
    cfg: AppConfig,
) -> SearchQueries:
    """Run the planner and the expander side by side and merge their output."""
    run_planner = cfg.retrieval.use_planner and should_plan(question, history, cfg)
    run_expander = cfg.retrieval.use_expander

    with ThreadPoolExecutor(max_workers=2) as executor:
        planner_future = (
            executor.submit(plan_queries, question, history, client, cfg) if run_planner else None
        )
        expander_future = (
            executor.submit(expand_query, question, client, cfg) if run_expander else None
        )
        planned = planner_future.result() if planner_future else []
        expanded = expander_future.result() if expander_future else []

    queries = SearchQueries(question=question, planned=planned, expanded=expanded)
    logger.debug("Search queries: %s", queries.all)
    return queries


__all__ = [
    "QueryExpansion",
    "QueryPlan",
    "SearchQueries",
    "expand_query",
    "gather_search_queries",
    "plan_queries",
    "should_plan",
]
