from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Mapping, Optional, Sequence

from .config import AppConfig, load_config
from .context import AssembledContext, assemble_context, build_context_items
from .correction import correct_locally, hallucination_issues, smart_fallback
from .entities import build_entity_registry
from .generation import build_system_prompt, generate_answer, reflect_and_rewrite
from .index import build_index
from .llm import CompletionClient, create_client
from .models import ChatTurn, Note, TagTaxonomy, coerce_history
from .personalized import Persona, match_personalized_response
from .planning import SearchQueries, gather_search_queries
from .positional import handle_positional_query, positional_context
from .ranking import RankedNote, rank_notes
from .rerank import promote_reranked, rerank_notes
from .validation import (
    Citation,
    ValidationResult,
    format_citations,
    generate_clarification_prompt,
    validate_response,
)
from .verifier import (
    format_lightweight_sources,
    generate_lightweight_feedback,
    supporting_notes,
    verify_content_lightweight,
)

logger = logging.getLogger(__name__)

Corpus = Callable[[], Sequence[Note]]
History = Optional[Iterable[ChatTurn | Mapping[str, str]]]

NO_NOTES_MESSAGE = "No notes found."


@dataclass
class AssistantAnswer:
    text: str
    queries: Optional[SearchQueries] = None
    ranked: List[RankedNote] = field(default_factory=list)
    context: Optional[AssembledContext] = None
    validation: Optional[ValidationResult] = None
    corrections: List[str] = field(default_factory=list)
    citations: List[Citation] = field(default_factory=list)
    personalized: bool = False

    @property
    def is_error(self) -> bool:
        return self.text.startswith("Error:")


class NotesAssistant:
    """Question answering over a corpus of notes.

    ``corpus`` is called once per question, after the personalized-response
    check, and its snapshot is used for ranking, context and grounding alike.
    """

    def __init__(
        self,
        corpus: Corpus,
        cfg: Optional[AppConfig] = None,
        client: Optional[CompletionClient] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.corpus = corpus
        self.cfg = cfg or load_config()
        self.client = client or create_client(self.cfg.llm)
        self.persona = Persona(assistant_name=self.cfg.assistant_name)
        self.rng = rng

    def _personalized(self, text: str) -> Optional[str]:
        return match_personalized_response(text, rng=self.rng, persona=self.persona)

    def visible_notes(self, include_private: bool) -> List[Note]:
        notes = list(self.corpus() or [])
        if include_private:
            return notes
        return [n for n in notes if not n.is_private]

    def retrieve(self, question: str, queries: SearchQueries, notes: Sequence[Note]) -> List[RankedNote]:
        cfg = self.cfg
        taxonomy = TagTaxonomy.from_notes(notes)
        index = build_index(notes, cfg.embedding_dim)
        ranked = rank_notes(notes, queries.all, cfg, taxonomy=taxonomy, index=index)

        if cfg.retrieval.use_reranker and ranked:
            candidates = [r.note for r in ranked[: cfg.retrieval.rerank_candidates]]
            selected = rerank_notes(question, candidates, self.client, cfg)
            ranked = promote_reranked(ranked, selected)
        return ranked

    def ground(
        self,
        question: str,
        answer: str,
        notes: Sequence[Note],
        context_notes: Sequence[Note],
        history: Sequence[str] = (),
    ) -> tuple[str, Optional[ValidationResult], List[str]]:
        """Validate ``answer`` against the notes, repair it locally and attach sources.

        An answer that still fails after repair is either replaced by a quote
        (critical issues, ``fallback_to_quote``) or followed by a clarifying
        question. When no claim in the answer cites a note, the context notes
        sharing most of its wording are cited instead.
        """
        settings = self.cfg.grounding
        registry = build_entity_registry(notes)

        def validate(text: str) -> ValidationResult:
            return validate_response(question, text, notes, registry, settings.min_confidence, history)

        result = validate(answer)
        corrections: List[str] = []
        clarification = ""

        if not result.is_valid:
            verification = verify_content_lightweight(answer, context_notes, self.cfg.embedding_dim)
            fixed = correct_locally(
                answer, result, context_notes, registry, hallucination_issues(verification)
            )
            corrections = fixed.corrections
            if fixed.was_corrected:
                answer = fixed.corrected_answer
                result = validate(answer)

            if result.critical_issues and settings.fallback_to_quote:
                logger.info("Answer still fails grounding, quoting the best note instead")
                answer = smart_fallback(context_notes)
                corrections.append("Replaced answer with a quote from the best matching note")
                result = validate(answer)

            if not result.is_valid:
                logger.info("Answer is weakly grounded (confidence %.2f)", result.confidence)
                clarification = generate_clarification_prompt(result)
                clarification = clarification or generate_lightweight_feedback(verification)

        if result.citations:
            sources = format_citations(result.citations)
        else:
            support = supporting_notes(answer, context_notes)
            result.citations = [Citation(m.note_id, m.note_title, m.snippet, m.similarity) for m in support]
            sources = format_lightweight_sources(support)

        if clarification:
            answer += "\n\n" + clarification
        if settings.append_citations:
            answer += sources
        return answer, result, corrections

    def answer(
        self,
        question: str,
        history: History = None,
        include_private: Optional[bool] = None,
        validate: Optional[bool] = None,
    ) -> AssistantAnswer:
        cfg = self.cfg
        turns = coerce_history(history)
        include_private = cfg.include_private if include_private is None else include_private
        validate = cfg.grounding.enabled if validate is None else validate
        start = time.time()

        canned = self._personalized(question)
        if canned is not None:
            return AssistantAnswer(text=canned, personalized=True)

        queries = gather_search_queries(question, turns, self.client, cfg)
        rewrite = queries.first_rewrite
        if rewrite is not None:
            canned = self._personalized(rewrite)
            if canned is not None:
                return AssistantAnswer(text=canned, queries=queries, personalized=True)

        notes = self.visible_notes(include_private)
        if not notes:
            return AssistantAnswer(text=NO_NOTES_MESSAGE, queries=queries)

        ranked = self.retrieve(question, queries, notes)
        ordered = [r.note for r in ranked]
        taxonomy = TagTaxonomy.from_notes(notes)

        items = build_context_items(ordered, notes, cfg)
        context = assemble_context(items, taxonomy, cfg)
        positional = handle_positional_query(question, [i.note for i in items])
        if positional is not None and positional.item:
            logger.debug("Positional item #%d from %r", positional.position, positional.source_title)

        system_prompt = build_system_prompt(context.text, taxonomy, cfg, positional_context(positional))
        combined = queries.combined
        text = generate_answer(combined, system_prompt, turns, self.client, cfg)

        result = AssistantAnswer(text=text, queries=queries, ranked=ranked, context=context)
        if result.is_error:
            return result

        text = reflect_and_rewrite(question, combined, text, context.text, self.client, cfg)
        if validate:
            window = cfg.retrieval.planner_history_turns
            asked = [t.content for t in turns if t.role == "user"][-window:] if window else []
            text, validation, corrections = self.ground(question, text, notes, context.notes, asked)
            result.validation = validation
            result.corrections = corrections
            result.citations = list(validation.citations) if validation else []

        result.text = text
        logger.debug("Answered in %.0f ms", (time.time() - start) * 1000)
        return result


def ask_question(
    question: str,
    history: History = None,
    *,
    corpus: Corpus,
    cfg: Optional[AppConfig] = None,
    client: Optional[CompletionClient] = None,
    include_private: Optional[bool] = None,
    validate: Optional[bool] = None,
) -> str:
    assistant = NotesAssistant(corpus, cfg=cfg, client=client)
    return assistant.answer(question, history, include_private=include_private, validate=validate).text


__all__ = ["AssistantAnswer", "Corpus", "NotesAssistant", "ask_question"]
