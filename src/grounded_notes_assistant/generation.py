from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from pydantic import BaseModel, Field

from .config import AppConfig
from .errors import AssistantError
from .llm import CompletionClient, history_messages
from .models import ChatTurn, TagTaxonomy

logger = logging.getLogger(__name__)

LINKED_CONTEXT_NOTE = (
    "Notes labeled [Linked Context] were automatically retrieved because they are mentioned "
    "in the Direct Match notes. Use them to give a more complete answer, following the "
    "connections between notes."
)

TAG_CONVENTIONS = (
    "Tag conventions: Blue Folders group notes into folders, Green Tags are tags used inside "
    "folders, Grey Tags are standalone tags."
)

CRITIQUE_PROMPT = """You are the quality control step of a notes assistant.
Task: Rate the AI answer against the user question.
Score: 0-100.
Critique: one short sentence explaining the score.

Output JSON: { "score": number, "critique": string }"""


class Critique(BaseModel):
    score: float = Field(ge=0, le=100)
    critique: str = ""


def _format_now(now: datetime) -> str:
    return now.strftime("%A, %B %d, %Y, %I:%M %p")


def build_system_prompt(
    context: str,
    taxonomy: TagTaxonomy,
    cfg: AppConfig,
    positional: str = "",
    now: Optional[datetime] = None,
) -> str:
    now = now or datetime.now()
    sections = [
        f"You are {cfg.assistant_name}, an AI assistant that answers questions about the user's notes.",
        taxonomy.summary(),
        TAG_CONVENTIONS,
        LINKED_CONTEXT_NOTE,
    ]
    if positional:
        sections.append(positional)
    sections.append(f"Relevant Notes (Top Matches):\n{context or 'None'}")
    sections.append(
        "Instructions:\n"
        "1. **Analyze the request**: decide whether the user asks a general question (jokes, small talk, "
        "general knowledge) or a question about their notes.\n"
        "2. **Smart context usage**: if the question relates to the notes, USE THE NOTES and answer in detail. "
        "If it is unrelated, IGNORE THE NOTES and answer from general knowledge without saying the notes "
        "lack it. If it is ambiguous (\"What is it?\"), assume it refers to the most relevant note.\n"
        "3. **Tone**: casual, friendly and concise, like a helpful teammate.\n"
        "4. **Formatting**: use Markdown for readability.\n"
        f"5. **Current date & time**: it is currently {_format_now(now)}.\n"
        "6. **Personal questions**: if asked about the time or date, just state it. Never say you lack "
        "real-time access.\n"
        "7. **Follow-ups**: if the user doubts an answer, do not apologize or say you are an AI; re-check the "
        "context and confidently re-affirm or correct it."
    )
    return "\n\n".join(sections)


def generate_answer(
    combined_query: str,
    system_prompt: str,
    history: Sequence[ChatTurn],
    client: CompletionClient,
    cfg: AppConfig,
) -> str:
    """Primary answer. Failures come back as an ``Error: ...`` string."""
    messages = [
        {"role": "system", "content": system_prompt},
        *history_messages(history, cfg.retrieval.answer_history_turns),
        {"role": "user", "content": combined_query},
    ]
    try:
        answer = client.complete(messages, purpose="answer")
    except AssistantError as e:
        logger.error("Answer generation failed: %s", e)
        return f"Error: {e}"
    return answer.strip() or "No response from AI"


def reflect_and_rewrite(
    question: str,
    combined_query: str,
    answer: str,
    context: str,
    client: CompletionClient,
    cfg: AppConfig,
) -> str:
    settings = cfg.reflection
    if not settings.enabled or len(question) <= settings.min_question_chars:
        return answer

    try:
        critique = client.complete_structured(
            [
                {"role": "system", "content": CRITIQUE_PROMPT},
                {"role": "user", "content": f"Question: {combined_query}\n\nAnswer: {answer}"},
            ],
            Critique,
            purpose="critique",
        )
        if critique.score >= settings.score_threshold:
            return answer

        logger.info("Answer scored %.0f (%s), rewriting", critique.score, critique.critique)
        rewrite = client.complete(
            [
                {
                    "role": "system",
                    "content": (
                        f"You are {cfg.assistant_name}. The previous answer was not good enough.\n"
                        f"Critique: {critique.critique}\n\n"
                        "Rewrite the answer to be perfect. Use the same context."
                    ),
                },
                {
                    "role": "user",
                    "content": f"Context: {context}\n\nOriginal Question: {combined_query}\n\nBetter Answer:",
                },
            ],
            purpose="rewrite",
        )
    except AssistantError as e:
        logger.warning("Reflection failed, keeping the first answer: %s", e)
        return answer

    return rewrite.strip() or answer


__all__ = [
    "Critique",
    "build_system_prompt",
    "generate_answer",
    "reflect_and_rewrite",
]
