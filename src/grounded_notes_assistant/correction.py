"""Local answer repair. No extra LLM calls: only string edits backed by the notes."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
from urllib.parse import urlparse

from .entities import EntityRegistry, find_urls
from .models import Note
from .validation import IssueType, Severity, ValidationIssue, ValidationResult
from .verifier import LightweightVerification

logger = logging.getLogger(__name__)

FALLBACK_SNIPPET_CHARS = 300


@dataclass
class LocalCorrection:
    corrected_answer: str
    corrections: List[str] = field(default_factory=list)

    @property
    def was_corrected(self) -> bool:
        return bool(self.corrections)


def _host(url: str) -> Optional[str]:
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def best_note_url(wrong_url: str, context: Sequence[Note]) -> Optional[str]:
    """Most relevant URL in the notes: same host first, else the top note's first URL."""
    host = _host(wrong_url)
    first: Optional[str] = None
    for note in context:
        for url in find_urls(note.content):
            if host and _host(url) == host:
                return url
            if first is None:
                first = url
    return first


def fix_hallucinated_urls(answer: str, issues: Sequence[ValidationIssue], context: Sequence[Note]) -> tuple[str, List[str]]:
    fixed, corrections = answer, []
    for issue in issues:
        if issue.type is not IssueType.HALLUCINATION or not issue.evidence:
            continue
        if not issue.evidence.startswith("http"):
            continue
        wrong = issue.evidence
        replacement = best_note_url(wrong, context)
        if replacement and replacement != wrong and wrong in fixed:
            fixed = fixed.replace(wrong, replacement)
            corrections.append(f"Replaced hallucinated URL {wrong} with {replacement} from notes")
    return fixed, corrections


def fix_entity_mismatches(answer: str, issues: Sequence[ValidationIssue], registry: EntityRegistry) -> tuple[str, List[str]]:
    fixed, corrections = answer, []
    for issue in issues:
        if issue.type is not IssueType.ENTITY_MISMATCH or issue.severity is not Severity.WARNING:
            continue
        wrong = issue.subject
        if not wrong:
            continue
        prefix = wrong.lower()[:3]
        candidate = next((key for key in registry.acronyms if prefix in key), None)
        if candidate is None:
            continue
        correct = registry.acronyms[candidate][0].value
        if correct.lower() == wrong.lower():
            continue
        pattern = re.compile(rf"(?<![\w.]){re.escape(wrong)}(?![\w])")
        if pattern.search(fixed):
            fixed = pattern.sub(correct, fixed)
            corrections.append(f"Fixed entity: {wrong} -> {correct}")
    return fixed, corrections


def remove_hallucinations(answer: str, issues: Sequence[ValidationIssue]) -> tuple[str, List[str]]:
    fixed, corrections = answer, []
    for issue in issues:
        if issue.type is not IssueType.HALLUCINATION or not issue.evidence:
            continue
        if issue.evidence.startswith("http"):
            continue
        if issue.evidence in fixed:
            fixed = fixed.replace(issue.evidence, "")
            corrections.append(f'Removed unsupported statement: "{issue.evidence[:50]}..."')

    if corrections:
        fixed = re.sub(r"[ \t]+", " ", fixed).strip()
        fixed = re.sub(r"\.\s*\.", ".", fixed)
    return fixed, corrections


def hallucination_issues(verification: LightweightVerification) -> List[ValidationIssue]:
    """Sentence-level findings of the lightweight verifier as removable issues."""
    return [
        ValidationIssue(
            IssueType.HALLUCINATION,
            Severity.WARNING,
            "Sentence is not supported by the notes",
            evidence=sentence,
            subject=sentence,
        )
        for sentence in verification.hallucinated_sentences
    ]


def correct_locally(
    answer: str,
    result: ValidationResult,
    context: Sequence[Note],
    registry: EntityRegistry,
    extra_issues: Sequence[ValidationIssue] = (),
) -> LocalCorrection:
    issues = [*result.issues, *extra_issues]

    corrected, corrections = fix_hallucinated_urls(answer, issues, context)
    corrected, entity_fixes = fix_entity_mismatches(corrected, issues, registry)
    corrected, removals = remove_hallucinations(corrected, issues)
    corrections += entity_fixes + removals

    if corrections:
        logger.info("Applied %d local corrections", len(corrections))
    return LocalCorrection(corrected, corrections)


def smart_fallback(context: Sequence[Note]) -> str:
    if not context:
        return "I don't have any notes that answer this question. Could you provide more details?"

    top = context[0]
    snippet = (top.content or "")[:FALLBACK_SNIPPET_CHARS]
    more = "..." if len(top.content or "") > FALLBACK_SNIPPET_CHARS else ""
    return f'I found this in your note "{top.title}":\n\n{snippet}{more}\n\nIs this what you were looking for?'


__all__ = [
    "LocalCorrection",
    "best_note_url",
    "correct_locally",
    "fix_entity_mismatches",
    "fix_hallucinated_urls",
    "hallucination_issues",
    "remove_hallucinations",
    "smart_fallback",
]
