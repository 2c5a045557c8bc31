"""Grounding checks for generated answers.

URLs and entity references are pulled out of the answer and looked up in the
:class:`~grounded_notes_assistant.entities.EntityRegistry`. Each claim gets a
confidence; the answer's confidence is their mean.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence
from urllib.parse import urlparse

from .entities import (
    ACRONYM_RE,
    URL_RE,
    EntityRegistry,
    EntityType,
    MatchType,
    clean_url,
    disambiguate_entity,
    find_entity,
    find_urls,
)
from .models import Note

logger = logging.getLogger(__name__)

QUOTED_RE = re.compile(r'"([^"]+)"')


class IssueType(str, Enum):
    HALLUCINATION = "hallucination"
    LOW_CONFIDENCE = "low_confidence"
    ENTITY_MISMATCH = "entity_mismatch"
    URL_INVALID = "url_invalid"
    DOMAIN_MISMATCH = "domain_mismatch"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class ClaimType(str, Enum):
    URL = "url"
    DATE = "date"
    NAME = "name"
    NUMBER = "number"
    RELATIONSHIP = "relationship"
    ENTITY = "entity"


@dataclass
class ValidationIssue:
    type: IssueType
    severity: Severity
    message: str
    evidence: Optional[str] = None
    suggestion: Optional[str] = None
    # The answer text the issue refers to.
    subject: Optional[str] = None


@dataclass
class FactualClaim:
    claim: str
    type: ClaimType
    start: int
    end: int
    verified: bool = False
    confidence: float = 0.0
    source: Optional[str] = None
    source_id: Optional[str] = None


@dataclass
class Citation:
    note_id: str
    note_title: str
    snippet: str
    relevance: float


@dataclass
class ValidationResult:
    is_valid: bool
    confidence: float
    issues: List[ValidationIssue] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    verified_claims: List[FactualClaim] = field(default_factory=list)
    citations: List[Citation] = field(default_factory=list)

    @property
    def critical_issues(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity is Severity.CRITICAL]


@dataclass
class _Verification:
    verified: bool
    confidence: float
    source: Optional[str] = None
    source_id: Optional[str] = None
    issues: List[ValidationIssue] = field(default_factory=list)


def extract_url_claims(text: str) -> List[FactualClaim]:
    claims = []
    for match in URL_RE.finditer(text):
        url = clean_url(match.group(0))
        if url:
            claims.append(FactualClaim(url, ClaimType.URL, match.start(), match.start() + len(url)))
    return claims


def extract_entity_claims(text: str) -> List[FactualClaim]:
    claims = []
    for match in ACRONYM_RE.finditer(text):
        value = match.group(0).rstrip(".")
        claims.append(FactualClaim(value, ClaimType.ENTITY, match.start(), match.start() + len(value)))
    for match in QUOTED_RE.finditer(text):
        claims.append(FactualClaim(match.group(1), ClaimType.NAME, match.start(), match.end()))
    return claims


def _hostname(url: str) -> Optional[str]:
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def verify_url_claim(claim: FactualClaim, registry: EntityRegistry, notes: Sequence[Note]) -> _Verification:
    entity = registry.urls.get(claim.claim)
    if entity is not None:
        return _Verification(True, 1.0, entity.source_note_title, entity.source_note_id)

    domain = _hostname(claim.claim)
    if not domain:
        issue = ValidationIssue(
            IssueType.URL_INVALID,
            Severity.CRITICAL,
            f"Invalid URL format: {claim.claim}",
            evidence=claim.claim,
            subject=claim.claim,
        )
        return _Verification(False, 0.0, issues=[issue])

    for note in notes:
        for url in find_urls(f"{note.title} {note.content}"):
            if _hostname(url) == domain:
                issue = ValidationIssue(
                    IssueType.URL_INVALID,
                    Severity.WARNING,
                    f"URL domain matches notes ({domain}), but exact URL not found",
                    evidence=f'Found {url} in note "{note.title}"',
                    suggestion="Verify the exact URL path is correct",
                    subject=claim.claim,
                )
                return _Verification(False, 0.5, note.title, note.id, [issue])

    issue = ValidationIssue(
        IssueType.HALLUCINATION,
        Severity.CRITICAL,
        f"URL not found in any notes: {claim.claim}",
        evidence=claim.claim,
        suggestion="This URL may be hallucinated. Verify it exists in your notes.",
        subject=claim.claim,
    )
    return _Verification(False, 0.0, issues=[issue])


def verify_entity_claim(
    claim: FactualClaim,
    registry: EntityRegistry,
    context_hints: Optional[Sequence[str]] = None,
) -> _Verification:
    # Acronyms are checked against acronyms only; quoted names against everything.
    entity_type = EntityType.ACRONYM if claim.type is ClaimType.ENTITY else None
    matches = find_entity(claim.claim, registry, min_confidence=0.5, prefer_recent=True, entity_type=entity_type)

    if not matches:
        issue = ValidationIssue(
            IssueType.ENTITY_MISMATCH,
            Severity.WARNING,
            f'Entity "{claim.claim}" not found in notes',
            suggestion="Verify this entity exists in your notes or clarify the reference",
            subject=claim.claim,
        )
        return _Verification(False, 0.0, issues=[issue])

    best = disambiguate_entity(matches, context_hints)
    if best is None:
        issue = ValidationIssue(
            IssueType.ENTITY_MISMATCH,
            Severity.WARNING,
            f'Entity "{claim.claim}" is ambiguous ({len(matches)} possible matches)',
            evidence=", ".join(f'"{m.entity.value}" in "{m.entity.source_note_title}"' for m in matches),
            suggestion="Clarify which entity you mean: " + ", ".join(m.entity.value for m in matches),
            subject=claim.claim,
        )
        top = matches[0].entity
        return _Verification(False, matches[0].confidence, top.source_note_title, top.source_note_id, [issue])

    issues = []
    similar = [m for m in matches if m.entity.value != best.entity.value and m.confidence > 0.4]
    if similar:
        issues.append(
            ValidationIssue(
                IssueType.ENTITY_MISMATCH,
                Severity.INFO,
                f'Entity "{claim.claim}" might be confused with similar entities',
                evidence=", ".join(f'"{m.entity.value}" (confidence: {m.confidence:.2f})' for m in similar),
                suggestion=f'Verify you meant "{best.entity.value}" and not '
                + " or ".join(m.entity.value for m in similar),
                subject=claim.claim,
            )
        )

    return _Verification(
        best.match_type is MatchType.EXACT,
        best.confidence,
        best.entity.source_note_title,
        best.entity.source_note_id,
        issues,
    )


def validate_response(
    query: str,
    response: str,
    context: Sequence[Note],
    registry: EntityRegistry,
    min_confidence: float = 0.5,
    history: Sequence[str] = (),
) -> ValidationResult:
    """Check ``response`` against the notes.

    Ambiguous entities are resolved with words from ``query`` and from
    ``history``, the user's earlier messages.
    """
    notes_by_id: Dict[str, Note] = {n.id: n for n in context}
    hints = " ".join([*history, query]).lower().split()

    issues: List[ValidationIssue] = []
    claims: List[FactualClaim] = []
    citations: List[Citation] = []

    checks = [(c, verify_url_claim(c, registry, context)) for c in extract_url_claims(response)]
    checks += [(c, verify_entity_claim(c, registry, hints)) for c in extract_entity_claims(response)]

    for claim, verification in checks:
        claim.verified = verification.verified
        claim.confidence = verification.confidence
        claim.source = verification.source
        claim.source_id = verification.source_id
        issues.extend(verification.issues)
        claims.append(claim)

        note = notes_by_id.get(verification.source_id or "")
        if verification.verified and note is not None:
            relevance = 1.0 if claim.type is ClaimType.URL else verification.confidence
            citations.append(Citation(note.id, note.title, claim.claim, relevance))

    confidence = sum(c.confidence for c in claims) / len(claims) if claims else 1.0
    critical = [i for i in issues if i.severity is Severity.CRITICAL]
    is_valid = not critical and confidence >= min_confidence

    suggestions: List[str] = []
    if not is_valid:
        if confidence < min_confidence:
            suggestions.append("The response has low confidence. Consider asking for more specific information.")
        if critical:
            suggestions.append(
                "Critical validation errors detected. The response may contain hallucinated information."
            )
        for issue in issues:
            if issue.suggestion and issue.suggestion not in suggestions:
                suggestions.append(issue.suggestion)

    logger.debug("Validated %d claims: confidence=%.2f valid=%s", len(claims), confidence, is_valid)
    return ValidationResult(is_valid, confidence, issues, suggestions, claims, citations)


def generate_clarification_prompt(result: ValidationResult) -> str:
    if not result.issues:
        return ""

    first_suggestion = result.suggestions[0] if result.suggestions else None
    critical = result.critical_issues
    if critical:
        reasons = "; ".join(i.message for i in critical)
        return (
            f"I'm not confident in my answer because: {reasons}. "
            f"{first_suggestion or 'Could you provide more details?'}"
        )

    if any(i.severity is Severity.WARNING for i in result.issues):
        return (
            "I found some information, but I'm not entirely sure. "
            f"{first_suggestion or 'Could you clarify your question?'}"
        )
    return ""


def format_citations(citations: Sequence[Citation]) -> str:
    if not citations:
        return ""

    unique: Dict[str, Citation] = {}
    for citation in citations:
        current = unique.get(citation.note_id)
        if current is None or citation.relevance > current.relevance:
            unique[citation.note_id] = citation

    ordered = sorted(unique.values(), key=lambda c: c.relevance, reverse=True)
    return "\n\n**Sources:**\n" + "\n".join(f'- "{c.note_title}"' for c in ordered)


__all__ = [
    "Citation",
    "ClaimType",
    "FactualClaim",
    "IssueType",
    "Severity",
    "ValidationIssue",
    "ValidationResult",
    "extract_entity_claims",
    "extract_url_claims",
    "format_citations",
    "generate_clarification_prompt",
    "validate_response",
    "verify_entity_claim",
    "verify_url_claim",
]
