import pytest
from conftest import make_note

from grounded_notes_assistant.entities import build_entity_registry
from grounded_notes_assistant.validation import (
    Citation,
    ClaimType,
    IssueType,
    Severity,
    ValidationIssue,
    ValidationResult,
    extract_entity_claims,
    extract_url_claims,
    format_citations,
    generate_clarification_prompt,
    validate_response,
)


@pytest.fixture
def notes():
    return [
        make_note("d", "Docs", "The setup guide is at https://docs.example.com/guide."),
        make_note("b", "Billing", "Invoice from ACME for March.", days_old=2),
    ]


@pytest.fixture
def registry(notes):
    return build_entity_registry(notes)


class TestClaimExtraction:
    def test_url_claims(self):
        [claim] = extract_url_claims("Go to https://docs.example.com/guide, then continue.")
        assert claim.claim == "https://docs.example.com/guide"
        assert claim.type is ClaimType.URL

    def test_entity_claims(self):
        claims = extract_entity_claims('Ask ACME. See the "Billing" note.')
        assert [(c.claim, c.type) for c in claims] == [("ACME", ClaimType.ENTITY), ("Billing", ClaimType.NAME)]


class TestValidateResponse:
    def test_no_claims_is_valid(self, notes, registry):
        result = validate_response("hi", "Nothing checkable here.", notes, registry)
        assert result.is_valid
        assert result.confidence == 1.0
        assert result.suggestions == []

    def test_exact_url_is_verified_and_cited(self, notes, registry):
        result = validate_response("guide?", "See https://docs.example.com/guide.", notes, registry)
        assert result.is_valid
        assert result.verified_claims[0].verified
        assert [c.note_id for c in result.citations] == ["d"]
        assert result.citations[0].relevance == 1.0

    def test_same_domain_url_is_partial(self, notes, registry):
        result = validate_response("guide?", "See https://docs.example.com/install", notes, registry)
        [claim] = result.verified_claims
        assert claim.confidence == 0.5
        assert not claim.verified
        [issue] = result.issues
        assert issue.type is IssueType.URL_INVALID
        assert issue.severity is Severity.WARNING
        assert result.is_valid

    def test_unknown_url_is_hallucination(self, notes, registry):
        result = validate_response("guide?", "See https://made-up.test/page", notes, registry)
        [issue] = result.issues
        assert issue.type is IssueType.HALLUCINATION
        assert issue.severity is Severity.CRITICAL
        assert issue.evidence == "https://made-up.test/page"
        assert result.confidence == 0.0
        assert not result.is_valid
        assert result.suggestions

    def test_known_acronym_is_cited(self, notes, registry):
        result = validate_response("who sent the invoice", "It came from ACME.", notes, registry)
        assert result.is_valid
        assert [c.note_title for c in result.citations] == ["Billing"]

    def test_unknown_entity_is_flagged(self, notes, registry):
        result = validate_response("q", "Ask the QXZW team.", notes, registry)
        [issue] = result.issues
        assert issue.type is IssueType.ENTITY_MISMATCH
        assert issue.subject == "QXZW"
        assert not result.is_valid

    def test_confidence_is_mean_of_claims(self, notes, registry):
        answer = "See https://docs.example.com/guide and https://docs.example.com/faq"
        result = validate_response("q", answer, notes, registry)
        assert result.confidence == pytest.approx(0.75)


class TestFormatting:
    def test_citations_deduplicated_by_note_and_ordered(self):
        citations = [
            Citation("1", "Low", "x", 0.4),
            Citation("2", "High", "y", 0.9),
            Citation("1", "Low", "z", 0.6),
        ]
        assert format_citations(citations) == '\n\n**Sources:**\n- "High"\n- "Low"'
        assert format_citations([]) == ""

    def test_clarification_for_critical_issue(self):
        issue = ValidationIssue(IssueType.HALLUCINATION, Severity.CRITICAL, "URL not found in any notes: x")
        result = ValidationResult(False, 0.0, [issue], ["Verify it."])
        prompt = generate_clarification_prompt(result)
        assert prompt.startswith("I'm not confident in my answer because: URL not found")
        assert prompt.endswith("Verify it.")

    def test_clarification_for_warning(self):
        issue = ValidationIssue(IssueType.ENTITY_MISMATCH, Severity.WARNING, "unclear")
        prompt = generate_clarification_prompt(ValidationResult(False, 0.3, [issue]))
        assert prompt.startswith("I found some information, but I'm not entirely sure.")

    def test_no_issues_no_prompt(self):
        assert generate_clarification_prompt(ValidationResult(True, 1.0)) == ""


class TestConversationHints:
    @pytest.fixture
    def acme_notes(self):
        return [
            make_note("g", "Garage", "ACME quote for the garage roof.", days_old=5),
            make_note("o", "Office", "ACME payroll export for the office.", days_old=5),
        ]

    def test_same_entity_in_two_notes_is_ambiguous(self, acme_notes):
        registry = build_entity_registry(acme_notes)
        result = validate_response("which one?", "It was ACME.", acme_notes, registry)
        [issue] = result.issues
        assert issue.type is IssueType.ENTITY_MISMATCH
        assert "ambiguous" in issue.message
        assert result.citations == []

    def test_earlier_user_turns_resolve_the_entity(self, acme_notes):
        registry = build_entity_registry(acme_notes)
        result = validate_response(
            "which one?", "It was ACME.", acme_notes, registry, history=["the garage roof quote"]
        )
        assert result.is_valid
        assert [c.note_id for c in result.citations] == ["g"]
