from datetime import timedelta

import pytest
from conftest import NOW, FakeClient, make_note

from grounded_notes_assistant.config import RankingWeights
from grounded_notes_assistant.embedding import initialize_embeddings
from grounded_notes_assistant.ranking import lexical_score, rank_notes, recency_score, relevant_tags
from grounded_notes_assistant.rerank import promote_reranked, rerank_notes
from grounded_notes_assistant.text import levenshtein, query_terms, within_one_edit


class TestText:
    def test_levenshtein(self):
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("same", "same") == 0

    def test_levenshtein_bounded(self):
        assert levenshtein("kitten", "sitting", max_dist=1) == 2
        assert levenshtein("a", "abcdef", max_dist=2) == 3

    def test_within_one_edit(self):
        assert within_one_edit("meeting", "meting")
        assert not within_one_edit("meeting", "mating")

    def test_query_terms_drop_stop_words_and_short_words(self):
        assert query_terms(["Where is my invoice?", "the invoice from ACME"]) == ["invoice", "from", "acme"]


class TestScores:
    def test_recency_bands(self):
        weights = RankingWeights()
        assert recency_score(NOW - timedelta(hours=3), NOW, weights) == 1.0
        assert recency_score(NOW - timedelta(days=3), NOW, weights) == 0.5
        assert recency_score(NOW - timedelta(days=20), NOW, weights) == 0.2
        assert recency_score(NOW - timedelta(days=90), NOW, weights) == 0.0

    def test_naive_timestamp_treated_as_utc(self):
        naive = (NOW - timedelta(hours=1)).replace(tzinfo=None)
        assert recency_score(naive, NOW, RankingWeights()) == 1.0

    def test_lexical_score_is_monotonic_in_title_matches(self):
        weights = RankingWeights()
        plain = make_note("a", "Notes", "budget for alpha")
        titled = make_note("b", "Budget", "budget for alpha")
        terms = ["budget"]
        assert lexical_score(titled, terms, ["budget"], weights) > lexical_score(plain, terms, ["budget"], weights)

    def test_body_term_count_is_capped(self):
        weights = RankingWeights()
        note = make_note("a", "x", " ".join(["budget"] * 20))
        # five occurrences at most, plus the exact-phrase bonus
        assert lexical_score(note, ["budget"], ["budget"], weights) == pytest.approx(5 * 0.2 + 4.0)

    def test_title_overlap(self):
        weights = RankingWeights()
        note = make_note("a", "Project Alpha", "")
        score = lexical_score(note, ["project", "alpha"], ["zzz"], weights)
        assert score == pytest.approx(2 * weights.title_term + weights.title_overlap_major)

    def test_relevant_tags_tolerate_plurals_and_typos(self):
        assert relevant_tags(["recipes", "pythn"], {"recipe", "python", "work"}) == {"recipe", "python"}


class TestRankNotes:
    def test_invoice_note_ranks_first(self, cfg, invoice_notes):
        ranked = rank_notes(invoice_notes, ["find my invoice"], cfg, now=NOW)
        assert ranked[0].note.id == "2"
        assert ranked[0].breakdown.lexical > 0

    def test_tag_boost(self, cfg):
        notes = initialize_embeddings(
            [
                make_note("a", "Snippets", "list comprehension examples", tags=["python"]),
                make_note("b", "Errands", "pick up dry cleaning"),
            ]
        )
        ranked = rank_notes(notes, ["python tips"], cfg, now=NOW)
        by_id = {r.note.id: r for r in ranked}
        assert by_id["a"].breakdown.tag == cfg.ranking.tag_boost
        assert by_id["b"].breakdown.tag == 0.0

    def test_ties_break_on_note_id(self, cfg):
        notes = initialize_embeddings([make_note("b", "Same", "same body"), make_note("a", "Same", "same body")])
        ranked = rank_notes(notes, ["unrelated words"], cfg, now=NOW)
        assert [r.note.id for r in ranked] == ["a", "b"]

    def test_weights_come_from_config(self, cfg, invoice_notes):
        cfg.ranking.vector_weight = 0.0
        ranked = rank_notes(invoice_notes, ["find my invoice"], cfg, now=NOW)
        for r in ranked:
            assert r.score == pytest.approx(r.breakdown.lexical + r.breakdown.tag + r.breakdown.recency)

    def test_empty_corpus(self, cfg):
        assert rank_notes([], ["anything"], cfg) == []


class TestRerank:
    def test_keeps_selected_in_judge_order(self, cfg, invoice_notes):
        client = FakeClient({"reranker": {"relevant_ids": [2, 0, 0, 9, -1]}})
        chosen = rerank_notes("trip", invoice_notes, client, cfg)
        assert [n.id for n in chosen] == ["3", "1"]

    def test_all_relevant_selection_is_identity(self, cfg, invoice_notes):
        client = FakeClient({"reranker": {"relevant_ids": [0, 1, 2]}})
        chosen = rerank_notes("anything", invoice_notes, client, cfg)
        assert {n.id for n in chosen} == {n.id for n in invoice_notes}

    def test_failure_keeps_input(self, cfg, invoice_notes, fake_client):
        assert rerank_notes("anything", invoice_notes, fake_client, cfg) == invoice_notes

    def test_snippets_are_truncated(self, cfg):
        note = make_note("a", "", "x" * 400)
        client = FakeClient({"reranker": {"relevant_ids": [0]}})
        rerank_notes("q", [note], client, cfg)
        prompt = client.messages_for("reranker")[1]["content"]
        assert "NO_TITLE" in prompt
        assert "x" * 150 + "..." in prompt
        assert "x" * 151 not in prompt

    def test_promote_reranked(self, cfg, invoice_notes):
        ranked = rank_notes(invoice_notes, ["find my invoice"], cfg, now=NOW)
        selected = [ranked[2].note]
        promoted = promote_reranked(ranked, selected)
        assert promoted[0] is ranked[2]
        assert [r.note.id for r in promoted[1:]] == [ranked[0].note.id, ranked[1].note.id]
