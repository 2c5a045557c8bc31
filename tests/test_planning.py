from conftest import FakeClient

from grounded_notes_assistant.errors import LLMParseError
from grounded_notes_assistant.models import ChatTurn
from grounded_notes_assistant.planning import (
    QueryPlan,
    SearchQueries,
    expand_query,
    gather_search_queries,
    plan_queries,
    should_plan,
)


class TestQueryPlan:
    def test_accepts_bare_list(self):
        plan = QueryPlan.model_validate(["alpha", "beta"])
        assert plan.queries == ["alpha", "beta"]
        assert plan.hypothetical_answer == ""

    def test_truncates_to_three_and_drops_blanks(self):
        plan = QueryPlan.model_validate({"queries": ["a", " ", "b", "c", "d"], "hypothetical_answer": None})
        assert plan.queries == ["a", "b", "c"]


class TestPlanQueries:
    def test_queries_then_hypothetical_answer(self, cfg):
        client = FakeClient(
            {"planner": {"queries": ["alpha budget", "beta budget"], "hypothetical_answer": "Alpha costs more."}}
        )
        assert plan_queries("compare alpha and beta budgets", [], client, cfg) == [
            "alpha budget",
            "beta budget",
            "Alpha costs more.",
        ]

    def test_sends_recent_history_only(self, cfg):
        history = [ChatTurn("user", f"question {i}") for i in range(5)]
        client = FakeClient({"planner": {"queries": ["x"]}})
        plan_queries("what about it?", history, client, cfg)
        messages = client.messages_for("planner")
        # system + last three turns + question
        assert len(messages) == 5
        assert messages[1]["content"] == "question 2"
        assert messages[-1] == {"role": "user", "content": "what about it?"}

    def test_malformed_output_contributes_nothing(self, cfg):
        client = FakeClient({"planner": "sure! here are some queries"})
        assert plan_queries("a long enough question", [], client, cfg) == []

    def test_parse_error_is_caught(self, cfg):
        client = FakeClient({"planner": LLMParseError("bad")})
        assert plan_queries("a long enough question", [], client, cfg) == []

    def test_structured_call_uses_json_mode(self, cfg):
        client = FakeClient({"planner": {"queries": ["x"]}})
        plan_queries("a long enough question", [], client, cfg)
        assert client.calls[0]["json_mode"] is True


class TestExpandQuery:
    def test_returns_variants(self, cfg):
        client = FakeClient({"expander": {"queries": ["meeting", "", "mtg notes"]}})
        assert expand_query("mtg", client, cfg) == ["meeting", "mtg notes"]

    def test_failure_returns_empty(self, cfg, fake_client):
        assert expand_query("mtg", fake_client, cfg) == []


class TestShouldPlan:
    def test_short_question_without_history(self, cfg):
        assert not should_plan("invoice", [], cfg)

    def test_history_forces_planning(self, cfg):
        assert should_plan("and it?", [ChatTurn("user", "hi")], cfg)

    def test_long_question(self, cfg):
        assert should_plan("where is my invoice", [], cfg)


class TestSearchQueries:
    def test_all_deduplicates_with_question_first(self):
        queries = SearchQueries("find invoice", planned=["invoice", "find invoice"], expanded=["bill", "invoice"])
        assert queries.all == ["find invoice", "invoice", "bill"]
        assert queries.combined == "find invoice / invoice / bill"

    def test_first_rewrite(self):
        assert SearchQueries("q", planned=["q", "x"]).first_rewrite is None
        assert SearchQueries("q", planned=["hello"]).first_rewrite == "hello"
        assert SearchQueries("q").first_rewrite is None


class TestGatherSearchQueries:
    def test_runs_both_stages(self, cfg):
        client = FakeClient(
            {
                "planner": {"queries": ["acme invoice"], "hypothetical_answer": "The invoice is from ACME."},
                "expander": {"queries": ["bill", "receipt"]},
            }
        )
        queries = gather_search_queries("where is my invoice", [], client, cfg)
        assert sorted(client.purposes()) == ["expander", "planner"]
        assert queries.all == [
            "where is my invoice",
            "acme invoice",
            "The invoice is from ACME.",
            "bill",
            "receipt",
        ]

    def test_short_question_skips_planner(self, cfg):
        client = FakeClient({"expander": {"queries": ["bill"]}})
        queries = gather_search_queries("invoice", [], client, cfg)
        assert client.purposes() == ["expander"]
        assert queries.all == ["invoice", "bill"]

    def test_both_failing_leaves_raw_question(self, cfg, fake_client):
        queries = gather_search_queries("where is my invoice", [], fake_client, cfg)
        assert queries.all == ["where is my invoice"]

    def test_toggles_disable_stages(self, cfg, fake_client):
        cfg.retrieval.use_planner = False
        cfg.retrieval.use_expander = False
        gather_search_queries("where is my invoice", [], fake_client, cfg)
        assert fake_client.calls == []
