import pytest
from conftest import make_note

from grounded_notes_assistant.positional import (
    detect_positional_query,
    extract_positional_item,
    handle_positional_query,
    parse_numbered_lists,
    positional_context,
)

SOURDOUGH = """Sourdough steps:
1. Feed the starter
2. Mix flour and water
3. Rest for an hour
   then fold
4. Bake at 250C"""


class TestDetect:
    @pytest.mark.parametrize(
        "question,position,topic",
        [
            ("what is the 3rd step of making sourdough", 3, "making sourdough"),
            ("step 5", 5, None),
            ("what is the second point", 2, None),
            ("Show me the first tip for sleep", 1, "sleep"),
        ],
    )
    def test_positional_questions(self, question, position, topic):
        query = detect_positional_query(question)
        assert query is not None
        assert query.position == position
        assert query.topic == topic

    def test_ordinary_question(self):
        assert detect_positional_query("find my invoice") is None


class TestParseLists:
    def test_numbered_with_continuation(self):
        [parsed] = parse_numbered_lists(SOURDOUGH)
        assert parsed.list_type == "numbered"
        assert [i.position for i in parsed.items] == [1, 2, 3, 4]
        assert parsed.items[2].content == "Rest for an hour then fold"

    def test_step_and_bullet_lists(self):
        lists = parse_numbered_lists("Step 1 - Preheat\nStep 2 - Bake\n\n- eggs\n- milk")
        assert [p.list_type for p in lists] == ["step", "bullet"]
        assert extract_positional_item(lists[1:], 2).content == "milk"

    def test_single_item_is_not_a_list(self):
        assert parse_numbered_lists("1. only one") == []


class TestHandle:
    def test_picks_item_from_best_note(self):
        notes = [
            make_note("a", "Groceries", "1. eggs\n2. milk\n3. bread"),
            make_note("b", "Sourdough", SOURDOUGH),
        ]
        result = handle_positional_query("what is the 3rd step of making sourdough", notes)
        assert result.item == "Rest for an hour then fold"
        assert result.source_title == "Sourdough"

        block = positional_context(result)
        assert 'EXACT ANSWER FROM NOTE: "Rest for an hour then fold"' in block
        assert "Item #3" in block

    def test_no_matching_item(self):
        result = handle_positional_query("step 9", [make_note("b", "Sourdough", SOURDOUGH)])
        assert result is not None
        assert result.item is None
        assert positional_context(result) == ""

    def test_not_positional(self):
        assert handle_positional_query("find my invoice", []) is None
        assert positional_context(None) == ""
