"""
Tests for reply-shape extraction strategies.
"""

import pytest

from core.errors import ResponseUnparseable
from core.extraction import DEFAULT_STRATEGIES, ExtractionStrategy, extract_answer


class TestExtractAnswer:
    """Test ordered field extraction."""

    def test_strategy_order(self):
        assert [s.name for s in DEFAULT_STRATEGIES] == ["answer", "message.content", "response", "text"]

    def test_primary_field_wins(self):
        """Test a reply with both answer and text yields the answer."""
        answer, strategy = extract_answer({"text": "secondary", "answer": "primary"})

        assert answer == "primary"
        assert strategy == "answer"

    def test_nested_message_content(self):
        answer, strategy = extract_answer({"message": {"role": "assistant", "content": "nested"}, "text": "t"})

        assert (answer, strategy) == ("nested", "message.content")

    def test_response_field(self):
        assert extract_answer({"response": "r", "text": "t"}) == ("r", "response")

    def test_text_field(self):
        assert extract_answer({"text": "t"}) == ("t", "text")

    def test_empty_string_counts_as_present(self):
        assert extract_answer({"answer": "", "text": "t"}) == ("", "answer")

    def test_null_field_is_skipped(self):
        assert extract_answer({"answer": None, "text": "t"}) == ("t", "text")

    def test_message_without_content_falls_through(self):
        assert extract_answer({"message": "plain string", "response": "r"}) == ("r", "response")

    def test_non_string_value_is_serialized(self):
        answer, _ = extract_answer({"response": {"points": [1, 2]}})

        assert answer == '{"points": [1, 2]}'

    def test_no_known_field(self):
        with pytest.raises(ResponseUnparseable):
            extract_answer({"conversation_id": "abc"})

    def test_non_object_body(self):
        with pytest.raises(ResponseUnparseable):
            extract_answer(["answer"])

    def test_custom_strategies(self):
        strategies = [ExtractionStrategy("output", lambda body: body.get("output"))]

        assert extract_answer({"output": "o", "answer": "a"}, strategies) == ("o", "output")
