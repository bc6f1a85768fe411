"""Tests for cubeplanner.parser module."""

from __future__ import annotations

import pytest

from cubeplanner.errors import BadShape, MalformedResponse
from cubeplanner.parser import (
    extract_json,
    parse_plan_response,
    parse_shopping_response,
)

# ---------------------------------------------------------------------------
# extract_json
# ---------------------------------------------------------------------------


class TestExtractJson:
    """Tests for the three extraction strategies."""

    def test_plain_json(self) -> None:
        """Test a response that is already pure JSON."""
        assert extract_json('{"days": []}') == {"days": []}

    def test_fenced_block_with_prose(self) -> None:
        """Test a json-tagged code fence surrounded by prose."""
        text = 'Here is the plan:\n```json\n{"days":[]}\n```\nEnjoy!'
        assert extract_json(text) == {"days": []}

    def test_untagged_fence(self) -> None:
        """Test a code fence without a language tag."""
        text = '```\n{"items": [{"name": "Apple"}]}\n```'
        assert extract_json(text) == {"items": [{"name": "Apple"}]}

    def test_uppercase_fence_tag(self) -> None:
        """Test the fence tag is matched case-insensitively."""
        text = 'Plan:\n```JSON\n{"days": [1]}\n```'
        assert extract_json(text) == {"days": [1]}

    def test_brace_span(self) -> None:
        """Test the first-to-last brace fallback."""
        text = 'Sure! {"days": [{"date": "2026-10-19"}]} Hope this helps.'
        assert extract_json(text) == {"days": [{"date": "2026-10-19"}]}

    def test_trailing_junk_after_object(self) -> None:
        """Test trailing non-JSON text is ignored."""
        assert extract_json('{"days": []}\n\n--- end of response') == {"days": []}

    def test_garbage_raises_with_raw_text(self) -> None:
        """Test unparseable text raises MalformedResponse carrying the raw text."""
        with pytest.raises(MalformedResponse) as exc_info:
            extract_json("I could not make a plan today, sorry.")
        assert exc_info.value.raw == "I could not make a plan today, sorry."

    def test_empty_text_raises(self) -> None:
        """Test empty and whitespace-only text are malformed."""
        with pytest.raises(MalformedResponse):
            extract_json("")
        with pytest.raises(MalformedResponse):
            extract_json("   \n")

    def test_top_level_array_is_not_an_object(self) -> None:
        """Test a bare JSON array does not count as an object."""
        with pytest.raises(MalformedResponse):
            extract_json("[1, 2, 3]")

    def test_broken_json_in_braces(self) -> None:
        """Test a brace span that is not valid JSON."""
        with pytest.raises(MalformedResponse):
            extract_json("{days: [oops}")


# ---------------------------------------------------------------------------
# Shape checks
# ---------------------------------------------------------------------------


class TestParsePlanResponse:
    """Tests for plan shape validation."""

    def test_days_array(self) -> None:
        """Test a plan with a days array is accepted."""
        assert parse_plan_response('{"days": []}') == {"days": []}

    def test_plans_alias(self) -> None:
        """Test the alternative plans array is accepted."""
        assert parse_plan_response('{"plans": []}') == {"plans": []}

    def test_missing_array_is_bad_shape(self) -> None:
        """Test valid JSON without a days array raises BadShape."""
        with pytest.raises(BadShape) as exc_info:
            parse_plan_response('{"meals": []}')
        assert exc_info.value.raw == '{"meals": []}'
        assert exc_info.value.expected == ("days", "plans")

    def test_days_not_a_list_is_bad_shape(self) -> None:
        """Test a non-list days value raises BadShape."""
        with pytest.raises(BadShape):
            parse_plan_response('{"days": "tomorrow"}')

    def test_bad_shape_is_distinct_from_malformed(self) -> None:
        """Test BadShape is not a MalformedResponse."""
        with pytest.raises(BadShape) as exc_info:
            parse_plan_response('{"foo": 1}')
        assert not isinstance(exc_info.value, MalformedResponse)

    def test_garbage_is_malformed(self) -> None:
        """Test garbage raises MalformedResponse, not BadShape."""
        with pytest.raises(MalformedResponse):
            parse_plan_response("no json here")


class TestParseShoppingResponse:
    """Tests for shopping shape validation."""

    def test_items_array(self) -> None:
        """Test an items array is accepted."""
        data = parse_shopping_response('```json\n{"items": [{"name": "Apple"}]}\n```')
        assert data["items"] == [{"name": "Apple"}]

    def test_shopping_alias(self) -> None:
        """Test the alternative shopping array is accepted."""
        assert parse_shopping_response('{"shopping": []}') == {"shopping": []}

    def test_plan_is_bad_shape_for_shopping(self) -> None:
        """Test a plan response is rejected by the shopping parser."""
        with pytest.raises(BadShape):
            parse_shopping_response('{"days": []}')
