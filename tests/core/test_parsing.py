"""
Test suite for structured output parsing.

Tests JSON block extraction, plan/verdict parsing with explicit failure
variants, activity splitting, sources section stripping and source payloads.

System role: Verification of tolerant model-output parsing
"""

import pytest

from market_map.core.research_agent.parsing import (
    extract_json_block,
    is_refusal,
    parse_activity,
    parse_plan_block,
    parse_sources_payload,
    parse_verdict,
    strip_sources_section,
)
from market_map.core.research_agent.schemas import ParseFailure, PlanBlock


class TestExtractJsonBlock:
    """Test suite for extract_json_block()."""

    def test_should_slice_first_to_last_brace(self) -> None:
        assert extract_json_block('noise {"a": {"b": 1}} tail') == '{"a": {"b": 1}}'

    @pytest.mark.parametrize("text", [None, "", "no braces", "} inverted {"])
    def test_should_return_none_without_block(self, text: str | None) -> None:
        assert extract_json_block(text) is None


class TestParsePlanBlock:
    """Test suite for parse_plan_block()."""

    def test_should_parse_complete_plan(self) -> None:
        # Arrange
        text = (
            '```json\n{"plan": "Segments:\\n\\n\\n\\n- SMB", '
            '"clarifying_questions": ["SMB or enterprise?", "  ", 3], '
            '"ready_for_results": false, "activity": ["Scanning vendors", ""], "apology": ""}\n```'
        )

        # Act
        parsed = parse_plan_block(text)

        # Assert
        assert isinstance(parsed, PlanBlock)
        assert parsed.plan == "Segments:\n\n- SMB"
        assert parsed.clarifying_questions == ["SMB or enterprise?"]
        assert parsed.first_question == "SMB or enterprise?"
        assert parsed.activity == ["Scanning vendors"]
        assert parsed.apology == ""

    def test_should_force_readiness_false_without_questions(self) -> None:
        parsed = parse_plan_block('{"plan": "p", "clarifying_questions": [], "ready_for_results": true}')
        assert isinstance(parsed, PlanBlock)
        assert parsed.ready_for_results is False
        assert parsed.first_question is None

    def test_should_keep_readiness_with_questions(self) -> None:
        parsed = parse_plan_block('{"plan": "p", "clarifying_questions": ["q"], "ready_for_results": true}')
        assert isinstance(parsed, PlanBlock)
        assert parsed.ready_for_results is True

    def test_should_surface_apology(self) -> None:
        parsed = parse_plan_block('{"plan": "", "clarifying_questions": [], "apology": " Sorry, tech only. "}')
        assert isinstance(parsed, PlanBlock)
        assert parsed.apology == "Sorry, tech only."

    @pytest.mark.parametrize("text", [None, "plain prose", "{not json}", '{"plan": "x"'])
    def test_should_return_failure_variant(self, text: str | None) -> None:
        assert isinstance(parse_plan_block(text), ParseFailure)

    def test_should_fail_on_two_separate_objects(self) -> None:
        parsed = parse_plan_block('{"a": 1} and {"b": 2}')
        assert isinstance(parsed, ParseFailure)


class TestParseVerdict:
    """Test suite for parse_verdict()."""

    def test_should_replan_only_on_explicit_action(self) -> None:
        verdict = parse_verdict('{"action": "replan", "reason": "new category"}')
        assert verdict.action == "replan"
        assert verdict.reason == "new category"

    @pytest.mark.parametrize(
        "text",
        [
            '{"action": "keep", "reason": "scope answer"}',
            '{"action": "REPLAN"}',
            '{"action": 1}',
            "garbage",
            None,
        ],
    )
    def test_should_default_to_keep(self, text: str | None) -> None:
        assert parse_verdict(text).action == "keep"

    def test_should_drop_non_string_reason(self) -> None:
        assert parse_verdict('{"action": "replan", "reason": 42}').reason is None


class TestParseActivity:
    """Test suite for parse_activity()."""

    def test_should_split_steps_from_body(self) -> None:
        text = '{"activity": ["Ranking vendors", "Checking revenue"]}\n\n## Top 3\n1. Salesforce'
        steps, body = parse_activity(text)
        assert steps == ["Ranking vendors", "Checking revenue"]
        assert body == "## Top 3\n1. Salesforce"

    def test_should_return_text_without_block(self) -> None:
        assert parse_activity("## Top 3") == ([], "## Top 3")

    def test_should_strip_block_even_if_invalid(self) -> None:
        steps, body = parse_activity("{oops} body")
        assert steps == []
        assert body == "body"


class TestSourcesAndRefusal:
    """Test suite for strip_sources_section(), is_refusal() and parse_sources_payload()."""

    def test_should_strip_trailing_sources_section(self) -> None:
        text = "## Ranking\n1. HubSpot\n\nSources:\n- https://example.com"
        assert strip_sources_section(text) == "## Ranking\n1. HubSpot"

    def test_should_keep_inline_sources_word(self) -> None:
        text = "Revenue sources: subscriptions"
        assert strip_sources_section(text) == text

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Sorry, I can't help with that.", True),
            ("I only cover software and technology markets.", True),
            ("## Top 3 CRM vendors", False),
        ],
    )
    def test_is_refusal(self, text: str, expected: bool) -> None:
        assert is_refusal(text) is expected

    def test_should_parse_sources_payload(self) -> None:
        text = (
            '{"sources": [{"title": "HubSpot IR", "url": "https://ir.hubspot.com"}, '
            '{"url": "https://www.salesforce.com/news"}, {"title": "no url"}, "bad"]}'
        )
        sources = parse_sources_payload(text)
        assert [s.url for s in sources] == ["https://ir.hubspot.com", "https://www.salesforce.com/news"]
        assert sources[1].title == "https://www.salesforce.com/news"
        assert sources[1].domain == "salesforce.com"

    @pytest.mark.parametrize("text", [None, "nothing", '{"sources": "x"}'])
    def test_should_return_empty_on_malformed_payload(self, text: str | None) -> None:
        assert parse_sources_payload(text) == []
