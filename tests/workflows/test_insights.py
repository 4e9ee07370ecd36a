"""Tests for insight generation and its parsers."""

import json

import pytest

from conftest import MEETING_TRANSCRIPT, FakeLLM
from extraction import FileFamily
from models import MeteredLLM
from workflows import BudgetExceededError, CallBudget, InsightGenerator, InsightResult, ValidationGate
from workflows.insights import (
    clean_title,
    excerpt_summary,
    normalize_sentiment,
    parse_heuristic_response,
    parse_structured_response,
    title_from_filename,
    truncate_for_prompt,
)


class TestNormalizeSentiment:

    @pytest.mark.parametrize("value,expected", [
        ("Positive", "positive"),
        ("optimistic", "positive"),
        ("bad", "negative"),
        ("ambivalent", "mixed"),
        ("positive and negative", "mixed"),
        ("Mostly positive.", "positive"),
        ("confused", "neutral"),
        (None, "neutral"),
        (3, "neutral"),
    ])
    def test_mapping(self, value, expected):
        assert normalize_sentiment(value) == expected


class TestTitles:

    def test_title_from_long_filename(self):
        assert title_from_filename("2024_q3-board_meeting_with_the_whole_team_notes.m4a") == \
            "2024 q3 board meeting with the whole"

    def test_short_speech_filename_gets_prefix(self):
        assert title_from_filename("standup.m4a", FileFamily.SPEECH) == "Audio Recording standup"

    def test_short_document_filename_gets_prefix(self):
        assert title_from_filename("invoice.pdf", FileFamily.DOCUMENT) == "Document invoice"

    def test_clean_title(self):
        assert clean_title('Title: "Quarterly Planning Call."') == "Quarterly Planning Call"

    def test_invalid_model_title_falls_back_to_filename(self):
        llm = FakeLLM(title="This title is far too long to be accepted by the rules")
        generator = InsightGenerator(llm)

        title = generator.generate_title(MEETING_TRANSCRIPT, "weekly_sync.m4a", FileFamily.SPEECH)

        assert title == "weekly sync"


class TestParsers:

    def test_structured_with_surrounding_prose(self):
        response = "Here you go:\n" + json.dumps({
            "summary": "A short summary.",
            "key_points": ["one"],
            "action_items": "call Bob",
            "topics": ["budget"],
            "sentiment": "good",
        }) + "\nThanks!"

        fields = parse_structured_response(response)

        assert fields["summary"] == "A short summary."
        assert fields["key_points"] == ["one"]
        assert fields["action_items"] == ["call Bob"]
        assert fields["sentiment"] == "positive"

    def test_structured_rejects_garbage(self):
        assert parse_structured_response("no json here") is None
        assert parse_structured_response("{not: valid}") is None

    def test_missing_summary_is_empty(self):
        assert parse_structured_response('{"keyPoints": [], "topics": []}')["summary"] == ""
        assert parse_heuristic_response("- just a bullet")["summary"] == ""

    def test_missing_summary_is_rejected_by_the_gate(self):
        fields = parse_structured_response('{"keyPoints": ["Launch moves"], "topics": []}')
        insight = InsightResult(title="Planning Call", summary=fields["summary"])

        verdict = ValidationGate().check("planning-call.m4a", MEETING_TRANSCRIPT, insight)

        assert not verdict.accepted
        assert "summary too short (0 < 20" in verdict.reason

    def test_heuristic_sections(self):
        response = "\n".join([
            "Summary: The vendor call went well.",
            "Key points:",
            "• Pricing agreed",
            "- Delivery in May",
            "Action items:",
            "* Send contract",
            "Topics: pricing, delivery",
            "Sentiment: positive",
        ])

        fields = parse_heuristic_response(response)

        assert fields["summary"] == "The vendor call went well."
        assert fields["key_points"] == ["Pricing agreed", "Delivery in May"]
        assert fields["action_items"] == ["Send contract"]
        assert fields["topics"] == ["pricing", "delivery"]
        assert fields["sentiment"] == "positive"

    def test_truncate_for_prompt(self):
        text = "x" * 50
        assert truncate_for_prompt(text, 100) == text
        cut = truncate_for_prompt(text, 5)
        assert cut.startswith("x" * 20)
        assert cut.endswith("[... content truncated ...]")

    def test_excerpt_summary(self):
        assert excerpt_summary("") == ""
        long_text = "First sentence here. " * 50
        summary = excerpt_summary(long_text, max_chars=100)
        assert len(summary) <= 100
        assert summary.endswith(".")


class TestInsightGenerator:

    def test_structured_analysis(self):
        result = InsightGenerator(FakeLLM()).analyze(MEETING_TRANSCRIPT, "sync.m4a", FileFamily.SPEECH)

        assert result.title == "Quarterly Planning Call"
        assert result.key_points == ["Launch moves to March", "Hiring plan reviewed"]
        assert result.action_items == ["Dana sends revised budget by Friday"]
        assert not result.used_fallback

    def test_unstructured_output_uses_heuristics(self):
        llm = FakeLLM(analysis="Summary: Budget review.\n- Cut travel costs\nSentiment: negative")

        result = InsightGenerator(llm).analyze(MEETING_TRANSCRIPT, "sync.m4a", FileFamily.SPEECH)

        assert result.summary == "Budget review."
        assert result.key_points == ["Cut travel costs"]
        assert result.sentiment == "negative"
        assert result.used_fallback

    def test_model_failure_uses_excerpt(self):
        llm = FakeLLM(fail_complete=True)

        result = InsightGenerator(llm).analyze(MEETING_TRANSCRIPT, "board_call.m4a", FileFamily.SPEECH)

        assert result.summary.startswith("Thanks everyone")
        assert result.key_points == []
        assert result.sentiment == "neutral"
        assert result.title == "board call"
        assert result.used_fallback

    def test_budget_exhaustion_propagates(self):
        budget = CallBudget(0)
        generator = InsightGenerator(MeteredLLM(FakeLLM(), budget))

        with pytest.raises(BudgetExceededError):
            generator.analyze(MEETING_TRANSCRIPT, "sync.m4a", FileFamily.SPEECH)
