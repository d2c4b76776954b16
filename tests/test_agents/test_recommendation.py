"""
Unit tests for the Recommendation Synthesizer.

The summarizer is always a MagicMock; no API calls are made.
"""

import json

import pytest
from unittest.mock import MagicMock, patch

from feedlens.agents.recommendation import (
    DEFAULT_ACTIONS,
    DEFAULT_ADVICE,
    RecommendationSynthesizer,
    advice_for_keyword,
    validate_category_scores,
    validate_distribution,
)
from feedlens.errors import SynthesisRequiredError
from feedlens.models.report import GENERATED_BY_AI, GENERATED_BY_AI_DEGRADED, GENERATED_BY_LOCAL

SPEED_ADVICE = "Investigate service speed: adjust staffing, optimize order flow, and reduce wait times."

TEXTS = [
    "Slow service, we had to wait a long time",
    "Tables were dirty",
    "The price is too expensive",
]

AI_RESPONSE = {
    "summary": "Guests mention slow service and pricing.",
    "recommendations": [
        {"advice": "Add staff at peak hours.", "topics": ["speed"], "actions": ["Roster review"]},
        {"advice": "Add staff at peak hours.", "topics": ["wait"], "actions": ["Track wait times"]},
        {"advice": "Review prices.", "topics": ["price"], "actions": []},
    ],
    "trends": [{"label": "Service speed", "recommendation": "Add staff at peak hours."}],
    "categories": {
        "scores": {
            "complaint": {"quality": 12, "food": "bad", "service": 3.14},
            "suggestion": {"quality": 7}
        },
        "distribution": {"complaint": 2, "feedback": 1, "suggestion": 0}
    }
}


def make_summarizer(**kwargs):
    summarizer = MagicMock(**kwargs)
    summarizer.model_name = "gemini-test"
    return summarizer


def test_advice_for_keyword():
    assert advice_for_keyword("wait") == SPEED_ADVICE
    assert advice_for_keyword("dirty").startswith("Address cleanliness")
    assert advice_for_keyword("parking") == DEFAULT_ADVICE


def test_local_synthesis_dedupes_advice():
    result = RecommendationSynthesizer().synthesize(["slow wait", "slow wait"])

    assert result.generated_by == GENERATED_BY_LOCAL
    assert len(result.recommendations) == 1
    rec = result.recommendations[0]
    assert rec.advice == SPEED_ADVICE
    assert rec.topics == ["slow", "wait"]
    assert rec.actions == DEFAULT_ACTIONS
    assert result.trends[0].label == "Slow / Wait"
    assert result.summary == f"1. {SPEED_ADVICE} (topics: slow, wait)"


def test_local_synthesis_unique_advice():
    result = RecommendationSynthesizer().synthesize(TEXTS)

    advices = [r.advice for r in result.recommendations]
    assert len(advices) == len(set(advices))
    assert SPEED_ADVICE in advices
    assert len(result.trends) == len(result.recommendations)


def test_local_synthesis_without_keywords():
    result = RecommendationSynthesizer().synthesize_local(["the and"])

    assert [r.advice for r in result.recommendations] == [DEFAULT_ADVICE]
    assert result.trends[0].label == "General feedback"


def test_strict_mode_without_summarizer():
    with pytest.raises(SynthesisRequiredError):
        RecommendationSynthesizer(require_ai=True).synthesize(TEXTS)


def test_ai_synthesis_success():
    summarizer = make_summarizer()
    summarizer.summarize.return_value = f"Here you go:\n```json\n{json.dumps(AI_RESPONSE)}\n```"

    result = RecommendationSynthesizer(summarizer=summarizer).synthesize(TEXTS)

    assert result.generated_by == GENERATED_BY_AI
    assert result.source == "gemini-test"
    assert result.summary == "Guests mention slow service and pricing."
    assert [r.advice for r in result.recommendations] == ["Add staff at peak hours.", "Review prices."]
    assert result.recommendations[0].topics == ["speed", "wait"]
    assert result.recommendations[0].actions == ["Roster review", "Track wait times"]
    assert result.category_scores == {
        "complaint": {"quality": 10.0, "service": 3.1},
        "suggestion": {"quality": 7.0}
    }
    assert result.category_distribution == {"complaint": 2, "feedback": 1, "suggestion": 0}


def test_ai_prompt_carries_sample():
    summarizer = make_summarizer()
    summarizer.summarize.return_value = json.dumps({"summary": "ok"})

    RecommendationSynthesizer(summarizer=summarizer, sample_size=1, max_tokens=321).synthesize(TEXTS)

    prompt = summarizer.summarize.call_args[0][0]
    assert TEXTS[0] in prompt
    assert TEXTS[1] not in prompt
    assert summarizer.summarize.call_args[1]["max_tokens"] == 321


def test_ai_partial_output_filled_locally():
    summarizer = make_summarizer()
    summarizer.summarize.return_value = json.dumps({"summary": "Short summary."})

    synthesizer = RecommendationSynthesizer(summarizer=summarizer)
    result = synthesizer.synthesize(TEXTS)
    local = synthesizer.synthesize_local(TEXTS)

    assert result.generated_by == GENERATED_BY_AI
    assert result.summary == "Short summary."
    assert [r.advice for r in result.recommendations] == [r.advice for r in local.recommendations]


def test_ai_transport_error_degrades():
    summarizer = make_summarizer()
    summarizer.summarize.side_effect = TimeoutError("deadline exceeded")

    synthesizer = RecommendationSynthesizer(summarizer=summarizer)
    result = synthesizer.synthesize(TEXTS)

    assert result.generated_by == GENERATED_BY_AI_DEGRADED
    assert "deadline exceeded" in result.degradation_reason
    assert result.summary == synthesizer.synthesize_local(TEXTS).summary


def test_ai_unparsable_output_degrades_with_raw():
    summarizer = make_summarizer()
    summarizer.summarize.return_value = "I cannot help with that."

    result = RecommendationSynthesizer(summarizer=summarizer).synthesize(TEXTS)

    assert result.generated_by == GENERATED_BY_AI_DEGRADED
    assert result.raw_output == "I cannot help with that."
    assert result.recommendations


def test_ai_empty_object_degrades():
    summarizer = make_summarizer()
    summarizer.summarize.return_value = "{}"

    result = RecommendationSynthesizer(summarizer=summarizer).synthesize(TEXTS)
    assert result.generated_by == GENERATED_BY_AI_DEGRADED


def test_ai_retry_then_success():
    summarizer = make_summarizer()
    summarizer.summarize.side_effect = [ConnectionError("reset"), json.dumps(AI_RESPONSE)]

    result = RecommendationSynthesizer(summarizer=summarizer, max_retries=2).synthesize(TEXTS)

    assert result.generated_by == GENERATED_BY_AI
    assert summarizer.summarize.call_count == 2


def test_validate_category_scores():
    assert validate_category_scores(None) is None
    assert validate_category_scores({"scores": {"complaint": {"food": True}}}) is None
    assert validate_category_scores({"scores": {"complaint": {"food": -3}}}) == {"complaint": {"food": 0.0}}
    assert validate_category_scores({"scores": {"unknown": {"food": 5}}}) is None


def test_validate_distribution():
    assert validate_distribution({"distribution": {"complaint": 3, "feedback": -1}}) == {"complaint": 3}
    assert validate_distribution({}) is None


def test_ai_null_and_string_fields_coerced():
    summarizer = make_summarizer()
    summarizer.summarize.return_value = json.dumps({
        "recommendations": [
            {"advice": None, "topics": ["x"]},
            {"advice": "Fix speed", "topics": "service", "actions": None},
        ]
    })

    result = RecommendationSynthesizer(summarizer=summarizer).synthesize(TEXTS)

    assert result.generated_by == GENERATED_BY_AI
    assert [r.advice for r in result.recommendations] == ["Fix speed"]
    assert result.recommendations[0].topics == ["service"]
    assert result.recommendations[0].actions == []


def test_ai_malformed_fields_degrade():
    summarizer = make_summarizer()
    summarizer.summarize.return_value = json.dumps({"recommendations": [{"advice": "x"}]})

    with patch(
        "feedlens.agents.recommendation.Recommendation.from_dict",
        side_effect=TypeError("unexpected type")
    ):
        result = RecommendationSynthesizer(summarizer=summarizer).synthesize(TEXTS)

    assert result.generated_by == GENERATED_BY_AI_DEGRADED
    assert result.degradation_reason == "summarizer output had malformed fields"
