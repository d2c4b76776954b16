"""
Tests for the ReportAssembler and the scheduled batch job.

Real JSON stores in a temporary directory; the summarizer is a MagicMock and
the sentiment lexicon is a small injected one.
"""

import json
import os
import tempfile
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from feedlens.agents.recommendation import RecommendationSynthesizer
from feedlens.agents.sentiment import SentimentScorer
from feedlens.errors import InputError, NoDataError, PersistenceError, SynthesisRequiredError
from feedlens.models.feedback import FeedbackItem
from feedlens.orchestrator import (
    ReportAssembler,
    ScheduledAnalysisJob,
    resolve_window_start,
)
from feedlens.registry.business_registry import BusinessRegistry
from feedlens.utils.storage import JsonFeedbackStore, JsonReportStore

NOW = datetime(2024, 6, 12, 15, 30, tzinfo=timezone.utc)  # A Wednesday

TEXTS = [
    "good food but slow service",
    "bad wait at lunch",
    "great dessert",
    "slow kitchen and cold soup",
    "good staff",
    "dirty tables",
    "could you add vegan options",
    "great value",
    "bad parking",
    "good music",
]


@pytest.fixture
def env():
    with tempfile.TemporaryDirectory() as tmpdir:
        registry = BusinessRegistry(os.path.join(tmpdir, "businesses.json"))
        registry.register("biz-1", auto_analysis=True)
        registry.register("biz-empty", auto_analysis=True)

        analyzer = MagicMock()
        analyzer.lexicon = {"good": 2.0, "bad": -2.0, "great": 3.0, "slow": -1.0, "dirty": -2.0}

        yield {
            "tmpdir": tmpdir,
            "registry": registry,
            "feedback": JsonFeedbackStore(tmpdir),
            "reports": JsonReportStore(tmpdir),
            "scorer": SentimentScorer(analyzer=analyzer),
        }


def seed(env, business_id="biz-1", texts=TEXTS, ratings=None):
    ratings = ratings or [None] * len(texts)
    env["feedback"].add([
        FeedbackItem(
            id=f"{business_id}-{i}",
            business_id=business_id,
            text=text,
            created_at=NOW - timedelta(hours=i),
            rating=ratings[i]
        )
        for i, text in enumerate(texts)
    ])


def make_assembler(env, summarizer=None, require_ai=False, **kwargs):
    return ReportAssembler(
        feedback_store=env["feedback"],
        report_store=env["reports"],
        businesses=env["registry"],
        synthesizer=RecommendationSynthesizer(summarizer=summarizer, require_ai=require_ai),
        scorer=env["scorer"],
        **kwargs
    )


def test_resolve_window_start():
    assert resolve_window_start(None, NOW) is None
    assert resolve_window_start("all", NOW) is None
    assert resolve_window_start("daily", NOW) == datetime(2024, 6, 12, tzinfo=timezone.utc)
    assert resolve_window_start("weekly", NOW) == datetime(2024, 6, 10, tzinfo=timezone.utc)
    assert resolve_window_start("monthly", NOW) == datetime(2024, 6, 1, tzinfo=timezone.utc)
    with pytest.raises(InputError):
        resolve_window_start("yearly", NOW)


def test_empty_window_returns_no_data_and_persists_nothing(env):
    assembler = make_assembler(env)

    result = assembler.analyze_now("biz-empty")

    assert result.success is True
    assert result.report is None
    assert result.to_dict()["data"] is None
    assert env["reports"].list_reports("biz-empty") == []


def test_blank_texts_count_as_no_data(env):
    seed(env, texts=["", "   "])
    with pytest.raises(NoDataError):
        make_assembler(env).generate("biz-1", now=NOW)


def test_unknown_business_rejected(env):
    with pytest.raises(InputError):
        make_assembler(env).analyze_now("nobody")
    with pytest.raises(InputError):
        make_assembler(env).analyze_now("")


def test_local_report(env):
    seed(env)
    report = make_assembler(env).generate("biz-1", now=NOW)

    assert report.id
    assert report.meta == {
        "generatedBy": "local",
        "timeframe": "all",
        "schemaVersion": 1,
        "triggeredBy": "manual"
    }
    assert report.stats["totalFeedback"] == 10
    assert report.period_end == NOW
    assert report.period_start == NOW - timedelta(hours=9)
    assert report.trends
    assert report.ai_insights["source"] == "local-heuristic"
    assert sum(report.categories["counts"].values()) == 10

    advices = [r["advice"] for r in report.ai_insights["recommendations"]]
    assert len(advices) == len(set(advices))

    # Reports never quote customer text
    rendered = report.summary + " ".join(t.label + t.recommendation for t in report.trends)
    for text in TEXTS:
        assert text not in rendered

    stored = env["reports"].list_reports("biz-1")
    assert [r.id for r in stored] == [report.id]


def test_average_sentiment_is_mean_of_scores(env):
    seed(env, texts=["good", "bad", "great"], ratings=[4, None, 5])
    report = make_assembler(env).generate("biz-1", now=NOW)

    assert report.stats["avgSentiment"] == pytest.approx(1.0)
    assert report.stats["avgRating"] == 4.5
    assert report.stats["ratedFeedback"] == 2


def test_timeframe_restricts_window(env):
    env["feedback"].add([
        FeedbackItem(id="today", business_id="biz-1", text="good food", created_at=NOW - timedelta(hours=1)),
        FeedbackItem(id="old", business_id="biz-1", text="bad food", created_at=NOW - timedelta(days=3)),
    ])
    report = make_assembler(env).generate("biz-1", timeframe="daily", now=NOW)

    assert report.stats["totalFeedback"] == 1
    assert report.meta["timeframe"] == "daily"


def test_degraded_ai_still_persists(env):
    seed(env)
    summarizer = MagicMock()
    summarizer.summarize.side_effect = TimeoutError("deadline exceeded")

    report = make_assembler(env, summarizer=summarizer).generate("biz-1", now=NOW)
    local = make_assembler(env).generate("biz-1", now=NOW)

    assert report.meta["generatedBy"] == "ai-degraded"
    assert report.summary == local.summary
    assert "deadline exceeded" in report.ai_insights["degradedReason"]
    assert len(env["reports"].list_reports("biz-1")) == 2


def test_ai_scores_override_local_cells(env):
    seed(env)
    summarizer = MagicMock()
    summarizer.model_name = "gemini-test"
    summarizer.summarize.return_value = json.dumps({
        "summary": "Mixed feedback with speed issues.",
        "categories": {"scores": {"complaint": {"quality": 9}}}
    })

    local = make_assembler(env).generate("biz-1", now=NOW)
    report = make_assembler(env, summarizer=summarizer).generate("biz-1", now=NOW)

    assert report.meta["generatedBy"] == "ai-assisted"
    assert report.summary == "Mixed feedback with speed issues."
    assert report.categories["scores"]["complaint"]["quality"] == 9.0
    assert report.categories["scores"]["complaint"]["food"] == local.categories["scores"]["complaint"]["food"]
    assert report.categories["counts"] == local.categories["counts"]
    assert report.ai_insights["source"] == "gemini-test"


def test_raw_ai_output_kept_when_enabled(env):
    seed(env)
    summarizer = MagicMock()
    summarizer.summarize.return_value = "not json at all"

    make_assembler(env, summarizer=summarizer, keep_raw_ai_output=True).generate("biz-1", now=NOW)

    raw_files = os.listdir(os.path.join(env["tmpdir"], "ai_raw"))
    assert len(raw_files) == 1


def test_strict_mode_without_credential_fails(env):
    seed(env)
    with pytest.raises(SynthesisRequiredError):
        make_assembler(env, require_ai=True).generate("biz-1", now=NOW)
    assert env["reports"].list_reports("biz-1") == []


def test_persistence_failure_propagates(env):
    seed(env)
    assembler = make_assembler(env)
    assembler.report_store = MagicMock()
    assembler.report_store.create.side_effect = PersistenceError("disk full")

    with pytest.raises(PersistenceError):
        assembler.generate("biz-1", now=NOW)


def test_explore_topics(env):
    seed(env)
    topics = make_assembler(env).explore_topics("biz-1", now=NOW)

    assert sum(t.size for t in topics) == len(TEXTS)
    assert make_assembler(env).explore_topics("biz-empty", now=NOW) == []


def test_batch_isolates_failures(env):
    env["registry"].register("biz-broken", auto_analysis=True)
    assembler = MagicMock()

    def generate(business_id, timeframe=None, triggered_by="manual"):
        if business_id == "biz-empty":
            raise NoDataError(business_id)
        if business_id == "biz-broken":
            raise PersistenceError("disk full")
        return MagicMock(id=f"report-{business_id}")

    assembler.generate.side_effect = generate

    result = ScheduledAnalysisJob(assembler, env["registry"]).run()

    assert result.succeeded == {"biz-1": "report-biz-1"}
    assert result.skipped == ["biz-empty"]
    assert "disk full" in result.failed["biz-broken"]
    for call in assembler.generate.call_args_list:
        assert call[1]["triggered_by"] == "schedule"


def test_batch_can_stop_on_failure(env):
    assembler = MagicMock()
    assembler.generate.side_effect = PersistenceError("disk full")

    job = ScheduledAnalysisJob(assembler, env["registry"], continue_on_failure=False)
    with pytest.raises(PersistenceError):
        job.run()
    assert assembler.generate.call_count == 1


def test_batch_end_to_end(env):
    seed(env)
    job = ScheduledAnalysisJob(make_assembler(env), env["registry"])

    result = job.run_forever(interval_minutes=0, max_runs=1)

    assert list(result.succeeded) == ["biz-1"]
    assert result.skipped == ["biz-empty"]
    stored = env["reports"].list_reports("biz-1")
    assert stored[0].meta["triggeredBy"] == "schedule"


def test_repeated_batch_runs_isolate_failures(env):
    assembler = MagicMock()
    outcomes = {
        "biz-1": [PersistenceError("disk full"), MagicMock(id="report-2")],
        "biz-empty": [NoDataError("biz-empty"), NoDataError("biz-empty")],
    }

    def generate(business_id, timeframe=None, triggered_by="manual"):
        outcome = outcomes[business_id].pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    assembler.generate.side_effect = generate
    job = ScheduledAnalysisJob(assembler, env["registry"])

    with patch("feedlens.orchestrator.time.sleep") as mock_sleep:
        result = job.run_forever(interval_minutes=5, max_runs=2)

    mock_sleep.assert_called_once_with(300)
    assert assembler.generate.call_count == 4
    # Only the latest run is returned; the first run's failure did not stop it
    assert result.succeeded == {"biz-1": "report-2"}
    assert result.failed == {}
    assert result.skipped == ["biz-empty"]


def test_null_fields_in_ai_output_still_persist(env):
    seed(env)
    summarizer = MagicMock()
    summarizer.model_name = "gemini-test"
    summarizer.summarize.return_value = json.dumps({
        "summary": "ok",
        "recommendations": [{"advice": "x", "topics": None}]
    })

    result = make_assembler(env, summarizer=summarizer).analyze_now("biz-1")

    assert result.report is not None
    assert result.report.meta["generatedBy"] == "ai-assisted"
    assert result.report.ai_insights["recommendations"] == [{"advice": "x", "topics": [], "actions": []}]
    assert [r.id for r in env["reports"].list_reports("biz-1")] == [result.report.id]


def test_blank_items_excluded_from_categories(env):
    seed(env, texts=["good food", "", "bad service", "   "])
    report = make_assembler(env).generate("biz-1", now=NOW)

    assert report.stats["totalFeedback"] == 4
    assert report.stats["avgSentiment"] == pytest.approx(0.0)
    assert sum(report.categories["counts"].values()) == 2
