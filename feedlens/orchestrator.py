"""
Report Orchestration.

ReportAssembler runs one report-generation pass for a business;
ScheduledAnalysisJob runs it for every business flagged for automated
analysis, one at a time.
"""

import copy
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Optional

from feedlens.agents.categorizer import Categorizer
from feedlens.agents.clustering import TopicClusterer
from feedlens.agents.keywords import extract_keywords
from feedlens.agents.recommendation import RecommendationSynthesizer
from feedlens.agents.sentiment import SentimentScorer
from feedlens.errors import InputError, NoDataError
from feedlens.models.report import (
    GENERATED_BY_AI_DEGRADED,
    SCHEMA_VERSION,
    Report,
)
from feedlens.models.topic import Topic
from feedlens.registry.business_registry import BusinessRegistry
import config.settings as settings

logger = logging.getLogger(__name__)

TRIGGER_MANUAL = "manual"
TRIGGER_SCHEDULE = "schedule"


class RunStage(Enum):
    """Stages of one report-generation run."""
    COLLECTING = "collecting"
    EMPTY = "empty"
    ANALYZING = "analyzing"
    SYNTHESIZING = "synthesizing"
    PERSISTING = "persisting"
    DONE = "done"


def resolve_window_start(timeframe: Optional[str], now: datetime) -> Optional[datetime]:
    """
    Start of the feedback window for a timeframe.

    Args:
        timeframe: None/"all", "daily", "weekly" (ISO week, Monday) or "monthly"
        now: Reference time (UTC)

    Returns:
        Window start, or None for no restriction

    Raises:
        InputError: For an unknown timeframe
    """
    if timeframe in (None, "", "all"):
        return None

    midnight = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    if timeframe == "daily":
        return midnight
    if timeframe == "weekly":
        return midnight - timedelta(days=midnight.weekday())
    if timeframe == "monthly":
        return midnight.replace(day=1)

    raise InputError(
        f"Unknown timeframe: {timeframe}. Must be one of {', '.join(settings.VALID_TIMEFRAMES)}"
    )


@dataclass
class AnalysisResult:
    """Outcome of an interactive analysis trigger."""
    success: bool
    report: Optional[Report] = None
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "data": self.report.to_dict() if self.report else None
        }


@dataclass
class BatchResult:
    """Outcome of one scheduled batch run."""
    succeeded: Dict[str, str] = field(default_factory=dict)  # business_id -> report id
    skipped: List[str] = field(default_factory=list)  # No feedback in window
    failed: Dict[str, str] = field(default_factory=dict)  # business_id -> error

    def to_dict(self) -> dict:
        return {
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed
        }


class ReportAssembler:
    """
    Builds and persists one Report per run.

    Run stages:
    COLLECTING -> EMPTY (no report)
    COLLECTING -> ANALYZING -> SYNTHESIZING -> PERSISTING -> DONE

    Every run works on its own fetched snapshot; the assembler keeps no
    per-run state between calls.
    """

    def __init__(
        self,
        feedback_store,
        report_store,
        businesses: BusinessRegistry,
        synthesizer: RecommendationSynthesizer,
        scorer: SentimentScorer = None,
        categorizer: Categorizer = None,
        clusterer: TopicClusterer = None,
        report_limit: int = 500,
        topic_limit: int = 1000,
        keep_raw_ai_output: bool = False
    ):
        """
        Initialize report assembler.

        Args:
            feedback_store: Exposes fetch(business_id, since, limit) -> [FeedbackItem]
            report_store: Exposes create(report) -> report with id
            businesses: Business registry used to validate business ids
            synthesizer: Recommendation synthesizer (local or AI-assisted)
            scorer: Sentiment scorer (default: VADER lexicon scorer)
            categorizer: Categorizer (default: rule-based categorizer)
            clusterer: Topic clusterer for topic exploration
            report_limit: Max feedback items analyzed per report
            topic_limit: Max feedback items clustered per topic query
            keep_raw_ai_output: Save unparsable summarizer output (debug)
        """
        self.feedback_store = feedback_store
        self.report_store = report_store
        self.businesses = businesses
        self.synthesizer = synthesizer
        self.scorer = scorer or SentimentScorer()
        self.categorizer = categorizer or Categorizer()
        self.clusterer = clusterer or TopicClusterer(scorer=self.scorer)
        self.report_limit = report_limit
        self.topic_limit = topic_limit
        self.keep_raw_ai_output = keep_raw_ai_output

        logger.info(
            f"Initialized ReportAssembler (report_limit={report_limit}, "
            f"topic_limit={topic_limit}, ai={synthesizer.ai_enabled})"
        )

    def generate(
        self,
        business_id: str,
        timeframe: Optional[str] = None,
        triggered_by: str = TRIGGER_MANUAL,
        now: Optional[datetime] = None
    ) -> Report:
        """
        Run the full pipeline for one business and persist the report.

        Args:
            business_id: Business to analyze
            timeframe: None (all), "daily", "weekly" or "monthly"
            triggered_by: "manual" or "schedule"
            now: Reference time (defaults to current UTC time)

        Returns:
            Persisted Report (with id)

        Raises:
            InputError: Unknown business or timeframe
            NoDataError: No feedback text in the window
            SynthesisRequiredError: Strict AI mode without credential
            PersistenceError: Report store write failed
        """
        business = self.businesses.get(business_id)
        now = now or datetime.now(timezone.utc)
        timeframe_label = timeframe or "all"

        # STAGE 1: Collecting
        self._enter(RunStage.COLLECTING, business.business_id)
        since = resolve_window_start(timeframe, now)
        items = self.feedback_store.fetch(business.business_id, since=since, limit=self.report_limit)
        texts = [item.text for item in items if item.text and item.text.strip()]

        if not texts:
            self._enter(RunStage.EMPTY, business.business_id)
            raise NoDataError(business.business_id, timeframe_label)

        logger.info(f"Collected {len(items)} feedback items ({len(texts)} with text)")

        # STAGE 2: Analyzing
        self._enter(RunStage.ANALYZING, business.business_id)
        # Items without text carry no sentiment and stay out of the averages
        text_items = [item for item in items if item.text and item.text.strip()]
        scores = self.scorer.score_all(item.text for item in text_items)
        avg_sentiment = sum(scores) / len(scores)

        categories = self.categorizer.categorize(text_items, scores)
        keywords = extract_keywords("\n".join(texts), settings.CORPUS_KEYWORD_COUNT)

        ratings = [item.rating for item in items if item.rating is not None]
        stats = {
            "totalFeedback": len(items),
            "avgSentiment": avg_sentiment,
            "avgRating": round(sum(ratings) / len(ratings), 2) if ratings else None,
            "ratedFeedback": len(ratings),
            "topKeywords": keywords
        }

        # STAGE 3: Synthesizing
        self._enter(RunStage.SYNTHESIZING, business.business_id)
        synthesis = self.synthesizer.synthesize(texts, categories)

        if synthesis.raw_output and self.keep_raw_ai_output:
            self.report_store.save_raw_ai_output(business.business_id, synthesis.raw_output)

        categories = self._apply_ai_scores(categories, synthesis.category_scores)

        ai_insights = {
            "source": synthesis.source,
            "recommendations": [r.to_dict() for r in synthesis.recommendations]
        }
        if synthesis.category_distribution:
            ai_insights["distribution"] = synthesis.category_distribution
        if synthesis.generated_by == GENERATED_BY_AI_DEGRADED:
            ai_insights["degradedReason"] = synthesis.degradation_reason

        report = Report(
            business_id=business.business_id,
            generated_at=now,
            period_start=min(item.created_at for item in items),
            period_end=max(item.created_at for item in items),
            summary=synthesis.summary,
            trends=list(synthesis.trends),
            stats=stats,
            categories=categories,
            meta={
                "generatedBy": synthesis.generated_by,
                "timeframe": timeframe_label,
                "schemaVersion": SCHEMA_VERSION,
                "triggeredBy": triggered_by
            },
            ai_insights=ai_insights
        )

        # STAGE 4: Persisting
        self._enter(RunStage.PERSISTING, business.business_id)
        stored = self.report_store.create(report)

        self._enter(RunStage.DONE, business.business_id)
        logger.info(
            f"Report {stored.id} for {business.business_id}: {len(items)} items, "
            f"generatedBy={synthesis.generated_by}"
        )
        return stored

    def analyze_now(self, business_id: str, timeframe: Optional[str] = None) -> AnalysisResult:
        """
        Interactive trigger.

        Returns:
            AnalysisResult with the report, or success with no data when the
            window is empty. Every other failure is raised to the caller.
        """
        try:
            report = self.generate(business_id, timeframe=timeframe, triggered_by=TRIGGER_MANUAL)
        except NoDataError as e:
            logger.info(str(e))
            return AnalysisResult(success=True, report=None, message="No feedback")
        return AnalysisResult(success=True, report=report, message="Report generated")

    def explore_topics(self, business_id: str, now: Optional[datetime] = None) -> List[Topic]:
        """
        Topic-exploration query: cluster the most recent feedback.

        Returns:
            Topics, largest first (empty list when there is no feedback)

        Raises:
            InputError: Unknown business
        """
        business = self.businesses.get(business_id)
        items = self.feedback_store.fetch(business.business_id, since=None, limit=self.topic_limit)
        return self.clusterer.cluster(items, now=now)

    def _apply_ai_scores(self, categories: Dict, ai_scores: Optional[Dict]) -> Dict:
        """Overlay validated AI scores onto the local score matrix."""
        if not ai_scores:
            return categories
        merged = copy.deepcopy(categories)
        for category, row in ai_scores.items():
            merged["scores"].setdefault(category, {}).update(row)
        return merged

    def _enter(self, stage: RunStage, business_id: str) -> None:
        logger.info(f"[{business_id}] {stage.value.upper()}")


class ScheduledAnalysisJob:
    """
    Batch job over every business flagged for automated analysis.

    Businesses are processed sequentially; each one runs inside its own error
    boundary so a failure is logged and the batch moves on.
    """

    def __init__(
        self,
        assembler: ReportAssembler,
        businesses: BusinessRegistry,
        continue_on_failure: bool = True
    ):
        self.assembler = assembler
        self.businesses = businesses
        self.continue_on_failure = continue_on_failure

    def run(self, timeframe: Optional[str] = None) -> BatchResult:
        """
        Generate reports for all flagged businesses.

        Returns:
            BatchResult listing succeeded, skipped and failed businesses
        """
        tasks = self.businesses.list_auto_analysis()
        logger.info(f"Starting scheduled analysis for {len(tasks)} businesses")
        result = BatchResult()

        for business in tasks:
            try:
                report = self.assembler.generate(
                    business.business_id,
                    timeframe=timeframe,
                    triggered_by=TRIGGER_SCHEDULE
                )
                result.succeeded[business.business_id] = report.id
            except NoDataError:
                logger.info(f"No feedback for {business.business_id}, skipping")
                result.skipped.append(business.business_id)
            except Exception as e:
                logger.error(f"Scheduled analysis failed for {business.business_id}: {e}")
                result.failed[business.business_id] = f"{e.__class__.__name__}: {e}"
                if not self.continue_on_failure:
                    raise

        logger.info(
            f"Scheduled analysis complete: {len(result.succeeded)} succeeded, "
            f"{len(result.skipped)} skipped, {len(result.failed)} failed"
        )
        return result

    def run_forever(
        self,
        interval_minutes: float,
        timeframe: Optional[str] = None,
        max_runs: Optional[int] = None
    ) -> Optional[BatchResult]:
        """
        Run the batch on a fixed cadence.

        Each run's outcome is logged; only the latest result is kept.

        Args:
            interval_minutes: Pause between runs
            timeframe: Timeframe passed to every run
            max_runs: Stop after this many runs (None = until interrupted)

        Returns:
            Result of the last completed run
        """
        last_result = None
        runs = 0
        while max_runs is None or runs < max_runs:
            last_result = self.run(timeframe=timeframe)
            runs += 1
            logger.info(f"Batch run {runs}: {json.dumps(last_result.to_dict())}")
            if max_runs is not None and runs >= max_runs:
                break
            time.sleep(interval_minutes * 60)
        return last_result
