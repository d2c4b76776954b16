"""
FeedLens - Feedback Analytics and Report Synthesis

CLI entry point for generating reports, exploring topics and running the
scheduled analysis batch.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from feedlens.agents.ingestion import MockFeedbackGenerator
from feedlens.agents.keywords import extract_keywords, summarize_extractive
from feedlens.agents.clustering import TopicClusterer, topics_to_dataframe
from feedlens.agents.recommendation import RecommendationSynthesizer
from feedlens.agents.sentiment import SentimentScorer
from feedlens.errors import InputError
from feedlens.orchestrator import ReportAssembler, ScheduledAnalysisJob
from feedlens.registry.business_registry import BusinessRegistry
from feedlens.utils.storage import JsonFeedbackStore, JsonReportStore, export_table_csv
from feedlens.utils.summarizer import build_summarizer
import config.settings as settings


def setup_logging(log_level: str = "INFO"):
    """Configure logging for the entire application."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=settings.LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler("feedlens.log")
        ]
    )


def build_assembler(data_root: str, registry: BusinessRegistry) -> ReportAssembler:
    """Wire stores, agents and the optional summarizer client."""
    summarizer = build_summarizer(
        api_key=settings.GOOGLE_API_KEY,
        model_name=settings.SUMMARIZER_MODEL,
        temperature=settings.LLM_TEMPERATURE,
        timeout_seconds=settings.SUMMARIZER_TIMEOUT_SECONDS
    )
    synthesizer = RecommendationSynthesizer(
        summarizer=summarizer,
        require_ai=settings.REQUIRE_AI_SYNTHESIS,
        keyword_count=settings.LOCAL_KEYWORD_COUNT,
        sample_size=settings.AI_SAMPLE_SIZE,
        max_tokens=settings.SUMMARIZER_MAX_OUTPUT_TOKENS,
        max_retries=settings.SUMMARIZER_MAX_RETRIES
    )
    scorer = SentimentScorer()
    clusterer = TopicClusterer(
        scorer=scorer,
        min_k=settings.CLUSTER_MIN_K,
        max_k=settings.CLUSTER_MAX_K,
        terms_per_doc=settings.CLUSTER_TERMS_PER_DOC,
        vocabulary_size=settings.CLUSTER_VOCABULARY_SIZE,
        top_terms=settings.CLUSTER_TOP_TERMS,
        max_examples=settings.CLUSTER_EXAMPLES,
        weeks=settings.TIMESERIES_WEEKS
    )
    return ReportAssembler(
        feedback_store=JsonFeedbackStore(data_root),
        report_store=JsonReportStore(data_root),
        businesses=registry,
        synthesizer=synthesizer,
        scorer=scorer,
        clusterer=clusterer,
        report_limit=settings.REPORT_FEEDBACK_LIMIT,
        topic_limit=settings.TOPIC_FEEDBACK_LIMIT,
        keep_raw_ai_output=settings.KEEP_RAW_AI_OUTPUT
    )


def cmd_analyze(args, registry: BusinessRegistry) -> int:
    assembler = build_assembler(args.data_root, registry)
    result = assembler.analyze_now(args.business, timeframe=args.timeframe)
    print(json.dumps(result.to_dict(), indent=2))
    return 0


def cmd_topics(args, registry: BusinessRegistry) -> int:
    assembler = build_assembler(args.data_root, registry)
    topics = assembler.explore_topics(args.business)
    if args.output:
        export_table_csv(topics_to_dataframe(topics), args.output)
        print(f"Topic table: {args.output}")
    print(json.dumps({"topics": [t.to_dict() for t in topics]}, indent=2))
    return 0


def cmd_batch(args, registry: BusinessRegistry) -> int:
    job = ScheduledAnalysisJob(
        assembler=build_assembler(args.data_root, registry),
        businesses=registry,
        continue_on_failure=settings.CONTINUE_ON_BUSINESS_FAILURE
    )
    if args.interval_minutes > 0:
        job.run_forever(args.interval_minutes, timeframe=args.timeframe)
        return 0

    result = job.run(timeframe=args.timeframe)
    print(json.dumps(result.to_dict(), indent=2))
    return 1 if result.failed else 0


def cmd_seed(args, registry: BusinessRegistry) -> int:
    registry.register(args.business, name=args.name or args.business, auto_analysis=args.auto_analysis)
    registry.save()
    items = MockFeedbackGenerator(seed=args.seed).generate(args.business, count=args.count)
    JsonFeedbackStore(args.data_root).add(items)
    print(f"Seeded {len(items)} feedback items for {args.business}")
    return 0


def cmd_preview(args, registry: BusinessRegistry) -> int:
    business = registry.get(args.business)
    items = JsonFeedbackStore(args.data_root).fetch(business.business_id, limit=settings.REPORT_FEEDBACK_LIMIT)
    corpus = "\n".join(item.text for item in items if item.text.strip())
    keywords = extract_keywords(corpus, settings.CORPUS_KEYWORD_COUNT)
    print(f"Feedback items: {len(items)}")
    print(f"Keywords: {', '.join(keywords) or '-'}")
    print()
    print(summarize_extractive(corpus, keywords) or "(no feedback)")
    return 0


COMMANDS = {
    "analyze": cmd_analyze,
    "topics": cmd_topics,
    "batch": cmd_batch,
    "seed": cmd_seed,
    "preview": cmd_preview,
}


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="FeedLens - Customer Feedback Analytics and Report Synthesis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Seed demo feedback and generate a weekly report
  python main.py seed --business cafe-1 --auto-analysis
  python main.py analyze --business cafe-1 --timeframe weekly

  # Explore topics and export the topic table
  python main.py topics --business cafe-1 --output output/cafe-1_topics.csv

  # Run the scheduled batch every 60 minutes
  python main.py batch --interval-minutes 60

Note: Set GOOGLE_API_KEY to enable AI-assisted synthesis.
        """
    )

    parser.add_argument(
        "--data-root",
        default=str(settings.DATA_ROOT),
        help=f"Data directory (default: {settings.DATA_ROOT})"
    )
    parser.add_argument(
        "--registry-path",
        help="Path to business registry JSON (default: <data-root>/businesses.json)"
    )
    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help=f"Logging level (default: {settings.LOG_LEVEL})"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Generate and persist a report now")
    analyze.add_argument("--business", required=True, help="Business identifier")
    analyze.add_argument("--timeframe", choices=settings.VALID_TIMEFRAMES, help="Restrict to a window")

    topics = subparsers.add_parser("topics", help="Cluster recent feedback into topics")
    topics.add_argument("--business", required=True, help="Business identifier")
    topics.add_argument("--output", help="Write the topic table to this CSV path")

    batch = subparsers.add_parser("batch", help="Analyze every business flagged for automation")
    batch.add_argument("--timeframe", choices=settings.VALID_TIMEFRAMES, help="Restrict to a window")
    batch.add_argument(
        "--interval-minutes",
        type=float,
        default=settings.BATCH_INTERVAL_MINUTES,
        help="Repeat every N minutes (default: run once)"
    )

    seed = subparsers.add_parser("seed", help="Register a business and add mock feedback")
    seed.add_argument("--business", required=True, help="Business identifier")
    seed.add_argument("--name", help="Display name")
    seed.add_argument("--count", type=int, default=settings.MOCK_FEEDBACK_COUNT, help="Items to generate")
    seed.add_argument("--seed", type=int, default=42, help="Random seed")
    seed.add_argument("--auto-analysis", action="store_true", help="Include in the scheduled batch")

    preview = subparsers.add_parser("preview", help="Print keywords and an extractive summary")
    preview.add_argument("--business", required=True, help="Business identifier")

    args = parser.parse_args()

    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    if not settings.GOOGLE_API_KEY:
        logger.info("GOOGLE_API_KEY not set; reports will use local synthesis")

    registry_path = args.registry_path or str(Path(args.data_root) / "businesses.json")

    try:
        registry = BusinessRegistry(registry_path)
        sys.exit(COMMANDS[args.command](args, registry))

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        print("\n⚠️  Interrupted")
        sys.exit(1)

    except InputError as e:
        logger.error(f"Invalid request: {e}")
        print(f"\n❌ {e}")
        sys.exit(1)

    except Exception as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        print(f"\n❌ {args.command} failed: {e}")
        print("Check feedlens.log for details")
        sys.exit(1)


if __name__ == "__main__":
    main()
