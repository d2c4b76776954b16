"""
Configuration settings for FeedLens.

Centralized configuration for the analytics engine, the summarizer client
and the batch job.
"""

import os
from pathlib import Path


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
DATA_ROOT = Path(os.getenv("FEEDLENS_DATA_ROOT", str(PROJECT_ROOT / "data")))
OUTPUT_ROOT = PROJECT_ROOT / "output"

# API Configuration
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY", "")

# Summarizer (AI-assisted synthesis)
SUMMARIZER_MODEL = os.getenv("SUMMARIZER_MODEL", "gemini-1.5-flash")
LLM_TEMPERATURE = 0.0
SUMMARIZER_TIMEOUT_SECONDS = 30
SUMMARIZER_MAX_OUTPUT_TOKENS = 1200
SUMMARIZER_MAX_RETRIES = 1
AI_SAMPLE_SIZE = 200  # Max feedback items sent to the summarizer

# Strict mode: refuse to fall back to local synthesis when no credential is set
REQUIRE_AI_SYNTHESIS = _env_flag("REQUIRE_AI_SYNTHESIS")

# Debug: keep unparsable summarizer output under DATA_ROOT/ai_raw
KEEP_RAW_AI_OUTPUT = _env_flag("KEEP_RAW_AI_OUTPUT")

# Report assembly
REPORT_FEEDBACK_LIMIT = 500
TOPIC_FEEDBACK_LIMIT = 1000
LOCAL_KEYWORD_COUNT = 6
CORPUS_KEYWORD_COUNT = 12
VALID_TIMEFRAMES = ("daily", "weekly", "monthly")

# Topic clustering
CLUSTER_MIN_K = 2
CLUSTER_MAX_K = 6
CLUSTER_TERMS_PER_DOC = 50
CLUSTER_VOCABULARY_SIZE = 200
CLUSTER_TOP_TERMS = 8
CLUSTER_EXAMPLES = 3
TIMESERIES_WEEKS = 8

# Batch job
CONTINUE_ON_BUSINESS_FAILURE = True  # One business failing never stops the batch
BATCH_INTERVAL_MINUTES = 0  # 0 = run once

# Mock ingestion
MOCK_FEEDBACK_COUNT = 30

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
