"""
Recommendation Synthesizer.

Turns a feedback corpus into a summary, trends and deduplicated
recommendations, either locally (rule table) or with the AI summarizer.
The local result is always computed first and is the fallback for every
AI failure.
"""

import logging
import math
import re
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

from feedlens.agents.keywords import extract_keywords
from feedlens.errors import SynthesisDegradation, SynthesisRequiredError
from feedlens.models.report import (
    CATEGORIES,
    GENERATED_BY_AI,
    GENERATED_BY_AI_DEGRADED,
    GENERATED_BY_LOCAL,
    PARAMETERS,
    Recommendation,
    Trend,
    merge_recommendations,
)
from feedlens.utils.json_recovery import recover_json

logger = logging.getLogger(__name__)

LOCAL_SOURCE = "local-heuristic"

# Ordered (pattern, advice) rules; first match wins, DEFAULT_ADVICE otherwise
ADVICE_RULES: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"wait|slow|delay|long|queue|waiting"),
     "Investigate service speed: adjust staffing, optimize order flow, and reduce wait times."),
    (re.compile(r"price|cost|expensive|charge"),
     "Review pricing and consider promotions or clearer menu value descriptions."),
    (re.compile(r"dirty|clean|hygiene|smell"),
     "Address cleanliness: schedule immediate cleaning and audit facility hygiene."),
    (re.compile(r"staff|rude|friendly|service"),
     "Provide staff training and coaching focused on customer service and friendliness."),
    (re.compile(r"order|app|website|ux|checkout|menu"),
     "Review ordering flow and menus for errors or confusing steps; fix UX gaps."),
    (re.compile(r"cold|undercooked|overcooked|taste|bland|flavor"),
     "Investigate food preparation and quality control in the kitchen."),
    (re.compile(r"portion|size|small"),
     "Re-evaluate portion sizes or pricing; ensure portions match expectations."),
    (re.compile(r"noise|music|loud"),
     "Adjust music volume and seating to improve conversation comfort."),
]

DEFAULT_ADVICE = "Review this topic and triage top operational fixes; monitor impact after changes."

DEFAULT_ACTIONS = [
    "Investigate root cause and collect top examples internally",
    "Assign an owner and set measurable targets",
    "Implement at least one corrective action and monitor impact"
]


def advice_for_keyword(keyword: str) -> str:
    for pattern, advice in ADVICE_RULES:
        if pattern.search(keyword):
            return advice
    return DEFAULT_ADVICE


def _construct_prompt(texts: List[str], categories: Dict) -> str:
    """Construct the summarizer prompt from a feedback sample."""
    counts = categories.get("counts", {}) if categories else {}
    counts_text = ", ".join(f"{c}={counts.get(c, 0)}" for c in CATEGORIES)
    feedback_text = "\n\n".join(texts)

    return f"""Analyze the customer feedback entries below and return a single JSON object:
{{
  "summary": "2-4 sentence overview",
  "recommendations": [
    {{"advice": "1-2 sentences", "topics": ["topic"], "actions": ["2-4 concrete action steps"]}}
  ],
  "trends": [
    {{"label": "short theme name", "recommendation": "what to do about it"}}
  ],
  "categories": {{
    "scores": {{
      "complaint": {{"quality": 0-10, "food": 0-10, "service": 0-10}},
      "feedback": {{"quality": 0-10, "food": 0-10, "service": 0-10}},
      "suggestion": {{"quality": 0-10, "food": 0-10, "service": 0-10}}
    }},
    "distribution": {{"complaint": 0, "feedback": 0, "suggestion": 0}}
  }}
}}

Rules:
- Output STRICTLY VALID JSON ONLY, starting with '{{' and ending with '}}'
- DO NOT include raw customer text, quotes or examples anywhere
- DO NOT repeat identical advice across recommendations
- Scores are numbers from 0 (very poor) to 10 (excellent)

Locally computed category counts: {counts_text}

Feedback ({len(texts)} entries):
{feedback_text}"""


def _as_score(value) -> Optional[float]:
    """Numeric score clamped to [0, 10] and rounded to one decimal, else None."""
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return round(max(0.0, min(10.0, number)), 1)


def validate_category_scores(categories) -> Optional[Dict[str, Dict[str, float]]]:
    """
    Keep only well-formed category x parameter scores from AI output.

    Returns:
        Nested dict of validated scores, or None if no cell is usable
    """
    if not isinstance(categories, dict) or not isinstance(categories.get("scores"), dict):
        return None

    validated: Dict[str, Dict[str, float]] = {}
    for category in CATEGORIES:
        row = categories["scores"].get(category)
        if not isinstance(row, dict):
            continue
        for parameter in PARAMETERS:
            score = _as_score(row.get(parameter))
            if score is not None:
                validated.setdefault(category, {})[parameter] = score
    return validated or None


def validate_distribution(categories) -> Optional[Dict[str, int]]:
    if not isinstance(categories, dict) or not isinstance(categories.get("distribution"), dict):
        return None

    validated = {}
    for category in CATEGORIES:
        value = categories["distribution"].get(category)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if value >= 0:
            validated[category] = int(value)
    return validated or None


@dataclass
class SynthesisResult:
    """Output of one synthesis run."""
    summary: str
    trends: List[Trend]
    recommendations: List[Recommendation]
    generated_by: str
    source: str
    category_scores: Optional[Dict[str, Dict[str, float]]] = None
    category_distribution: Optional[Dict[str, int]] = None
    degradation_reason: Optional[str] = None
    raw_output: Optional[str] = field(default=None, repr=False)


class RecommendationSynthesizer:
    """
    Produces summary, trends and recommendations for a feedback corpus.

    Mode is chosen by whether a summarizer client was injected:
    - None: local rule-table synthesis
    - Summarizer: AI-assisted synthesis, degrading to the local result on
      transport errors, timeouts, unparsable or empty output
    """

    def __init__(
        self,
        summarizer=None,
        require_ai: bool = False,
        keyword_count: int = 6,
        sample_size: int = 200,
        max_tokens: int = 1200,
        max_retries: int = 1
    ):
        """
        Initialize recommendation synthesizer.

        Args:
            summarizer: Client exposing summarize(prompt, max_tokens) -> str, or None
            require_ai: Strict mode; fail instead of synthesizing locally when
                        no summarizer is configured
            keyword_count: Keywords turned into local recommendations
            sample_size: Max feedback texts sent to the summarizer
            max_tokens: Output token budget for the summarizer
            max_retries: Summarizer attempts before degrading
        """
        self.summarizer = summarizer
        self.require_ai = require_ai
        self.keyword_count = keyword_count
        self.sample_size = sample_size
        self.max_tokens = max_tokens
        self.max_retries = max(1, max_retries)

        mode = "ai-assisted" if summarizer is not None else "local"
        logger.info(f"Initialized RecommendationSynthesizer in {mode} mode (strict={require_ai})")

    @property
    def ai_enabled(self) -> bool:
        return self.summarizer is not None

    def synthesize(self, texts: List[str], categories: Dict = None) -> SynthesisResult:
        """
        Synthesize summary, trends and recommendations.

        Args:
            texts: Non-empty feedback texts, newest first
            categories: Locally computed categories block (prompt context)

        Returns:
            SynthesisResult whose generated_by records the path actually taken

        Raises:
            SynthesisRequiredError: Strict mode without a summarizer
        """
        if self.summarizer is None:
            if self.require_ai:
                raise SynthesisRequiredError(
                    "AI-assisted synthesis is required but no summarizer credential is configured"
                )
            return self.synthesize_local(texts)

        local = self.synthesize_local(texts)
        try:
            return self._synthesize_with_ai(texts, categories or {}, local)
        except SynthesisDegradation as e:
            logger.warning(f"AI synthesis degraded, using local results: {e.reason}")
            return replace(
                local,
                generated_by=GENERATED_BY_AI_DEGRADED,
                degradation_reason=e.reason,
                raw_output=e.raw_output
            )

    def synthesize_local(self, texts: List[str]) -> SynthesisResult:
        """
        Rule-table synthesis from the corpus keywords.

        Always returns at least one recommendation and one trend.
        """
        corpus = "\n".join(texts)
        keywords = extract_keywords(corpus, self.keyword_count)

        recommendations = merge_recommendations([
            Recommendation(advice=advice_for_keyword(k), topics=[k], actions=list(DEFAULT_ACTIONS))
            for k in keywords
        ])
        if not recommendations:
            recommendations = [Recommendation(advice=DEFAULT_ADVICE, actions=list(DEFAULT_ACTIONS))]

        summary_lines = []
        trends = []
        for i, rec in enumerate(recommendations, 1):
            if rec.topics:
                summary_lines.append(f"{i}. {rec.advice} (topics: {', '.join(rec.topics)})")
            else:
                summary_lines.append(f"{i}. {rec.advice}")
            label = " / ".join(t.title() for t in rec.topics) or "General feedback"
            trends.append(Trend(label=label, recommendation=rec.advice))

        logger.debug(f"Local synthesis: {len(keywords)} keywords -> {len(recommendations)} recommendations")
        return SynthesisResult(
            summary="\n".join(summary_lines),
            trends=trends,
            recommendations=recommendations,
            generated_by=GENERATED_BY_LOCAL,
            source=LOCAL_SOURCE
        )

    def _synthesize_with_ai(
        self,
        texts: List[str],
        categories: Dict,
        local: SynthesisResult
    ) -> SynthesisResult:
        """
        Call the summarizer and merge its output over the local result.

        Raises:
            SynthesisDegradation: When no attempt produced usable output
        """
        prompt = _construct_prompt(texts[:self.sample_size], categories)
        raw = None
        reason = "summarizer not called"

        for attempt in range(self.max_retries):
            try:
                raw = self.summarizer.summarize(prompt, max_tokens=self.max_tokens)
            except Exception as e:
                reason = f"summarizer call failed: {e}"
                logger.error(f"Summarizer error (attempt {attempt + 1}): {e}")
                continue

            parsed = recover_json(raw)
            if parsed is None:
                reason = "summarizer output could not be parsed as JSON"
                logger.error(f"Unparsable summarizer output (attempt {attempt + 1})")
                continue

            try:
                result = self._merge_ai_output(parsed, local)
            except (TypeError, ValueError, AttributeError) as e:
                reason = "summarizer output had malformed fields"
                logger.error(f"Malformed summarizer output (attempt {attempt + 1}): {e}")
                continue
            if result is None:
                reason = "summarizer output contained no usable fields"
                logger.error(f"Empty summarizer output (attempt {attempt + 1})")
                continue

            logger.info(
                f"AI synthesis succeeded: {len(result.recommendations)} recommendations, "
                f"{len(result.trends)} trends"
            )
            return result

        raise SynthesisDegradation(reason, raw_output=raw)

    def _merge_ai_output(self, parsed: dict, local: SynthesisResult) -> Optional[SynthesisResult]:
        """AI values take precedence; local values fill whatever is missing or invalid."""
        summary = parsed.get("summary")
        summary = summary.strip() if isinstance(summary, str) else ""

        recommendations = merge_recommendations([
            Recommendation.from_dict(item)
            for item in parsed.get("recommendations") or []
            if isinstance(item, dict)
        ]) if isinstance(parsed.get("recommendations"), list) else []

        trends = []
        if isinstance(parsed.get("trends"), list):
            for item in parsed["trends"]:
                if not isinstance(item, dict):
                    continue
                label = str(item.get("label") or "").strip()
                recommendation = str(item.get("recommendation") or "").strip()
                if label and recommendation:
                    trends.append(Trend(label=label, recommendation=recommendation))

        scores = validate_category_scores(parsed.get("categories"))
        distribution = validate_distribution(parsed.get("categories"))

        if not (summary or recommendations or trends or scores):
            return None

        return SynthesisResult(
            summary=summary or local.summary,
            trends=trends or local.trends,
            recommendations=recommendations or local.recommendations,
            generated_by=GENERATED_BY_AI,
            source=getattr(self.summarizer, "model_name", "ai"),
            category_scores=scores,
            category_distribution=distribution
        )
