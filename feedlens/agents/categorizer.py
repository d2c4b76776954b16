"""
Feedback Categorizer.

Rule-based classification of feedback into complaint / suggestion / feedback
and per-parameter (quality / food / service) scoring.
"""

import logging
import math
from typing import Dict, List, Sequence

import pandas as pd

from feedlens.models.feedback import FeedbackItem
from feedlens.models.report import CATEGORIES, PARAMETERS

logger = logging.getLogger(__name__)

COMPLAINT_RATING_THRESHOLD = 2  # Ratings at or below this are complaints

COMPLAINT_KEYWORDS = [
    "bad", "terrible", "awful", "not happy", "disappointed", "worst",
    "complain", "rude", "slow", "never"
]

SUGGESTION_KEYWORDS = [
    "suggest", "could", "should", "recommend", "wish", "would be nice",
    "maybe", "consider"
]

PARAMETER_KEYWORDS = {
    "quality": [
        "quality", "fresh", "clean", "hygiene", "standard", "consistent",
        "excellent", "stale", "dirty"
    ],
    "food": [
        "food", "taste", "dish", "meal", "flavor", "flavour", "menu", "portion",
        "dessert", "delicious", "cold", "spicy", "bland"
    ],
    "service": [
        "service", "staff", "waiter", "server", "wait", "slow", "rude",
        "friendly", "order", "manager"
    ]
}

SENTIMENT_CLAMP = 5.0  # Sentiment averages are clamped to [-5, 5] before scaling


def _contains_any(text: str, keywords: Sequence[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def score_from_sentiment(avg_sentiment: float) -> float:
    """
    Map an average sentiment onto the 0-10 report scale.

    Clamps to [-5, 5], shifts by +5 and rounds to one decimal.
    """
    if avg_sentiment is None or math.isnan(avg_sentiment):
        avg_sentiment = 0.0
    clamped = max(-SENTIMENT_CLAMP, min(SENTIMENT_CLAMP, float(avg_sentiment)))
    return round(clamped + SENTIMENT_CLAMP, 1)


class Categorizer:
    """
    Classifies feedback items and builds the category x parameter score matrix.

    Classification order (first match wins):
    1. Rating present and <= 2 -> complaint
    2. Complaint keyword in text -> complaint
    3. Suggestion keyword in text -> suggestion
    4. Otherwise -> feedback
    """

    def classify(self, item: FeedbackItem) -> str:
        """Classify a single feedback item."""
        if item.rating is not None and item.rating <= COMPLAINT_RATING_THRESHOLD:
            return "complaint"

        text = (item.text or "").lower()
        if _contains_any(text, COMPLAINT_KEYWORDS):
            return "complaint"
        if _contains_any(text, SUGGESTION_KEYWORDS):
            return "suggestion"
        return "feedback"

    def categorize(self, items: List[FeedbackItem], scores: List[int]) -> Dict:
        """
        Build the categories block of a report.

        Args:
            items: Feedback items of the window
            scores: Sentiment score per item (same order as items)

        Returns:
            Dict with "counts", "avgSentiment" and "scores" keyed by category
            ("scores" additionally keyed by parameter)
        """
        if len(items) != len(scores):
            raise ValueError("scores must align with items")

        if not items:
            return self._empty_result()

        df = pd.DataFrame({
            "category": [self.classify(item) for item in items],
            "sentiment": [float(s) for s in scores],
            "text": [(item.text or "").lower() for item in items]
        })
        for parameter, keywords in PARAMETER_KEYWORDS.items():
            df[parameter] = df["text"].apply(lambda t, kws=keywords: _contains_any(t, kws)).astype(bool)

        counts = df["category"].value_counts()
        means = df.groupby("category")["sentiment"].mean()

        result = self._empty_result()
        for category in CATEGORIES:
            count = int(counts.get(category, 0))
            category_avg = float(means.get(category, 0.0)) if count else 0.0
            result["counts"][category] = count
            result["avgSentiment"][category] = category_avg

            subset = df[df["category"] == category]
            for parameter in PARAMETERS:
                matched = subset.loc[subset[parameter], "sentiment"]
                # Fall back to the category average when no item mentions the parameter
                parameter_avg = float(matched.mean()) if len(matched) else category_avg
                result["scores"][category][parameter] = score_from_sentiment(parameter_avg)

        logger.info(
            f"Categorized {len(items)} items: "
            + ", ".join(f"{c}={result['counts'][c]}" for c in CATEGORIES)
        )
        return result

    def _empty_result(self) -> Dict:
        return {
            "counts": {c: 0 for c in CATEGORIES},
            "avgSentiment": {c: 0.0 for c in CATEGORIES},
            "scores": {c: {p: score_from_sentiment(0.0) for p in PARAMETERS} for c in CATEGORIES}
        }
