"""
Topic data model.

A Topic is one cluster of feedback sharing vocabulary, produced fresh on every
topic-exploration call and served directly to the caller.
"""

from dataclasses import dataclass, field
from typing import List


@dataclass
class Topic:
    """
    One topic cluster.
    """
    id: int
    size: int
    label: str
    top_terms: List[str] = field(default_factory=list)
    avg_sentiment: float = 0.0
    examples: List[dict] = field(default_factory=list)  # At most 3 {text, id, createdAt}
    timeseries: List[int] = field(default_factory=list)  # 8 weekly buckets, oldest first
    advice: str = ""

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "size": self.size,
            "label": self.label,
            "topTerms": self.top_terms,
            "avgSentiment": self.avg_sentiment,
            "examples": self.examples,
            "timeseries": self.timeseries,
            "advice": self.advice
        }
