"""
Report data model.

A Report is the persisted, point-in-time analytical snapshot for a business.
Trends and Recommendations are its building blocks.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from feedlens.models.feedback import format_timestamp, parse_timestamp

# Synthesis paths recorded in meta.generatedBy
GENERATED_BY_LOCAL = "local"
GENERATED_BY_AI = "ai-assisted"
GENERATED_BY_AI_DEGRADED = "ai-degraded"

# Version of the categories block (complaint/feedback/suggestion x quality/food/service)
SCHEMA_VERSION = 1

CATEGORIES = ("complaint", "feedback", "suggestion")
PARAMETERS = ("quality", "food", "service")


@dataclass(frozen=True)
class Trend:
    """A labeled insight with its recommendation. Never carries customer text."""
    label: str
    recommendation: str

    def to_dict(self) -> dict:
        return {"label": self.label, "recommendation": self.recommendation}


def _string_list(value) -> List[str]:
    """Non-empty strings of a list; a bare string becomes a one-item list."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [v.strip() for v in value if isinstance(v, str) and v.strip()]


@dataclass
class Recommendation:
    """An actionable suggestion with its supporting topics and action steps."""
    advice: str
    topics: List[str] = field(default_factory=list)
    actions: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Recommendation":
        """Build from loosely typed JSON; non-string advice becomes empty."""
        advice = data.get("advice")
        return cls(
            advice=advice.strip() if isinstance(advice, str) else "",
            topics=_string_list(data.get("topics")),
            actions=_string_list(data.get("actions"))
        )

    def to_dict(self) -> dict:
        return {
            "advice": self.advice,
            "topics": list(self.topics),
            "actions": list(self.actions)
        }


def _union(left: List[str], right: List[str]) -> List[str]:
    """Order-preserving union without duplicates."""
    return list(dict.fromkeys(list(left) + list(right)))


def merge_recommendations(recommendations: List[Recommendation]) -> List[Recommendation]:
    """
    Deduplicate recommendations by identical advice text.

    Duplicates are merged into the first occurrence; their topics and actions
    are unioned. Recommendations with empty advice are dropped.

    Args:
        recommendations: Recommendations in priority order

    Returns:
        New list with unique advice strings, first-seen order
    """
    merged: Dict[str, Recommendation] = {}
    for rec in recommendations:
        advice = rec.advice.strip()
        if not advice:
            continue
        if advice in merged:
            current = merged[advice]
            current.topics = _union(current.topics, rec.topics)
            current.actions = _union(current.actions, rec.actions)
        else:
            merged[advice] = Recommendation(
                advice=advice,
                topics=_union([], rec.topics),
                actions=_union([], rec.actions)
            )
    return list(merged.values())


@dataclass(frozen=True)
class Report:
    """
    Immutable analytical snapshot for one business.

    `id` is assigned by the report store on creation.
    """
    business_id: str
    generated_at: datetime
    period_start: datetime
    period_end: datetime
    summary: str
    trends: List[Trend]
    stats: dict
    categories: dict
    meta: dict
    ai_insights: Optional[dict] = None
    id: Optional[str] = None

    @property
    def generated_by(self) -> str:
        return self.meta.get("generatedBy", GENERATED_BY_LOCAL)

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        data = {
            "businessId": self.business_id,
            "generatedAt": format_timestamp(self.generated_at),
            "periodStart": format_timestamp(self.period_start),
            "periodEnd": format_timestamp(self.period_end),
            "summary": self.summary,
            "trends": [t.to_dict() for t in self.trends],
            "stats": self.stats,
            "categories": self.categories,
            "meta": self.meta
        }
        if self.ai_insights is not None:
            data["aiInsights"] = self.ai_insights
        if self.id is not None:
            data["id"] = self.id
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Report":
        """Create Report from a stored JSON document."""
        return cls(
            business_id=data["businessId"],
            generated_at=parse_timestamp(data["generatedAt"]),
            period_start=parse_timestamp(data["periodStart"]),
            period_end=parse_timestamp(data["periodEnd"]),
            summary=data.get("summary", ""),
            trends=[Trend(t["label"], t["recommendation"]) for t in data.get("trends", [])],
            stats=data.get("stats", {}),
            categories=data.get("categories", {}),
            meta=data.get("meta", {}),
            ai_insights=data.get("aiInsights"),
            id=data.get("id")
        )
