"""
Feedback data model.

Represents one customer submission as handed over by the feedback store.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

# Fields the text may live under in stored feedback documents, in priority order
TEXT_FIELDS = ("text", "content", "message", "feedback")


def parse_timestamp(value) -> datetime:
    """Parse an ISO-8601 string (or datetime) into an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    else:
        raw = str(value).strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        parsed = datetime.fromisoformat(raw)

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class FeedbackItem:
    """
    One customer submission tied to a business.
    Read-only input to the analytics engine.
    """
    id: str
    business_id: str
    text: str  # Text content or voice transcript, may be empty
    created_at: datetime
    rating: Optional[int] = None  # 1-5 stars when the customer left one
    feedback_type: str = "text"  # "text" or "voice"
    qr_id: Optional[str] = None

    def __post_init__(self):
        if self.rating is not None and not (1 <= self.rating <= 5):
            raise ValueError(f"Invalid rating: {self.rating}. Must be 1-5")

        if self.feedback_type not in ("text", "voice"):
            raise ValueError(
                f"Invalid feedback type: {self.feedback_type}. Must be 'text' or 'voice'"
            )

    @classmethod
    def from_dict(cls, data: dict) -> "FeedbackItem":
        """Create FeedbackItem from a stored JSON document."""
        text = ""
        for key in TEXT_FIELDS:
            if data.get(key):
                text = str(data[key])
                break

        rating = data.get("rating")
        return cls(
            id=str(data.get("id") or data.get("_id")),
            business_id=str(data.get("businessId") or data.get("business_id")),
            text=text,
            created_at=parse_timestamp(data.get("createdAt") or data.get("created_at")),
            rating=int(rating) if rating is not None else None,
            feedback_type=data.get("feedbackType", "text"),
            qr_id=data.get("qrId")
        )

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "businessId": self.business_id,
            "text": self.text,
            "rating": self.rating,
            "createdAt": format_timestamp(self.created_at),
            "feedbackType": self.feedback_type,
            "qrId": self.qr_id
        }
