"""
Mock Feedback Generator.

Produces synthetic restaurant feedback for demos and tests. Real feedback
arrives through the QR ingestion service and is only read by FeedLens.
"""

import logging
import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from feedlens.models.feedback import FeedbackItem

logger = logging.getLogger(__name__)

WEEKS_OF_HISTORY = 8

# (text, rating) templates; ratings None for customers who skipped the stars
TEMPLATES = [
    ("Amazing food and friendly staff!", 5),
    ("Waited too long for the order.", 2),
    ("Food was cold when served.", 2),
    ("Great ambiance, will come again.", 5),
    ("Server was rude and inattentive.", 1),
    ("Portion sizes were small for the price.", 3),
    ("Loved the dessert! Highly recommended.", 5),
    ("Order was incorrect, they fixed it quickly.", 3),
    ("Music was too loud for conversation.", 3),
    ("Excellent value and fast service.", 5),
    ("Maybe add more vegetarian dishes to the menu.", 4),
    ("You should consider online table booking.", None),
    ("Slow service during lunch, staff seemed overwhelmed.", 2),
    ("Tables were dirty when we sat down.", 1),
    ("Fresh ingredients and great taste, quality is consistent.", 4),
]


class MockFeedbackGenerator:
    """
    Generates synthetic feedback for one business.

    Deterministic for a given seed: same seed, same feedback.
    Timestamps spread over the last eight weeks.
    """

    def __init__(self, seed: int = 42):
        self.seed = seed
        logger.info(f"Initialized MockFeedbackGenerator (seed={seed})")

    def generate(
        self,
        business_id: str,
        count: int = 30,
        now: Optional[datetime] = None
    ) -> List[FeedbackItem]:
        """
        Generate feedback items.

        Args:
            business_id: Business the feedback belongs to
            count: Number of items
            now: Reference time (defaults to current UTC time)

        Returns:
            List of FeedbackItem, newest first
        """
        rng = random.Random(f"{self.seed}:{business_id}")
        now = now or datetime.now(timezone.utc)
        history_seconds = WEEKS_OF_HISTORY * 7 * 24 * 3600

        items = []
        for i in range(count):
            text, rating = TEMPLATES[rng.randrange(len(TEMPLATES))]
            created_at = now - timedelta(seconds=rng.randrange(history_seconds))
            items.append(FeedbackItem(
                id=uuid.UUID(int=rng.getrandbits(128)).hex,
                business_id=business_id,
                text=text,
                created_at=created_at,
                rating=rating,
                qr_id=f"qr-{i % 3 + 1}"
            ))

        items.sort(key=lambda item: item.created_at, reverse=True)
        logger.info(f"Generated {len(items)} mock feedback items for {business_id}")
        return items
