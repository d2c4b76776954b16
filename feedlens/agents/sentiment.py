"""
Sentiment Scorer.

Lexicon-based scoring of feedback text into a signed integer.
"""

import logging
import re
from typing import Iterable, List, Optional

from vaderSentiment.vaderSentiment import N_SCALAR, SentimentIntensityAnalyzer, negated

logger = logging.getLogger(__name__)

WORD_RE = re.compile(r"[a-z0-9']+")
NEGATION_WINDOW = 3  # Preceding tokens checked for a negation


class SentimentScorer:
    """
    Scores text by summing lexicon valences.

    Uses the VADER lexicon: every known word adds its valence (roughly -4..+4),
    a negation within the three preceding words flips and damps it.
    The rounded sum is the score: positive words push it up, negative words
    pull it down, short texts land roughly within [-10, 10].
    """

    def __init__(self, analyzer: SentimentIntensityAnalyzer = None):
        """
        Initialize sentiment scorer.

        Args:
            analyzer: Optional pre-built VADER analyzer (loading the lexicon
                      is the expensive part, so it is shared when given)
        """
        self.analyzer = analyzer or SentimentIntensityAnalyzer()
        self.lexicon = self.analyzer.lexicon
        logger.info(f"Initialized SentimentScorer with {len(self.lexicon)} lexicon entries")

    def score(self, text: str) -> int:
        """
        Score a single text.

        Args:
            text: Feedback text (may be empty)

        Returns:
            Signed integer score, 0 for empty or neutral text
        """
        if not text or not text.strip():
            return 0

        tokens = WORD_RE.findall(text.lower())
        total = 0.0
        for i, token in enumerate(tokens):
            valence = self.lexicon.get(token)
            if valence is None:
                continue
            window = tokens[max(0, i - NEGATION_WINDOW):i]
            if window and negated(window):
                valence *= N_SCALAR
            total += valence

        return int(round(total))

    def score_all(self, texts: Iterable[str]) -> List[int]:
        return [self.score(t) for t in texts]

    def average(self, texts: Iterable[str]) -> Optional[float]:
        """
        Arithmetic mean of per-text scores over non-empty texts.

        Returns:
            Mean score, or None when there is no non-empty text ("no data")
        """
        scores = [self.score(t) for t in texts if t and t.strip()]
        if not scores:
            return None
        return sum(scores) / len(scores)
