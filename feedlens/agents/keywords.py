"""
Keyword Extractor.

Frequency-based keyword extraction and a small extractive summarizer.
Deterministic and side-effect free.
"""

import re
from collections import Counter
from typing import List

TOKEN_RE = re.compile(r"[a-z0-9]+")
SENTENCE_SPLIT_RE = re.compile(r"[.!?]\s+")

MIN_TOKEN_LENGTH = 3

STOPWORDS = frozenset([
    "the", "and", "is", "in", "at", "of", "a", "an", "to", "for", "with", "on",
    "it", "this", "that", "was", "are", "as", "but", "be", "by", "from", "or",
    "we", "they", "you"
])


def tokenize(text: str) -> List[str]:
    """Lowercase alphanumeric runs."""
    return TOKEN_RE.findall((text or "").lower())


def extract_keywords(text: str, top_n: int = 10) -> List[str]:
    """
    Extract the most frequent meaningful tokens.

    Args:
        text: Input text (typically a whole corpus joined by newlines)
        top_n: Maximum number of keywords to return

    Returns:
        Up to top_n tokens by descending frequency; ties keep first-occurrence order
    """
    if top_n <= 0:
        return []

    counts = Counter(
        token for token in tokenize(text)
        if token not in STOPWORDS and len(token) >= MIN_TOKEN_LENGTH
    )
    # Counter keeps insertion order and most_common() sorts stably
    return [token for token, _ in counts.most_common(top_n)]


def summarize_extractive(text: str, keywords: List[str], sentence_limit: int = 5) -> str:
    """
    Pick the sentences that mention the most keywords.

    Only used for previews; quotes customer text, so never goes into a Report.
    """
    sentences = [s.strip() for s in SENTENCE_SPLIT_RE.split(text or "") if s.strip()]
    if not sentences:
        return ""

    scored = []
    for sentence in sentences:
        words = set(tokenize(sentence))
        scored.append((sum(1 for k in keywords if k in words), sentence))

    scored.sort(key=lambda row: row[0], reverse=True)
    picked = [sentence.rstrip(".!?") for _, sentence in scored[:sentence_limit]]
    return ". ".join(picked) + "."
