"""
Topic Clusterer.

Groups feedback into topic clusters with TF-IDF vectors and k-means, then
describes each cluster (top terms, examples, weekly series, advice).
"""

import logging
import math
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.cluster import KMeans
from sklearn.feature_extraction.text import CountVectorizer, TfidfVectorizer

from feedlens.agents.keywords import STOPWORDS
from feedlens.agents.sentiment import SentimentScorer
from feedlens.models.feedback import FeedbackItem, format_timestamp
from feedlens.models.topic import Topic

logger = logging.getLogger(__name__)

TERM_PATTERN = r"(?u)\b[a-z0-9]{3,}\b"
WEEK_SECONDS = 7 * 24 * 3600

# Ordered (pattern, advice) rules matched against a cluster's top terms
TOPIC_KEYWORD_RULES: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"wait|slow|delay|queue|long"),
     "Service speed: review peak-hour staffing and streamline the order-to-table flow."),
    (re.compile(r"price|cost|expensive|value|charge"),
     "Pricing: review price points and explain value more clearly on the menu."),
    (re.compile(r"dirty|clean|hygiene|smell"),
     "Cleanliness: schedule a deep clean and add visible hygiene checks."),
    (re.compile(r"staff|rude|friendly|waiter|server|attitude"),
     "Staff: coach the team on courtesy and attentiveness, and recognise good service."),
    (re.compile(r"order|app|menu|wrong|incorrect|checkout"),
     "Ordering: audit order accuracy and simplify the menu and ordering steps."),
    (re.compile(r"cold|taste|flavor|flavour|bland|undercooked|overcooked"),
     "Kitchen: tighten food quality control and check holding temperatures."),
    (re.compile(r"portion|size|small"),
     "Portions: re-evaluate portion sizes against what guests pay."),
    (re.compile(r"noise|music|loud"),
     "Ambience: adjust music volume and seating for conversation comfort."),
]

# Ordered (predicate(size, avg_sentiment), advice) rules used when no keyword rule matches
TOPIC_FALLBACK_RULES: List[Tuple[Callable[[int, float], bool], str]] = [
    (lambda size, avg: size >= 10 and avg < 0,
     "Many unhappy mentions: triage this topic first, assign an owner and track the fix."),
    (lambda size, avg: avg < 0,
     "Mostly negative: review the examples and fix the most common cause."),
    (lambda size, avg: avg >= 2,
     "Guests like this: keep it consistent and feature it in your messaging."),
]

DEFAULT_TOPIC_ADVICE = "Keep monitoring this topic and revisit it as more feedback arrives."


def advice_for_topic(top_terms: List[str], size: int, avg_sentiment: float) -> str:
    """
    Pick advice for a cluster: keyword rules first, then fallbacks, then default.
    """
    terms_text = " ".join(top_terms)
    for pattern, advice in TOPIC_KEYWORD_RULES:
        if pattern.search(terms_text):
            return advice
    for predicate, advice in TOPIC_FALLBACK_RULES:
        if predicate(size, avg_sentiment):
            return advice
    return DEFAULT_TOPIC_ADVICE


def choose_k(n_documents: int, min_k: int = 2, max_k: int = 6) -> int:
    """k = clamp(round(sqrt(n)), min_k, max_k)"""
    return max(min_k, min(max_k, int(round(math.sqrt(max(0, n_documents))))))


def topics_to_dataframe(topics: List[Topic]) -> pd.DataFrame:
    """Flatten topics into a table with one column per week (oldest first)."""
    rows = []
    for topic in topics:
        row = {
            "Topic": topic.label,
            "Size": topic.size,
            "AvgSentiment": topic.avg_sentiment,
            "TopTerms": ", ".join(topic.top_terms),
            "Advice": topic.advice
        }
        weeks = len(topic.timeseries)
        for i, count in enumerate(topic.timeseries):
            row[f"weeks_ago_{weeks - 1 - i}"] = count
        rows.append(row)

    df = pd.DataFrame(rows)
    if df.empty:
        return pd.DataFrame(columns=["Topic", "Size", "AvgSentiment", "TopTerms", "Advice"])
    return df.sort_values("Size", ascending=False)


class TopicClusterer:
    """
    Clusters feedback texts into topics.

    Pipeline:
    1. Bounded vocabulary: top terms per document, aggregated, top N globally
    2. TF-IDF vectors over that fixed vocabulary
    3. k-means with k = clamp(round(sqrt(n)), 2, 6)
    4. Any clustering failure -> one cluster holding every document
    """

    def __init__(
        self,
        scorer: SentimentScorer,
        min_k: int = 2,
        max_k: int = 6,
        terms_per_doc: int = 50,
        vocabulary_size: int = 200,
        top_terms: int = 8,
        max_examples: int = 3,
        weeks: int = 8,
        random_state: int = 42
    ):
        """
        Initialize topic clusterer.

        Args:
            scorer: Sentiment scorer for per-cluster averages
            min_k: Lower bound for the number of clusters
            max_k: Upper bound for the number of clusters
            terms_per_doc: Terms kept per document when building the vocabulary
            vocabulary_size: Global vocabulary size
            top_terms: Terms reported per cluster
            max_examples: Example items reported per cluster
            weeks: Number of weekly buckets in each cluster's time series
            random_state: Seed for k-means
        """
        self.scorer = scorer
        self.min_k = min_k
        self.max_k = max_k
        self.terms_per_doc = terms_per_doc
        self.vocabulary_size = vocabulary_size
        self.top_terms = top_terms
        self.max_examples = max_examples
        self.weeks = weeks
        self.random_state = random_state

        logger.info(
            f"Initialized TopicClusterer: k in [{min_k}, {max_k}], "
            f"vocabulary={vocabulary_size}"
        )

    def cluster(self, items: List[FeedbackItem], now: Optional[datetime] = None) -> List[Topic]:
        """
        Cluster feedback items into topics.

        Args:
            items: Feedback items, newest first
            now: Reference time for the weekly series (defaults to current UTC time)

        Returns:
            Topics sorted by size (largest first); empty list for no items
        """
        items = [item for item in items if item.text and item.text.strip()]
        if not items:
            return []

        now = now or datetime.now(timezone.utc)
        texts = [item.text for item in items]

        vocabulary = self._build_vocabulary(texts)
        matrix = None
        terms = np.array(vocabulary)
        if vocabulary:
            matrix = self._vectorize(texts, vocabulary)

        labels = self._assign_clusters(matrix, len(texts))
        sentiments = self.scorer.score_all(texts)

        topics = []
        for topic_id, cluster_label in enumerate(sorted(set(labels.tolist()))):
            member_idx = np.where(labels == cluster_label)[0]
            top_terms = self._cluster_top_terms(matrix, terms, member_idx)
            avg_sentiment = round(float(np.mean([sentiments[i] for i in member_idx])), 2)
            size = int(member_idx.size)

            topics.append(Topic(
                id=topic_id,
                size=size,
                label=", ".join(top_terms[:3]) if top_terms else f"Topic {topic_id + 1}",
                top_terms=top_terms,
                avg_sentiment=avg_sentiment,
                examples=[
                    {
                        "text": items[i].text,
                        "id": items[i].id,
                        "createdAt": format_timestamp(items[i].created_at)
                    }
                    for i in member_idx[:self.max_examples]
                ],
                timeseries=self._weekly_series([items[i] for i in member_idx], now),
                advice=advice_for_topic(top_terms, size, avg_sentiment)
            ))

        topics.sort(key=lambda t: t.size, reverse=True)
        logger.info(f"Clustered {len(items)} items into {len(topics)} topics")
        return topics

    def _build_vocabulary(self, texts: List[str]) -> List[str]:
        """Aggregate each document's top terms and keep the most frequent globally."""
        counter = CountVectorizer(
            lowercase=True,
            token_pattern=TERM_PATTERN,
            stop_words=sorted(STOPWORDS)
        )
        try:
            counts = counter.fit_transform(texts).tocsr()
        except ValueError as e:
            # Raised when no document has a usable term
            logger.warning(f"Empty vocabulary: {e}")
            return []

        feature_names = counter.get_feature_names_out()
        totals: Counter = Counter()
        for row in range(counts.shape[0]):
            start, end = counts.indptr[row], counts.indptr[row + 1]
            row_terms = sorted(
                zip(counts.indices[start:end], counts.data[start:end]),
                key=lambda pair: (-pair[1], pair[0])
            )
            for term_idx, count in row_terms[:self.terms_per_doc]:
                totals[str(feature_names[term_idx])] += int(count)

        return [term for term, _ in totals.most_common(self.vocabulary_size)]

    def _vectorize(self, texts: List[str], vocabulary: List[str]):
        vectorizer = TfidfVectorizer(
            lowercase=True,
            token_pattern=TERM_PATTERN,
            vocabulary=vocabulary
        )
        return vectorizer.fit_transform(texts)

    def _assign_clusters(self, matrix, n_documents: int) -> np.ndarray:
        """Run k-means; any failure degrades to a single cluster."""
        k = choose_k(n_documents, self.min_k, self.max_k)
        try:
            if matrix is None:
                raise ValueError("no vocabulary to cluster on")
            kmeans = KMeans(n_clusters=k, n_init=10, random_state=self.random_state)
            return np.asarray(kmeans.fit_predict(matrix), dtype=int)
        except Exception as e:
            logger.warning(
                f"Clustering failed for {n_documents} documents (k={k}): {e}. "
                f"Falling back to a single cluster"
            )
            return np.zeros(n_documents, dtype=int)

    def _cluster_top_terms(self, matrix, terms: np.ndarray, member_idx: np.ndarray) -> List[str]:
        if matrix is None or terms.size == 0:
            return []
        weights = np.asarray(matrix[member_idx].sum(axis=0)).ravel()
        order = np.argsort(-weights, kind="stable")
        picked = []
        for j in order:
            if weights[j] <= 0:
                break
            picked.append(str(terms[j]))
            if len(picked) >= self.top_terms:
                break
        return picked

    def _weekly_series(self, items: List[FeedbackItem], now: datetime) -> List[int]:
        """Count items per week, oldest bucket first; older or future items are dropped."""
        series = [0] * self.weeks
        for item in items:
            weeks_ago = math.floor((now - item.created_at).total_seconds() / WEEK_SECONDS)
            if 0 <= weeks_ago < self.weeks:
                series[self.weeks - 1 - weeks_ago] += 1
        return series
