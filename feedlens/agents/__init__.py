"""
Agent implementations for FeedLens.

Contains the analysis steps a report run goes through:
- Sentiment Scorer
- Keyword Extractor
- Categorizer
- Topic Clusterer
- Recommendation Synthesizer
- Mock Feedback Generator (demo data)
"""
