"""
Utility modules for FeedLens.

Cross-cutting concerns:
- Storage: JSON feedback/report stores and CSV export
- Summarizer: Gemini client for AI-assisted synthesis
- JSON recovery: Parsing of loosely formatted model output
"""
