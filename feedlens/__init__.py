"""
FeedLens - customer feedback analytics and report synthesis.
"""
