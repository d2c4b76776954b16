"""
Error taxonomy for FeedLens.

Every failure the engine signals to a caller derives from FeedLensError.
"""


class FeedLensError(Exception):
    """Base class for all FeedLens errors."""


class InputError(FeedLensError):
    """Missing or unknown business identifier, or an invalid request option."""


class NoDataError(FeedLensError):
    """The requested feedback window contains no usable feedback."""

    def __init__(self, business_id: str, timeframe: str = "all"):
        self.business_id = business_id
        self.timeframe = timeframe
        super().__init__(f"No feedback for business {business_id} (timeframe={timeframe})")


class SynthesisDegradation(FeedLensError):
    """
    The AI-assisted synthesis step failed.

    Never escapes the synthesizer: local results are used instead.
    Carries the raw summarizer output when there was one.
    """

    def __init__(self, reason: str, raw_output: str = None):
        self.reason = reason
        self.raw_output = raw_output
        super().__init__(reason)


class SynthesisRequiredError(FeedLensError):
    """AI-assisted synthesis is required by configuration but not available."""


class PersistenceError(FeedLensError):
    """Writing a report to the report store failed."""
