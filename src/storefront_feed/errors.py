"""Error taxonomy for catalog and personalization fetches.

An empty result set is never an error; it is a valid, renderable state.
"""


class FeedError(Exception):
    """Base class for feed engine failures."""


class FetchTimeoutError(FeedError, TimeoutError):
    """A catalog fetch exceeded its time budget."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__("request timed out")


class QueryError(FeedError):
    """The data service returned an error instead of rows."""
