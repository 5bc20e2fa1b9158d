"""Exceptions raised while fetching and parsing feeds."""


class FeedError(Exception):
    """Base class for per-feed failures."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{message}: {url}")
        self.url = url


class FeedFetchError(FeedError):
    """The feed could not be fetched (network error, timeout, HTTP error status)."""


class FeedParseError(FeedError):
    """The response could not be parsed as an RSS/Atom feed."""
