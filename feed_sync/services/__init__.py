"""Services for feed_sync."""

from .feed_parser import parse_feed, load_feed_data, ParsedFeed, ParsedItem
from .feed_discovery import FeedFinder, is_valid_domain
from .feed_updater import FeedUpdater, UpdateSummary
from .categorizer import NullCategorizer
from .scheduler import Scheduler, compute_next_deadline

__all__ = [
    "parse_feed",
    "load_feed_data",
    "ParsedFeed",
    "ParsedItem",
    "FeedFinder",
    "is_valid_domain",
    "FeedUpdater",
    "UpdateSummary",
    "NullCategorizer",
    "Scheduler",
    "compute_next_deadline",
]
