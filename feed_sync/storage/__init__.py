"""Storage layer for feed_sync."""

from .database import FeedStore, init_database

__all__ = [
    "FeedStore",
    "init_database",
]
