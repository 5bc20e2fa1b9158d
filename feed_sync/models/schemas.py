"""Data models for feed_sync.

This module defines the core data structures for feeds and their items.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class Feed:
    """Represents a stored syndication feed."""

    id: int
    title: str
    url: str
    feed_url: str
    feed_type: Optional[str] = None
    error_count: int = 0
    category_id: int = 0


@dataclass
class Item:
    """Represents a stored feed item."""

    id: int
    feed_id: int
    title: str
    url: str
    published_date: Optional[datetime]
    discovered_date: Optional[datetime]
    is_read: bool


@dataclass(frozen=True)
class ResolvedFeed:
    """A feed found by discovery that has not been stored yet."""

    title: str
    feed_url: str
    site_url: str


@dataclass
class ParsedItem:
    """Represents an item parsed from a feed."""

    title: str
    url: str
    published_date: Optional[datetime]


@dataclass
class ParsedFeed:
    """Represents a parsed feed document."""

    title: str
    link: str
    feed_type: Optional[str] = None
    items: List[ParsedItem] = field(default_factory=list)
